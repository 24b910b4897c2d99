"""Result data structures produced by the runner."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .models import ActualDiagnostic, CompileOutput, ExpectedDiagnostic, Fragment, TestCase


STATUS_PASSED = "passed"
STATUS_EXPECTATION_MISMATCH = "expectation-mismatch"
STATUS_UNEXPECTED_DIAGNOSTIC = "unexpected-diagnostic"
STATUS_UNEXPECTED_SUCCESS = "unexpected-success"
STATUS_COMPILER_CRASH = "compiler-crash"
STATUS_TIMEOUT = "timeout"
STATUS_SKIPPED = "skipped"

FAILURE_STATUSES = (
    STATUS_EXPECTATION_MISMATCH,
    STATUS_UNEXPECTED_DIAGNOSTIC,
    STATUS_UNEXPECTED_SUCCESS,
    STATUS_COMPILER_CRASH,
    STATUS_TIMEOUT,
)


@dataclass(frozen=True)
class MatchResult:
    """How the diagnostics of one invocation line up with a case's expectations."""

    case: TestCase
    status: str
    matched: Tuple[Tuple[ExpectedDiagnostic, ActualDiagnostic], ...] = tuple()
    unmatched: Tuple[ExpectedDiagnostic, ...] = tuple()
    unexpected: Tuple[ActualDiagnostic, ...] = tuple()
    missing_patterns: Tuple[str, ...] = tuple()

    @property
    def passed(self) -> bool:
        return self.status == STATUS_PASSED


@dataclass
class CaseResult:
    """Outcome of verifying a single test case."""

    case: TestCase
    status: str
    duration_s: float = 0.0
    match: Optional[MatchResult] = None
    compile_output: Optional[CompileOutput] = None
    reason: str = ""

    @property
    def passed(self) -> bool:
        return self.status == STATUS_PASSED

    @property
    def skipped(self) -> bool:
        return self.status == STATUS_SKIPPED

    @property
    def failed(self) -> bool:
        return self.status in FAILURE_STATUSES


@dataclass
class FragmentResult:
    """All case results for one fragment, in source order."""

    path: Path
    key: str
    fragment: Optional[Fragment] = None
    cases: List[CaseResult] = field(default_factory=list)
    error: Optional[str] = None
    artifact_path: Optional[Path] = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def passed(self) -> bool:
        return self.error is None and not any(result.failed for result in self.cases)

    def counts(self) -> dict:
        return _count(self.cases)


@dataclass
class RunResult:
    """Aggregate of every fragment processed by one run."""

    fragments: List[FragmentResult] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def passed(self) -> bool:
        return all(fragment.passed for fragment in self.fragments)

    def case_results(self) -> List[CaseResult]:
        return [result for fragment in self.fragments for result in fragment.cases]

    def counts(self) -> dict:
        counts = _count(self.case_results())
        counts["errors"] = sum(1 for fragment in self.fragments if fragment.error is not None)
        return counts

    def exit_code(self) -> int:
        return 0 if self.passed else 1


def _count(results: Sequence[CaseResult]) -> dict:
    return {
        "total": len(results),
        "passed": sum(1 for result in results if result.passed),
        "failed": sum(1 for result in results if result.failed),
        "skipped": sum(1 for result in results if result.skipped),
    }
