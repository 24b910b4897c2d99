"""Correlation of compiler diagnostics with expected annotations."""
from __future__ import annotations

import os
from pathlib import Path, PurePath
from typing import List, Optional, Sequence, Tuple

from .models import ActualDiagnostic, CompileOutput, ExpectedDiagnostic, Fragment, TestCase
from .results import (
    STATUS_COMPILER_CRASH,
    STATUS_EXPECTATION_MISMATCH,
    STATUS_PASSED,
    STATUS_TIMEOUT,
    STATUS_UNEXPECTED_DIAGNOSTIC,
    STATUS_UNEXPECTED_SUCCESS,
    MatchResult,
)


def match_inline(
    fragment: Fragment, output: CompileOutput, *, workdir: Optional[Path] = None
) -> List[MatchResult]:
    """Match a whole-fragment compile against line-anchored markers.

    Every error in the output must be explained by some marker; a single stray
    error fails every case of the fragment that would otherwise pass.
    """

    cases = fragment.enabled_cases()
    terminal = _terminal_status(output)
    if terminal:
        return [MatchResult(case=case, status=terminal) for case in cases]
    if output.returncode == 0 and not output.diagnostics:
        return [MatchResult(case=case, status=STATUS_UNEXPECTED_SUCCESS) for case in cases]

    local = [
        diag for diag in output.diagnostics if same_file(diag.file, fragment.path, workdir=workdir)
    ]
    expectations = [exp for case in cases for exp in case.expectations]
    unexpected = tuple(
        diag
        for diag in output.errors()
        if diag not in local or not any(exp.matches(diag) for exp in expectations)
    )
    results: List[MatchResult] = []
    for case in cases:
        matched: List[Tuple[ExpectedDiagnostic, ActualDiagnostic]] = []
        unmatched: List[ExpectedDiagnostic] = []
        for expectation in case.expectations:
            hit = _first_match(expectation, local)
            if hit is None:
                unmatched.append(expectation)
            else:
                matched.append((expectation, hit))
        if unmatched:
            status = STATUS_EXPECTATION_MISMATCH
        elif unexpected:
            status = STATUS_UNEXPECTED_DIAGNOSTIC
        else:
            status = STATUS_PASSED
        results.append(
            MatchResult(
                case=case,
                status=status,
                matched=tuple(matched),
                unmatched=tuple(unmatched),
                unexpected=unexpected,
            )
        )
    return results


def match_guarded(case: TestCase, output: CompileOutput) -> MatchResult:
    """Match one guarded-block compile: every pattern must appear in the output."""

    terminal = _terminal_status(output)
    if terminal:
        return MatchResult(case=case, status=terminal)
    if output.returncode == 0:
        return MatchResult(case=case, status=STATUS_UNEXPECTED_SUCCESS)
    matched: List[Tuple[ExpectedDiagnostic, ActualDiagnostic]] = []
    unmatched: List[ExpectedDiagnostic] = []
    for expectation in case.expectations:
        if not expectation.matches_text(output.output):
            unmatched.append(expectation)
            continue
        hit = next(
            (diag for diag in output.diagnostics if expectation.matches_text(diag.render())), None
        )
        if hit is not None:
            matched.append((expectation, hit))
    return MatchResult(
        case=case,
        status=STATUS_EXPECTATION_MISMATCH if unmatched else STATUS_PASSED,
        matched=tuple(matched),
        unmatched=tuple(unmatched),
        missing_patterns=tuple(exp.text for exp in unmatched),
    )


def explain(match: MatchResult, output: Optional[CompileOutput]) -> str:
    """Human-readable reason for a non-passing match."""

    status = match.status
    if status == STATUS_PASSED:
        return ""
    if status == STATUS_TIMEOUT:
        return "compiler timed out and was killed"
    if status == STATUS_COMPILER_CRASH:
        code = output.returncode if output is not None else None
        return f"compiler crashed (exit code {code})"
    if status == STATUS_UNEXPECTED_SUCCESS:
        return "code compiled without errors but was expected to fail"
    lines: List[str] = []
    for expectation in match.unmatched:
        lines.append(f"expected {expectation.describe()} was not emitted")
    for diag in match.unexpected:
        lines.append(f"unexpected diagnostic: {diag.render()}")
    return "; ".join(lines)


def same_file(reported: str, path: Path, *, workdir: Optional[Path] = None) -> bool:
    """Whether a diagnostic's file name refers to the fragment at ``path``."""

    target = Path(path)
    reported_path = PurePath(reported.replace("\\", "/"))
    if reported_path.is_absolute() or os.path.isabs(reported):
        return os.path.normcase(os.path.normpath(reported)) == os.path.normcase(
            os.path.normpath(str(target.resolve()))
        )
    if workdir is not None:
        candidate = (Path(workdir) / reported_path).resolve()
        if candidate == target.resolve():
            return True
    parts = tuple(part for part in reported_path.parts if part != ".")
    if not parts or ".." in parts:
        return reported_path.name == target.name
    return tuple(target.resolve().parts[-len(parts):]) == parts


def _first_match(
    expectation: ExpectedDiagnostic, diagnostics: Sequence[ActualDiagnostic]
) -> Optional[ActualDiagnostic]:
    for diag in diagnostics:
        if expectation.matches(diag):
            return diag
    return None


def _terminal_status(output: CompileOutput) -> Optional[str]:
    if output.timed_out:
        return STATUS_TIMEOUT
    if output.crashed:
        return STATUS_COMPILER_CRASH
    return None
