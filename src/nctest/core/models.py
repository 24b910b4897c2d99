"""Core dataclasses shared across nctest subsystems."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple


Severity = str  # Alias for readability ("error", "warning", "note" or "remark").

SEVERITIES: Tuple[Severity, ...] = ("error", "warning", "note", "remark")


@dataclass(frozen=True)
class SourceSpan:
    """Inclusive 1-based line range inside a fragment."""

    start_line: int
    end_line: int

    def contains(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line


@dataclass(frozen=True)
class ExpectedDiagnostic:
    """One compiler message a test case expects to see."""

    case_name: str
    text: str
    is_regex: bool = False
    line: Optional[int] = None
    severity: Severity = "error"

    def matches_text(self, message: str) -> bool:
        if self.is_regex:
            return re.search(self.text, message, re.MULTILINE) is not None
        return self.text in message

    def matches(self, diagnostic: "ActualDiagnostic") -> bool:
        if self.line is not None and diagnostic.line != self.line:
            return False
        if diagnostic.severity != self.severity:
            return False
        return self.matches_text(diagnostic.message)

    def describe(self) -> str:
        kind = "regex" if self.is_regex else "text"
        where = f" at line {self.line}" if self.line is not None else ""
        return f"{self.severity} {kind} {self.text!r}{where}"


@dataclass(frozen=True)
class TestCase:
    """A single no-compile assertion found in a fragment."""

    __test__ = False  # not a pytest test class

    name: str
    span: SourceSpan
    expectations: Tuple[ExpectedDiagnostic, ...] = tuple()
    enabled: bool = True
    guard: Optional[str] = None


@dataclass(frozen=True)
class Fragment:
    """A parsed source fragment together with the cases it declares."""

    path: Path
    text: str
    dialect: str
    cases: Tuple[TestCase, ...] = tuple()

    @property
    def name(self) -> str:
        return self.path.name

    def enabled_cases(self) -> Tuple[TestCase, ...]:
        return tuple(case for case in self.cases if case.enabled)

    def disabled_cases(self) -> Tuple[TestCase, ...]:
        return tuple(case for case in self.cases if not case.enabled)


@dataclass(frozen=True)
class ActualDiagnostic:
    """A diagnostic emitted by one compiler invocation."""

    file: str
    line: int
    severity: Severity
    message: str
    column: Optional[int] = None

    def render(self) -> str:
        column = f":{self.column}" if self.column is not None else ""
        return f"{self.file}:{self.line}{column}: {self.severity}: {self.message}"


@dataclass(frozen=True)
class CompileOutput:
    """Everything captured from one compiler subprocess."""

    argv: Tuple[str, ...]
    returncode: Optional[int]
    output: str
    duration_s: float
    diagnostics: Tuple[ActualDiagnostic, ...] = field(default_factory=tuple)
    timed_out: bool = False
    crashed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0 and not self.timed_out and not self.crashed

    def errors(self) -> Tuple[ActualDiagnostic, ...]:
        return tuple(diag for diag in self.diagnostics if diag.severity == "error")
