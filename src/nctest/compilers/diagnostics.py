"""Parsing of raw compiler output into structured diagnostics."""
from __future__ import annotations

import re
from typing import List, Tuple

from nctest.core.models import ActualDiagnostic

# clang/gcc: "path/to/file.cc:12:5: error: message"
GNU_DIAGNOSTIC_RE = re.compile(
    r"^(?P<file>(?:[A-Za-z]:)?[^:\n]+?):(?P<line>\d+):(?:(?P<column>\d+):)?\s*"
    r"(?P<severity>fatal error|error|warning|note|remark):\s*(?P<message>.*)$"
)
# cl.exe / clang-cl: "path\to\file.cc(12,5): error C2338: message"
MSVC_DIAGNOSTIC_RE = re.compile(
    r"^(?P<file>.+?)\((?P<line>\d+)(?:,(?P<column>\d+))?\)\s*:\s*"
    r"(?P<severity>fatal error|error|warning|note)(?:\s+[A-Z]+\d+)?\s*:\s*(?P<message>.*)$"
)

CRASH_MARKERS: Tuple[str, ...] = (
    "internal compiler error",
    "PLEASE submit a bug report",
    "clang frontend command failed due to signal",
    "fatal error C1001",
)


def parse_diagnostics(output: str) -> Tuple[ActualDiagnostic, ...]:
    """Extract every recognised diagnostic line from ``output``, in order."""

    diagnostics: List[ActualDiagnostic] = []
    for raw_line in output.splitlines():
        line = raw_line.rstrip()
        match = GNU_DIAGNOSTIC_RE.match(line) or MSVC_DIAGNOSTIC_RE.match(line)
        if not match:
            continue
        column = match.group("column")
        diagnostics.append(
            ActualDiagnostic(
                file=match.group("file").strip(),
                line=int(match.group("line")),
                column=int(column) if column else None,
                severity=_normalize_severity(match.group("severity")),
                message=match.group("message").strip(),
            )
        )
    return tuple(diagnostics)


def looks_like_crash(returncode: int | None, output: str) -> bool:
    """True when the compiler died rather than reporting diagnostics."""

    if returncode is not None and returncode < 0:
        return True
    return any(marker in output for marker in CRASH_MARKERS)


def _normalize_severity(value: str) -> str:
    if value == "fatal error":
        return "error"
    return value
