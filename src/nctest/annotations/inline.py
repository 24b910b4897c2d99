"""Inline-marker dialect (``// expected-error {{...}}``)."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Tuple

from nctest.core.errors import StructuralParseError
from nctest.core.models import ExpectedDiagnostic, SourceSpan, TestCase

from .base import AnnotationDialect

MARKER_START_RE = re.compile(r"expected-(error|warning|note|remark)\b")
MARKER_RE = re.compile(
    r"expected-(?P<severity>error|warning|note|remark)(?P<regex>-re)?"
    r"(?:@(?P<offset>[+-]?\d+))?\s*\{\{(?P<text>.*?)\}\}"
)


class InlineMarkerDialect(AnnotationDialect):
    """Markers anchored to the line they annotate (or an ``@offset`` from it).

    Each marker is its own test case named after the line it expects a
    diagnostic on. The whole fragment is compiled once.
    """

    name = "inline"
    priority = 0

    def detect(self, text: str) -> bool:
        return True

    def parse(self, path: Path, text: str) -> Tuple[TestCase, ...]:
        lines = text.splitlines()
        cases: List[TestCase] = []
        per_line: Dict[int, int] = {}
        for lineno, line in enumerate(lines, start=1):
            comment_at = _comment_start(line)
            if comment_at < 0:
                continue
            comment = line[comment_at:]
            for start in MARKER_START_RE.finditer(comment):
                marker = MARKER_RE.match(comment, start.start())
                if marker is None:
                    raise StructuralParseError(
                        path, lineno, f"malformed marker near {comment[start.start():].strip()!r}"
                    )
                target = _target_line(path, lineno, marker.group("offset"), len(lines))
                text_value = marker.group("text").strip()
                if not text_value:
                    raise StructuralParseError(path, lineno, "marker has an empty message")
                is_regex = marker.group("regex") is not None
                if is_regex:
                    _check_regex(path, lineno, text_value)
                per_line[target] = per_line.get(target, 0) + 1
                name = f"line_{target}"
                if per_line[target] > 1:
                    name = f"{name}_{per_line[target]}"
                expectation = ExpectedDiagnostic(
                    case_name=name,
                    text=text_value,
                    is_regex=is_regex,
                    line=target,
                    severity=marker.group("severity"),
                )
                cases.append(
                    TestCase(name=name, span=SourceSpan(target, target), expectations=(expectation,))
                )
        return tuple(cases)


def _comment_start(line: str) -> int:
    positions = [pos for pos in (line.find("//"), line.find("/*")) if pos >= 0]
    return min(positions) if positions else -1


def _target_line(path: Path, lineno: int, offset: str | None, total: int) -> int:
    if offset is None:
        return lineno
    if offset[0] in "+-":
        target = lineno + int(offset)
    else:
        target = int(offset)
    if target < 1 or target > total:
        raise StructuralParseError(path, lineno, f"marker offset @{offset} points outside the fragment")
    return target


def _check_regex(path: Path, lineno: int, pattern: str) -> None:
    try:
        re.compile(pattern)
    except re.error as exc:
        raise StructuralParseError(path, lineno, f"invalid regular expression {pattern!r}: {exc}") from exc
