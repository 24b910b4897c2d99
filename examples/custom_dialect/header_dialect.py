"""Example annotation dialect loaded through ``NCTEST_PLUGINS=header_dialect``.

Expectations sit in a comment header at the top of the fragment and may match
an error reported on any line::

    // NOCOMPILE: no member named 'size'
    // NOCOMPILE: candidate template ignored
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Tuple

from nctest.annotations import AnnotationDialect, dialect_registry
from nctest.core.errors import StructuralParseError
from nctest.core.models import ExpectedDiagnostic, SourceSpan, TestCase

HEADER_RE = re.compile(r"^\s*//\s*NOCOMPILE:\s*(?P<pattern>.*?)\s*$")


class HeaderDialect(AnnotationDialect):
    name = "header"
    priority = 50

    def detect(self, text: str) -> bool:
        first = next((line for line in text.splitlines() if line.strip()), "")
        return HEADER_RE.match(first) is not None

    def parse(self, path: Path, text: str) -> Tuple[TestCase, ...]:
        cases = []
        for lineno, line in enumerate(text.splitlines(), start=1):
            match = HEADER_RE.match(line)
            if match is None:
                if line.strip():
                    break
                continue
            pattern = match.group("pattern")
            try:
                re.compile(pattern)
            except re.error as exc:
                raise StructuralParseError(path, lineno, f"invalid regular expression {pattern!r}") from exc
            name = f"expect_{len(cases) + 1}"
            expectation = ExpectedDiagnostic(case_name=name, text=pattern, is_regex=True)
            cases.append(TestCase(name=name, span=SourceSpan(lineno, lineno), expectations=(expectation,)))
        return tuple(cases)


def register() -> None:
    dialect_registry.register(HeaderDialect())
