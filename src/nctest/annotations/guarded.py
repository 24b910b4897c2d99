"""Conditional-block dialect.

Each test case lives in its own preprocessor branch::

    #if defined(NCTEST_NEEDS_SEMICOLON)  // [r"expected ',' or ';' at end of input"]

    int a = 1

    #elif defined(DISABLED_NCTEST_SOMETHING_ELSE)  // [r"no matching function"]
    ...
    #endif

The trailing comment is a Python-literal list of regular expressions. Every
one of them must match the compiler output of the invocation that defines the
guard symbol. A ``DISABLED_`` prefix keeps the case in the listing but never
compiles it.
"""
from __future__ import annotations

import ast
import re
from pathlib import Path
from typing import List, Optional, Tuple

from nctest.core.errors import StructuralParseError
from nctest.core.models import ExpectedDiagnostic, SourceSpan, TestCase

from .base import AnnotationDialect

CASE_PREFIX = "NCTEST_"
DISABLED_PREFIX = "DISABLED_"

GUARD_RE = re.compile(
    r"^\s*#\s*(if|elif)\s+defined\s*\(\s*((?:%s)?%s\w+)\s*\)\s*(?://(.*))?$"
    % (DISABLED_PREFIX, CASE_PREFIX)
)
GUARD_LINE_RE = re.compile(
    r"^\s*#\s*(?:el)?if\s+defined\s*\(\s*(?:%s)?%s\w+\s*\)" % (DISABLED_PREFIX, CASE_PREFIX),
    re.MULTILINE,
)
EXPECTATION_RE = re.compile(r"^\s*(\[.*\])\s*$")
OPEN_CONDITIONAL_RE = re.compile(r"^\s*#\s*if(?:n?def)?\b")
ELSE_RE = re.compile(r"^\s*#\s*(?:else|elif)\b")
ENDIF_RE = re.compile(r"^\s*#\s*endif\b")


class GuardedBlockDialect(AnnotationDialect):
    """Cases delimited by ``#if defined(NCTEST_...)`` guards."""

    name = "guarded"
    priority = 100

    def detect(self, text: str) -> bool:
        return GUARD_LINE_RE.search(text) is not None

    def parse(self, path: Path, text: str) -> Tuple[TestCase, ...]:
        cases: List[TestCase] = []
        lines = text.splitlines()
        depth = 0
        in_chain = False
        current: Optional[_OpenCase] = None

        def close(end_line: int) -> None:
            nonlocal current
            if current is not None:
                cases.append(current.finish(end_line))
                current = None

        for lineno, line in enumerate(lines, start=1):
            guard = GUARD_RE.match(line)
            if depth == 0 and guard:
                directive, symbol, comment = guard.groups()
                if directive == "elif" and not in_chain:
                    raise StructuralParseError(
                        path, lineno, f"'#elif defined({symbol})' outside of a test case chain"
                    )
                close(lineno - 1)
                in_chain = True
                current = _OpenCase(
                    symbol=symbol,
                    start_line=lineno,
                    patterns=_parse_expectation(path, lineno, symbol, comment),
                )
                continue
            if OPEN_CONDITIONAL_RE.match(line):
                depth += 1
                continue
            if depth == 0 and in_chain and ELSE_RE.match(line):
                close(lineno - 1)
                continue
            if ENDIF_RE.match(line):
                if depth > 0:
                    depth -= 1
                elif in_chain:
                    close(lineno - 1)
                    in_chain = False
        if current is not None:
            raise StructuralParseError(
                path, current.start_line, f"guard '{current.symbol}' is never closed with #endif"
            )
        return tuple(cases)


class _OpenCase:
    def __init__(self, *, symbol: str, start_line: int, patterns: Tuple[str, ...]) -> None:
        self.symbol = symbol
        self.start_line = start_line
        self.patterns = patterns

    def finish(self, end_line: int) -> TestCase:
        enabled = not self.symbol.startswith(DISABLED_PREFIX)
        name = self.symbol[len(DISABLED_PREFIX):] if not enabled else self.symbol
        expectations = tuple(
            ExpectedDiagnostic(case_name=name, text=pattern, is_regex=True)
            for pattern in self.patterns
        )
        return TestCase(
            name=name,
            span=SourceSpan(self.start_line, max(self.start_line, end_line)),
            expectations=expectations,
            enabled=enabled,
            guard=name,
        )


def _parse_expectation(path: Path, lineno: int, symbol: str, comment: Optional[str]) -> Tuple[str, ...]:
    if comment is None:
        raise StructuralParseError(
            path, lineno, f"guard '{symbol}' has no expectation comment (// [r\"regex\", ...])"
        )
    match = EXPECTATION_RE.match(comment)
    if not match:
        raise StructuralParseError(
            path, lineno, f"expectation for '{symbol}' must be a list literal, got {comment.strip()!r}"
        )
    try:
        raw = ast.literal_eval(match.group(1))
    except (ValueError, SyntaxError) as exc:
        raise StructuralParseError(
            path, lineno, f"unparseable expectation list for '{symbol}': {exc}"
        ) from exc
    if not isinstance(raw, list) or not raw:
        raise StructuralParseError(
            path, lineno, f"expectation for '{symbol}' must list at least one regular expression"
        )
    patterns: List[str] = []
    for item in raw:
        if not isinstance(item, str):
            raise StructuralParseError(
                path, lineno, f"expectation entries for '{symbol}' must be strings, got {item!r}"
            )
        try:
            re.compile(item)
        except re.error as exc:
            raise StructuralParseError(
                path, lineno, f"invalid regular expression {item!r} for '{symbol}': {exc}"
            ) from exc
        patterns.append(item)
    return tuple(patterns)
