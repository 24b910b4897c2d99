"""Annotation dialect abstractions and the registry used to pick one per fragment."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from nctest.core.errors import StructuralParseError
from nctest.core.models import Fragment, TestCase

logger = logging.getLogger(__name__)


class AnnotationDialect:
    """Strategy that extracts test cases and expectations from fragment text.

    ``detect`` must be cheap: it is a syntactic check run against every fragment
    to decide which dialect owns it. Dialects with a higher ``priority`` are
    consulted first.
    """

    name: str = ""
    priority: int = 0

    def detect(self, text: str) -> bool:
        raise NotImplementedError

    def parse(self, path: Path, text: str) -> Tuple[TestCase, ...]:
        raise NotImplementedError


class DialectRegistry:
    """Registry for annotation dialects keyed by name."""

    def __init__(self) -> None:
        self._dialects: Dict[str, AnnotationDialect] = {}

    def register(self, dialect: AnnotationDialect) -> None:
        if dialect.name in self._dialects:
            raise ValueError(f"Annotation dialect '{dialect.name}' already registered")
        self._dialects[dialect.name] = dialect

    def get(self, name: str) -> AnnotationDialect:
        try:
            return self._dialects[name]
        except KeyError:
            raise KeyError(f"No annotation dialect registered with name {name!r}") from None

    def select(self, text: str) -> AnnotationDialect:
        for dialect in self.dialects():
            if dialect.detect(text):
                return dialect
        raise LookupError("No annotation dialect accepted the fragment")

    def dialects(self) -> Iterable[AnnotationDialect]:
        return tuple(sorted(self._dialects.values(), key=lambda d: -d.priority))


dialect_registry = DialectRegistry()


def parse_fragment(
    path: Path,
    text: Optional[str] = None,
    *,
    registry: Optional[DialectRegistry] = None,
) -> Fragment:
    """Read ``path`` (unless ``text`` is given) and parse its annotations."""

    path = Path(path)
    if text is None:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StructuralParseError(path, None, f"cannot read fragment: {exc}") from exc
    dialect = (registry or dialect_registry).select(text)
    cases = dialect.parse(path, text)
    _check_unique_names(path, cases)
    logger.debug("parsed %s with %s dialect: %d case(s)", path, dialect.name, len(cases))
    return Fragment(path=path, text=text, dialect=dialect.name, cases=cases)


def _check_unique_names(path: Path, cases: Tuple[TestCase, ...]) -> None:
    seen: Dict[str, int] = {}
    for case in cases:
        if case.name in seen:
            raise StructuralParseError(
                path,
                case.span.start_line,
                f"duplicate test case '{case.name}' (first defined at line {seen[case.name]})",
            )
        seen[case.name] = case.span.start_line
