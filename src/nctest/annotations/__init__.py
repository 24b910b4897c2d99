"""Annotation dialects and fragment parsing."""
from .base import AnnotationDialect, DialectRegistry, dialect_registry, parse_fragment
from .guarded import GuardedBlockDialect
from .inline import InlineMarkerDialect


def register_builtin_dialects() -> None:
    """Register the two built-in dialects once."""

    names = {dialect.name for dialect in dialect_registry.dialects()}
    for dialect in (GuardedBlockDialect(), InlineMarkerDialect()):
        if dialect.name not in names:
            dialect_registry.register(dialect)


register_builtin_dialects()

__all__ = [
    "AnnotationDialect",
    "DialectRegistry",
    "GuardedBlockDialect",
    "InlineMarkerDialect",
    "dialect_registry",
    "parse_fragment",
    "register_builtin_dialects",
]
