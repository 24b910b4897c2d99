"""Artifacts consumed by the enclosing build and test runner."""
from .artifact import render_artifact, suite_name, write_artifact

__all__ = [
    "render_artifact",
    "suite_name",
    "write_artifact",
]
