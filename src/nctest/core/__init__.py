"""Core models and helpers exposed at the package level."""
from .errors import ConfigError, InfrastructureError, NctestError, RunCancelled, StructuralParseError
from .models import ActualDiagnostic, CompileOutput, ExpectedDiagnostic, Fragment, SourceSpan, TestCase

__all__ = [
    "ActualDiagnostic",
    "CompileOutput",
    "ConfigError",
    "ExpectedDiagnostic",
    "Fragment",
    "InfrastructureError",
    "NctestError",
    "RunCancelled",
    "SourceSpan",
    "StructuralParseError",
    "TestCase",
]
