"""Compiler invocation and diagnostic parsing."""
from .diagnostics import looks_like_crash, parse_diagnostics
from .invoker import CompileJob, CompilerInvoker, fragment_key, plan_jobs

__all__ = [
    "CompileJob",
    "CompilerInvoker",
    "fragment_key",
    "looks_like_crash",
    "parse_diagnostics",
    "plan_jobs",
]
