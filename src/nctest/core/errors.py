"""Exception hierarchy for nctest."""
from __future__ import annotations

from pathlib import Path
from typing import Optional


class NctestError(Exception):
    """Base class for all nctest failures that abort some unit of work."""


class ConfigError(NctestError, ValueError):
    """Configuration file or command-line settings are invalid."""


class StructuralParseError(NctestError):
    """A fragment's annotations cannot be parsed.

    Fatal to the fragment it was raised for; sibling fragments keep running.
    """

    def __init__(self, path: Path, line: Optional[int], reason: str) -> None:
        self.path = Path(path)
        self.line = line
        self.reason = reason
        location = f"{self.path}:{line}" if line is not None else str(self.path)
        super().__init__(f"{location}: {reason}")


class InfrastructureError(NctestError, RuntimeError):
    """The compiler could not be launched at all. Aborts the whole run."""


class RunCancelled(NctestError):
    """The run was interrupted; partial results are discarded."""
