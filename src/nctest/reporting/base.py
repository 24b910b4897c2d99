"""Reporter lifecycle shared by terminal and JSON output."""
from __future__ import annotations

from typing import Sequence

from nctest.core.results import FragmentResult, RunResult


class Reporter:
    """Receives run events; every hook is optional."""

    def on_start(self, total: int, jobs: int) -> None:
        """Called once before any fragment is compiled."""

    def on_fragment_result(self, result: FragmentResult, index: int, total: int) -> None:
        """Called per fragment, in configuration order, after matching."""

    def on_complete(self, run: RunResult) -> None:
        """Called after artifacts are written."""


class ReportManager:
    """Fans run events out to several reporters."""

    def __init__(self, reporters: Sequence[Reporter]) -> None:
        self._reporters = tuple(reporters)

    def start(self, total: int, jobs: int) -> None:
        for reporter in self._reporters:
            reporter.on_start(total, jobs)

    def handle_result(self, result: FragmentResult, index: int, total: int) -> None:
        for reporter in self._reporters:
            reporter.on_fragment_result(result, index, total)

    def complete(self, run: RunResult) -> None:
        for reporter in self._reporters:
            reporter.on_complete(run)
