"""Terminal reporter rendering per-fragment progress and summaries."""
from __future__ import annotations

from typing import List, Tuple

import click
from colorama import Fore, Style

from nctest.core.results import (
    STATUS_PASSED,
    STATUS_SKIPPED,
    CaseResult,
    FragmentResult,
    RunResult,
)

from .base import Reporter


STATUS_LABELS = {
    "passed": "PASS",
    "expectation-mismatch": "MISMATCH",
    "unexpected-diagnostic": "UNEXPECTED",
    "unexpected-success": "COMPILED",
    "compiler-crash": "CRASH",
    "timeout": "TIMEOUT",
    "skipped": "SKIP",
}


class TerminalReporter(Reporter):
    """Human-readable reporter that streams to stdout."""

    def __init__(self, *, use_color: bool = True, show_output: bool = True) -> None:
        self._use_color = use_color
        self._show_output = show_output
        self._failures: List[Tuple[FragmentResult, CaseResult]] = []

    def on_start(self, total: int, jobs: int) -> None:
        self._failures.clear()
        click.echo(self._styled(f"Starting run: {total} fragment(s) jobs={jobs}", Fore.CYAN))

    def on_fragment_result(self, result: FragmentResult, index: int, total: int) -> None:
        dialect = result.fragment.dialect if result.fragment is not None else "?"
        if result.error is not None:
            click.echo(f"[{index}/{total}] {result.path} -> {self._styled('ERROR', Fore.RED)}")
            click.echo(f"    error: {result.error}")
            return
        click.echo(f"[{index}/{total}] {result.path} ({dialect}, {len(result.cases)} case(s))")
        for case_result in result.cases:
            label, color = _format_status(case_result.status)
            ms = case_result.duration_s * 1000
            click.echo(f"  {self._styled(f'{label:<11}', color)} {case_result.case.name} ({ms:.2f} ms)")
            if case_result.failed:
                self._failures.append((result, case_result))
                if case_result.reason:
                    click.echo(f"      reason: {case_result.reason}")

    def on_complete(self, run: RunResult) -> None:
        counts = run.counts()
        color = Fore.GREEN if run.passed else Fore.RED
        click.echo(
            self._styled(
                f"Summary: fragments={len(run.fragments)} total={counts['total']} "
                f"passed={counts['passed']} failed={counts['failed']} "
                f"skipped={counts['skipped']} errors={counts['errors']} "
                f"duration={run.duration_s:.2f}s",
                color,
            )
        )
        if not self._failures:
            return
        click.echo(self._styled("Failure details:", Fore.RED))
        for fragment, case_result in self._failures:
            click.echo(f"  {fragment.name}:{case_result.case.name} -> {case_result.status}")
            self._print_failure_details(case_result, indent="    ")

    def _print_failure_details(self, result: CaseResult, *, indent: str) -> None:
        for expectation in result.case.expectations:
            click.echo(f"{indent}expected: {expectation.describe()}")
        output = result.compile_output
        if output is None:
            return
        click.echo(f"{indent}command: {' '.join(output.argv)}")
        click.echo(f"{indent}exit code: {output.returncode}")
        if self._show_output:
            click.echo(f"{indent}actual output:")
            text = output.output.rstrip() or "<no output>"
            for line in text.splitlines():
                click.echo(f"{indent}  {line}")

    def _styled(self, text: str, color: str) -> str:
        if not self._use_color or not color:
            return text
        return f"{color}{text}{Style.RESET_ALL}"


def _format_status(status: str) -> Tuple[str, str]:
    label = STATUS_LABELS.get(status, status.upper())
    if status == STATUS_PASSED:
        return label, Fore.GREEN
    if status == STATUS_SKIPPED:
        return label, Fore.YELLOW
    return label, Fore.RED
