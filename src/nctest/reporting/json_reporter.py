"""JSON reporter emitting structured verification results."""
from __future__ import annotations

import datetime as dt
import json
import pathlib
from typing import Any, Dict, Optional

import click
from jsonschema import validate

from nctest.core.results import CaseResult, FragmentResult, RunResult

from .base import Reporter
from .schema import JSON_SCHEMA_V1, SCHEMA_VERSION


class JsonReporter(Reporter):
    """Writes results to a JSON file (or stdout) validated against the schema."""

    def __init__(self, path: Optional[str] = None) -> None:
        self._path = pathlib.Path(path) if path else None

    # Everything is serialized in on_complete, once artifact paths are known.
    def on_complete(self, run: RunResult) -> None:
        counts = run.counts()
        payload = {
            "schema_version": SCHEMA_VERSION,
            "generated_at": dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "summary": {
                "fragments": len(run.fragments),
                "total": counts["total"],
                "passed": counts["passed"],
                "failed": counts["failed"],
                "skipped": counts["skipped"],
                "errors": counts["errors"],
                "duration_s": run.duration_s,
            },
            "fragments": [_fragment_to_dict(result) for result in run.fragments],
        }
        validate(instance=payload, schema=JSON_SCHEMA_V1)
        text = json.dumps(payload, indent=2)
        if self._path is None:
            click.echo(text)
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(text, encoding="utf-8")
        except OSError as exc:  # pragma: no cover - filesystem protection
            raise RuntimeError(f"Failed to write JSON report to {self._path}: {exc}") from exc
        click.echo(f"JSON report written to {self._path}", err=True)


def _fragment_to_dict(result: FragmentResult) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "path": result.path.as_posix(),
        "key": result.key,
        "dialect": result.fragment.dialect if result.fragment is not None else None,
        "passed": result.passed,
        "artifact": result.artifact_path.as_posix() if result.artifact_path else None,
        "cases": [_case_to_dict(case_result) for case_result in result.cases],
    }
    if result.error is not None:
        record["error"] = result.error
    return record


def _case_to_dict(result: CaseResult) -> Dict[str, Any]:
    case = result.case
    record: Dict[str, Any] = {
        "name": case.name,
        "status": result.status,
        "duration_ms": result.duration_s * 1000,
        "start_line": case.span.start_line,
        "end_line": case.span.end_line,
        "expected": [
            {
                "text": expectation.text,
                "regex": expectation.is_regex,
                "severity": expectation.severity,
                "line": expectation.line,
            }
            for expectation in case.expectations
        ],
    }
    if result.reason:
        record["reason"] = result.reason
    if result.match is not None and result.match.unexpected:
        record["unexpected"] = [diag.render() for diag in result.match.unexpected]
    if result.compile_output is not None and result.failed:
        record["exit_code"] = result.compile_output.returncode
        record["output"] = result.compile_output.output
    return record
