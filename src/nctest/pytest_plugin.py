"""pytest integration: every no-compile case is reported as one pytest item.

Enable with ``pytest -p nctest.pytest_plugin --nctest-config nocompile.yaml``.
Fragments listed in the configuration are collected when pytest walks them;
each fragment is compiled once, on the first of its items to run.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterator, Optional

import pytest

import nctest
from nctest.annotations import parse_fragment
from nctest.config import HarnessConfig, RunOptions, load_config
from nctest.core.errors import ConfigError, StructuralParseError
from nctest.core.results import CaseResult, FragmentResult
from nctest.core.runner import NoCompileRunner

harness_key = pytest.StashKey[Optional[HarnessConfig]]()


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("nctest", "no-compile tests")
    group.addoption(
        "--nctest-config",
        action="store",
        default=None,
        help="nctest YAML configuration; enables collection of its fragments.",
    )
    parser.addini("nctest_config", "nctest YAML configuration file", default="")


def pytest_configure(config: pytest.Config) -> None:
    path = config.getoption("--nctest-config") or config.getini("nctest_config")
    if not path:
        config.stash[harness_key] = None
        return
    try:
        nctest.bootstrap()
    except ConfigError as exc:
        raise pytest.UsageError(str(exc)) from exc
    if not Path(path).is_absolute():
        path = str(Path(config.rootpath) / path)
    try:
        config.stash[harness_key] = load_config(path)
    except ConfigError as exc:
        raise pytest.UsageError(str(exc)) from exc


def pytest_collect_file(file_path: Path, parent: pytest.Collector) -> Optional["FragmentFile"]:
    harness = parent.config.stash.get(harness_key, None)
    if harness is None or file_path.suffix not in harness.suffixes:
        return None
    if file_path.resolve() not in set(harness.fragments):
        return None
    return FragmentFile.from_parent(parent, path=file_path)


class FragmentFile(pytest.File):
    """A source fragment whose cases become :class:`NoCompileItem` children."""

    _result: Optional[FragmentResult] = None

    def collect(self) -> Iterator[pytest.Item]:
        try:
            fragment = parse_fragment(self.path)
        except StructuralParseError as exc:
            yield StructuralErrorItem.from_parent(self, name="annotations", error=str(exc))
            return
        for case in fragment.cases:
            yield NoCompileItem.from_parent(self, name=case.name)

    def verify(self) -> Dict[str, CaseResult]:
        if self._result is None:
            harness = self.config.stash[harness_key]
            assert harness is not None
            runner = NoCompileRunner(harness, RunOptions(write_artifacts=False))
            self._result = runner.run([self.path.resolve()]).fragments[0]
        if self._result.error is not None:
            raise NoCompileFailure(self._result.error)
        return {result.case.name: result for result in self._result.cases}


class NoCompileFailure(Exception):
    """Raised by an item whose case did not fail to compile as annotated."""


class NoCompileItem(pytest.Item):
    def runtest(self) -> None:
        parent = self.parent
        assert isinstance(parent, FragmentFile)
        result = parent.verify()[self.name]
        if result.skipped:
            pytest.skip("disabled no-compile case")
        if not result.passed:
            raise NoCompileFailure(_describe(result))

    def repr_failure(self, excinfo, style=None):
        if isinstance(excinfo.value, NoCompileFailure):
            return str(excinfo.value)
        return super().repr_failure(excinfo, style=style)

    def reportinfo(self):
        return self.path, None, f"no-compile: {self.name}"


class StructuralErrorItem(pytest.Item):
    def __init__(self, *, error: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.error = error

    def runtest(self) -> None:
        raise NoCompileFailure(self.error)

    def repr_failure(self, excinfo, style=None):
        if isinstance(excinfo.value, NoCompileFailure):
            return f"malformed annotations: {excinfo.value}"
        return super().repr_failure(excinfo, style=style)

    def reportinfo(self):
        return self.path, None, "no-compile annotations"


def _describe(result: CaseResult) -> str:
    lines = [f"{result.case.name}: {result.status}"]
    if result.reason:
        lines.append(f"reason: {result.reason}")
    for expectation in result.case.expectations:
        lines.append(f"expected: {expectation.describe()}")
    if result.compile_output is not None:
        lines.append(f"command: {' '.join(result.compile_output.argv)}")
        lines.append("actual output:")
        lines.extend(f"  {line}" for line in result.compile_output.output.splitlines())
    return "\n".join(lines)
