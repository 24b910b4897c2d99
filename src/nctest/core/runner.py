"""Runner orchestrating parsing, compilation, matching and artifact synthesis."""
from __future__ import annotations

import dataclasses
import fnmatch
import logging
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import click
from colorama import init as colorama_init

from nctest.annotations import parse_fragment
from nctest.compilers import CompileJob, CompilerInvoker, fragment_key, plan_jobs
from nctest.config.models import HarnessConfig, RunOptions
from nctest.reporting import JsonReporter, ReportManager, TerminalReporter
from nctest.synth import write_artifact

from .errors import ConfigError, StructuralParseError
from .matcher import explain, match_guarded, match_inline
from .models import CompileOutput, Fragment, TestCase
from .results import STATUS_SKIPPED, CaseResult, FragmentResult, RunResult

logger = logging.getLogger(__name__)


class NoCompileRunner:
    """Verifies a set of fragments against a configured compiler."""

    def __init__(
        self,
        config: HarnessConfig,
        options: Optional[RunOptions] = None,
        *,
        invoker: Optional[CompilerInvoker] = None,
    ) -> None:
        options = options or RunOptions()
        compiler = config.compiler
        if options.timeout is not None:
            compiler = dataclasses.replace(compiler, timeout=options.timeout)
        self._config = config
        self._options = options
        self._jobs = options.jobs or config.jobs
        self._invoker = invoker or CompilerInvoker(compiler)

    @property
    def jobs(self) -> int:
        return self._jobs

    def load(self, paths: Optional[Sequence[Path]] = None) -> List[FragmentResult]:
        """Parse fragments; structural errors become fragment-level results."""

        paths = tuple(paths) if paths is not None else tuple(self._config.fragments)
        loaded: List[FragmentResult] = []
        keys: Dict[str, Path] = {}
        for path in paths:
            key = fragment_key(path, self._config.base_dir)
            if key in keys and keys[key] != Path(path):
                raise ConfigError(f"Fragments {keys[key]} and {path} map to the same output key '{key}'")
            keys[key] = Path(path)
            try:
                fragment = parse_fragment(Path(path))
            except StructuralParseError as exc:
                logger.debug("structural error in %s: %s", path, exc)
                loaded.append(FragmentResult(path=Path(path), key=key, error=str(exc)))
                continue
            loaded.append(FragmentResult(path=Path(path), key=key, fragment=fragment))
        return loaded

    def selected(self, case: TestCase) -> bool:
        patterns = self._options.cases
        if not patterns:
            return True
        return any(fnmatch.fnmatchcase(case.name, pattern) for pattern in patterns)

    def run(
        self,
        paths: Optional[Sequence[Path]] = None,
        *,
        on_fragment: Optional[Callable[[FragmentResult, int, int], None]] = None,
    ) -> RunResult:
        start = time.perf_counter()
        fragments = self.load(paths)
        jobs: List[CompileJob] = []
        for item in fragments:
            if item.fragment is not None:
                jobs.extend(self._jobs_for(item))
        outputs = self._compile_all(jobs) if jobs else {}
        total = len(fragments)
        for index, item in enumerate(fragments, start=1):
            if item.fragment is not None:
                item.cases = self._collect(item, outputs)
            if on_fragment:
                on_fragment(item, index, total)
        if self._write_artifacts():
            for item in fragments:
                write_artifact(
                    item,
                    self._config.output_dir,
                    header=self._config.artifact.header,
                    suite=self._config.artifact.suite,
                )
        return RunResult(fragments=fragments, duration_s=time.perf_counter() - start)

    def _write_artifacts(self) -> bool:
        if self._options.write_artifacts is not None:
            return self._options.write_artifacts
        return self._config.artifact.enabled

    def _jobs_for(self, item: FragmentResult) -> Tuple[CompileJob, ...]:
        fragment = item.fragment
        assert fragment is not None
        if not any(self.selected(case) for case in fragment.enabled_cases()):
            return tuple()
        planned = plan_jobs(fragment, item.key, self._config.output_dir)
        return tuple(job for job in planned if job.case is None or self.selected(job.case))

    def _compile_all(self, jobs: Sequence[CompileJob]) -> Dict[Tuple[str, Optional[str]], CompileOutput]:
        self._invoker.check_available()
        logger.debug("running %d compile job(s) with %d worker(s)", len(jobs), self._jobs)
        outputs: Dict[Tuple[str, Optional[str]], CompileOutput] = {}
        executor = ThreadPoolExecutor(max_workers=self._jobs)
        futures: Dict[Future, CompileJob] = {executor.submit(self._invoker.compile, job): job for job in jobs}
        try:
            # Returns early on the first failure, whose result() re-raises it.
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            for future in done:
                outputs[_job_key(futures[future])] = future.result()
        except BaseException as exc:
            logger.warning("aborting run, terminating compilers: %s", exc or type(exc).__name__)
            self._invoker.terminate_all()
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return outputs

    def _collect(
        self, item: FragmentResult, outputs: Dict[Tuple[str, Optional[str]], CompileOutput]
    ) -> List[CaseResult]:
        fragment = item.fragment
        assert fragment is not None
        results: List[CaseResult] = []
        inline_matches = {}
        whole = outputs.get((item.key, None))
        if whole is not None:
            workdir = self._invoker.config.workdir
            inline_matches = {m.case.name: m for m in match_inline(fragment, whole, workdir=workdir)}
        for case in fragment.cases:
            if not self.selected(case):
                continue
            if not case.enabled:
                results.append(CaseResult(case=case, status=STATUS_SKIPPED, reason="disabled"))
                continue
            if case.name in inline_matches:
                match, output = inline_matches[case.name], whole
            else:
                output = outputs.get((item.key, case.name))
                if output is None:
                    continue
                match = match_guarded(case, output)
            results.append(
                CaseResult(
                    case=case,
                    status=match.status,
                    duration_s=output.duration_s,
                    match=match,
                    compile_output=output,
                    reason=explain(match, output),
                )
            )
        return results


def list_cases(fragments: Sequence[FragmentResult]) -> List[Tuple[Fragment, TestCase]]:
    """Flatten parsed fragments into (fragment, case) pairs in source order."""

    pairs: List[Tuple[Fragment, TestCase]] = []
    for item in fragments:
        if item.fragment is None:
            continue
        pairs.extend((item.fragment, case) for case in item.fragment.cases)
    return pairs


def _job_key(job: CompileJob) -> Tuple[str, Optional[str]]:
    return (job.key, job.case.name if job.case is not None else None)


def run_harness(
    config: HarnessConfig,
    options: Optional[RunOptions] = None,
    *,
    report_format: str = "terminal",
    report_path: Optional[str] = None,
    use_color: bool = True,
) -> int:
    """Run every configured fragment and report; returns the process exit code."""

    colorama_init()
    options = options or RunOptions()
    runner = NoCompileRunner(config, options)
    if options.list_only:
        loaded = runner.load()
        for fragment, case in list_cases(loaded):
            if runner.selected(case):
                marker = "" if case.enabled else " (disabled)"
                click.echo(f"{fragment.path}:{case.span.start_line}: {case.name}{marker}")
        for item in loaded:
            if item.error is not None:
                click.echo(f"error: {item.error}")
        return 0 if all(item.error is None for item in loaded) else 1
    if report_format == "json":
        reporter = JsonReporter(path=report_path)
    else:
        reporter = TerminalReporter(use_color=use_color)
    manager = ReportManager([reporter])
    manager.start(len(config.fragments), runner.jobs)
    result = runner.run(on_fragment=manager.handle_result)
    manager.complete(result)
    if options.cases and not result.case_results():
        click.echo("No cases matched the provided filters.")
        return 1
    return result.exit_code()
