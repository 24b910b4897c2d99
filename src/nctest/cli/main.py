"""CLI entry point for nctest."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from nctest import __version__, bootstrap
from nctest.config import RunOptions, build_config, load_config
from nctest.config.models import COMPILE_MODES, DEFAULT_JOBS, DEFAULT_TEST_HEADER, DEFAULT_TIMEOUT_S
from nctest.core.errors import NctestError
from nctest.core.runner import NoCompileRunner, run_harness
from nctest.reporting import ReportManager, TerminalReporter
from nctest.synth import write_artifact


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


class CliState:
    """Holds global CLI state."""

    def __init__(self, verbose: bool) -> None:
        self.verbose = verbose


def _print_version(_: click.Context, __: click.Parameter, value: bool) -> None:
    if not value or click.get_current_context().resilient_parsing:
        return
    click.echo(f"nctest {__version__}")
    raise click.exceptions.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("--verbose", is_flag=True, help="Enable verbose logging output.")
@click.option(
    "--version",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show the nctest version and exit.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Verify that annotated source fragments fail to compile as expected."""

    _configure_logging(verbose)
    try:
        bootstrap()
    except NctestError as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.obj = CliState(verbose=verbose)


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="YAML harness configuration.",
)
@click.option("--cases", "case_filters", type=str, help="Comma-separated case name filters (supports globs).")
@click.option("--jobs", "-j", type=click.IntRange(min=1), help="Parallel compiler processes (overrides config).")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="Per-compile timeout in seconds.")
@click.option("--list", "list_only", is_flag=True, help="List matched cases without compiling.")
@click.option("--no-artifacts", is_flag=True, help="Do not write generated test sources.")
@click.option(
    "--report",
    "report_format",
    type=click.Choice(["terminal", "json"]),
    default="terminal",
    show_default=True,
    help="Report format (terminal by default).",
)
@click.option("--report-path", type=str, help="When --report json, write to this path.")
@click.option("--no-color", is_flag=True, help="Disable ANSI colors in terminal output.")
@click.pass_obj
def run(
    state: CliState,
    config_path: str,
    case_filters: Optional[str],
    jobs: Optional[int],
    timeout: Optional[float],
    list_only: bool,
    no_artifacts: bool,
    report_format: str,
    report_path: Optional[str],
    no_color: bool,
) -> None:
    """Verify every fragment listed in a configuration file."""

    options = RunOptions(
        cases=_split_csv(case_filters),
        jobs=jobs,
        timeout=timeout,
        list_only=list_only,
        write_artifacts=False if no_artifacts else None,
    )
    try:
        config = load_config(config_path)
        exit_code = run_harness(
            config,
            options,
            report_format=report_format,
            report_path=report_path,
            use_color=not no_color,
        )
    except NctestError as exc:
        raise click.ClickException(str(exc)) from exc
    raise click.exceptions.Exit(exit_code)


@cli.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.argument("cflags", nargs=-1, type=click.UNPROCESSED)
@click.option("--compiler", "binary", required=True, help="Compiler binary (name on PATH or path).")
@click.option("--output-dir", required=True, type=click.Path(file_okay=False), help="Directory for depfiles and placeholders.")
@click.option("--artifact", "artifact_path", type=click.Path(dir_okay=False), help="Generated test source to write.")
@click.option("--header", default=DEFAULT_TEST_HEADER, show_default=True, help="Header included by a passing artifact.")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=DEFAULT_JOBS, show_default=True)
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=DEFAULT_TIMEOUT_S, show_default=True)
@click.option("--std", type=str, help="Language standard, passed as -std=<value>.")
@click.option("-I", "include_dirs", multiple=True, help="Include directory (repeatable).")
@click.option("--werror/--no-werror", default=True, show_default=True)
@click.option("--mode", type=click.Choice(COMPILE_MODES), default="syntax-only", show_default=True)
@click.option("--depfile/--no-depfile", default=True, show_default=True)
@click.option("--no-color", is_flag=True, help="Disable ANSI colors in terminal output.")
@click.pass_obj
def check(
    state: CliState,
    source: str,
    cflags: Tuple[str, ...],
    binary: str,
    output_dir: str,
    artifact_path: Optional[str],
    header: str,
    jobs: int,
    timeout: float,
    std: Optional[str],
    include_dirs: Tuple[str, ...],
    werror: bool,
    mode: str,
    depfile: bool,
    no_color: bool,
) -> None:
    """Verify a single fragment; for build-system rules.

    Extra compiler flags go after ``--``.
    """

    try:
        config = build_config(
            binary=binary,
            sources=[source],
            output_dir=output_dir,
            flags=cflags,
            std=std,
            include_dirs=include_dirs,
            werror=werror,
            mode=mode,
            depfile=depfile,
            timeout=timeout,
            jobs=jobs,
            header=header,
        )
        runner = NoCompileRunner(config, RunOptions(write_artifacts=False))
        manager = ReportManager([TerminalReporter(use_color=not no_color)])
        manager.start(1, runner.jobs)
        result = runner.run(on_fragment=manager.handle_result)
        manager.complete(result)
        if artifact_path:
            for item in result.fragments:
                write_artifact(item, config.output_dir, header=header, target=Path(artifact_path))
    except NctestError as exc:
        raise click.ClickException(str(exc)) from exc
    raise click.exceptions.Exit(result.exit_code())


def main(argv: Optional[list[str]] = None) -> int:
    """Program entry point for console_scripts shim."""

    argv = argv if argv is not None else sys.argv[1:]
    try:
        cli.main(args=argv, prog_name="nctest", standalone_mode=True)
    except click.ClickException as err:  # pragma: no cover - click handles display
        err.show()
        return err.exit_code
    except SystemExit as exc:  # click may raise exit code
        return int(exc.code or 0)
    return 0


def _split_csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return tuple()
    parts = [part.strip() for part in value.split(",") if part.strip()]
    return tuple(parts)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
