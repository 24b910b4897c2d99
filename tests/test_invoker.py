from __future__ import annotations

import sys
import textwrap
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from nctest.annotations import parse_fragment
from nctest.compilers import CompileJob, CompilerInvoker, fragment_key, plan_jobs
from nctest.config import CompilerConfig
from nctest.core.errors import InfrastructureError, RunCancelled


GUARDED = textwrap.dedent(
    """
    #if defined(NCTEST_FIRST)  // [r"first failure"]
    int a;  // @error: first failure
    #elif defined(DISABLED_NCTEST_SECOND)  // [r"second failure"]
    int b;  // @error: second failure
    #elif defined(NCTEST_THIRD)  // [r"third failure"]
    int c;  // @error: third failure
    #endif
    """
).lstrip("\n")


def _fragment(tmp_path: Path, text: str, name: str = "frag.nc"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return parse_fragment(path)


def _config(fake_cc: Path, **overrides) -> CompilerConfig:
    values = dict(binary=sys.executable, flags=(str(fake_cc),), std="c++17", timeout=20.0)
    values.update(overrides)
    return CompilerConfig(**values)


def test_build_argv_orders_flags(tmp_path: Path) -> None:
    fragment = _fragment(tmp_path, GUARDED)
    config = CompilerConfig(
        binary="clang++",
        flags=("-fno-exceptions",),
        std="c++20",
        include_dirs=(Path("/src"),),
        defines=("NDEBUG",),
    )
    invoker = CompilerInvoker(config)
    job = CompileJob(fragment=fragment, key="frag.nc", output_dir=tmp_path / "out", case=fragment.cases[0])
    argv = invoker.build_argv(job)
    assert argv == [
        "clang++",
        "-fno-exceptions",
        "-std=c++20",
        "-I/src",
        "-DNDEBUG",
        "-DNCTEST_FIRST",
        "-Werror",
        "-fsyntax-only",
        "-MD",
        "-MF",
        str(tmp_path / "out" / "frag.nc" / "NCTEST_FIRST.d"),
        str(fragment.path),
    ]


def test_build_argv_compile_only_without_depfile(tmp_path: Path) -> None:
    fragment = _fragment(tmp_path, "int x;  // expected-error {{boom}}\n")
    config = CompilerConfig(binary="g++", werror=False, mode="compile-only", depfile=False)
    job = CompileJob(fragment=fragment, key="k", output_dir=tmp_path)
    argv = CompilerInvoker(config).build_argv(job)
    assert argv == ["g++", "-c", "-o", str(tmp_path / "k" / "fragment.o"), str(fragment.path)]


def test_plan_jobs_per_guard_skips_disabled(tmp_path: Path) -> None:
    fragment = _fragment(tmp_path, GUARDED)
    jobs = plan_jobs(fragment, "frag", tmp_path)
    assert [job.case.name for job in jobs] == ["NCTEST_FIRST", "NCTEST_THIRD"]
    assert jobs[0].label() == "frag.nc:NCTEST_FIRST"


def test_plan_jobs_single_invocation_for_inline(tmp_path: Path) -> None:
    fragment = _fragment(tmp_path, "int x;  // expected-error {{a}}\nint y;  // expected-error {{b}}\n")
    (job,) = plan_jobs(fragment, "frag", tmp_path)
    assert job.case is None
    assert job.label() == "frag.nc"
    assert plan_jobs(_fragment(tmp_path, "int z;\n", "empty.nc"), "empty", tmp_path) == ()


def test_compile_captures_diagnostics_and_depfile(tmp_path: Path, fake_cc: Path) -> None:
    fragment = _fragment(tmp_path, GUARDED)
    invoker = CompilerInvoker(_config(fake_cc))
    job = CompileJob(fragment=fragment, key="frag", output_dir=tmp_path / "out", case=fragment.cases[2])
    output = invoker.compile(job)
    assert output.returncode == 1
    assert not output.timed_out
    assert not output.crashed
    assert [diag.message for diag in output.errors()] == ["third failure"]
    assert output.diagnostics[0].line == 6
    assert "first failure" not in output.output
    assert job.depfile.is_file()
    assert "-DNCTEST_THIRD" in output.argv


def test_compile_clean_source_succeeds(tmp_path: Path, fake_cc: Path) -> None:
    fragment = _fragment(tmp_path, "int x;  // expected-error {{never}}\n")
    output = CompilerInvoker(_config(fake_cc)).compile(CompileJob(fragment, "k", tmp_path / "out"))
    assert output.returncode == 0
    assert output.succeeded
    assert output.diagnostics == ()


def test_compile_detects_crash(tmp_path: Path, fake_cc: Path) -> None:
    fragment = _fragment(tmp_path, "int x;  // @crash expected-error {{x}}\n")
    output = CompilerInvoker(_config(fake_cc)).compile(CompileJob(fragment, "k", tmp_path / "out"))
    assert output.crashed
    assert output.returncode == 4


def test_compile_timeout_kills_compiler(tmp_path: Path, fake_cc: Path) -> None:
    fragment = _fragment(tmp_path, "int x;  // @sleep: 30 expected-error {{x}}\n")
    invoker = CompilerInvoker(_config(fake_cc, timeout=0.5))
    start = time.perf_counter()
    output = invoker.compile(CompileJob(fragment, "k", tmp_path / "out"))
    assert time.perf_counter() - start < 15
    assert output.timed_out
    assert output.returncode is None
    assert not output.crashed


def test_missing_compiler_is_infrastructure_error(tmp_path: Path) -> None:
    fragment = _fragment(tmp_path, "int x;  // expected-error {{x}}\n")
    invoker = CompilerInvoker(CompilerConfig(binary=str(tmp_path / "no-such-compiler")))
    with pytest.raises(InfrastructureError):
        invoker.check_available()
    with pytest.raises(InfrastructureError):
        invoker.compile(CompileJob(fragment, "k", tmp_path / "out"))


def test_cancelled_invoker_refuses_new_work(tmp_path: Path, fake_cc: Path) -> None:
    fragment = _fragment(tmp_path, "int x;  // expected-error {{x}}\n")
    invoker = CompilerInvoker(_config(fake_cc))
    invoker.terminate_all()
    with pytest.raises(RunCancelled):
        invoker.compile(CompileJob(fragment, "k", tmp_path / "out"))


def test_fragment_key_is_relative_and_filesystem_safe(tmp_path: Path) -> None:
    path = tmp_path / "base" / "callback unittest.nc"
    assert fragment_key(path, tmp_path) == "base__callback_unittest.nc"
    assert fragment_key(tmp_path / "a" / "x.nc", tmp_path) != fragment_key(tmp_path / "b" / "x.nc", tmp_path)


SPAWNING_DRIVER = """
import subprocess
import sys

# Like g++ running cc1plus: the real work happens in a grandchild holding the output pipe.
subprocess.call([sys.executable, "-c", "import time; time.sleep(30)"])
"""


def test_timeout_kills_compiler_subprocesses(tmp_path: Path) -> None:
    driver = tmp_path / "driver.py"
    driver.write_text(SPAWNING_DRIVER, encoding="utf-8")
    fragment = _fragment(tmp_path, "int x;  // expected-error {{x}}\n")
    invoker = CompilerInvoker(_config(driver, timeout=1.0))
    start = time.perf_counter()
    output = invoker.compile(CompileJob(fragment, "k", tmp_path / "out"))
    assert time.perf_counter() - start < 10
    assert output.timed_out


def test_terminate_all_kills_running_compiler_tree(tmp_path: Path) -> None:
    driver = tmp_path / "driver.py"
    driver.write_text(SPAWNING_DRIVER, encoding="utf-8")
    fragment = _fragment(tmp_path, "int x;  // expected-error {{x}}\n")
    invoker = CompilerInvoker(_config(driver, timeout=60.0))
    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(invoker.compile, CompileJob(fragment, "k", tmp_path / "out"))
        time.sleep(1.0)
        start = time.perf_counter()
        invoker.terminate_all()
        with pytest.raises(RunCancelled):
            future.result(timeout=10)
        assert time.perf_counter() - start < 10
