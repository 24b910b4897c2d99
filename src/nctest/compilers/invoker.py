"""Compiler subprocess management."""
from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from nctest.config.models import CompilerConfig
from nctest.core.errors import InfrastructureError, RunCancelled
from nctest.core.models import CompileOutput, Fragment, TestCase

from .diagnostics import looks_like_crash, parse_diagnostics

logger = logging.getLogger(__name__)

# Deterministic, ASCII-quoted diagnostics from gcc.
DEFAULT_ENV = {"LC_ALL": "C"}

# Compiler drivers fork the real front end (cc1plus, clang -cc1); each
# compile gets its own process group so the whole tree can be killed.
if os.name == "nt":
    _SESSION_KWARGS: Dict[str, Any] = {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
else:
    _SESSION_KWARGS = {"start_new_session": True}


@dataclass(frozen=True)
class CompileJob:
    """One compiler invocation: a whole fragment, or one guarded case of it."""

    fragment: Fragment
    key: str
    output_dir: Path
    case: Optional[TestCase] = None

    @property
    def stem(self) -> str:
        return self.case.name if self.case is not None else "fragment"

    @property
    def depfile(self) -> Path:
        return self.output_dir / self.key / f"{self.stem}.d"

    @property
    def placeholder(self) -> Path:
        return self.output_dir / self.key / f"{self.stem}.o"

    def label(self) -> str:
        if self.case is not None:
            return f"{self.fragment.name}:{self.case.name}"
        return self.fragment.name


class CompilerInvoker:
    """Runs the configured compiler against fragments and captures diagnostics.

    Safe to share between worker threads: the only mutable state is the set
    of live subprocesses, kept so an interrupted run can terminate them.
    """

    def __init__(self, config: CompilerConfig) -> None:
        self._config = config
        self._live: Set[subprocess.Popen] = set()
        self._lock = threading.Lock()
        self._cancelled = threading.Event()

    @property
    def config(self) -> CompilerConfig:
        return self._config

    def check_available(self) -> str:
        """Resolve the compiler binary or raise :class:`InfrastructureError`."""

        resolved = shutil.which(self._config.binary)
        if resolved is None:
            raise InfrastructureError(
                f"compiler '{self._config.binary}' not found or not executable"
            )
        return resolved

    def build_argv(self, job: CompileJob) -> List[str]:
        config = self._config
        argv: List[str] = [config.binary]
        argv.extend(str(flag) for flag in config.flags)
        if config.std:
            argv.append(f"-std={config.std}")
        argv.extend(f"-I{path}" for path in config.include_dirs)
        argv.extend(f"-D{define}" for define in config.defines)
        if job.case is not None and job.case.guard:
            argv.append(f"-D{job.case.guard}")
        if config.werror:
            argv.append("-Werror")
        if config.mode == "syntax-only":
            argv.append("-fsyntax-only")
        else:
            argv.extend(["-c", "-o", str(job.placeholder)])
        if config.depfile:
            argv.extend(["-MD", "-MF", str(job.depfile)])
        argv.append(str(job.fragment.path))
        return argv

    def compile(self, job: CompileJob) -> CompileOutput:
        if self._cancelled.is_set():
            raise RunCancelled(f"run cancelled before compiling {job.label()}")
        argv = self.build_argv(job)
        job.depfile.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("compiling %s: %s", job.label(), " ".join(argv))
        start = time.perf_counter()
        try:
            process = subprocess.Popen(
                argv,
                cwd=str(self._config.workdir) if self._config.workdir else None,
                env=self._environment(),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                **_SESSION_KWARGS,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise InfrastructureError(f"cannot launch compiler '{argv[0]}': {exc}") from exc
        except OSError as exc:
            raise InfrastructureError(f"compiler launch failed for {job.label()}: {exc}") from exc
        self._track(process)
        timed_out = False
        try:
            try:
                output, _ = process.communicate(timeout=self._config.timeout)
            except subprocess.TimeoutExpired:
                timed_out = True
                logger.warning(
                    "%s exceeded %ss, killing compiler", job.label(), self._config.timeout
                )
                kill_process_tree(process)
                output, _ = process.communicate()
        finally:
            self._untrack(process)
        duration = time.perf_counter() - start
        if self._cancelled.is_set():
            raise RunCancelled(f"run cancelled while compiling {job.label()}")
        output = output or ""
        returncode = None if timed_out else process.returncode
        return CompileOutput(
            argv=tuple(argv),
            returncode=returncode,
            output=output,
            duration_s=duration,
            diagnostics=parse_diagnostics(output),
            timed_out=timed_out,
            crashed=not timed_out and looks_like_crash(returncode, output),
        )

    def terminate_all(self) -> None:
        """Stop accepting work and kill every compiler still running."""

        self._cancelled.set()
        with self._lock:
            live = list(self._live)
        for process in live:
            logger.debug("terminating compiler pid %s", process.pid)
            kill_process_tree(process)

    def _environment(self) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(DEFAULT_ENV)
        env.update({str(k): str(v) for k, v in self._config.env.items()})
        return env

    def _track(self, process: subprocess.Popen) -> None:
        with self._lock:
            self._live.add(process)

    def _untrack(self, process: subprocess.Popen) -> None:
        with self._lock:
            self._live.discard(process)


def kill_process_tree(process: subprocess.Popen) -> None:
    """Kill ``process`` and every process it spawned into its group."""

    if os.name == "nt":
        subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(process.pid)],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
        if process.poll() is None:
            process.kill()
        return
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        # The whole group has already exited.
        logger.debug("compiler process group %s already gone", process.pid)


def plan_jobs(fragment: Fragment, key: str, output_dir: Path) -> Tuple[CompileJob, ...]:
    """Compile jobs for ``fragment``: one per enabled guard, or one overall."""

    if not fragment.enabled_cases():
        return tuple()
    if any(case.guard for case in fragment.cases):
        return tuple(
            CompileJob(fragment=fragment, key=key, output_dir=output_dir, case=case)
            for case in fragment.enabled_cases()
        )
    return (CompileJob(fragment=fragment, key=key, output_dir=output_dir),)


def fragment_key(path: Path, base_dir: Optional[Path] = None) -> str:
    """Filesystem-safe identifier for ``path``, unique per distinct path."""

    path = Path(path)
    if base_dir is not None:
        try:
            path = path.resolve().relative_to(Path(base_dir).resolve())
        except ValueError:
            path = path.resolve()
    parts: Sequence[str] = [part for part in path.parts if part not in ("/", "\\") and not part.endswith(":\\")]
    text = "__".join(parts)
    return "".join(ch if ch.isalnum() or ch in "._-" else "_" for ch in text)
