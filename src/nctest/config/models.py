"""Data models for harness configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Sequence, Tuple

COMPILE_MODES = ("syntax-only", "compile-only")

DEFAULT_JOBS = 4
DEFAULT_TIMEOUT_S = 120.0
DEFAULT_TEST_HEADER = "testing/gtest/include/gtest/gtest.h"


@dataclass(frozen=True)
class CompilerConfig:
    binary: str
    flags: Sequence[str] = field(default_factory=tuple)
    std: Optional[str] = None
    include_dirs: Sequence[Path] = field(default_factory=tuple)
    defines: Sequence[str] = field(default_factory=tuple)
    werror: bool = True
    mode: str = "syntax-only"
    depfile: bool = True
    timeout: float = DEFAULT_TIMEOUT_S
    env: Mapping[str, str] = field(default_factory=dict)
    workdir: Optional[Path] = None


@dataclass(frozen=True)
class ArtifactConfig:
    enabled: bool = True
    header: str = DEFAULT_TEST_HEADER
    suite: Optional[str] = None


@dataclass(frozen=True)
class HarnessConfig:
    compiler: CompilerConfig
    output_dir: Path
    fragments: Sequence[Path]
    base_dir: Path
    jobs: int = DEFAULT_JOBS
    artifact: ArtifactConfig = field(default_factory=ArtifactConfig)
    suffixes: Tuple[str, ...] = (".nc",)


@dataclass(frozen=True)
class RunOptions:
    cases: Sequence[str] = field(default_factory=tuple)
    jobs: Optional[int] = None
    timeout: Optional[float] = None
    list_only: bool = False
    write_artifacts: Optional[bool] = None
