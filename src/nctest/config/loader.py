"""YAML loader and validation for harness configuration files."""
from __future__ import annotations

import glob
import shlex
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from jsonschema import Draft7Validator

from nctest.core.errors import ConfigError

from .models import (
    COMPILE_MODES,
    DEFAULT_JOBS,
    DEFAULT_TEST_HEADER,
    DEFAULT_TIMEOUT_S,
    ArtifactConfig,
    CompilerConfig,
    HarnessConfig,
)

_STR_LIST = {"type": "array", "items": {"type": "string"}}

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "nctest configuration",
    "type": "object",
    "required": ["compiler", "output_dir", "fragments"],
    "additionalProperties": False,
    "properties": {
        "compiler": {
            "type": "object",
            "required": ["binary"],
            "additionalProperties": False,
            "properties": {
                "binary": {"type": "string", "minLength": 1},
                "flags": {"oneOf": [{"type": "string"}, _STR_LIST]},
                "std": {"type": ["string", "null"]},
                "include_dirs": _STR_LIST,
                "defines": _STR_LIST,
                "werror": {"type": "boolean"},
                "mode": {"enum": list(COMPILE_MODES)},
                "depfile": {"type": "boolean"},
                "timeout": {"type": "number", "exclusiveMinimum": 0},
                "env": {"type": "object", "additionalProperties": {"type": ["string", "number", "boolean"]}},
                "workdir": {"type": "string"},
            },
        },
        "output_dir": {"type": "string", "minLength": 1},
        "jobs": {"type": "integer", "minimum": 1},
        "fragments": {"type": "array", "items": {"type": "string", "minLength": 1}, "minItems": 1},
        "suffixes": _STR_LIST,
        "artifact": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "enabled": {"type": "boolean"},
                "header": {"type": "string"},
                "suite": {"type": ["string", "null"]},
            },
        },
    },
}

_validator = Draft7Validator(CONFIG_SCHEMA)


def load_config(path: str) -> HarnessConfig:
    """Load and validate a configuration file."""

    config_path = Path(path).expanduser().resolve()
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read configuration {config_path}: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ConfigError("Configuration file must contain a mapping at the top level")
    return parse_config(raw, config_path.parent)


def parse_config(raw: Mapping[str, Any], base: Path) -> HarnessConfig:
    """Validate an already-decoded configuration mapping."""

    errors = sorted(_validator.iter_errors(raw), key=lambda e: list(e.path))
    if errors:
        messages = "; ".join(f"{'/'.join(map(str, err.path)) or 'root'}: {err.message}" for err in errors)
        raise ConfigError(f"Configuration schema validation failed: {messages}")
    compiler = _parse_compiler(raw["compiler"], base)
    artifact_raw = raw.get("artifact") or {}
    artifact = ArtifactConfig(
        enabled=bool(artifact_raw.get("enabled", True)),
        header=str(artifact_raw.get("header", DEFAULT_TEST_HEADER)),
        suite=artifact_raw.get("suite"),
    )
    suffixes = tuple(raw.get("suffixes") or (".nc",))
    return HarnessConfig(
        compiler=compiler,
        output_dir=_resolve(base, raw["output_dir"]),
        fragments=expand_fragments(raw["fragments"], base),
        base_dir=base,
        jobs=int(raw.get("jobs", DEFAULT_JOBS)),
        artifact=artifact,
        suffixes=suffixes,
    )


def build_config(
    *,
    binary: str,
    sources: Sequence[str],
    output_dir: str,
    flags: Sequence[str] = (),
    std: Optional[str] = None,
    include_dirs: Sequence[str] = (),
    werror: bool = True,
    mode: str = "syntax-only",
    depfile: bool = True,
    timeout: float = DEFAULT_TIMEOUT_S,
    jobs: int = DEFAULT_JOBS,
    header: str = DEFAULT_TEST_HEADER,
    base: Optional[Path] = None,
) -> HarnessConfig:
    """Assemble a configuration from command-line values."""

    base = (base or Path.cwd()).resolve()
    raw: Dict[str, Any] = {
        "compiler": {
            "binary": binary,
            "flags": list(flags),
            "std": std,
            "include_dirs": list(include_dirs),
            "werror": werror,
            "mode": mode,
            "depfile": depfile,
            "timeout": timeout,
        },
        "output_dir": output_dir,
        "jobs": jobs,
        "fragments": list(sources),
        "artifact": {"header": header},
    }
    return parse_config(raw, base)


def expand_fragments(patterns: Sequence[str], base: Path) -> tuple[Path, ...]:
    """Resolve fragment paths and glob patterns relative to ``base``."""

    found: List[Path] = []
    seen = set()
    for pattern in patterns:
        if glob.has_magic(pattern):
            root = Path(pattern) if Path(pattern).is_absolute() else base / pattern
            matches = sorted(Path(p).resolve() for p in glob.glob(str(root), recursive=True))
            if not matches:
                raise ConfigError(f"Fragment pattern '{pattern}' matched no files")
        else:
            path = _resolve(base, pattern)
            if not path.is_file():
                raise ConfigError(f"Fragment '{pattern}' does not exist")
            matches = [path]
        for match in matches:
            if match not in seen:
                seen.add(match)
                found.append(match)
    return tuple(found)


def _parse_compiler(raw: Mapping[str, Any], base: Path) -> CompilerConfig:
    flags_raw = raw.get("flags") or []
    flags = tuple(shlex.split(flags_raw)) if isinstance(flags_raw, str) else tuple(str(f) for f in flags_raw)
    timeout = raw.get("timeout", DEFAULT_TIMEOUT_S)
    workdir = raw.get("workdir")
    return CompilerConfig(
        binary=_resolve_binary(str(raw["binary"]), base),
        flags=flags,
        std=raw.get("std"),
        include_dirs=tuple(_resolve(base, entry) for entry in raw.get("include_dirs") or []),
        defines=tuple(str(d) for d in raw.get("defines") or []),
        werror=bool(raw.get("werror", True)),
        mode=str(raw.get("mode", "syntax-only")),
        depfile=bool(raw.get("depfile", True)),
        timeout=float(timeout),
        env={str(k): str(v) for k, v in (raw.get("env") or {}).items()},
        workdir=_resolve(base, workdir) if workdir else None,
    )


def _resolve_binary(binary: str, base: Path) -> str:
    # Bare names are looked up on PATH; anything with a separator is a path.
    if "/" in binary or "\\" in binary:
        return str(_resolve(base, binary))
    return binary


def _resolve(base: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()
