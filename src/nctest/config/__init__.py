"""Harness configuration loading."""

from .loader import CONFIG_SCHEMA, build_config, expand_fragments, load_config, parse_config
from .models import ArtifactConfig, CompilerConfig, HarnessConfig, RunOptions

__all__ = [
    "ArtifactConfig",
    "CONFIG_SCHEMA",
    "CompilerConfig",
    "HarnessConfig",
    "RunOptions",
    "build_config",
    "expand_fragments",
    "load_config",
    "parse_config",
]
