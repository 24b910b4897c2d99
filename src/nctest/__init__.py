"""nctest: verify that annotated source fragments fail to compile as declared."""
from __future__ import annotations

import importlib
import logging
import os

from .version import __version__

__all__ = [
    "__version__",
    "bootstrap",
]

logger = logging.getLogger(__name__)

PLUGINS_ENV = "NCTEST_PLUGINS"

_BOOTSTRAPPED = False


def bootstrap() -> None:
    """Register built-in dialects and load ``NCTEST_PLUGINS`` (idempotent)."""

    global _BOOTSTRAPPED
    if _BOOTSTRAPPED:
        return
    from .annotations import register_builtin_dialects

    register_builtin_dialects()
    _load_plugins(os.environ.get(PLUGINS_ENV, ""))
    _BOOTSTRAPPED = True


def _load_plugins(plugins: str) -> None:
    from .core.errors import ConfigError

    for module_name in (item.strip() for item in plugins.split(",")):
        if not module_name:
            continue
        logger.debug("loading plugin module %s", module_name)
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            raise ConfigError(f"{PLUGINS_ENV}: cannot import plugin '{module_name}': {exc}") from exc
        register = getattr(module, "register", None)
        if not callable(register):
            raise ConfigError(f"{PLUGINS_ENV}: plugin '{module_name}' has no register() function")
        register()
