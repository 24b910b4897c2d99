from __future__ import annotations

import sys
import textwrap
from pathlib import Path
from typing import Callable, Dict

import pytest
import yaml

from nctest import bootstrap
from nctest.config import HarnessConfig, parse_config

pytest_plugins = ["pytester"]

# Stand-in compiler. Lines of the source that are active under the -D defines
# can carry directives:
#   @error: message        emit "<source>:<line>:1: error: message"
#   @warning: message      same with warning severity
#   @error[7]: message     emit on line 7 instead of the current line
#   @sleep: 30             hang for 30 seconds
#   @crash                 report an internal compiler error
FAKE_COMPILER = textwrap.dedent(
    r'''
    import re
    import sys
    import time

    args = sys.argv[1:]
    source = args[-1]
    defines = set()
    depfile = None
    index = 0
    while index < len(args) - 1:
        arg = args[index]
        if arg.startswith("-D"):
            defines.add(arg[2:].split("=", 1)[0])
        elif arg == "-MF":
            depfile = args[index + 1]
            index += 1
        index += 1

    guard_re = re.compile(r"#\s*(?:el)?if\s+defined\s*\(\s*(\w+)\s*\)")
    directive_re = re.compile(r"@(error|warning|note)(?:\[(\d+)\])?:\s*(.*?)\s*(?=\s@|\s//|$)")
    with open(source, encoding="utf-8") as handle:
        lines = handle.read().splitlines()

    active = True
    failed = False
    for number, line in enumerate(lines, start=1):
        stripped = line.strip()
        guard = guard_re.match(stripped)
        if guard:
            active = guard.group(1) in defines
            continue
        if stripped.startswith("#else"):
            active = False
            continue
        if stripped.startswith("#endif"):
            active = True
            continue
        if not active:
            continue
        if "@crash" in line:
            sys.stderr.write("internal compiler error: Segmentation fault\n")
            sys.exit(4)
        sleep = re.search(r"@sleep:\s*([\d.]+)", line)
        if sleep:
            time.sleep(float(sleep.group(1)))
        for severity, at_line, message in directive_re.findall(line):
            where = at_line or number
            sys.stderr.write("%s: In function 'void F()':\n" % source)
            sys.stderr.write("%s:%s:1: %s: %s\n" % (source, where, severity, message))
            sys.stderr.write("    %s\n    ^\n" % stripped)
            failed = failed or severity == "error"

    if depfile:
        with open(depfile, "w", encoding="utf-8") as handle:
            handle.write("placeholder.o: %s\n" % source)
    sys.exit(1 if failed else 0)
    '''
)


@pytest.fixture(scope="session", autouse=True)
def setup_nctest() -> None:
    """Load plugins once for the entire test session."""

    bootstrap()


@pytest.fixture
def fake_cc(tmp_path: Path) -> Path:
    script = tmp_path / "fake_cc.py"
    script.write_text(FAKE_COMPILER, encoding="utf-8")
    return script


@pytest.fixture
def config_data(tmp_path: Path, fake_cc: Path) -> Callable[..., Dict]:
    """Build a raw configuration mapping for fragments written under tmp_path."""

    def _build(fragments: Dict[str, str], **compiler_overrides) -> Dict:
        for name, text in fragments.items():
            path = tmp_path / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
        compiler = {
            "binary": sys.executable,
            "flags": [str(fake_cc)],
            "std": "c++17",
            "timeout": 20,
        }
        compiler.update(compiler_overrides)
        return {
            "compiler": compiler,
            "output_dir": "out",
            "jobs": 4,
            "fragments": list(fragments),
        }

    return _build


@pytest.fixture
def make_config(tmp_path: Path, config_data) -> Callable[..., HarnessConfig]:
    def _make(fragments: Dict[str, str], **compiler_overrides) -> HarnessConfig:
        return parse_config(config_data(fragments, **compiler_overrides), tmp_path)

    return _make


@pytest.fixture
def write_config(tmp_path: Path, config_data) -> Callable[..., Path]:
    def _write(fragments: Dict[str, str], **compiler_overrides) -> Path:
        path = tmp_path / "nocompile.yaml"
        path.write_text(yaml.safe_dump(config_data(fragments, **compiler_overrides)), encoding="utf-8")
        return path

    return _write
