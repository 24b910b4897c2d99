"""Generated translation units bridging verification results into a test binary.

A passing fragment becomes one empty ``TEST()`` registration per case so the
enclosing test runner lists every no-compile case as passed. A failing
fragment becomes ``#error`` directives, which break the build with a message
naming the case and the mismatch.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional, Set

from nctest.core.results import FragmentResult
from nctest.version import __version__

logger = logging.getLogger(__name__)

_IDENTIFIER_SPLIT_RE = re.compile(r"[^0-9A-Za-z]+")


def suite_name(key: str, override: Optional[str] = None) -> str:
    """gtest suite for a fragment, named after its key so same-named files differ.

    ``base__bind_unittest.nc`` becomes ``BaseBindUnittestNoCompileTest``.
    """

    if override:
        return override
    suffix = Path(key).suffix
    stem = key[: -len(suffix)] if suffix else key
    words = [word for word in _IDENTIFIER_SPLIT_RE.split(stem) if word]
    name = "".join(word[:1].upper() + word[1:] for word in words) or "Fragment"
    if name[0].isdigit():
        name = f"Nc{name}"
    return f"{name}NoCompileTest"


def render_artifact(result: FragmentResult, *, header: str = "", suite: Optional[str] = None) -> str:
    lines: List[str] = [
        f"// Generated by nctest {__version__} from {result.path.as_posix()}.",
        "// Do not edit.",
        "",
    ]
    if result.passed:
        if header:
            lines.extend([f'#include "{header}"', ""])
        suite_id = suite_name(result.key, suite)
        for case_result in result.cases:
            name = case_result.case.name
            if case_result.skipped:
                name = f"DISABLED_{name}"
            lines.append(f"TEST({suite_id}, {name}) {{}}")
        return "\n".join(lines) + "\n"

    if result.error is not None:
        lines.append(f"#error {_c_string(f'{result.name}: {result.error}')}")
    outputs_seen: Set[int] = set()
    for case_result in result.cases:
        if not case_result.failed:
            continue
        message = f"{result.name}: {case_result.case.name} [{case_result.status}]: {case_result.reason}"
        lines.append(f"#error {_c_string(message)}")
        output = case_result.compile_output
        if output is not None and id(output) not in outputs_seen:
            outputs_seen.add(id(output))
            lines.extend(_comment_block(f"compiler output for {case_result.case.name}:", output.output))
    return "\n".join(lines) + "\n"


def write_artifact(
    result: FragmentResult,
    output_dir: Path,
    *,
    header: str = "",
    suite: Optional[str] = None,
    target: Optional[Path] = None,
) -> Path:
    """Render and fully overwrite ``<output_dir>/<key>.cc`` (or ``target``)."""

    target = Path(target) if target is not None else Path(output_dir) / f"{result.key}.cc"
    text = render_artifact(result, header=header, suite=suite)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
    except OSError as exc:  # pragma: no cover - filesystem protection
        raise RuntimeError(f"Failed to write artifact {target}: {exc}") from exc
    logger.debug("wrote %s", target)
    result.artifact_path = target
    return target


def _comment_block(title: str, text: str) -> List[str]:
    lines = [f"// {title}"]
    for raw in text.splitlines():
        # A trailing backslash would splice the next line into the comment.
        text_line = raw.rstrip().rstrip("\\")
        lines.append(f"//   {text_line}".rstrip())
    return lines


def _c_string(text: str) -> str:
    escaped: List[str] = []
    for ch in " ".join(text.split()):
        if ch in "\\\"":
            escaped.append("\\" + ch)
        elif 32 <= ord(ch) < 127:
            escaped.append(ch)
        else:
            escaped.append("?")
    return '"' + "".join(escaped) + '"'
