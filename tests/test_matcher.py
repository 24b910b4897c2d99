from __future__ import annotations

import textwrap
from pathlib import Path

from nctest.annotations import parse_fragment
from nctest.compilers.diagnostics import parse_diagnostics
from nctest.core.matcher import explain, match_guarded, match_inline, same_file
from nctest.core.models import CompileOutput


def _output(text: str, returncode: int = 1, **kwargs) -> CompileOutput:
    return CompileOutput(
        argv=("c++", "-fsyntax-only", "frag.nc"),
        returncode=returncode,
        output=text,
        duration_s=0.01,
        diagnostics=parse_diagnostics(text),
        **kwargs,
    )


INLINE = textwrap.dedent(
    """
    void F() {
      static_assert(1 == 2);  // expected-error {{static assertion failed}}
    }
    void G() {
      int x = "s";  // expected-error-re {{cannot initialize a variable of type '[a-z]+'}}
    }
    """
).lstrip("\n")

GUARDED = textwrap.dedent(
    """
    #if defined(NCTEST_NEEDS_SEMICOLON)  // [r"expected ',' or ';' at end of input"]
    int a = 1
    #elif defined(NCTEST_TWO_PATTERNS)  // [r"no matching function for call to 'F'", r"candidate function"]
    void G() { F(1); }
    #endif
    """
).lstrip("\n")


def _inline_fragment():
    return parse_fragment(Path("frag.nc"), INLINE)


def test_inline_all_markers_satisfied() -> None:
    output = _output(
        "frag.nc:2:3: error: static assertion failed due to requirement '1 == 2'\n"
        "frag.nc:5:7: error: cannot initialize a variable of type 'int' with an lvalue\n"
    )
    results = match_inline(_inline_fragment(), output)
    assert [r.status for r in results] == ["passed", "passed"]
    assert results[0].matched[0][1].line == 2


def test_inline_message_differs_is_expectation_mismatch() -> None:
    output = _output(
        "frag.nc:2:3: error: something else entirely\n"
        "frag.nc:5:7: error: cannot initialize a variable of type 'int' with an lvalue\n"
    )
    first, second = match_inline(_inline_fragment(), output)
    assert first.status == "expectation-mismatch"
    assert first.unmatched[0].text == "static assertion failed"
    # The unexplained error on line 2 also poisons the rest of the fragment.
    assert second.status == "unexpected-diagnostic"
    assert [d.message for d in second.unexpected] == ["something else entirely"]


def test_inline_right_message_wrong_line_is_mismatch() -> None:
    output = _output(
        "frag.nc:3:1: error: static assertion failed\n"
        "frag.nc:5:7: error: cannot initialize a variable of type 'int'\n"
    )
    first, _ = match_inline(_inline_fragment(), output)
    assert first.status == "expectation-mismatch"


def test_inline_stray_error_fails_whole_fragment() -> None:
    output = _output(
        "frag.nc:2:3: error: static assertion failed\n"
        "frag.nc:5:7: error: cannot initialize a variable of type 'int'\n"
        "frag.nc:6:1: error: expected '}'\n"
    )
    results = match_inline(_inline_fragment(), output)
    assert {r.status for r in results} == {"unexpected-diagnostic"}
    assert "unexpected diagnostic: frag.nc:6:1: error: expected '}'" in explain(results[0], output)


def test_inline_errors_in_other_files_are_unexpected() -> None:
    output = _output(
        "frag.nc:2:3: error: static assertion failed\n"
        "frag.nc:5:7: error: cannot initialize a variable of type 'int'\n"
        "base/header.h:9:1: error: static assertion failed\n"
    )
    results = match_inline(_inline_fragment(), output)
    assert {r.status for r in results} == {"unexpected-diagnostic"}


def test_inline_warnings_and_notes_without_markers_are_ignored() -> None:
    output = _output(
        "frag.nc:2:3: error: static assertion failed\n"
        "frag.nc:2:3: note: expression evaluates to '1 == 2'\n"
        "frag.nc:5:7: error: cannot initialize a variable of type 'int'\n"
        "frag.nc:5:7: warning: unused variable 'x'\n"
    )
    assert [r.status for r in match_inline(_inline_fragment(), output)] == ["passed", "passed"]


def test_inline_clean_compile_is_unexpected_success() -> None:
    results = match_inline(_inline_fragment(), _output("", returncode=0))
    assert [r.status for r in results] == ["unexpected-success", "unexpected-success"]


def test_inline_order_of_diagnostics_is_not_significant() -> None:
    forward = _output(
        "frag.nc:2:3: error: static assertion failed\n"
        "frag.nc:5:7: error: cannot initialize a variable of type 'int'\n"
    )
    backward = _output(
        "frag.nc:5:7: error: cannot initialize a variable of type 'int'\n"
        "frag.nc:2:3: error: static assertion failed\n"
    )
    fragment = _inline_fragment()
    assert [r.status for r in match_inline(fragment, forward)] == [
        r.status for r in match_inline(fragment, backward)
    ]


def test_guarded_pass_when_pattern_matches() -> None:
    fragment = parse_fragment(Path("frag.nc"), GUARDED)
    case = fragment.cases[0]
    output = _output("frag.nc:2:10: error: expected ',' or ';' at end of input\n")
    result = match_guarded(case, output)
    assert result.passed
    assert result.matched[0][1].line == 2


def test_guarded_every_pattern_must_match() -> None:
    fragment = parse_fragment(Path("frag.nc"), GUARDED)
    case = fragment.cases[1]
    output = _output("frag.nc:4:12: error: no matching function for call to 'F'\n")
    result = match_guarded(case, output)
    assert result.status == "expectation-mismatch"
    assert result.missing_patterns == ("candidate function",)
    assert "candidate function" in explain(result, output)


def test_guarded_patterns_match_anywhere_in_output() -> None:
    fragment = parse_fragment(Path("frag.nc"), GUARDED)
    case = fragment.cases[1]
    output = _output(
        "frag.nc:4:12: error: no matching function for call to 'F'\n"
        "frag.nc:1:6: note: candidate function not viable: requires 0 arguments\n"
    )
    assert match_guarded(case, output).passed


def test_guarded_clean_compile_is_unexpected_success() -> None:
    fragment = parse_fragment(Path("frag.nc"), GUARDED)
    result = match_guarded(fragment.cases[0], _output("", returncode=0))
    assert result.status == "unexpected-success"
    assert "compiled without errors" in explain(result, None)


def test_timeout_and_crash_take_precedence() -> None:
    fragment = parse_fragment(Path("frag.nc"), GUARDED)
    timed_out = _output("", returncode=None, timed_out=True)
    crashed = _output("internal compiler error: Segmentation fault\n", returncode=4, crashed=True)
    assert match_guarded(fragment.cases[0], timed_out).status == "timeout"
    assert match_guarded(fragment.cases[0], crashed).status == "compiler-crash"
    assert {r.status for r in match_inline(_inline_fragment(), timed_out)} == {"timeout"}
    assert "exit code 4" in explain(match_guarded(fragment.cases[0], crashed), crashed)


def test_same_file_rules(tmp_path: Path) -> None:
    fragment = tmp_path / "pkg" / "frag.nc"
    fragment.parent.mkdir()
    fragment.write_text("", encoding="utf-8")
    assert same_file(str(fragment), fragment)
    assert same_file("frag.nc", fragment)
    assert same_file("pkg/frag.nc", fragment)
    assert same_file("./pkg/frag.nc", fragment)
    assert not same_file("other/frag.nc", fragment)
    assert not same_file("frag.h", fragment)
    assert same_file("../pkg/frag.nc", fragment, workdir=tmp_path / "pkg")
