import io
import sys
import warnings

import pytest

from irdeps.cli.irdeps_main import _parse_args
from irdeps.warnings import UnreachableCode

SOURCE = """
function main {
entry:
    %x = calldataload 0
    jnz %x, @then, @join
then:
    sstore 0, %x
    jmp @join
join:
    stop
}

function helper {
entry:
    %y = sload 1
    return 0, %y
}
"""

UNREACHABLE_SOURCE = """
function main {
entry:
    stop
dead:
    stop
}
"""


@pytest.fixture
def ir_file(tmp_path):
    def write(source=SOURCE):
        path = tmp_path / "input.ir"
        path.write_text(source)
        return str(path)

    return write


def test_default_format(ir_file, capsys):
    _parse_args([ir_file()])
    out = capsys.readouterr().out

    # one graph per function
    assert out.count("digraph dependence_graph {") == 2
    assert '"then:0" -> "entry:1" [style=dashed]' in out


@pytest.mark.parametrize(
    "fmt,expected",
    [
        ("cfg", '"entry" -> "then" [label="%x true"]'),
        ("dom", "digraph dominator_tree {"),
        ("postdom", "digraph post_dominator_tree {"),
        ("df", '"then" -> "join"'),
        ("cdg", '"entry" -> "then"'),
        ("deps", "digraph dependence_graph {"),
    ],
)
def test_formats(ir_file, capsys, fmt, expected):
    _parse_args([ir_file(), "--function", "main", "-f", fmt])
    assert expected in capsys.readouterr().out


def test_multiple_formats(ir_file, capsys):
    _parse_args([ir_file(), "--function", "main", "-f", "cfg, cdg"])
    out = capsys.readouterr().out

    assert out.index("digraph cfg {") < out.index("digraph control_dependence_graph {")


def test_function_filter(ir_file, capsys):
    _parse_args([ir_file(), "--function", "helper", "-f", "cfg"])
    out = capsys.readouterr().out

    assert out.count("digraph cfg {") == 1
    assert '"entry" -> "EXIT"' in out
    assert '"then"' not in out


def test_stdin(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO(SOURCE))
    _parse_args(["--stdin", "-f", "cdg"])

    assert capsys.readouterr().out.count("digraph control_dependence_graph {") == 2


def _expect_error(argv, capsys) -> str:
    with pytest.raises(SystemExit) as e:
        _parse_args(argv)
    assert e.value.code == 1
    out = capsys.readouterr().out
    assert out.startswith("Error: ")
    return out


def test_unknown_format(ir_file, capsys):
    out = _expect_error([ir_file(), "-f", "cfg,ast"], capsys)
    assert "unknown format `ast`" in out


def test_no_input(capsys):
    _expect_error([], capsys)


def test_missing_file(tmp_path, capsys):
    out = _expect_error([str(tmp_path / "missing.ir")], capsys)
    assert "cannot read" in out


def test_unknown_function(ir_file, capsys):
    out = _expect_error([ir_file(), "--function", "nope"], capsys)
    assert "nope" in out


def test_parse_error(ir_file, capsys):
    out = _expect_error([ir_file("function main {\nentry:\n    %x = = 1\n}")], capsys)
    assert "line 3" in out


def test_malformed_function(ir_file, capsys):
    out = _expect_error([ir_file("function main {\nentry:\n    jmp @missing\n}")], capsys)
    assert "nonexistent block" in out
    assert "(in function main)" in out


def test_negative_search_depth(ir_file, capsys):
    _expect_error([ir_file(), "--max-search-depth=-1"], capsys)


def test_no_memory_dependence(ir_file, capsys):
    source = "function main {\nentry:\n    sstore 0, 1\n    %x = sload 0\n    stop\n}"
    _parse_args([ir_file(source)])
    assert "style=dotted" in capsys.readouterr().out

    _parse_args([ir_file(source), "--no-memory-dependence"])
    assert "style=dotted" not in capsys.readouterr().out


def test_exclude_unreachable(ir_file, capsys):
    path = ir_file(UNREACHABLE_SOURCE)

    _parse_args([path])
    assert '"dead:0"' in capsys.readouterr().out

    with pytest.warns(UnreachableCode):
        _parse_args([path, "--exclude-unreachable"])
    assert '"dead:0"' not in capsys.readouterr().out


def test_warnings_control(ir_file, capsys):
    path = ir_file(UNREACHABLE_SOURCE)

    out = _expect_error([path, "--exclude-unreachable", "--warnings-control", "error"], capsys)
    assert "dead" in out

    with warnings.catch_warnings(record=True) as w:
        warnings.simplefilter("always")
        _parse_args([path, "--exclude-unreachable", "--warnings-control", "none"])
    assert not any(issubclass(warning.category, UnreachableCode) for warning in w)
    assert "digraph dependence_graph {" in capsys.readouterr().out
