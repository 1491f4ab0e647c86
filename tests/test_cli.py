import io
import json
import sys

import pytest

from kestrel.cli import compile_source, main, run_source
from kestrel.errors import SemanticError


def write_script(tmp_path, source, name="prog.ks"):
    path=tmp_path/name
    path.write_text(source, encoding="utf-8")
    return str(path)


def test_run_file_success(tmp_path, capsys):
    path=write_script(tmp_path, 'println("hello"); println(1 + 1);')
    assert main([path]) == 0
    assert capsys.readouterr().out == "hello\n2\n"


def test_parse_error_exit_code(tmp_path, capsys):
    path=write_script(tmp_path, "var = ;")
    assert main([path]) == 65
    assert "Error at" in capsys.readouterr().err


def test_semantic_error_exit_code(tmp_path, capsys):
    path=write_script(tmp_path, "println(missing);")
    assert main([path]) == 65
    assert "Undefined variable 'missing'." in capsys.readouterr().err


def test_runtime_error_exit_code(tmp_path, capsys):
    path=write_script(tmp_path, "var z = 0;\nprintln(1 / z);")
    assert main([path]) == 65
    assert "[line 2] RuntimeError: Division by zero." in capsys.readouterr().err


def test_stack_overflow_is_runtime_error(tmp_path, capsys):
    path=write_script(tmp_path, "function f(int n) { return f(n + 1); }\nf(0);")
    assert main([path, "--recursion-limit", "2000"]) == 65
    assert "Stack overflow." in capsys.readouterr().err


def test_diagnostics_json(tmp_path):
    path=write_script(tmp_path, "println(nope());")
    report=tmp_path/"diag.json"
    assert main([path, "--diagnostics", str(report)]) == 0
    entries=json.loads(report.read_text(encoding="utf-8"))
    assert entries == [{"severity": "warning", "message": "unable to find function nope", "line": 1}]


def test_compile_source_refuses_programs_with_errors():
    with pytest.raises(SemanticError) as excinfo:
        compile_source("var a = 1; var a = 2;")
    assert len(excinfo.value.diagnostics) == 1


def test_run_source_returns_diagnostics():
    out=io.StringIO()
    diagnostics=run_source("println(ghost());", out=out)
    assert out.getvalue() == "null\n"
    assert len(diagnostics.warnings) == 1
    assert not diagnostics.has_errors()


def test_run_source_raises_a_low_host_recursion_limit():
    previous=sys.getrecursionlimit()
    sys.setrecursionlimit(1000)
    try:
        out=io.StringIO()
        run_source("""
            function int down(int n) { if (n == 0) return 0; return down(n - 1); }
            println(down(300));
        """, out=out)
        assert out.getvalue() == "0\n"
        assert sys.getrecursionlimit() >= 10000
    finally:
        sys.setrecursionlimit(previous)


def test_repl_runs_each_line(monkeypatch, capsys):
    lines=iter(["println(1 + 2);", "", "println(oops);"])

    def fake_input(prompt):
        try:
            return next(lines)
        except StopIteration:
            raise EOFError
    monkeypatch.setattr("builtins.input", fake_input)
    assert main(["--repl"]) == 0
    captured=capsys.readouterr()
    assert "3\n" in captured.out
    assert "Undefined variable 'oops'." in captured.err
