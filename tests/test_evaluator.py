import io

import pytest

from kestrel.analyzer import Analyzer
from kestrel.diagnostics import Diagnostics
from kestrel.errors import ScriptRuntimeError
from kestrel.evaluator import EvalContext, Evaluator
from kestrel.lexer import Scanner
from kestrel.parser import Parser


def test_while_loop(run):
    assert run("""
        var i = 0;
        while (i < 3) { println(i); i = i + 1; }
    """) == ["0", "1", "2"]


def test_for_loop_break(run):
    assert run("""
        for (var i = 0; i < 3; i = i + 1) { if (i == 1) break; println(i); }
    """) == ["0"]


def test_arithmetic_and_concatenation(run):
    assert run("""
        println(3 + 4);
        println("a" + 1);
        println(7 / 2);
        println(-7 / 2);
        println(7 / 2.0);
        println(1 + 2 * 3 - 4);
        println("n=" + 1.5f);
    """) == ["7", "a1", "3", "-3", "3.5", "3", "n=1.5"]


def test_typed_declarations_convert_values(run):
    assert run("""
        double d = 3;
        int i = 2.9;
        short s = 40000;
        float f = 0.1;
        println(d);
        println(i);
        println(s);
        println(f);
    """) == ["3.0", "2", "-25536", "0.1"]


def test_int_overflow_wraps(run):
    assert run("""
        int big = 2147483647;
        big = big + 1;
        println(big);
        long wide = 2147483647L + 1;
        println(wide);
    """) == ["-2147483648", "2147483648"]


def test_text_forms(run):
    assert run("""
        println(true);
        println(null);
        println(1.0 / 0);
        println(2.0);
        println();
    """) == ["true", "null", "Infinity", "2.0", ""]


def test_println_prints_last_argument(run):
    assert run('println("ignored", "shown");') == ["shown"]


def test_break_only_leaves_nearest_loop(run):
    assert run("""
        for (var i = 0; i < 2; i = i + 1) {
            var j = 0;
            while (true) {
                { { break; } }
            }
            println(i);
        }
    """) == ["0", "1"]


def test_return_inside_loop_stops_iteration(run):
    assert run("""
        function find() {
            for (var i = 0; i < 10; i = i + 1) {
                while (true) {
                    if (i == 3) { return i; }
                    break;
                }
            }
            return -1;
        }
        println(find());
    """) == ["3"]


def test_for_variables_are_shared_across_iterations(run):
    assert run("""
        for (var i = 0; i < 10; i = i + 1) {
            println(i);
            i = i + 3;
        }
    """) == ["0", "4", "8"]


def test_prefix_and_postfix_increment(run):
    assert run("""
        var i = 5;
        println(i++);
        println(i);
        println(++i);
        println(--i);
        println(i--);
        println(i);
    """) == ["5", "6", "7", "6", "6", "5"]


def test_logical_operators_and_negation(run):
    assert run("""
        println(true && false);
        println(true || false);
        println(!false);
        println(1 < 2 && 2 <= 2);
        println(-(3));
    """) == ["false", "true", "true", "true", "-3"]


def test_equality(run):
    assert run("""
        println(1 == 1.0);
        println("a" == "a");
        println("a" != "b");
        println(null == null);
        var x;
        println(x == null);
    """) == ["true", "true", "true", "true", "true"]


def test_recursion(run):
    assert run("""
        function int fib(int n) {
            if (n < 2) return n;
            return fib(n - 1) + fib(n - 2);
        }
        println(fib(15));
    """) == ["610"]


def test_parameters_are_converted_to_declared_types(run):
    assert run("""
        function show(double x) { println(x); }
        show(2);
    """) == ["2.0"]


def test_call_without_return_is_null(run):
    assert run("""
        function nothing() { }
        function early() { return; }
        println(nothing());
        println(early());
    """) == ["null", "null"]


def test_blocks_scope_their_variables(run):
    assert run("""
        var x = 1;
        { var x = 2; println(x); }
        println(x);
    """) == ["2", "1"]


def test_globals_are_visible_in_functions(run):
    assert run("""
        var count = 0;
        function bump() { count = count + 1; }
        bump();
        bump();
        println(count);
    """) == ["2"]


def test_unknown_function_is_logged_and_null(run):
    diagnostics=Diagnostics()
    assert run("println(mystery(1));", diagnostics=diagnostics) == ["null"]
    assert [d.message for d in diagnostics.warnings] == ["unable to find function mystery"]


def test_unimplemented_features_are_no_ops(run):
    assert run("""
        var t = this;
        println(t);
        for (var x : t) { println("never"); }
        println("done");
    """) == ["null", "done"]


def test_division_by_zero_is_runtime_error(run):
    with pytest.raises(ScriptRuntimeError) as excinfo:
        run("var a = 1; println(a / 0);")
    assert excinfo.value.line == 1
    assert "Division by zero." in str(excinfo.value)


def test_dynamic_operands_dispatch_on_runtime_type(run):
    assert run("""
        var a;
        a = 2;
        println(a + 1.5);
        a = "s";
        println(a + 1);
    """) == ["3.5", "s1"]


def test_evaluator_runs_against_explicit_context():
    source="var x = 41; x = x + 1; println(x);"
    diagnostics=Diagnostics()
    tree=Analyzer(diagnostics).analyze(Parser(Scanner(source).scan_tokens()).parse())
    out=io.StringIO()
    ctx=EvalContext(diagnostics, out)
    result=Evaluator(tree).run(ctx)
    assert result is ctx
    assert out.getvalue() == "42\n"
    assert len(ctx.frames) == 0
