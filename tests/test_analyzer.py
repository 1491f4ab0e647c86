import pytest

from kestrel.nodes import ExpressionStmt, FunctionStmt, VarStmt
from kestrel.symbols import Class, Function, Variable
from kestrel.types import FunctionType, PrimitiveType


def messages(tree):
    return [d.message for d in tree.diagnostics.errors]


def test_expression_types_are_promoted(analyze):
    program, tree=analyze("""
        var a = 1 + 2;
        var b = 1 + 2.5;
        var c = 1L * 3;
        var d = "x" + 1;
        var e = 1 < 2;
    """)
    assert not tree.has_errors
    types=[tree.type_of(stmt.declarators[0]) for stmt in program.statements]
    assert types == [
        PrimitiveType.INTEGER, PrimitiveType.DOUBLE, PrimitiveType.LONG,
        PrimitiveType.STRING, PrimitiveType.BOOLEAN,
    ]


def test_var_without_initializer_is_dynamic(analyze):
    program, tree=analyze("var x; x = 3; x = \"s\";")
    assert not tree.has_errors
    assert tree.type_of(program.statements[0].declarators[0]) is PrimitiveType.ANY


def test_return_type_is_inferred_from_first_return(analyze):
    program, tree=analyze("""
        function half(int n) { return n / 2.0; }
        var h = half(3);
    """)
    assert not tree.has_errors
    fn=tree.symbol_of(program.statements[0])
    assert isinstance(fn, Function)
    assert fn.return_type is PrimitiveType.DOUBLE
    assert tree.type_of(program.statements[1].declarators[0]) is PrimitiveType.DOUBLE


def test_function_used_before_declaration(analyze):
    program, tree=analyze("""
        println(twice(4));
        function twice(int n) { return n * 2; }
    """)
    assert not tree.has_errors
    call=program.statements[0].expression.arguments[0]
    assert tree.symbol_of(call) is tree.symbol_of(program.statements[1])
    assert tree.type_of(call) is PrimitiveType.INTEGER


def test_overloads_select_by_argument_types(analyze):
    program, tree=analyze("""
        function show(int x) { return 1; }
        function show(string x) { return 2; }
        show(1);
        show("a");
    """)
    assert not tree.has_errors
    first, second=program.statements[0], program.statements[1]
    assert tree.symbol_of(program.statements[2].expression) is tree.symbol_of(first)
    assert tree.symbol_of(program.statements[3].expression) is tree.symbol_of(second)


def test_scopes_of_blocks_and_loops(analyze):
    program, tree=analyze("""
        { var inner = 1; }
        for (var i = 0; i < 1; i = i + 1) { }
    """)
    block, loop=program.statements
    global_scope=tree.scope_of(program)
    assert tree.scope_of(block).enclosing_scope is global_scope
    assert tree.scope_of(loop).enclosing_scope is global_scope
    assert tree.scope_of(loop.body).enclosing_scope is tree.scope_of(loop)
    i=tree.symbol_of(loop.initializer.declarators[0])
    assert tree.scope_of(loop).contains(i)


def test_free_variables_exclude_globals_and_locals(analyze):
    program, tree=analyze("""
        var g = 1;
        function outer() {
            var x = 10;
            function inner(int p) {
                var local = p;
                return x + g + local;
            }
            return inner;
        }
    """)
    assert not tree.has_errors
    outer=tree.symbol_of(program.statements[1])
    inner_stmt=[s for s in outer.node.body.statements if isinstance(s, FunctionStmt)][0]
    inner=tree.symbol_of(inner_stmt)
    assert [v.name for v in tree.free_variables_of(inner)] == ["x"]
    assert tree.free_variables_of(outer) == []
    assert outer.return_type == FunctionType(inner)


def test_free_variables_propagate_through_nesting(analyze):
    program, tree=analyze("""
        function a() {
            var x = 1;
            function b() {
                function c() { return x; }
                return c;
            }
            return b;
        }
    """)
    assert not tree.has_errors
    a=tree.symbol_of(program.statements[0])
    b=tree.symbol_of(a.node.body.statements[1])
    c=tree.symbol_of(b.node.body.statements[0])
    assert [v.name for v in tree.free_variables_of(b)] == ["x"]
    assert [v.name for v in tree.free_variables_of(c)] == ["x"]


def test_class_members_and_field_lookup(analyze):
    program, tree=analyze("""
        class Animal { var name = "animal"; var legs = 4; function speak() { return name; } }
        class Bird extends Animal { var legs = 2; }
        var b = Bird();
        println(b.legs);
        println(b.name);
    """)
    assert not tree.has_errors
    animal=tree.symbol_of(program.statements[0])
    bird=tree.symbol_of(program.statements[1])
    assert isinstance(bird, Class) and bird.parent_class is animal
    assert [c.name for c in bird.ancestry()] == ["Animal", "Bird"]
    legs=tree.lookup_field(bird, "legs")
    assert legs.enclosing_scope is bird
    assert tree.lookup_field(bird, "name").enclosing_scope is animal
    assert tree.lookup_field(animal, "legs") is not legs
    assert tree.type_of(program.statements[2].declarators[0]) is bird


def test_bare_class_call_and_constructor_resolution(analyze):
    program, tree=analyze("""
        class Point { int x; function Point(int px) { x = px; } }
        class Empty { }
        var p = Point(3);
        var e = Empty();
    """)
    assert not tree.has_errors
    p_call=program.statements[2].declarators[0].initializer
    e_call=program.statements[3].declarators[0].initializer
    ctor=tree.symbol_of(p_call)
    assert isinstance(ctor, Function) and ctor.is_constructor
    assert isinstance(tree.symbol_of(e_call), Class)


def test_println_and_unknown_names_stay_unresolved(analyze):
    program, tree=analyze("println(1); mystery(2);")
    assert not tree.has_errors
    assert tree.symbol_of(program.statements[0].expression) is None
    assert tree.type_of(program.statements[0].expression) is PrimitiveType.VOID
    assert tree.type_of(program.statements[1].expression) is PrimitiveType.ANY


def test_variables_are_visible_after_declaration_only(analyze):
    _, tree=analyze("println(y); var y = 1;")
    assert messages(tree) == ["Undefined variable 'y'."]


@pytest.mark.parametrize("source, expected", [
    ("var a = 1; var a = 2;", "already declared"),
    ("Unknown u;", "Unknown type"),
    ("int x = \"s\";", "Incompatible types"),
    ("break;", "'break' outside of a loop."),
    ("return 1;", "'return' outside of a function."),
    ("if (1) println(1);", "Condition must be boolean"),
    ("var s = \"a\" - 1;", "can't be applied"),
    ("var b = !3;", "needs a boolean operand"),
    ("function f(int x) { } f(\"s\");", "No 'f' accepts"),
    ("class A { } var a = A(); println(a.missing);", "has no field"),
    ("class A extends Nowhere { }", "Unknown superclass"),
    ("class A extends B { } class B extends A { }", "inherit from itself"),
    ("function void f() { return 1; }", "is void"),
])
def test_semantic_errors(analyze, source, expected):
    _, tree=analyze(source)
    assert tree.has_errors
    assert any(expected in m for m in messages(tree)), messages(tree)


def test_break_inside_nested_block_of_loop_is_allowed(analyze):
    _, tree=analyze("while (true) { { break; } }")
    assert not tree.has_errors


def test_field_initializer_sees_earlier_fields(analyze):
    program, tree=analyze("class A { var x = 1; var y = x + 1; }")
    assert not tree.has_errors
    y_init=program.statements[0].fields[1].declarators[0].initializer
    x=tree.symbol_of(y_init.left)
    assert isinstance(x, Variable) and x.name == "x"


def test_function_stored_beyond_its_locals_is_warned(analyze):
    _, tree=analyze("""
        var f = null;
        {
            int x = 3;
            function g() { return x; }
            f = g;
        }
        println(f());
    """)
    assert not tree.has_errors
    warnings=[d.message for d in tree.diagnostics.warnings]
    assert warnings == ["Function 'g' can outlive variable 'x' it uses; "
                        "only a returned function captures its variables."]


@pytest.mark.parametrize("source", [
    "{ int x = 3; function g() { return x; } var h = g; println(h()); }",
    "function outer(int n) { function g() { return n; } var h = g; return h; }",
    "function k() { return 1; } var h = null; h = k;",
])
def test_function_stored_next_to_its_locals_is_not_warned(analyze, source):
    _, tree=analyze(source)
    assert not tree.has_errors
    assert tree.diagnostics.warnings == []
