import pytest

from kestrel.errors import InternalError
from kestrel.frames import Frame, FrameChain
from kestrel.symbols import Class, Function, Scope, Variable
from kestrel.types import PrimitiveType
from kestrel.values import NULL, ClassInstance, ClosureInstance, LocalStorage


@pytest.fixture
def tree():
    """global { var g; function f(p) { body { var local; } } class C { var field; } }"""
    global_scope=Scope("global", None)
    g=Variable("g", PrimitiveType.INTEGER)
    global_scope.declare(g)
    f=Function("f", global_scope)
    global_scope.declare(f)
    p=Variable("p", PrimitiveType.INTEGER)
    f.declare(p)
    f.parameters.append(p)
    body=Scope("block", f)
    local=Variable("local", PrimitiveType.INTEGER)
    body.declare(local)
    cls=Class("C", global_scope)
    global_scope.declare(cls)
    field=Variable("field", PrimitiveType.INTEGER)
    cls.declare(field)
    return dict(global_scope=global_scope, g=g, f=f, p=p, body=body, local=local, cls=cls, field=field)


def test_push_links_lexical_child_to_top(tree):
    chain=FrameChain()
    root=Frame(tree["global_scope"], LocalStorage())
    chain.push(root)
    call=Frame(tree["f"], ClosureInstance(tree["f"]))
    chain.push(call)
    assert call.parent is root
    block=Frame(tree["body"], LocalStorage())
    chain.push(block)
    assert block.parent is call


def test_push_splices_non_child_as_sibling(tree):
    chain=FrameChain()
    root=Frame(tree["global_scope"], LocalStorage())
    chain.push(root)
    call=Frame(tree["f"], ClosureInstance(tree["f"]))
    chain.push(call)
    chain.push(Frame(tree["body"], LocalStorage()))
    # a call to the global function f from inside f's body
    again=Frame(tree["f"], ClosureInstance(tree["f"]))
    chain.push(again)
    assert again.parent is call
    chain.pop()
    assert chain.top.scope is tree["body"]


def test_resolve_finds_innermost_container(tree):
    chain=FrameChain()
    globals_=LocalStorage()
    chain.push(Frame(tree["global_scope"], globals_))
    closure=ClosureInstance(tree["f"])
    chain.push(Frame(tree["f"], closure))
    block=LocalStorage()
    chain.push(Frame(tree["body"], block))
    assert chain.resolve(tree["local"]) is block
    assert chain.resolve(tree["p"]) is closure
    assert chain.resolve(tree["g"]) is globals_


def test_lvalue_reads_and_writes_storage(tree):
    chain=FrameChain()
    globals_=LocalStorage()
    chain.push(Frame(tree["global_scope"], globals_))
    lvalue=chain.lvalue_of(tree["g"])
    assert lvalue.get() is NULL
    lvalue.set(5)
    assert globals_.get(tree["g"]) == 5
    assert chain.lvalue_of(tree["g"]).get() == 5


def test_receiver_is_inherited_and_resolves_fields(tree):
    chain=FrameChain()
    chain.push(Frame(tree["global_scope"], LocalStorage()))
    instance=ClassInstance(tree["cls"], 1)
    instance.set(tree["field"], 7)
    chain.push(Frame(tree["f"], ClosureInstance(tree["f"]), receiver=instance))
    block=Frame(tree["body"], LocalStorage())
    chain.push(block)
    assert block.receiver is instance
    assert chain.receiver is instance
    assert chain.resolve(tree["field"]) is instance


def test_captured_closure_fields_are_found(tree):
    chain=FrameChain()
    chain.push(Frame(tree["global_scope"], LocalStorage()))
    closure=ClosureInstance(tree["f"])
    closure.set(tree["local"], 20)   # a captured free variable
    chain.push(Frame(tree["f"], closure))
    assert chain.lvalue_of(tree["local"]).get() == 20


def test_entered_pops_on_exception(tree):
    chain=FrameChain()
    chain.push(Frame(tree["global_scope"], LocalStorage()))
    with pytest.raises(ValueError):
        with chain.entered(Frame(tree["body"], LocalStorage())):
            raise ValueError("boom")
    assert len(chain) == 1


def test_unresolved_symbol_is_internal_error(tree):
    chain=FrameChain()
    chain.push(Frame(tree["global_scope"], LocalStorage()))
    with pytest.raises(InternalError):
        chain.resolve(tree["local"])
    assert chain.find(tree["local"]) is None


def test_pop_empty_chain_is_internal_error():
    with pytest.raises(InternalError):
        FrameChain().pop()


def test_live_frame_off_the_lexical_path_is_found(tree):
    chain=FrameChain()
    chain.push(Frame(tree["global_scope"], LocalStorage()))
    chain.push(Frame(tree["f"], ClosureInstance(tree["f"])))
    block=LocalStorage()
    block.set(tree["local"], 7)
    chain.push(Frame(tree["body"], block))
    # a function defined elsewhere, called from inside f's body
    helper=Function("helper", tree["global_scope"])
    chain.push(Frame(helper, ClosureInstance(helper)))
    assert chain.resolve(tree["local"]) is block
