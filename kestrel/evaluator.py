"""Tree-walking evaluator.

Executes an annotated program. Every evaluation step receives an explicit
EvalContext carrying the frame chain, the diagnostics sink and the output
stream, so evaluators hold no mutable state of their own. Statements
return a Completion; expressions return plain values.
"""
from __future__ import annotations
from contextlib import ExitStack
from typing import Any, Callable, Dict, List, Optional, TextIO
import logging
import sys

from . import arith
from .analyzer import AnnotatedTree
from .diagnostics import Diagnostics
from .errors import InternalError, ScriptRuntimeError
from .flow import BREAK, Completion, Flow, normal, returned
from .frames import Frame, FrameChain, LValue
from .nodes import (
    Assign, Binary, BlockStmt, BreakStmt, Call, ClassStmt, Expr,
    ExpressionStmt, ForEachStmt, ForStmt, FunctionStmt, Get, Grouping, IfStmt,
    Invoke, Literal, Logical, Name, Postfix, ReturnStmt, Stmt, Super, This,
    Unary, VarStmt, WhileStmt,
)
from .symbols import Class, Function, Variable
from .types import PrimitiveType, is_numeric
from .values import (
    NULL, ClassInstance, ClosureInstance, LocalStorage, is_number, to_text,
)

logger = logging.getLogger(__name__)

ORDERING=("<", "<=", ">", ">=")
EQUALITY=("==", "!=")


class EvalContext:
    """Everything one evaluation mutates."""

    def __init__(self, diagnostics:Optional[Diagnostics]=None, out:Optional[TextIO]=None):
        self.frames=FrameChain()
        self.diagnostics=diagnostics if diagnostics is not None else Diagnostics()
        self.out=out if out is not None else sys.stdout
        self._next_obj_id=1

    def new_object_id(self)->int:
        obj_id=self._next_obj_id
        self._next_obj_id+=1
        return obj_id

    def log(self, message:str, node:Any=None):
        self.diagnostics.log(message, node)


class Evaluator:
    def __init__(self, tree:AnnotatedTree):
        self.tree=tree
        self.statements: Dict[type, Callable[[Any, EvalContext], Completion]]={
            ExpressionStmt: self.expression_stmt,
            VarStmt: self.var_stmt,
            BlockStmt: self.block_stmt,
            IfStmt: self.if_stmt,
            WhileStmt: self.while_stmt,
            ForStmt: self.for_stmt,
            BreakStmt: lambda stmt, ctx: BREAK,
            ReturnStmt: self.return_stmt,
            # declarations are fully handled by analysis
            FunctionStmt: lambda stmt, ctx: normal(),
            ClassStmt: lambda stmt, ctx: normal(),
            ForEachStmt: lambda stmt, ctx: normal(),
        }
        self.expressions: Dict[type, Callable[[Any, EvalContext], Any]]={
            Literal: self.literal,
            Grouping: lambda expr, ctx: self.evaluate(expr.expression, ctx),
            Name: self.name,
            Assign: self.assign,
            Binary: self.binary,
            Logical: self.logical,
            Unary: self.unary,
            Postfix: self.postfix,
            Call: self.call,
            Get: self.get,
            Invoke: self.invoke,
            This: lambda expr, ctx: NULL,
            Super: lambda expr, ctx: NULL,
        }

    def run(self, ctx:Optional[EvalContext]=None)->EvalContext:
        """Execute the whole program; returns the context it ran in."""
        ctx=ctx if ctx is not None else EvalContext(self.tree.diagnostics)
        program=self.tree.program
        with ctx.frames.entered(Frame(self.tree.scope_of(program), LocalStorage())):
            for stmt in program.statements:
                result=self.execute(stmt, ctx)
                if result.stops:
                    raise InternalError(f"{result.flow.value} escaped the program")
        return ctx

    def execute(self, stmt:Stmt, ctx:EvalContext)->Completion:
        return self.statements[type(stmt)](stmt, ctx)

    def evaluate(self, expr:Expr, ctx:EvalContext)->Any:
        return self.expressions[type(expr)](expr, ctx)

    # ---------------------------
    # Statements
    # ---------------------------

    def expression_stmt(self, stmt:ExpressionStmt, ctx:EvalContext)->Completion:
        return normal(self.evaluate(stmt.expression, ctx))

    def var_stmt(self, stmt:VarStmt, ctx:EvalContext)->Completion:
        for declarator in stmt.declarators:
            var=self.tree.symbol_of(declarator)
            value=self.evaluate(declarator.initializer, ctx) if declarator.initializer is not None else NULL
            self.store(ctx.frames.lvalue_of(var), value)
        return normal()

    def block_stmt(self, stmt:BlockStmt, ctx:EvalContext)->Completion:
        result=normal()
        with ctx.frames.entered(Frame(self.tree.scope_of(stmt), LocalStorage())):
            for s in stmt.statements:
                result=self.execute(s, ctx)
                if result.stops:
                    break
        return result

    def if_stmt(self, stmt:IfStmt, ctx:EvalContext)->Completion:
        if self.truth(self.evaluate(stmt.condition, ctx), stmt):
            return self.execute(stmt.then_branch, ctx)
        if stmt.else_branch is not None:
            return self.execute(stmt.else_branch, ctx)
        return normal()

    def while_stmt(self, stmt:WhileStmt, ctx:EvalContext)->Completion:
        while self.truth(self.evaluate(stmt.condition, ctx), stmt):
            result=self.execute(stmt.body, ctx)
            if result.flow is Flow.BREAK:
                break
            if result.flow is Flow.RETURN:
                return result
        return normal()

    def for_stmt(self, stmt:ForStmt, ctx:EvalContext)->Completion:
        # one frame for the whole loop: loop variables are shared by every iteration
        with ctx.frames.entered(Frame(self.tree.scope_of(stmt), LocalStorage())):
            if isinstance(stmt.initializer, VarStmt):
                self.execute(stmt.initializer, ctx)
            elif stmt.initializer is not None:
                for expr in stmt.initializer:
                    self.evaluate(expr, ctx)
            while stmt.condition is None or self.truth(self.evaluate(stmt.condition, ctx), stmt):
                result=self.execute(stmt.body, ctx)
                if result.flow is Flow.BREAK:
                    break
                if result.flow is Flow.RETURN:
                    return result
                for expr in stmt.updates:
                    self.evaluate(expr, ctx)
        return normal()

    def return_stmt(self, stmt:ReturnStmt, ctx:EvalContext)->Completion:
        value=self.evaluate(stmt.value, ctx) if stmt.value is not None else NULL
        if isinstance(value, ClosureInstance):
            self.capture(value, ctx)
        declared=self.tree.type_of(stmt)
        if is_numeric(declared) and is_number(value):
            value=arith.coerce(value, declared)
        return returned(value)

    def capture(self, closure:ClosureInstance, ctx:EvalContext):
        """Copy the current values of the closure's free variables into it."""
        for var in self.tree.free_variables_of(closure.function):
            container=ctx.frames.find(var)
            if container is None:
                if closure.holds(var):
                    continue  # returned again from outside its defining scope
                raise InternalError(f"free variable {var!r} of {closure!r} is not live")
            closure.set(var, container.get(var))

    def truth(self, value:Any, node:Any)->bool:
        if not isinstance(value, bool):
            raise ScriptRuntimeError(node.line, f"Condition must be a boolean, got {to_text(value)}.")
        return value

    # ---------------------------
    # References and stores
    # ---------------------------

    def reference(self, expr:Expr, ctx:EvalContext)->Optional[LValue]:
        """The storage an assignable expression denotes; None when it was logged as unresolvable."""
        if isinstance(expr, Grouping):
            return self.reference(expr.expression, ctx)
        if isinstance(expr, Name):
            symbol=self.tree.symbol_of(expr)
            if isinstance(symbol, Variable):
                return ctx.frames.lvalue_of(symbol)
        elif isinstance(expr, Get):
            obj=self.evaluate(expr.object, ctx)
            if not isinstance(obj, ClassInstance):
                ctx.log(f"Expecting an object reference for '.{expr.name.lexeme}', got {to_text(obj)}", expr)
                return None
            field=self.tree.lookup_field(obj.type, expr.name.lexeme)
            if field is None:
                ctx.log(f"unable to find field {expr.name.lexeme} in class {obj.type.name}", expr)
                return None
            return LValue(obj, field)
        raise InternalError(f"not an lvalue: {expr!r}")

    def store(self, lvalue:LValue, value:Any):
        declared=lvalue.variable.type
        if is_numeric(declared) and is_number(value):
            value=arith.coerce(value, declared)
        lvalue.set(value)

    # ---------------------------
    # Expressions
    # ---------------------------

    def literal(self, expr:Literal, ctx:EvalContext)->Any:
        if expr.value is None:
            return NULL
        if is_numeric(expr.type):
            return arith.coerce(expr.value, expr.type)
        return expr.value

    def name(self, expr:Name, ctx:EvalContext)->Any:
        symbol=self.tree.symbol_of(expr)
        if isinstance(symbol, Variable):
            return ctx.frames.lvalue_of(symbol).get()
        if isinstance(symbol, Function):
            closure=ClosureInstance(symbol)
            if symbol.enclosing_class is not None:
                closure.receiver=ctx.frames.receiver
            return closure
        ctx.log(f"unable to resolve {expr.name.lexeme}", expr)
        return NULL

    def assign(self, expr:Assign, ctx:EvalContext)->Any:
        lvalue=self.reference(expr.target, ctx)
        value=self.evaluate(expr.value, ctx)
        if lvalue is not None:
            self.store(lvalue, value)
            value=lvalue.get()
        return value

    def get(self, expr:Get, ctx:EvalContext)->Any:
        lvalue=self.reference(expr, ctx)
        return lvalue.get() if lvalue is not None else NULL

    def operation(self, symbol:str, target:Any, left:Any, right:Any, node:Any)->Any:
        try:
            fn=arith.lookup(symbol, target, left, right)
        except KeyError:
            if target is PrimitiveType.ANY:
                raise ScriptRuntimeError(node.line, f"Operator '{symbol}' can't be applied to "
                                         f"{to_text(left)} and {to_text(right)}.") from None
            raise InternalError(f"no '{symbol}' operation for {target}") from None
        try:
            return fn(left, right)
        except ZeroDivisionError:
            raise ScriptRuntimeError(node.line, "Division by zero.") from None
        except TypeError as e:
            raise InternalError(f"operands {left!r}, {right!r} don't fit {target}") from e

    def binary(self, expr:Binary, ctx:EvalContext)->Any:
        left=self.evaluate(expr.left, ctx)
        right=self.evaluate(expr.right, ctx)
        symbol=expr.operator.lexeme
        if symbol in ORDERING or symbol in EQUALITY:
            target=self.tree.promote(self.tree.type_of(expr.left), self.tree.type_of(expr.right))
            if not is_numeric(target):
                target=PrimitiveType.ANY
            if symbol in EQUALITY and not (is_number(left) and is_number(right)):
                same=self.equals(left, right)
                return same if symbol=="==" else not same
            return self.operation(symbol, target, left, right, expr)
        return self.operation(symbol, self.tree.type_of(expr), left, right, expr)

    def equals(self, left:Any, right:Any)->bool:
        if isinstance(left, (str, bool)) and type(left) is type(right):
            return left==right
        return left is right

    def logical(self, expr:Logical, ctx:EvalContext)->Any:
        # both sides are always evaluated
        left=self.evaluate(expr.left, ctx)
        right=self.evaluate(expr.right, ctx)
        if not isinstance(left, bool) or not isinstance(right, bool):
            raise ScriptRuntimeError(expr.line, f"Operator '{expr.operator.lexeme}' needs boolean operands.")
        if expr.operator.lexeme=="&&":
            return left and right
        return left or right

    def unary(self, expr:Unary, ctx:EvalContext)->Any:
        symbol=expr.operator.lexeme
        if symbol in ("++", "--"):
            _, after=self.increment(expr.operand, symbol, ctx)
            return after
        value=self.evaluate(expr.operand, ctx)
        if symbol=="!":
            if not isinstance(value, bool):
                raise ScriptRuntimeError(expr.line, "Operator '!' needs a boolean operand.")
            return not value
        if not is_number(value):
            raise ScriptRuntimeError(expr.line, f"Operator '-' can't be applied to {to_text(value)}.")
        target=self.tree.type_of(expr)
        return arith.negate(value, target if is_numeric(target) else arith.runtime_type(value))

    def postfix(self, expr:Postfix, ctx:EvalContext)->Any:
        before, _=self.increment(expr.operand, expr.operator.lexeme, ctx)
        return before

    def increment(self, operand:Expr, symbol:str, ctx:EvalContext):
        lvalue=self.reference(operand, ctx)
        if lvalue is None:
            return NULL, NULL
        before=lvalue.get()
        target=lvalue.variable.type
        if not is_numeric(target):
            if not is_number(before):
                raise ScriptRuntimeError(getattr(operand, "line", None),
                                         f"Operator '{symbol}' can't be applied to {to_text(before)}.")
            target=arith.runtime_type(before)
        after=arith.OPERATIONS[(symbol[0], target)](before, 1)
        self.store(lvalue, after)
        return before, after

    # ---------------------------
    # Calls and construction
    # ---------------------------

    def call(self, expr:Call, ctx:EvalContext)->Any:
        args=[self.evaluate(a, ctx) for a in expr.arguments]
        symbol=self.tree.symbol_of(expr)
        name=expr.name.lexeme
        if isinstance(symbol, Variable):
            value=ctx.frames.lvalue_of(symbol).get()
            if not isinstance(value, ClosureInstance):
                ctx.log(f"unable to call {name}: it holds {to_text(value)}", expr)
                return NULL
            return self.invoke_function(value.function, args, ctx, closure=value)
        if isinstance(symbol, Function):
            return self.invoke_function(symbol, args, ctx)
        if isinstance(symbol, Class):
            return self.construct(symbol, ctx)
        if name=="println":
            print(to_text(args[-1]) if args else "", file=ctx.out)
            return NULL
        ctx.log(f"unable to find function {name}", expr)
        return NULL

    def invoke(self, expr:Invoke, ctx:EvalContext)->Any:
        receiver=self.evaluate(expr.object, ctx)
        call=expr.call
        args=[self.evaluate(a, ctx) for a in call.arguments]
        name=call.name.lexeme
        if not isinstance(receiver, ClassInstance):
            ctx.log(f"Expecting an object reference for '.{name}()', got {to_text(receiver)}", expr)
            return NULL
        fn=self.tree.symbol_of(call)
        if not isinstance(fn, Function):
            fn=next((f for f in receiver.type.find_functions(name) if len(f.parameters)==len(args)), None)
            if fn is None:
                ctx.log(f"unable to find method {name} in class {receiver.type.name}", expr)
                return NULL
        return self.invoke_function(fn, args, ctx, receiver=receiver)

    def invoke_function(self, fn:Function, args:List[Any], ctx:EvalContext,
                        closure:Optional[ClosureInstance]=None,
                        receiver:Optional[ClassInstance]=None)->Any:
        explicit_receiver=receiver is not None
        if receiver is None and closure is not None:
            receiver=closure.receiver
        if fn.is_constructor:
            receiver=self.construct(fn.owner_class, ctx)
            explicit_receiver=True
        elif fn.is_method:
            if receiver is None:
                receiver=ctx.frames.receiver
            if receiver is not None:
                override=receiver.type.get_function(fn.name, fn.parameter_types)
                if override is not None and override is not fn:
                    fn=override
        if closure is None:
            closure=ClosureInstance(fn)
        logger.debug("call %s(%d args) on %r", fn.name, len(args), receiver)

        with ExitStack() as stack:
            if explicit_receiver:
                stack.enter_context(ctx.frames.entered(Frame(receiver.type, receiver, receiver=receiver)))
            stack.enter_context(ctx.frames.entered(Frame(fn, closure, receiver=receiver)))
            for param, value in zip(fn.parameters, args):
                self.store(ctx.frames.lvalue_of(param), value)
            result=self.execute(fn.body, ctx)

        if result.flow is Flow.BREAK:
            raise InternalError(f"break escaped function {fn.name}")
        if fn.is_constructor:
            return receiver
        if result.flow is Flow.RETURN:
            return NULL if result.value is None else result.value
        return NULL

    def construct(self, cls:Class, ctx:EvalContext)->ClassInstance:
        instance=ClassInstance(cls, ctx.new_object_id())
        logger.debug("construct %r", instance)
        with ctx.frames.entered(Frame(cls, instance, receiver=instance)):
            for ancestor in cls.ancestry():
                for field in ancestor.fields():
                    instance.set(field, NULL)
                for member in ancestor.node.fields:
                    self.execute(member, ctx)
        return instance


def evaluate(tree:AnnotatedTree, ctx:Optional[EvalContext]=None)->EvalContext:
    return Evaluator(tree).run(ctx)
