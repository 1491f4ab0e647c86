"""Semantic analysis.

Resolves every node to a scope, a symbol and a static type, infers
undeclared return types, and computes each function's free variables
(the closure capture list). The result is an AnnotatedTree, which is the
only thing the evaluator consults about the program's static meaning.

Pass 1 builds the scope tree and declares functions and classes (so they
can be used before their declaration). Pass 2 declares variables in
order and types every expression. Function bodies are deferred to the
end of the program unless a call needs their inferred return type first.
"""
from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence
import logging

from .diagnostics import Diagnostics
from .nodes import (
    Assign, Binary, BlockStmt, BreakStmt, Call, ClassStmt, Expr,
    ExpressionStmt, ForEachStmt, ForStmt, FunctionStmt, Get, Grouping, IfStmt,
    Invoke, Literal, Logical, Name, Postfix, Program, ReturnStmt, Stmt,
    Super, This, TypeRef, Unary, VarStmt, WhileStmt,
)
from .symbols import BUILTIN_TYPES, Class, Function, Scope, Symbol, Variable
from .types import (
    FunctionType, PrimitiveType, is_assignable, is_dynamic, is_numeric,
    is_subclass, promote, type_name,
)

logger = logging.getLogger(__name__)

ARITHMETIC=("+", "-", "*", "/")
ORDERING=("<", "<=", ">", ">=")


class AnnotatedTree:
    """Static facts about a program, queried by node identity."""

    def __init__(self, program:Program, global_scope:Scope, diagnostics:Diagnostics):
        self.program=program
        self.global_scope=global_scope
        self.diagnostics=diagnostics
        self.node_scopes: Dict[Any, Scope]={}
        self.node_types: Dict[Any, Any]={}
        self.node_symbols: Dict[Any, Symbol]={}
        self.free_variables: Dict[Function, Dict[Variable, None]]={}

    def scope_of(self, node:Any)->Scope:
        return self.node_scopes[node]

    def type_of(self, node:Any)->Any:
        return self.node_types.get(node, PrimitiveType.ANY)

    def symbol_of(self, node:Any)->Optional[Symbol]:
        return self.node_symbols.get(node)

    def free_variables_of(self, function:Function)->List[Variable]:
        return list(self.free_variables.get(function, ()))

    def lookup_field(self, cls:Class, name:str)->Optional[Variable]:
        return cls.lookup_field(name)

    def promote(self, t1:Any, t2:Any)->Any:
        return promote(t1, t2)

    def log(self, message:str, node:Any=None):
        self.diagnostics.log(message, node)

    @property
    def has_errors(self)->bool:
        return self.diagnostics.has_errors()


class Analyzer:
    def __init__(self, diagnostics:Optional[Diagnostics]=None):
        self.diagnostics=diagnostics if diagnostics is not None else Diagnostics()

    def analyze(self, program:Program)->AnnotatedTree:
        global_scope=Scope("global", None)
        self.tree=AnnotatedTree(program, global_scope, self.diagnostics)
        self.tree.node_scopes[program]=global_scope
        self.scope: Scope=global_scope
        self.current_function: Optional[Function]=None
        self.loop_depth=0
        self.functions: List[Function]=[]
        self.classes: List[Class]=[]
        self.pending: List[Function]=[]
        self.escapes: List[tuple]=[]   # (node, function, scope of the storage it lands in)
        self.analyzed=set()
        self.in_progress=set()
        self.analyzed_classes=set()

        for stmt in program.statements:
            self._declare(stmt, global_scope)
        self._link_classes()
        self._resolve_signatures()

        for stmt in program.statements:
            self._stmt(stmt)
        while self.pending:
            self._analyze_function(self.pending.pop(0))
        self._check_escapes()

        logger.debug("analysis finished: %d functions, %d classes, %d diagnostics",
                     len(self.functions), len(self.classes), len(self.diagnostics))
        return self.tree

    def error(self, message:str, node:Any):
        self.diagnostics.error(message, node)

    # ---------------------------
    # Pass 1: scopes, functions, classes
    # ---------------------------

    def _declare(self, stmt:Stmt, scope:Scope):
        scopes=self.tree.node_scopes
        if isinstance(stmt, BlockStmt):
            block=Scope("block", scope)
            scopes[stmt]=block
            for s in stmt.statements:
                self._declare(s, block)
        elif isinstance(stmt, (ForStmt, ForEachStmt)):
            loop=Scope("for", scope)
            scopes[stmt]=loop
            self._declare(stmt.body, loop)
        elif isinstance(stmt, IfStmt):
            self._declare(stmt.then_branch, scope)
            if stmt.else_branch is not None:
                self._declare(stmt.else_branch, scope)
        elif isinstance(stmt, WhileStmt):
            self._declare(stmt.body, scope)
        elif isinstance(stmt, FunctionStmt):
            fn=Function(stmt.name.lexeme, scope, stmt)
            scope.declare(fn)
            scopes[stmt]=fn
            self.tree.node_symbols[stmt]=fn
            self.functions.append(fn)
            self._declare(stmt.body, fn)
        elif isinstance(stmt, ClassStmt):
            name=stmt.name.lexeme
            if isinstance(Scope.lookup_local(scope, name), Class):
                self.error(f"Class '{name}' is already declared in this scope.", stmt)
            cls=Class(name, scope, stmt)
            scope.declare(cls)
            scopes[stmt]=cls
            self.tree.node_symbols[stmt]=cls
            self.classes.append(cls)
            for method in stmt.methods:
                self._declare(method, cls)

    def _link_classes(self):
        for cls in self.classes:
            superclass=cls.node.superclass
            if superclass is None:
                continue
            parent=self._lookup_class(superclass.lexeme, cls.enclosing_scope)
            if parent is None:
                self.error(f"Unknown superclass '{superclass.lexeme}'.", cls.node)
            elif is_subclass(parent, cls):
                self.error(f"Class '{cls.name}' cannot inherit from itself.", cls.node)
            else:
                cls.parent_class=parent

    def _resolve_signatures(self):
        for fn in self.functions:
            for param in fn.node.params:
                name=param.name.lexeme
                if Scope.lookup_local(fn, name) is not None:
                    self.error(f"Duplicate parameter '{name}'.", param)
                type_=self._resolve_type(param.type_ref, fn.enclosing_scope) if param.type_ref else PrimitiveType.ANY
                var=Variable(name, type_)
                fn.declare(var)
                fn.parameters.append(var)
                self.tree.node_symbols[param]=var
            if fn.is_constructor:
                fn.return_type=fn.owner_class
            elif fn.node.return_type is not None:
                fn.return_type=self._resolve_type(fn.node.return_type, fn.enclosing_scope)
        for fn in self.functions:
            for other in fn.enclosing_scope.functions_named(fn.name):
                if other is fn:
                    break
                if other.parameter_types==fn.parameter_types:
                    self.error(f"Function '{fn.name}' is already declared with the same parameters.", fn.node)
                    break

    def _resolve_type(self, type_ref:TypeRef, scope:Scope)->Any:
        name=type_ref.name.lexeme
        if name in BUILTIN_TYPES:
            return BUILTIN_TYPES[name]
        cls=self._lookup_class(name, scope)
        if cls is not None:
            return cls
        self.error(f"Unknown type '{name}'.", type_ref)
        return PrimitiveType.ANY

    def _lookup(self, name:str, scope:Optional[Scope]=None)->Optional[Symbol]:
        scope=self.scope if scope is None else scope
        while scope is not None:
            symbol=scope.lookup_local(name)
            if symbol is not None:
                return symbol
            scope=scope.enclosing_scope
        return None

    def _lookup_class(self, name:str, scope:Optional[Scope])->Optional[Class]:
        while scope is not None:
            symbol=scope.lookup_local(name)
            if isinstance(symbol, Class):
                return symbol
            if isinstance(symbol, Function) and symbol.is_constructor:
                return symbol.owner_class
            scope=scope.enclosing_scope
        return None

    def _visible_functions(self, name:str)->List[Function]:
        scope: Optional[Scope]=self.scope
        while scope is not None:
            if isinstance(scope.lookup_local(name), Function):
                if isinstance(scope, Class):
                    return scope.find_functions(name)
                return scope.functions_named(name)
            scope=scope.enclosing_scope
        return []

    # ---------------------------
    # Pass 2: statements
    # ---------------------------

    @contextmanager
    def _entered(self, scope:Scope, function:Optional[Function]=None, reset:bool=False)->Iterator[Scope]:
        saved=(self.scope, self.current_function, self.loop_depth)
        self.scope=scope
        if reset:
            self.current_function=function
            self.loop_depth=0
        try:
            yield scope
        finally:
            self.scope, self.current_function, self.loop_depth=saved

    def _analyze_class(self, cls:Class):
        if cls in self.analyzed_classes:
            return
        self.analyzed_classes.add(cls)
        if cls.parent_class is not None:
            self._analyze_class(cls.parent_class)
        with self._entered(cls, reset=True):
            for member in cls.node.members:
                if isinstance(member, VarStmt):
                    self._var_stmt(member)
                elif isinstance(member, FunctionStmt):
                    self.pending.append(self.tree.node_symbols[member])

    def _analyze_function(self, fn:Function):
        if fn in self.analyzed or fn in self.in_progress:
            return
        outer=self._enclosing_function(fn)
        if outer is not None:
            # the outer body declares the variables this one can see
            self._analyze_function(outer)
            if fn in self.analyzed or fn in self.in_progress:
                return
        if fn.owner_class is not None:
            self._analyze_class(fn.owner_class)
        self.in_progress.add(fn)
        try:
            with self._entered(fn, function=fn, reset=True):
                self._stmt(fn.body)
        finally:
            self.in_progress.discard(fn)
        self.analyzed.add(fn)
        if fn.return_type is None:
            fn.return_type=PrimitiveType.VOID
        if fn in self.pending:
            self.pending.remove(fn)

    def _enclosing_function(self, fn:Function)->Optional[Function]:
        scope=fn.enclosing_scope
        while scope is not None:
            if isinstance(scope, Function):
                return scope
            scope=scope.enclosing_scope
        return None

    def _return_type(self, fn:Function)->Any:
        if fn.return_type is not None:
            return fn.return_type
        if fn in self.in_progress:
            return PrimitiveType.ANY
        self._analyze_function(fn)
        return fn.return_type if fn.return_type is not None else PrimitiveType.ANY

    def _stmt(self, stmt:Stmt):
        if isinstance(stmt, ExpressionStmt):
            self._expr(stmt.expression)
        elif isinstance(stmt, VarStmt):
            self._var_stmt(stmt)
        elif isinstance(stmt, BlockStmt):
            with self._entered(self.tree.node_scopes[stmt]):
                for s in stmt.statements:
                    self._stmt(s)
        elif isinstance(stmt, IfStmt):
            self._condition(stmt.condition)
            self._stmt(stmt.then_branch)
            if stmt.else_branch is not None:
                self._stmt(stmt.else_branch)
        elif isinstance(stmt, WhileStmt):
            self._condition(stmt.condition)
            self._loop_body(stmt.body)
        elif isinstance(stmt, ForStmt):
            self._for_stmt(stmt)
        elif isinstance(stmt, ForEachStmt):
            pass  # enhanced for is not supported; it runs as a no-op
        elif isinstance(stmt, BreakStmt):
            if self.loop_depth==0:
                self.error("'break' outside of a loop.", stmt)
        elif isinstance(stmt, ReturnStmt):
            self._return_stmt(stmt)
        elif isinstance(stmt, FunctionStmt):
            self.pending.append(self.tree.node_symbols[stmt])
        elif isinstance(stmt, ClassStmt):
            self._analyze_class(self.tree.node_symbols[stmt])
        else:
            raise TypeError(f"Unknown statement type: {stmt!r}")

    def _loop_body(self, body:Stmt):
        self.loop_depth+=1
        try:
            self._stmt(body)
        finally:
            self.loop_depth-=1

    def _for_stmt(self, stmt:ForStmt):
        with self._entered(self.tree.node_scopes[stmt]):
            if isinstance(stmt.initializer, VarStmt):
                self._var_stmt(stmt.initializer)
            elif stmt.initializer is not None:
                for expr in stmt.initializer:
                    self._expr(expr)
            if stmt.condition is not None:
                self._condition(stmt.condition)
            for expr in stmt.updates:
                self._expr(expr)
            self._loop_body(stmt.body)

    def _condition(self, expr:Expr):
        t=self._expr(expr)
        if t is not PrimitiveType.BOOLEAN and not is_dynamic(t):
            self.error(f"Condition must be boolean, found {type_name(t)}.", expr)

    def _return_stmt(self, stmt:ReturnStmt):
        fn=self.current_function
        value_type=self._expr(stmt.value) if stmt.value is not None else PrimitiveType.VOID
        if fn is None:
            self.error("'return' outside of a function.", stmt)
            return
        if fn.is_constructor:
            if stmt.value is not None:
                self.error("Can't return a value from a constructor.", stmt)
            return
        if fn.node.return_type is None:
            if fn.return_type is None:
                fn.return_type=value_type
            return
        self.tree.node_types[stmt]=fn.return_type
        if fn.return_type is PrimitiveType.VOID and stmt.value is not None:
            self.error(f"Function '{fn.name}' is void and can't return a value.", stmt)
        elif stmt.value is not None and not is_assignable(fn.return_type, value_type):
            self.error(f"Incompatible types: can't return {type_name(value_type)} "
                       f"from function returning {type_name(fn.return_type)}.", stmt)

    def _var_stmt(self, stmt:VarStmt):
        declared=self._resolve_type(stmt.type_ref, self.scope) if stmt.type_ref is not None else None
        if declared is PrimitiveType.VOID:
            self.error("Variables can't be void.", stmt)
            declared=PrimitiveType.ANY
        for declarator in stmt.declarators:
            name=declarator.name.lexeme
            value_type=self._expr(declarator.initializer) if declarator.initializer is not None else None
            if value_type is PrimitiveType.VOID:
                self.error(f"Can't initialize '{name}' with a void value.", declarator)
            if declared is None:
                if value_type in (None, PrimitiveType.NULL, PrimitiveType.VOID):
                    var_type=PrimitiveType.ANY
                else:
                    var_type=value_type
            else:
                var_type=declared
                if value_type is not None and not is_assignable(declared, value_type):
                    self.error(f"Incompatible types: can't assign {type_name(value_type)} "
                               f"to {type_name(declared)}.", declarator)
            if isinstance(Scope.lookup_local(self.scope, name), Variable):
                self.error(f"Variable '{name}' is already declared in this scope.", declarator)
            var=Variable(name, var_type)
            self.scope.declare(var)
            if declarator.initializer is not None:
                self._note_escape(declarator.initializer, self.scope, declarator)
            self.tree.node_symbols[declarator]=var
            self.tree.node_types[declarator]=var_type

    # ---------------------------
    # Pass 2: expressions
    # ---------------------------

    def _expr(self, expr:Expr)->Any:
        t=self._expr_type(expr)
        self.tree.node_types[expr]=t
        return t

    def _expr_type(self, expr:Expr)->Any:
        if isinstance(expr, Literal):
            return expr.type
        if isinstance(expr, Grouping):
            return self._expr(expr.expression)
        if isinstance(expr, Name):
            return self._name(expr)
        if isinstance(expr, Assign):
            return self._assign(expr)
        if isinstance(expr, Binary):
            return self._binary(expr)
        if isinstance(expr, Logical):
            for side in (expr.left, expr.right):
                t=self._expr(side)
                if t is not PrimitiveType.BOOLEAN and not is_dynamic(t):
                    self.error(f"Operator '{expr.operator.lexeme}' needs boolean operands, found {type_name(t)}.", side)
            return PrimitiveType.BOOLEAN
        if isinstance(expr, Unary):
            return self._unary(expr.operator.lexeme, expr.operand)
        if isinstance(expr, Postfix):
            return self._unary(expr.operator.lexeme, expr.operand)
        if isinstance(expr, Call):
            return self._call(expr)
        if isinstance(expr, Get):
            return self._get(expr)
        if isinstance(expr, Invoke):
            return self._invoke(expr)
        if isinstance(expr, (This, Super)):
            return PrimitiveType.ANY
        raise TypeError(f"Unknown expression type: {expr!r}")

    def _reference(self, var:Variable):
        """Record ``var`` as free in every function between here and its declaration."""
        home=var.enclosing_scope
        if home is self.tree.global_scope or isinstance(home, Class):
            return
        scope: Optional[Scope]=self.scope
        while scope is not None:
            if isinstance(scope, Function) and not home.is_within(scope):
                self.tree.free_variables.setdefault(scope, {})[var]=None
            scope=scope.enclosing_scope

    def _note_escape(self, value:Expr, target_scope:Scope, node:Any):
        while isinstance(value, Grouping):
            value=value.expression
        fn=self.tree.symbol_of(value) if isinstance(value, Name) else None
        if isinstance(fn, Function):
            self.escapes.append((node, fn, target_scope))

    def _check_escapes(self):
        """Warn when a stored function can outlive a local it reads.

        Only ``return`` captures free variables, so such a function fails
        once the block declaring the local has exited.
        """
        for node, fn, target_scope in self.escapes:
            for var in self.tree.free_variables_of(fn):
                if not target_scope.is_within(var.enclosing_scope):
                    self.tree.log(f"Function '{fn.name}' can outlive variable '{var.name}' it uses; "
                                  f"only a returned function captures its variables.", node)
                    break

    def _name(self, expr:Name)->Any:
        name=expr.name.lexeme
        symbol=self._lookup(name)
        if isinstance(symbol, Variable):
            self._reference(symbol)
            self.tree.node_symbols[expr]=symbol
            return symbol.type
        if isinstance(symbol, Function):
            self.tree.node_symbols[expr]=symbol
            return FunctionType(symbol)
        if isinstance(symbol, Class):
            self.error(f"Class '{name}' can't be used as a value.", expr)
            return PrimitiveType.ANY
        self.error(f"Undefined variable '{name}'.", expr)
        return PrimitiveType.ANY

    def _assign(self, expr:Assign)->Any:
        target_type=self._expr(expr.target)
        target=self.tree.symbol_of(expr.target)
        if isinstance(expr.target, Name) and not isinstance(target, Variable):
            self.error(f"Can't assign to '{expr.target.name.lexeme}'.", expr)
        value_type=self._expr(expr.value)
        if isinstance(target, Variable):
            self._note_escape(expr.value, target.enclosing_scope, expr)
        if value_type is PrimitiveType.VOID:
            self.error("Can't assign a void value.", expr)
        elif not is_assignable(target_type, value_type):
            self.error(f"Incompatible types: can't assign {type_name(value_type)} "
                       f"to {type_name(target_type)}.", expr)
        return target_type

    def _binary(self, expr:Binary)->Any:
        lt=self._expr(expr.left)
        rt=self._expr(expr.right)
        op=expr.operator.lexeme
        if op in ARITHMETIC:
            if op=="+" and (lt is PrimitiveType.STRING or rt is PrimitiveType.STRING):
                return PrimitiveType.STRING
            if is_numeric(lt) and is_numeric(rt):
                return promote(lt, rt)
            if (is_dynamic(lt) or is_numeric(lt)) and (is_dynamic(rt) or is_numeric(rt)):
                return PrimitiveType.ANY
            self.error(f"Operator '{op}' can't be applied to {type_name(lt)} and {type_name(rt)}.", expr)
            return PrimitiveType.ANY
        if op in ORDERING:
            for t in (lt, rt):
                if not (is_numeric(t) or is_dynamic(t)):
                    self.error(f"Operator '{op}' can't be applied to {type_name(lt)} and {type_name(rt)}.", expr)
                    break
        return PrimitiveType.BOOLEAN

    def _unary(self, op:str, operand:Expr)->Any:
        t=self._expr(operand)
        if op=="!":
            if t is not PrimitiveType.BOOLEAN and not is_dynamic(t):
                self.error(f"Operator '!' needs a boolean operand, found {type_name(t)}.", operand)
            return PrimitiveType.BOOLEAN
        if not (is_numeric(t) or is_dynamic(t)):
            self.error(f"Operator '{op}' needs a numeric operand, found {type_name(t)}.", operand)
            return PrimitiveType.ANY
        if op in ("++", "--") and isinstance(operand, Name) and not isinstance(self.tree.symbol_of(operand), Variable):
            self.error(f"Operator '{op}' needs a variable.", operand)
        return t

    def _select(self, candidates:Sequence[Function], arg_types:List[Any])->Optional[Function]:
        for fn in candidates:
            if fn.parameter_types==arg_types:
                return fn
        for fn in candidates:
            params=fn.parameter_types
            if len(params)==len(arg_types) and all(is_assignable(p, a) for p, a in zip(params, arg_types)):
                return fn
        return None

    def _no_overload(self, name:str, arg_types:List[Any], node:Any):
        shown=", ".join(type_name(t) for t in arg_types)
        self.error(f"No '{name}' accepts arguments ({shown}).", node)

    def _call(self, expr:Call)->Any:
        arg_types=[self._expr(a) for a in expr.arguments]
        name=expr.name.lexeme
        symbol=self._lookup(name)
        if isinstance(symbol, Variable):
            self._reference(symbol)
            self.tree.node_symbols[expr]=symbol
            if isinstance(symbol.type, FunctionType):
                return self._return_type(symbol.type.function)
            if not is_dynamic(symbol.type):
                self.error(f"'{name}' is not a function.", expr)
            return PrimitiveType.ANY
        if isinstance(symbol, Function):
            fn=self._select(self._visible_functions(name), arg_types)
            if fn is None:
                self._no_overload(name, arg_types, expr)
                return PrimitiveType.ANY
            self.tree.node_symbols[expr]=fn
            return self._return_type(fn)
        if isinstance(symbol, Class):
            constructors=symbol.constructors()
            if constructors:
                fn=self._select(constructors, arg_types)
                if fn is None:
                    self._no_overload(name, arg_types, expr)
                    return symbol
                self.tree.node_symbols[expr]=fn
            else:
                if arg_types:
                    self._no_overload(name, arg_types, expr)
                self.tree.node_symbols[expr]=symbol
            return symbol
        # left unresolved: println, or a name only known at run time
        return PrimitiveType.VOID if name=="println" else PrimitiveType.ANY

    def _get(self, expr:Get)->Any:
        owner=self._expr(expr.object)
        name=expr.name.lexeme
        if isinstance(owner, Class):
            self._analyze_class(owner)
            field=owner.lookup_field(name)
            if field is None:
                self.error(f"Class '{owner.name}' has no field '{name}'.", expr)
                return PrimitiveType.ANY
            self.tree.node_symbols[expr]=field
            return field.type
        if not is_dynamic(owner):
            self.error(f"Only instances have fields, found {type_name(owner)}.", expr)
        return PrimitiveType.ANY

    def _invoke(self, expr:Invoke)->Any:
        owner=self._expr(expr.object)
        call=expr.call
        arg_types=[self._expr(a) for a in call.arguments]
        result=PrimitiveType.ANY
        if isinstance(owner, Class):
            self._analyze_class(owner)
            fn=self._select(owner.find_functions(call.name.lexeme), arg_types)
            if fn is not None:
                self.tree.node_symbols[call]=fn
                result=self._return_type(fn)
        elif not is_dynamic(owner):
            self.error(f"Only instances have methods, found {type_name(owner)}.", expr)
        self.tree.node_types[call]=result
        return result


def analyze(program:Program, diagnostics:Optional[Diagnostics]=None)->AnnotatedTree:
    return Analyzer(diagnostics).analyze(program)
