"""Syntax tree.

Nodes compare and hash by identity (``eq=False``): the analysis result is
keyed by node, so two structurally equal expressions are still different
keys.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from .lexer import Token
from .types import PrimitiveType


class Expr: pass
class Stmt: pass

@dataclass(eq=False)
class TypeRef:
    name: Token
    line: int=0

@dataclass(eq=False)
class Literal(Expr):
    value: Any
    type: PrimitiveType
    line: int=0

@dataclass(eq=False)
class Grouping(Expr):
    expression: Expr
    line: int=0

@dataclass(eq=False)
class Name(Expr):
    name: Token
    line: int=0

@dataclass(eq=False)
class Unary(Expr):
    operator: Token
    operand: Expr
    line: int=0

@dataclass(eq=False)
class Postfix(Expr):
    operand: Expr
    operator: Token
    line: int=0

@dataclass(eq=False)
class Binary(Expr):
    left: Expr
    operator: Token
    right: Expr
    line: int=0

@dataclass(eq=False)
class Logical(Expr):
    left: Expr
    operator: Token
    right: Expr
    line: int=0

@dataclass(eq=False)
class Assign(Expr):
    target: Expr
    value: Expr
    line: int=0

@dataclass(eq=False)
class Call(Expr):
    name: Token
    arguments: List[Expr]
    line: int=0

@dataclass(eq=False)
class Get(Expr):
    object: Expr
    name: Token
    line: int=0

@dataclass(eq=False)
class Invoke(Expr):
    object: Expr
    call: Call
    line: int=0

@dataclass(eq=False)
class This(Expr):
    keyword: Token
    line: int=0

@dataclass(eq=False)
class Super(Expr):
    keyword: Token
    line: int=0

@dataclass(eq=False)
class ExpressionStmt(Stmt):
    expression: Expr
    line: int=0

@dataclass(eq=False)
class Declarator:
    name: Token
    initializer: Optional[Expr]
    line: int=0

@dataclass(eq=False)
class VarStmt(Stmt):
    type_ref: Optional[TypeRef]   # None for 'var'
    declarators: List[Declarator]
    line: int=0

@dataclass(eq=False)
class BlockStmt(Stmt):
    statements: List[Stmt]
    line: int=0

@dataclass(eq=False)
class IfStmt(Stmt):
    condition: Expr
    then_branch: Stmt
    else_branch: Optional[Stmt]
    line: int=0

@dataclass(eq=False)
class WhileStmt(Stmt):
    condition: Expr
    body: Stmt
    line: int=0

@dataclass(eq=False)
class ForStmt(Stmt):
    initializer: Union[VarStmt, List[Expr], None]
    condition: Optional[Expr]
    updates: List[Expr]
    body: Stmt
    line: int=0

@dataclass(eq=False)
class ForEachStmt(Stmt):
    type_ref: Optional[TypeRef]
    name: Token
    iterable: Expr
    body: Stmt
    line: int=0

@dataclass(eq=False)
class BreakStmt(Stmt):
    keyword: Token
    line: int=0

@dataclass(eq=False)
class ReturnStmt(Stmt):
    keyword: Token
    value: Optional[Expr]
    line: int=0

@dataclass(eq=False)
class Param:
    type_ref: Optional[TypeRef]
    name: Token
    line: int=0

@dataclass(eq=False)
class FunctionStmt(Stmt):
    return_type: Optional[TypeRef]
    name: Token
    params: List[Param]
    body: BlockStmt
    line: int=0

@dataclass(eq=False)
class ClassStmt(Stmt):
    name: Token
    superclass: Optional[Token]
    members: List[Stmt]
    line: int=0

    @property
    def fields(self)->List[VarStmt]:
        return [m for m in self.members if isinstance(m, VarStmt)]

    @property
    def methods(self)->List[FunctionStmt]:
        return [m for m in self.members if isinstance(m, FunctionStmt)]

@dataclass(eq=False)
class Program:
    statements: List[Stmt]
    line: int=1
