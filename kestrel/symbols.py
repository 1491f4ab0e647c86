"""Static symbols and scopes produced by analysis and read by the evaluator.

A Scope is a node of the static scope tree. Program, block and for-loop
scopes are plain Scope objects; a Function and a Class are scopes of their
own. Membership is by symbol identity, so a field redeclared in a subclass
is a different Variable from the ancestor's field of the same name.
"""
from __future__ import annotations
from typing import Any, List, Optional, Sequence

from .types import PrimitiveType


class Symbol:
    def __init__(self, name:str, enclosing_scope:Optional['Scope']):
        self.name=name
        self.enclosing_scope=enclosing_scope

class Scope:
    def __init__(self, name:str, enclosing_scope:Optional['Scope']):
        self.name=name
        self.enclosing_scope=enclosing_scope
        self.symbols: List[Symbol]=[]

    def declare(self, symbol:Symbol):
        symbol.enclosing_scope=self
        self.symbols.append(symbol)

    def contains(self, symbol:Symbol)->bool:
        return symbol.enclosing_scope is self

    def lookup_local(self, name:str)->Optional[Symbol]:
        for symbol in self.symbols:
            if symbol.name==name:
                return symbol
        return None

    def functions_named(self, name:str)->List['Function']:
        return [s for s in self.symbols if isinstance(s, Function) and s.name==name]

    def is_within(self, ancestor:'Scope')->bool:
        scope: Optional[Scope]=self
        while scope is not None:
            if scope is ancestor:
                return True
            scope=scope.enclosing_scope
        return False

    def __repr__(self):
        return f"<scope {self.name}>"

class Variable(Symbol):
    def __init__(self, name:str, type_:Any, enclosing_scope:Optional[Scope]=None):
        super().__init__(name, enclosing_scope)
        self.type=type_

    def __repr__(self):
        owner=self.enclosing_scope.name if self.enclosing_scope else "?"
        return f"<var {owner}.{self.name}>"

class Function(Scope, Symbol):
    """A function or method. Its own scope holds the parameters; the body is a child block."""

    def __init__(self, name:str, enclosing_scope:Optional[Scope], node:Any=None):
        Scope.__init__(self, name, enclosing_scope)
        self.node=node
        self.parameters: List[Variable]=[]
        self.return_type: Any=None   # None until declared or inferred

    @property
    def parameter_types(self)->List[Any]:
        return [p.type for p in self.parameters]

    @property
    def body(self):
        return self.node.body

    @property
    def owner_class(self)->Optional['Class']:
        scope=self.enclosing_scope
        return scope if isinstance(scope, Class) else None

    @property
    def enclosing_class(self)->Optional['Class']:
        """The nearest class this function is nested in, at any depth."""
        scope=self.enclosing_scope
        while scope is not None and not isinstance(scope, Class):
            scope=scope.enclosing_scope
        return scope

    @property
    def is_method(self)->bool:
        cls=self.owner_class
        return cls is not None and cls.name!=self.name

    @property
    def is_constructor(self)->bool:
        cls=self.owner_class
        return cls is not None and cls.name==self.name

    def matches(self, name:str, parameter_types:Sequence[Any])->bool:
        return self.name==name and list(parameter_types)==self.parameter_types

    def __repr__(self):
        return f"<function {self.name}>"

class Class(Scope, Symbol):
    def __init__(self, name:str, enclosing_scope:Optional[Scope], node:Any=None):
        Scope.__init__(self, name, enclosing_scope)
        self.node=node
        self.parent_class: Optional[Class]=None

    def ancestry(self)->List['Class']:
        """Ancestor chain, root first, this class last."""
        chain=[]
        cls: Optional[Class]=self
        while cls is not None:
            chain.append(cls)
            cls=cls.parent_class
        chain.reverse()
        return chain

    def fields(self)->List[Variable]:
        return [s for s in self.symbols if isinstance(s, Variable)]

    def methods(self)->List[Function]:
        return [s for s in self.symbols if isinstance(s, Function)]

    def constructors(self)->List[Function]:
        return [m for m in self.methods() if m.name==self.name]

    def lookup_local(self, name:str)->Optional[Symbol]:
        # members are visible through the whole ancestor chain
        cls: Optional[Class]=self
        while cls is not None:
            symbol=Scope.lookup_local(cls, name)
            if symbol is not None:
                return symbol
            cls=cls.parent_class
        return None

    def lookup_field(self, name:str)->Optional[Variable]:
        """The most derived field called ``name``."""
        cls: Optional[Class]=self
        while cls is not None:
            for field in cls.fields():
                if field.name==name:
                    return field
            cls=cls.parent_class
        return None

    def find_functions(self, name:str)->List[Function]:
        """Methods called ``name``, most derived first; overridden signatures are hidden."""
        found: List[Function]=[]
        cls: Optional[Class]=self
        while cls is not None:
            for method in cls.functions_named(name):
                if not any(f.parameter_types==method.parameter_types for f in found):
                    found.append(method)
            cls=cls.parent_class
        return found

    def get_function(self, name:str, parameter_types:Sequence[Any])->Optional[Function]:
        cls: Optional[Class]=self
        while cls is not None:
            for method in cls.methods():
                if method.matches(name, parameter_types):
                    return method
            cls=cls.parent_class
        return None

    def __repr__(self):
        return f"<class {self.name}>"

BUILTIN_TYPES={
    "int": PrimitiveType.INTEGER,
    "long": PrimitiveType.LONG,
    "short": PrimitiveType.SHORT,
    "float": PrimitiveType.FLOAT,
    "double": PrimitiveType.DOUBLE,
    "boolean": PrimitiveType.BOOLEAN,
    "string": PrimitiveType.STRING,
    "void": PrimitiveType.VOID,
    "function": PrimitiveType.ANY,
}
