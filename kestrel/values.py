"""Runtime values.

Primitives are plain Python values: ``int`` for the 16/32/64-bit integer
types, ``float`` for 64-bit floats, ``Float32`` for 32-bit floats, ``str``
and ``bool``. Heap objects are value containers: class instances and
closure instances both store variables keyed by Variable identity.
"""
from __future__ import annotations
from typing import Any, Dict, Protocol
import math
import struct


class NullValue:
    """The language's null. Distinct from Python ``None`` (no value)."""
    _instance=None

    def __new__(cls):
        if cls._instance is None:
            cls._instance=super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "null"

NULL=NullValue()

def to_float32(value:float)->'Float32':
    if math.isnan(value) or math.isinf(value):
        return Float32(value)
    try:
        packed=struct.pack("f", value)
    except OverflowError:
        return Float32(math.copysign(math.inf, value))
    return Float32(struct.unpack("f", packed)[0])

class Float32(float):
    """A float already rounded to single precision; prints in shortest form."""

    def __repr__(self):
        if math.isnan(self) or math.isinf(self):
            return float.__repr__(self)
        text=float.__repr__(self)
        for digits in range(1, 10):
            candidate=f"{float(self):.{digits}g}"
            if to_float32(float(candidate))==self:
                text=candidate
                break
        if "e" in text:
            mantissa, exponent=text.split("e")
            text=f"{float(mantissa)!r}e{int(exponent)}"
        elif "." not in text:
            text+=".0"
        return text

    __str__=__repr__

class ValueContainer(Protocol):
    def get(self, variable:Any)->Any: ...
    def set(self, variable:Any, value:Any): ...
    def holds(self, variable:Any)->bool: ...

class LocalStorage:
    """Fresh storage for one block, for-loop or program scope instantiation."""

    def __init__(self):
        self.fields: Dict[Any, Any]={}

    def get(self, variable:Any)->Any:
        return self.fields.get(variable, NULL)

    def set(self, variable:Any, value:Any):
        self.fields[variable]=value

    def holds(self, variable:Any)->bool:
        return variable in self.fields

class ClassInstance:
    def __init__(self, type_:Any, obj_id:int):
        self.type=type_
        self.id=obj_id
        self.fields: Dict[Any, Any]={}

    def get(self, variable:Any)->Any:
        return self.fields.get(variable, NULL)

    def set(self, variable:Any, value:Any):
        self.fields[variable]=value

    def holds(self, variable:Any)->bool:
        return variable in self.fields

    def __repr__(self):
        return f"<{self.type.name}#{self.id}>"

class ClosureInstance:
    """A function paired with its captured free variables (and, during a call, its arguments)."""

    def __init__(self, function:Any):
        self.function=function
        self.fields: Dict[Any, Any]={}
        self.receiver: Any=None   # instance a function nested in a method was made under

    def get(self, variable:Any)->Any:
        return self.fields.get(variable, NULL)

    def set(self, variable:Any, value:Any):
        self.fields[variable]=value

    def holds(self, variable:Any)->bool:
        return variable in self.fields

    def __repr__(self):
        return f"<fn {self.function.name}>"

def is_number(value:Any)->bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)

def to_text(value:Any)->str:
    if value is None or value is NULL:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value>0 else "-Infinity"
        return repr(value)
    return str(value)
