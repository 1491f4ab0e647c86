from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional
import enum


class PrimitiveType(enum.Enum):
    SHORT="short"
    INTEGER="int"
    LONG="long"
    FLOAT="float"
    DOUBLE="double"
    BOOLEAN="boolean"
    STRING="string"
    NULL="null"
    VOID="void"
    ANY="any"   # unknown until run time

    @property
    def is_numeric(self)->bool:
        return self in NUMERIC_RANK

    def __str__(self):
        return self.value

# widening order used by promote()
NUMERIC_RANK={
    PrimitiveType.SHORT:0,
    PrimitiveType.INTEGER:1,
    PrimitiveType.LONG:2,
    PrimitiveType.FLOAT:3,
    PrimitiveType.DOUBLE:4,
}

@dataclass(frozen=True)
class FunctionType:
    """Static type of a function value. Identity of the function is the type."""
    function: Any

    def __str__(self):
        return f"function {self.function.name}"

def is_numeric(t:Any)->bool:
    return isinstance(t, PrimitiveType) and t.is_numeric

def is_dynamic(t:Any)->bool:
    return t is PrimitiveType.ANY or t is None

def promote(t1:Any, t2:Any)->Any:
    """Numeric promotion for comparisons and equality: widen to the larger type.

    Non-numeric pairs are returned unchanged when identical; otherwise the
    first non-dynamic operand type wins so callers can fall back to
    reference equality.
    """
    if is_numeric(t1) and is_numeric(t2):
        return t1 if NUMERIC_RANK[t1]>=NUMERIC_RANK[t2] else t2
    if t1 is PrimitiveType.STRING or t2 is PrimitiveType.STRING:
        if is_dynamic(t1) or is_dynamic(t2) or t1==t2:
            return PrimitiveType.STRING
    if is_dynamic(t1) and is_dynamic(t2):
        return PrimitiveType.ANY
    if is_dynamic(t1):
        return PrimitiveType.ANY if is_numeric(t2) else t2
    if is_dynamic(t2):
        return PrimitiveType.ANY if is_numeric(t1) else t1
    return t1

def type_name(t:Optional[Any])->str:
    if t is None:
        return "any"
    name=getattr(t, "name", None)
    if isinstance(name, str) and not isinstance(t, PrimitiveType):
        return name
    return str(t)

def is_subclass(cls:Any, ancestor:Any)->bool:
    while cls is not None:
        if cls is ancestor:
            return True
        cls=getattr(cls, "parent_class", None)
    return False

def is_assignable(target:Any, value:Any)->bool:
    """Loose assignment compatibility checked during analysis."""
    if is_dynamic(target) or is_dynamic(value) or target==value:
        return True
    if is_numeric(target) and is_numeric(value):
        return True
    if value is PrimitiveType.NULL:
        return not isinstance(target, PrimitiveType) or target is PrimitiveType.STRING
    if isinstance(target, FunctionType) and isinstance(value, FunctionType):
        return True
    if not isinstance(target, (PrimitiveType, FunctionType)) and not isinstance(value, (PrimitiveType, FunctionType)):
        return is_subclass(value, target)
    return False
