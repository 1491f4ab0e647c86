"""Numeric operations, dispatched by (operator, target type).

Each numeric type gets one entry per operator; operands are first
converted to the target representation, so the result always has the
representation of the statically chosen type. Integer results wrap like
fixed-width two's complement.
"""
from __future__ import annotations
from typing import Any, Callable, Dict, Tuple
import math
import operator

from .types import PrimitiveType, promote
from .values import Float32, is_number, to_float32, to_text

INT_BITS={
    PrimitiveType.SHORT:16,
    PrimitiveType.INTEGER:32,
    PrimitiveType.LONG:64,
}

def wrap(value:int, bits:int)->int:
    mask=(1<<bits)-1
    value&=mask
    if value>=1<<(bits-1):
        value-=1<<bits
    return value

def _float_to_int(value:float, bits:int)->int:
    # saturating, truncating conversion
    if math.isnan(value):
        return 0
    low, high=-(1<<(bits-1)), (1<<(bits-1))-1
    if value<=low:
        return low
    if value>=high:
        return high
    return int(value)

def coerce(value:Any, target:PrimitiveType)->Any:
    """Convert a numeric value to the representation of ``target``."""
    if target in INT_BITS:
        bits=INT_BITS[target]
        if isinstance(value, float):
            return _float_to_int(value, bits)
        return wrap(int(value), bits)
    if target is PrimitiveType.FLOAT:
        return value if isinstance(value, Float32) else to_float32(float(value))
    if target is PrimitiveType.DOUBLE:
        return float(value)
    return value

def runtime_type(value:Any)->PrimitiveType:
    if isinstance(value, bool):
        return PrimitiveType.BOOLEAN
    if isinstance(value, int):
        return PrimitiveType.INTEGER if wrap(value, 32)==value else PrimitiveType.LONG
    if isinstance(value, Float32):
        return PrimitiveType.FLOAT
    if isinstance(value, float):
        return PrimitiveType.DOUBLE
    if isinstance(value, str):
        return PrimitiveType.STRING
    return PrimitiveType.ANY

def _int_div(a:int, b:int)->int:
    # truncates toward zero; ZeroDivisionError propagates
    q=abs(a)//abs(b)
    return q if (a<0)==(b<0) else -q

def _float_div(a:float, b:float)->float:
    if b==0:
        if a==0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a)*math.copysign(1.0, b)
    return a/b

Binary=Callable[[Any, Any], Any]

def _arithmetic(fn:Binary, target:PrimitiveType)->Binary:
    def apply(a, b):
        return coerce(fn(coerce(a, target), coerce(b, target)), target)
    return apply

def _comparison(fn:Binary, target:PrimitiveType)->Binary:
    def apply(a, b):
        return fn(coerce(a, target), coerce(b, target))
    return apply

ARITHMETIC_OPERATORS={
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
}

COMPARISON_OPERATORS={
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

OPERATIONS: Dict[Tuple[str, PrimitiveType], Binary]={}

for _type in (*INT_BITS, PrimitiveType.FLOAT, PrimitiveType.DOUBLE):
    for _symbol, _fn in ARITHMETIC_OPERATORS.items():
        OPERATIONS[(_symbol, _type)]=_arithmetic(_fn, _type)
    OPERATIONS[("/", _type)]=_arithmetic(_int_div if _type in INT_BITS else _float_div, _type)
    for _symbol, _fn in COMPARISON_OPERATORS.items():
        OPERATIONS[(_symbol, _type)]=_comparison(_fn, _type)

OPERATIONS[("+", PrimitiveType.STRING)]=lambda a, b: to_text(a)+to_text(b)

def negate(value:Any, target:PrimitiveType)->Any:
    return coerce(-coerce(value, target), target)

def lookup(symbol:str, target:Any, left:Any, right:Any)->Binary:
    """The operation for ``symbol`` on ``target``; dynamic targets use the operands' runtime types."""
    operation=OPERATIONS.get((symbol, target))
    if operation is not None:
        return operation
    if target is PrimitiveType.ANY or target is None:
        if symbol=="+" and (isinstance(left, str) or isinstance(right, str)):
            return OPERATIONS[("+", PrimitiveType.STRING)]
        if is_number(left) and is_number(right):
            return OPERATIONS[(symbol, promote(runtime_type(left), runtime_type(right)))]
    raise KeyError((symbol, target))
