from __future__ import annotations
from dataclasses import dataclass
from typing import Any
import enum


class Flow(enum.Enum):
    NORMAL="normal"
    BREAK="break"
    RETURN="return"

@dataclass(frozen=True)
class Completion:
    """Result of executing a statement: a plain value, a break, or a return carrying a value."""
    flow: Flow
    value: Any=None

    @property
    def stops(self)->bool:
        return self.flow is not Flow.NORMAL

BREAK=Completion(Flow.BREAK)

def normal(value:Any=None)->Completion:
    return Completion(Flow.NORMAL, value)

def returned(value:Any)->Completion:
    return Completion(Flow.RETURN, value)
