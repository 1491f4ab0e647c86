"""Frame Chain: lexical scoping over the dynamic call stack.

Every block entry, for-loop and invocation pushes a Frame. Its parent is
fixed at push time by comparing scopes, so the chain follows the static
scope tree rather than the caller. Invocation frames also carry the
receiver instance the call was made on; block frames inherit it.
"""
from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional

from .errors import InternalError
from .values import ClassInstance, ValueContainer


class Frame:
    def __init__(self, scope:Any, container:ValueContainer, receiver:Optional[ClassInstance]=None):
        self.scope=scope
        self.container=container
        self.receiver=receiver
        self.parent: Optional[Frame]=None

    def holds(self, variable:Any)->bool:
        return self.scope.contains(variable) or self.container.holds(variable)

    def __repr__(self):
        return f"<frame {self.scope.name}>"

@dataclass
class LValue:
    """A settable reference to a variable's storage. Lives for one evaluation step."""
    container: ValueContainer
    variable: Any

    def get(self)->Any:
        return self.container.get(self.variable)

    def set(self, value:Any):
        self.container.set(self.variable, value)

class FrameChain:
    def __init__(self):
        self.stack: List[Frame]=[]

    @property
    def top(self)->Optional[Frame]:
        return self.stack[-1] if self.stack else None

    @property
    def receiver(self)->Optional[ClassInstance]:
        top=self.top
        return top.receiver if top is not None else None

    def __len__(self):
        return len(self.stack)

    def push(self, frame:Frame):
        top=self.top
        if top is not None:
            if frame.scope.enclosing_scope is top.scope:
                frame.parent=top
            else:
                frame.parent=top.parent
            if frame.receiver is None:
                frame.receiver=top.receiver
        self.stack.append(frame)

    def pop(self)->Frame:
        if not self.stack:
            raise InternalError("pop from an empty frame chain")
        return self.stack.pop()

    @contextmanager
    def entered(self, frame:Frame)->Iterator[Frame]:
        self.push(frame)
        try:
            yield frame
        finally:
            self.pop()

    def find(self, variable:Any)->Optional[Any]:
        frame=self.top
        while frame is not None:
            if frame.holds(variable):
                return frame.container
            if frame.receiver is not None and frame.receiver.holds(variable):
                return frame.receiver
            frame=frame.parent
        # a closure invoked off its lexical path still reaches live frames of
        # its defining scopes, program-level variables included
        for frame in reversed(self.stack):
            if frame.holds(variable):
                return frame.container
        return None

    def resolve(self, variable:Any)->Any:
        """The container that stores ``variable`` for the current top frame."""
        container=self.find(variable)
        if container is None:
            raise InternalError(f"unresolved variable symbol {variable!r}")
        return container

    def lvalue_of(self, variable:Any)->LValue:
        return LValue(self.resolve(variable), variable)
