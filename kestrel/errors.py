from __future__ import annotations
from typing import List, Optional


class KestrelError(Exception):
    """Base class for faults reported to the script author."""
    pass

class ScanError(KestrelError):
    pass

class ParseError(KestrelError):
    pass

class SemanticError(KestrelError):
    def __init__(self, diagnostics:List):
        self.diagnostics=list(diagnostics)
        super().__init__("\n".join(str(d) for d in self.diagnostics))

class ScriptRuntimeError(KestrelError):
    def __init__(self, line:Optional[int], message:str):
        super().__init__(message)
        self.line=line
        self.message=message
    def __str__(self):
        if self.line is None:
            return f"RuntimeError: {self.message}"
        return f"[line {self.line}] RuntimeError: {self.message}"

class InternalError(Exception):
    """A broken evaluator or analysis invariant. Never recovered from."""
    pass
