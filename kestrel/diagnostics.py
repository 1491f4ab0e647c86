from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional
import enum
import logging

logger = logging.getLogger(__name__)


class Severity(enum.Enum):
    WARNING="warning"
    ERROR="error"

@dataclass
class Diagnostic:
    severity: Severity
    message: str
    line: Optional[int]

    def to_json(self)->Dict[str, Any]:
        data=asdict(self)
        data["severity"]=self.severity.value
        return data

    def __str__(self):
        where=f"[line {self.line}] " if self.line is not None else ""
        return f"{where}{self.severity.value}: {self.message}"

class Diagnostics:
    """Collects messages from analysis and evaluation. Logging never aborts a run."""

    def __init__(self):
        self.entries: List[Diagnostic]=[]

    def log(self, message:str, node:Any=None):
        self._record(Severity.WARNING, message, node)

    def error(self, message:str, node:Any=None):
        self._record(Severity.ERROR, message, node)

    def _record(self, severity:Severity, message:str, node:Any):
        entry=Diagnostic(severity, message, getattr(node, "line", None))
        self.entries.append(entry)
        if severity is Severity.ERROR:
            logger.error("%s", entry)
        else:
            logger.warning("%s", entry)

    @property
    def errors(self)->List[Diagnostic]:
        return [d for d in self.entries if d.severity is Severity.ERROR]

    @property
    def warnings(self)->List[Diagnostic]:
        return [d for d in self.entries if d.severity is Severity.WARNING]

    def has_errors(self)->bool:
        return any(d.severity is Severity.ERROR for d in self.entries)

    def to_json(self)->List[Dict[str, Any]]:
        return [d.to_json() for d in self.entries]

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)
