"""Kestrel: a small class-based scripting language and its tree-walking evaluator."""
from .analyzer import Analyzer, AnnotatedTree
from .cli import compile_source, run_file, run_source
from .diagnostics import Diagnostic, Diagnostics
from .errors import (
    InternalError, KestrelError, ParseError, ScanError, ScriptRuntimeError,
    SemanticError,
)
from .evaluator import EvalContext, Evaluator

__version__="0.1.0"
