import io
import textwrap

import pytest

from kestrel.analyzer import Analyzer
from kestrel.cli import run_source
from kestrel.diagnostics import Diagnostics
from kestrel.lexer import Scanner
from kestrel.parser import Parser


@pytest.fixture
def run():
    """Run a Kestrel program and return its printed lines."""
    def _run(source, diagnostics=None):
        out=io.StringIO()
        run_source(textwrap.dedent(source), out=out, diagnostics=diagnostics)
        return out.getvalue().splitlines()
    return _run


@pytest.fixture
def analyze():
    """Analyze a program without evaluating it; returns (program, tree)."""
    def _analyze(source):
        program=Parser(Scanner(textwrap.dedent(source)).scan_tokens()).parse()
        tree=Analyzer(Diagnostics()).analyze(program)
        return program, tree
    return _analyze
