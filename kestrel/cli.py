from __future__ import annotations
from typing import List, Optional, TextIO
import argparse
import json
import logging
import sys

from .analyzer import Analyzer, AnnotatedTree
from .diagnostics import Diagnostics
from .errors import KestrelError, ScriptRuntimeError, SemanticError
from .evaluator import EvalContext, Evaluator
from .lexer import Scanner
from .parser import Parser

logger = logging.getLogger(__name__)

DEFAULT_RECURSION_LIMIT=10000

# ---------------------------
# Runner / CLI
# ---------------------------

def compile_source(source:str, diagnostics:Optional[Diagnostics]=None)->AnnotatedTree:
    diagnostics=diagnostics if diagnostics is not None else Diagnostics()
    scanner=Scanner(source)
    tokens=scanner.scan_tokens()
    parser=Parser(tokens)
    program=parser.parse()
    tree=Analyzer(diagnostics).analyze(program)
    if tree.has_errors:
        raise SemanticError(diagnostics.errors)
    return tree

def run_source(source:str, out:Optional[TextIO]=None, diagnostics:Optional[Diagnostics]=None,
               recursion_limit:Optional[int]=DEFAULT_RECURSION_LIMIT)->Diagnostics:
    """Compile and run one program.

    Each script call nests a few host frames, so the host recursion limit is
    set to ``recursion_limit`` (at least 1000) first. The limit is process
    wide; pass None to leave it alone.
    """
    if recursion_limit is not None:
        sys.setrecursionlimit(max(recursion_limit, 1000))
    diagnostics=diagnostics if diagnostics is not None else Diagnostics()
    tree=compile_source(source, diagnostics)
    ctx=EvalContext(diagnostics, out)
    try:
        Evaluator(tree).run(ctx)
    except RecursionError:
        raise ScriptRuntimeError(None, "Stack overflow.") from None
    return diagnostics

def run_file(path:str, out:Optional[TextIO]=None, diagnostics:Optional[Diagnostics]=None,
             recursion_limit:Optional[int]=DEFAULT_RECURSION_LIMIT)->Diagnostics:
    with open(path, "r", encoding="utf-8") as f:
        source=f.read()
    return run_source(source, out=out, diagnostics=diagnostics, recursion_limit=recursion_limit)

def write_diagnostics(path:str, diagnostics:Diagnostics):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(diagnostics.to_json(), f, indent=2)

def repl(recursion_limit:Optional[int]=DEFAULT_RECURSION_LIMIT):
    print("Kestrel REPL. Each line runs as its own program. Ctrl+C to exit.")
    while True:
        try:
            line=input("k> ")
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not line.strip():
            continue
        try:
            run_source(line+"\n", recursion_limit=recursion_limit)
        except KestrelError as e:
            print(e, file=sys.stderr)

def main(argv:Optional[List[str]]=None)->int:
    p=argparse.ArgumentParser(prog="kestrel", description="Run Kestrel programs.")
    p.add_argument("file", nargs="?", help="Path to the script to run.")
    p.add_argument("--repl", action="store_true", help="Start a REPL.")
    p.add_argument("--diagnostics", dest="diagnostics", help="Write diagnostics JSON to this file.")
    p.add_argument("--recursion-limit", dest="recursion_limit", type=int, default=DEFAULT_RECURSION_LIMIT,
                   help="Host recursion limit for deeply recursive scripts.")
    p.add_argument("-v", "--verbose", action="store_true", help="Log evaluation at DEBUG level.")
    args=p.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)
    diagnostics=Diagnostics()
    try:
        if args.repl or not args.file:
            repl(args.recursion_limit)
            return 0
        run_file(args.file, diagnostics=diagnostics, recursion_limit=args.recursion_limit)
        return 0
    except KestrelError as e:
        print(e, file=sys.stderr)
        return 65
    except Exception as e:
        logger.debug("internal error", exc_info=True)
        print("Internal error:", e, file=sys.stderr)
        return 70
    finally:
        if args.diagnostics:
            write_diagnostics(args.diagnostics, diagnostics)

if __name__ == "__main__":
    raise SystemExit(main())
