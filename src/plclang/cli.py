"""PLC CLI — run or translate .plc files."""

from __future__ import annotations

import sys

from . import analyze, parse
from .emit import to_java
from .errors import GenerateError, ParseError, RuntimeFault, SemanticError, TokenizeError
from .runtime import Interpreter
from .values import VInt


USAGE: str = """\
plc [OPTIONS] FILE

Analyze and run a PLC program. The exit status is main's result.

Options:
  --check     Stop after static analysis
  --emit      Print the program as Java source instead of running it
  --no-check  Run without static analysis
  --help      Show this help message
"""


def main(argv: list[str] | None = None) -> int:
    args = argv if argv is not None else sys.argv[1:]
    filepath: str = ""
    mode: str = "run"
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            return 0
        elif arg in ("--check", "--emit", "--no-check"):
            if mode != "run":
                print("plc: --" + mode + " and " + arg + " are mutually exclusive", file=sys.stderr)
                return 2
            mode = arg[2:]
            i += 1
        elif arg.startswith("-"):
            print("plc: unknown flag '" + arg + "'", file=sys.stderr)
            return 2
        elif filepath == "":
            filepath = arg
            i += 1
        else:
            print("plc: unexpected argument '" + arg + "'", file=sys.stderr)
            return 2
    if filepath == "":
        print("plc: missing file argument", file=sys.stderr)
        return 2

    try:
        with open(filepath, "rb") as f:
            raw = f.read()
    except FileNotFoundError:
        print("plc: " + filepath + ": No such file or directory", file=sys.stderr)
        return 1
    except OSError as e:
        print("plc: " + filepath + ": " + str(e), file=sys.stderr)
        return 1
    try:
        source = raw.decode("utf-8")
    except ValueError:
        print("plc: " + filepath + ": invalid utf-8", file=sys.stderr)
        return 1

    try:
        program = parse(source)
    except (TokenizeError, ParseError) as e:
        print("plc: parse error: " + str(e), file=sys.stderr)
        return 1

    if mode != "no-check":
        try:
            analyze(program)
        except SemanticError as e:
            print("plc: semantic error: " + str(e), file=sys.stderr)
            return 1
    if mode == "check":
        return 0
    if mode == "emit":
        try:
            sys.stdout.write(to_java(program))
        except GenerateError as e:
            print("plc: generate error: " + str(e), file=sys.stderr)
            return 1
        return 0

    try:
        result = Interpreter(out=sys.stdout).run(program)
    except RuntimeFault as e:
        print("plc: runtime error: " + str(e), file=sys.stderr)
        return 1
    if isinstance(result, VInt):
        return result.value
    return 0


if __name__ == "__main__":
    sys.exit(main())
