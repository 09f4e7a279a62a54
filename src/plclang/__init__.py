"""PLC language core: parser, analyzer, interpreter and Java generator."""

from __future__ import annotations

from .analyze import Analyzer, analyze as analyze_program
from .ast import Program
from .emit import to_java
from .errors import (
    PlcError as PlcError,
    RuntimeFault as RuntimeFault,
    SemanticError as SemanticError,
)
from .parse import parse_source
from .registry import TypeRegistry as TypeRegistry
from .runtime import Interpreter as Interpreter
from .scope import Scope as Scope
from .values import Value


def parse(source: str) -> Program:
    """Parse PLC source code into a Program AST."""
    return parse_source(source)


def analyze(program: Program, registry: TypeRegistry | None = None) -> Analyzer:
    """Analyze a Program in place, annotating types and bindings."""
    return analyze_program(program, registry)


def check(source: str) -> Program:
    """Parse and analyze PLC source. Raises on the first error."""
    program = parse(source)
    analyze(program)
    return program


def run(source: str, registry: TypeRegistry | None = None) -> Value:
    """Parse, analyze and run PLC source; returns main's value."""
    program = parse(source)
    analyze_program(program, registry)
    return Interpreter(registry).run(program)


def emit(program: Program) -> str:
    """Render an analyzed Program as Java source."""
    return to_java(program)
