"""PLC AST — syntax tree node definitions.

The parser produces these nodes; the analyzer annotates them in place.

Annotation slots (`typ` on expressions, `variable` / `function` on the
binding nodes) are write-once: `set_slot` fills an empty slot, accepts a
repeated write of an equal value, and rejects anything else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from .errors import SlotConflictError

if TYPE_CHECKING:
    from .registry import Type
    from .scope import Function, Variable


# ============================================================
# POSITION
# ============================================================


@dataclass
class Pos:
    """Source position, 1-indexed."""

    line: int
    col: int


def set_slot(node: Node, slot: str, value: object) -> None:
    """Write an annotation slot exactly once."""
    current = getattr(node, slot)
    if current is None:
        setattr(node, slot, value)
        return
    if current is value or current == value:
        return
    raise SlotConflictError(
        type(node).__name__ + "." + slot + " already holds " + repr(current) + ", refusing " + repr(value),
        getattr(node, "pos", None),
    )


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass
class Expr:
    """Base for all expressions.

    Invariants (post-analysis):
    - typ is set
    """

    pos: Pos | None = field(default=None, kw_only=True, compare=False)
    typ: Type | None = field(default=None, kw_only=True, compare=False, repr=False)


@dataclass
class Literal(Expr):
    """Base for literal expressions."""


@dataclass
class NilLit(Literal):
    """NIL."""

    @property
    def value(self) -> None:
        return None


@dataclass
class BoolLit(Literal):
    """TRUE or FALSE."""

    value: bool


@dataclass
class IntLit(Literal):
    """Integer literal, unbounded until analysis range-checks it."""

    value: int


@dataclass
class DecimalLit(Literal):
    """Decimal literal, exact as written."""

    value: Decimal


@dataclass
class CharLit(Literal):
    """Character literal with escapes resolved.

    Invariants:
    - len(value) == 1
    """

    value: str


@dataclass
class StringLit(Literal):
    """String literal with escapes resolved."""

    value: str


@dataclass
class Group(Expr):
    """( inner )."""

    expr: Expr


@dataclass
class Binary(Expr):
    """left op right."""

    op: str
    left: Expr
    right: Expr


@dataclass
class Access(Expr):
    """name or receiver.name."""

    receiver: Expr | None
    name: str
    variable: Variable | None = field(default=None, kw_only=True, compare=False, repr=False)


@dataclass
class Call(Expr):
    """name(args) or receiver.name(args)."""

    receiver: Expr | None
    name: str
    args: list[Expr]
    function: Function | None = field(default=None, kw_only=True, compare=False, repr=False)


# ============================================================
# STATEMENTS
# ============================================================


@dataclass
class Stmt:
    """Base for all statements."""

    pos: Pos | None = field(default=None, kw_only=True, compare=False)


@dataclass
class ExpressionStmt(Stmt):
    """Bare expression as statement."""

    expr: Expr


@dataclass
class DeclarationStmt(Stmt):
    """LET name: Type = value;  (type and value both optional)."""

    name: str
    type_name: str | None
    value: Expr | None
    variable: Variable | None = field(default=None, kw_only=True, compare=False, repr=False)


@dataclass
class AssignmentStmt(Stmt):
    """receiver = value;."""

    receiver: Expr
    value: Expr


@dataclass
class IfStmt(Stmt):
    """IF cond DO ... ELSE ... END."""

    cond: Expr
    then_body: list[Stmt]
    else_body: list[Stmt]


@dataclass
class ForStmt(Stmt):
    """FOR name IN iterable DO ... END."""

    name: str
    iterable: Expr
    body: list[Stmt]


@dataclass
class WhileStmt(Stmt):
    """WHILE cond DO ... END."""

    cond: Expr
    body: list[Stmt]


@dataclass
class ReturnStmt(Stmt):
    """RETURN value;."""

    value: Expr


# ============================================================
# DECLARATIONS
# ============================================================


@dataclass
class Field:
    """LET name: Type = value;  at the top level."""

    name: str
    type_name: str
    value: Expr | None
    pos: Pos | None = field(default=None, kw_only=True, compare=False)
    variable: Variable | None = field(default=None, kw_only=True, compare=False, repr=False)


@dataclass
class Method:
    """DEF name(params): ReturnType DO ... END."""

    name: str
    params: list[str]
    param_type_names: list[str]
    return_type_name: str | None
    body: list[Stmt]
    pos: Pos | None = field(default=None, kw_only=True, compare=False)
    function: Function | None = field(default=None, kw_only=True, compare=False, repr=False)


@dataclass
class Program:
    """Top-level source: fields, then methods."""

    fields: list[Field]
    methods: list[Method]


Node = Program | Field | Method | Stmt | Expr
