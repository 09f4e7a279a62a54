"""PLC diagnostics — the semantic and runtime error taxonomies."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .ast import Pos


class PlcError(Exception):
    """Base error for PLC tokenizing, parsing, analysis and evaluation."""

    def __init__(self, msg: str, pos: Pos | None = None):
        if pos is None:
            super().__init__(msg)
        else:
            super().__init__(msg + " at line " + str(pos.line) + " col " + str(pos.col))
        self.msg: str = msg
        self.pos: Pos | None = pos


# ============================================================
# FRONT END
# ============================================================


class TokenizeError(PlcError):
    """Error during tokenization."""


class ParseError(PlcError):
    """Parse error with location info."""


class GenerateError(PlcError):
    """The generator met a tree that was not fully analyzed."""


# ============================================================
# STATIC ANALYSIS
# ============================================================


class SemanticError(PlcError):
    """Static error raised by the analyzer."""


class UnknownTypeError(SemanticError):
    pass


class MissingMainError(SemanticError):
    pass


class DeclarationError(SemanticError):
    pass


class AssignmentTargetError(SemanticError):
    pass


class TypeMismatchError(SemanticError):
    """A value's type is not assignable where it is used."""


class MissingBodyError(SemanticError):
    pass


class RangeError(SemanticError):
    """Literal outside the representable range."""


class InvalidExpressionError(SemanticError):
    """Expression used where its kind is not allowed."""


class UndefinedNameError(SemanticError):
    pass


class SlotConflictError(SemanticError):
    """An annotation slot already holds a different binding."""


# ============================================================
# EVALUATION
# ============================================================


class RuntimeFault(PlcError):
    """Runtime fault raised by the interpreter."""


class UnboundNameError(RuntimeFault):
    pass


class ArityError(RuntimeFault):
    pass


class OperandTypeError(RuntimeFault):
    """Operation applied to a value of the wrong kind."""


class DivisionByZeroError(RuntimeFault):
    pass


class InvalidAssignmentError(RuntimeFault):
    pass


class RecursionDepthError(RuntimeFault):
    """Call nesting exceeded the interpreter's depth limit."""
