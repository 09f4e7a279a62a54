"""PLC runtime — tree-walking evaluation of a PLC program.

The interpreter trusts nothing: it works on analyzed and unanalyzed trees
alike and reports anything it cannot evaluate as a RuntimeFault.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import MAX_PREC, ROUND_HALF_EVEN, Decimal, localcontext
from typing import IO, Iterator

from .ast import (
    Access,
    AssignmentStmt,
    Binary,
    BoolLit,
    Call,
    CharLit,
    DecimalLit,
    DeclarationStmt,
    Expr,
    ExpressionStmt,
    Field,
    ForStmt,
    Group,
    IfStmt,
    IntLit,
    Method,
    NilLit,
    Pos,
    Program,
    ReturnStmt,
    Stmt,
    StringLit,
    WhileStmt,
)
from .errors import (
    ArityError,
    DivisionByZeroError,
    InvalidAssignmentError,
    OperandTypeError,
    RecursionDepthError,
    RuntimeFault,
    UnboundNameError,
)
from .registry import Type, TypeRegistry
from .scope import Function, Scope, Variable
from .values import (
    NIL,
    Value,
    VBool,
    VChar,
    VDecimal,
    VInt,
    VList,
    VObject,
    VString,
    value_eq,
)


# Interpreted calls nested deeper than this fail with RecursionDepthError.
MAX_CALL_DEPTH = 1000

# Python stack frames reserved per interpreted call.
_FRAMES_PER_CALL = 50


# ============================================================
# Completions
# ============================================================


@dataclass
class Normal:
    """The statement ran to its end."""


@dataclass
class Returning:
    """A RETURN is propagating toward the enclosing call frame."""

    value: Value


NORMAL: Normal = Normal()

Completion = Normal | Returning


# ============================================================
# Helpers
# ============================================================


def _describe(v: Value) -> str:
    return v.type_name + " " + v.to_string()


def _truncating_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        return -q
    return q


def _decimal_div(a: Decimal, b: Decimal) -> Decimal:
    """a / b rounded half-even to the scale of a."""
    exp = a.as_tuple().exponent
    assert isinstance(exp, int)
    digits = len(a.as_tuple().digits) + len(b.as_tuple().digits)
    with localcontext() as ctx:
        ctx.prec = digits + abs(exp) + abs(b.adjusted()) + 28
        return (a / b).quantize(Decimal(1).scaleb(exp), rounding=ROUND_HALF_EVEN)


@contextmanager
def _call_stack(pos: Pos | None) -> Iterator[None]:
    """Raise the Python recursion limit to fit MAX_CALL_DEPTH calls."""
    limit = sys.getrecursionlimit()
    sys.setrecursionlimit(max(limit, MAX_CALL_DEPTH * _FRAMES_PER_CALL))
    try:
        yield
    except RecursionError:
        raise RecursionDepthError("nesting too deep to evaluate", pos) from None
    finally:
        sys.setrecursionlimit(limit)


def _decimal_exact(op: str, a: Decimal, b: Decimal) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = MAX_PREC
        if op == "+":
            return a + b
        if op == "-":
            return a - b
        return a * b


# ============================================================
# INTERPRETER
# ============================================================


class Interpreter:
    """Evaluates programs, statements and expressions against a root scope.

    `out` receives `print` output; when None, `sys.stdout` is looked up at
    call time so redirected streams are honored.
    """

    def __init__(
        self,
        registry: TypeRegistry | None = None,
        parent: Scope | None = None,
        out: IO[str] | None = None,
    ) -> None:
        self.registry: TypeRegistry = registry if registry is not None else TypeRegistry()
        self.scope: Scope = Scope(parent)
        self.out: IO[str] | None = out
        self.depth: int = 0
        self.scope.define_function(
            Function("print", "System.out.println", [self.registry.any], self.registry.nil, self._print)
        )

    def _print(self, args: list[Value]) -> Value:
        stream = self.out if self.out is not None else sys.stdout
        stream.write(args[0].to_string() + "\n")
        return NIL

    def value_type(self, value: Value) -> Type:
        if isinstance(value, VObject):
            return value.typ
        return self.registry.resolve(value.type_name)

    def members(self, value: Value, pos: Pos | None) -> Scope:
        if not isinstance(value, VObject):
            raise OperandTypeError(_describe(value) + " has no members", pos)
        return value.scope

    # ── Entry points ─────────────────────────────────────────

    def run(self, program: Program) -> Value:
        """Define fields and methods, then invoke main/0 and return its value."""
        with _call_stack(None):
            for f in program.fields:
                self.define_field(f, self.scope)
            for m in program.methods:
                self.define_method(m, self.scope)
            main = self.scope.lookup_function("main", 0)
            if main is None:
                raise UnboundNameError("no main/0 method to run")
            return main.invoke([])

    def execute(self, stmt: Stmt) -> Value:
        """Run one statement in the root scope."""
        with _call_stack(stmt.pos):
            completion = self.exec_stmt(stmt, self.scope)
        if isinstance(completion, Returning):
            raise RuntimeFault("RETURN outside of a method", stmt.pos)
        return NIL

    def evaluate(self, expr: Expr) -> Value:
        """Evaluate one expression in the root scope."""
        with _call_stack(expr.pos):
            return self.eval_expr(expr, self.scope)

    # ── Declarations ─────────────────────────────────────────

    def define_field(self, field: Field, scope: Scope) -> None:
        value: Value = NIL
        if field.value is not None:
            value = self.eval_expr(field.value, scope)
        scope.define_variable(Variable(field.name, field.name, self.value_type(value), value))

    def define_method(self, method: Method, scope: Scope) -> Function:
        """Bind a closure over `scope`; each call gets one fresh frame."""

        def invoke(args: list[Value]) -> Value:
            if len(args) != len(method.params):
                raise ArityError(
                    method.name + " takes " + str(len(method.params)) + " argument(s), got " + str(len(args)),
                    method.pos,
                )
            if self.depth >= MAX_CALL_DEPTH:
                raise RecursionDepthError(
                    method.name + " exceeded the call depth limit of " + str(MAX_CALL_DEPTH), method.pos
                )
            frame = Scope(scope)
            for name, arg in zip(method.params, args):
                frame.define_variable(Variable(name, name, self.value_type(arg), arg))
            self.depth += 1
            try:
                completion = self.exec_block(method.body, frame)
            finally:
                self.depth -= 1
            if isinstance(completion, Returning):
                return completion.value
            return NIL

        params = [self.registry.any for _ in method.params]
        return scope.define_function(Function(method.name, method.name, params, self.registry.any, invoke))

    # ── Statements ───────────────────────────────────────────

    def exec_block(self, stmts: list[Stmt], scope: Scope) -> Completion:
        for s in stmts:
            completion = self.exec_stmt(s, scope)
            if isinstance(completion, Returning):
                return completion
        return NORMAL

    def exec_stmt(self, stmt: Stmt, scope: Scope) -> Completion:
        if isinstance(stmt, ExpressionStmt):
            self.eval_expr(stmt.expr, scope)
            return NORMAL
        if isinstance(stmt, DeclarationStmt):
            value: Value = NIL
            if stmt.value is not None:
                value = self.eval_expr(stmt.value, scope)
            scope.define_variable(Variable(stmt.name, stmt.name, self.value_type(value), value))
            return NORMAL
        if isinstance(stmt, AssignmentStmt):
            self.exec_assignment(stmt, scope)
            return NORMAL
        if isinstance(stmt, IfStmt):
            if self.eval_bool(stmt.cond, scope):
                return self.exec_block(stmt.then_body, Scope(scope))
            return self.exec_block(stmt.else_body, Scope(scope))
        if isinstance(stmt, ForStmt):
            return self.exec_for(stmt, scope)
        if isinstance(stmt, WhileStmt):
            while self.eval_bool(stmt.cond, scope):
                completion = self.exec_block(stmt.body, Scope(scope))
                if isinstance(completion, Returning):
                    return completion
            return NORMAL
        if isinstance(stmt, ReturnStmt):
            return Returning(self.eval_expr(stmt.value, scope))
        raise RuntimeFault("unhandled statement type: " + type(stmt).__name__, stmt.pos)

    def exec_assignment(self, stmt: AssignmentStmt, scope: Scope) -> None:
        target = stmt.receiver
        if not isinstance(target, Access):
            raise InvalidAssignmentError("can only assign to a variable or field", stmt.pos)
        if target.receiver is None:
            variable = scope.lookup_variable(target.name)
        else:
            owner = self.eval_expr(target.receiver, scope)
            variable = self.members(owner, target.pos).lookup_variable(target.name)
        if variable is None:
            raise UnboundNameError("undefined variable '" + target.name + "'", target.pos)
        variable.value = self.eval_expr(stmt.value, scope)

    def exec_for(self, stmt: ForStmt, scope: Scope) -> Completion:
        iterable = self.eval_expr(stmt.iterable, scope)
        if not isinstance(iterable, VList):
            raise OperandTypeError("cannot iterate over " + _describe(iterable), stmt.iterable.pos)
        for element in iterable.elements:
            iter_scope = Scope(scope)
            iter_scope.define_variable(Variable(stmt.name, stmt.name, self.value_type(element), element))
            completion = self.exec_block(stmt.body, iter_scope)
            if isinstance(completion, Returning):
                return completion
        return NORMAL

    # ── Expressions ──────────────────────────────────────────

    def eval_bool(self, expr: Expr, scope: Scope) -> bool:
        value = self.eval_expr(expr, scope)
        if not isinstance(value, VBool):
            raise OperandTypeError("expected Boolean, got " + _describe(value), expr.pos)
        return value.value

    def eval_expr(self, expr: Expr, scope: Scope) -> Value:
        if isinstance(expr, NilLit):
            return NIL
        if isinstance(expr, BoolLit):
            return VBool(expr.value)
        if isinstance(expr, IntLit):
            return VInt(expr.value)
        if isinstance(expr, DecimalLit):
            return VDecimal(expr.value)
        if isinstance(expr, CharLit):
            return VChar(expr.value)
        if isinstance(expr, StringLit):
            return VString(expr.value)
        if isinstance(expr, Group):
            return self.eval_expr(expr.expr, scope)
        if isinstance(expr, Binary):
            return self.eval_binary(expr, scope)
        if isinstance(expr, Access):
            return self.eval_access(expr, scope)
        if isinstance(expr, Call):
            return self.eval_call(expr, scope)
        raise RuntimeFault("unhandled expression type: " + type(expr).__name__, expr.pos)

    def eval_binary(self, expr: Binary, scope: Scope) -> Value:
        op = expr.op
        if op == "AND":
            if not self.eval_bool(expr.left, scope):
                return VBool(False)
            return VBool(self.eval_bool(expr.right, scope))
        if op == "OR":
            if self.eval_bool(expr.left, scope):
                return VBool(True)
            return VBool(self.eval_bool(expr.right, scope))
        left = self.eval_expr(expr.left, scope)
        right = self.eval_expr(expr.right, scope)
        if op == "==":
            return VBool(value_eq(left, right))
        if op == "!=":
            return VBool(not value_eq(left, right))
        if op in ("<", "<=", ">", ">="):
            return VBool(self.compare(op, left, right, expr.pos))
        if op == "+" and (isinstance(left, VString) or isinstance(right, VString)):
            return VString(left.to_string() + right.to_string())
        if op in ("+", "-", "*", "/"):
            return self.arithmetic(op, left, right, expr.pos)
        raise RuntimeFault("unknown operator " + op, expr.pos)

    def compare(self, op: str, left: Value, right: Value, pos: Pos | None) -> bool:
        comparable = (VInt, VDecimal, VChar, VString)
        if not isinstance(left, comparable) or type(left) is not type(right):
            raise OperandTypeError("cannot compare " + _describe(left) + " with " + _describe(right), pos)
        a = left.value
        b = right.value  # type: ignore[union-attr]
        if op == "<":
            return a < b
        if op == "<=":
            return a <= b
        if op == ">":
            return a > b
        return a >= b

    def arithmetic(self, op: str, left: Value, right: Value, pos: Pos | None) -> Value:
        if isinstance(left, VInt) and isinstance(right, VInt):
            if op == "+":
                return VInt(left.value + right.value)
            if op == "-":
                return VInt(left.value - right.value)
            if op == "*":
                return VInt(left.value * right.value)
            if right.value == 0:
                raise DivisionByZeroError("division by zero", pos)
            return VInt(_truncating_div(left.value, right.value))
        if isinstance(left, VDecimal) and isinstance(right, VDecimal):
            if op == "/":
                if right.value == 0:
                    raise DivisionByZeroError("division by zero", pos)
                return VDecimal(_decimal_div(left.value, right.value))
            return VDecimal(_decimal_exact(op, left.value, right.value))
        raise OperandTypeError(
            "operator " + op + " cannot combine " + _describe(left) + " and " + _describe(right), pos
        )

    def eval_access(self, expr: Access, scope: Scope) -> Value:
        if expr.receiver is None:
            variable = scope.lookup_variable(expr.name)
        else:
            owner = self.eval_expr(expr.receiver, scope)
            variable = self.members(owner, expr.pos).lookup_variable(expr.name)
        if variable is None:
            raise UnboundNameError("undefined variable '" + expr.name + "'", expr.pos)
        return variable.value

    def eval_call(self, expr: Call, scope: Scope) -> Value:
        if expr.receiver is None:
            args = [self.eval_expr(a, scope) for a in expr.args]
            lookup_scope = scope
        else:
            # The receiver is the implicit first argument.
            owner = self.eval_expr(expr.receiver, scope)
            lookup_scope = self.members(owner, expr.pos)
            args = [owner] + [self.eval_expr(a, scope) for a in expr.args]
        function = lookup_scope.lookup_function(expr.name, len(args))
        if function is None:
            if lookup_scope.function_arities(expr.name):
                raise ArityError(
                    "no '" + expr.name + "' taking " + str(len(expr.args)) + " argument(s)",
                    expr.pos,
                )
            raise UnboundNameError("undefined function '" + expr.name + "'", expr.pos)
        return function.invoke(args)


# ============================================================
# PUBLIC API
# ============================================================


def run(
    program: Program,
    registry: TypeRegistry | None = None,
    parent: Scope | None = None,
    out: IO[str] | None = None,
) -> Value:
    """Run a parsed (and normally analyzed) program; returns main's value."""
    return Interpreter(registry, parent, out).run(program)
