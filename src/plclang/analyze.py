"""PLC static analyzer — types and binds a parsed Program.

The analyzer fails fast on the first violation. Its findings go into the
tree's annotation slots:

- every expression gets `typ`
- Access, DeclarationStmt and Field get `variable`
- Call and Method get `function`

Scopes are threaded explicitly through every check method. Analysis is
idempotent: declaring nodes that already carry a binding reuse it, so a
second pass over an analyzed tree leaves every slot as it was.
"""

from __future__ import annotations

import math

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
    set_slot,
)
from .errors import (
    AssignmentTargetError,
    DeclarationError,
    InvalidExpressionError,
    MissingBodyError,
    MissingMainError,
    RangeError,
    SemanticError,
    TypeMismatchError,
    UndefinedNameError,
)
from .registry import NUMERIC_NAMES, TY_INTEGER, TY_STRING, Type, TypeRegistry
from .scope import Function, Scope, Variable
from .values import NIL, Value

# Holds the enclosing method's return type; '$' keeps it out of the identifier space.
RETURN_MARKER: str = "$returnType"

INT_MIN: int = -(2**31)
INT_MAX: int = 2**31 - 1

LOGICAL_OPS: set[str] = {"AND", "OR"}
COMPARE_OPS: set[str] = {"<", "<=", ">", ">=", "==", "!="}
ARITH_OPS: set[str] = {"-", "*", "/"}


def _no_op(args: list[Value]) -> Value:
    return NIL


def builtin_functions(registry: TypeRegistry) -> list[Function]:
    """Signatures of the functions every program can call."""
    return [
        Function("print", "System.out.println", [registry.any], registry.nil, _no_op),
    ]


# ============================================================
# ANALYZER
# ============================================================


class Analyzer:
    def __init__(self, registry: TypeRegistry | None = None, parent: Scope | None = None) -> None:
        self.registry: TypeRegistry = registry if registry is not None else TypeRegistry()
        self.scope: Scope = Scope(parent)
        for fn in builtin_functions(self.registry):
            self.scope.define_function(fn)

    def require(self, target: Type, source: Type, pos: Pos | None) -> None:
        if not self.registry.is_assignable(target, source):
            raise TypeMismatchError("expected " + target.name + ", got " + source.name, pos)

    # ── Program ──────────────────────────────────────────────

    def analyze(self, program: Program) -> None:
        for f in program.fields:
            self.check_field(f, self.scope)
        seen: set[tuple[str, int]] = set()
        for m in program.methods:
            key = (m.name, len(m.params))
            if key in seen:
                raise DeclarationError(
                    "method '" + m.name + "' with " + str(key[1]) + " parameter(s) is already defined",
                    m.pos,
                )
            seen.add(key)
            self.declare_method(m, self.scope)
        for m in program.methods:
            self.check_method(m, self.scope)
        for m in program.methods:
            if m.name == "main" and not m.params and m.return_type_name == TY_INTEGER:
                return
        raise MissingMainError("a main/0 method returning Integer is required")

    def check_field(self, field: Field, scope: Scope) -> None:
        declared = self.registry.resolve(field.type_name, field.pos)
        typ = declared
        if field.value is not None:
            value_type = self.check_expr(field.value, scope)
            self.require(declared, value_type, field.value.pos)
            typ = value_type
        variable = field.variable
        if variable is None:
            variable = Variable(field.name, field.name, typ, NIL)
        scope.define_variable(variable)
        set_slot(field, "variable", variable)

    def declare_method(self, method: Method, scope: Scope) -> Function:
        """Bind the method's signature so bodies analyzed later can call it."""
        function = method.function
        if function is None:
            param_types = [self.registry.resolve(n, method.pos) for n in method.param_type_names]
            return_type = self.registry.nil
            if method.return_type_name is not None:
                return_type = self.registry.resolve(method.return_type_name, method.pos)
            function = Function(method.name, method.name, param_types, return_type, _no_op)
            set_slot(method, "function", function)
        scope.define_function(function)
        return function

    def check_method(self, method: Method, scope: Scope) -> None:
        function = self.declare_method(method, scope)
        method_scope = Scope(scope)
        method_scope.define_variable(Variable(RETURN_MARKER, RETURN_MARKER, function.return_type, NIL))
        for name, typ in zip(method.params, function.param_types):
            method_scope.define_variable(Variable(name, name, typ, NIL))
        # Each statement nests inside the previous one so earlier LETs stay visible.
        stmt_scope = method_scope
        for stmt in method.body:
            stmt_scope = Scope(stmt_scope)
            self.check_stmt(stmt, stmt_scope)

    # ── Statements ───────────────────────────────────────────

    def check_stmts(self, stmts: list[Stmt], scope: Scope) -> None:
        for s in stmts:
            self.check_stmt(s, scope)

    def check_stmt(self, stmt: Stmt, scope: Scope) -> None:
        if isinstance(stmt, ExpressionStmt):
            self.check_expression_stmt(stmt, scope)
        elif isinstance(stmt, DeclarationStmt):
            self.check_declaration_stmt(stmt, scope)
        elif isinstance(stmt, AssignmentStmt):
            self.check_assignment_stmt(stmt, scope)
        elif isinstance(stmt, IfStmt):
            self.check_if_stmt(stmt, scope)
        elif isinstance(stmt, ForStmt):
            self.check_for_stmt(stmt, scope)
        elif isinstance(stmt, WhileStmt):
            self.check_while_stmt(stmt, scope)
        elif isinstance(stmt, ReturnStmt):
            self.check_return_stmt(stmt, scope)
        else:
            raise SemanticError("unhandled statement type: " + type(stmt).__name__, stmt.pos)

    def check_expression_stmt(self, stmt: ExpressionStmt, scope: Scope) -> None:
        if not isinstance(stmt.expr, Call):
            raise InvalidExpressionError("only a call can be used as a statement", stmt.pos)
        self.check_expr(stmt.expr, scope)

    def check_declaration_stmt(self, stmt: DeclarationStmt, scope: Scope) -> None:
        if stmt.type_name is None and stmt.value is None:
            raise DeclarationError("declaration of '" + stmt.name + "' needs a type or an initial value", stmt.pos)
        if scope.has_local_variable(stmt.name) and scope.lookup_variable(stmt.name) is not stmt.variable:
            raise DeclarationError("'" + stmt.name + "' is already declared in this scope", stmt.pos)
        typ: Type | None = None
        if stmt.type_name is not None:
            typ = self.registry.resolve(stmt.type_name, stmt.pos)
        if stmt.value is not None:
            value_type = self.check_expr(stmt.value, scope)
            if typ is None:
                typ = value_type
            else:
                self.require(typ, value_type, stmt.value.pos)
        assert typ is not None
        variable = stmt.variable
        if variable is None:
            variable = Variable(stmt.name, stmt.name, typ, NIL)
        scope.define_variable(variable)
        set_slot(stmt, "variable", variable)

    def check_assignment_stmt(self, stmt: AssignmentStmt, scope: Scope) -> None:
        if not isinstance(stmt.receiver, Access):
            raise AssignmentTargetError("can only assign to a variable or field", stmt.pos)
        target = self.check_expr(stmt.receiver, scope)
        value = self.check_expr(stmt.value, scope)
        self.require(target, value, stmt.value.pos)

    def check_if_stmt(self, stmt: IfStmt, scope: Scope) -> None:
        if not stmt.then_body:
            raise MissingBodyError("IF requires at least one statement in its DO branch", stmt.pos)
        self.require(self.registry.boolean, self.check_expr(stmt.cond, scope), stmt.cond.pos)
        self.check_stmts(stmt.then_body, Scope(scope))
        self.check_stmts(stmt.else_body, Scope(scope))

    def check_for_stmt(self, stmt: ForStmt, scope: Scope) -> None:
        if not stmt.body:
            raise MissingBodyError("FOR requires at least one statement in its body", stmt.pos)
        iterable = self.check_expr(stmt.iterable, scope)
        self.require(self.registry.integer_iterable, iterable, stmt.iterable.pos)
        loop_scope = Scope(scope)
        loop_scope.define_variable(Variable(stmt.name, stmt.name, self.registry.integer, NIL))
        self.check_stmts(stmt.body, loop_scope)

    def check_while_stmt(self, stmt: WhileStmt, scope: Scope) -> None:
        self.require(self.registry.boolean, self.check_expr(stmt.cond, scope), stmt.cond.pos)
        self.check_stmts(stmt.body, Scope(scope))

    def check_return_stmt(self, stmt: ReturnStmt, scope: Scope) -> None:
        marker = scope.lookup_variable(RETURN_MARKER)
        if marker is None:
            raise SemanticError("RETURN outside of a method", stmt.pos)
        self.require(marker.typ, self.check_expr(stmt.value, scope), stmt.value.pos)

    # ── Expressions ──────────────────────────────────────────

    def check_expr(self, expr: Expr, scope: Scope) -> Type:
        """Type an expression, record it in `typ`, and return it."""
        typ = self.type_of(expr, scope)
        set_slot(expr, "typ", typ)
        return typ

    def type_of(self, expr: Expr, scope: Scope) -> Type:
        if isinstance(expr, NilLit):
            return self.registry.nil
        if isinstance(expr, BoolLit):
            return self.registry.boolean
        if isinstance(expr, IntLit):
            if expr.value < INT_MIN or expr.value > INT_MAX:
                raise RangeError("integer literal " + str(expr.value) + " does not fit in 32 bits", expr.pos)
            return self.registry.integer
        if isinstance(expr, DecimalLit):
            if math.isinf(float(expr.value)):
                raise RangeError("decimal literal " + str(expr.value) + " is out of range", expr.pos)
            return self.registry.decimal
        if isinstance(expr, CharLit):
            return self.registry.character
        if isinstance(expr, StringLit):
            return self.registry.string
        if isinstance(expr, Group):
            return self.check_group(expr, scope)
        if isinstance(expr, Binary):
            return self.check_binary(expr, scope)
        if isinstance(expr, Access):
            return self.check_access(expr, scope)
        if isinstance(expr, Call):
            return self.check_call(expr, scope)
        raise SemanticError("unhandled expression type: " + type(expr).__name__, expr.pos)

    def check_group(self, expr: Group, scope: Scope) -> Type:
        if not isinstance(expr.expr, Binary):
            raise InvalidExpressionError("parentheses may only wrap a binary expression", expr.pos)
        return self.check_expr(expr.expr, scope)

    def check_binary(self, expr: Binary, scope: Scope) -> Type:
        left = self.check_expr(expr.left, scope)
        right = self.check_expr(expr.right, scope)
        op = expr.op
        if op in LOGICAL_OPS:
            self.require(self.registry.boolean, left, expr.left.pos)
            self.require(self.registry.boolean, right, expr.right.pos)
            return self.registry.boolean
        if op in COMPARE_OPS:
            self.require(self.registry.comparable, left, expr.left.pos)
            self.require(self.registry.comparable, right, expr.right.pos)
            return self.registry.boolean
        if op == "+" and (left.name == TY_STRING or right.name == TY_STRING):
            return self.registry.string
        if op == "+" or op in ARITH_OPS:
            if left.name not in NUMERIC_NAMES:
                raise TypeMismatchError("operator " + op + " needs Integer or Decimal, got " + left.name, expr.left.pos)
            if right != left:
                raise TypeMismatchError("expected " + left.name + ", got " + right.name, expr.right.pos)
            return left
        raise SemanticError("unknown operator " + op, expr.pos)

    def members(self, typ: Type, pos: Pos | None) -> Scope:
        if typ.scope is None:
            raise UndefinedNameError("type " + typ.name + " has no members", pos)
        return typ.scope

    def check_access(self, expr: Access, scope: Scope) -> Type:
        if expr.receiver is None:
            variable = scope.lookup_variable(expr.name)
        else:
            receiver = self.check_expr(expr.receiver, scope)
            variable = self.members(receiver, expr.pos).lookup_variable(expr.name)
        if variable is None:
            raise UndefinedNameError("undefined variable '" + expr.name + "'", expr.pos)
        set_slot(expr, "variable", variable)
        return variable.typ

    def check_call(self, expr: Call, scope: Scope) -> Type:
        receiver: Type | None = None
        if expr.receiver is not None:
            receiver = self.check_expr(expr.receiver, scope)
        arg_types = [self.check_expr(a, scope) for a in expr.args]
        if receiver is None:
            function = scope.lookup_function(expr.name, len(expr.args))
            skip = 0
        else:
            # The receiver is the implicit first parameter.
            function = self.members(receiver, expr.pos).lookup_function(expr.name, len(expr.args) + 1)
            skip = 1
        if function is None:
            raise UndefinedNameError(
                "undefined function '" + expr.name + "' with " + str(len(expr.args)) + " argument(s)",
                expr.pos,
            )
        for param, arg, arg_type in zip(function.param_types[skip:], expr.args, arg_types):
            self.require(param, arg_type, arg.pos)
        set_slot(expr, "function", function)
        return function.return_type


# ============================================================
# PUBLIC API
# ============================================================


def analyze(program: Program, registry: TypeRegistry | None = None, parent: Scope | None = None) -> Analyzer:
    """Analyze a program in place; returns the analyzer for scope inspection."""
    analyzer = Analyzer(registry, parent)
    analyzer.analyze(program)
    return analyzer
