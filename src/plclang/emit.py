"""PLC generator — renders an analyzed Program as Java source.

Only the analyzer's annotations are consulted for names and types: every
identifier comes from a binding's `jvm_name`, every declared type from a
binding's type. A tree with an empty slot cannot be rendered.
"""

from __future__ import annotations

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
    Program,
    ReturnStmt,
    Stmt,
    StringLit,
    WhileStmt,
)
from .errors import GenerateError


def to_java(program: Program) -> str:
    """Render an analyzed `Program` as a Java class named Main."""
    return _Emitter().emit_program(program)


class _Emitter:
    _INDENT: str = "    "

    # Java precedence (higher binds tighter)
    _BIN_PREC: dict[str, int] = {
        "OR": 1,
        "AND": 2,
        "==": 3,
        "!=": 3,
        "<": 4,
        "<=": 4,
        ">": 4,
        ">=": 4,
        "+": 5,
        "-": 5,
        "*": 6,
        "/": 6,
    }

    _JAVA_OPS: dict[str, str] = {"AND": "&&", "OR": "||"}

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._indent_level: int = 0

    # ── Public ──────────────────────────────────────────────

    def emit_program(self, program: Program) -> str:
        self._lines = []
        self._indent_level = 0
        self._emit_line("public class Main {")
        self._indent_level += 1
        if program.fields:
            self._lines.append("")
            for f in program.fields:
                self._emit_field(f)
        self._lines.append("")
        self._emit_line("public static void main(String[] args) {")
        self._emit_line(self._INDENT + "System.exit(new Main().main());")
        self._emit_line("}")
        for m in program.methods:
            self._lines.append("")
            self._emit_method(m)
        self._indent_level -= 1
        self._lines.append("")
        self._emit_line("}")
        return "\n".join(self._lines) + "\n"

    # ── Lines / Blocks ──────────────────────────────────────

    def _emit_line(self, line: str) -> None:
        self._lines.append(self._INDENT * self._indent_level + line)

    def _emit_block(self, header: str, stmts: list[Stmt]) -> None:
        if not stmts:
            self._emit_line(header + " {}")
            return
        self._emit_line(header + " {")
        self._emit_stmts(stmts)
        self._emit_line("}")

    def _emit_stmts(self, stmts: list[Stmt]) -> None:
        self._indent_level += 1
        for stmt in stmts:
            self._emit_stmt(stmt)
        self._indent_level -= 1

    # ── Decls ───────────────────────────────────────────────

    def _emit_field(self, field: Field) -> None:
        variable = field.variable
        if variable is None:
            raise GenerateError("field '" + field.name + "' was not analyzed", field.pos)
        line = variable.typ.jvm_name + " " + variable.jvm_name
        if field.value is not None:
            line += " = " + self._render_expr(field.value)
        self._emit_line(line + ";")

    def _emit_method(self, method: Method) -> None:
        function = method.function
        if function is None:
            raise GenerateError("method '" + method.name + "' was not analyzed", method.pos)
        params = []
        for name, typ in zip(method.params, function.param_types):
            params.append(typ.jvm_name + " " + name)
        header = function.return_type.jvm_name + " " + function.jvm_name + "(" + ", ".join(params) + ")"
        self._emit_block(header, method.body)

    # ── Statements ──────────────────────────────────────────

    def _emit_stmt(self, stmt: Stmt) -> None:
        if isinstance(stmt, ExpressionStmt):
            self._emit_line(self._render_expr(stmt.expr) + ";")
        elif isinstance(stmt, DeclarationStmt):
            variable = stmt.variable
            if variable is None:
                raise GenerateError("declaration of '" + stmt.name + "' was not analyzed", stmt.pos)
            line = variable.typ.jvm_name + " " + variable.jvm_name
            if stmt.value is not None:
                line += " = " + self._render_expr(stmt.value)
            self._emit_line(line + ";")
        elif isinstance(stmt, AssignmentStmt):
            self._emit_line(self._render_expr(stmt.receiver) + " = " + self._render_expr(stmt.value) + ";")
        elif isinstance(stmt, IfStmt):
            self._emit_if_stmt(stmt)
        elif isinstance(stmt, ForStmt):
            header = "for (int " + stmt.name + " : " + self._render_expr(stmt.iterable) + ")"
            self._emit_block(header, stmt.body)
        elif isinstance(stmt, WhileStmt):
            self._emit_block("while (" + self._render_expr(stmt.cond) + ")", stmt.body)
        elif isinstance(stmt, ReturnStmt):
            self._emit_line("return " + self._render_expr(stmt.value) + ";")
        else:
            raise GenerateError("unhandled statement type: " + type(stmt).__name__, stmt.pos)

    def _emit_if_stmt(self, stmt: IfStmt) -> None:
        self._emit_line("if (" + self._render_expr(stmt.cond) + ") {")
        self._emit_stmts(stmt.then_body)
        if stmt.else_body:
            self._emit_line("} else {")
            self._emit_stmts(stmt.else_body)
        self._emit_line("}")

    # ── Expressions ─────────────────────────────────────────

    def _render_expr(self, expr: Expr) -> str:
        if expr.typ is None:
            raise GenerateError(type(expr).__name__ + " was not analyzed", expr.pos)
        if isinstance(expr, NilLit):
            return "null"
        if isinstance(expr, BoolLit):
            return "true" if expr.value else "false"
        if isinstance(expr, IntLit):
            return str(expr.value)
        if isinstance(expr, DecimalLit):
            return format(expr.value, "f")
        if isinstance(expr, CharLit):
            return "'" + self._escape_text(expr.value, "'") + "'"
        if isinstance(expr, StringLit):
            return '"' + self._escape_text(expr.value, '"') + '"'
        if isinstance(expr, Group):
            return "(" + self._render_expr(expr.expr) + ")"
        if isinstance(expr, Binary):
            prec = self._BIN_PREC[expr.op]
            op = self._JAVA_OPS.get(expr.op, expr.op)
            left = self._render_operand(expr.left, prec, False)
            right = self._render_operand(expr.right, prec, True)
            return left + " " + op + " " + right
        if isinstance(expr, Access):
            if expr.variable is None:
                raise GenerateError("'" + expr.name + "' was not bound", expr.pos)
            if expr.receiver is None:
                return expr.variable.jvm_name
            return self._render_expr(expr.receiver) + "." + expr.variable.jvm_name
        if isinstance(expr, Call):
            if expr.function is None:
                raise GenerateError("call to '" + expr.name + "' was not bound", expr.pos)
            args = "(" + ", ".join(self._render_expr(a) for a in expr.args) + ")"
            if expr.receiver is None:
                return expr.function.jvm_name + args
            return self._render_expr(expr.receiver) + "." + expr.function.jvm_name + args
        raise GenerateError("unhandled expression type: " + type(expr).__name__, expr.pos)

    def _render_operand(self, expr: Expr, parent_prec: int, right: bool) -> str:
        text = self._render_expr(expr)
        if isinstance(expr, Binary):
            prec = self._BIN_PREC[expr.op]
            if prec < parent_prec or (right and prec == parent_prec):
                return "(" + text + ")"
        return text

    # ── Literals / Escapes ──────────────────────────────────

    def _escape_text(self, s: str, quote: str) -> str:
        out = ""
        for ch in s:
            if ch == "\n":
                out += "\\n"
            elif ch == "\r":
                out += "\\r"
            elif ch == "\t":
                out += "\\t"
            elif ch == "\b":
                out += "\\b"
            elif ch == "\\":
                out += "\\\\"
            elif ch == quote:
                out += "\\" + quote
            else:
                out += ch
        return out
