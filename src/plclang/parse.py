"""PLC parser — recursive descent, one method per grammar production."""

from __future__ import annotations

from decimal import Decimal
from typing import Callable

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
from .errors import ParseError
from .tokens import (
    TK_CHAR,
    TK_DECIMAL,
    TK_EOF,
    TK_IDENT,
    TK_INT,
    TK_KEYWORD,
    TK_OP,
    TK_STRING,
    Token,
    tokenize,
)

LOGICAL_OPS: set[str] = {"AND", "OR"}

COMPARE_OPS: set[str] = {"<", "<=", ">", ">=", "==", "!="}

ADDITIVE_OPS: set[str] = {"+", "-"}

MULTIPLICATIVE_OPS: set[str] = {"*", "/"}


class Parser:
    """Recursive descent parser for PLC."""

    def __init__(self, tokens: list[Token]):
        self.tokens: list[Token] = tokens
        self.pos: int = 0

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.type != TK_EOF:
            self.pos += 1
        return tok

    def at(self, value: str) -> bool:
        tok = self.current()
        return tok.type not in (TK_STRING, TK_CHAR) and tok.value == value

    def at_type(self, type_: str) -> bool:
        return self.current().type == type_

    def match(self, value: str) -> bool:
        if self.at(value):
            self.advance()
            return True
        return False

    def expect(self, value: str) -> Token:
        tok = self.current()
        if not self.at(value):
            raise self.error("expected '" + value + "', got " + _describe(tok))
        return self.advance()

    def expect_ident(self) -> Token:
        tok = self.current()
        if tok.type != TK_IDENT:
            raise self.error("expected identifier, got " + _describe(tok))
        return self.advance()

    def expect_eof(self) -> None:
        if not self.at_type(TK_EOF):
            raise self.error("unexpected " + _describe(self.current()))

    def error(self, msg: str) -> ParseError:
        return ParseError(msg, self._pos())

    def _pos(self) -> Pos:
        return self.current().pos

    # ── Top Level ────────────────────────────────────────────

    def parse_source(self) -> Program:
        fields: list[Field] = []
        methods: list[Method] = []
        while self.at("LET"):
            fields.append(self.parse_field())
        while self.at("DEF"):
            methods.append(self.parse_method())
        if self.at("LET"):
            raise self.error("fields must precede methods")
        self.expect_eof()
        return Program(fields, methods)

    def parse_field(self) -> Field:
        pos = self._pos()
        self.expect("LET")
        name_tok = self.expect_ident()
        self.expect(":")
        type_tok = self.expect_ident()
        value: Expr | None = None
        if self.match("="):
            value = self.parse_expression()
        self.expect(";")
        return Field(name_tok.value, type_tok.value, value, pos=pos)

    def parse_method(self) -> Method:
        pos = self._pos()
        self.expect("DEF")
        name_tok = self.expect_ident()
        self.expect("(")
        params: list[str] = []
        param_types: list[str] = []
        if not self.at(")"):
            while True:
                params.append(self.expect_ident().value)
                self.expect(":")
                param_types.append(self.expect_ident().value)
                if not self.match(","):
                    break
        self.expect(")")
        return_type: str | None = None
        if self.match(":"):
            return_type = self.expect_ident().value
        self.expect("DO")
        body = self.parse_block(("END",))
        self.expect("END")
        return Method(name_tok.value, params, param_types, return_type, body, pos=pos)

    def parse_block(self, terminators: tuple[str, ...]) -> list[Stmt]:
        stmts: list[Stmt] = []
        while not any(self.at(t) for t in terminators):
            if self.at_type(TK_EOF):
                raise self.error("expected '" + "' or '".join(terminators) + "', got end of input")
            stmts.append(self.parse_statement())
        return stmts

    # ── Statements ───────────────────────────────────────────

    def parse_statement(self) -> Stmt:
        if self.at("LET"):
            return self.parse_declaration_statement()
        if self.at("IF"):
            return self.parse_if_statement()
        if self.at("FOR"):
            return self.parse_for_statement()
        if self.at("WHILE"):
            return self.parse_while_statement()
        if self.at("RETURN"):
            return self.parse_return_statement()
        pos = self._pos()
        expr = self.parse_expression()
        if self.match("="):
            value = self.parse_expression()
            self.expect(";")
            return AssignmentStmt(expr, value, pos=pos)
        self.expect(";")
        return ExpressionStmt(expr, pos=pos)

    def parse_declaration_statement(self) -> DeclarationStmt:
        pos = self._pos()
        self.expect("LET")
        name_tok = self.expect_ident()
        type_name: str | None = None
        if self.match(":"):
            type_name = self.expect_ident().value
        value: Expr | None = None
        if self.match("="):
            value = self.parse_expression()
        self.expect(";")
        return DeclarationStmt(name_tok.value, type_name, value, pos=pos)

    def parse_if_statement(self) -> IfStmt:
        pos = self._pos()
        self.expect("IF")
        cond = self.parse_expression()
        self.expect("DO")
        then_body = self.parse_block(("ELSE", "END"))
        else_body: list[Stmt] = []
        if self.match("ELSE"):
            else_body = self.parse_block(("END",))
        self.expect("END")
        return IfStmt(cond, then_body, else_body, pos=pos)

    def parse_for_statement(self) -> ForStmt:
        pos = self._pos()
        self.expect("FOR")
        name_tok = self.expect_ident()
        self.expect("IN")
        iterable = self.parse_expression()
        self.expect("DO")
        body = self.parse_block(("END",))
        self.expect("END")
        return ForStmt(name_tok.value, iterable, body, pos=pos)

    def parse_while_statement(self) -> WhileStmt:
        pos = self._pos()
        self.expect("WHILE")
        cond = self.parse_expression()
        self.expect("DO")
        body = self.parse_block(("END",))
        self.expect("END")
        return WhileStmt(cond, body, pos=pos)

    def parse_return_statement(self) -> ReturnStmt:
        pos = self._pos()
        self.expect("RETURN")
        value = self.parse_expression()
        self.expect(";")
        return ReturnStmt(value, pos=pos)

    # ── Expressions ──────────────────────────────────────────

    def parse_expression(self) -> Expr:
        return self.parse_logical()

    def _parse_binary_level(self, ops: set[str], operand: Callable[[], Expr]) -> Expr:
        left = operand()
        while self.current().type in (TK_OP, TK_KEYWORD) and self.current().value in ops:
            op_tok = self.advance()
            right = operand()
            left = Binary(op_tok.value, left, right, pos=op_tok.pos)
        return left

    def parse_logical(self) -> Expr:
        return self._parse_binary_level(LOGICAL_OPS, self.parse_comparison)

    def parse_comparison(self) -> Expr:
        return self._parse_binary_level(COMPARE_OPS, self.parse_additive)

    def parse_additive(self) -> Expr:
        return self._parse_binary_level(ADDITIVE_OPS, self.parse_multiplicative)

    def parse_multiplicative(self) -> Expr:
        return self._parse_binary_level(MULTIPLICATIVE_OPS, self.parse_secondary)

    def parse_secondary(self) -> Expr:
        expr = self.parse_primary()
        while self.at("."):
            dot = self.advance()
            name_tok = self.expect_ident()
            if self.match("("):
                args = self.parse_args()
                expr = Call(expr, name_tok.value, args, pos=dot.pos)
            else:
                expr = Access(expr, name_tok.value, pos=dot.pos)
        return expr

    def parse_args(self) -> list[Expr]:
        """Arguments after '(' through the closing ')'."""
        args: list[Expr] = []
        if not self.at(")"):
            args.append(self.parse_expression())
            while self.match(","):
                args.append(self.parse_expression())
        self.expect(")")
        return args

    def parse_primary(self) -> Expr:
        tok = self.current()
        pos = tok.pos
        if tok.type == TK_KEYWORD:
            if tok.value == "NIL":
                self.advance()
                return NilLit(pos=pos)
            if tok.value == "TRUE":
                self.advance()
                return BoolLit(True, pos=pos)
            if tok.value == "FALSE":
                self.advance()
                return BoolLit(False, pos=pos)
            raise self.error("expected expression, got " + _describe(tok))
        if tok.type == TK_INT:
            self.advance()
            return IntLit(int(tok.value), pos=pos)
        if tok.type == TK_DECIMAL:
            self.advance()
            return DecimalLit(Decimal(tok.value), pos=pos)
        if tok.type == TK_CHAR:
            self.advance()
            return CharLit(tok.value, pos=pos)
        if tok.type == TK_STRING:
            self.advance()
            return StringLit(tok.value, pos=pos)
        if tok.type == TK_IDENT:
            self.advance()
            if self.match("("):
                return Call(None, tok.value, self.parse_args(), pos=pos)
            return Access(None, tok.value, pos=pos)
        if self.match("("):
            inner = self.parse_expression()
            self.expect(")")
            return Group(inner, pos=pos)
        raise self.error("expected expression, got " + _describe(tok))


def _describe(tok: Token) -> str:
    if tok.type == TK_EOF:
        return "end of input"
    if tok.type == TK_STRING:
        return "string " + repr(tok.value)
    if tok.type == TK_CHAR:
        return "character " + repr(tok.value)
    return "'" + tok.value + "'"


# ============================================================
# PUBLIC API
# ============================================================


def parse_source(source: str) -> Program:
    """Parse a whole PLC program."""
    return Parser(tokenize(source)).parse_source()


def parse_statement(source: str) -> Stmt:
    """Parse exactly one statement."""
    parser = Parser(tokenize(source))
    stmt = parser.parse_statement()
    parser.expect_eof()
    return stmt


def parse_expression(source: str) -> Expr:
    """Parse exactly one expression."""
    parser = Parser(tokenize(source))
    expr = parser.parse_expression()
    parser.expect_eof()
    return expr
