"""PLC tokenizer — lexes source into a flat token list."""

from __future__ import annotations

from .ast import Pos
from .errors import TokenizeError


# Token type constants
TK_INT = "INT"
TK_DECIMAL = "DECIMAL"
TK_CHAR = "CHAR"
TK_STRING = "STRING"
TK_IDENT = "IDENT"
TK_KEYWORD = "KEYWORD"
TK_OP = "OP"
TK_EOF = "EOF"

KEYWORDS: set[str] = {
    "AND",
    "DEF",
    "DO",
    "ELSE",
    "END",
    "FALSE",
    "FOR",
    "IF",
    "IN",
    "LET",
    "NIL",
    "OR",
    "RETURN",
    "TRUE",
    "WHILE",
}

# Multi-character operators, matched before single characters
MULTI_OPS: list[str] = ["<=", ">=", "==", "!="]

SINGLE_OPS: set[str] = {
    "+",
    "-",
    "*",
    "/",
    "<",
    ">",
    "=",
    "(",
    ")",
    ",",
    ";",
    ".",
    ":",
}

ESCAPE_MAP: dict[str, str] = {
    "b": "\b",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "'": "'",
}


class Token:
    """A token with type, value, and position."""

    def __init__(self, type_: str, value: str, line: int, col: int):
        self.type: str = type_
        self.value: str = value
        self.line: int = line
        self.col: int = col

    @property
    def pos(self) -> Pos:
        return Pos(self.line, self.col)

    def ends_operand(self) -> bool:
        """Can this token be the last token of an operand?"""
        if self.type in (TK_INT, TK_DECIMAL, TK_CHAR, TK_STRING, TK_IDENT):
            return True
        if self.type == TK_KEYWORD:
            return self.value in ("NIL", "TRUE", "FALSE")
        return self.type == TK_OP and self.value == ")"

    def __repr__(self) -> str:
        return "Token(" + self.type + ", " + repr(self.value) + ", " + str(self.line) + ", " + str(self.col) + ")"


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_alpha(c: str) -> bool:
    return (c >= "a" and c <= "z") or (c >= "A" and c <= "Z") or c == "_"


def _is_alnum(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c)


def _process_escape(src: str, pos: int, line: int, col: int) -> tuple[str, int]:
    """Process escape after backslash. Returns (resolved_char, new_pos)."""
    if pos >= len(src):
        raise TokenizeError("unexpected end of input in escape", Pos(line, col))
    c = src[pos]
    if c in ESCAPE_MAP:
        return ESCAPE_MAP[c], pos + 1
    raise TokenizeError("invalid escape: \\" + c, Pos(line, col))


def tokenize(source: str) -> list[Token]:
    """Tokenize PLC source into a flat list ending with TK_EOF."""
    tokens: list[Token] = []
    pos = 0
    line = 1
    col = 1
    length = len(source)

    while pos < length:
        c = source[pos]

        # Newlines
        if c == "\n":
            pos += 1
            line += 1
            col = 1
            continue

        # Whitespace
        if c == " " or c == "\t" or c == "\r" or c == "\b":
            pos += 1
            col += 1
            continue

        start_pos = pos
        start_line = line
        start_col = col

        # Number, with a sign folded in when no operand precedes it
        signed = (
            (c == "+" or c == "-")
            and pos + 1 < length
            and _is_digit(source[pos + 1])
            and not (tokens and tokens[-1].ends_operand())
        )
        if _is_digit(c) or signed:
            pos += 1
            col += 1
            while pos < length and _is_digit(source[pos]):
                pos += 1
                col += 1
            is_decimal = False
            if pos + 1 < length and source[pos] == "." and _is_digit(source[pos + 1]):
                is_decimal = True
                pos += 1
                col += 1
                while pos < length and _is_digit(source[pos]):
                    pos += 1
                    col += 1
            raw = source[start_pos:pos]
            tokens.append(Token(TK_DECIMAL if is_decimal else TK_INT, raw, start_line, start_col))
            continue

        # String literal: "..."
        if c == '"':
            pos += 1
            col += 1
            chars: list[str] = []
            while pos < length and source[pos] != '"':
                if source[pos] == "\n":
                    raise TokenizeError("unterminated string literal", Pos(start_line, start_col))
                if source[pos] == "\\":
                    pos += 1
                    col += 1
                    ch, pos = _process_escape(source, pos, start_line, col)
                    chars.append(ch)
                else:
                    chars.append(source[pos])
                    pos += 1
                col += 1
            if pos >= length:
                raise TokenizeError("unterminated string literal", Pos(start_line, start_col))
            pos += 1  # skip closing "
            col += 1
            tokens.append(Token(TK_STRING, "".join(chars), start_line, start_col))
            continue

        # Character literal: '...'
        if c == "'":
            pos += 1
            col += 1
            if pos >= length or source[pos] == "\n":
                raise TokenizeError("unterminated character literal", Pos(start_line, start_col))
            if source[pos] == "\\":
                pos += 1
                col += 1
                char_value, pos = _process_escape(source, pos, start_line, col)
            elif source[pos] == "'":
                raise TokenizeError("empty character literal", Pos(start_line, start_col))
            else:
                char_value = source[pos]
                pos += 1
            col += 1
            if pos >= length or source[pos] != "'":
                raise TokenizeError("unterminated character literal", Pos(start_line, start_col))
            pos += 1  # skip closing '
            col += 1
            tokens.append(Token(TK_CHAR, char_value, start_line, start_col))
            continue

        # Identifier or keyword
        if _is_alpha(c):
            while pos < length and _is_alnum(source[pos]):
                pos += 1
                col += 1
            word = source[start_pos:pos]
            if word in KEYWORDS:
                tokens.append(Token(TK_KEYWORD, word, start_line, start_col))
            else:
                tokens.append(Token(TK_IDENT, word, start_line, start_col))
            continue

        # Multi-character operators
        matched = False
        for op in MULTI_OPS:
            if source[pos : pos + len(op)] == op:
                tokens.append(Token(TK_OP, op, start_line, start_col))
                pos += len(op)
                col += len(op)
                matched = True
                break
        if matched:
            continue

        # Single-character operators
        if c in SINGLE_OPS:
            tokens.append(Token(TK_OP, c, start_line, start_col))
            pos += 1
            col += 1
            continue

        raise TokenizeError("unexpected character: " + repr(c), Pos(line, col))

    tokens.append(Token(TK_EOF, "", line, col))
    return tokens
