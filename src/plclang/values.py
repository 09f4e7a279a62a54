"""PLC runtime values — a closed set of tagged value kinds."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, ClassVar

from .registry import (
    TY_BOOLEAN,
    TY_CHARACTER,
    TY_DECIMAL,
    TY_INTEGER,
    TY_INTEGER_ITERABLE,
    TY_NIL,
    TY_STRING,
)

if TYPE_CHECKING:
    from .registry import Type
    from .scope import Scope


class Value:
    """A runtime value. `type_name` is the nominal type it was built from."""

    type_name: ClassVar[str] = ""

    def to_string(self) -> str:
        raise NotImplementedError


@dataclass
class VNil(Value):
    type_name: ClassVar[str] = TY_NIL

    def to_string(self) -> str:
        return "NIL"


@dataclass
class VBool(Value):
    type_name: ClassVar[str] = TY_BOOLEAN
    value: bool

    def to_string(self) -> str:
        return "true" if self.value else "false"


@dataclass
class VInt(Value):
    type_name: ClassVar[str] = TY_INTEGER
    value: int

    def to_string(self) -> str:
        return str(self.value)


@dataclass
class VDecimal(Value):
    type_name: ClassVar[str] = TY_DECIMAL
    value: Decimal

    def to_string(self) -> str:
        return format(self.value, "f")


@dataclass
class VChar(Value):
    type_name: ClassVar[str] = TY_CHARACTER
    value: str

    def to_string(self) -> str:
        return self.value


@dataclass
class VString(Value):
    type_name: ClassVar[str] = TY_STRING
    value: str

    def to_string(self) -> str:
        return self.value


@dataclass
class VList(Value):
    """Finite ordered sequence; iterating it twice yields the same values."""

    type_name: ClassVar[str] = TY_INTEGER_ITERABLE
    elements: list[Value]

    def to_string(self) -> str:
        return "[" + ", ".join(e.to_string() for e in self.elements) + "]"


@dataclass(eq=False)
class VObject(Value):
    """An object instance: its members live in an owned scope."""

    typ: Type
    scope: Scope

    @property
    def type_name(self) -> str:  # type: ignore[override]
        return self.typ.name

    def to_string(self) -> str:
        return self.typ.name


NIL: VNil = VNil()


def value_eq(a: Value, b: Value) -> bool:
    """Value equality: same kind and same payload. Objects compare by identity."""
    if type(a) is not type(b):
        return False
    if isinstance(a, VNil):
        return True
    if isinstance(a, (VBool, VInt, VDecimal, VChar, VString)):
        return a.value == b.value  # type: ignore[attr-defined]
    if isinstance(a, VList):
        other = b
        assert isinstance(other, VList)
        if len(a.elements) != len(other.elements):
            return False
        return all(value_eq(x, y) for x, y in zip(a.elements, other.elements))
    return a is b
