"""PLC type registry — built-in nominal types and assignability."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable

from .errors import UnknownTypeError

if TYPE_CHECKING:
    from .ast import Pos
    from .scope import Scope


# ============================================================
# TYPE NAMES
# ============================================================

TY_ANY: str = "Any"
TY_NIL: str = "Nil"
TY_COMPARABLE: str = "Comparable"
TY_BOOLEAN: str = "Boolean"
TY_INTEGER: str = "Integer"
TY_DECIMAL: str = "Decimal"
TY_CHARACTER: str = "Character"
TY_STRING: str = "String"
TY_INTEGER_ITERABLE: str = "IntegerIterable"

# Boolean is not comparable.
COMPARABLE_NAMES: frozenset[str] = frozenset({TY_INTEGER, TY_DECIMAL, TY_CHARACTER, TY_STRING})

NUMERIC_NAMES: frozenset[str] = frozenset({TY_INTEGER, TY_DECIMAL})


@dataclass(eq=False)
class Type:
    """A nominal type.

    `jvm_name` is the identifier a generator uses for the type. Object
    types carry a `scope` holding their member fields and methods.
    """

    name: str
    jvm_name: str
    scope: Scope | None = field(default=None, repr=False)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Type) and self.name == other.name

    def __hash__(self) -> int:
        return hash(("type", self.name))


_BUILTINS: list[tuple[str, str]] = [
    (TY_ANY, "Object"),
    (TY_NIL, "Void"),
    (TY_COMPARABLE, "Comparable"),
    (TY_BOOLEAN, "boolean"),
    (TY_INTEGER, "int"),
    (TY_DECIMAL, "double"),
    (TY_CHARACTER, "char"),
    (TY_STRING, "String"),
    (TY_INTEGER_ITERABLE, "Iterable<Integer>"),
]


# ============================================================
# REGISTRY
# ============================================================


class TypeRegistry:
    """Catalog of nominal types, seeded at construction and read-only after.

    Hosts embedding the interpreter may pass `extra` object types; they
    are registered alongside the built-ins and can be named in source.
    """

    def __init__(self, extra: Iterable[Type] = ()) -> None:
        types: dict[str, Type] = {}
        for name, jvm_name in _BUILTINS:
            types[name] = Type(name, jvm_name)
        for t in extra:
            types[t.name] = t
        self._types: dict[str, Type] = types
        self.any: Type = types[TY_ANY]
        self.nil: Type = types[TY_NIL]
        self.comparable: Type = types[TY_COMPARABLE]
        self.boolean: Type = types[TY_BOOLEAN]
        self.integer: Type = types[TY_INTEGER]
        self.decimal: Type = types[TY_DECIMAL]
        self.character: Type = types[TY_CHARACTER]
        self.string: Type = types[TY_STRING]
        self.integer_iterable: Type = types[TY_INTEGER_ITERABLE]

    def __contains__(self, name: str) -> bool:
        return name in self._types

    def resolve(self, name: str, pos: Pos | None = None) -> Type:
        t = self._types.get(name)
        if t is None:
            raise UnknownTypeError("unknown type '" + name + "'", pos)
        return t

    def is_assignable(self, target: Type, source: Type) -> bool:
        """Can a value of type `source` flow into a slot of type `target`?"""
        if target.name == TY_ANY:
            return True
        if target == source:
            return True
        if target.name == TY_COMPARABLE:
            return source.name in COMPARABLE_NAMES
        return False
