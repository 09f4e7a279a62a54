"""PLC scopes — chained lexical environments of variable and function bindings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .registry import Type
    from .values import Value


@dataclass
class Variable:
    """A variable binding. `value` is the mutable cell the interpreter writes."""

    name: str
    jvm_name: str
    typ: Type
    value: Value


@dataclass
class Function:
    """A function binding, keyed by (name, arity). Equality ignores `invoke`."""

    name: str
    jvm_name: str
    param_types: list[Type]
    return_type: Type
    invoke: Callable[[list[Value]], Value] = field(repr=False, compare=False)

    @property
    def arity(self) -> int:
        return len(self.param_types)


class Scope:
    """One lexical level. Reads through `parent`, never writes to it."""

    def __init__(self, parent: Scope | None = None) -> None:
        self.parent: Scope | None = parent
        self._variables: dict[str, Variable] = {}
        self._functions: dict[tuple[str, int], Function] = {}

    def define_variable(self, variable: Variable) -> Variable:
        self._variables[variable.name] = variable
        return variable

    def define_function(self, function: Function) -> Function:
        self._functions[(function.name, function.arity)] = function
        return function

    def has_local_variable(self, name: str) -> bool:
        return name in self._variables

    def has_local_function(self, name: str, arity: int) -> bool:
        return (name, arity) in self._functions

    def lookup_variable(self, name: str) -> Variable | None:
        scope: Scope | None = self
        while scope is not None:
            if name in scope._variables:
                return scope._variables[name]
            scope = scope.parent
        return None

    def lookup_function(self, name: str, arity: int) -> Function | None:
        key = (name, arity)
        scope: Scope | None = self
        while scope is not None:
            if key in scope._functions:
                return scope._functions[key]
            scope = scope.parent
        return None

    def function_arities(self, name: str) -> list[int]:
        """Arities under which `name` is visible, innermost first."""
        arities: list[int] = []
        scope: Scope | None = self
        while scope is not None:
            for fname, arity in scope._functions:
                if fname == name and arity not in arities:
                    arities.append(arity)
            scope = scope.parent
        return arities
