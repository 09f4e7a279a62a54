"""Tests for analyzer annotations, bindings and host-provided scopes."""

import dataclasses

import pytest

from plclang.analyze import RETURN_MARKER, Analyzer, analyze
from plclang.ast import (
    Access,
    Call,
    DeclarationStmt,
    Expr,
    Field,
    IntLit,
    Method,
    ReturnStmt,
    Stmt,
    set_slot,
)
from plclang.errors import SemanticError, SlotConflictError, TypeMismatchError, UndefinedNameError
from plclang.parse import parse_source
from plclang.registry import Type, TypeRegistry
from plclang.scope import Function, Scope, Variable
from plclang.values import NIL, Value

SLOTS = ("typ", "variable", "function")


def _walk(node):
    """Yield node and every node reachable from it."""
    yield node
    for f in dataclasses.fields(node):
        if f.name in SLOTS or f.name == "pos":
            continue
        child = getattr(node, f.name)
        children = child if isinstance(child, list) else [child]
        for c in children:
            if isinstance(c, (Expr, Stmt, Field, Method)):
                yield from _walk(c)


def _slots(program) -> list[tuple[object, str, object]]:
    result = []
    for node in _walk(program):
        for slot in SLOTS:
            if hasattr(node, slot):
                result.append((node, slot, getattr(node, slot)))
    return result


SOURCE = """\
LET total: Integer = 0;
LET names: IntegerIterable;
DEF add(n: Integer): Integer DO
    total = total + n;
    RETURN total;
END
DEF main(): Integer DO
    LET label = "sum";
    FOR i IN names DO add(i); END
    IF total > 10 AND TRUE DO print(label + total); END
    RETURN (total - 1) * 2;
END
"""


def test_every_expression_is_typed():
    program = parse_source(SOURCE)
    analyze(program)
    for node in _walk(program):
        if isinstance(node, Expr):
            assert node.typ is not None, type(node).__name__
        if isinstance(node, (Access, DeclarationStmt, Field)):
            assert node.variable is not None
        if isinstance(node, (Call, Method)):
            assert node.function is not None


def test_bindings_are_shared():
    program = parse_source(SOURCE)
    analyze(program)
    total = program.fields[0].variable
    add = program.methods[0]
    assignment = add.body[0]
    assert assignment.receiver.variable is total
    assert assignment.value.left.variable is total
    main = program.methods[1]
    call = main.body[1].body[0].expr
    assert call.function is add.function
    assert call.function.return_type.name == "Integer"


def test_print_binding():
    program = parse_source(SOURCE)
    analyze(program)
    print_call = program.methods[1].body[2].then_body[0].expr
    assert print_call.function.name == "print"
    assert print_call.function.jvm_name == "System.out.println"
    assert print_call.function.return_type.name == "Nil"
    assert print_call.typ.name == "Nil"


def test_reanalysis_changes_no_slot():
    program = parse_source(SOURCE)
    analyzer = Analyzer()
    analyzer.analyze(program)
    before = _slots(program)
    analyzer.analyze(program)
    Analyzer().analyze(program)
    after = _slots(program)
    assert len(before) == len(after)
    for (node_a, slot_a, value_a), (node_b, slot_b, value_b) in zip(before, after):
        assert node_a is node_b and slot_a == slot_b
        assert value_a is value_b


def test_set_slot_is_write_once():
    registry = TypeRegistry()
    lit = IntLit(1)
    set_slot(lit, "typ", registry.integer)
    set_slot(lit, "typ", TypeRegistry().integer)
    assert lit.typ is registry.integer
    with pytest.raises(SlotConflictError):
        set_slot(lit, "typ", registry.decimal)


def test_program_scope_is_inspectable():
    analyzer = analyze(parse_source(SOURCE))
    assert analyzer.scope.lookup_variable("total").typ.name == "Integer"
    assert analyzer.scope.lookup_function("add", 1) is not None
    assert analyzer.scope.lookup_function("main", 0) is not None
    assert analyzer.scope.lookup_variable(RETURN_MARKER) is None
    assert analyzer.scope.lookup_variable("label") is None


def test_field_initializer_type_wins():
    program = parse_source("LET x: Any = 'c';\nDEF main(): Integer DO RETURN 0; END")
    analyze(program)
    assert program.fields[0].variable.typ.name == "Character"


def test_declaration_binding_type():
    program = parse_source("DEF main(): Integer DO LET a: Comparable = 1; LET b = 2.5; RETURN 0; END")
    analyze(program)
    a, b = program.methods[0].body[:2]
    assert a.variable.typ.name == "Comparable"
    assert b.variable.typ.name == "Decimal"
    assert b.value.typ.name == "Decimal"


def test_return_outside_method():
    analyzer = Analyzer()
    with pytest.raises(SemanticError) as exc:
        analyzer.check_stmt(ReturnStmt(IntLit(0)), analyzer.scope)
    assert exc.value.msg == "RETURN outside of a method"


def test_parent_scope_provides_iterables():
    registry = TypeRegistry()
    parent = Scope()
    parent.define_variable(Variable("numbers", "numbers", registry.integer_iterable, NIL))
    program = parse_source("DEF main(): Integer DO LET sum = 0; FOR n IN numbers DO sum = sum + n; END RETURN sum; END")
    analyze(program, registry, parent)
    loop = program.methods[0].body[1]
    assert loop.iterable.variable is parent.lookup_variable("numbers")


def test_reanalysis_against_a_different_host_scope():
    registry = TypeRegistry()
    iterable = Scope()
    iterable.define_variable(Variable("numbers", "numbers", registry.integer_iterable, NIL))
    program = parse_source("DEF main(): Integer DO FOR n IN numbers DO print(n); END RETURN 0; END")
    analyze(program, registry, iterable)
    scalar = Scope()
    scalar.define_variable(Variable("numbers", "numbers", registry.integer, NIL))
    with pytest.raises(SemanticError):
        analyze(program, registry, scalar)


# ── Host object types ─────────────────────────────────────


def _no_op(args: list[Value]) -> Value:
    return NIL


def _point_setup() -> tuple[TypeRegistry, Scope]:
    members = Scope()
    point = Type("Point", "Point", members)
    registry = TypeRegistry([point])
    members.define_variable(Variable("x", "x", registry.integer, NIL))
    members.define_function(Function("scale", "scale", [point, registry.integer], registry.decimal, _no_op))
    parent = Scope()
    parent.define_variable(Variable("p", "p", point, NIL))
    return registry, parent


def _analyze_main(body: str) -> Analyzer:
    registry, parent = _point_setup()
    return analyze(parse_source("DEF main(): Integer DO " + body + " END"), registry, parent)


def test_member_access_and_method():
    program = parse_source("DEF main(): Integer DO LET d: Decimal = p.scale(2); p.x = 3; RETURN p.x; END")
    registry, parent = _point_setup()
    analyze(program, registry, parent)
    call = program.methods[0].body[0].value
    assert call.function.name == "scale"
    assert call.function.arity == 2
    assert call.typ.name == "Decimal"
    assert call.receiver.typ.name == "Point"


def test_member_method_argument_types():
    with pytest.raises(TypeMismatchError):
        _analyze_main('p.scale("a"); RETURN 0;')


def test_member_method_arity_counts_receiver():
    with pytest.raises(UndefinedNameError):
        _analyze_main("p.scale(); RETURN 0;")
    with pytest.raises(UndefinedNameError):
        _analyze_main("p.scale(1, 2); RETURN 0;")


def test_unknown_member():
    with pytest.raises(UndefinedNameError):
        _analyze_main("RETURN p.y;")


def test_declared_object_type():
    _analyze_main("LET q: Point = p; RETURN q.x;")
