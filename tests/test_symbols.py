# tests/test_symbols.py
"""
Tests for symbols and the name-based symbol table.
"""

import pytest

from deadstore_shims.program_elements import VariableRef
from deadstore_shims.symbols import (
    PHP_SUPERGLOBALS,
    Symbol,
    SymbolKind,
    SymbolResolver,
    SymbolTable,
)


class TestSymbol:

    def test_identity_equality(self):
        a1 = Symbol("$a", scope="f")
        a2 = Symbol("$a", scope="f")
        assert a1 == a1
        assert a1 != a2
        assert len({a1, a2}) == 2

    def test_repr_includes_scope_and_kind(self):
        assert repr(Symbol("$a", "f", SymbolKind.STATIC)) == "Symbol(f::$a, static)"
        assert repr(Symbol("$a")) == "Symbol($a, local)"

    @pytest.mark.parametrize("kind,outlives", [
        (SymbolKind.LOCAL, False),
        (SymbolKind.PARAMETER, False),
        (SymbolKind.GLOBAL, True),
        (SymbolKind.STATIC, True),
        (SymbolKind.CAPTURED, True),
    ])
    def test_outlives_routine(self, kind, outlives):
        assert kind.outlives_routine is outlives


class TestSymbolTable:

    def test_lazy_local_resolution(self):
        table = SymbolTable(scope="f")
        first = table.resolve(VariableRef("$a"))
        second = table.resolve(VariableRef("$a"))
        assert first is second
        assert first.kind is SymbolKind.LOCAL
        assert first.scope == "f"

    def test_parameters_are_declared(self):
        table = SymbolTable(scope="f", parameters=["$x", "$y"])
        assert len(table) == 2
        assert table.resolve(VariableRef("$x")).kind is SymbolKind.PARAMETER

    def test_declare_is_idempotent_for_same_kind(self):
        table = SymbolTable()
        assert table.declare("$g", SymbolKind.GLOBAL) is table.declare("$g", SymbolKind.GLOBAL)

    def test_declare_conflicting_kind_raises(self):
        table = SymbolTable(parameters=["$x"])
        with pytest.raises(ValueError, match="already declared"):
            table.declare("$x", SymbolKind.STATIC)

    def test_superglobals_do_not_resolve(self):
        table = SymbolTable()
        for name in PHP_SUPERGLOBALS | {"$this"}:
            assert table.resolve(VariableRef(name)) is None
        assert len(table) == 0

    def test_custom_unresolvable(self):
        table = SymbolTable(unresolvable={"$skip"})
        assert table.resolve(VariableRef("$skip")) is None
        assert table.resolve(VariableRef("$this")) is not None

    def test_bind_overrides_name_lookup(self):
        table = SymbolTable(scope="outer")
        inner = Symbol("$a", scope="inner")
        ref = VariableRef("$a")
        table.bind(ref, inner)
        assert table.resolve(ref) is inner
        assert table.resolve(VariableRef("$a")) is not inner

    def test_lookup_does_not_create(self):
        table = SymbolTable()
        assert table.lookup("$a") is None
        assert "$a" not in table
        symbol = table.resolve(VariableRef("$a"))
        assert table.lookup("$a") is symbol
        assert "$a" in table

    def test_container_protocol(self):
        table = SymbolTable(parameters=["$x"])
        table.resolve(VariableRef("$y"))
        assert [s.name for s in table] == ["$x", "$y"]
        assert table.symbols == frozenset(table)

    def test_is_a_resolver(self):
        assert isinstance(SymbolTable(), SymbolResolver)
