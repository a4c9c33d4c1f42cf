# tests/test_dead_stores.py
"""
Tests for the dead-store detector.
"""

import pytest

from deadstore_shims.dataflow_analyses import WorklistStrategy
from deadstore_shims.dead_store_detector import (
    DEAD_STORE_MESSAGE,
    DeadStore,
    detect_dead_stores,
    find_dead_stores,
)
from deadstore_shims.program_elements import (
    ListPattern,
    UnaryUpdate,
    VariableDeclaration,
    VariableRef,
)
from deadstore_shims.symbols import SymbolKind, SymbolTable
from tests.conftest import (
    analyze,
    assign,
    binop,
    branch_program,
    build_cfg,
    call,
    linear_cfg,
    loop_program,
    stmt,
)


def found(stores):
    return [(s.symbol.name, s.element) for s in stores]


class TestStraightLine:

    def test_all_unread_writes_are_dead(self):
        foo = assign("$foo", 1, line=1)
        bar = assign("$bar", call("bar"), line=2)
        qix = assign("$qix", binop("+", 1, 2), line=3)
        stores = detect_dead_stores(linear_cfg(foo, bar, qix), SymbolTable())
        # reverse element order within a block
        assert found(stores) == [("$qix", qix), ("$bar", bar), ("$foo", foo)]

    def test_reads_produce_no_findings(self):
        cfg = linear_cfg(stmt(call("foo", "$foo", "$bar")))
        assert detect_dead_stores(cfg, SymbolTable()) == []

    def test_read_keeps_store_alive(self):
        cfg = linear_cfg(assign("$a", 1), stmt(call("f", "$a")))
        assert detect_dead_stores(cfg, SymbolTable()) == []

    def test_overwritten_store_is_dead(self):
        first = assign("$a", 1, line=1)
        second = assign("$a", 2, line=2)
        cfg = linear_cfg(first, second, stmt(call("f", "$a")))
        assert found(detect_dead_stores(cfg, SymbolTable())) == [("$a", first)]

    def test_store_read_by_own_value_then_dead(self):
        first = assign("$a", 1, line=1)
        second = assign("$b", "$a", line=2)
        cfg = linear_cfg(first, second)
        assert found(detect_dead_stores(cfg, SymbolTable())) == [("$b", second)]


class TestReadWriteNeverFlagged:

    @pytest.mark.parametrize("element", [
        assign("$a", binop("+", "$a", 1)),
        assign("$a", 1, operator="+="),
        stmt(UnaryUpdate("++", VariableRef("$a"), prefix=False)),
        assign("$a", "$b", by_reference=True),
    ])
    def test_read_write_forms(self, element):
        stores = detect_dead_stores(linear_cfg(element), SymbolTable())
        assert "$a" not in [s.symbol.name for s in stores]

    def test_read_write_keeps_earlier_store_alive(self):
        cfg = linear_cfg(assign("$a", 1), assign("$a", 1, operator="+="))
        assert detect_dead_stores(cfg, SymbolTable()) == []


class TestControlFlow:

    @pytest.mark.parametrize("strategy", list(WorklistStrategy))
    def test_loop_back_edge(self, strategy):
        cfg, elements = loop_program()
        stores = detect_dead_stores(cfg, SymbolTable(), strategy=strategy)
        assert found(stores) == [("$a", elements["reset"])]
        assert stores[0].block_id == 3

    def test_branch(self):
        cfg, elements = branch_program()
        stores = detect_dead_stores(cfg, SymbolTable())
        assert found(stores) == [("$x", elements["set_x"])]

    def test_store_live_on_one_path(self):
        # $a = 1; if (c) { f($a); }
        init = assign("$a", 1)
        cfg = build_cfg(
            [[init, stmt(call("c"))], [stmt(call("f", "$a"))], []],
            [(0, 1), (0, 2), (1, 2)],
        )
        assert detect_dead_stores(cfg, SymbolTable()) == []

    def test_findings_in_block_order(self):
        first = assign("$a", 1)
        second = assign("$b", 2)
        cfg = build_cfg([[first], [second], []], [(0, 1), (1, 2)])
        assert found(detect_dead_stores(cfg, SymbolTable())) == [("$a", first), ("$b", second)]

    def test_unreachable_block_is_still_checked(self):
        orphan = assign("$z", 1)
        cfg = build_cfg([[], [orphan], []], [(0, 2), (1, 2)])
        assert found(detect_dead_stores(cfg, SymbolTable())) == [("$z", orphan)]


class TestElements:

    def test_destructuring_reports_each_dead_slot(self):
        pattern = ListPattern((VariableRef("$a"), VariableRef("$b")))
        element = assign(pattern, call("pair"))
        cfg = linear_cfg(element, stmt(call("f", "$b")))
        assert found(detect_dead_stores(cfg, SymbolTable())) == [("$a", element)]

    def test_destructuring_first_occurrence_order(self):
        pattern = ListPattern((VariableRef("$a"), VariableRef("$b")))
        element = assign(pattern, call("pair"))
        stores = detect_dead_stores(linear_cfg(element), SymbolTable())
        assert [s.symbol.name for s in stores] == ["$a", "$b"]

    def test_declaration_without_use(self):
        table = SymbolTable()
        table.declare("$n", SymbolKind.STATIC)
        decl = VariableDeclaration(VariableRef("$n"))
        stores = detect_dead_stores(linear_cfg(decl), table)
        assert found(stores) == [("$n", decl)]
        assert stores[0].symbol.kind is SymbolKind.STATIC

    def test_parameter_overwrite(self):
        table = SymbolTable(parameters=["$p"])
        element = assign("$p", 0)
        assert found(detect_dead_stores(linear_cfg(element), table)) == [("$p", element)]

    def test_unresolvable_writes_are_ignored(self):
        cfg = linear_cfg(assign("$_SESSION", 1), assign("$this", 2))
        assert detect_dead_stores(cfg, SymbolTable()) == []


class TestDetector:

    def test_does_not_mutate_solver_state(self):
        cfg, _ = loop_program()
        analysis, _ = analyze(cfg)
        before = [(lv.live_in, lv.live_out) for lv in analysis]
        list(find_dead_stores(cfg, analysis))
        assert [(lv.live_in, lv.live_out) for lv in analysis] == before

    def test_is_lazy(self):
        cfg = linear_cfg(assign("$a", 1), assign("$b", 2))
        analysis, _ = analyze(cfg)
        stores = find_dead_stores(cfg, analysis)
        assert next(stores).symbol.name == "$b"

    def test_dead_store_fields(self):
        element = assign("$a", 1, line=7)
        (store,) = detect_dead_stores(linear_cfg(element), SymbolTable())
        assert isinstance(store, DeadStore)
        assert store.location.line == 7
        assert store.message == DEAD_STORE_MESSAGE
        assert str(store) == "test.php:7: Found dead store! ($a)"
