# tests/conftest.py
"""
Shared builders for deadstore-shims tests.

Tests import these directly (``from tests.conftest import ...``) to build
small programs and control flow graphs without a parser front end.
"""

from typing import Iterable, List, Optional, Sequence, Set, Tuple, Union

import pytest

from deadstore_shims.ctrlflow_graph import ControlFlowGraph
from deadstore_shims.dataflow_analyses import LiveVariablesAnalysis, WorklistStrategy
from deadstore_shims.program_elements import (
    Assignment,
    BinaryOp,
    Call,
    ExpressionStatement,
    Identifier,
    Literal,
    Node,
    SourceLocation,
    VariableRef,
)
from deadstore_shims.symbols import Symbol, SymbolTable

FILE = "test.php"

Operand = Union[Node, str, int, float, bool, None]


def loc(line: int, column: int = 0) -> SourceLocation:
    return SourceLocation(FILE, line, column)


def node(x: Operand) -> Node:
    """``"$a"`` → VariableRef, other plain values → Literal, nodes as is."""
    if isinstance(x, Node):
        return x
    if isinstance(x, str) and x.startswith("$"):
        return VariableRef(x)
    return Literal(x)


def call(name: str, *args: Operand) -> Call:
    return Call(Identifier(name), tuple(node(a) for a in args))


def binop(op: str, left: Operand, right: Operand) -> BinaryOp:
    return BinaryOp(op, node(left), node(right))


def stmt(expr: Node, line: int = 0) -> ExpressionStatement:
    return ExpressionStatement(expr, location=loc(line))


def assign(target: Operand, value: Operand, line: int = 0, **kwargs) -> ExpressionStatement:
    """``target = value;`` as a statement element (``operator=``, ``by_reference=``)."""
    return stmt(Assignment(node(target), node(value), **kwargs), line)


def linear_cfg(*elements: Node, name: str = "main") -> ControlFlowGraph:
    """One body block holding ``elements``, followed by an empty end block."""
    cfg = ControlFlowGraph(name)
    body = cfg.add_block(elements, kind="start")
    end = cfg.add_block(kind="end")
    cfg.add_edge(body, end)
    return cfg


def build_cfg(
    blocks: Sequence[Iterable[Node]],
    edges: Iterable[Tuple[int, int]],
    name: str = "main",
) -> ControlFlowGraph:
    """First block is the start, last block the end."""
    cfg = ControlFlowGraph(name)
    last = len(blocks) - 1
    for index, elements in enumerate(blocks):
        kind = "start" if index == 0 else "end" if index == last else "body"
        cfg.add_block(elements, kind=kind)
    for src, dst in edges:
        cfg.add_edge(src, dst)
    return cfg


def analyze(
    cfg: ControlFlowGraph,
    table: Optional[SymbolTable] = None,
    strategy: WorklistStrategy = WorklistStrategy.LIFO,
    **kwargs,
) -> Tuple[LiveVariablesAnalysis, SymbolTable]:
    table = table if table is not None else SymbolTable(scope=cfg.name)
    return LiveVariablesAnalysis.analyze(cfg, table, strategy=strategy, **kwargs), table


def names(symbols: Iterable[Symbol]) -> Set[str]:
    return {s.name for s in symbols}


def name_list(symbols: Iterable[Symbol]) -> List[str]:
    return [s.name for s in symbols]


# ── Scenario graphs ─────────────────────────────────────────────


def loop_program() -> Tuple[ControlFlowGraph, dict]:
    """
    ::

        $a = $x + 1;          BB0
        do {
            use($a);          BB1
        } while (cond());     BB2  (true → BB1)
        $a = 0;               BB3
                              BB4  end
    """
    elements = {
        "init": assign("$a", binop("+", "$x", 1), line=1),
        "use": stmt(call("use", "$a"), line=3),
        "cond": stmt(call("cond"), line=4),
        "reset": assign("$a", 0, line=5),
    }
    cfg = build_cfg(
        [[elements["init"]], [elements["use"]], [elements["cond"]], [elements["reset"]], []],
        [(0, 1), (1, 2), (2, 1), (2, 3), (3, 4)],
        name="loop",
    )
    return cfg, elements


def branch_program() -> Tuple[ControlFlowGraph, dict]:
    """
    ::

        $a = $x + 1;          BB0
        foo($a);              BB0
        if (true) {           BB0
            $x = 1;           BB1
        }
                              BB2  end
    """
    elements = {
        "init": assign("$a", binop("+", "$x", 1), line=1),
        "foo": stmt(call("foo", "$a"), line=2),
        "cond": Literal(True, location=loc(3)),
        "set_x": assign("$x", 1, line=4),
    }
    cfg = build_cfg(
        [[elements["init"], elements["foo"], elements["cond"]], [elements["set_x"]], []],
        [(0, 1), (0, 2), (1, 2)],
        name="branch",
    )
    return cfg, elements


@pytest.fixture
def table() -> SymbolTable:
    return SymbolTable(scope="main")
