"""
deadstore_shims/dead_store_detector.py
══════════════════════════════════════

Turns a solved :class:`LiveVariablesAnalysis` into dead-store findings.

Each block is walked backwards starting from a *copy* of its ``live_out``
set.  A pure write to a symbol that is not live at that point is a dead
store; the write then ends the symbol's liveness regardless.  Any read
(including the read half of READ_WRITE) makes the symbol live again, so
compound assignments and increments are never reported.

Findings come out in block-enumeration order and, inside a block, from the
last element to the first.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Set

from deadstore_shims.ctrlflow_graph import BlockId, ControlFlowGraph
from deadstore_shims.dataflow_analyses import LiveVariablesAnalysis, WorklistStrategy
from deadstore_shims.program_elements import Node, SourceLocation
from deadstore_shims.symbols import Symbol, SymbolResolver

DEAD_STORE_MESSAGE = "Found dead store!"


@dataclass(frozen=True)
class DeadStore:
    """A write to ``symbol`` inside ``element`` whose value is never read."""
    element: Node
    symbol: Symbol
    block_id: BlockId

    @property
    def location(self) -> SourceLocation:
        return self.element.location

    @property
    def message(self) -> str:
        return DEAD_STORE_MESSAGE

    def __str__(self) -> str:
        return f"{self.location}: {self.message} ({self.symbol.name})"


def find_dead_stores(
    cfg: ControlFlowGraph,
    analysis: LiveVariablesAnalysis,
) -> Iterator[DeadStore]:
    """Yield every dead store of ``cfg`` given its solved ``analysis``."""
    for block in cfg.blocks:
        lv = analysis.live_variables(block.id)
        live: Set[Symbol] = set(lv.live_out)
        for element in reversed(block.elements):
            for symbol, state in lv.usages(element).items():
                if state.is_pure_write:
                    if symbol not in live:
                        yield DeadStore(element, symbol, block.id)
                    live.discard(symbol)
                else:
                    live.add(symbol)


def detect_dead_stores(
    cfg: ControlFlowGraph,
    resolver: SymbolResolver,
    strategy: WorklistStrategy = WorklistStrategy.LIFO,
    max_iterations: Optional[int] = None,
) -> List[DeadStore]:
    """Analyse ``cfg`` and return its dead stores as a list."""
    analysis = LiveVariablesAnalysis.analyze(
        cfg, resolver, strategy=strategy, max_iterations=max_iterations
    )
    return list(find_dead_stores(cfg, analysis))


__all__ = [
    "DEAD_STORE_MESSAGE",
    "DeadStore",
    "find_dead_stores",
    "detect_dead_stores",
]
