"""
deadstore_shims/dataflow_analyses.py
════════════════════════════════════

Live-variables analysis over a :class:`ControlFlowGraph`.

  Direction:   BACKWARD
  Confluence:  JOIN (may / union)
  Lattice:     ℘(Symbol)  - variables whose current value may be read later
  Transfer:    in(B)  = gen(B) ∪ (out(B) − kill(B))
               out(B) = ⋃ in(S)  for S ∈ succ(B)

Two layers:

``LiveVariables``
    Summary of one block.  A single forward pass over the block's
    elements computes ``gen`` (uses not preceded by a pure overwrite in the
    same block) and ``kill`` (symbols written anywhere in the block).  The
    per-element usage maps are kept for the dead-store detector.

``LiveVariablesAnalysis``
    Worklist fixpoint over all blocks.  ``live_in`` sets only grow, so the
    number of updates per block is bounded by the number of symbols; the
    solver enforces that bound and raises :class:`SolverInvariantError`
    rather than loop.

The worklist discipline (:class:`WorklistStrategy`) changes how many
iterations are needed, never the fixpoint itself.
"""

from __future__ import annotations

import enum
import logging
from collections import deque
from types import MappingProxyType
from typing import (
    AbstractSet,
    Deque,
    Dict,
    FrozenSet,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

from deadstore_shims.ctrlflow_graph import BlockId, CfgBlock, ControlFlowGraph
from deadstore_shims.errors import SolverInvariantError
from deadstore_shims.program_elements import Node
from deadstore_shims.symbols import Symbol, SymbolResolver
from deadstore_shims.usage_analysis import UsageMap, UsageState, classify_element

logger = logging.getLogger(__name__)

_EMPTY: FrozenSet[Symbol] = frozenset()
_NO_USAGES: Mapping[Symbol, UsageState] = MappingProxyType({})


# ===========================================================================
# WORKLIST STRATEGY
# ===========================================================================

class WorklistStrategy(enum.Enum):
    """Order in which blocks are taken from the worklist."""
    LIFO = "lifo"    # stack seeded in block order
    FIFO = "fifo"    # queue seeded in block order
    PO = "po"        # queue seeded in post-order (exit-side blocks first)


# ===========================================================================
# BLOCK SUMMARY
# ===========================================================================

class LiveVariables:
    """
    Liveness facts for one basic block.

    Attributes
    ----------
    block : CfgBlock
    gen : frozenset[Symbol]
        Upward-exposed uses: read before any pure overwrite in the block.
    kill : frozenset[Symbol]
        Symbols written (purely or not) somewhere in the block.
    live_in : frozenset[Symbol]
        Live on entry; updated by the solver.
    live_out : frozenset[Symbol]
        Live on exit; updated by the solver.
    """

    __slots__ = ("block", "gen", "kill", "live_in", "live_out", "_usages")

    def __init__(
        self,
        block: CfgBlock,
        gen: FrozenSet[Symbol],
        kill: FrozenSet[Symbol],
        usages: Dict[Node, UsageMap],
    ) -> None:
        self.block = block
        self.gen = gen
        self.kill = kill
        self.live_in: FrozenSet[Symbol] = _EMPTY
        self.live_out: FrozenSet[Symbol] = _EMPTY
        self._usages = usages

    @classmethod
    def summarize(
        cls,
        block: CfgBlock,
        resolver: SymbolResolver,
        boundaries: AbstractSet[Node] = _EMPTY,
    ) -> LiveVariables:
        """Classify every element of ``block`` and fold the results."""
        return cls.from_usages(
            block,
            [(e, classify_element(e, resolver, boundaries)) for e in block.elements],
        )

    @classmethod
    def from_usages(
        cls,
        block: CfgBlock,
        usages: Sequence[Tuple[Node, UsageMap]],
    ) -> LiveVariables:
        """
        Fold per-element usage maps, given in execution order, into
        ``gen`` / ``kill``.
        """
        gen: Set[Symbol] = set()
        kill: Set[Symbol] = set()
        # overwritten earlier in this block with no read of the old value
        locally_defined: Set[Symbol] = set()
        for _element, usage in usages:
            for symbol, state in usage.items():
                if state.reads and symbol not in locally_defined:
                    gen.add(symbol)
                if state.writes:
                    kill.add(symbol)
                    if state.is_pure_write:
                        locally_defined.add(symbol)
        return cls(block, frozenset(gen), frozenset(kill), dict(usages))

    def usages(self, element: Node) -> Mapping[Symbol, UsageState]:
        """Read-only usage map of ``element`` (empty if it has none)."""
        usage = self._usages.get(element)
        return MappingProxyType(usage) if usage is not None else _NO_USAGES

    def element_usages(self) -> Iterator[Tuple[Node, Mapping[Symbol, UsageState]]]:
        """``(element, usages)`` pairs in execution order."""
        for element in self.block.elements:
            yield element, self.usages(element)

    def transfer(self, live_out: FrozenSet[Symbol]) -> FrozenSet[Symbol]:
        """in = gen ∪ (out − kill)"""
        return self.gen | (live_out - self.kill)

    def __repr__(self) -> str:
        def names(symbols: FrozenSet[Symbol]) -> str:
            return "[" + ", ".join(sorted(s.name for s in symbols)) + "]"

        return (
            f"LiveVariables(BB{self.block.id}, gen={names(self.gen)}, "
            f"kill={names(self.kill)}, in={names(self.live_in)}, "
            f"out={names(self.live_out)})"
        )


# ===========================================================================
# FIXPOINT SOLVER
# ===========================================================================

class LiveVariablesAnalysis:
    """
    Live-variables fixpoint for one routine.

    Usage
    -----
    >>> analysis = LiveVariablesAnalysis.analyze(cfg, symbol_table)
    >>> analysis.live_out(cfg.start)
    frozenset({...})

    Every structure is private to one ``analyze`` call; routines can be
    analysed concurrently with one instance each.
    """

    def __init__(
        self,
        cfg: ControlFlowGraph,
        per_block: List[LiveVariables],
    ) -> None:
        self.cfg = cfg
        self._per_block = per_block
        self.iterations = 0
        self.converged = False

    # ── construction ─────────────────────────────────────────────────

    @classmethod
    def analyze(
        cls,
        cfg: ControlFlowGraph,
        resolver: SymbolResolver,
        strategy: WorklistStrategy = WorklistStrategy.LIFO,
        max_iterations: Optional[int] = None,
    ) -> LiveVariablesAnalysis:
        """
        Summarize every block of ``cfg`` and solve to the fixpoint.

        Raises
        ------
        MalformedGraphError
            ``cfg`` violates the structural contract.
        SolverInvariantError
            the fixpoint was not reached within the bound.
        """
        cfg.validate()
        boundaries = frozenset(cfg.elements())
        per_block = [
            LiveVariables.summarize(block, resolver, boundaries)
            for block in cfg.blocks
        ]
        analysis = cls(cfg, per_block)
        analysis.solve(strategy, max_iterations)
        return analysis

    def iteration_bound(self) -> int:
        """
        Upper bound on worklist pops: every block once, plus one push per
        predecessor edge each time a ``live_in`` set grows.  ``live_in``
        sets never leave the union of all ``gen`` sets, so each can grow
        at most that many times.
        """
        universe: Set[Symbol] = set()
        for lv in self._per_block:
            universe |= lv.gen
        return len(self._per_block) + len(universe) * self.cfg.edge_count

    def solve(
        self,
        strategy: WorklistStrategy = WorklistStrategy.LIFO,
        max_iterations: Optional[int] = None,
    ) -> int:
        """
        Run the worklist to the fixpoint.  Returns the number of
        iterations taken.
        """
        blocks = self.cfg.blocks
        bound = max_iterations if max_iterations is not None else self.iteration_bound()

        if strategy is WorklistStrategy.PO:
            worklist: Deque[BlockId] = deque(self.cfg.postorder())
        else:
            worklist = deque(b.id for b in blocks)
        queued: Set[BlockId] = set(worklist)
        push = worklist.appendleft if strategy is WorklistStrategy.LIFO else worklist.append

        iteration = 0
        while worklist:
            if iteration >= bound:
                raise SolverInvariantError(
                    f"liveness of {self.cfg.name!r} did not converge in "
                    f"{bound} iterations",
                    context={"bound": bound, "pending": list(worklist)},
                )
            iteration += 1
            bid = worklist.popleft()
            queued.discard(bid)
            lv = self._per_block[bid]

            live_out = _EMPTY.union(
                *(self._per_block[s].live_in for s in blocks[bid].successors)
            )
            new_in = lv.transfer(live_out)
            lv.live_out = live_out

            if new_in != lv.live_in:
                if not lv.live_in <= new_in:
                    raise SolverInvariantError(
                        f"live-in of BB{bid} in {self.cfg.name!r} shrank",
                        context={"block": bid, "lost": sorted(
                            s.name for s in lv.live_in - new_in)},
                    )
                lv.live_in = new_in
                for pred in blocks[bid].predecessors:
                    if pred not in queued:
                        push(pred)
                        queued.add(pred)

        self.iterations = iteration
        self.converged = True
        logger.debug(
            "liveness of %s converged after %d iterations (%s, bound %d)",
            self.cfg.name, iteration, strategy.value, bound,
        )
        return iteration

    # ── query API ────────────────────────────────────────────────────

    def live_variables(self, block: Union[CfgBlock, BlockId]) -> LiveVariables:
        return self._per_block[self.cfg.block(block).id]

    def live_in(self, block: Union[CfgBlock, BlockId]) -> FrozenSet[Symbol]:
        return self.live_variables(block).live_in

    def live_out(self, block: Union[CfgBlock, BlockId]) -> FrozenSet[Symbol]:
        return self.live_variables(block).live_out

    def is_live_out(self, symbol: Symbol, block: Union[CfgBlock, BlockId]) -> bool:
        return symbol in self.live_out(block)

    def live_after(self, element: Node) -> FrozenSet[Symbol]:
        """
        Symbols live immediately after ``element``: the block's
        ``live_out`` walked backwards over the elements that follow it.
        """
        block = self.cfg.block_of(element)
        if block is None:
            raise ValueError(f"{element.kind} is not an element of {self.cfg.name!r}")
        lv = self._per_block[block.id]
        live = set(lv.live_out)
        for later in reversed(block.elements):
            if later is element:
                break
            for symbol, state in lv.usages(later).items():
                if state.is_pure_write:
                    live.discard(symbol)
                else:
                    live.add(symbol)
        return frozenset(live)

    def __iter__(self) -> Iterator[LiveVariables]:
        return iter(self._per_block)

    def __len__(self) -> int:
        return len(self._per_block)

    def __repr__(self) -> str:
        return (
            f"LiveVariablesAnalysis({self.cfg.name!r}, blocks={len(self)}, "
            f"iterations={self.iterations})"
        )


__all__ = [
    "WorklistStrategy",
    "LiveVariables",
    "LiveVariablesAnalysis",
]
