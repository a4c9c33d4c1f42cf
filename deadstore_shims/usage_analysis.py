"""
deadstore_shims/usage_analysis.py
═════════════════════════════════

Per-element read/write classification of variable occurrences.

For one program element, :func:`classify_element` returns a mapping
``Symbol → UsageState`` covering every variable occurrence inside the
element, nested sub-expressions included.  It is a pure function of the
element shape and the symbol resolver.

Classification rules
────────────────────
  ``$a``                      READ
  ``$a = e``                  $a WRITE, e classified recursively
  ``$a[i] = e``, ``$o->p = e``   target is not a plain variable: its
                              variables are READ (no field tracking)
  ``list($a, [$b]) = e``      every slot WRITE (nested patterns recurse,
                              keys of keyed slots are READ)
  ``static $a`` / ``global $a``  WRITE (initializer classified)
  ``++$a``, ``$a--``          READ_WRITE
  ``$a += e``, ``$a .= e``    READ_WRITE (compound assignment reads first)
  ``$a = &$b``                $a and $b READ_WRITE (alias binding)
  ``function () use ($a)``    READ (READ_WRITE when captured by reference);
                              the closure body is never visited

Several occurrences of one symbol inside one element combine on the lattice
``∅ < {READ, WRITE} < READ_WRITE``: ``$a = $a + 1`` is READ_WRITE.

Occurrences the resolver cannot resolve produce no entry at all.
"""

from __future__ import annotations

import enum
from typing import AbstractSet, Dict, Optional

from deadstore_shims.program_elements import (
    ArrayPair,
    Assignment,
    Capture,
    Closure,
    ListPattern,
    Node,
    UnaryUpdate,
    VariableDeclaration,
    VariableRef,
)
from deadstore_shims.symbols import Symbol, SymbolResolver


class UsageState(enum.Flag):
    """How one element uses one symbol.  Join is bitwise ``|``."""

    READ = 1
    WRITE = 2
    READ_WRITE = READ | WRITE

    @property
    def reads(self) -> bool:
        return bool(self & UsageState.READ)

    @property
    def writes(self) -> bool:
        return bool(self & UsageState.WRITE)

    @property
    def is_pure_write(self) -> bool:
        """A write that does not consume the previous value."""
        return self is UsageState.WRITE

    def join(self, other: Optional[UsageState]) -> UsageState:
        return self if other is None else self | other


UsageMap = Dict[Symbol, UsageState]

_NO_BOUNDARIES: AbstractSet[Node] = frozenset()


class _UsageCollector:
    """Walks one element and accumulates its usage map."""

    __slots__ = ("resolver", "boundaries", "usages")

    def __init__(
        self,
        resolver: SymbolResolver,
        boundaries: AbstractSet[Node],
    ) -> None:
        self.resolver = resolver
        self.boundaries = boundaries
        self.usages: UsageMap = {}

    def collect(self, element: Node) -> UsageMap:
        self._visit(element)
        return self.usages

    # ── recording ────────────────────────────────────────────────────

    def _record(self, ref: VariableRef, state: UsageState) -> None:
        symbol = self.resolver.resolve(ref)
        if symbol is None:
            return
        self.usages[symbol] = state.join(self.usages.get(symbol))

    # ── traversal ────────────────────────────────────────────────────

    def _descend(self, node: Node) -> None:
        # sub-trees that are CFG elements of their own are classified there
        if node in self.boundaries:
            return
        self._visit(node)

    def _visit(self, node: Node) -> None:
        if isinstance(node, VariableRef):
            self._record(node, UsageState.READ)
        elif isinstance(node, Assignment):
            self._visit_assignment(node)
        elif isinstance(node, ListPattern):
            self._visit_pattern(node)
        elif isinstance(node, VariableDeclaration):
            self._record(node.variable, UsageState.WRITE)
            if node.initializer is not None:
                self._descend(node.initializer)
        elif isinstance(node, UnaryUpdate):
            self._visit_target(node.operand, UsageState.READ_WRITE)
        elif isinstance(node, Closure):
            for capture in node.captures:
                self._visit_capture(capture)
        elif isinstance(node, Capture):
            self._visit_capture(node)
        elif isinstance(node, ArrayPair) and node.by_reference:
            if node.key is not None:
                self._descend(node.key)
            self._visit_target(node.value, UsageState.READ_WRITE)
        else:
            for child in node.children():
                self._descend(child)

    def _visit_assignment(self, node: Assignment) -> None:
        if node.by_reference:
            self._visit_target(node.target, UsageState.READ_WRITE)
            self._visit_target(node.value, UsageState.READ_WRITE)
            return
        if node.is_compound:
            self._visit_target(node.target, UsageState.READ_WRITE)
        else:
            self._visit_target(node.target, UsageState.WRITE)
        self._descend(node.value)

    def _visit_target(self, target: Node, state: UsageState) -> None:
        """
        Classify ``target`` in a store position with ``state``.  Only a
        plain variable (or, for pure writes, a destructuring pattern) is
        stored to; anything else is an ordinary expression.
        """
        if target in self.boundaries:
            return
        if isinstance(target, VariableRef):
            self._record(target, state)
        elif isinstance(target, ListPattern) and state.is_pure_write:
            self._visit_pattern(target)
        else:
            self._visit(target)

    def _visit_pattern(self, pattern: ListPattern) -> None:
        for slot in pattern.slots:
            if slot is None or slot in self.boundaries:
                continue
            if isinstance(slot, ArrayPair):
                if slot.key is not None:
                    self._descend(slot.key)
                state = UsageState.READ_WRITE if slot.by_reference else UsageState.WRITE
                self._visit_target(slot.value, state)
            else:
                self._visit_target(slot, UsageState.WRITE)

    def _visit_capture(self, capture: Capture) -> None:
        state = UsageState.READ_WRITE if capture.by_reference else UsageState.READ
        self._record(capture.variable, state)


def classify_element(
    element: Node,
    resolver: SymbolResolver,
    boundaries: AbstractSet[Node] = _NO_BOUNDARIES,
) -> UsageMap:
    """
    Classify every variable occurrence inside ``element``.

    Parameters
    ----------
    element : Node
        The program element (statement or expression) to classify.
    resolver : SymbolResolver
        Maps occurrences to symbols; ``None`` results are skipped.
    boundaries : set of Node
        Nodes that are CFG elements in their own right.  Sub-trees found
        in this set are not descended into (``element`` itself may be a
        member).

    Returns
    -------
    dict
        One entry per distinct symbol touched, in first-occurrence order.
    """
    return _UsageCollector(resolver, boundaries).collect(element)


__all__ = [
    "UsageState",
    "UsageMap",
    "classify_element",
]
