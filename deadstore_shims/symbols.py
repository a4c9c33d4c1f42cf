"""
deadstore_shims.symbols
=======================

Variable identities and the resolver seam.

The analysis never decides what a variable *is*; it asks a
:class:`SymbolResolver` to map each :class:`VariableRef` occurrence to a
stable :class:`Symbol`, or to ``None`` when the occurrence cannot be
resolved.  Unresolved occurrences are invisible to liveness and therefore
can never be reported.

:class:`SymbolTable` is a small name-based resolver for one routine scope.
Hosts with a real scope model can bind individual occurrences with
:meth:`SymbolTable.bind` or supply their own resolver.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import (
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    Optional,
    Protocol,
    runtime_checkable,
)

from deadstore_shims.program_elements import VariableRef


class SymbolKind(enum.Enum):
    """Storage class of a variable, as far as the routine can tell."""

    LOCAL = "local"
    PARAMETER = "parameter"
    GLOBAL = "global"
    STATIC = "static"
    CAPTURED = "captured"

    @property
    def outlives_routine(self) -> bool:
        """Writes to such storage may be read after the routine returns."""
        return self in (SymbolKind.GLOBAL, SymbolKind.STATIC, SymbolKind.CAPTURED)


@dataclass(frozen=True, eq=False)
class Symbol:
    """
    Identity of one variable within one scope.

    Equality is identity: two symbols with the same name in different
    scopes (or declared twice by a host) are different variables.
    """
    name: str
    scope: str = ""
    kind: SymbolKind = SymbolKind.LOCAL

    def __repr__(self) -> str:
        where = f"{self.scope}::" if self.scope else ""
        return f"Symbol({where}{self.name}, {self.kind.value})"


@runtime_checkable
class SymbolResolver(Protocol):
    """Maps a variable occurrence to its :class:`Symbol`, or ``None``."""

    def resolve(self, ref: VariableRef) -> Optional[Symbol]:
        ...


# PHP names that never denote a routine-local variable.
PHP_SUPERGLOBALS: FrozenSet[str] = frozenset({
    "$GLOBALS",
    "$_SERVER",
    "$_GET",
    "$_POST",
    "$_FILES",
    "$_COOKIE",
    "$_SESSION",
    "$_REQUEST",
    "$_ENV",
})

DEFAULT_UNRESOLVABLE: FrozenSet[str] = PHP_SUPERGLOBALS | {"$this"}


class SymbolTable:
    """
    Name-based resolver for a single routine scope.

    Names are resolved lazily: the first occurrence of ``$a`` creates a
    ``LOCAL`` symbol and every later occurrence maps to that same object.
    Parameters and ``global`` / ``static`` bindings should be declared up
    front with :meth:`declare` so they carry the right kind.

    Usage
    -----
    >>> table = SymbolTable(scope="f", parameters=["$x"])
    >>> table.declare("$counter", SymbolKind.STATIC)
    >>> sym = table.resolve(VariableRef("$x"))
    >>> sym.kind
    <SymbolKind.PARAMETER: 'parameter'>
    """

    def __init__(
        self,
        scope: str = "",
        parameters: Iterable[str] = (),
        unresolvable: Iterable[str] = DEFAULT_UNRESOLVABLE,
    ) -> None:
        self.scope = scope
        self._by_name: Dict[str, Symbol] = {}
        # occurrence → symbol, overrides name lookup
        self._bound: Dict[VariableRef, Optional[Symbol]] = {}
        self._unresolvable: FrozenSet[str] = frozenset(unresolvable)
        for name in parameters:
            self.declare(name, SymbolKind.PARAMETER)

    # ── declarations ─────────────────────────────────────────────────

    def declare(self, name: str, kind: SymbolKind = SymbolKind.LOCAL) -> Symbol:
        """
        Return the symbol for ``name``, creating it with ``kind``.

        Raises ``ValueError`` if ``name`` already exists with another kind:
        symbols are immutable identities and cannot change storage class
        once handed out.
        """
        existing = self._by_name.get(name)
        if existing is not None:
            if existing.kind is not kind:
                raise ValueError(
                    f"{name} already declared as {existing.kind.value} "
                    f"in scope {self.scope!r}"
                )
            return existing
        symbol = Symbol(name=name, scope=self.scope, kind=kind)
        self._by_name[name] = symbol
        return symbol

    def bind(self, ref: VariableRef, symbol: Optional[Symbol]) -> None:
        """Pin one occurrence to ``symbol`` (``None`` = unresolvable)."""
        self._bound[ref] = symbol

    # ── resolution ───────────────────────────────────────────────────

    def resolve(self, ref: VariableRef) -> Optional[Symbol]:
        if ref in self._bound:
            return self._bound[ref]
        if ref.name in self._unresolvable:
            return None
        symbol = self._by_name.get(ref.name)
        if symbol is None:
            symbol = self.declare(ref.name)
        return symbol

    def lookup(self, name: str) -> Optional[Symbol]:
        """Symbol already known under ``name``, without creating one."""
        return self._by_name.get(name)

    # ── container protocol ───────────────────────────────────────────

    @property
    def symbols(self) -> FrozenSet[Symbol]:
        return frozenset(self._by_name.values())

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[Symbol]:
        return iter(list(self._by_name.values()))

    def __len__(self) -> int:
        return len(self._by_name)

    def __repr__(self) -> str:
        return f"SymbolTable(scope={self.scope!r}, symbols={len(self)})"


__all__ = [
    "SymbolKind",
    "Symbol",
    "SymbolResolver",
    "SymbolTable",
    "PHP_SUPERGLOBALS",
    "DEFAULT_UNRESOLVABLE",
]
