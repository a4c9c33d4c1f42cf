# deadstore_shims/errors.py
"""
Error types raised by the dead-store analysis.

Hierarchy
─────────
  DeadStoreShimsError (base)
  ├── CfgUnavailableError   - the host could not build a CFG for a routine
  ├── MalformedGraphError   - a CFG violates the structural contract
  ├── UnknownBlockError     - a block id outside the graph was requested
  └── SolverInvariantError  - the liveness solver broke its own invariants

Error codes follow the pattern ``DSS-NNNN``:
  - 1000-1999: CFG / input contract errors
  - 9000-9999: internal errors (should never happen)

Only :class:`CfgUnavailableError` is recoverable: the checker skips the
routine.  Everything else propagates to the caller.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Stable error codes, one per exception class."""

    GENERIC = "DSS-0000"
    CFG_UNAVAILABLE = "DSS-1001"
    MALFORMED_GRAPH = "DSS-1002"
    UNKNOWN_BLOCK = "DSS-1003"
    SOLVER_INVARIANT = "DSS-9001"

    def __str__(self) -> str:
        return self.value


class DeadStoreShimsError(Exception):
    """
    Base exception for all deadstore-shims errors.

    Carries an :class:`ErrorCode` and an optional ``context`` dict with
    machine-readable details (block ids, iteration counts, ...).
    """

    default_code: ErrorCode = ErrorCode.GENERIC

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context: Dict[str, Any] = dict(context or {})
        self.cause = cause

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class CfgUnavailableError(DeadStoreShimsError):
    """The CFG builder could not handle a routine (unsupported construct)."""

    default_code = ErrorCode.CFG_UNAVAILABLE

    def __init__(self, routine: str, reason: str = "", **kwargs: Any) -> None:
        message = f"no control flow graph for routine '{routine}'"
        if reason:
            message += f": {reason}"
        super().__init__(message, **kwargs)
        self.routine = routine
        self.reason = reason


class MalformedGraphError(DeadStoreShimsError):
    """A control flow graph does not satisfy the structural contract."""

    default_code = ErrorCode.MALFORMED_GRAPH


class UnknownBlockError(DeadStoreShimsError, KeyError):
    """Lookup of a block id that does not belong to the graph."""

    default_code = ErrorCode.UNKNOWN_BLOCK

    def __init__(self, block_id: Any, block_count: int) -> None:
        super().__init__(
            f"block id {block_id!r} is not in a graph of {block_count} blocks",
            context={"block_id": block_id, "block_count": block_count},
        )
        self.block_id = block_id

    # KeyError.__str__ would repr() the message
    __str__ = DeadStoreShimsError.__str__


class SolverInvariantError(DeadStoreShimsError):
    """
    The liveness solver failed to converge within its theoretical bound,
    or a live-in set shrank between two updates.

    This is a defect in the solver or in the gen/kill computation, never a
    property of the analysed program.
    """

    default_code = ErrorCode.SOLVER_INVARIANT


__all__ = [
    "ErrorCode",
    "DeadStoreShimsError",
    "CfgUnavailableError",
    "MalformedGraphError",
    "UnknownBlockError",
    "SolverInvariantError",
]
