"""
deadstore_shims/checkers.py
═══════════════════════════

Turns dead-store findings into diagnostics.

The analysis modules answer "which stores are dead"; this module is the
last mile that decides which of those findings reach the user, how they
are worded and how they are serialized.

Pipeline
────────

  routines ──► DeadStoreChecker.check ──► SuppressionManager ──► DeadStoreReport
                 │
                 └─ LiveVariablesAnalysis ─► find_dead_stores

Routines whose control flow graph cannot be built are skipped.  Any other
error, in particular :class:`SolverInvariantError`, propagates out of the
runner unchanged.
"""

from __future__ import annotations

import json
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field, fields
from enum import Enum, auto
from fnmatch import fnmatch
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Union,
)

from deadstore_shims.ctrlflow_graph import ControlFlowGraph
from deadstore_shims.dataflow_analyses import LiveVariablesAnalysis, WorklistStrategy
from deadstore_shims.dead_store_detector import (
    DEAD_STORE_MESSAGE,
    DeadStore,
    find_dead_stores,
)
from deadstore_shims.errors import CfgUnavailableError, DeadStoreShimsError
from deadstore_shims.program_elements import NO_LOCATION, SourceLocation
from deadstore_shims.symbols import SymbolResolver

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 - DIAGNOSTIC MODEL
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(Enum):
    """cppcheck-compatible severity levels."""
    STYLE = "style"


class Confidence(Enum):
    """
    How certain we are that the diagnostic is a true positive.

    HIGH   - the analysis proves the store is never read
    MEDIUM - proven modulo storage the analysis cannot see (globals, statics)
    """
    HIGH = auto()
    MEDIUM = auto()


@dataclass(frozen=True)
class Diagnostic:
    """
    A single diagnostic finding.

    Attributes
    ----------
    error_id     : Unique identifier (``"deadStore"``)
    message      : Human-readable description
    severity     : DiagnosticSeverity
    location     : Primary source location
    confidence   : Confidence level
    cwe          : CWE identifier (0 = none)
    addon        : Tool name written into JSON output
    extra        : Additional context string (the variable name)
    evidence     : Machine-readable evidence dict for downstream tooling
    """
    error_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    confidence: Confidence = Confidence.HIGH
    cwe: int = 0
    addon: str = "deadstore-shims"
    extra: str = ""
    evidence: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        """Serialize to a cppcheck-addon style JSON object."""
        result: Dict[str, Any] = {
            "file": self.location.file,
            "linenr": self.location.line,
            "column": self.location.column,
            "severity": self.severity.value,
            "message": self.message,
            "addon": self.addon,
            "errorId": self.error_id,
            "extra": self.extra,
        }
        if self.cwe:
            result["cwe"] = self.cwe
        return result

    def to_json_str(self) -> str:
        """Single-line JSON string."""
        return json.dumps(self.to_json())

    def to_gcc_format(self) -> str:
        """GCC-style diagnostic string: file:line:col: severity: message."""
        sev = self.severity.value
        return f"{self.location}: {sev}: {self.message} [{self.error_id}]"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 - SUPPRESSION MANAGER
# ═════════════════════════════════════════════════════════════════════════

class SuppressionManager:
    """
    Manages diagnostic suppressions.

    Sources:
      1. Line suppressions  (``errorId`` at ``file:line``)
      2. File-level suppressions (exact path, trailing path components or
         fnmatch pattern)
      3. Global suppressions

    ``"*"`` in place of an error id suppresses everything at that scope.

    Usage
    -----
    >>> sm = SuppressionManager()
    >>> sm.add_line_suppression("deadStore", "src/index.php", 12)
    >>> sm.add_file_suppression("deadStore", "vendor/*")
    >>> sm.add_suppression("deadStore:legacy.php")
    >>> if not sm.is_suppressed(diagnostic):
    ...     emit(diagnostic)
    """

    def __init__(self) -> None:
        # (file, line) → set of error_ids suppressed at that location
        self._line_level: Dict[Tuple[str, int], Set[str]] = defaultdict(set)
        # file pattern → set of error_ids
        self._file_level: Dict[str, Set[str]] = defaultdict(set)
        # globally suppressed error_ids
        self._global: Set[str] = set()

    def add_line_suppression(self, error_id: str, file: str, line: int) -> None:
        """Suppress ``error_id`` on one line of one file."""
        self._line_level[(file, line)].add(error_id)

    def add_file_suppression(self, error_id: str, file_pattern: str) -> None:
        """Suppress ``error_id`` in files matching ``file_pattern``."""
        self._file_level[file_pattern].add(error_id)

    def add_global_suppression(self, error_id: str) -> None:
        """Globally suppress ``error_id``."""
        self._global.add(error_id)

    def add_suppression(self, text: str) -> None:
        """
        Parse a cppcheck-style suppression ``errorId[:file[:line]]``.

        A trailing component that is not a number is part of the file
        pattern.  Raises ``ValueError`` for an empty id.
        """
        error_id, _, rest = text.strip().partition(":")
        if not error_id:
            raise ValueError(f"suppression without error id: {text!r}")
        if not rest:
            self.add_global_suppression(error_id)
            return
        file, sep, line = rest.rpartition(":")
        if sep and line.isdigit():
            self.add_line_suppression(error_id, file, int(line))
        else:
            self.add_file_suppression(error_id, rest)

    def is_suppressed(self, diag: Diagnostic) -> bool:
        """Check whether a diagnostic should be suppressed."""
        eid = diag.error_id

        if eid in self._global or "*" in self._global:
            return True

        loc = diag.location

        ids = self._line_level.get((loc.file, loc.line))
        if ids and (eid in ids or "*" in ids):
            return True

        for pattern, ids in self._file_level.items():
            if eid not in ids and "*" not in ids:
                continue
            if loc.file == pattern or loc.file.endswith("/" + pattern):
                return True
            if fnmatch(loc.file, pattern):
                return True

        return False

    def filter_diagnostics(
        self, diagnostics: Iterable[Diagnostic]
    ) -> List[Diagnostic]:
        """Return only non-suppressed diagnostics."""
        return [d for d in diagnostics if not self.is_suppressed(d)]

    def __len__(self) -> int:
        return (
            len(self._global)
            + sum(len(ids) for ids in self._file_level.values())
            + sum(len(ids) for ids in self._line_level.values())
        )


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 - ROUTINES AND OPTIONS
# ═════════════════════════════════════════════════════════════════════════

CfgSource = Union[ControlFlowGraph, Callable[[], Optional[ControlFlowGraph]], None]


@dataclass
class Routine:
    """
    One function, method, closure or top-level script body to check.

    ``cfg`` is either a built graph, a zero-argument factory producing one,
    or ``None`` when the front end could not build it.  A factory may also
    signal that with :class:`CfgUnavailableError`.
    """
    name: str
    cfg: CfgSource
    resolver: SymbolResolver
    location: SourceLocation = NO_LOCATION

    def control_flow_graph(self) -> Optional[ControlFlowGraph]:
        """The routine's graph, or ``None`` if it cannot be built."""
        if self.cfg is None or isinstance(self.cfg, ControlFlowGraph):
            return self.cfg
        try:
            return self.cfg()
        except CfgUnavailableError as exc:
            logger.debug("%s", exc)
            return None


@dataclass(frozen=True)
class CheckerOptions:
    """
    Settings of one dead-store run.

    worklist_strategy : block visiting order of the liveness solver
    max_iterations    : explicit solver cap, ``None`` for the computed bound
    report_non_local  : also report stores to globals, statics and
                        by-reference captures, whose value outlives the routine
    """
    worklist_strategy: WorklistStrategy = WorklistStrategy.LIFO
    max_iterations: Optional[int] = None
    report_non_local: bool = False

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]]) -> "CheckerOptions":
        """
        Build options from a plain dict such as a parsed config file.

        Strategy names are case-insensitive.  Unknown keys and unknown
        strategy names raise ``ValueError``.
        """
        values = dict(options or {})
        unknown = sorted(set(values) - {f.name for f in fields(cls)})
        if unknown:
            raise ValueError(f"unknown option(s): {', '.join(unknown)}")
        strategy = values.get("worklist_strategy", WorklistStrategy.LIFO)
        if not isinstance(strategy, WorklistStrategy):
            strategy = WorklistStrategy(str(strategy).lower())
        return cls(
            worklist_strategy=strategy,
            max_iterations=values.get("max_iterations"),
            report_non_local=bool(values.get("report_non_local", False)),
        )


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 - DEAD STORE CHECKER (CWE-563)
# ═════════════════════════════════════════════════════════════════════════

class DeadStoreChecker:
    """
    Detects assignments whose value is never subsequently read.

    Uses LiveVariablesAnalysis (backward, may): if a variable is not live
    after a pure write, the store is dead.  Stores to symbols that outlive
    the routine are dropped unless ``report_non_local`` is set.

    CWE-563: Assignment to Variable without Use
    """

    name: ClassVar[str] = "dead-store"
    error_id: ClassVar[str] = "deadStore"
    cwe: ClassVar[int] = 563
    severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.STYLE

    def __init__(self, options: Optional[CheckerOptions] = None) -> None:
        self.options = options if options is not None else CheckerOptions()

    def check(self, routine: Routine, stats: Dict[str, Any]) -> List[Diagnostic]:
        """
        Diagnostics for one routine, in detector order.

        Updates the ``routines_analysed``, ``routines_skipped`` and
        ``solver_iterations`` counters in ``stats``.
        """
        cfg = routine.control_flow_graph()
        if cfg is None:
            logger.debug("skipping routine %s: no control flow graph", routine.name)
            stats["routines_skipped"] += 1
            return []

        analysis = LiveVariablesAnalysis.analyze(
            cfg,
            routine.resolver,
            strategy=self.options.worklist_strategy,
            max_iterations=self.options.max_iterations,
        )
        stats["routines_analysed"] += 1
        stats["solver_iterations"] += analysis.iterations

        diagnostics = []
        for store in find_dead_stores(cfg, analysis):
            non_local = store.symbol.kind.outlives_routine
            if non_local and not self.options.report_non_local:
                continue
            diagnostics.append(self._diagnostic(routine, store, non_local))
        return diagnostics

    def _diagnostic(self, routine: Routine, store: DeadStore, non_local: bool) -> Diagnostic:
        symbol = store.symbol
        return Diagnostic(
            error_id=self.error_id,
            message=DEAD_STORE_MESSAGE,
            severity=self.severity,
            location=store.location,
            confidence=Confidence.MEDIUM if non_local else Confidence.HIGH,
            cwe=self.cwe,
            extra=symbol.name,
            evidence={
                "routine": routine.name,
                "variable": symbol.name,
                "kind": symbol.kind.value,
                "block": store.block_id,
                "element": store.element.kind,
            },
        )


# ═════════════════════════════════════════════════════════════════════════
#  PART 5 - RUNNER
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class DeadStoreReport:
    """
    Outcome of one :meth:`CheckerRunner.run`.

    Attributes
    ----------
    diagnostics : reported diagnostics, in routine order
    suppressed  : number of diagnostics dropped by suppressions
    stats       : routine counters, solver iterations and ``elapsed_ms``
    """
    diagnostics: List[Diagnostic] = field(default_factory=list)
    suppressed: int = 0
    stats: Dict[str, Any] = field(default_factory=lambda: {
        "routines_analysed": 0,
        "routines_skipped": 0,
        "solver_iterations": 0,
    })

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    def by_file(self, file: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.location.file == file]

    def to_json_lines(self) -> str:
        return "\n".join(d.to_json_str() for d in self.diagnostics)

    def to_gcc_format(self) -> str:
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)

    def summary(self) -> str:
        s = self.stats
        return (
            f"{self.total_count} dead stores in {s['routines_analysed']} routines "
            f"({s['routines_skipped']} skipped, {self.suppressed} suppressed, "
            f"{s.get('elapsed_ms', 0):.1f}ms)"
        )


class CheckerRunner:
    """
    Runs the dead-store checker over a batch of routines.

    Usage
    -----
    >>> runner = CheckerRunner(options={"worklist_strategy": "fifo"})
    >>> report = runner.run(routines)
    >>> print(report.summary())
    >>> print(report.to_gcc_format())
    """

    def __init__(
        self,
        suppressions: Optional[SuppressionManager] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.suppressions = suppressions if suppressions is not None else SuppressionManager()
        self.checker = DeadStoreChecker(CheckerOptions.from_mapping(options))

    def run(self, routines: Iterable[Routine]) -> DeadStoreReport:
        """
        Check ``routines`` in order.

        Raises
        ------
        DeadStoreShimsError
            malformed input graphs and solver invariant violations are not
            turned into diagnostics.
        """
        report = DeadStoreReport()
        t0 = time.monotonic()
        for routine in routines:
            try:
                found = self.checker.check(routine, report.stats)
            except DeadStoreShimsError:
                logger.error("dead-store analysis of routine %s aborted", routine.name)
                raise
            for diag in found:
                if self.suppressions.is_suppressed(diag):
                    report.suppressed += 1
                else:
                    report.diagnostics.append(diag)
        report.stats["elapsed_ms"] = (time.monotonic() - t0) * 1000.0
        logger.debug("%s", report.summary())
        return report


__all__ = [
    "DiagnosticSeverity",
    "Confidence",
    "Diagnostic",
    "SuppressionManager",
    "Routine",
    "CheckerOptions",
    "DeadStoreChecker",
    "DeadStoreReport",
    "CheckerRunner",
]
