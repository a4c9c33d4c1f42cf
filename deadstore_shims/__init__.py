"""
deadstore_shims - Dead-Store Detection by Live-Variables Analysis
=================================================================

Finds assignments whose value is never read before the variable is
overwritten or the routine returns.  A host front end supplies a control
flow graph made of :mod:`program_elements` and a symbol resolver; the
package classifies every element, solves backward liveness to a fixpoint
and reports each pure write that is provably never read.

Core modules
------------
errors
    Exception hierarchy with stable ``DSS-NNNN`` codes.
program_elements
    The closed set of syntax shapes the analysis understands.
symbols
    Variable identities and the name-based ``SymbolTable`` resolver.
ctrlflow_graph
    Basic blocks, edges, validation, traversal orders, DOT output.
usage_analysis
    Per-element READ / WRITE / READ_WRITE classification.
dataflow_analyses
    Block summaries (gen / kill) and the worklist liveness solver.
dead_store_detector
    Backward walk that turns live-out sets into findings.
checkers
    Diagnostics, suppressions and the ``DeadStoreChecker``.

Quick start
-----------
>>> from deadstore_shims import ControlFlowGraph, SymbolTable, detect_dead_stores
>>> stores = detect_dead_stores(cfg, SymbolTable(scope="main"))
>>> for store in stores:
...     print(store)
index.php:3: Found dead store! ($foo)
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import TYPE_CHECKING, List

__version__ = "0.1.0"
__license__ = "MIT"
__all__: List[str] = []          # populated below

_log = logging.getLogger(__name__)
_log.addHandler(logging.NullHandler())

# ---------------------------------------------------------------------------
# Re-export registry: module name → public names, in dependency order
# ---------------------------------------------------------------------------

_MODULES = {
    "errors": [
        "ErrorCode",
        "DeadStoreShimsError",
        "CfgUnavailableError",
        "MalformedGraphError",
        "UnknownBlockError",
        "SolverInvariantError",
    ],
    "program_elements": [
        "SourceLocation",
        "Node",
        "VariableRef",
        "Assignment",
        "ListPattern",
        "VariableDeclaration",
        "UnaryUpdate",
        "Closure",
        "Capture",
    ],
    "symbols": [
        "Symbol",
        "SymbolKind",
        "SymbolResolver",
        "SymbolTable",
    ],
    "ctrlflow_graph": [
        "CfgBlock",
        "ControlFlowGraph",
        "cfg_summary",
    ],
    "usage_analysis": [
        "UsageState",
        "classify_element",
    ],
    "dataflow_analyses": [
        "WorklistStrategy",
        "LiveVariables",
        "LiveVariablesAnalysis",
    ],
    "dead_store_detector": [
        "DeadStore",
        "find_dead_stores",
        "detect_dead_stores",
    ],
    "checkers": [
        "Diagnostic",
        "DiagnosticSeverity",
        "SuppressionManager",
        "Routine",
        "CheckerOptions",
        "DeadStoreChecker",
        "DeadStoreReport",
        "CheckerRunner",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"deadstore_shims: submodule '{module_rel_name}' failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        if not hasattr(mod, name):
            raise AttributeError(f"deadstore_shims.{module_rel_name} does not export '{name}'")
        setattr(current_module, name, getattr(mod, name))
        __all__.append(name)

    setattr(current_module, module_rel_name, mod)
    __all__.append(module_rel_name)


for _mod, _names in _MODULES.items():
    _import_names(_mod, _names)

del _mod, _names


def list_submodules() -> List[str]:
    """Names of all submodules re-exported by the package."""
    return sorted(_MODULES)


__all__ += ["list_submodules", "__version__"]

# ---------------------------------------------------------------------------
# TYPE_CHECKING block - static visibility of the names bound above
# ---------------------------------------------------------------------------

if TYPE_CHECKING:
    from .errors import (
        ErrorCode as ErrorCode,
        DeadStoreShimsError as DeadStoreShimsError,
        CfgUnavailableError as CfgUnavailableError,
        MalformedGraphError as MalformedGraphError,
        UnknownBlockError as UnknownBlockError,
        SolverInvariantError as SolverInvariantError,
    )
    from .program_elements import (
        SourceLocation as SourceLocation,
        Node as Node,
        VariableRef as VariableRef,
        Assignment as Assignment,
        ListPattern as ListPattern,
        VariableDeclaration as VariableDeclaration,
        UnaryUpdate as UnaryUpdate,
        Closure as Closure,
        Capture as Capture,
    )
    from .symbols import (
        Symbol as Symbol,
        SymbolKind as SymbolKind,
        SymbolResolver as SymbolResolver,
        SymbolTable as SymbolTable,
    )
    from .ctrlflow_graph import (
        CfgBlock as CfgBlock,
        ControlFlowGraph as ControlFlowGraph,
        cfg_summary as cfg_summary,
    )
    from .usage_analysis import (
        UsageState as UsageState,
        classify_element as classify_element,
    )
    from .dataflow_analyses import (
        WorklistStrategy as WorklistStrategy,
        LiveVariables as LiveVariables,
        LiveVariablesAnalysis as LiveVariablesAnalysis,
    )
    from .dead_store_detector import (
        DeadStore as DeadStore,
        find_dead_stores as find_dead_stores,
        detect_dead_stores as detect_dead_stores,
    )
    from .checkers import (
        Diagnostic as Diagnostic,
        DiagnosticSeverity as DiagnosticSeverity,
        SuppressionManager as SuppressionManager,
        Routine as Routine,
        CheckerOptions as CheckerOptions,
        DeadStoreChecker as DeadStoreChecker,
        DeadStoreReport as DeadStoreReport,
        CheckerRunner as CheckerRunner,
    )
