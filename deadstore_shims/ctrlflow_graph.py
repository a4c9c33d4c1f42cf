"""
deadstore_shims.ctrlflow_graph
==============================

The intraprocedural control flow graph consumed by the liveness analysis.

Building a CFG from source is the host's job; this module only defines the
shape the analysis expects and the checks it relies on.  A CFG is a flat,
indexed list of basic blocks.  Blocks refer to each other by *index*, so a
loop back-edge is just an integer and no block owns another.

Public API
----------
    CfgBlock          - a basic block: ordered elements + successor/predecessor ids
    ControlFlowGraph  - the graph for one routine
    cfg_summary       - multi-line human-readable dump

Typical usage::

    cfg = ControlFlowGraph("f")
    head = cfg.add_block([assign_a, call_foo], kind="start")
    body = cfg.add_block([assign_x])
    end = cfg.add_block(kind="end")
    cfg.add_edge(head, body)        # true branch first
    cfg.add_edge(head, end)
    cfg.add_edge(body, end)
    cfg.validate()

Conventions
-----------
* Successor order is significant only for display: for a conditional branch
  the true successor comes first.
* Exactly one block has no successors (the end block).  An infinite loop
  still has an end block; it is just unreachable.
"""

from __future__ import annotations

from typing import (
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

from deadstore_shims.errors import MalformedGraphError, UnknownBlockError
from deadstore_shims.program_elements import Node, SourceLocation

BlockId = int
BlockRef = Union["CfgBlock", BlockId]


# ---------------------------------------------------------------------------
# CfgBlock  –  a basic block
# ---------------------------------------------------------------------------

class CfgBlock:
    """A basic block in the CFG.

    Attributes
    ----------
    id : int
        Index of the block inside its graph.
    elements : tuple[Node, ...]
        Program elements in execution order.  May be empty (synthetic
        start/end blocks, empty loop bodies).
    kind : str
        Human-readable tag: ``"start"``, ``"end"``, ``"body"``,
        ``"condition"``, ...
    successors : list[int]
        Ids of the blocks control may flow to, true branch first.
    predecessors : list[int]
        Ids of the blocks control may come from.
    """

    __slots__ = ("id", "elements", "kind", "successors", "predecessors")

    def __init__(
        self,
        block_id: BlockId,
        elements: Sequence[Node] = (),
        kind: str = "body",
    ) -> None:
        self.id: BlockId = block_id
        self.elements: Tuple[Node, ...] = tuple(elements)
        self.kind: str = kind
        self.successors: List[BlockId] = []
        self.predecessors: List[BlockId] = []

    @property
    def first_element(self) -> Optional[Node]:
        return self.elements[0] if self.elements else None

    @property
    def last_element(self) -> Optional[Node]:
        return self.elements[-1] if self.elements else None

    @property
    def location(self) -> Optional[SourceLocation]:
        first = self.first_element
        return first.location if first is not None else None

    @property
    def is_terminal(self) -> bool:
        return not self.successors

    def label(self) -> str:
        """Compact label: location of the first element and element kinds."""
        if not self.elements:
            return f"[{self.kind}]"
        kinds = " ".join(e.kind for e in self.elements[:4])
        if len(self.elements) > 4:
            kinds += " …"
        loc = self.location
        prefix = f"{loc} " if loc is not None and loc.line else ""
        return f"{prefix}{kinds}"

    def __repr__(self) -> str:
        return (
            f"CfgBlock(id={self.id}, kind={self.kind!r}, "
            f"elements={len(self.elements)}, succ={self.successors})"
        )


# ---------------------------------------------------------------------------
# ControlFlowGraph
# ---------------------------------------------------------------------------

class ControlFlowGraph:
    """Intraprocedural control flow graph for a single routine.

    Attributes
    ----------
    name : str
        Routine name, for messages only.
    blocks : list[CfgBlock]
        All blocks; ``blocks[i].id == i``.
    start : int
        Id of the entry block (the first block added unless set).
    """

    def __init__(self, name: str = "<routine>") -> None:
        self.name = name
        self.blocks: List[CfgBlock] = []
        self._start: Optional[BlockId] = None
        self._end: Optional[BlockId] = None
        self._element_to_block: Dict[Node, BlockId] = {}

    # ----- graph mutation ---------------------------------------------------

    def add_block(
        self,
        elements: Iterable[Node] = (),
        kind: str = "body",
    ) -> CfgBlock:
        """Append a new block holding ``elements`` and return it."""
        block = CfgBlock(len(self.blocks), tuple(elements), kind=kind)
        self.blocks.append(block)
        for element in block.elements:
            self._element_to_block.setdefault(element, block.id)
        if kind == "start" and self._start is None:
            self._start = block.id
        elif kind == "end" and self._end is None:
            self._end = block.id
        return block

    def add_edge(self, src: BlockRef, dst: BlockRef) -> None:
        """Wire ``src -> dst``; adding an existing edge again is a no-op."""
        s = self.block(src)
        d = self.block(dst)
        if d.id not in s.successors:
            s.successors.append(d.id)
        if s.id not in d.predecessors:
            d.predecessors.append(s.id)

    def set_start(self, block: BlockRef) -> None:
        self._start = self.block(block).id

    def set_end(self, block: BlockRef) -> None:
        self._end = self.block(block).id

    # ----- queries ----------------------------------------------------------

    @property
    def start(self) -> BlockId:
        if self._start is not None:
            return self._start
        if not self.blocks:
            raise MalformedGraphError(f"CFG of {self.name!r} has no blocks")
        return 0

    @property
    def end(self) -> BlockId:
        """The end block: explicit, or else the unique block without successors."""
        if self._end is not None:
            return self._end
        terminals = self.terminal_blocks()
        if len(terminals) != 1:
            raise MalformedGraphError(
                f"CFG of {self.name!r} has {len(terminals)} blocks without "
                f"successors, expected exactly one",
                context={"terminals": [b.id for b in terminals]},
            )
        return terminals[0].id

    def block(self, ref: BlockRef) -> CfgBlock:
        """Return the block for an id (or the block itself, checked)."""
        bid = ref.id if isinstance(ref, CfgBlock) else ref
        if not isinstance(bid, int) or not 0 <= bid < len(self.blocks):
            raise UnknownBlockError(bid, len(self.blocks))
        block = self.blocks[bid]
        if isinstance(ref, CfgBlock) and ref is not block:
            raise UnknownBlockError(bid, len(self.blocks))
        return block

    def successors_of(self, ref: BlockRef) -> List[CfgBlock]:
        return [self.blocks[s] for s in self.block(ref).successors]

    def predecessors_of(self, ref: BlockRef) -> List[CfgBlock]:
        return [self.blocks[p] for p in self.block(ref).predecessors]

    def block_of(self, element: Node) -> Optional[CfgBlock]:
        """Return the block that contains ``element``, or ``None``."""
        bid = self._element_to_block.get(element)
        return self.blocks[bid] if bid is not None else None

    def elements(self) -> Iterator[Node]:
        """All elements of all blocks, in block order."""
        for block in self.blocks:
            yield from block.elements

    def terminal_blocks(self) -> List[CfgBlock]:
        return [b for b in self.blocks if not b.successors]

    @property
    def edge_count(self) -> int:
        return sum(len(b.successors) for b in self.blocks)

    def reachable_from(self, ref: BlockRef) -> Set[BlockId]:
        """Ids of the blocks reachable from ``ref`` (including itself)."""
        visited: Set[BlockId] = set()
        worklist = [self.block(ref).id]
        while worklist:
            bid = worklist.pop()
            if bid in visited:
                continue
            visited.add(bid)
            worklist.extend(self.blocks[bid].successors)
        return visited

    def postorder(self) -> List[BlockId]:
        """
        Post-order from the start block (good seed order for backward
        analyses).  Blocks unreachable from the start follow, by id, so
        every block appears exactly once.
        """
        visited: Set[BlockId] = set()
        order: List[BlockId] = []
        if not self.blocks:
            return order
        # iterative DFS: (block id, next successor index)
        stack: List[Tuple[BlockId, int]] = [(self.start, 0)]
        visited.add(self.start)
        while stack:
            bid, idx = stack[-1]
            succs = self.blocks[bid].successors
            if idx < len(succs):
                stack[-1] = (bid, idx + 1)
                nxt = succs[idx]
                if nxt not in visited:
                    visited.add(nxt)
                    stack.append((nxt, 0))
            else:
                stack.pop()
                order.append(bid)
        order.extend(b.id for b in self.blocks if b.id not in visited)
        return order

    def reverse_postorder(self) -> List[BlockId]:
        return list(reversed(self.postorder()))

    # ----- validation -------------------------------------------------------

    def validate(self) -> None:
        """
        Check the structural contract the liveness analysis relies on.

        Raises
        ------
        MalformedGraphError
            empty graph, id/index mismatch, dangling or asymmetric edges,
            an element shared by two blocks, or not exactly one terminal
            block (or a declared end block that has successors).
        """
        if not self.blocks:
            raise MalformedGraphError(f"CFG of {self.name!r} has no blocks")

        count = len(self.blocks)
        seen_elements: Dict[Node, BlockId] = {}
        for index, block in enumerate(self.blocks):
            if block.id != index:
                raise MalformedGraphError(
                    f"block at index {index} has id {block.id}",
                    context={"index": index, "id": block.id},
                )
            for s in block.successors:
                if not 0 <= s < count:
                    raise MalformedGraphError(
                        f"BB{index} has dangling successor {s}",
                        context={"block": index, "successor": s},
                    )
                if index not in self.blocks[s].predecessors:
                    raise MalformedGraphError(
                        f"edge BB{index} -> BB{s} missing from predecessors of BB{s}",
                        context={"block": index, "successor": s},
                    )
            for p in block.predecessors:
                if not 0 <= p < count:
                    raise MalformedGraphError(
                        f"BB{index} has dangling predecessor {p}",
                        context={"block": index, "predecessor": p},
                    )
                if index not in self.blocks[p].successors:
                    raise MalformedGraphError(
                        f"edge BB{p} -> BB{index} missing from successors of BB{p}",
                        context={"block": index, "predecessor": p},
                    )
            for element in block.elements:
                owner = seen_elements.setdefault(element, index)
                if owner != index:
                    raise MalformedGraphError(
                        f"element {element.kind} appears in BB{owner} and BB{index}",
                        context={"blocks": [owner, index]},
                    )

        end = self.end
        if self.blocks[end].successors:
            raise MalformedGraphError(
                f"end block BB{end} has successors {self.blocks[end].successors}",
                context={"end": end},
            )
        terminals = self.terminal_blocks()
        if len(terminals) != 1:
            raise MalformedGraphError(
                f"CFG of {self.name!r} has {len(terminals)} blocks without "
                f"successors, expected exactly one",
                context={"terminals": [b.id for b in terminals]},
            )

    # ----- serialisation helpers --------------------------------------------

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation of this CFG."""
        lines = ["digraph CFG {"]
        if title:
            lines.append(f'  label="{title}";')
        lines.append("  node [shape=box, fontname=monospace, fontsize=10];")
        start = self.start if self.blocks else None
        end = self._end
        if end is None:
            terminals = self.terminal_blocks()
            end = terminals[0].id if len(terminals) == 1 else None
        for b in self.blocks:
            lbl = b.label().replace('"', '\\"').replace("\n", "\\n")
            color = ""
            if b.id == start:
                color = ', style=filled, fillcolor="#ccffcc"'
            elif b.id == end:
                color = ', style=filled, fillcolor="#ffcccc"'
            lines.append(f'  BB{b.id} [label="BB{b.id}\\n{lbl}"{color}];')
        for b in self.blocks:
            for position, s in enumerate(b.successors):
                attrs = ""
                if len(b.successors) == 2:
                    attrs = (' [label="true", color=green]' if position == 0
                             else ' [label="false", color=red]')
                lines.append(f"  BB{b.id} -> BB{s}{attrs};")
        lines.append("}")
        return "\n".join(lines)

    def __iter__(self) -> Iterator[CfgBlock]:
        return iter(self.blocks)

    def __len__(self) -> int:
        return len(self.blocks)

    def __repr__(self) -> str:
        return (
            f"ControlFlowGraph(name={self.name!r}, blocks={len(self.blocks)}, "
            f"edges={self.edge_count})"
        )


# ---------------------------------------------------------------------------
# Convenience: print a summary
# ---------------------------------------------------------------------------

def cfg_summary(cfg: ControlFlowGraph) -> str:
    """Return a multi-line human-readable summary of *cfg*."""
    lines = [repr(cfg)]
    for block in cfg.blocks:
        succ_ids = ", ".join(f"BB{s}" for s in block.successors)
        pred_ids = ", ".join(f"BB{p}" for p in block.predecessors)
        lines.append(
            f"  BB{block.id} [{block.kind}] "
            f"elements={len(block.elements)}  "
            f"succ=[{succ_ids}]  "
            f"pred=[{pred_ids}]"
        )
    return "\n".join(lines)


__all__ = [
    "BlockId",
    "CfgBlock",
    "ControlFlowGraph",
    "cfg_summary",
]
