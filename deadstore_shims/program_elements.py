"""
deadstore_shims.program_elements
================================

The closed set of syntax shapes the dead-store analysis understands.

A host front end (parser + CFG builder) adapts its own syntax tree onto these
frozen dataclasses and places them, in textual order, into the blocks of a
:class:`~deadstore_shims.ctrlflow_graph.ControlFlowGraph`.  Every node is
compared and hashed by *identity*: two textually identical ``$a = 0;``
statements on different lines are different elements.

Shapes with variable semantics
------------------------------
    VariableRef         - an occurrence of a variable (``$a``)
    Assignment          - ``target = value`` (also ``+=``, ``=&``, ...)
    ListPattern         - destructuring target (``list($a, $b)`` / ``[$a, $b]``)
    VariableDeclaration - binds a variable (``static $a``, ``global $a``)
    UnaryUpdate         - ``++$a`` / ``$a--``
    Closure / Capture   - nested routine with captured variables

Shapes without variable semantics of their own
----------------------------------------------
    Identifier, Literal, ArrayPair, ArrayLiteral, UnaryOp, BinaryOp,
    Conditional, Call, MemberAccess, Subscript, ExpressionStatement,
    Return, Composite

``Composite`` is the escape hatch for constructs not listed here: the
classifier simply visits its ``parts``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Tuple


@dataclass(frozen=True)
class SourceLocation:
    """A specific point in source code."""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


NO_LOCATION = SourceLocation()


# ---------------------------------------------------------------------------
# Base node
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class Node:
    """Base class of every program element shape."""

    location: SourceLocation = field(default=NO_LOCATION, kw_only=True)

    def children(self) -> Tuple[Node, ...]:
        """Direct sub-nodes, in textual order."""
        return ()

    @property
    def kind(self) -> str:
        return type(self).__name__

    def walk(self) -> Iterator[Node]:
        """Pre-order traversal of this node and all its descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children()))


def _present(*nodes: Optional[Node]) -> Tuple[Node, ...]:
    return tuple(n for n in nodes if n is not None)


# ---------------------------------------------------------------------------
# Leaves
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class VariableRef(Node):
    """An occurrence of a variable name."""
    name: str

    def __repr__(self) -> str:
        return f"VariableRef({self.name!r})"


@dataclass(frozen=True, eq=False)
class Identifier(Node):
    """A non-variable name: function, constant, class or member name."""
    name: str


@dataclass(frozen=True, eq=False)
class Literal(Node):
    value: Any = None


# ---------------------------------------------------------------------------
# Expressions with variable semantics
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class Assignment(Node):
    """
    ``target <operator> value``.

    ``operator`` is ``"="`` for a simple assignment and the full operator
    text for compound forms (``"+="``, ``".="``, ``"??="``, ...).
    ``by_reference`` marks alias binding (``$a = &$b``).
    """
    target: Node
    value: Node
    operator: str = "="
    by_reference: bool = False

    @property
    def is_compound(self) -> bool:
        return self.operator != "="

    def children(self) -> Tuple[Node, ...]:
        return (self.target, self.value)


@dataclass(frozen=True, eq=False)
class ArrayPair(Node):
    """``key => value`` inside an array literal or a keyed list pattern."""
    value: Node
    key: Optional[Node] = None
    by_reference: bool = False

    def children(self) -> Tuple[Node, ...]:
        return _present(self.key, self.value)


@dataclass(frozen=True, eq=False)
class ListPattern(Node):
    """
    Destructuring target.  ``slots`` holds one entry per position; ``None``
    for skipped positions (``list(, $b)``), an :class:`ArrayPair` for keyed
    slots, a nested ``ListPattern`` for nested destructuring.
    """
    slots: Tuple[Optional[Node], ...] = ()

    def children(self) -> Tuple[Node, ...]:
        return _present(*self.slots)


@dataclass(frozen=True, eq=False)
class VariableDeclaration(Node):
    """A statement that binds ``variable`` (``static $a = 1``, ``global $a``)."""
    variable: VariableRef
    initializer: Optional[Node] = None

    def children(self) -> Tuple[Node, ...]:
        return _present(self.variable, self.initializer)


@dataclass(frozen=True, eq=False)
class UnaryUpdate(Node):
    """Increment or decrement, prefix (``++$a``) or postfix (``$a++``)."""
    operator: str
    operand: Node
    prefix: bool = True

    def children(self) -> Tuple[Node, ...]:
        return (self.operand,)


@dataclass(frozen=True, eq=False)
class Capture(Node):
    """A variable captured by a closure (``use ($a)`` / ``use (&$a)``)."""
    variable: VariableRef
    by_reference: bool = False

    def children(self) -> Tuple[Node, ...]:
        return (self.variable,)


@dataclass(frozen=True, eq=False)
class Closure(Node):
    """
    A nested routine.  ``body`` is opaque: it is analysed with its own CFG
    and never visited from the enclosing routine.
    """
    captures: Tuple[Capture, ...] = ()
    body: Any = None

    def children(self) -> Tuple[Node, ...]:
        return tuple(self.captures)


# ---------------------------------------------------------------------------
# Plain expressions
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class ArrayLiteral(Node):
    items: Tuple[Node, ...] = ()

    def children(self) -> Tuple[Node, ...]:
        return tuple(self.items)


@dataclass(frozen=True, eq=False)
class UnaryOp(Node):
    operator: str
    operand: Node

    def children(self) -> Tuple[Node, ...]:
        return (self.operand,)


@dataclass(frozen=True, eq=False)
class BinaryOp(Node):
    operator: str
    left: Node
    right: Node

    def children(self) -> Tuple[Node, ...]:
        return (self.left, self.right)


@dataclass(frozen=True, eq=False)
class Conditional(Node):
    """``condition ? if_true : if_false``; ``if_true`` is ``None`` for ``?:``."""
    condition: Node
    if_true: Optional[Node]
    if_false: Node

    def children(self) -> Tuple[Node, ...]:
        return _present(self.condition, self.if_true, self.if_false)


@dataclass(frozen=True, eq=False)
class Call(Node):
    callee: Node
    arguments: Tuple[Node, ...] = ()

    def children(self) -> Tuple[Node, ...]:
        return (self.callee,) + tuple(self.arguments)


@dataclass(frozen=True, eq=False)
class MemberAccess(Node):
    """``receiver->member`` or ``Class::member``."""
    receiver: Node
    member: Node

    def children(self) -> Tuple[Node, ...]:
        return (self.receiver, self.member)


@dataclass(frozen=True, eq=False)
class Subscript(Node):
    """``container[index]``; ``index`` is absent for ``$a[]``."""
    container: Node
    index: Optional[Node] = None

    def children(self) -> Tuple[Node, ...]:
        return _present(self.container, self.index)


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class ExpressionStatement(Node):
    expression: Node

    def children(self) -> Tuple[Node, ...]:
        return (self.expression,)


@dataclass(frozen=True, eq=False)
class Return(Node):
    value: Optional[Node] = None

    def children(self) -> Tuple[Node, ...]:
        return _present(self.value)


@dataclass(frozen=True, eq=False)
class Composite(Node):
    """Any other construct; only its ``parts`` matter to the analysis."""
    label: str
    parts: Tuple[Node, ...] = ()

    @property
    def kind(self) -> str:
        return self.label

    def children(self) -> Tuple[Node, ...]:
        return tuple(self.parts)


__all__ = [
    "SourceLocation",
    "NO_LOCATION",
    "Node",
    "VariableRef",
    "Identifier",
    "Literal",
    "Assignment",
    "ArrayPair",
    "ListPattern",
    "VariableDeclaration",
    "UnaryUpdate",
    "Capture",
    "Closure",
    "ArrayLiteral",
    "UnaryOp",
    "BinaryOp",
    "Conditional",
    "Call",
    "MemberAccess",
    "Subscript",
    "ExpressionStatement",
    "Return",
    "Composite",
]
