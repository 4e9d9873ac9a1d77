"""Control flow nodes for the templar AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from templar.nodes.base import Node


@dataclass(frozen=True, slots=True)
class If(Node):
    """Conditional: {% if cond %}...{% elif cond %}...{% else %}...{% end %}

    ``elif`` is represented as a nested If that is the sole node of ``else_``.
    """

    test: str
    body: Sequence[Node]
    else_: Sequence[Node] | None = None


@dataclass(frozen=True, slots=True)
class For(Node):
    """Loop: {% for x in items %}...{% end %}

    ``targets`` holds one name, or several when each element is unpacked
    (``{% for key, value in pairs %}``).
    """

    targets: tuple[str, ...]
    iter: str
    body: Sequence[Node]
