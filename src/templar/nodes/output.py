"""Output and scripting nodes for the templar AST."""

from __future__ import annotations

from dataclasses import dataclass

from templar.nodes.base import Node


@dataclass(frozen=True, slots=True)
class Literal(Node):
    """Literal text between template constructs."""

    text: str


@dataclass(frozen=True, slots=True)
class Interpolate(Node):
    """Expression interpolation: {{ expr }}

    ``source`` is the expression text, captured verbatim (stripped) for the
    scripting runtime.
    """

    source: str


@dataclass(frozen=True, slots=True)
class Raw(Node):
    """Statement executed for its side effects: {% do stmt %}, {% script %}"""

    source: str
