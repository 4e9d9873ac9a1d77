"""Template structure nodes for the templar AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from templar.nodes.base import Node


@dataclass(frozen=True, slots=True)
class Template(Node):
    """Root node: the template's top-level block."""

    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class Capture(Node):
    """Render a body into a variable.

    {% capture name %}...{% end %} binds the rendered body to ``name``.
    {% transform name with expr %}...{% end %} binds it, emits ``expr``,
    then rebinds ``name`` to nil.
    """

    name: str
    transform: str | None
    body: Sequence[Node]
