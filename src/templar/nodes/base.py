"""Base node class for the templar AST."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Node:
    """Base class for all AST nodes.

    All nodes track their source location for error reporting.
    Nodes are immutable once the parser has built them.

    """

    offset: int
    lineno: int
    col_offset: int
