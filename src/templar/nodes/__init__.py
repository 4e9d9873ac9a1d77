"""Templar AST nodes.

The parser builds a tree of frozen nodes; the compiler walks it once and
discards it. Scripting source (expressions, statements) is kept as text:
the template grammar covers structure only.

Node Types:
- Template: root
- Literal, Interpolate, Raw: output and side effects
- If, For: control flow
- Capture: render a body into a variable

"""

from templar.nodes.base import Node
from templar.nodes.control_flow import For, If
from templar.nodes.output import Interpolate, Literal, Raw
from templar.nodes.structure import Capture, Template

__all__ = [
    "Capture",
    "For",
    "If",
    "Interpolate",
    "Literal",
    "Node",
    "Raw",
    "Template",
]
