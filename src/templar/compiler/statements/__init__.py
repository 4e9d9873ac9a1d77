"""Statement compilation for the templar compiler.

The statements package is organized into logical modules:
- basic: literal text, interpolation, raw statements
- control_flow: if/else and for loops (back-patched jumps)
- special_blocks: capture and transform

"""

from __future__ import annotations

from templar.compiler.statements.basic import BasicStatementMixin
from templar.compiler.statements.control_flow import ControlFlowMixin
from templar.compiler.statements.special_blocks import SpecialBlockMixin


class StatementCompilationMixin(
    BasicStatementMixin,
    ControlFlowMixin,
    SpecialBlockMixin,
):
    """Combined mixin for compiling all node types."""
