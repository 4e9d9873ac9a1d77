"""Basic statement compilation: literals, interpolation, raw statements."""

from __future__ import annotations

from typing import TYPE_CHECKING

from templar.compiler.instructions import EmitExpr, EmitLiteral, ExecStmt, Instruction

if TYPE_CHECKING:
    from templar.nodes import Interpolate, Literal, Raw


class BasicStatementMixin:
    """Mixin for nodes that compile to a single instruction."""

    if TYPE_CHECKING:

        def _emit(self, instruction: Instruction) -> int: ...
        def _register_fragment(self, source: str) -> int: ...

    def _compile_literal(self, node: Literal) -> None:
        if node.text:
            self._emit(EmitLiteral(text=node.text, lineno=node.lineno))

    def _compile_interpolate(self, node: Interpolate) -> None:
        self._emit(
            EmitExpr(fragment_id=self._register_fragment(node.source), lineno=node.lineno)
        )

    def _compile_raw(self, node: Raw) -> None:
        if node.source.strip():
            self._emit(
                ExecStmt(fragment_id=self._register_fragment(node.source), lineno=node.lineno)
            )
