"""Control flow compilation: if/else and for.

Layouts (indices relative to the block start):

    if without else            if with else
    ───────────────            ────────────
    ENTER_IF skip→E            ENTER_IF skip→L
    <then>                     <then>
    E: END_BLOCK               JUMP →E
                               L: <else>
                               E: END_BLOCK

    for
    ───
    ENTER_LOOP body S..E
    S: <body>
    E: END_BLOCK
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from templar.compiler.instructions import EndBlock, EnterIf, EnterLoop, Instruction, Jump

if TYPE_CHECKING:
    from templar.nodes import For, If, Node


class ControlFlowMixin:
    """Mixin for compiling control flow nodes."""

    if TYPE_CHECKING:
        _next_index: int

        def _emit(self, instruction: Instruction) -> int: ...
        def _patch(self, index: int, **changes: int) -> None: ...
        def _register_fragment(self, source: str) -> int: ...
        def _compile_nodes(self, nodes: Sequence[Node]) -> None: ...

    def _compile_if(self, node: If) -> None:
        enter = self._emit(
            EnterIf(fragment_id=self._register_fragment(node.test), lineno=node.lineno)
        )
        self._compile_nodes(node.body)

        if node.else_ is not None:
            jump = self._emit(Jump(lineno=node.lineno))
            self._patch(enter, skip_target=self._next_index)
            self._compile_nodes(node.else_)
            end = self._emit(EndBlock(lineno=node.lineno))
            self._patch(jump, target=end)
        else:
            end = self._emit(EndBlock(lineno=node.lineno))
            self._patch(enter, skip_target=end)

    def _compile_for(self, node: For) -> None:
        enter = self._next_index
        self._emit(
            EnterLoop(
                targets=node.targets,
                fragment_id=self._register_fragment(node.iter),
                body_start=enter + 1,
                lineno=node.lineno,
            )
        )
        self._compile_nodes(node.body)
        end = self._emit(EndBlock(lineno=node.lineno))
        self._patch(enter, body_end=end)
