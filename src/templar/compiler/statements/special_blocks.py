"""Special block compilation: capture and transform."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from templar.compiler.instructions import EndBlock, EnterCapture, Instruction

if TYPE_CHECKING:
    from templar.nodes import Capture, Node


class SpecialBlockMixin:
    if TYPE_CHECKING:

        def _emit(self, instruction: Instruction) -> int: ...
        def _register_fragment(self, source: str) -> int: ...
        def _compile_nodes(self, nodes: Sequence[Node]) -> None: ...

    def _compile_capture(self, node: Capture) -> None:
        fragment_id = (
            self._register_fragment(node.transform) if node.transform is not None else None
        )
        self._emit(EnterCapture(name=node.name, fragment_id=fragment_id, lineno=node.lineno))
        self._compile_nodes(node.body)
        self._emit(EndBlock(lineno=node.lineno))
