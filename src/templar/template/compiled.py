"""The immutable, shareable output of the compiler."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from templar.compiler.instructions import Instruction
    from templar.syntax import SyntaxDescriptor


@dataclass(frozen=True, slots=True)
class CompiledTemplate:
    """Instruction sequence plus the scripting fragments it references.

    Thread-Safety:
        Never mutated after the compiler publishes it. Any number of
        concurrent render calls may read it without locking; all per-call
        state lives in the caller's RenderContext.

    Attributes:
        instructions: Ordered instructions; indices are jump targets
        fragments: Scripting source by fragment id (id = index)
        name: Template name for diagnostics
        source: Template source for error snippets (not compared)
        syntax: Descriptor the template was lexed with (not compared)

    Equality compares only the program (instructions, fragments, name), so
    two compilations of the same AST compare equal.
    """

    instructions: tuple[Instruction, ...]
    fragments: tuple[str, ...]
    name: str | None = None
    source: str | None = field(default=None, compare=False, repr=False)
    syntax: SyntaxDescriptor | None = field(default=None, compare=False, repr=False)

    def __len__(self) -> int:
        return len(self.instructions)

    def fragment(self, fragment_id: int) -> str:
        return self.fragments[fragment_id]

    def disassemble(self) -> str:
        """Human-readable listing of the instruction sequence."""
        from templar.compiler.instructions import format_instruction

        return "\n".join(
            format_instruction(i, instr, self.fragments)
            for i, instr in enumerate(self.instructions)
        )
