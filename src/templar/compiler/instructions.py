"""Instruction set of compiled templates.

A compiled template is a flat, ordered tuple of instructions. Indices are
stable and serve as jump targets. Instructions are frozen; the compiler's
back-patching replaces buffer entries while the buffer is still private
to it, and the buffer is frozen into a tuple before it is published.

    ```
    {% if ok %}A{% else %}B{% end %}

    0  ENTER_IF      #0 skip→3
    1  EMIT_LITERAL  'A'
    2  JUMP          →4
    3  EMIT_LITERAL  'B'
    4  END_BLOCK
    ```

Every instruction records the template line it came from so render errors
can point back into the source.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

# Placeholder for a jump target not yet back-patched.
UNPATCHED = -1


@dataclass(frozen=True, slots=True, kw_only=True)
class Instruction:
    op: ClassVar[str] = ""

    lineno: int = 0


@dataclass(frozen=True, slots=True, kw_only=True)
class EmitLiteral(Instruction):
    """Append literal text verbatim."""

    op: ClassVar[str] = "EMIT_LITERAL"

    text: str


@dataclass(frozen=True, slots=True, kw_only=True)
class EmitExpr(Instruction):
    """Evaluate a fragment and append its textual form."""

    op: ClassVar[str] = "EMIT_EXPR"

    fragment_id: int


@dataclass(frozen=True, slots=True, kw_only=True)
class ExecStmt(Instruction):
    """Execute a statement fragment for its side effects."""

    op: ClassVar[str] = "EXEC_STMT"

    fragment_id: int


@dataclass(frozen=True, slots=True, kw_only=True)
class EnterIf(Instruction):
    """Evaluate a condition; when falsy continue at ``skip_target``.

    Both branches push an if-frame that the matching EndBlock pops.
    """

    op: ClassVar[str] = "ENTER_IF"

    fragment_id: int
    skip_target: int = UNPATCHED


@dataclass(frozen=True, slots=True, kw_only=True)
class EnterLoop(Instruction):
    """Iterate a fragment, running ``body_start``..``body_end`` per element.

    ``body_end`` is the index of the loop's EndBlock.
    """

    op: ClassVar[str] = "ENTER_LOOP"

    targets: tuple[str, ...]
    fragment_id: int
    body_start: int
    body_end: int = UNPATCHED


@dataclass(frozen=True, slots=True, kw_only=True)
class EnterCapture(Instruction):
    """Redirect output until the matching EndBlock, then bind it to ``name``.

    With a ``fragment_id`` the fragment is evaluated after binding and its
    value is emitted; ``name`` is then rebound to nil.
    """

    op: ClassVar[str] = "ENTER_CAPTURE"

    name: str
    fragment_id: int | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class Jump(Instruction):
    op: ClassVar[str] = "JUMP"

    target: int = UNPATCHED


@dataclass(frozen=True, slots=True, kw_only=True)
class EndBlock(Instruction):
    """Close the innermost if/loop/capture frame."""

    op: ClassVar[str] = "END_BLOCK"


OPCODES: dict[str, type[Instruction]] = {
    cls.op: cls
    for cls in (EmitLiteral, EmitExpr, ExecStmt, EnterIf, EnterLoop, EnterCapture, Jump, EndBlock)
}


def format_instruction(index: int, instr: Instruction, fragments: tuple[str, ...]) -> str:
    """One disassembly line: ``index  OP  operands``."""
    if isinstance(instr, EmitLiteral):
        operands = repr(instr.text)
    elif isinstance(instr, (EmitExpr, ExecStmt)):
        operands = f"#{instr.fragment_id} {fragments[instr.fragment_id]!r}"
    elif isinstance(instr, EnterIf):
        operands = f"#{instr.fragment_id} {fragments[instr.fragment_id]!r} skip→{instr.skip_target}"
    elif isinstance(instr, EnterLoop):
        operands = (
            f"{', '.join(instr.targets)} in #{instr.fragment_id} "
            f"{fragments[instr.fragment_id]!r} body {instr.body_start}..{instr.body_end}"
        )
    elif isinstance(instr, EnterCapture):
        operands = instr.name
        if instr.fragment_id is not None:
            operands += f" with #{instr.fragment_id} {fragments[instr.fragment_id]!r}"
    elif isinstance(instr, Jump):
        operands = f"→{instr.target}"
    else:
        operands = ""
    return f"{index:>4}  {instr.op:<14}{operands}".rstrip()
