"""Templar Compiler Core — lowers the AST to a CompiledTemplate.

Design Principles:
1. **Flat program**: nested blocks become jumps over a single instruction
   tuple; the renderer needs no recursion.
2. **Side-effect free**: fragments are recorded as source text and never
   evaluated; compiling the same AST twice yields equal programs.
3. **Back-patching**: a forward jump is emitted with a placeholder target
   and patched once the extent of its block is known. Patching happens only
   in the private buffer; the published program is a tuple.
4. **O(1) dispatch**: dict-based node type → handler lookup.

"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from templar.compiler.instructions import (
    UNPATCHED,
    EnterIf,
    EnterLoop,
    Instruction,
    Jump,
)
from templar.compiler.statements import StatementCompilationMixin
from templar.environment.exceptions import CompileError
from templar.lexer import Lexer
from templar.parser import parse
from templar.syntax import DEFAULT_SYNTAX, SyntaxDescriptor, split_syntax_header
from templar.template.compiled import CompiledTemplate

if TYPE_CHECKING:
    from templar.nodes import Node
    from templar.nodes import Template as TemplateNode

logger = logging.getLogger(__name__)


class Compiler(StatementCompilationMixin):
    """Compile a templar AST into a CompiledTemplate.

    Attributes:
        _buffer: Instructions emitted so far (mutable until published)
        _fragments: Fragment sources in registration order
        _fragment_ids: Source text → fragment id (identical text shares an id)

    Node Dispatch:
        Uses O(1) dict lookup for node type → handler:
            ```python
            handler = self._node_dispatch[type(node).__name__]
            ```

    Example:
            >>> from templar.lexer import lex
            >>> from templar.parser import parse
            >>> program = Compiler().compile(parse(lex("Hi {{ name }}")))
            >>> [i.op for i in program.instructions]
            ['EMIT_LITERAL', 'EMIT_EXPR']

    """

    def __init__(self) -> None:
        self._buffer: list[Instruction] = []
        self._fragments: list[str] = []
        self._fragment_ids: dict[str, int] = {}
        self._node_dispatch: dict[str, Callable[[Any], None]] = {
            "Literal": self._compile_literal,
            "Interpolate": self._compile_interpolate,
            "Raw": self._compile_raw,
            "If": self._compile_if,
            "For": self._compile_for,
            "Capture": self._compile_capture,
        }

    def compile(
        self,
        node: TemplateNode,
        name: str | None = None,
        source: str | None = None,
        syntax: SyntaxDescriptor | None = None,
    ) -> CompiledTemplate:
        """Compile a Template node.

        Args:
            node: Root Template node
            name: Template name for error messages
            source: Template source, kept for runtime error snippets
            syntax: Descriptor the source was lexed with

        Returns:
            CompiledTemplate ready for rendering
        """
        self._buffer = []
        self._fragments = []
        self._fragment_ids = {}

        self._compile_nodes(node.body)
        self._check_patched(name, source)

        program = CompiledTemplate(
            instructions=tuple(self._buffer),
            fragments=tuple(self._fragments),
            name=name,
            source=source,
            syntax=syntax,
        )
        logger.debug(
            "compiled %s: %d instructions, %d fragments",
            name or "<template>",
            len(program.instructions),
            len(program.fragments),
        )
        return program

    # ─────────────────────────────────────────────────────────────────────
    # Buffer helpers (used by statement mixins)
    # ─────────────────────────────────────────────────────────────────────

    def _compile_nodes(self, nodes: Sequence[Node]) -> None:
        dispatch = self._node_dispatch
        for node in nodes:
            handler = dispatch.get(type(node).__name__)
            if handler is None:
                raise CompileError(
                    f"No compiler for node type {type(node).__name__}",
                    lineno=node.lineno,
                )
            handler(node)

    def _emit(self, instruction: Instruction) -> int:
        """Append an instruction and return its index."""
        self._buffer.append(instruction)
        return len(self._buffer) - 1

    def _patch(self, index: int, **changes: int) -> None:
        """Back-patch operands of an already emitted instruction."""
        self._buffer[index] = replace(self._buffer[index], **changes)

    @property
    def _next_index(self) -> int:
        return len(self._buffer)

    def _register_fragment(self, source: str) -> int:
        fragment_id = self._fragment_ids.get(source)
        if fragment_id is None:
            fragment_id = len(self._fragments)
            self._fragments.append(source)
            self._fragment_ids[source] = fragment_id
        return fragment_id

    def _check_patched(self, name: str | None, source: str | None) -> None:
        for index, instr in enumerate(self._buffer):
            unpatched = (
                (isinstance(instr, EnterIf) and instr.skip_target == UNPATCHED)
                or (isinstance(instr, EnterLoop) and instr.body_end == UNPATCHED)
                or (isinstance(instr, Jump) and instr.target == UNPATCHED)
            )
            if unpatched:
                raise CompileError(
                    f"Instruction {index} ({instr.op}) has an unresolved jump target",
                    lineno=instr.lineno,
                    name=name,
                    source=source,
                )


def compile_ast(
    node: TemplateNode,
    name: str | None = None,
    source: str | None = None,
    syntax: SyntaxDescriptor | None = None,
) -> CompiledTemplate:
    """Compile an AST with a fresh Compiler."""
    return Compiler().compile(node, name=name, source=source, syntax=syntax)


def compile_template(
    source: str,
    syntax: SyntaxDescriptor | None = None,
    name: str | None = None,
) -> CompiledTemplate:
    """Lex, parse and compile template source in one step.

    A first line of the form ``#templar: key=value ...`` overrides
    ``syntax`` for this template and is not part of the output.

    Args:
        source: Template source
        syntax: Delimiters to use (default ``{{ }}`` / ``{% %}`` / ``{# #}``)
        name: Template name for error messages

    Raises:
        InvalidSyntaxError: The header describes an invalid syntax
        TemplateSyntaxError: A span is not closed
        ParseError: The statement structure is malformed

    Example:
            >>> program = compile_template("#templar: preset=angle\\nHi << name >>")
            >>> program.fragments
            ('name',)

    """
    base = syntax if syntax is not None else DEFAULT_SYNTAX
    header, body = split_syntax_header(source, base)
    effective = header if header is not None else base
    start = len(source) - len(body)
    tree = parse(Lexer(source, effective, name, start=start), name=name, source=source)
    return Compiler().compile(tree, name=name, source=source, syntax=effective)
