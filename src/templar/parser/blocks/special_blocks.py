"""Special block parsing for the templar parser.

Provides mixin for statements that hand code to the scripting runtime
(do, script) and for blocks that capture output (capture, transform).
"""

from __future__ import annotations

import re
import textwrap
from typing import TYPE_CHECKING

from templar._types import Token, TokenType
from templar.nodes import Capture, Node, Raw
from templar.parser.errors import ParseError, ParseErrorKind

_NAME_RE = re.compile(r"[A-Za-z_]\w*")
_TRANSFORM_RE = re.compile(r"(?P<name>[A-Za-z_]\w*)\s+with\s+(?P<expr>.+)", re.DOTALL)


class SpecialBlockParsingMixin:
    """Mixin for parsing do/script/capture/transform.

    Required Host Attributes:
        - Same as ControlFlowBlockParsingMixin
    """

    if TYPE_CHECKING:
        _current: Token | None

        def _advance(self) -> Token | None: ...
        def _current_keyword(self) -> str | None: ...
        def _error(
            self,
            kind: ParseErrorKind,
            message: str,
            token: Token,
            suggestion: str | None = None,
        ) -> ParseError: ...
        def _push_block(self, keyword: str, token: Token) -> None: ...
        def _expect_terminator(self) -> Token: ...
        def _consume_end(self, keyword: str) -> None: ...
        def _parse_body(self) -> list[Node]: ...

    def _parse_do(self, start: Token, args: str) -> Raw:
        """Parse {% do <statement> %}."""
        if not args:
            raise self._error(
                ParseErrorKind.MALFORMED_STATEMENT,
                "'do' requires a statement",
                start,
            )
        return Raw(
            offset=start.offset,
            lineno=start.lineno,
            col_offset=start.col_offset,
            source=args,
        )

    def _parse_script(self, start: Token, args: str) -> Raw:
        """Parse {% script %}...{% end %}: the body is code, not template."""
        if args:
            raise self._error(
                ParseErrorKind.MALFORMED_STATEMENT,
                "'script' takes no arguments",
                start,
            )
        self._push_block("script", start)
        parts: list[str] = []
        while self._current is not None and self._current.type is TokenType.LITERAL:
            parts.append(self._current.value)
            self._advance()

        token = self._expect_terminator()
        if self._current_keyword() != "end":
            raise self._error(
                ParseErrorKind.MALFORMED_STATEMENT,
                "A 'script' block may only contain code",
                token,
                suggestion="Move expressions and statements out of the script block",
            )
        self._consume_end("script")

        code = textwrap.dedent("".join(parts)).strip("\n")
        return Raw(
            offset=start.offset,
            lineno=start.lineno,
            col_offset=start.col_offset,
            source=code,
        )

    def _parse_capture(self, start: Token, args: str) -> Capture:
        """Parse {% capture name %}...{% end %}."""
        if not _NAME_RE.fullmatch(args):
            raise self._error(
                ParseErrorKind.MALFORMED_STATEMENT,
                f"'capture' requires a variable name, got {args!r}",
                start,
                suggestion="{% capture <name> %}",
            )
        return self._parse_capture_body(start, "capture", args, None)

    def _parse_transform(self, start: Token, args: str) -> Capture:
        """Parse {% transform name with expr %}...{% end %}."""
        match = _TRANSFORM_RE.fullmatch(args)
        if match is None:
            raise self._error(
                ParseErrorKind.MALFORMED_STATEMENT,
                f"Malformed 'transform' statement: {args!r}",
                start,
                suggestion="{% transform <name> with <expression> %}",
            )
        return self._parse_capture_body(
            start, "transform", match.group("name"), match.group("expr").strip()
        )

    def _parse_capture_body(
        self, start: Token, keyword: str, name: str, transform: str | None
    ) -> Capture:
        self._push_block(keyword, start)
        body = self._parse_body()
        self._consume_end(keyword)
        return Capture(
            offset=start.offset,
            lineno=start.lineno,
            col_offset=start.col_offset,
            name=name,
            transform=transform,
            body=tuple(body),
        )
