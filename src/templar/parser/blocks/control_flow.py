"""Control flow block parsing for the templar parser.

Provides mixin for parsing control flow statements (if/elif/else, for).
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from templar._types import Token
from templar.nodes import For, If, Node
from templar.parser.errors import ParseError, ParseErrorKind

_FOR_RE = re.compile(
    r"(?P<targets>[A-Za-z_]\w*(?:\s*,\s*[A-Za-z_]\w*)*)\s+in\s+(?P<iter>.+)",
    re.DOTALL,
)


class ControlFlowBlockParsingMixin:
    """Mixin for parsing control flow blocks.

    Required Host Attributes:
        - _current: current token
        - _advance, _current_keyword, _error: token navigation
        - _push_block, _pop_block, _expect_terminator, _consume_end: block stack
        - _parse_body: method
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
        def _pop_block(self) -> None: ...
        def _expect_terminator(self) -> Token: ...
        def _consume_end(self, keyword: str) -> None: ...
        def _parse_body(self) -> list[Node]: ...

    def _parse_if(self, start: Token, args: str) -> If:
        """Parse {% if cond %}...{% elif cond %}...{% else %}...{% end %}."""
        if not args:
            raise self._error(
                ParseErrorKind.MALFORMED_STATEMENT,
                "'if' requires a condition",
                start,
                suggestion="{% if <expression> %}",
            )
        self._push_block("if", start)
        return self._parse_if_chain(start, args)

    def _parse_if_chain(self, start: Token, test: str) -> If:
        body = self._parse_body()
        token = self._expect_terminator()
        keyword = self._current_keyword()
        else_: tuple[Node, ...] | None = None

        if keyword == "elif":
            self._advance()
            parts = token.value.strip().split(None, 1)
            cond = parts[1].strip() if len(parts) > 1 else ""
            if not cond:
                raise self._error(
                    ParseErrorKind.MALFORMED_STATEMENT,
                    "'elif' requires a condition",
                    token,
                )
            # The nested chain consumes the shared 'end'
            else_ = (self._parse_if_chain(token, cond),)
        elif keyword == "else":
            self._advance()
            else_ = tuple(self._parse_body())
            self._consume_end("if")
        else:
            self._consume_end("if")

        return If(
            offset=start.offset,
            lineno=start.lineno,
            col_offset=start.col_offset,
            test=test,
            body=tuple(body),
            else_=else_,
        )

    def _parse_for(self, start: Token, args: str) -> For:
        """Parse {% for x in items %}...{% end %}."""
        match = _FOR_RE.fullmatch(args)
        if match is None:
            raise self._error(
                ParseErrorKind.MALFORMED_STATEMENT,
                f"Malformed 'for' statement: {args!r}",
                start,
                suggestion="{% for <name> in <expression> %}",
            )
        targets = tuple(t.strip() for t in match.group("targets").split(","))
        iter_source = match.group("iter").strip()

        self._push_block("for", start)
        body = self._parse_body()
        self._consume_end("for")

        return For(
            offset=start.offset,
            lineno=start.lineno,
            col_offset=start.col_offset,
            targets=targets,
            iter=iter_source,
            body=tuple(body),
        )
