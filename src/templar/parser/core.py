"""Templar Parser — builds the AST from a token stream.

The template grammar governs structure only. Expression spans and
statement arguments are captured verbatim and handed to the scripting
runtime later; the parser never looks inside them.

Statement keywords:
    ```
    if <expr> / elif <expr> / else / end
    for <name>[, <name>...] in <expr> / end
    do <statement>
    script / end                 (body: literal text only)
    capture <name> / end
    transform <name> with <expr> / end
    ```

Every block closes with the unified ``end`` keyword, which closes the
nearest open block.

"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import ClassVar

from templar._types import Token, TokenType
from templar.nodes import Interpolate, Literal, Node, Template
from templar.parser.blocks import ControlFlowBlockParsingMixin, SpecialBlockParsingMixin
from templar.parser.errors import ParseError, ParseErrorKind

# Keywords that terminate a body; the enclosing block handler consumes them.
_TERMINATORS = frozenset({"end", "else", "elif"})


def split_statement(value: str) -> tuple[str, str]:
    """Split statement text into (keyword, arguments)."""
    text = value.strip()
    parts = text.split(None, 1)
    if not parts:
        return "", ""
    return parts[0], parts[1].strip() if len(parts) > 1 else ""


class Parser(ControlFlowBlockParsingMixin, SpecialBlockParsingMixin):
    """Recursive-descent parser over lexer tokens.

    Example:
            >>> from templar.lexer import lex
            >>> tree = Parser(lex("{% if on %}yes{% end %}")).parse()
            >>> type(tree.body[0]).__name__
            'If'

    """

    # keyword → handler method name (O(1) dispatch)
    _STATEMENT_HANDLERS: ClassVar[dict[str, str]] = {
        "if": "_parse_if",
        "for": "_parse_for",
        "do": "_parse_do",
        "script": "_parse_script",
        "capture": "_parse_capture",
        "transform": "_parse_transform",
    }

    def __init__(
        self,
        tokens: Iterable[Token],
        name: str | None = None,
        source: str | None = None,
    ):
        self._tokens: Iterator[Token] = iter(tokens)
        self._name = name
        self._source = source
        self._current: Token | None = None
        # Open blocks, innermost last: (keyword, opening token)
        self._block_stack: list[tuple[str, Token]] = []
        self._advance()

    # ─────────────────────────────────────────────────────────────────────
    # Token navigation
    # ─────────────────────────────────────────────────────────────────────

    def _advance(self) -> Token | None:
        """Consume the current token and return it."""
        previous = self._current
        self._current = next(self._tokens, None)
        return previous

    def _current_keyword(self) -> str | None:
        token = self._current
        if token is None or token.type is not TokenType.STATEMENT:
            return None
        return split_statement(token.value)[0]

    def _error(
        self,
        kind: ParseErrorKind,
        message: str,
        token: Token,
        suggestion: str | None = None,
    ) -> ParseError:
        return ParseError(
            kind,
            message,
            token,
            name=self._name,
            source=self._source,
            suggestion=suggestion,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Block stack
    # ─────────────────────────────────────────────────────────────────────

    def _push_block(self, keyword: str, token: Token) -> None:
        self._block_stack.append((keyword, token))

    def _pop_block(self) -> None:
        self._block_stack.pop()

    def _expect_terminator(self) -> Token:
        """Return the current terminator token, or fail if input ended."""
        token = self._current
        if token is None:
            keyword, opener = self._block_stack[-1]
            raise self._error(
                ParseErrorKind.UNCLOSED_BLOCK,
                f"Unclosed '{keyword}' block",
                opener,
                suggestion="Close the block with {% end %}",
            )
        return token

    def _consume_end(self, keyword: str) -> None:
        """Consume ``end`` for the innermost block; else/elif are rejected."""
        token = self._expect_terminator()
        found = self._current_keyword()
        if found != "end":
            raise self._error(
                ParseErrorKind.UNEXPECTED_BRANCH,
                f"'{found}' is not allowed inside a '{keyword}' block",
                token,
            )
        self._advance()
        self._pop_block()

    # ─────────────────────────────────────────────────────────────────────
    # Entry points
    # ─────────────────────────────────────────────────────────────────────

    def parse(self) -> Template:
        """Parse the whole token stream into a Template root node."""
        body = self._parse_body()
        token = self._current
        if token is not None:
            keyword = self._current_keyword()
            if keyword == "end":
                raise self._error(
                    ParseErrorKind.UNEXPECTED_END,
                    "'end' without an open block",
                    token,
                )
            raise self._error(
                ParseErrorKind.UNEXPECTED_BRANCH,
                f"'{keyword}' outside of an 'if' block",
                token,
            )
        return Template(offset=0, lineno=1, col_offset=0, body=tuple(body))

    def _parse_body(self) -> list[Node]:
        """Parse nodes until a terminator statement or end of input.

        The terminator (end/else/elif) is left as the current token.
        Adjacent literal runs (split by comments) are merged.
        """
        nodes: list[Node] = []
        while self._current is not None:
            token = self._current
            if token.type is TokenType.LITERAL:
                self._advance()
                previous = nodes[-1] if nodes else None
                if isinstance(previous, Literal):
                    nodes[-1] = Literal(
                        offset=previous.offset,
                        lineno=previous.lineno,
                        col_offset=previous.col_offset,
                        text=previous.text + token.value,
                    )
                else:
                    nodes.append(
                        Literal(
                            offset=token.offset,
                            lineno=token.lineno,
                            col_offset=token.col_offset,
                            text=token.value,
                        )
                    )
            elif token.type is TokenType.EXPRESSION:
                nodes.append(self._parse_interpolate(token))
            else:
                keyword, args = split_statement(token.value)
                if keyword in _TERMINATORS:
                    break
                nodes.append(self._parse_statement(token, keyword, args))
        return nodes

    def _parse_interpolate(self, token: Token) -> Interpolate:
        self._advance()
        source = token.value.strip()
        if not source:
            raise self._error(
                ParseErrorKind.EMPTY_EXPRESSION,
                "Empty expression",
                token,
            )
        return Interpolate(
            offset=token.offset,
            lineno=token.lineno,
            col_offset=token.col_offset,
            source=source,
        )

    def _parse_statement(self, token: Token, keyword: str, args: str) -> Node:
        if not keyword:
            raise self._error(ParseErrorKind.MALFORMED_STATEMENT, "Empty statement", token)
        handler_name = self._STATEMENT_HANDLERS.get(keyword)
        if handler_name is None:
            from difflib import get_close_matches

            known = sorted(self._STATEMENT_HANDLERS) + sorted(_TERMINATORS)
            matches = get_close_matches(keyword, known, n=1, cutoff=0.6)
            raise self._error(
                ParseErrorKind.UNKNOWN_STATEMENT,
                f"Unknown statement '{keyword}'",
                token,
                suggestion=f"Did you mean '{matches[0]}'?" if matches else None,
            )
        self._advance()
        handler = getattr(self, handler_name)
        node: Node = handler(token, args)
        return node


def parse(
    tokens: Iterable[Token],
    name: str | None = None,
    source: str | None = None,
) -> Template:
    """Parse a token stream into an AST. See ``Parser``."""
    return Parser(tokens, name=name, source=source).parse()
