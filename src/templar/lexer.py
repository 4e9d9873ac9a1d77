"""Table-driven lexer.

Turns template source into a lazy, single-pass stream of tokens using the
delimiters of a ``SyntaxDescriptor``:

    ```
    Hello {{ name }}!{# greeting #}
    └────┘└────────┘└┘└───────────┘
    LITERAL  EXPRESSION  LITERAL  (comment: dropped)
    ```

Scanning:
    Outside a span the lexer looks for the earliest open token of any
    category. Comments are recognised like any other span but never yield a
    token; they only take part in whitespace trimming of the adjacent
    literal text. When two open tokens start at the same offset the
    priority is comment > statement > expression.

Whitespace:
    ``trim_blocks`` removes one newline after a statement or comment close.
    ``lstrip_blocks`` removes blank indentation before a statement or
    comment open that begins its line. A trim marker right inside a
    delimiter (``{%-``, ``-}}``) strips all whitespace on that side.

Errors:
    An open token with no close before end of input raises
    ``TemplateSyntaxError`` pointing at the open token.

"""

from __future__ import annotations

from collections.abc import Iterator

from templar._types import Token, TokenType
from templar.environment.exceptions import ErrorCode, TemplateSyntaxError
from templar.syntax import DEFAULT_SYNTAX, SpanKind, SyntaxDescriptor

_TOKEN_TYPES = {
    SpanKind.EXPRESSION: TokenType.EXPRESSION,
    SpanKind.STATEMENT: TokenType.STATEMENT,
}

_UNCLOSED_CODES = {
    SpanKind.EXPRESSION: ErrorCode.UNCLOSED_EXPRESSION,
    SpanKind.STATEMENT: ErrorCode.UNCLOSED_STATEMENT,
    SpanKind.COMMENT: ErrorCode.UNCLOSED_COMMENT,
}

# Categories subject to trim_blocks / lstrip_blocks.
_BLOCK_KINDS = frozenset({SpanKind.STATEMENT, SpanKind.COMMENT})

# Pending trim applied to the start of the next literal run.
_STRIP_ALL = "all"
_STRIP_NEWLINE = "newline"


def _strip_leading_newline(text: str) -> str:
    if text.startswith("\r\n"):
        return text[2:]
    if text.startswith("\n"):
        return text[1:]
    return text


class Lexer:
    """Single-pass tokenizer over one template source.

    A Lexer is an iterator: it can be consumed exactly once. To lex the
    same source again, create a new Lexer.

    Example:
            >>> [t.type.name for t in Lexer("a{{ b }}c")]
            ['LITERAL', 'EXPRESSION', 'LITERAL']

    """

    __slots__ = (
        "_line_offset",
        "_lineno",
        "_name",
        "_source",
        "_start",
        "_syntax",
        "_tokens",
    )

    def __init__(
        self,
        source: str,
        syntax: SyntaxDescriptor = DEFAULT_SYNTAX,
        name: str | None = None,
        start: int = 0,
    ):
        self._source = source
        self._syntax = syntax
        self._name = name
        # Scanning begins here (past a syntax header); offsets stay absolute
        self._start = start
        # Incremental line tracking: offsets are visited in increasing order
        self._lineno = 1
        self._line_offset = 0
        self._tokens = self._scan()

    def __iter__(self) -> Iterator[Token]:
        return self

    def __next__(self) -> Token:
        return next(self._tokens)

    def _position(self, offset: int) -> tuple[int, int]:
        """Return (lineno, col_offset) for a source offset."""
        source = self._source
        if offset >= self._line_offset:
            self._lineno += source.count("\n", self._line_offset, offset)
            self._line_offset = offset
            lineno = self._lineno
        else:
            lineno = source.count("\n", 0, offset) + 1
        col = offset - (source.rfind("\n", 0, offset) + 1)
        return lineno, col

    def _unclosed(self, kind: SpanKind, start: int) -> TemplateSyntaxError:
        lineno, col = self._position(start)
        open_tok, close_tok = self._syntax.pair(kind)
        return TemplateSyntaxError(
            f"Unclosed {kind.value}: {open_tok!r} has no matching {close_tok!r}",
            offset=start,
            lineno=lineno,
            col_offset=col,
            name=self._name,
            source=self._source,
            code=_UNCLOSED_CODES[kind],
        )

    def _literal(self, text: str, offset: int) -> Token:
        lineno, col = self._position(offset)
        return Token(TokenType.LITERAL, text, offset, lineno, col)

    def _scan(self) -> Iterator[Token]:
        source = self._source
        syntax = self._syntax
        marker = syntax.trim_marker
        pos = self._start
        pending: str | None = None

        while True:
            found = syntax.find_open(source, pos)
            if found is None:
                text = source[pos:]
                start_offset = pos
                if pending is not None:
                    trimmed = text.lstrip() if pending == _STRIP_ALL else _strip_leading_newline(text)
                    start_offset += len(text) - len(trimmed)
                    text = trimmed
                if text:
                    yield self._literal(text, start_offset)
                return

            start, kind = found
            open_tok, close_tok = syntax.pair(kind)
            inner_start = start + len(open_tok)
            left_marker = marker is not None and source.startswith(marker, inner_start)
            if left_marker:
                inner_start += 1

            close_at = source.find(close_tok, inner_start)
            if close_at == -1:
                raise self._unclosed(kind, start)

            right_marker = (
                marker is not None
                and close_at > inner_start
                and source[close_at - 1] == marker
            )
            inner_end = close_at - 1 if right_marker else close_at
            end = close_at + len(close_tok)

            # Literal run preceding this span
            text = source[pos:start]
            text_offset = pos
            if pending is not None:
                trimmed = text.lstrip() if pending == _STRIP_ALL else _strip_leading_newline(text)
                text_offset += len(text) - len(trimmed)
                text = trimmed
            if left_marker:
                text = text.rstrip()
            elif syntax.lstrip_blocks and kind in _BLOCK_KINDS:
                line_start = source.rfind("\n", 0, start) + 1
                indent = source[line_start:start]
                if line_start >= text_offset and indent.strip(" \t") == "" and indent:
                    text = text[: len(text) - len(indent)]
            if text:
                yield self._literal(text, text_offset)

            if right_marker:
                pending = _STRIP_ALL
            elif syntax.trim_blocks and kind in _BLOCK_KINDS:
                pending = _STRIP_NEWLINE
            else:
                pending = None

            if kind is not SpanKind.COMMENT:
                lineno, col = self._position(start)
                yield Token(_TOKEN_TYPES[kind], source[inner_start:inner_end], start, lineno, col)

            pos = end


def lex(
    source: str,
    syntax: SyntaxDescriptor = DEFAULT_SYNTAX,
    name: str | None = None,
) -> Iterator[Token]:
    """Lazily tokenize ``source``. See ``Lexer``."""
    return Lexer(source, syntax, name)


def tokenize(
    source: str,
    syntax: SyntaxDescriptor = DEFAULT_SYNTAX,
    name: str | None = None,
) -> list[Token]:
    """Tokenize ``source`` eagerly; either all tokens or an exception."""
    return list(Lexer(source, syntax, name))
