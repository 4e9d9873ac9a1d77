"""Parser error handling for templar.

Provides ParseError with a structured kind, the source offset of the
offending statement, and a rendered source snippet.
"""

from __future__ import annotations

from enum import Enum

from templar._types import Token
from templar.environment.exceptions import ErrorCode, SourceLocatedError


class ParseErrorKind(Enum):
    UNEXPECTED_END = "unexpected_end"  # `end` with no open block
    UNCLOSED_BLOCK = "unclosed_block"  # EOF while a block is open
    UNKNOWN_STATEMENT = "unknown_statement"  # keyword not recognised
    MALFORMED_STATEMENT = "malformed_statement"  # keyword known, arguments wrong
    UNEXPECTED_BRANCH = "unexpected_branch"  # else/elif outside an if, or after else
    EMPTY_EXPRESSION = "empty_expression"  # {{ }} with nothing inside


_CODES = {
    ParseErrorKind.UNEXPECTED_END: ErrorCode.UNEXPECTED_END,
    ParseErrorKind.UNCLOSED_BLOCK: ErrorCode.UNCLOSED_BLOCK,
    ParseErrorKind.UNKNOWN_STATEMENT: ErrorCode.UNKNOWN_STATEMENT,
    ParseErrorKind.MALFORMED_STATEMENT: ErrorCode.MALFORMED_STATEMENT,
    ParseErrorKind.UNEXPECTED_BRANCH: ErrorCode.UNEXPECTED_BRANCH,
    ParseErrorKind.EMPTY_EXPRESSION: ErrorCode.EMPTY_EXPRESSION,
}


class ParseError(SourceLocatedError):
    """Structural grammar violation.

    Displays errors with source code snippets and visual pointers,
    matching the format used by the lexer for consistency:

        ```
        Parse Error: 'end' without an open block
          --> hosts.conf:3:0
           |
        >  3 | {% end %}
           | ^
        ```

    Attributes:
        kind: ParseErrorKind
        offset: 0-based source offset of the offending token
        suggestion: Optional fix hint
    """

    label = "Parse Error"

    def __init__(
        self,
        kind: ParseErrorKind,
        message: str,
        token: Token,
        *,
        name: str | None = None,
        source: str | None = None,
        suggestion: str | None = None,
    ):
        self.kind = kind
        self.token = token
        self.suggestion = suggestion
        super().__init__(
            message,
            offset=token.offset,
            lineno=token.lineno,
            col_offset=token.col_offset,
            name=name,
            source=source,
            code=_CODES[kind],
        )

    def _format_message(self) -> str:
        msg = super()._format_message()
        if self.suggestion:
            msg += f"\n\nSuggestion: {self.suggestion}"
        return msg
