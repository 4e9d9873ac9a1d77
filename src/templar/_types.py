"""Token types produced by the lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenType(Enum):
    LITERAL = "literal"
    EXPRESSION = "expression"
    STATEMENT = "statement"


@dataclass(frozen=True, slots=True)
class Token:
    """A lexed span of template source.

    ``value`` is the literal text for LITERAL tokens and the text between
    the delimiters (trim markers removed) for EXPRESSION and STATEMENT.
    ``offset`` is the 0-based source offset where the span starts.
    """

    type: TokenType
    value: str
    offset: int
    lineno: int
    col_offset: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.lineno}:{self.col_offset})"
