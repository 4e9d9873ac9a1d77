"""Templar parser: tokens → AST."""

from templar.parser.core import Parser, parse, split_statement
from templar.parser.errors import ParseError, ParseErrorKind

__all__ = ["ParseError", "ParseErrorKind", "Parser", "parse", "split_statement"]
