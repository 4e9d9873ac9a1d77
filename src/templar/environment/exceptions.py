"""Exceptions for the templar engine.

Exception Hierarchy:
TemplateError (base)
├── InvalidSyntaxError        # Ambiguous or malformed SyntaxDescriptor
├── TemplateSyntaxError       # Lexing: open delimiter never closed
├── ParseError                # Parsing: structural grammar violation
├── CompileError              # Compiler invariant broken / bad cache entry
├── ScriptError               # Scripting runtime rejected a fragment
│   ├── UnboundNameError      # Fragment referenced an unbound name
│   └── ScriptTypeError       # Value of the wrong kind (e.g. iterating a number)
├── RenderError               # Render-time failure at an instruction offset
└── TemplateNotFoundError     # Loader could not supply a source

Every error carries an ``ErrorCode`` and, where a location is known, the
template name, 1-based line and a source snippet:

    ```
    T-RUN-002: Unbound variable 'hostnme'
      Location: nginx.conf:4
       |
       3 | server {
    >  4 |   server_name {{ hostnme }};
       |
      Hint: Did you mean 'hostname'?
    ```

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from templar.environment import terminal


class ErrorCode(Enum):
    """Searchable error codes, ``T-{CATEGORY}-{NUMBER}``.

    Categories: LEX (lexer and syntax descriptors), PAR (parser),
    CMP (compiler and compiled-template cache), SCR (scripting host),
    RUN (renderer), TPL (template loading).
    """

    # Lexer / syntax descriptor
    UNCLOSED_EXPRESSION = "T-LEX-001"
    UNCLOSED_STATEMENT = "T-LEX-002"
    UNCLOSED_COMMENT = "T-LEX-003"
    AMBIGUOUS_SYNTAX = "T-LEX-004"

    # Parser
    UNEXPECTED_END = "T-PAR-001"
    UNCLOSED_BLOCK = "T-PAR-002"
    UNKNOWN_STATEMENT = "T-PAR-003"
    MALFORMED_STATEMENT = "T-PAR-004"
    UNEXPECTED_BRANCH = "T-PAR-005"
    EMPTY_EXPRESSION = "T-PAR-006"

    # Compiler
    COMPILE_ERROR = "T-CMP-001"
    INVALID_CACHE_ENTRY = "T-CMP-002"

    # Scripting host
    SCRIPT_ERROR = "T-SCR-001"
    UNBOUND_NAME = "T-SCR-002"
    SCRIPT_TYPE_ERROR = "T-SCR-003"

    # Renderer
    SCRIPT_FAILURE = "T-RUN-001"
    UNBOUND_VARIABLE = "T-RUN-002"
    TYPE_MISMATCH = "T-RUN-003"

    # Template loading
    TEMPLATE_NOT_FOUND = "T-TPL-001"

    @property
    def category(self) -> str:
        """Error category (e.g. 'lexer', 'parser', 'runtime')."""
        prefix = self.value.split("-")[1]
        return {
            "LEX": "lexer",
            "PAR": "parser",
            "CMP": "compiler",
            "SCR": "script",
            "RUN": "runtime",
            "TPL": "template",
        }.get(prefix, "unknown")


# ---------------------------------------------------------------------------
# Source snippets
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source lines around an error.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
        column: Optional column offset for a caret pointer.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None

    def format(self) -> str:
        parts: list[str] = [terminal.dim_text("   |")]
        for lineno, content in self.lines:
            parts.append(
                terminal.format_source_line(lineno, content, is_error=lineno == self.error_line)
            )
            if lineno == self.error_line and self.column is not None:
                caret = " " * self.column + "^"
                parts.append(f"{terminal.dim_text('     |')} {terminal.error_line(caret)}")
        parts.append(terminal.dim_text("   |"))
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 2,
    column: int | None = None,
) -> SourceSnippet:
    """Build a SourceSnippet of ``context_lines`` around ``error_line``."""
    all_lines = source.splitlines()
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column)


def _location(name: str | None, lineno: int | None, col_offset: int | None = None) -> str:
    loc = name or "<template>"
    if lineno:
        loc += f":{lineno}"
        if col_offset is not None:
            loc += f":{col_offset}"
    return loc


class TemplateError(Exception):
    """Base exception for all templar errors.

        >>> try:
        ...     env.from_string(source).render(data)
        ... except TemplateError as e:
        ...     log.error("template failed: %s", e.format_compact())

    Attributes:
        code: ErrorCode identifying the failure.
    """

    code: ErrorCode | None = None

    def format_compact(self) -> str:
        """Format as a one-screen diagnostic without traceback noise."""
        header = str(self)
        if self.code and self.code.value not in header:
            header = terminal.format_error_header(self.code.value, header)
        return header


class InvalidSyntaxError(TemplateError, ValueError):
    """A SyntaxDescriptor was rejected at construction.

    Raised eagerly, before any template is lexed, when delimiters are empty
    or when one category's open token is a prefix of another's.
    """

    code: ErrorCode | None = ErrorCode.AMBIGUOUS_SYNTAX


class SourceLocatedError(TemplateError):
    """Shared formatting for errors that point into template source."""

    label = "Error"

    def __init__(
        self,
        message: str,
        *,
        offset: int | None = None,
        lineno: int | None = None,
        col_offset: int | None = None,
        name: str | None = None,
        source: str | None = None,
        code: ErrorCode | None = None,
    ):
        self.message = message
        self.offset = offset
        self.lineno = lineno
        self.col_offset = col_offset
        self.name = name
        self.source = source
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    @property
    def source_snippet(self) -> SourceSnippet | None:
        if self.source and self.lineno:
            return build_source_snippet(
                self.source, self.lineno, context_lines=0, column=self.col_offset
            )
        return None

    def _format_message(self) -> str:
        header = (
            f"{self.label}: {self.message}\n"
            f"  --> {_location(self.name, self.lineno, self.col_offset)}"
        )
        snippet = self.source_snippet
        if snippet is not None:
            return header + "\n" + snippet.format()
        return header

    def format_compact(self) -> str:
        parts = [
            terminal.format_error_header(self.code.value if self.code else None, self.message),
            f"  --> {terminal.location(_location(self.name, self.lineno, self.col_offset))}",
        ]
        snippet = self.source_snippet
        if snippet is not None:
            parts.append(snippet.format())
        return "\n".join(parts)


class TemplateSyntaxError(SourceLocatedError):
    """Lexing failed: an open delimiter has no matching close.

    ``offset`` is the 0-based source offset of the unmatched open token.
    """

    label = "Syntax Error"
    code: ErrorCode | None = ErrorCode.UNCLOSED_STATEMENT


class CompileError(SourceLocatedError):
    """Compilation failed.

    Compilation of a valid AST does not fail; this is raised when an
    internal invariant breaks or when a persisted compiled template cannot
    be restored.
    """

    label = "Compile Error"
    code: ErrorCode | None = ErrorCode.COMPILE_ERROR


class TemplateNotFoundError(TemplateError):
    """No loader could supply the named template."""

    code: ErrorCode | None = ErrorCode.TEMPLATE_NOT_FOUND


# ---------------------------------------------------------------------------
# Scripting host
# ---------------------------------------------------------------------------


class ScriptError(TemplateError):
    """The scripting runtime rejected a fragment.

    Covers invalid fragment syntax as well as exceptions raised by user
    logic inside a fragment. The underlying exception is chained.

    Attributes:
        message: Description from the runtime
        fragment: Source text of the fragment that failed
    """

    code: ErrorCode | None = ErrorCode.SCRIPT_ERROR

    def __init__(self, message: str, *, fragment: str | None = None):
        self.message = message
        self.fragment = fragment
        super().__init__(message)


class UnboundNameError(ScriptError):
    """A fragment referenced a name that is not bound in its context."""

    code: ErrorCode | None = ErrorCode.UNBOUND_NAME

    def __init__(self, name: str, *, fragment: str | None = None):
        self.name = name
        super().__init__(f"name '{name}' is not bound", fragment=fragment)


class ScriptTypeError(ScriptError):
    """A fragment produced a value of a kind the operation cannot use."""

    code: ErrorCode | None = ErrorCode.SCRIPT_TYPE_ERROR


# ---------------------------------------------------------------------------
# Renderer
# ---------------------------------------------------------------------------


class RenderErrorKind(Enum):
    SCRIPT_FAILURE = "script_failure"
    UNBOUND_VARIABLE = "unbound_variable"
    TYPE_MISMATCH = "type_mismatch"


_RENDER_CODES = {
    RenderErrorKind.SCRIPT_FAILURE: ErrorCode.SCRIPT_FAILURE,
    RenderErrorKind.UNBOUND_VARIABLE: ErrorCode.UNBOUND_VARIABLE,
    RenderErrorKind.TYPE_MISMATCH: ErrorCode.TYPE_MISMATCH,
}


class RenderError(TemplateError):
    """A render call aborted.

    Output Format:
        ```
        Render Error: Unbound variable 'hostnme'
          Location: nginx.conf:4 (instruction 7)
           |
        >  4 |   server_name {{ hostnme }};
           |
          Fragment: hostnme
          Hint: Did you mean 'hostname'?
        ```

    Attributes:
        kind: RenderErrorKind
        message: Error description
        offset: Index of the instruction that failed
        template_name: Name of the template
        lineno: Line number in template source
        fragment: Scripting source that failed, if any
        suggestion: Optional hint
    """

    def __init__(
        self,
        kind: RenderErrorKind,
        message: str,
        *,
        offset: int,
        template_name: str | None = None,
        lineno: int | None = None,
        fragment: str | None = None,
        suggestion: str | None = None,
        source_snippet: SourceSnippet | None = None,
    ):
        self.kind = kind
        self.code = _RENDER_CODES[kind]
        self.message = message
        self.offset = offset
        self.template_name = template_name
        self.lineno = lineno
        self.fragment = fragment
        self.suggestion = suggestion
        self.source_snippet = source_snippet
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [f"Render Error: {self.message}"]
        loc = _location(self.template_name, self.lineno)
        parts.append(f"  Location: {terminal.location(loc)} (instruction {self.offset})")
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        if self.fragment:
            parts.append(f"  Fragment: {self.fragment}")
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        return "\n".join(parts)

    def format_compact(self) -> str:
        parts = [terminal.format_error_header(self.code.value, self.message)]
        loc = _location(self.template_name, self.lineno)
        parts.append(f"  Location: {terminal.location(loc)}")
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        return "\n".join(parts)
