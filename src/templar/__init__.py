"""Templar — configurable-syntax template engine for config-file families.

Templates mix literal text with fragments of a scripting language. The
delimiters are not fixed: each template (or environment) picks its own, so
a template can generate files whose native syntax would clash with ``{{``.

Quickstart:
    >>> from templar import Environment
    >>> env = Environment()
    >>> env.from_string("Hello {{ name }}!").render(name="World")
    'Hello World!'

Per-template syntax:
    >>> source = "#templar: preset=angle\\nlisten << port >>;"
    >>> env.from_string(source).render(port=80)
    'listen 80;'

Many renders at once:
    >>> jobs = env.render_batch([("site.conf", {"host": h}) for h in hosts])
    >>> [job.status for job in jobs]

Architecture:
Template Source → Lexer → Parser → AST → Compiler → CompiledTemplate → Renderer

Pipeline stages:
1. **Lexer**: Tokenizes source using a SyntaxDescriptor's delimiters
2. **Parser**: Builds immutable AST nodes; fragments are kept verbatim
3. **Compiler**: Lowers the AST to a flat, back-patched instruction tuple
4. **Renderer**: Executes instructions against a ScriptHost context

Thread-Safety:
- Compilation is deterministic (same input → equal program)
- CompiledTemplate is immutable and shared freely between threads
- Each render gets a private scripting context, released on return
- Environment caches are lock-protected LRU maps

Free-Threading (PEP 703):
Declares GIL-independence via ``_Py_mod_gil = 0`` attribute.

"""

from templar._types import Token, TokenType
from templar.environment import (
    ChoiceLoader,
    CompileError,
    DictLoader,
    Environment,
    ErrorCode,
    FileSystemLoader,
    InvalidSyntaxError,
    RenderError,
    RenderErrorKind,
    ScriptError,
    ScriptTypeError,
    SourceSnippet,
    TemplateError,
    TemplateNotFoundError,
    TemplateSyntaxError,
    UnboundNameError,
    build_source_snippet,
)
from templar.batch import BatchRenderer, CancelToken, JobStatus, RenderJob
from templar.compiler import compile_template
from templar.lexer import Lexer, lex, tokenize
from templar.parser import ParseError, ParseErrorKind, parse
from templar.render_context import (
    RenderContext,
    get_render_context,
    get_render_context_required,
)
from templar.renderer import Renderer
from templar.script import NIL, PythonScriptHost, ScriptHost, Value, ValueKind
from templar.syntax import DEFAULT_SYNTAX, PRESETS, SyntaxDescriptor
from templar.template import CompiledTemplate, FileTemplateCache, Template
from templar.utils.workers import (
    WorkloadType,
    get_optimal_workers,
    is_free_threading_enabled,
    should_parallelize,
)

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_SYNTAX",
    "NIL",
    "PRESETS",
    "BatchRenderer",
    "CancelToken",
    "ChoiceLoader",
    "CompileError",
    "CompiledTemplate",
    "DictLoader",
    "Environment",
    "ErrorCode",
    "FileSystemLoader",
    "FileTemplateCache",
    "InvalidSyntaxError",
    "JobStatus",
    "Lexer",
    "ParseError",
    "ParseErrorKind",
    "PythonScriptHost",
    "RenderContext",
    "RenderError",
    "RenderErrorKind",
    "RenderJob",
    "Renderer",
    "ScriptError",
    "ScriptHost",
    "ScriptTypeError",
    "SourceSnippet",
    "SyntaxDescriptor",
    "Template",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateSyntaxError",
    "Token",
    "TokenType",
    "UnboundNameError",
    "Value",
    "ValueKind",
    "WorkloadType",
    "__version__",
    "build_source_snippet",
    "compile_template",
    "get_optimal_workers",
    "get_render_context",
    "get_render_context_required",
    "is_free_threading_enabled",
    "lex",
    "parse",
    "should_parallelize",
    "tokenize",
]


# Free-threading declaration (PEP 703)
def __getattr__(name: str) -> object:
    """Module-level getattr for free-threading declaration."""
    if name == "_Py_mod_gil":
        # Signal: this module is safe for free-threading
        # 0 = Py_MOD_GIL_NOT_USED
        return 0
    raise AttributeError(f"module 'templar' has no attribute {name!r}")
