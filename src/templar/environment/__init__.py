"""Templar environment package: configuration, loaders and errors.

``exceptions`` is imported first: every other templar module depends on
it, and ``core`` pulls in the whole pipeline.

"""

from templar.environment.exceptions import (
    CompileError,
    ErrorCode,
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
from templar.environment.loaders import ChoiceLoader, DictLoader, FileSystemLoader, Loader
from templar.environment.core import Environment

__all__ = [
    "ChoiceLoader",
    "CompileError",
    "DictLoader",
    "Environment",
    "ErrorCode",
    "FileSystemLoader",
    "InvalidSyntaxError",
    "Loader",
    "RenderError",
    "RenderErrorKind",
    "ScriptError",
    "ScriptTypeError",
    "SourceSnippet",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateSyntaxError",
    "UnboundNameError",
    "build_source_snippet",
]
