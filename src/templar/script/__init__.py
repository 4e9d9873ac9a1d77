"""Scripting host binding: runtime-neutral values and the Python host."""

from templar.script.host import ScriptHost
from templar.script.python import SAFE_BUILTINS, PythonContext, PythonScriptHost
from templar.script.values import NIL, Value, ValueKind, classify, is_truthy, to_text

__all__ = [
    "NIL",
    "SAFE_BUILTINS",
    "PythonContext",
    "PythonScriptHost",
    "ScriptHost",
    "Value",
    "ValueKind",
    "classify",
    "is_truthy",
    "to_text",
]
