"""Python scripting host.

Fragments are Python expressions and statements, compiled once into code
objects and run with ``eval``/``exec`` against a private namespace per
render call:

    ```
    {% do total = 0 %}
    {% for port in ports %}{% do total += port %}{% end %}
    sum={{ total }}
    ```

Namespaces start from a curated set of builtins plus the host's globals.
This is isolation between renders, not a sandbox: templates are trusted
code, and ``builtins=__builtins__`` may be passed to expose everything.

Thread-Safety:
    The host itself is immutable after construction. The fragment code
    cache is a ``functools.lru_cache`` (safe for concurrent callers); code
    objects are immutable and shared between contexts.

"""

from __future__ import annotations

import builtins as _builtins
import re
from collections.abc import Iterator, Mapping
from functools import lru_cache
from types import CodeType
from typing import Any

from templar.environment.exceptions import ScriptError, ScriptTypeError, UnboundNameError
from templar.script.values import Value, ValueKind

SAFE_BUILTINS: dict[str, Any] = {
    name: getattr(_builtins, name)
    for name in (
        "abs", "all", "any", "bin", "bool", "chr", "dict", "divmod", "enumerate",
        "filter", "float", "format", "frozenset", "getattr", "hasattr", "hex",
        "int", "isinstance", "iter", "len", "list", "map", "max", "min", "next",
        "oct", "ord", "pow", "range", "repr", "reversed", "round", "set",
        "slice", "sorted", "str", "sum", "tuple", "zip",
        "__build_class__", "classmethod", "object", "property", "staticmethod",
        "super",
        "Exception", "ArithmeticError", "AssertionError", "AttributeError",
        "IndexError", "KeyError", "LookupError", "StopIteration", "TypeError",
        "ValueError", "ZeroDivisionError",
    )
}

_NAME_RE = re.compile(r"name '([^']+)' is not defined")


@lru_cache(maxsize=2048)
def _compile_fragment(source: str, mode: str) -> CodeType:
    return compile(source, "<fragment>", mode)


class PythonContext:
    """Per-render namespace. Owned by exactly one render call."""

    __slots__ = ("namespace",)

    def __init__(self, namespace: dict[str, Any]):
        self.namespace = namespace


class PythonScriptHost:
    """ScriptHost backed by the running Python interpreter.

    Attributes:
        globals: Names bound in every new context (copied per context)
        builtins: Builtins visible to fragments

    Example:
            >>> host = PythonScriptHost(globals={"upper": str.upper})
            >>> ctx = host.new_context()
            >>> host.bind(ctx, "name", Value.of("web"))
            >>> host.eval_expr(ctx, "upper(name)").raw
            'WEB'

    """

    __slots__ = ("_builtins", "_globals")

    def __init__(
        self,
        globals: Mapping[str, Any] | None = None,
        builtins: Mapping[str, Any] | None = None,
    ):
        self._globals: dict[str, Any] = dict(globals or {})
        self._builtins: dict[str, Any] = dict(SAFE_BUILTINS if builtins is None else builtins)

    @property
    def globals(self) -> Mapping[str, Any]:
        return self._globals

    def with_globals(self, extra: Mapping[str, Any]) -> PythonScriptHost:
        """Return a new host with ``extra`` merged into its globals."""
        merged = dict(self._globals)
        merged.update(extra)
        return PythonScriptHost(globals=merged, builtins=self._builtins)

    def new_context(self) -> PythonContext:
        namespace: dict[str, Any] = {"__builtins__": self._builtins, "__name__": "<template>"}
        namespace.update(self._globals)
        return PythonContext(namespace)

    def bind(self, context: PythonContext, name: str, value: Value) -> None:
        context.namespace[name] = value.raw

    def _code(self, fragment: str, mode: str) -> CodeType:
        try:
            return _compile_fragment(fragment, mode)
        except SyntaxError as e:
            what = "expression" if mode == "eval" else "statement"
            raise ScriptError(f"invalid {what}: {e.msg}", fragment=fragment) from e

    def _run(self, context: PythonContext, fragment: str, mode: str) -> Any:
        code = self._code(fragment, mode)
        try:
            if mode == "eval":
                return eval(code, context.namespace)
            exec(code, context.namespace)
            return None
        except NameError as e:
            name = _unbound_name(e)
            if name is None:
                raise ScriptError(f"{type(e).__name__}: {e}", fragment=fragment) from e
            raise UnboundNameError(name, fragment=fragment) from e
        except Exception as e:
            raise ScriptError(f"{type(e).__name__}: {e}", fragment=fragment) from e

    def eval_expr(self, context: PythonContext, fragment: str) -> Value:
        return Value.of(self._run(context, fragment, "eval"))

    def exec_stmt(self, context: PythonContext, fragment: str) -> None:
        self._run(context, fragment, "exec")

    def iterate(self, context: PythonContext, fragment: str) -> Iterator[Value]:
        value = self.eval_expr(context, fragment)
        if value.kind not in (ValueKind.SEQUENCE, ValueKind.MAPPING):
            raise ScriptTypeError(
                f"cannot iterate over {value.kind.value} value "
                f"({type(value.raw).__name__})",
                fragment=fragment,
            )
        return _iter_values(iter(value.raw), fragment)

    def release(self, context: PythonContext) -> None:
        context.namespace.clear()


def _unbound_name(error: NameError) -> str | None:
    name = getattr(error, "name", None)
    if name:
        return name
    match = _NAME_RE.search(str(error))
    return match.group(1) if match else None


def _iter_values(iterator: Iterator[Any], fragment: str) -> Iterator[Value]:
    """Wrap elements as Values; failures inside the iterator become ScriptError."""
    while True:
        try:
            item = next(iterator)
        except StopIteration:
            return
        except Exception as e:
            raise ScriptError(f"{type(e).__name__}: {e}", fragment=fragment) from e
        yield Value.of(item)
