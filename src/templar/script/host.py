"""The scripting host binding.

The renderer drives an embedded scripting runtime only through this narrow
interface. Any runtime that can create isolated contexts, bind names,
evaluate expressions, execute statements and iterate results can back it.

Isolation:
    Every render call obtains its own context from ``new_context()`` and
    hands it back to ``release()`` when done. Bindings made in one context
    are never visible in another, which is what makes concurrent renders
    safe without locks.

"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Protocol, runtime_checkable

from templar.script.values import Value


@runtime_checkable
class ScriptHost(Protocol):
    """Operations the renderer needs from a scripting runtime.

    ``context`` arguments are opaque handles returned by ``new_context``.
    Evaluation failures raise ``ScriptError`` (or its subclasses
    ``UnboundNameError`` and ``ScriptTypeError``).
    """

    def new_context(self) -> Any:
        """Create an isolated execution context."""
        ...

    def bind(self, context: Any, name: str, value: Value) -> None:
        """Bind ``name`` to ``value`` in ``context``."""
        ...

    def eval_expr(self, context: Any, fragment: str) -> Value:
        """Evaluate an expression fragment."""
        ...

    def exec_stmt(self, context: Any, fragment: str) -> None:
        """Execute a statement fragment for its side effects."""
        ...

    def iterate(self, context: Any, fragment: str) -> Iterator[Value]:
        """Evaluate a fragment and lazily iterate the result.

        Raises ``ScriptTypeError`` when the result is neither a sequence
        nor a mapping (mappings iterate their keys).
        """
        ...

    def release(self, context: Any) -> None:
        """Dispose of a context; it is not used again."""
        ...
