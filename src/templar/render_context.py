"""Templar RenderContext — per-render state.

One RenderContext exists per render call. It owns the scripting context
handle obtained from the host, the data bound for that call and the
renderer's current position (for error messages). It is never shared
between threads and is released when the call returns.

The active context is published through a ContextVar so that helper
functions called from fragments (and error reporting) can reach it
without threading it through every call:

    ```python
    def current_template() -> str:
        ctx = get_render_context_required()
        return ctx.template_name or "<template>"
    ```

"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any

from templar.script.host import ScriptHost
from templar.script.values import Value


@dataclass
class RenderContext:
    """Per-render state isolated from every other render.

    Attributes:
        host: Scripting host driving this render
        handle: Host context created for this render only
        template_name: Current template name for error messages
        source: Template source for error snippets
        ip: Index of the instruction being executed
        line: Template line of that instruction
        bound_names: Names bound so far (data keys, loop targets, captures)
    """

    host: ScriptHost
    handle: Any
    template_name: str | None = None
    source: str | None = None
    ip: int = 0
    line: int = 0
    bound_names: set[str] = field(default_factory=set)

    def bind(self, name: str, value: Value) -> None:
        self.host.bind(self.handle, name, value)
        self.bound_names.add(name)

    def bind_data(self, data: Mapping[str, Any]) -> None:
        for name, raw in data.items():
            self.bind(name, Value.of(raw))


_render_context: ContextVar[RenderContext | None] = ContextVar(
    "templar_render_context",
    default=None,
)


def get_render_context() -> RenderContext | None:
    """Get the current render context (None outside a render)."""
    return _render_context.get()


def get_render_context_required() -> RenderContext:
    """Get the current render context, raising outside a render."""
    ctx = _render_context.get()
    if ctx is None:
        raise RuntimeError("Not in a render context")
    return ctx


@contextmanager
def render_context(
    host: ScriptHost,
    data: Mapping[str, Any] | None = None,
    template_name: str | None = None,
    source: str | None = None,
    *,
    publish: bool = True,
) -> Iterator[RenderContext]:
    """Create, publish and finally release a RenderContext.

    The host context is created on entry and released on exit, whether the
    render succeeded or not. The previously active context (if any) is
    restored.

    Args:
        publish: Set the ContextVar. Streaming renders pass False: a
            suspended generator must not leak its context into the
            consumer between chunks.

    Example:
        with render_context(host, {"name": "web"}, template_name="a.conf") as ctx:
            value = host.eval_expr(ctx.handle, "name")
    """
    ctx = RenderContext(
        host=host,
        handle=host.new_context(),
        template_name=template_name,
        source=source,
    )
    token: Token[RenderContext | None] | None = _render_context.set(ctx) if publish else None
    try:
        if data:
            ctx.bind_data(data)
        yield ctx
    finally:
        if token is not None:
            _render_context.reset(token)
        host.release(ctx.handle)
