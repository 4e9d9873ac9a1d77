"""Templar Template — a CompiledTemplate bound to its Environment.

The Template class pairs an immutable CompiledTemplate with the
Environment that produced it and provides the ``render()`` API.

Architecture:
    ```
    Template
    ├── _env_ref: WeakRef[Environment]  # Prevents circular refs
    ├── _compiled: CompiledTemplate     # Instructions + fragments
    └── _filename                       # For error messages
    ```

Memory Safety:
Uses ``weakref.ref(env)`` to break potential cycles:
``Template → (weak) → Environment → cache → Template``

Thread-Safety:
- Templates are immutable after construction
- ``render()`` creates only local state (render context, frame stack, buffer)
- Multiple threads can call ``render()`` concurrently

"""

from __future__ import annotations

import weakref
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from templar.environment import Environment
    from templar.template.compiled import CompiledTemplate


class Template:
    """Compiled template ready for rendering.

    Attributes:
        name: Template identifier (for error messages)
        filename: Source file path (for error messages)
        compiled: The underlying CompiledTemplate

    Example:
            >>> from templar import Environment
            >>> env = Environment()
            >>> t = env.from_string("Hello, {{ name }}!")
            >>> t.render(name="World")
            'Hello, World!'

            >>> t.render({"name": "World"})  # Dict context also works
            'Hello, World!'

    """

    __slots__ = ("_compiled", "_env_ref", "_filename")

    def __init__(
        self,
        env: Environment,
        compiled: CompiledTemplate,
        filename: str | None = None,
    ):
        # Use weakref to prevent circular reference: Template <-> Environment
        self._env_ref: weakref.ref[Environment] = weakref.ref(env)
        self._compiled = compiled
        self._filename = filename

    @property
    def _env(self) -> Environment:
        """Get the Environment (dereferences weak reference)."""
        env = self._env_ref()
        if env is None:
            raise RuntimeError(
                f"Environment has been garbage collected"
                f" (template: {self.name or 'unknown'})"
            )
        return env

    @property
    def name(self) -> str | None:
        """Template name."""
        return self._compiled.name

    @property
    def filename(self) -> str | None:
        """Source filename."""
        return self._filename

    @property
    def compiled(self) -> CompiledTemplate:
        return self._compiled

    def _build_data(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
        data: dict[str, Any] = dict(self._env.globals)
        if args:
            if len(args) == 1 and isinstance(args[0], dict):
                data.update(args[0])
            else:
                raise TypeError(
                    f"render() takes at most 1 positional argument (a dict), got {len(args)}"
                )
        data.update(kwargs)
        return data

    def render(self, *args: Any, **kwargs: Any) -> str:
        """Render template with given data.

        Environment globals are bound first, then the positional dict, then
        keyword arguments (later wins).

        Args:
            *args: Single dict of variables
            **kwargs: Variables as keyword arguments

        Returns:
            Rendered template as string

        Raises:
            RenderError: If a fragment fails during rendering
        """
        data = self._build_data(args, kwargs)
        return self._env.renderer.render(self._compiled, data)

    def render_stream(self, *args: Any, **kwargs: Any) -> Iterator[str]:
        """Render template as a generator of output chunks."""
        data = self._build_data(args, kwargs)
        return self._env.renderer.render_stream(self._compiled, data)

    async def render_async(self, *args: Any, **kwargs: Any) -> str:
        """Async wrapper for synchronous render.

        Runs the synchronous ``render()`` method in a thread pool to avoid
        blocking the event loop.
        """
        import asyncio

        return await asyncio.to_thread(self.render, *args, **kwargs)

    def __repr__(self) -> str:
        return f"<Template {self.name or '(inline)'}>"
