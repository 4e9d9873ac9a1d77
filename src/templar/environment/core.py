"""Templar Environment — central configuration and template management.

The Environment ties the pipeline together:

    ```
    loader ──► source ──► compile_template(source, syntax) ──► CompiledTemplate
                                   │                                 │
                            LRU cache / FileTemplateCache            ▼
                                                      Renderer(script_host)
    ```

Configuration is keyword-only and fixed after construction; everything
that varies per render is passed to ``render()``.

Thread-Safety:
    Caches are lock-protected LRU maps. Compiled templates are immutable
    and the Renderer holds no per-call state, so ``get_template()`` and
    ``render()`` are safe from any number of threads.

"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from templar.batch import BatchRenderer, CancelToken, JobStatus, RenderJob
from templar.compiler import compile_template
from templar.environment.loaders import Loader
from templar.renderer import Renderer
from templar.script.host import ScriptHost
from templar.script.python import PythonScriptHost
from templar.syntax import DEFAULT_SYNTAX, SyntaxDescriptor
from templar.template.compiled import CompiledTemplate
from templar.template.core import Template
from templar.template.serialize import FileTemplateCache, cache_key
from templar.utils.lru_cache import LRUCache

logger = logging.getLogger(__name__)

# Source key: (name, source, syntax); loader key: template name.
_SourceKey = tuple[str | None, str, SyntaxDescriptor]


@dataclass(frozen=True, slots=True)
class _LoadedEntry:
    template: Template
    filename: str | None
    mtime: float | None


def _mtime(filename: str | None) -> float | None:
    if filename is None:
        return None
    try:
        return os.path.getmtime(filename)
    except OSError:
        return None


@dataclass(eq=False)
class Environment:
    """Central configuration and template management.

    Attributes:
        loader: Template source provider for ``get_template()``
        syntax: Default delimiters (a ``#templar:`` header can override
            them per template)
        script_host: Scripting runtime; defaults to ``PythonScriptHost``
        globals: Variables bound into every render (render data wins)
        cache_size: Maximum compiled templates kept in memory
        max_workers: Pool size for ``render_batch()`` (None = auto)
        template_cache: Optional on-disk cache of compiled templates
        auto_reload: Recompile file-backed templates whose file changed

    Example:
            >>> env = Environment(syntax=SyntaxDescriptor.preset("angle"))
            >>> env.from_string("listen << port >>;").render(port=8080)
            'listen 8080;'

    """

    loader: Loader | None = None
    syntax: SyntaxDescriptor = DEFAULT_SYNTAX
    script_host: ScriptHost | None = None
    globals: dict[str, Any] = field(default_factory=dict)
    cache_size: int = 400
    max_workers: int | None = None
    template_cache: FileTemplateCache | None = None
    auto_reload: bool = True

    _renderer: Renderer = field(init=False, repr=False)
    _cache: LRUCache[str, _LoadedEntry] = field(init=False, repr=False)
    _string_cache: LRUCache[_SourceKey, CompiledTemplate] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.script_host is None:
            self.script_host = PythonScriptHost()
        if self.cache_size < 0:
            raise ValueError(f"cache_size must be >= 0, got {self.cache_size}")
        self._renderer = Renderer(self.script_host)
        self._cache = LRUCache(maxsize=self.cache_size)
        self._string_cache = LRUCache(maxsize=self.cache_size)

    @property
    def renderer(self) -> Renderer:
        return self._renderer

    # ─────────────────────────────────────────────────────────────────────
    # Compilation
    # ─────────────────────────────────────────────────────────────────────

    def compile(
        self,
        source: str,
        name: str | None = None,
        syntax: SyntaxDescriptor | None = None,
    ) -> CompiledTemplate:
        """Compile ``source``, reusing a cached program when possible.

        Lookup order: in-memory LRU, then ``template_cache`` on disk.
        """
        syntax = syntax if syntax is not None else self.syntax
        key: _SourceKey = (name, source, syntax)
        compiled = self._string_cache.get(key)
        if compiled is not None:
            logger.debug("cache hit: %s", name or "<string>")
            return compiled

        logger.debug("cache miss: %s", name or "<string>")
        compiled = self._compile_persistent(source, name, syntax)
        self._string_cache.set(key, compiled)
        return compiled

    def _compile_persistent(
        self, source: str, name: str | None, syntax: SyntaxDescriptor
    ) -> CompiledTemplate:
        store = self.template_cache
        if store is None:
            return compile_template(source, syntax=syntax, name=name)

        disk_key = cache_key(source, syntax, name)
        compiled = store.get(disk_key)
        if compiled is not None:
            logger.debug("template cache hit: %s (%s)", name or "<string>", disk_key[:12])
            return compiled
        compiled = compile_template(source, syntax=syntax, name=name)
        try:
            store.set(disk_key, compiled)
        except OSError as e:
            logger.warning("could not write template cache entry %s: %s", disk_key[:12], e)
        return compiled

    def from_string(
        self,
        source: str,
        name: str | None = None,
        syntax: SyntaxDescriptor | None = None,
    ) -> Template:
        """Compile a template from a string.

        Args:
            source: Template source
            name: Optional name for error messages
            syntax: Delimiters for this template (default: ``self.syntax``)
        """
        return Template(self, self.compile(source, name=name, syntax=syntax))

    def get_template(self, name: str) -> Template:
        """Load and compile a template by name.

        Raises:
            RuntimeError: No loader is configured
            TemplateNotFoundError: The loader cannot find ``name``
        """
        if self.loader is None:
            raise RuntimeError("No loader configured")

        entry = self._cache.get(name)
        if entry is not None:
            if not self.auto_reload or entry.filename is None:
                return entry.template
            if _mtime(entry.filename) == entry.mtime:
                return entry.template
            logger.debug("reloading changed template %s", name)
            self._cache.pop(name)

        source, filename = self.loader.get_source(name)
        compiled = self.compile(source, name=name)
        template = Template(self, compiled, filename=filename)
        self._cache.set(name, _LoadedEntry(template, filename, _mtime(filename)))
        return template

    # ─────────────────────────────────────────────────────────────────────
    # Batch rendering
    # ─────────────────────────────────────────────────────────────────────

    def render_batch(
        self,
        items: Iterable[tuple[str | Template | CompiledTemplate, Mapping[str, Any]]],
        cancel: CancelToken | None = None,
    ) -> list[RenderJob]:
        """Render many (template, data) pairs concurrently.

        Templates given by name are loaded and compiled once per batch no
        matter how many jobs use them. A template that fails to load or
        compile marks its jobs FAILED; the remaining jobs still run.

        Returns:
            One RenderJob per item, in input order.
        """
        resolved: dict[str, CompiledTemplate | Exception] = {}
        jobs: list[RenderJob] = []

        for ref, data in items:
            merged = {**self.globals, **data}
            if isinstance(ref, str):
                if ref not in resolved:
                    try:
                        resolved[ref] = self.get_template(ref).compiled
                    except Exception as e:
                        logger.warning("batch template %s failed to load: %s", ref, e)
                        resolved[ref] = e
                outcome = resolved[ref]
                if isinstance(outcome, Exception):
                    jobs.append(
                        RenderJob(
                            template=None,
                            data=merged,
                            key=ref,
                            status=JobStatus.FAILED,
                            error=outcome,
                        )
                    )
                    continue
                jobs.append(RenderJob(outcome, merged, key=ref))
            elif isinstance(ref, Template):
                jobs.append(RenderJob(ref.compiled, merged, key=ref.name))
            else:
                jobs.append(RenderJob(ref, merged, key=ref.name))

        return BatchRenderer(self._renderer, max_workers=self.max_workers).submit(jobs, cancel)

    # ─────────────────────────────────────────────────────────────────────
    # Cache management
    # ─────────────────────────────────────────────────────────────────────

    def clear_cache(self, include_template_cache: bool = False) -> None:
        """Drop every in-memory compiled template (optionally the disk cache too)."""
        self._cache.clear()
        self._string_cache.clear()
        if include_template_cache and self.template_cache is not None:
            self.template_cache.clear()

    def cache_info(self) -> dict[str, Any]:
        """Cache statistics.

        Returns:
            ``{"template": {...}, "string": {...}, "file": int | None}``;
            the first two carry hits, misses, size, max_size, hit_rate.
        """
        return {
            "template": self._cache.stats(),
            "string": self._string_cache.stats(),
            "file": len(self.template_cache) if self.template_cache is not None else None,
        }
