"""Template loaders for the templar Environment.

Loaders provide template source to the Environment. They implement
``get_source(name)`` returning ``(source, filename)``. Discovering which
templates exist is the caller's job; loaders only resolve a name.

Built-in Loaders:
- ``FileSystemLoader``: Load from filesystem directories
- ``DictLoader``: Load from in-memory dictionary (testing/embedded)
- ``ChoiceLoader``: Try multiple loaders in order (site overrides)

Custom Loaders:
Implement the Loader protocol:
    ```python
    class VaultLoader:
        def get_source(self, name: str) -> tuple[str, str | None]:
            secret = vault.read(f"templates/{name}")
            if secret is None:
                raise TemplateNotFoundError(f"Template '{name}' not found")
            return secret["source"], f"vault://{name}"
    ```

Thread-Safety:
Loaders should be thread-safe for concurrent ``get_source()`` calls.
All built-in loaders are safe (FileSystemLoader reads files atomically,
DictLoader only reads its mapping, ChoiceLoader delegates).

"""

from __future__ import annotations

from difflib import get_close_matches
from pathlib import Path
from typing import Protocol, runtime_checkable

from templar.environment.exceptions import TemplateNotFoundError


@runtime_checkable
class Loader(Protocol):
    def get_source(self, name: str) -> tuple[str, str | None]: ...


class FileSystemLoader:
    """Load templates from filesystem directories.

    Directories are searched in order; the first matching file wins:
        ```python
        loader = FileSystemLoader(["site/overrides/", "site/base/"])
        ```

    Names are relative paths; a name that resolves outside every search
    directory is rejected as not found.

    Example:
            >>> loader = FileSystemLoader("templates/")
            >>> source, filename = loader.get_source("nginx/site.conf")
            >>> filename
            'templates/nginx/site.conf'

    Raises:
        TemplateNotFoundError: If template not found in any search path

    """

    __slots__ = ("_encoding", "_paths")

    def __init__(
        self,
        paths: str | Path | list[str | Path],
        encoding: str = "utf-8",
    ):
        if isinstance(paths, (str, Path)):
            paths = [paths]
        self._paths = [Path(p) for p in paths]
        self._encoding = encoding

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def get_source(self, name: str) -> tuple[str, str]:
        """Load template source from filesystem."""
        for base in self._paths:
            path = base / name
            if not path.resolve().is_relative_to(base.resolve()):
                continue
            if path.is_file():
                return path.read_text(self._encoding), str(path)

        raise TemplateNotFoundError(
            f"Template '{name}' not found in: {', '.join(str(p) for p in self._paths)}"
        )


class DictLoader:
    """Load templates from an in-memory dictionary.

    Returns ``None`` as filename since templates are not file-backed.

    Example:
            >>> loader = DictLoader({"motd": "Welcome to {{ host }}"})
            >>> env = Environment(loader=loader)
            >>> env.get_template("motd").render(host="db1")
            'Welcome to db1'

    Raises:
        TemplateNotFoundError: If template name not in mapping

    """

    __slots__ = ("_mapping",)

    def __init__(self, mapping: dict[str, str]):
        self._mapping = mapping

    def get_source(self, name: str) -> tuple[str, None]:
        if name not in self._mapping:
            available = sorted(self._mapping.keys())
            msg = f"Template '{name}' not found"
            matches = get_close_matches(name, available, n=1, cutoff=0.6)
            if matches:
                msg += f". Did you mean '{matches[0]}'?"
            elif available:
                msg += f". Available: {', '.join(available[:10])}"
                if len(available) > 10:
                    msg += f" ... ({len(available)} total)"
            raise TemplateNotFoundError(msg)
        return self._mapping[name], None

    def list_templates(self) -> list[str]:
        return sorted(self._mapping.keys())


class ChoiceLoader:
    """Try multiple loaders in order, returning the first match.

    Example:
            >>> site = DictLoader({"motd": "Site {{ host }}"})
            >>> base = DictLoader({"motd": "Base {{ host }}", "issue": "Issue"})
            >>> env = Environment(loader=ChoiceLoader([site, base]))
            >>> env.get_template("motd").render(host="a")    # from site
            'Site a'
            >>> env.get_template("issue").render()           # from base
            'Issue'

    Raises:
        TemplateNotFoundError: If no loader can find the template

    Thread-Safety:
        Safe if all child loaders are thread-safe.
    """

    __slots__ = ("_loaders",)

    def __init__(self, loaders: list[Loader]):
        self._loaders = loaders

    def get_source(self, name: str) -> tuple[str, str | None]:
        """Try each loader in order, return first match."""
        for loader in self._loaders:
            try:
                return loader.get_source(name)
            except TemplateNotFoundError:
                continue
        raise TemplateNotFoundError(
            f"Template '{name}' not found in any of {len(self._loaders)} loaders"
        )
