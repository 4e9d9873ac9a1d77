"""Pytest configuration and fixtures for templar tests."""

import pytest

from templar import DictLoader, Environment, Renderer, SyntaxDescriptor, compile_template
from templar.environment import terminal


@pytest.fixture(autouse=True)
def _no_colors(monkeypatch):
    """Keep diagnostics free of ANSI codes so messages compare as plain text."""
    monkeypatch.setattr(terminal, "_USE_COLORS", False)


@pytest.fixture
def env():
    """Create a basic templar Environment."""
    return Environment()


@pytest.fixture
def env_trim():
    """Create an Environment whose syntax trims and lstrips blocks."""
    return Environment(syntax=SyntaxDescriptor(trim_blocks=True, lstrip_blocks=True))


@pytest.fixture
def env_with_loader():
    """Create an Environment with a DictLoader and config-style templates."""
    loader = DictLoader(
        {
            "hosts": "{% for name, ip in hosts %}{{ ip }} {{ name }}\n{% end %}",
            "motd": "Welcome to {{ host }}",
            "nginx.conf": (
                "server {\n"
                "    listen {{ port }};\n"
                "    server_name {{ server_name }};\n"
                "}\n"
            ),
            "broken": "{% if x %}never closed",
        }
    )
    return Environment(loader=loader)


@pytest.fixture
def renderer():
    return Renderer()


@pytest.fixture
def render(renderer):
    """Compile and render in one call: ``render(source, **data)``."""

    def _render(source: str, syntax: SyntaxDescriptor | None = None, **data) -> str:
        return renderer.render(compile_template(source, syntax=syntax), data)

    return _render
