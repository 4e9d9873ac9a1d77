"""Syntax descriptors: the per-template delimiter table.

A template has no fixed global delimiter syntax. Each one is lexed against a
``SyntaxDescriptor``: a small immutable value naming the open/close token of
each span category plus the whitespace-trim policy. The lexer never branches
on "syntax styles"; it consults the descriptor's table at each decision point.

Descriptors come from three places:

1. ``DEFAULT_SYNTAX`` (``{{ }}``, ``{% %}``, ``{# #}``)
2. A named preset: ``SyntaxDescriptor.preset("angle")``
3. A header line adjacent to the template source::

       #templar: expression="<< >>" statement="<% %>" trim_blocks=true
       listen << port >>;

Validation:
    Construction rejects any descriptor whose open tokens make lexing
    ambiguous (one category's open token equal to, or a prefix of, another's).
    ``InvalidSyntaxError`` is raised before any template is lexed.

"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field, replace
from enum import Enum

from templar.environment.exceptions import InvalidSyntaxError


class SpanKind(Enum):
    """Delimited span categories, in lexing priority order."""

    COMMENT = "comment"
    STATEMENT = "statement"
    EXPRESSION = "expression"


# Tie-break order when two open tokens start at the same offset.
PRIORITY: tuple[SpanKind, ...] = (SpanKind.COMMENT, SpanKind.STATEMENT, SpanKind.EXPRESSION)

HEADER_PREFIX = "#templar:"


@dataclass(frozen=True, slots=True)
class SyntaxDescriptor:
    """Delimiter tokens and whitespace policy for one template.

    Attributes:
        expression: ``(open, close)`` for interpolated expressions
        statement: ``(open, close)`` for control statements
        comment: ``(open, close)`` for comments (discarded by the lexer)
        trim_blocks: Remove the first newline after a statement/comment close
        lstrip_blocks: Remove blank indentation before a statement/comment
            open that starts its line
        trim_marker: Character that, placed right inside a delimiter
            (``{%-`` / ``-%}``), strips all whitespace on that side.
            ``None`` disables markers.

    Example:
            >>> syntax = SyntaxDescriptor(expression=("<<", ">>"))
            >>> syntax.open_token(SpanKind.EXPRESSION)
            '<<'

    """

    expression: tuple[str, str] = ("{{", "}}")
    statement: tuple[str, str] = ("{%", "%}")
    comment: tuple[str, str] = ("{#", "#}")
    trim_blocks: bool = False
    lstrip_blocks: bool = False
    trim_marker: str | None = "-"
    _open_re: re.Pattern[str] = field(init=False, repr=False, compare=False)
    _by_open: dict[str, SpanKind] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        pairs = {kind: self.pair(kind) for kind in PRIORITY}
        for kind, pair in pairs.items():
            if not (isinstance(pair, tuple) and len(pair) == 2):
                raise InvalidSyntaxError(
                    f"{kind.value} delimiters must be an (open, close) pair, got {pair!r}"
                )
            open_, close = pair
            if not open_ or not close:
                raise InvalidSyntaxError(f"{kind.value} delimiters must be non-empty")
            if open_ != open_.strip() or close != close.strip():
                raise InvalidSyntaxError(
                    f"{kind.value} delimiters must not contain surrounding whitespace"
                )

        kinds = list(PRIORITY)
        for i, a in enumerate(kinds):
            for b in kinds[i + 1 :]:
                oa, ob = pairs[a][0], pairs[b][0]
                if oa.startswith(ob) or ob.startswith(oa):
                    raise InvalidSyntaxError(
                        f"Ambiguous delimiters: {a.value} open {oa!r} and "
                        f"{b.value} open {ob!r} share a prefix"
                    )

        if self.trim_marker is not None:
            if len(self.trim_marker) != 1 or self.trim_marker.isspace():
                raise InvalidSyntaxError(
                    f"trim_marker must be a single non-space character, got {self.trim_marker!r}"
                )

        # Alternation in priority order: at equal offsets the regex engine
        # takes the first alternative, which is the higher-priority category.
        pattern = "|".join(re.escape(pairs[kind][0]) for kind in PRIORITY)
        object.__setattr__(self, "_open_re", re.compile(pattern))
        object.__setattr__(self, "_by_open", {pairs[kind][0]: kind for kind in PRIORITY})

    def pair(self, kind: SpanKind) -> tuple[str, str]:
        return getattr(self, kind.value)

    def open_token(self, kind: SpanKind) -> str:
        return self.pair(kind)[0]

    def close_token(self, kind: SpanKind) -> str:
        return self.pair(kind)[1]

    def find_open(self, source: str, pos: int) -> tuple[int, SpanKind] | None:
        """Locate the earliest open token at or after ``pos``."""
        match = self._open_re.search(source, pos)
        if match is None:
            return None
        return match.start(), self._by_open[match.group()]

    def replace(self, **changes: object) -> SyntaxDescriptor:
        """Return a validated copy with ``changes`` applied."""
        return replace(self, **changes)

    @classmethod
    def preset(cls, name: str) -> SyntaxDescriptor:
        """Look up a named preset (``default``, ``angle``, ``dollar``)."""
        try:
            return PRESETS[name]
        except KeyError:
            available = ", ".join(sorted(PRESETS))
            raise InvalidSyntaxError(
                f"Unknown syntax preset {name!r}. Available: {available}"
            ) from None

    def to_dict(self) -> dict[str, object]:
        return {
            "expression": list(self.expression),
            "statement": list(self.statement),
            "comment": list(self.comment),
            "trim_blocks": self.trim_blocks,
            "lstrip_blocks": self.lstrip_blocks,
            "trim_marker": self.trim_marker,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> SyntaxDescriptor:
        kwargs: dict[str, object] = dict(data)
        for key in ("expression", "statement", "comment"):
            if key in kwargs:
                kwargs[key] = tuple(kwargs[key])  # type: ignore[arg-type]
        return cls(**kwargs)  # type: ignore[arg-type]


DEFAULT_SYNTAX = SyntaxDescriptor()

PRESETS: dict[str, SyntaxDescriptor] = {
    "default": DEFAULT_SYNTAX,
    "angle": SyntaxDescriptor(
        expression=("<<", ">>"),
        statement=("<%", "%>"),
        comment=("<#", "#>"),
    ),
    "dollar": SyntaxDescriptor(
        expression=("${", "}"),
        statement=("$%", "%$"),
        comment=("$#", "#$"),
    ),
}

_BOOL_WORDS = {"true": True, "yes": True, "on": True, "1": True,
               "false": False, "no": False, "off": False, "0": False}


def _parse_bool(key: str, value: str) -> bool:
    try:
        return _BOOL_WORDS[value.lower()]
    except KeyError:
        raise InvalidSyntaxError(f"{key} expects a boolean, got {value!r}") from None


def _parse_pair(key: str, value: str) -> tuple[str, str]:
    parts = value.split()
    if len(parts) != 2:
        raise InvalidSyntaxError(
            f"{key} expects 'OPEN CLOSE' separated by whitespace, got {value!r}"
        )
    return parts[0], parts[1]


def parse_syntax_header(line: str, base: SyntaxDescriptor = DEFAULT_SYNTAX) -> SyntaxDescriptor:
    """Build a descriptor from a ``#templar:`` header line.

    Values are shell-quoted so delimiter pairs can contain a space:
    ``#templar: preset=angle statement="<% %>" lstrip_blocks=yes``.
    A ``preset`` key, if present, is applied first.
    """
    body = line[len(HEADER_PREFIX):] if line.startswith(HEADER_PREFIX) else line
    try:
        words = shlex.split(body)
    except ValueError as e:
        raise InvalidSyntaxError(f"Malformed syntax header: {e}") from e

    items: list[tuple[str, str]] = []
    for word in words:
        key, sep, value = word.partition("=")
        if not sep:
            raise InvalidSyntaxError(f"Syntax header entry {word!r} is not key=value")
        items.append((key.strip(), value))

    descriptor = base
    changes: dict[str, object] = {}
    for key, value in items:
        if key == "preset":
            descriptor = SyntaxDescriptor.preset(value)
        elif key in ("expression", "statement", "comment"):
            changes[key] = _parse_pair(key, value)
        elif key in ("trim_blocks", "lstrip_blocks"):
            changes[key] = _parse_bool(key, value)
        elif key == "trim_marker":
            changes[key] = None if value.lower() in ("", "none") else value
        else:
            raise InvalidSyntaxError(f"Unknown syntax header key {key!r}")
    return descriptor.replace(**changes) if changes else descriptor


def split_syntax_header(
    source: str, base: SyntaxDescriptor = DEFAULT_SYNTAX
) -> tuple[SyntaxDescriptor | None, str]:
    """Split an optional ``#templar:`` first line off ``source``.

    Returns:
        ``(descriptor, body)``; descriptor is None when there is no header
        and ``body`` is then ``source`` unchanged.
    """
    if not source.startswith(HEADER_PREFIX):
        return None, source
    line, newline, rest = source.partition("\n")
    return parse_syntax_header(line.rstrip("\r"), base), rest if newline else ""
