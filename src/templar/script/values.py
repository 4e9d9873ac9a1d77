"""Runtime-neutral values.

The renderer never inspects scripting-runtime objects directly. Every result
crossing the host binding is wrapped in a ``Value`` tagged with a
``ValueKind``; rendering and truthiness are defined on the kind.

Truthiness:
    ``nil``, ``false``, empty text and empty sequences are falsy.
    Everything else is truthy, including the number 0 and empty mappings.

Textual form (``to_text``):
    ======== ================== ==========================
    Kind     Top level          Nested in sequence/mapping
    ======== ================== ==========================
    NIL      ``""``             ``null``
    BOOL     ``true``/``false`` same
    NUMBER   ``str(n)``         same
    TEXT     verbatim           JSON-quoted
    SEQUENCE ``[a, b]``         same
    MAPPING  ``{"k": v}``       same
    OBJECT   ``str(obj)``       JSON-quoted ``str(obj)``
    ======== ================== ==========================

    A sequence or mapping that contains itself renders ``[...]`` or
    ``{...}`` where it recurs, like ``repr``.

"""

from __future__ import annotations

import json
import numbers
from collections.abc import Iterable, Mapping, Sized
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ValueKind(Enum):
    NIL = "nil"
    BOOL = "bool"
    NUMBER = "number"
    TEXT = "text"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    OBJECT = "object"


def classify(obj: Any) -> ValueKind:
    if obj is None:
        return ValueKind.NIL
    if isinstance(obj, bool):
        return ValueKind.BOOL
    if isinstance(obj, numbers.Number):
        return ValueKind.NUMBER
    if isinstance(obj, str):
        return ValueKind.TEXT
    if isinstance(obj, Mapping):
        return ValueKind.MAPPING
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return ValueKind.OBJECT
    if isinstance(obj, Iterable):
        return ValueKind.SEQUENCE
    return ValueKind.OBJECT


@dataclass(frozen=True, slots=True)
class Value:
    """A scripting-runtime result tagged with its kind.

    ``raw`` is the runtime's own object; hosts re-bind it unchanged (for
    example as a loop variable), so no information is lost by wrapping.
    """

    kind: ValueKind
    raw: Any = None

    @classmethod
    def of(cls, obj: Any) -> Value:
        if isinstance(obj, Value):
            return obj
        return cls(classify(obj), obj)

    def __bool__(self) -> bool:
        return is_truthy(self)

    def __str__(self) -> str:
        return to_text(self)


NIL = Value(ValueKind.NIL, None)


def is_truthy(value: Value) -> bool:
    kind = value.kind
    if kind is ValueKind.NIL:
        return False
    if kind is ValueKind.BOOL:
        return bool(value.raw)
    if kind is ValueKind.TEXT:
        return value.raw != ""
    if kind is ValueKind.SEQUENCE:
        # Lazy sequences (iterators) have no length and count as non-empty
        if isinstance(value.raw, Sized):
            return len(value.raw) > 0
        return True
    return True


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _nested(value: Value, seen: frozenset[int]) -> str:
    kind = value.kind
    if kind is ValueKind.NIL:
        return "null"
    if kind is ValueKind.TEXT:
        return _quote(value.raw)
    if kind is ValueKind.OBJECT:
        return _quote(str(value.raw))
    return _text(value, seen)


def _text(value: Value, seen: frozenset[int]) -> str:
    kind = value.kind
    raw = value.raw
    if kind is ValueKind.NIL:
        return ""
    if kind is ValueKind.BOOL:
        return "true" if raw else "false"
    if kind is ValueKind.TEXT:
        return raw
    if kind is ValueKind.SEQUENCE:
        if id(raw) in seen:
            return "[...]"
        seen = seen | {id(raw)}
        return "[" + ", ".join(_nested(Value.of(item), seen) for item in raw) + "]"
    if kind is ValueKind.MAPPING:
        if id(raw) in seen:
            return "{...}"
        seen = seen | {id(raw)}
        items = (
            f"{_nested(Value.of(k), seen)}: {_nested(Value.of(v), seen)}"
            for k, v in raw.items()
        )
        return "{" + ", ".join(items) + "}"
    return str(raw)


def to_text(value: Value) -> str:
    """Canonical textual form of a value (see module docstring)."""
    return _text(value, frozenset())
