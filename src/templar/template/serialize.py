"""Persistence for compiled templates.

A CompiledTemplate is plain data: instructions, fragment sources, a name
and the syntax it was lexed with. ``dumps``/``loads`` turn it into JSON and
back without loss, so a compiled program can be cached on disk and shared
between processes.

Entry format (version 1):
    ```json
    {
      "format": 1,
      "name": "nginx.conf",
      "fragments": ["name", "items"],
      "instructions": [
        {"op": "EMIT_LITERAL", "lineno": 1, "text": "Hello "},
        {"op": "EMIT_EXPR", "lineno": 1, "fragment_id": 0}
      ],
      "syntax": {"expression": ["{{", "}}"], ...},
      "source": "Hello {{ name }}"
    }
    ```

``loads`` validates everything it restores (opcodes, operand types,
fragment ids, jump targets, block nesting) and raises ``CompileError`` with
``ErrorCode.INVALID_CACHE_ENTRY`` instead of producing a program the
renderer could trip over.

"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from dataclasses import fields
from pathlib import Path
from typing import Any

from templar.compiler.instructions import (
    OPCODES,
    EmitLiteral,
    EndBlock,
    EnterCapture,
    EnterIf,
    EnterLoop,
    Instruction,
    Jump,
)
from templar.environment.exceptions import CompileError, ErrorCode, InvalidSyntaxError
from templar.syntax import SyntaxDescriptor
from templar.template.compiled import CompiledTemplate

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def _instruction_to_dict(instr: Instruction) -> dict[str, Any]:
    entry: dict[str, Any] = {"op": instr.op}
    for f in fields(instr):
        value = getattr(instr, f.name)
        entry[f.name] = list(value) if isinstance(value, tuple) else value
    return entry


def to_dict(template: CompiledTemplate) -> dict[str, Any]:
    """Plain-data form of ``template`` (JSON-compatible)."""
    return {
        "format": FORMAT_VERSION,
        "name": template.name,
        "fragments": list(template.fragments),
        "instructions": [_instruction_to_dict(i) for i in template.instructions],
        "syntax": template.syntax.to_dict() if template.syntax is not None else None,
        "source": template.source,
    }


def dumps(template: CompiledTemplate) -> str:
    """Serialize a compiled template to a JSON string."""
    return json.dumps(to_dict(template), ensure_ascii=False, sort_keys=True)


def _invalid(message: str, name: str | None = None) -> CompileError:
    return CompileError(
        f"Invalid compiled template entry: {message}",
        name=name,
        code=ErrorCode.INVALID_CACHE_ENTRY,
    )


def _instruction_from_dict(entry: Any, name: str | None) -> Instruction:
    if not isinstance(entry, dict):
        raise _invalid(f"instruction must be an object, got {type(entry).__name__}", name)
    op = entry.get("op")
    cls = OPCODES.get(op)  # type: ignore[arg-type]
    if cls is None:
        raise _invalid(f"unknown opcode {op!r}", name)

    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in entry:
            continue
        value = entry[f.name]
        if f.name == "targets":
            if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
                raise _invalid(f"{op} targets must be a list of names", name)
            value = tuple(value)
        kwargs[f.name] = value

    unknown = set(entry) - {"op"} - {f.name for f in fields(cls)}
    if unknown:
        raise _invalid(f"{op} has unknown operands {sorted(unknown)}", name)
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise _invalid(f"{op}: {e}", name) from e


def _check_program(
    instructions: tuple[Instruction, ...], fragments: tuple[str, ...], name: str | None
) -> None:
    count = len(instructions)
    for index, instr in enumerate(instructions):
        if not isinstance(instr.lineno, int):
            raise _invalid(f"instruction {index} has a non-integer line", name)
        fragment_id = getattr(instr, "fragment_id", None)
        if fragment_id is not None and not (
            isinstance(fragment_id, int) and 0 <= fragment_id < len(fragments)
        ):
            raise _invalid(f"instruction {index} references missing fragment {fragment_id!r}", name)

        targets: list[int] = []
        if isinstance(instr, EnterIf):
            targets.append(instr.skip_target)
        elif isinstance(instr, EnterLoop):
            targets.extend((instr.body_start, instr.body_end))
        elif isinstance(instr, Jump):
            targets.append(instr.target)
        elif isinstance(instr, EnterCapture) and not isinstance(instr.name, str):
            raise _invalid(f"instruction {index} captures into a non-name", name)
        elif isinstance(instr, EmitLiteral) and not isinstance(instr.text, str):
            raise _invalid(f"instruction {index} emits non-text", name)
        for target in targets:
            # count itself is a valid target: "continue past the end"
            if not isinstance(target, int) or not 0 <= target <= count:
                raise _invalid(f"instruction {index} jumps out of range ({target!r})", name)
    _check_blocks(instructions, name)


def _check_blocks(instructions: tuple[Instruction, ...], name: str | None) -> None:
    """Openers and END_BLOCKs must pair up the way the compiler lays them out."""
    ends: dict[int, int] = {}
    jump_owner: dict[int, int] = {}
    stack: list[int] = []
    for index, instr in enumerate(instructions):
        if isinstance(instr, (EnterIf, EnterLoop, EnterCapture)):
            stack.append(index)
        elif isinstance(instr, Jump):
            if not stack or not isinstance(instructions[stack[-1]], EnterIf):
                raise _invalid(f"instruction {index} jumps outside an if block", name)
            jump_owner[index] = stack[-1]
        elif isinstance(instr, EndBlock):
            if not stack:
                raise _invalid(f"instruction {index} closes no open block", name)
            ends[stack.pop()] = index
    if stack:
        raise _invalid(f"instruction {stack[-1]} opens a block that is never closed", name)

    for index, instr in enumerate(instructions):
        if isinstance(instr, EnterLoop):
            if instr.body_start != index + 1 or instr.body_end != ends[index]:
                raise _invalid(f"instruction {index} has a loop body outside its block", name)
        elif isinstance(instr, EnterIf):
            # skip lands on the END_BLOCK or just past this block's own else jump
            target = instr.skip_target
            if target != ends[index] and jump_owner.get(target - 1) != index:
                raise _invalid(f"instruction {index} has a bad skip target ({target})", name)
        elif isinstance(instr, Jump):
            if instr.target != ends[jump_owner[index]]:
                raise _invalid(f"instruction {index} has a bad jump target ({instr.target})", name)


def from_dict(data: Any) -> CompiledTemplate:
    """Restore a CompiledTemplate from ``to_dict`` output.

    Raises:
        CompileError: (INVALID_CACHE_ENTRY) on any malformed or
            incompatible entry.
    """
    if not isinstance(data, dict):
        raise _invalid("entry must be an object")
    name = data.get("name")
    if name is not None and not isinstance(name, str):
        raise _invalid("name must be a string or null")
    if data.get("format") != FORMAT_VERSION:
        raise _invalid(
            f"unsupported format {data.get('format')!r} (expected {FORMAT_VERSION})", name
        )

    raw_fragments = data.get("fragments")
    if not isinstance(raw_fragments, list) or not all(isinstance(f, str) for f in raw_fragments):
        raise _invalid("fragments must be a list of strings", name)
    raw_instructions = data.get("instructions")
    if not isinstance(raw_instructions, list):
        raise _invalid("instructions must be a list", name)

    fragments = tuple(raw_fragments)
    instructions = tuple(_instruction_from_dict(entry, name) for entry in raw_instructions)
    _check_program(instructions, fragments, name)

    syntax = None
    raw_syntax = data.get("syntax")
    if raw_syntax is not None:
        if not isinstance(raw_syntax, dict):
            raise _invalid("syntax must be an object or null", name)
        try:
            syntax = SyntaxDescriptor.from_dict(raw_syntax)
        except (InvalidSyntaxError, TypeError) as e:
            raise _invalid(f"bad syntax descriptor: {e}", name) from e

    source = data.get("source")
    if source is not None and not isinstance(source, str):
        raise _invalid("source must be a string or null", name)

    return CompiledTemplate(
        instructions=instructions,
        fragments=fragments,
        name=name,
        source=source,
        syntax=syntax,
    )


def loads(text: str | bytes) -> CompiledTemplate:
    """Deserialize a compiled template from ``dumps`` output."""
    try:
        data = json.loads(text)
    except (ValueError, UnicodeDecodeError) as e:
        raise _invalid(f"not valid JSON ({e})") from e
    return from_dict(data)


def cache_key(source: str, syntax: SyntaxDescriptor, name: str | None = None) -> str:
    """Stable sha256 key for (name, source, syntax)."""
    payload = json.dumps(
        {"format": FORMAT_VERSION, "name": name, "source": source, "syntax": syntax.to_dict()},
        ensure_ascii=False,
        sort_keys=True,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class FileTemplateCache:
    """On-disk store of compiled templates.

    Entries are JSON files bucketed by key prefix
    (``<dir>/ab/cd/abcd....json``) and written atomically through a
    temporary file, so concurrent writers never expose a partial entry.

    A corrupt or incompatible entry is reported with a warning and
    treated as a miss; the caller recompiles and overwrites it.

    Example:
            >>> cache = FileTemplateCache(".templar-cache")
            >>> env = Environment(loader=loader, template_cache=cache)

    """

    __slots__ = ("_directory",)

    def __init__(self, directory: str | Path):
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        return self._directory / key[:2] / key[2:4] / f"{key}.json"

    def get(self, key: str) -> CompiledTemplate | None:
        path = self._path(key)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("ignoring unreadable cache entry %s: %s", path, e)
            return None
        try:
            return loads(raw)
        except CompileError as e:
            logger.warning("ignoring invalid cache entry %s: %s", path, e.message)
            return None

    def set(self, key: str, template: CompiledTemplate) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(dumps(template))
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def clear(self) -> int:
        """Remove every entry; returns the number removed."""
        removed = 0
        if not self._directory.is_dir():
            return removed
        for path in self._directory.rglob("*.json"):
            path.unlink(missing_ok=True)
            removed += 1
        return removed

    def __len__(self) -> int:
        if not self._directory.is_dir():
            return 0
        return sum(1 for _ in self._directory.rglob("*.json"))
