"""Templar Renderer — executes a CompiledTemplate.

The renderer is a small virtual machine: an instruction pointer walks the
template's instruction tuple and an explicit frame stack tracks the open
if/loop/capture blocks. Nesting depth costs frame-stack entries, not
Python stack frames.

    ```
    ip ──► ENTER_LOOP i in #0 body 1..3     frames: [Loop(iter)]
           EMIT_EXPR  #1 'i'
           EMIT_LITERAL ','
           END_BLOCK  ──► next element? ip=1 : pop, ip=4
    ```

Loops rebind their target in the same scripting context on every
iteration; state set by fragments inside the body carries over from one
iteration to the next.

Thread-Safety:
    A Renderer holds only its (immutable) host. Each render call creates a
    private RenderContext, frame stack and output buffer, and reads the
    shared CompiledTemplate without mutating it.

"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from difflib import get_close_matches
from typing import Any

from templar.compiler.instructions import (
    EmitExpr,
    EmitLiteral,
    EndBlock,
    EnterCapture,
    EnterIf,
    EnterLoop,
    ExecStmt,
    Jump,
)
from templar.environment.exceptions import (
    RenderError,
    RenderErrorKind,
    ScriptError,
    ScriptTypeError,
    UnboundNameError,
    build_source_snippet,
)
from templar.render_context import RenderContext, render_context
from templar.script.host import ScriptHost
from templar.script.python import PythonScriptHost
from templar.script.values import NIL, Value, ValueKind, is_truthy, to_text
from templar.template.compiled import CompiledTemplate

_DONE = object()


class _IfFrame:
    __slots__ = ()


_IF_FRAME = _IfFrame()


@dataclass(slots=True)
class _LoopFrame:
    instr: EnterLoop
    iterator: Iterator[Value]


@dataclass(slots=True)
class _CaptureFrame:
    instr: EnterCapture
    buffer: list[str]


class Renderer:
    """Execute compiled templates against a scripting host.

    Example:
            >>> from templar import compile_template
            >>> program = compile_template("Hello {{ name }}!")
            >>> Renderer().render(program, {"name": "World"})
            'Hello World!'

    """

    __slots__ = ("_host",)

    def __init__(self, host: ScriptHost | None = None):
        self._host: ScriptHost = host if host is not None else PythonScriptHost()

    @property
    def host(self) -> ScriptHost:
        return self._host

    def render(self, template: CompiledTemplate, data: Mapping[str, Any] | None = None) -> str:
        """Render ``template`` with ``data`` bound as variables.

        Raises:
            RenderError: On any scripting failure, unbound variable or
                type mismatch; the host's ScriptError is chained.
        """
        _check_data(data)
        with render_context(self._host, data, template.name, template.source) as ctx:
            return "".join(self._execute(template, ctx))

    def render_stream(
        self, template: CompiledTemplate, data: Mapping[str, Any] | None = None
    ) -> Iterator[str]:
        """Render lazily, yielding output chunks as they are produced.

        Output inside a capture block is buffered until the block closes.
        """
        _check_data(data)
        with render_context(
            self._host, data, template.name, template.source, publish=False
        ) as ctx:
            yield from self._execute(template, ctx)

    def _execute(self, template: CompiledTemplate, ctx: RenderContext) -> Iterator[str]:
        instructions = template.instructions
        fragments = template.fragments
        host = self._host
        handle = ctx.handle
        frames: list[Any] = []
        captures: list[list[str]] = []
        count = len(instructions)
        ip = 0

        try:
            while ip < count:
                instr = instructions[ip]
                ctx.ip = ip
                ctx.line = instr.lineno
                text: str | None = None

                if isinstance(instr, EmitLiteral):
                    text = instr.text
                    ip += 1

                elif isinstance(instr, EmitExpr):
                    fragment = fragments[instr.fragment_id]
                    text = _convert(to_text, host.eval_expr(handle, fragment), fragment)
                    ip += 1

                elif isinstance(instr, ExecStmt):
                    host.exec_stmt(handle, fragments[instr.fragment_id])
                    ip += 1

                elif isinstance(instr, EnterIf):
                    frames.append(_IF_FRAME)
                    fragment = fragments[instr.fragment_id]
                    if _convert(is_truthy, host.eval_expr(handle, fragment), fragment):
                        ip += 1
                    else:
                        ip = instr.skip_target

                elif isinstance(instr, EnterLoop):
                    iterator = host.iterate(handle, fragments[instr.fragment_id])
                    first = next(iterator, _DONE)
                    if first is _DONE:
                        ip = instr.body_end + 1
                    else:
                        frames.append(_LoopFrame(instr, iterator))
                        self._bind_targets(ctx, template, ip, instr, first)
                        ip = instr.body_start

                elif isinstance(instr, EnterCapture):
                    buffer: list[str] = []
                    frames.append(_CaptureFrame(instr, buffer))
                    captures.append(buffer)
                    ip += 1

                elif isinstance(instr, Jump):
                    ip = instr.target

                elif isinstance(instr, EndBlock):
                    frame = frames[-1]
                    if isinstance(frame, _LoopFrame):
                        element = next(frame.iterator, _DONE)
                        if element is not _DONE:
                            self._bind_targets(ctx, template, ip, frame.instr, element)
                            ip = frame.instr.body_start
                            continue
                        frames.pop()
                    elif isinstance(frame, _CaptureFrame):
                        frames.pop()
                        captures.pop()
                        text = self._close_capture(ctx, template, frame)
                    else:
                        frames.pop()
                    ip += 1

                else:
                    raise TypeError(f"Unknown instruction {instr!r}")

                if text:
                    if captures:
                        captures[-1].append(text)
                    else:
                        yield text
        except UnboundNameError as e:
            raise self._error(
                RenderErrorKind.UNBOUND_VARIABLE,
                f"Unbound variable '{e.name}'",
                ctx,
                template,
                ip,
                e.fragment,
                suggestion=_did_you_mean(e.name, ctx.bound_names),
            ) from e
        except ScriptTypeError as e:
            raise self._error(
                RenderErrorKind.TYPE_MISMATCH, e.message, ctx, template, ip, e.fragment
            ) from e
        except ScriptError as e:
            raise self._error(
                RenderErrorKind.SCRIPT_FAILURE, e.message, ctx, template, ip, e.fragment
            ) from e

    def _close_capture(
        self, ctx: RenderContext, template: CompiledTemplate, frame: _CaptureFrame
    ) -> str | None:
        instr = frame.instr
        ctx.bind(instr.name, Value.of("".join(frame.buffer)))
        if instr.fragment_id is None:
            return None
        fragment = template.fragments[instr.fragment_id]
        value = self._host.eval_expr(ctx.handle, fragment)
        ctx.bind(instr.name, NIL)
        return _convert(to_text, value, fragment)

    def _bind_targets(
        self,
        ctx: RenderContext,
        template: CompiledTemplate,
        ip: int,
        instr: EnterLoop,
        value: Value,
    ) -> None:
        targets = instr.targets
        if len(targets) == 1:
            ctx.bind(targets[0], value)
            return
        fragment = template.fragments[instr.fragment_id]
        if value.kind is not ValueKind.SEQUENCE:
            raise self._error(
                RenderErrorKind.TYPE_MISMATCH,
                f"cannot unpack {value.kind.value} value into {', '.join(targets)}",
                ctx,
                template,
                ip,
                fragment,
            )
        items = _convert(list, value.raw, fragment)
        if len(items) != len(targets):
            raise self._error(
                RenderErrorKind.TYPE_MISMATCH,
                f"expected {len(targets)} values to unpack, got {len(items)}",
                ctx,
                template,
                ip,
                fragment,
            )
        for name, item in zip(targets, items, strict=True):
            ctx.bind(name, Value.of(item))

    @staticmethod
    def _error(
        kind: RenderErrorKind,
        message: str,
        ctx: RenderContext,
        template: CompiledTemplate,
        ip: int,
        fragment: str | None,
        suggestion: str | None = None,
    ) -> RenderError:
        lineno = ctx.line or None
        snippet = None
        if template.source and lineno:
            snippet = build_source_snippet(template.source, lineno)
        return RenderError(
            kind,
            message,
            offset=ip,
            template_name=template.name,
            lineno=lineno,
            fragment=fragment,
            suggestion=suggestion,
            source_snippet=snippet,
        )


def _check_data(data: Mapping[str, Any] | None) -> None:
    if data is not None and not isinstance(data, Mapping):
        raise TypeError(f"render data must be a mapping, got {type(data).__name__}")


def _did_you_mean(name: str, candidates: set[str]) -> str | None:
    matches = get_close_matches(name, sorted(candidates), n=1, cutoff=0.6)
    if matches:
        return f"Did you mean '{matches[0]}'?"
    return None


def _convert(convert: Callable[[Any], Any], obj: Any, fragment: str) -> Any:
    """Apply ``convert`` to a host result; user code it runs fails as ScriptError.

    Lazy values (generators, ``map``) and objects with a custom ``__str__``
    or ``__len__`` run template code only when they are rendered.
    """
    try:
        return convert(obj)
    except Exception as e:
        raise ScriptError(f"{type(e).__name__}: {e}", fragment=fragment) from e
