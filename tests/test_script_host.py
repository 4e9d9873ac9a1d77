"""Tests for runtime-neutral values and the Python scripting host."""

from decimal import Decimal

import pytest

from templar import ScriptError, ScriptTypeError, UnboundNameError
from templar.script import (
    NIL,
    PythonScriptHost,
    ScriptHost,
    Value,
    ValueKind,
    classify,
    is_truthy,
    to_text,
)


class TestClassify:
    @pytest.mark.parametrize(
        ("obj", "kind"),
        [
            (None, ValueKind.NIL),
            (True, ValueKind.BOOL),
            (0, ValueKind.NUMBER),
            (2.5, ValueKind.NUMBER),
            (Decimal("1.5"), ValueKind.NUMBER),
            ("", ValueKind.TEXT),
            ([1], ValueKind.SEQUENCE),
            ((), ValueKind.SEQUENCE),
            (range(3), ValueKind.SEQUENCE),
            ({}, ValueKind.MAPPING),
            (b"raw", ValueKind.OBJECT),
            (object(), ValueKind.OBJECT),
        ],
    )
    def test_kinds(self, obj, kind):
        assert classify(obj) is kind

    def test_value_of_is_idempotent(self):
        value = Value.of([1, 2])
        assert Value.of(value) is value


class TestTruthiness:
    @pytest.mark.parametrize("obj", [None, False, "", [], ()])
    def test_falsy(self, obj):
        assert not is_truthy(Value.of(obj))

    @pytest.mark.parametrize("obj", [0, 0.0, {}, "0", [0], True, object()])
    def test_truthy(self, obj):
        assert is_truthy(Value.of(obj))

    def test_lazy_sequence_is_truthy(self):
        assert is_truthy(Value.of(iter([])))

    def test_bool_dunder(self):
        assert not NIL
        assert Value.of("x")


class TestToText:
    @pytest.mark.parametrize(
        ("obj", "text"),
        [
            (None, ""),
            (True, "true"),
            (False, "false"),
            (42, "42"),
            (1.5, "1.5"),
            ("plain", "plain"),
            ([1, "a", None, False], '[1, "a", null, false]'),
            ({"k": [1, 2]}, '{"k": [1, 2]}'),
            ([], "[]"),
            ({}, "{}"),
        ],
    )
    def test_canonical_form(self, obj, text):
        assert to_text(Value.of(obj)) == text

    def test_nested_text_is_quoted(self):
        assert to_text(Value.of(['say "hi"'])) == '["say \\"hi\\""]'

    def test_cycles_render_marker(self):
        xs: list = []
        xs.append(xs)
        m: dict = {"xs": xs}
        xs.append(m)
        assert to_text(Value.of(xs)) == '[[...], {"xs": [...]}]'

    def test_str_dunder(self):
        assert str(Value.of([True])) == "[true]"


@pytest.fixture
def host():
    return PythonScriptHost(globals={"upper": str.upper})


@pytest.fixture
def ctx(host):
    context = host.new_context()
    yield context
    host.release(context)


class TestPythonScriptHost:
    def test_satisfies_protocol(self, host):
        assert isinstance(host, ScriptHost)

    def test_eval_and_bind(self, host, ctx):
        host.bind(ctx, "name", Value.of("web"))
        result = host.eval_expr(ctx, "upper(name)")
        assert result == Value(ValueKind.TEXT, "WEB")

    def test_exec_mutates_context(self, host, ctx):
        host.exec_stmt(ctx, "total = 0\nfor n in range(4):\n    total += n")
        assert host.eval_expr(ctx, "total").raw == 6

    def test_contexts_are_isolated(self, host):
        a = host.new_context()
        b = host.new_context()
        host.exec_stmt(a, "x = 1")
        with pytest.raises(UnboundNameError):
            host.eval_expr(b, "x")

    def test_globals_copied_per_context(self):
        host = PythonScriptHost(globals={"shared": 1})
        a = host.new_context()
        host.exec_stmt(a, "shared = 2")
        assert host.eval_expr(host.new_context(), "shared").raw == 1

    def test_with_globals(self, host):
        extended = host.with_globals({"port": 80})
        assert extended.globals == {"upper": str.upper, "port": 80}
        assert "port" not in host.globals

    def test_release_clears_namespace(self, host):
        context = host.new_context()
        host.exec_stmt(context, "x = 1")
        host.release(context)
        assert context.namespace == {}

    def test_unbound_name(self, host, ctx):
        with pytest.raises(UnboundNameError) as exc_info:
            host.eval_expr(ctx, "hostnme + 1")
        assert exc_info.value.name == "hostnme"
        assert exc_info.value.fragment == "hostnme + 1"

    def test_unsafe_builtins_are_unbound(self, host, ctx):
        with pytest.raises(UnboundNameError) as exc_info:
            host.eval_expr(ctx, "open('/etc/passwd')")
        assert exc_info.value.name == "open"

    def test_custom_builtins(self):
        import builtins

        host = PythonScriptHost(builtins=vars(builtins))
        context = host.new_context()
        assert host.eval_expr(context, "callable(len)").raw is True

    def test_invalid_syntax(self, host, ctx):
        with pytest.raises(ScriptError, match="invalid expression"):
            host.eval_expr(ctx, "1 +")
        with pytest.raises(ScriptError, match="invalid statement"):
            host.exec_stmt(ctx, "x = = 1")

    def test_runtime_exception_wrapped(self, host, ctx):
        with pytest.raises(ScriptError, match="ZeroDivisionError: division by zero") as exc_info:
            host.eval_expr(ctx, "1 / 0")
        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)
        assert not isinstance(exc_info.value, ScriptTypeError)


class TestIterate:
    def test_sequence(self, host, ctx):
        values = list(host.iterate(ctx, "[1, 'a']"))
        assert [v.raw for v in values] == [1, "a"]
        assert [v.kind for v in values] == [ValueKind.NUMBER, ValueKind.TEXT]

    def test_mapping_yields_keys(self, host, ctx):
        assert [v.raw for v in host.iterate(ctx, "{'a': 1, 'b': 2}")] == ["a", "b"]

    def test_iteration_is_lazy(self, host, ctx):
        host.exec_stmt(ctx, "seen = []\ndef gen():\n    for i in range(3):\n        seen.append(i)\n        yield i")
        iterator = host.iterate(ctx, "gen()")
        next(iterator)
        assert host.eval_expr(ctx, "seen").raw == [0]

    @pytest.mark.parametrize("fragment", ["5", "None", "True", "1.5"])
    def test_non_iterable(self, host, ctx, fragment):
        with pytest.raises(ScriptTypeError, match="cannot iterate over"):
            host.iterate(ctx, fragment)

    def test_error_inside_iterator(self, host, ctx):
        host.exec_stmt(ctx, "def gen():\n    yield 1\n    raise ValueError('boom')")
        iterator = host.iterate(ctx, "gen()")
        assert next(iterator).raw == 1
        with pytest.raises(ScriptError, match="ValueError: boom"):
            next(iterator)
