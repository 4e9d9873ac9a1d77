"""Tests for the renderer: output, control flow, captures, errors, streaming."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from templar import (
    PRESETS,
    ErrorCode,
    PythonScriptHost,
    RenderError,
    RenderErrorKind,
    Renderer,
    ScriptError,
    SyntaxDescriptor,
    UnboundNameError,
    compile_template,
    get_render_context,
    get_render_context_required,
)


class _FailingPair:
    def __iter__(self):
        raise RuntimeError("bad pair")


class TestOutput:
    def test_hello(self, render):
        assert render("Hello {{ name }}!", name="World") == "Hello World!"

    def test_literal_only(self, render):
        assert render("no constructs here\n") == "no constructs here\n"

    def test_empty_template(self, render):
        assert render("") == ""

    def test_values_use_textual_form(self, render):
        assert render("[{{ none }}|{{ flag }}|{{ n }}]", none=None, flag=False, n=3) == "[|false|3]"

    def test_collections(self, render):
        assert render("{{ xs }} {{ m }}", xs=[1, "a"], m={"k": None}) == '[1, "a"] {"k": null}'

    def test_self_referential_list(self, render):
        assert render("{% do a = [1] %}{% do a.append(a) %}{{ a }}") == "[1, [...]]"

    def test_self_referential_mapping(self, render):
        assert render("{% do m = {} %}{% do m['self'] = m %}{{ m }}") == '{"self": {...}}'

    def test_repeated_object_is_not_a_cycle(self, render):
        assert render("{{ [x, x] }}", x=[1]) == "[[1], [1]]"

    def test_expressions_are_python(self, render):
        assert render("{{ ', '.join(sorted(names)) }}", names=["b", "a"]) == "a, b"

    def test_comments_produce_nothing(self, render):
        assert render("a{# hidden {{ x }} #}b") == "ab"

    def test_custom_syntax(self, render):
        source = "${ a }-$% if b %$yes$% end %$"
        assert render(source, syntax=PRESETS["dollar"], a=1, b=True) == "1-yes"

    def test_syntax_header(self, render):
        assert render("#templar: preset=angle\nport << port >>", port=80) == "port 80"

    def test_trimmed_block_lines_vanish(self, render):
        syntax = SyntaxDescriptor(trim_blocks=True, lstrip_blocks=True)
        source = "start\n  {% if x %}\n  body\n  {% end %}\nstop\n"
        assert render(source, syntax=syntax, x=True) == "start\n  body\nstop\n"

    def test_trim_markers(self, render):
        assert render("a \n{{- x -}}\n b", x=1) == "a1b"


class TestConditionals:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(1, "A"), (2, "B"), (3, "C")],
    )
    def test_if_elif_else(self, render, value, expected):
        source = "{% if v == 1 %}A{% elif v == 2 %}B{% else %}C{% end %}"
        assert render(source, v=value) == expected

    @pytest.mark.parametrize("truthy", ["0", "{}", "'0'", "[0]", "0.0"])
    def test_truthy_values(self, render, truthy):
        assert render("{% if " + truthy + " %}yes{% end %}") == "yes"

    @pytest.mark.parametrize("falsy", ["None", "False", "''", "[]", "()"])
    def test_falsy_values(self, render, falsy):
        assert render("{% if " + falsy + " %}yes{% else %}no{% end %}") == "no"

    def test_nested(self, render):
        source = "{% if a %}{% if b %}ab{% else %}a{% end %}{% end %}."
        assert render(source, a=True, b=False) == "a."
        assert render(source, a=False, b=True) == "."

    def test_deep_nesting(self, render):
        depth = 100
        source = "{% if True %}" * depth + "x" + "{% end %}" * depth
        assert render(source) == "x"


class TestLoops:
    def test_basic_loop(self, render):
        assert render("{% for i in items %}{{ i }},{% end %}", items=[1, 2, 3]) == "1,2,3,"

    def test_empty_loop(self, render):
        assert render("[{% for i in items %}x{% end %}]", items=[]) == "[]"

    def test_mapping_iterates_keys(self, render):
        assert render("{% for k in d %}{{ k }};{% end %}", d={"a": 1, "b": 2}) == "a;b;"

    def test_generator(self, render):
        assert render("{% for i in range(3) %}{{ i }}{% end %}") == "012"

    def test_multiple_targets(self, render):
        source = "{% for name, ip in hosts %}{{ ip }} {{ name }}\n{% end %}"
        hosts = [("web", "10.0.0.1"), ("db", "10.0.0.2")]
        assert render(source, hosts=hosts) == "10.0.0.1 web\n10.0.0.2 db\n"

    def test_dict_items(self, render):
        source = "{% for k, v in d.items() %}{{ k }}={{ v }} {% end %}"
        assert render(source, d={"a": 1, "b": 2}) == "a=1 b=2 "

    def test_state_persists_across_iterations(self, render):
        source = (
            "{% do total = 0 %}"
            "{% for p in ports %}{% do total += p %}{% end %}"
            "sum={{ total }}"
        )
        assert render(source, ports=[80, 443]) == "sum=523"

    def test_nested_loops(self, render):
        source = "{% for a in xs %}{% for b in ys %}{{ a }}{{ b }} {% end %}{% end %}"
        assert render(source, xs=[1, 2], ys=["x", "y"]) == "1x 1y 2x 2y "

    def test_loop_with_condition(self, render):
        source = "{% for i in range(5) %}{% if i % 2 %}{{ i }}{% end %}{% end %}"
        assert render(source) == "13"


class TestStatements:
    def test_do(self, render):
        assert render("{% do x = 2 %}{{ x * 3 }}") == "6"

    def test_script_block(self, render):
        source = (
            "{% script %}\n"
            "    def greet(name):\n"
            "        return 'hi ' + name\n"
            "{% end %}"
            "{{ greet(user) }}"
        )
        assert render(source, user="bob") == "hi bob"

    def test_script_block_defines_class(self, render):
        source = (
            "{% script %}\n"
            "    class Upstream:\n"
            "        def __init__(self, host, port):\n"
            "            self.host = host\n"
            "            self.port = port\n"
            "\n"
            "        def __str__(self):\n"
            "            return f'{self.host}:{self.port}'\n"
            "{% end %}"
            "server {{ Upstream('db', 5432) }};"
        )
        assert render(source) == "server db:5432;"

    def test_capture(self, render):
        assert render("{% capture c %}a{{ 1 + 1 }}{% end %}[{{ c }}]") == "[a2]"

    def test_capture_emits_nothing_in_place(self, render):
        assert render("x{% capture c %}hidden{% end %}y") == "xy"

    def test_nested_capture(self, render):
        source = "{% capture outer %}<{% capture inner %}i{% end %}{{ inner * 2 }}>{% end %}{{ outer }}"
        assert render(source) == "<ii>"

    def test_transform_emits_and_rebinds_to_nil(self, render):
        source = "{% transform t with t.upper() %}abc{% end %}|{{ t }}|"
        assert render(source) == "ABC||"

    def test_transform_replaces_data_binding(self, render):
        source = "{% transform body with body.strip() %}  x  {% end %}[{{ body }}]"
        assert render(source, body="kept?") == "x[]"


class TestErrors:
    def test_unbound_variable_suggests(self, render):
        with pytest.raises(RenderError) as exc_info:
            render("server_name {{ hostnme }};", hostname="web")
        err = exc_info.value
        assert err.kind is RenderErrorKind.UNBOUND_VARIABLE
        assert err.code is ErrorCode.UNBOUND_VARIABLE
        assert err.suggestion == "Did you mean 'hostname'?"
        assert err.fragment == "hostnme"
        assert isinstance(err.__cause__, UnboundNameError)

    def test_error_location(self, render):
        source = "a\n{% if x %}\n{{ missing }}{% end %}"
        with pytest.raises(RenderError) as exc_info:
            render(source, x=True)
        err = exc_info.value
        assert err.offset == 3
        assert err.lineno == 3
        text = str(err)
        assert "Location: <template>:3 (instruction 3)" in text
        assert ">  3 | {{ missing }}{% end %}" in text

    def test_template_name_in_message(self, renderer):
        program = compile_template("{{ nope }}", name="motd")
        with pytest.raises(RenderError, match="motd:1"):
            renderer.render(program, {})

    def test_type_mismatch(self, render):
        with pytest.raises(RenderError) as exc_info:
            render("{% for i in n %}{% end %}", n=5)
        assert exc_info.value.kind is RenderErrorKind.TYPE_MISMATCH
        assert "cannot iterate over number" in exc_info.value.message

    def test_unpack_wrong_length(self, render):
        with pytest.raises(RenderError, match="expected 2 values to unpack, got 3") as exc_info:
            render("{% for a, b in xs %}{% end %}", xs=[(1, 2, 3)])
        assert exc_info.value.kind is RenderErrorKind.TYPE_MISMATCH

    def test_unpack_scalar(self, render):
        with pytest.raises(RenderError, match="cannot unpack number value into a, b"):
            render("{% for a, b in xs %}{% end %}", xs=[1])

    def test_script_failure(self, render):
        with pytest.raises(RenderError) as exc_info:
            render("{{ 1 / 0 }}")
        err = exc_info.value
        assert err.kind is RenderErrorKind.SCRIPT_FAILURE
        assert err.message == "ZeroDivisionError: division by zero"

    def test_lazy_value_failure_is_script_failure(self, render):
        with pytest.raises(RenderError) as exc_info:
            render("{{ (1 // 0 for i in [1]) }}")
        err = exc_info.value
        assert err.kind is RenderErrorKind.SCRIPT_FAILURE
        assert err.message == "ZeroDivisionError: integer division or modulo by zero"
        assert err.fragment == "(1 // 0 for i in [1])"
        assert isinstance(err.__cause__, ScriptError)
        assert isinstance(err.__cause__.__cause__, ZeroDivisionError)

    def test_failing_str_is_script_failure(self, render):
        class Broken:
            def __str__(self):
                raise ValueError("no text form")

        with pytest.raises(RenderError, match="ValueError: no text form") as exc_info:
            render("{{ obj }}", obj=Broken())
        assert exc_info.value.kind is RenderErrorKind.SCRIPT_FAILURE

    def test_failing_len_in_condition(self, render):
        class Unsized(list):
            def __len__(self):
                raise RuntimeError("length unknown")

        with pytest.raises(RenderError, match="RuntimeError: length unknown") as exc_info:
            render("{% if xs %}y{% end %}", xs=Unsized())
        assert exc_info.value.kind is RenderErrorKind.SCRIPT_FAILURE

    def test_transform_result_failure(self, render):
        with pytest.raises(RenderError, match="invalid literal for int") as exc_info:
            render("{% transform t with (int(c) for c in t) %}ab{% end %}")
        assert exc_info.value.kind is RenderErrorKind.SCRIPT_FAILURE

    def test_unpack_failure_inside_element(self, render):
        with pytest.raises(RenderError, match="RuntimeError: bad pair") as exc_info:
            render("{% for a, b in xs %}{% end %}", xs=[_FailingPair()])
        assert exc_info.value.kind is RenderErrorKind.SCRIPT_FAILURE

    def test_class_without_builtin_support_is_script_failure(self):
        program = compile_template("{% do class C: pass %}")
        renderer = Renderer(PythonScriptHost(builtins={}))
        with pytest.raises(RenderError) as exc_info:
            renderer.render(program, {})
        err = exc_info.value
        assert err.kind is RenderErrorKind.SCRIPT_FAILURE
        assert "__build_class__" in err.message
        assert "Unbound variable" not in err.message

    def test_invalid_fragment_syntax(self, render):
        with pytest.raises(RenderError, match="invalid expression"):
            render("{{ 1 + }}")

    def test_error_inside_loop_body_reports_body_instruction(self, render):
        with pytest.raises(RenderError) as exc_info:
            render("{% for i in xs %}{{ 10 // i }}{% end %}", xs=[1, 0])
        assert exc_info.value.offset == 1

    def test_format_compact(self, render):
        with pytest.raises(RenderError) as exc_info:
            render("{{ hostnme }}", hostname="x")
        compact = exc_info.value.format_compact()
        assert compact.startswith("T-RUN-002: Unbound variable 'hostnme'")
        assert "Hint: Did you mean 'hostname'?" in compact

    def test_data_must_be_mapping(self, renderer):
        with pytest.raises(TypeError, match="must be a mapping"):
            renderer.render(compile_template("x"), ["not", "a", "mapping"])


class TestIsolation:
    def test_data_does_not_leak_between_renders(self, renderer):
        program = compile_template("{% do seen = True %}{{ x }}")
        assert renderer.render(program, {"x": 1}) == "1"
        with pytest.raises(RenderError):
            renderer.render(program, {})

    def test_template_is_reusable(self, renderer):
        program = compile_template("{% for i in xs %}{{ i }}{% end %}")
        assert renderer.render(program, {"xs": [1]}) == "1"
        assert renderer.render(program, {"xs": [2, 3]}) == "23"

    def test_concurrent_renders(self, renderer):
        program = compile_template("{% for i in range(n) %}{{ tag }}{% end %}")

        def work(n):
            return renderer.render(program, {"n": n, "tag": str(n)})

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(work, range(50)))
        assert results == [str(n) * n for n in range(50)]

    def test_contexts_released_even_on_error(self):
        released = []

        class RecordingHost(PythonScriptHost):
            def release(self, context):
                released.append(context)
                super().release(context)

        renderer = Renderer(RecordingHost())
        renderer.render(compile_template("ok"), {})
        with pytest.raises(RenderError):
            renderer.render(compile_template("{{ boom }}"), {})
        assert len(released) == 2

    def test_default_host(self):
        assert isinstance(Renderer().host, PythonScriptHost)


class TestStreaming:
    def test_chunks(self, renderer):
        program = compile_template("a{{ b }}c")
        assert list(renderer.render_stream(program, {"b": 1})) == ["a", "1", "c"]

    def test_capture_is_buffered(self, renderer):
        program = compile_template("x{% capture c %}y{% end %}{{ c }}")
        assert list(renderer.render_stream(program, {})) == ["x", "y"]

    def test_stream_matches_render(self, renderer):
        program = compile_template("{% for i in range(3) %}{% if i %}-{% end %}{{ i }}{% end %}")
        assert "".join(renderer.render_stream(program, {})) == renderer.render(program, {})

    def test_stream_error_raised_lazily(self, renderer):
        stream = renderer.render_stream(compile_template("ok{{ missing }}"), {})
        assert next(stream) == "ok"
        with pytest.raises(RenderError):
            next(stream)


class TestRenderContext:
    def test_fragment_can_read_context(self):
        host = PythonScriptHost(
            globals={"where": lambda: get_render_context_required().template_name}
        )
        program = compile_template("{{ where() }}", name="a.conf")
        assert Renderer(host).render(program, {}) == "a.conf"

    def test_context_tracks_line(self):
        host = PythonScriptHost(globals={"line": lambda: get_render_context_required().line})
        assert Renderer(host).render(compile_template("a\n{{ line() }}"), {}) == "a\n2"

    def test_context_reset_after_render(self, renderer):
        renderer.render(compile_template("x"), {})
        assert get_render_context() is None

    def test_stream_does_not_publish_context(self):
        host = PythonScriptHost(globals={"ctx": get_render_context})
        program = compile_template("[{{ ctx() }}]")
        assert "".join(Renderer(host).render_stream(program, {})) == "[]"

    def test_required_outside_render(self):
        with pytest.raises(RuntimeError, match="Not in a render context"):
            get_render_context_required()

    def test_bound_names_feed_suggestions(self, render):
        with pytest.raises(RenderError) as exc_info:
            render("{% for server in xs %}{% end %}{{ servr }}", xs=[1])
        assert exc_info.value.suggestion == "Did you mean 'server'?"
