"""Tests for the statement parser and AST construction."""

import pytest

from templar import ErrorCode, ParseError, ParseErrorKind
from templar.lexer import lex
from templar.nodes import Capture, For, If, Interpolate, Literal, Raw, Template
from templar.parser import Parser, parse, split_statement


def ast(source: str) -> Template:
    return parse(lex(source), name="t", source=source)


def parse_error(source: str) -> ParseError:
    with pytest.raises(ParseError) as exc_info:
        ast(source)
    return exc_info.value


class TestSplitStatement:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (" if x > 1 ", ("if", "x > 1")),
            ("end", ("end", "")),
            ("   ", ("", "")),
            ("for a, b in\n  pairs ", ("for", "a, b in\n  pairs")),
        ],
    )
    def test_split(self, value, expected):
        assert split_statement(value) == expected


class TestOutputNodes:
    def test_literal_and_interpolate(self):
        tree = ast("Hello {{ name }}!")
        assert [type(n) for n in tree.body] == [Literal, Interpolate, Literal]
        assert tree.body[1].source == "name"

    def test_adjacent_literals_merge(self):
        tree = ast("a{# one #}b{# two #}c")
        assert tree.body == (Literal(offset=0, lineno=1, col_offset=0, text="abc"),)

    def test_empty_expression(self):
        err = parse_error("x {{   }} y")
        assert err.kind is ParseErrorKind.EMPTY_EXPRESSION
        assert err.code is ErrorCode.EMPTY_EXPRESSION
        assert err.offset == 2

    def test_do_statement(self):
        (node,) = ast("{% do count += 1 %}").body
        assert node == Raw(offset=0, lineno=1, col_offset=0, source="count += 1")

    def test_do_requires_statement(self):
        assert parse_error("{% do %}").kind is ParseErrorKind.MALFORMED_STATEMENT


class TestIf:
    def test_if_without_else(self):
        (node,) = ast("{% if on %}yes{% end %}").body
        assert isinstance(node, If)
        assert node.test == "on"
        assert node.else_ is None
        assert node.body[0].text == "yes"

    def test_if_else(self):
        (node,) = ast("{% if on %}yes{% else %}no{% end %}").body
        assert node.else_[0].text == "no"

    def test_elif_nests_in_else(self):
        (node,) = ast("{% if a %}A{% elif b %}B{% elif c %}C{% else %}D{% end %}").body
        inner = node.else_[0]
        assert isinstance(inner, If) and inner.test == "b"
        innermost = inner.else_[0]
        assert innermost.test == "c"
        assert innermost.else_[0].text == "D"

    def test_elif_line_is_its_own(self):
        (node,) = ast("{% if a %}\n{% elif b %}x{% end %}").body
        assert node.else_[0].lineno == 2

    def test_if_requires_condition(self):
        assert parse_error("{% if %}x{% end %}").kind is ParseErrorKind.MALFORMED_STATEMENT

    def test_elif_requires_condition(self):
        assert parse_error("{% if a %}{% elif %}{% end %}").kind is ParseErrorKind.MALFORMED_STATEMENT

    def test_else_twice(self):
        err = parse_error("{% if a %}1{% else %}2{% else %}3{% end %}")
        assert err.kind is ParseErrorKind.UNEXPECTED_BRANCH

    def test_else_outside_if(self):
        err = parse_error("x{% else %}y")
        assert err.kind is ParseErrorKind.UNEXPECTED_BRANCH
        assert "outside of an 'if' block" in err.message

    def test_else_inside_for(self):
        err = parse_error("{% for x in y %}{% else %}{% end %}")
        assert err.kind is ParseErrorKind.UNEXPECTED_BRANCH


class TestFor:
    def test_single_target(self):
        (node,) = ast("{% for i in items %}{{ i }},{% end %}").body
        assert isinstance(node, For)
        assert node.targets == ("i",)
        assert node.iter == "items"

    def test_multiple_targets(self):
        (node,) = ast("{% for host, ip in pairs.items() %}{% end %}").body
        assert node.targets == ("host", "ip")
        assert node.iter == "pairs.items()"

    @pytest.mark.parametrize(
        "statement",
        ["for in items", "for i items", "for 1x in items", "for i in", "for"],
    )
    def test_malformed(self, statement):
        err = parse_error("{% " + statement + " %}{% end %}")
        assert err.kind is ParseErrorKind.MALFORMED_STATEMENT


class TestScriptAndCapture:
    def test_script_body_is_dedented_code(self):
        source = "{% script %}\n    a = 1\n    b = a + 1\n{% end %}"
        (node,) = ast(source).body
        assert node == Raw(offset=0, lineno=1, col_offset=0, source="a = 1\nb = a + 1")

    def test_script_rejects_template_content(self):
        err = parse_error("{% script %}x = {{ y }}{% end %}")
        assert err.kind is ParseErrorKind.MALFORMED_STATEMENT
        assert err.suggestion is not None

    def test_script_takes_no_arguments(self):
        assert parse_error("{% script python %}{% end %}").kind is ParseErrorKind.MALFORMED_STATEMENT

    def test_capture(self):
        (node,) = ast("{% capture body %}a{{ b }}{% end %}").body
        assert isinstance(node, Capture)
        assert node.name == "body"
        assert node.transform is None
        assert len(node.body) == 2

    def test_transform(self):
        (node,) = ast("{% transform text with text.upper() %}abc{% end %}").body
        assert node.name == "text"
        assert node.transform == "text.upper()"

    @pytest.mark.parametrize(
        "source",
        [
            "{% capture %}{% end %}",
            "{% capture 1abc %}{% end %}",
            "{% transform x %}{% end %}",
            "{% transform with y %}{% end %}",
        ],
    )
    def test_malformed(self, source):
        assert parse_error(source).kind is ParseErrorKind.MALFORMED_STATEMENT


class TestStructureErrors:
    def test_stray_end(self):
        err = parse_error("a\n{% end %}")
        assert err.kind is ParseErrorKind.UNEXPECTED_END
        assert err.lineno == 2
        assert err.offset == 2

    def test_unclosed_block_points_at_opener(self):
        err = parse_error("x\n{% for i in y %}\n{% if i %}z")
        assert err.kind is ParseErrorKind.UNCLOSED_BLOCK
        assert err.lineno == 3
        assert "Unclosed 'if' block" in err.message

    def test_unknown_statement_suggests(self):
        err = parse_error("{% fro x in y %}{% end %}")
        assert err.kind is ParseErrorKind.UNKNOWN_STATEMENT
        assert err.code is ErrorCode.UNKNOWN_STATEMENT
        assert err.suggestion == "Did you mean 'for'?"

    def test_no_set_keyword(self):
        assert parse_error("{% set x = 1 %}").kind is ParseErrorKind.UNKNOWN_STATEMENT

    def test_empty_statement(self):
        assert parse_error("{%  %}").kind is ParseErrorKind.MALFORMED_STATEMENT

    def test_error_message_has_snippet(self):
        err = parse_error("ok\n{% end %}\nafter")
        text = str(err)
        assert "Parse Error: 'end' without an open block" in text
        assert "t:2:0" in text
        assert "{% end %}" in text


class TestNesting:
    def test_deep_nesting(self):
        source = "{% for a in x %}{% if a %}{% capture c %}{{ a }}{% end %}{% end %}{% end %}"
        (loop,) = ast(source).body
        (cond,) = loop.body
        (cap,) = cond.body
        assert isinstance(cap, Capture)

    def test_parser_accepts_token_list(self):
        tree = Parser(list(lex("a{{ b }}"))).parse()
        assert len(tree.body) == 2
