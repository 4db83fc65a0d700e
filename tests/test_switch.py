"""Tests for switch/case/default directives."""

from __future__ import annotations

import ast
import logging

import pytest

from xtpl.compiler import Compiler
from xtpl.compiler.statements.pattern_matching import case_pattern

_GENDER = (
    '<tpl switch="gender">'
    '<tpl case="boy">B'
    '<tpl case="girl">G'
    "<tpl default>?"
    "</tpl>"
)


def match_of(source: str) -> ast.Match:
    module = Compiler().generate(source)
    render = module.body[-1]
    assert isinstance(render, ast.FunctionDef)
    return next(node for node in ast.walk(render) if isinstance(node, ast.Match))


class TestSwitchRendering:
    @pytest.mark.parametrize(
        ("gender", "expected"), [("boy", "B"), ("girl", "G"), ("other", "?"), (None, "?")]
    )
    def test_arms(self, render, gender, expected):
        assert render(_GENDER, {"gender": gender}) == expected

    def test_no_fall_through(self, render):
        tpl = '<tpl switch="k"><tpl case="a">A<tpl case="b">B<tpl case="c">C</tpl>'
        assert render(tpl, {"k": "a"}) == "A"
        assert render(tpl, {"k": "b"}) == "B"

    def test_multiple_labels(self, render):
        tpl = '<tpl switch="name"><tpl case="Aubrey" case="Nikol">twin<tpl default>other</tpl>'
        assert render(tpl, {"name": "Nikol"}) == "twin"
        assert render(tpl, {"name": "Aubrey"}) == "twin"
        assert render(tpl, {"name": "Don"}) == "other"

    def test_numeric_labels_match_integers(self, render):
        tpl = '<tpl switch="n"><tpl case="1">one<tpl case="2">two<tpl default>other</tpl>'
        assert render(tpl, {"n": 1}) == "one"
        assert render(tpl, {"n": 2}) == "two"
        assert render(tpl, {"n": "1"}) == "other"

    def test_no_match_without_default(self, render):
        tpl = 'a<tpl switch="k"><tpl case="x">X</tpl>b'
        assert render(tpl, {"k": "y"}) == "ab"

    def test_default_first_still_last(self, render):
        tpl = '<tpl switch="k"><tpl default>D<tpl case="x">X</tpl>'
        assert render(tpl, {"k": "x"}) == "X"
        assert render(tpl, {"k": "z"}) == "D"

    def test_text_before_first_case_is_discarded(self, render, caplog):
        tpl = '<tpl switch="k">junk<tpl case="x">X</tpl>'
        with caplog.at_level(logging.DEBUG, logger="xtpl.compiler.statements.pattern_matching"):
            assert render(tpl, {"k": "x"}) == "X"
        assert any("discarding output" in r.getMessage() for r in caplog.records)

    def test_switch_without_arms_renders_nothing(self, render):
        assert render('a<tpl switch="k">junk</tpl>b', {"k": 1}) == "ab"

    def test_expression_subject(self, render):
        tpl = '<tpl switch="n % 2"><tpl case="0">even<tpl case="1">odd</tpl>'
        assert render(tpl, {"n": 4}) == "even"
        assert render(tpl, {"n": 7}) == "odd"

    def test_switch_inside_loop(self, render, family):
        tpl = (
            '<tpl for="kids"><tpl switch="gender">'
            '<tpl case="boy">{name}(m)<tpl case="girl">{name}(f)'
            "</tpl> </tpl>"
        )
        assert render(tpl, family) == "Al(m) Bo(f) "

    def test_directives_inside_arm(self, render):
        tpl = (
            '<tpl switch="k">'
            '<tpl case="list"><tpl for="items">{.}</tpl>'
            '<tpl case="flag"><tpl if="on">on<tpl else>off</tpl>'
            "</tpl>"
        )
        assert render(tpl, {"k": "list", "items": [1, 2]}) == "12"
        assert render(tpl, {"k": "flag", "on": False}) == "off"

    def test_nested_switch(self, render):
        tpl = (
            '<tpl switch="a"><tpl case="x">'
            '<tpl switch="b"><tpl case="y">XY<tpl default>X?</tpl>'
            "<tpl default>?</tpl>"
        )
        assert render(tpl, {"a": "x", "b": "y"}) == "XY"
        assert render(tpl, {"a": "x", "b": "n"}) == "X?"
        assert render(tpl, {"a": "q"}) == "?"


class TestSwitchCompilation:
    """Shape of the generated match statement."""

    def test_each_arm_is_sealed(self):
        match = match_of(_GENDER)
        assert [ast.unparse(case.pattern) for case in match.cases] == ["'boy'", "'girl'", "_"]
        bodies = [ast.unparse(ast.Module(body=case.body, type_ignores=[])) for case in match.cases]
        assert bodies == ["_append('B')", "_append('G')", "_append('?')"]

    def test_default_compiles_to_wildcard(self):
        match = match_of('<tpl switch="k"><tpl default>D<tpl case="x">X</tpl>')
        last = match.cases[-1].pattern
        assert isinstance(last, ast.MatchAs)
        assert last.pattern is None and last.name is None

    def test_empty_arm_gets_pass(self):
        match = match_of('<tpl switch="k"><tpl case="x"><tpl case="y">Y</tpl>')
        assert isinstance(match.cases[0].body[0], ast.Pass)

    def test_case_pattern(self):
        assert ast.unparse(case_pattern(["7"])) == "7"
        assert ast.unparse(case_pattern([" 7 "])) == "7"
        assert ast.unparse(case_pattern(["7a"])) == "'7a'"
        assert ast.unparse(case_pattern(["a", "2"])) == "'a' | 2"
