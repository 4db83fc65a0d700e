"""Error handling: contained evaluations, syntax errors, runtime errors."""

from __future__ import annotations

import logging

import pytest

from xtpl import (
    ErrorCode,
    RenderDepthError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    XTemplate,
    render_context,
)
from xtpl.environment import terminal

_HELPERS_LOGGER = "xtpl.template.helpers"


class TestContainedEvaluation:
    """Failures inside rich expressions never abort the render."""

    def test_failure_is_logged_at_warning(self, caplog):
        tpl = XTemplate("a{[ 1 / 0 ]}b", name="calc")
        with caplog.at_level(logging.WARNING, logger=_HELPERS_LOGGER):
            assert tpl.apply({}) == "ab"
        records = [r for r in caplog.records if r.name == _HELPERS_LOGGER]
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING
        message = records[0].getMessage()
        assert "calc" in message
        assert "ZeroDivisionError" in message
        assert "1 / 0" in message

    def test_failure_recorded_as_diagnostic(self):
        tpl = XTemplate('<tpl if="missing_fn()">x</tpl>{name}', name="page")
        with render_context() as ctx:
            assert tpl.apply({"name": "ok"}) == "ok"
        assert len(ctx.diagnostics) == 1
        diagnostic = ctx.diagnostics[0]
        assert diagnostic.template_name == "page"
        assert diagnostic.error_type == "NameError"
        assert diagnostic.source == "missing_fn()"
        assert isinstance(diagnostic.exception, NameError)

    def test_each_failure_recorded(self):
        tpl = XTemplate('<tpl for="kids">{[ 1 / age ]}</tpl>')
        with render_context() as ctx:
            assert tpl.apply({"kids": [{"age": 0}, {"age": 1}, {"age": 0}]}) == "1.0"
        assert [d.error_type for d in ctx.diagnostics] == ["ZeroDivisionError"] * 2

    def test_exec_failure_is_contained(self):
        tpl = XTemplate('<tpl for="kids" exec="this.nope()">{name}</tpl>')
        with render_context() as ctx:
            assert tpl.apply({"kids": [{"name": "a"}, {"name": "b"}]}) == "ab"
        assert len(ctx.diagnostics) == 2

    def test_code_block_failure_keeps_earlier_statements(self):
        tpl = XTemplate("{% x = 1\nraise KeyError('k') %}{[ x ]}")
        with render_context() as ctx:
            assert tpl.apply({}) == "1"
        assert ctx.diagnostics[0].error_type == "KeyError"

    def test_invalid_expression_reports_on_each_render(self):
        tpl = XTemplate('<tpl if="a b c">yes<tpl else>no</tpl>')
        with render_context() as ctx:
            assert tpl.apply({}) == "no"
            assert tpl.apply({}) == "no"
        assert [d.error_type for d in ctx.diagnostics] == ["TemplateSyntaxError"] * 2
        assert "Invalid expression" in ctx.diagnostics[0].message

    def test_invalid_format_arguments(self):
        tpl = XTemplate("[{n:number(0 0)}]")
        assert tpl.apply({"n": 1}) == "[]"

    def test_diagnostic_format(self, monkeypatch):
        from xtpl.environment import terminal

        monkeypatch.setattr(terminal, "_USE_COLORS", False)
        tpl = XTemplate("{[ 1 / 0 ]}", name="calc")
        with render_context() as ctx:
            tpl.apply({})
        line = ctx.diagnostics[0].format()
        assert line.startswith("calc: ZeroDivisionError in ' 1 / 0 '")


class TestSuspendingExpressions:
    """``yield``/``await`` in template code is rejected, not silently rendered as ''."""

    def test_yield_in_expression_tag(self, caplog):
        tpl = XTemplate("before{[ (yield 1) ]}after{name}", name="gen")
        with caplog.at_level(logging.WARNING, logger=_HELPERS_LOGGER):
            with render_context() as ctx:
                assert tpl.apply({"name": "N"}) == "beforeafterN"
        assert [r for r in caplog.records if r.name == _HELPERS_LOGGER]
        assert ctx.diagnostics[0].error_type == "TemplateSyntaxError"
        assert "'yield' is not allowed" in ctx.diagnostics[0].message

    def test_yield_in_code_block(self):
        tpl = XTemplate("before{% x = (yield) %}after")
        with render_context() as ctx:
            assert tpl.apply({}) == "beforeafter"
        assert "Invalid code block" in ctx.diagnostics[0].message

    @pytest.mark.parametrize(
        "source",
        [
            '<tpl if="(yield)">x</tpl>rest',
            '<tpl for="kids" exec="n = (yield from kids)">x</tpl>rest',
            "{[ [(yield) for _ in ()] or 1 ]}rest",
            "{% await something() %}rest",
        ],
    )
    def test_suspension_anywhere_is_contained(self, source):
        with render_context() as ctx:
            assert XTemplate(source).apply({"kids": [1]}).endswith("rest")
        assert ctx.diagnostics
        assert all(d.error_type == "TemplateSyntaxError" for d in ctx.diagnostics)

    def test_yield_inside_nested_function_is_allowed(self):
        tpl = XTemplate("{% def gen():\n    yield 1\n    yield 2\nn = sum(gen()) %}{[ n ]}")
        with render_context() as ctx:
            assert tpl.apply({}) == "3"
        assert ctx.diagnostics == []


class TestSyntaxErrors:
    """Nesting errors surface on first use, not at construction."""

    def test_construction_never_fails(self):
        tpl = XTemplate("</tpl>")
        assert not tpl.is_compiled

    @pytest.mark.parametrize(
        ("source", "code"),
        [
            ("a</tpl>", ErrorCode.UNMATCHED_CLOSE),
            ('<tpl if="x">a', ErrorCode.UNCLOSED_DIRECTIVE),
            ("<tpl else>", ErrorCode.MISPLACED_BRANCH),
            ('<tpl elseif="x">', ErrorCode.MISPLACED_BRANCH),
            ('<tpl if="a">1<tpl else>2<tpl else>3</tpl>', ErrorCode.MISPLACED_BRANCH),
            ('<tpl if="a">1<tpl else>2<tpl elseif="b">3</tpl>', ErrorCode.MISPLACED_BRANCH),
            ('<tpl for="k"><tpl else></tpl>', ErrorCode.MISPLACED_BRANCH),
            ('<tpl case="a">', ErrorCode.MISPLACED_CASE),
            ("<tpl default>", ErrorCode.MISPLACED_CASE),
            (
                '<tpl switch="k"><tpl default>a<tpl default>b</tpl>',
                ErrorCode.DUPLICATE_DEFAULT,
            ),
            ("{% x = 1", ErrorCode.INVALID_EXPRESSION),
        ],
    )
    def test_error_codes(self, source, code):
        tpl = XTemplate(source)
        with pytest.raises(TemplateSyntaxError) as exc_info:
            tpl.apply({})
        assert exc_info.value.code is code

    def test_error_location(self):
        tpl = XTemplate("<p>\n  {name}\n  <tpl else>\n</p>", name="page.html")
        with pytest.raises(TemplateSyntaxError) as exc_info:
            tpl.apply({})
        error = exc_info.value
        assert error.lineno == 3
        assert error.col_offset == 2
        message = str(error)
        assert "page.html:3:2" in message
        assert "<tpl else>" in message
        assert "^" in message

    def test_compact_format_has_code_and_docs(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", False)
        with pytest.raises(TemplateSyntaxError) as exc_info:
            XTemplate("</tpl>").apply({})
        compact = exc_info.value.format_compact()
        assert compact.startswith("X-PAR-001")
        assert "Docs:" in compact

    def test_failed_compile_retried(self):
        tpl = XTemplate("</tpl>")
        for _ in range(2):
            with pytest.raises(TemplateSyntaxError):
                tpl.apply({})
        assert not tpl.is_compiled

    def test_invalid_definitions(self):
        tpl = XTemplate("{a}", definitions="def broken(:\n    pass")
        with pytest.raises(TemplateSyntaxError) as exc_info:
            tpl.apply({})
        assert exc_info.value.code is ErrorCode.INVALID_DEFINITIONS
        assert exc_info.value.lineno == 1

    def test_failing_definitions(self):
        tpl = XTemplate("{a}", definitions="LIMIT = 1 / 0")
        with pytest.raises(TemplateSyntaxError) as exc_info:
            tpl.apply({})
        assert exc_info.value.code is ErrorCode.INVALID_DEFINITIONS
        assert isinstance(exc_info.value.__cause__, ZeroDivisionError)


class _Unprintable:
    def __str__(self) -> str:
        raise ValueError("cannot print")


class _BrokenStore:
    is_store = True


class TestRuntimeErrors:
    """Failures outside contained evaluation propagate as TemplateRuntimeError."""

    def test_unprintable_value(self):
        tpl = XTemplate("{thing}", name="page")
        with pytest.raises(TemplateRuntimeError) as exc_info:
            tpl.apply({"thing": _Unprintable()})
        error = exc_info.value
        assert error.template_name == "page"
        assert "ValueError: cannot print" in error.message
        assert isinstance(error.__cause__, ValueError)
        assert error.code is ErrorCode.RUNTIME_ERROR

    def test_broken_store(self):
        tpl = XTemplate('<tpl for="rows">{.}</tpl>')
        with pytest.raises(TemplateRuntimeError) as exc_info:
            tpl.apply({"rows": _BrokenStore()})
        assert isinstance(exc_info.value.__cause__, AttributeError)

    def test_values_shown_in_message(self):
        with pytest.raises(TemplateRuntimeError) as exc_info:
            XTemplate("{thing}").apply({"thing": _Unprintable()})
        assert "values =" in str(exc_info.value)

    def test_render_context_reset_after_error(self):
        from xtpl import get_render_context

        with pytest.raises(TemplateRuntimeError):
            XTemplate("{thing}").apply({"thing": _Unprintable()})
        assert get_render_context() is None


class TestRenderDepth:
    def test_self_applying_template_is_stopped(self):
        tpl = XTemplate("x{[ this.apply(values) ]}")
        with render_context(max_depth=3) as ctx:
            assert tpl.apply({}) == "xxx"
        assert [d.error_type for d in ctx.diagnostics] == ["RenderDepthError"]
        assert isinstance(ctx.diagnostics[0].exception, RenderDepthError)

    def test_template_max_depth(self):
        tpl = XTemplate("x{[ this.apply(values) ]}", max_depth=2)
        assert tpl.apply({}) == "xxx"

    def test_depth_error_direct(self):
        tpl = XTemplate("x")
        with render_context(max_depth=0):
            with pytest.raises(RenderDepthError) as exc_info:
                tpl.apply({})
        assert exc_info.value.code is ErrorCode.RENDER_DEPTH
