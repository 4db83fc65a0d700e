"""Tests for the XTemplate object: construction, compilation, members."""

from __future__ import annotations

import threading

import pytest

from xtpl import EMPTY, FormatLibrary, XTemplate, default_formats


class TestConstruction:
    def test_fragments_are_concatenated(self):
        tpl = XTemplate("<p>", "{name}", "</p>")
        assert tpl.source == "<p>{name}</p>"
        assert tpl.apply({"name": "x"}) == "<p>x</p>"

    def test_fragment_list(self):
        assert XTemplate(["a", "{b}"]).apply({"b": 1}) == "a1"

    def test_trailing_mapping_is_config(self):
        tpl = XTemplate("{name:this.shout}", {"name": "greeting", "shout": lambda s, v: v + "!"})
        assert tpl.name == "greeting"
        assert tpl.apply({"name": "hi"}) == "hi!"

    def test_keyword_config_wins(self):
        tpl = XTemplate("x", {"name": "a"}, name="b")
        assert tpl.name == "b"

    def test_non_string_fragment(self):
        with pytest.raises(TypeError):
            XTemplate("a", 3)

    def test_definitions_type_checked(self):
        with pytest.raises(TypeError):
            XTemplate("a", definitions=42)

    def test_formats_type_checked(self):
        with pytest.raises(TypeError):
            XTemplate("a", formats=["upper"])

    def test_member_cannot_shadow_api(self):
        with pytest.raises(ValueError, match="apply"):
            XTemplate("a", apply=lambda self: None)

    def test_construction_is_lazy(self):
        tpl = XTemplate("{name}")
        assert not tpl.is_compiled
        tpl.apply({})
        assert tpl.is_compiled

    def test_repr(self):
        assert repr(XTemplate("a", name="card")) == "<XTemplate card>"
        assert repr(XTemplate("a")) == "<XTemplate (inline)>"


class TestCompilation:
    def test_renderer_memoized(self):
        tpl = XTemplate("{a}")
        assert tpl.renderer is tpl.renderer

    def test_compile_returns_self(self):
        tpl = XTemplate("{a}")
        assert tpl.compile() is tpl

    def test_set_recompiles(self):
        tpl = XTemplate("old {a}")
        assert tpl.apply({"a": 1}) == "old 1"
        assert tpl.set("new {a}") is tpl
        assert not tpl.is_compiled
        assert tpl.apply({"a": 1}) == "new 1"

    def test_code_shows_generated_module(self):
        code = XTemplate("Name: {name}").code
        assert "def render(this, out, values, parent, xindex, xcount):" in code
        assert "_append = out.append" in code
        assert "_lookup(values, 'name')" in code

    def test_loop_frames_only_when_looping(self):
        assert "_frames" not in XTemplate("{a}").code
        assert "_frames = [_LoopFrame.root(" in XTemplate('<tpl for="a"></tpl>').code

    def test_adjacent_text_coalesced(self):
        code = XTemplate("a{ }b").code
        assert "_append('a{ }b')" in code

    def test_concurrent_first_render(self):
        tpl = XTemplate('<tpl for="items">{.}</tpl>')
        results: list[str] = []
        lock = threading.Lock()

        def worker(n: int) -> None:
            text = tpl.apply({"items": list(range(n))})
            with lock:
                results.append(text)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(1, 9)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert sorted(results, key=len) == ["".join(map(str, range(n))) for n in range(1, 9)]


class TestApply:
    def test_apply_template_alias(self):
        assert XTemplate("{a}").apply_template({"a": 1}) == "1"

    def test_apply_out_appends(self):
        out = ["start:"]
        result = XTemplate("{a}").apply_out({"a": 1}, out)
        assert result is out
        assert "".join(out) == "start:1"

    def test_parent_argument(self):
        assert XTemplate("{[ .. ]}").apply({}, "up") == "up"

    def test_default_parent_is_empty(self):
        tpl = XTemplate("{[ parent is EMPTY ]}", definitions="from xtpl import EMPTY")
        assert tpl.apply({}) == "True"
        assert len(EMPTY) == 0

    def test_nested_templates(self):
        row = XTemplate("<li>{name}</li>")
        page = XTemplate(
            '<ul><tpl for="kids">{[ this.row.apply(values) ]}</tpl></ul>',
            row=row,
        )
        assert page.apply({"kids": [{"name": "a"}, {"name": "b"}]}) == (
            "<ul><li>a</li><li>b</li></ul>"
        )


class TestMembers:
    def test_methods_are_bound(self):
        tpl = XTemplate(
            "{[ this.label(name) ]}",
            prefix="Dr. ",
            label=lambda self, n: self.prefix + n,
        )
        assert tpl.apply({"name": "Who"}) == "Dr. Who"

    def test_classes_are_not_bound(self):
        tpl = XTemplate("{[ this.kind(3) ]}", kind=str)
        assert tpl.apply({}) == "3"

    def test_definitions_list(self):
        tpl = XTemplate(
            "{[ greet(name) ]}",
            definitions=["PREFIX = 'Hi '", "def greet(n):\n    return PREFIX + n"],
        )
        assert tpl.apply({"name": "Al"}) == "Hi Al"

    def test_indented_definitions(self):
        tpl = XTemplate(
            '<tpl if="is_adult(age)">adult</tpl>',
            definitions="""
                def is_adult(age):
                    return age >= 18
            """,
        )
        assert tpl.apply({"age": 20}) == "adult"

    def test_formats_library_instance(self):
        library = FormatLibrary({"star": lambda v: f"*{v}*"})
        tpl = XTemplate("{a:star}", formats=library)
        assert tpl.formats is library
        assert tpl.apply({"a": 1}) == "*1*"

    def test_default_library_shared(self):
        assert XTemplate("a").formats is XTemplate("b").formats
        assert "uppercase" in XTemplate("a").formats
        assert set(XTemplate("a").formats) == set(default_formats())


class Card:
    tpl = "<b>{title}</b>"


class FancyCard(Card):
    pass


class TestGetTpl:
    def test_class_template_built_once(self):
        first = XTemplate.get_tpl(Card(), "tpl")
        assert isinstance(first, XTemplate)
        assert XTemplate.get_tpl(Card(), "tpl") is first
        assert Card.tpl is first
        assert first.apply({"title": "T"}) == "<b>T</b>"

    def test_inherited_template_written_to_owner(self):
        tpl = XTemplate.get_tpl(FancyCard(), "tpl")
        assert "tpl" not in vars(FancyCard)
        assert Card.tpl is tpl

    def test_instance_template(self):
        card = Card()
        card.own = ["<i>", "{title}", "</i>"]
        tpl = XTemplate.get_tpl(card, "own")
        assert card.own is tpl
        assert tpl.apply({"title": "x"}) == "<i>x</i>"

    def test_mapping_config(self):
        class Widget:
            tpl = {"source": "{a:this.twice}", "name": "widget", "twice": lambda s, v: v * 2}

        tpl = XTemplate.get_tpl(Widget(), "tpl")
        assert tpl.name == "widget"
        assert tpl.apply({"a": 2}) == "4"

    def test_missing(self):
        assert XTemplate.get_tpl(Card(), "nothing") is None

    def test_existing_template_returned(self):
        tpl = XTemplate("a")

        class Holder:
            pass

        holder = Holder()
        holder.tpl = tpl
        assert XTemplate.get_tpl(holder, "tpl") is tpl

    def test_unsupported_value(self):
        class Holder:
            tpl = 42

        with pytest.raises(TypeError):
            XTemplate.get_tpl(Holder(), "tpl")
