"""Tests for the nested_loops example."""


class TestNestedLoopsApp:
    """Verify loop numbering, parent access and scope restore."""

    def test_numbering_and_parent(self, example_app) -> None:
        assert "1. Aubrey (17), child of Don: kite, yo-yo" in example_app.output
        assert "2. Nikol (5), child of Don: ball" in example_app.output

    def test_empty_inner_list(self, example_app) -> None:
        assert "3. Ellie (3), child of Don\n" in example_app.output

    def test_scope_restored(self, example_app) -> None:
        assert example_app.output.endswith("<p>Back to Don</p>")

    def test_prop(self, example_app) -> None:
        assert example_app.names.apply(example_app.family) == "Aubrey Nikol Ellie "
