"""Pytest configuration and fixtures for xtpl tests."""

import pytest

from xtpl import XTemplate


@pytest.fixture
def family():
    """A parent record with a list of child records."""
    return {
        "name": "Dad",
        "kids": [
            {"name": "Al", "age": 17, "gender": "boy"},
            {"name": "Bo", "age": 3, "gender": "girl"},
        ],
    }


@pytest.fixture
def render():
    """Compile and apply a one-shot template."""

    def _render(source: str, values: object = None, **config: object) -> str:
        return XTemplate(source, **config).apply(values if values is not None else {})

    return _render


def assert_template_equal(template_result: str, expected: str) -> None:
    """Assert template result equals expected, normalizing whitespace.

    Args:
        template_result: The actual template rendering result.
        expected: The expected output.
    """
    actual_normalized = " ".join(template_result.split())
    expected_normalized = " ".join(expected.split())
    assert actual_normalized == expected_normalized, (
        f"Template output mismatch:\n"
        f"  Actual: {actual_normalized!r}\n"
        f"  Expected: {expected_normalized!r}"
    )

