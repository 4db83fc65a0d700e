"""Fixtures for the runnable xtpl examples.

Each example directory holds an ``app.py`` that builds its XTemplates at
import time and leaves the rendered page in a module-level ``output``.
``example_app`` executes that file as ``example_<directory>``, fresh for every
test, so class-level templates compiled by ``XTemplate.get_tpl`` and formats
registered on a module's FormatLibrary never leak between tests.
"""

import importlib.util
from pathlib import Path

import pytest


@pytest.fixture
def example_app(request: pytest.FixtureRequest):
    """Load a fresh module from the sibling app.py next to the test file."""
    app_path = Path(request.path).parent / "app.py"
    module_name = f"example_{app_path.parent.name}"
    spec = importlib.util.spec_from_file_location(module_name, app_path)
    assert spec is not None
    assert spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module
