import inspect
import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), "helpers"))


# ---------------------------------------------------------------------------
# Automatically mark every async test function with @pytest.mark.anyio.
# We use a hookwrapper because its setup phase executes *before* the anyio
# plugin's tryfirst pytest_pycollect_makeitem hook, which is the point where
# anyio looks for the marker.  A conftest-level ``pytestmark`` would be too
# late (applied after collection).
# ---------------------------------------------------------------------------
@pytest.hookimpl(hookwrapper=True)
def pytest_pycollect_makeitem(collector, name, obj):
    """Auto-apply @pytest.mark.anyio to every async test function."""
    if inspect.iscoroutinefunction(obj) or inspect.isasyncgenfunction(obj):
        pytest.mark.anyio(obj)
    yield


@pytest.fixture
def anyio_backend():
    return "asyncio"


def pytest_collection_modifyitems(config, items):
    # Block @pytest.mark.asyncio, use @pytest.mark.anyio instead
    for item in items:
        if item.get_closest_marker("asyncio"):
            raise pytest.UsageError(
                f"{item.nodeid}: Use @pytest.mark.anyio instead of @pytest.mark.asyncio"
            )
