"""Root pytest configuration for all tests.

Async code is driven with asyncio.run inside plain test functions, so no
event-loop plugin is required.
"""

import pytest

from tests.conftest_utils import FakeElevationProvider


@pytest.fixture
def flat_provider() -> FakeElevationProvider:
    return FakeElevationProvider()
