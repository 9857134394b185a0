"""
Shared test configuration for CatalogMiner.
"""

import pytest

from tests.helpers import BASE, SleepRecorder

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def base_url() -> str:
    return BASE
