"""
Shared pytest fixtures and configuration for cachecell tests.

This module provides:
- An isolated InMemoryClient per test
- Ready-made Blob and Counter cells bound to that client
- Settings cache cleanup so environment overrides don't leak between tests

Usage:
    Fixtures are auto-discovered by pytest::

        def test_round_trip(blob):
            blob.set([1, 2])
            assert blob.get() == [1, 2]
"""

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

# Ensure cachecell package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cachecell.cell import Blob, Counter
from cachecell.client import InMemoryClient
from cachecell.config import clear_settings_cache


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark all tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings Cleanup
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache() -> Generator[None, None, None]:
    """Clear cached settings before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Client and Cell Fixtures
# =============================================================================


@pytest.fixture
def client() -> InMemoryClient:
    """Fresh in-memory backend shared by every cell in one test."""
    return InMemoryClient()


@pytest.fixture
def blob(client: InMemoryClient) -> Blob:
    return Blob(client, "test:blob")


@pytest.fixture
def counter(client: InMemoryClient) -> Counter:
    return Counter(client, "test:counter")
