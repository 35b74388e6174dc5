"""Shared pytest fixtures for restlink tests.

This module provides common fixtures used across multiple test modules,
reducing duplication and ensuring consistency in test data.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from restlink import serializers
from tests.factories import Item

# Load restlink.testing fixtures (token_cache, log_capture, stub_transport, service_client)
pytest_plugins = ["restlink.testing.fixtures"]


@pytest.fixture(autouse=True)
def _restore_default_serializer() -> Iterator[None]:
    """Restore the process-wide serializer after tests that replace it."""
    previous = serializers.get_default_serializer()
    yield
    serializers.use_serializer(previous)


@pytest.fixture
def sample_item() -> Item:
    return Item(item_id=7, display_name="Blue widget", unit_price=2.5)
