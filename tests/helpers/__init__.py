"""Test helper utilities."""

from tests.helpers.mock_adapter import AdapterCall, MockPlatformAdapter

__all__ = [
    "AdapterCall",
    "MockPlatformAdapter",
]
