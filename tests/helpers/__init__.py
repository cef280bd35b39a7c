"""Test helper utilities."""

from tests.helpers.fake_backend import FakeBackend, Hang, chart_response

__all__ = [
    "FakeBackend",
    "Hang",
    "chart_response",
]
