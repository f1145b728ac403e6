"""Common pytest configuration."""

from __future__ import annotations

import pytest

from tests.helpers.workflow import ListLogSink, StubAnalysisProvider


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast tests without external services")


@pytest.fixture
def provider() -> StubAnalysisProvider:
    """Stub provider answering every phase successfully.

    Returns:
        StubAnalysisProvider: Provider with default replies.
    """
    return StubAnalysisProvider()


@pytest.fixture
def log_sink() -> ListLogSink:
    """In-memory log sink.

    Returns:
        ListLogSink: Empty sink.
    """
    return ListLogSink()
