"""Test configuration and shared fixtures."""

from __future__ import annotations

import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo structlog configuration changes made by a test."""
    yield
    structlog.reset_defaults()
