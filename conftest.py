"""Pytest configuration for Paranoia Toolkit."""

import pytest

from paranoia_toolkit.config import set_config


def pytest_configure(config):
    """Configure pytest with custom settings."""
    # Add custom markers
    config.addinivalue_line("markers", "cascade: mark test as association cascade test")


@pytest.fixture(autouse=True)
def reset_config():
    """Start every test from environment defaults."""
    set_config(None)
    yield
    set_config(None)
