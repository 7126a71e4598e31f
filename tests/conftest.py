"""
Pytest configuration for chainscale tests.

Async tests are marked with ``pytest.mark.asyncio`` (strict mode).
"""

import pytest

from chainscale.logging import LoggingConfig

from .mocks import make_context


@pytest.fixture(autouse=True)
def quiet_logging():
    """Keep test output to errors only."""
    LoggingConfig().update(log_level="error")
    yield
    LoggingConfig().update(log_level="info")


@pytest.fixture
def context_factory():
    return make_context
