"""Shared pytest configuration."""

import logging
from collections.abc import Iterator

import pytest


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    """Keep handlers installed by setup_logging from leaking between tests."""
    yield
    logger = logging.getLogger("astrid_agent")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
