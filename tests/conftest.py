"""
Cascade Test Configuration and Fixtures
"""
import logging

import pytest
from faker import Faker

from cascade import Application, AppConfig


@pytest.fixture
def faker():
    """Faker instance for generating test data."""
    return Faker()


@pytest.fixture
def config():
    """Test application configuration."""
    return AppConfig(
        env="test",
        debug=True,
        host="127.0.0.1",
        port=8000,
        keys=["test-secret-key"],
    )


@pytest.fixture
def app(config) -> Application:
    """Test application instance."""
    return Application(config)


@pytest.fixture
def error_log(caplog):
    """Capture records written by the default error sink."""
    caplog.set_level(logging.ERROR, logger="cascade.server.application")
    return caplog


# Custom markers
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")


# Register fixture plugins
pytest_plugins = [
    "tests.fixtures.http",
]
