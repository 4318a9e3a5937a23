"""Shared fixtures for metricfields tests."""

import pytest
from prometheus_client import CollectorRegistry

from metricfields.config import RegistrationConfig, set_config


@pytest.fixture
def registry():
    """A fresh registry per test, isolated from the global REGISTRY."""
    return CollectorRegistry()


@pytest.fixture
def config():
    return RegistrationConfig()


@pytest.fixture(autouse=True)
def reset_global_config(monkeypatch):
    """Keep METRICFIELDS_* variables and cached config out of every test."""
    for var in (
        "METRICFIELDS_CONFIG_FILE",
        "METRICFIELDS_METADATA_KEY",
        "METRICFIELDS_DEFAULT_BUCKETS",
        "METRICFIELDS_NAMESPACE",
        "METRICFIELDS_LOG_LEVEL",
        "METRICFIELDS_STRUCTURED_LOGGING",
    ):
        monkeypatch.delenv(var, raising=False)
    set_config(None)
    yield
    set_config(None)
