"""Fixtures for tests against a live Opik backend.

These tests require OPIK_API_KEY and OPIK_WORKSPACE; without them every test
in this directory is skipped rather than failed.
"""

import os
from collections.abc import Generator

import pytest

from opik_tracing import OpikClient

INTEGRATION_PROJECT = "python-sdk-integration-tests"


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests when credentials are absent."""
    missing = [name for name in ("OPIK_API_KEY", "OPIK_WORKSPACE") if not os.environ.get(name)]
    if not missing:
        return
    skip = pytest.mark.skip(reason=f"{', '.join(missing)} not set, skipping integration test")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def live_client() -> Generator[OpikClient, None, None]:
    """Client against the configured backend; flushed and closed after the test."""
    client = OpikClient.from_env(project_name=INTEGRATION_PROJECT)
    yield client
    client.close(timeout=30.0)
