"""Common test fixtures."""

from collections.abc import Generator

import pytest

from opik_tracing import OpikClient
from tests.support.helpers import FakeOpikBackend, make_client


@pytest.fixture(autouse=True)
def isolate_opik_env(request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep OPIK_* variables and any local .env file out of unit tests.

    Tests marked ``integration`` keep the real environment.
    """
    if request.node.get_closest_marker("integration"):
        return
    for name in ("OPIK_API_KEY", "OPIK_WORKSPACE", "OPIK_URL_OVERRIDE", "OPIK_PROJECT_NAME"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def backend() -> FakeOpikBackend:
    """Fresh fake backend."""
    return FakeOpikBackend()


@pytest.fixture
def client(backend: FakeOpikBackend) -> Generator[OpikClient, None, None]:
    """Client delivering to the fake backend; closed after the test."""
    c = make_client(backend)
    yield c
    c.close(timeout=5.0)
