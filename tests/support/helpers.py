"""Test helpers: an in-memory fake of the Opik REST endpoints."""

import json
from collections.abc import Callable
from threading import Lock
from typing import Any

import httpx

from opik_tracing import ClientConfig, OpikClient

Responder = Callable[[httpx.Request], httpx.Response]


class FakeOpikBackend:
    """Records every request and answers like the Opik API.

    ``fail_next(path, *statuses)`` queues error statuses for a path; once the
    queue is exhausted, requests succeed again.
    """

    def __init__(self, projects: list[dict[str, Any]] | None = None) -> None:
        self.projects = projects if projects is not None else [{"id": "p-1", "name": "Default Project"}]
        self.requests: list[httpx.Request] = []
        self._failures: dict[str, list[int]] = {}
        self._lock = Lock()

    def fail_next(self, path: str, *statuses: int) -> None:
        with self._lock:
            self._failures.setdefault(path, []).extend(statuses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        with self._lock:
            self.requests.append(request)
            queued = self._failures.get(path)
            status = queued.pop(0) if queued else None
        if status is not None:
            return httpx.Response(status, json={"errors": [f"injected {status}"]})
        if request.method == "GET" and path.endswith("/v1/private/projects"):
            page = int(request.url.params.get("page", "1"))
            size = int(request.url.params.get("size", "10"))
            content = self.projects[(page - 1) * size : page * size]
            return httpx.Response(200, json={"content": content, "page": page, "size": size, "total": len(self.projects)})
        if request.method == "POST" and path.endswith(("/traces/batch", "/spans/batch")):
            return httpx.Response(204)
        if request.method == "PUT" and path.endswith("/spans/feedback-scores"):
            return httpx.Response(204)
        return httpx.Response(404, json={"errors": ["not found"]})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def _bodies(self, suffix: str, key: str) -> list[dict[str, Any]]:
        with self._lock:
            matching = [r for r in self.requests if r.url.path.endswith(suffix)]
        rows: list[dict[str, Any]] = []
        for request in matching:
            rows.extend(json.loads(request.content)[key])
        return rows

    def traces(self) -> list[dict[str, Any]]:
        """All trace rows received, in arrival order."""
        return self._bodies("/v1/private/traces/batch", "traces")

    def spans(self) -> list[dict[str, Any]]:
        """All span rows received, in arrival order."""
        return self._bodies("/v1/private/spans/batch", "spans")

    def feedback_scores(self) -> list[dict[str, Any]]:
        """All feedback score rows received, in arrival order."""
        return self._bodies("/v1/private/spans/feedback-scores", "scores")

    def paths(self) -> list[str]:
        with self._lock:
            return [r.url.path for r in self.requests]


def make_config(**overrides: Any) -> ClientConfig:
    """ClientConfig with test credentials and fast delivery settings."""
    values: dict[str, Any] = {
        "url": "https://opik.test/api",
        "api_key": "test-key",
        "workspace": "test-workspace",
        "project_name": "unit-tests",
        "flush_interval_seconds": 0.05,
        "retry_base_delay_seconds": 0.01,
    }
    values.update(overrides)
    return ClientConfig(**values)


def make_client(backend: FakeOpikBackend, **overrides: Any) -> OpikClient:
    """OpikClient wired to a FakeOpikBackend."""
    return OpikClient(make_config(**overrides), transport=backend.transport)
