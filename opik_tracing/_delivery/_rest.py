"""Async HTTP client for the Opik REST API."""

from collections.abc import Sequence
from types import TracebackType
from typing import Any

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from opik_tracing.config import ClientConfig
from opik_tracing.exceptions import AuthError, NetworkError, NotFoundError, ValidationError
from opik_tracing.logging import get_tracing_logger

from ._models import KIND_FEEDBACK_SCORES, KIND_SPANS, KIND_TRACES, ProjectSummary

logger = get_tracing_logger(__name__)

PATH_PROJECTS = "/v1/private/projects"
PATH_TRACES_BATCH = "/v1/private/traces/batch"
PATH_SPANS_BATCH = "/v1/private/spans/batch"
PATH_SPAN_FEEDBACK_SCORES = "/v1/private/spans/feedback-scores"


def _error_for_status(response: httpx.Response) -> Exception | None:
    """Map a non-2xx response to a typed error. Returns None on success."""
    status = response.status_code
    if status < 400:
        return None
    detail = f"{response.request.method} {response.request.url.path} -> {status}: {response.text[:500]}"
    if status in (401, 403):
        return AuthError(detail)
    if status == 404:
        return NotFoundError(detail)
    if status == 429 or status >= 500:
        return NetworkError(detail)
    return ValidationError(detail)


class OpikRestClient:
    """Thin async wrapper over ``httpx.AsyncClient`` bound to one event loop.

    Use as an async context manager; the underlying connection pool is
    closed on exit.
    """

    def __init__(self, config: ClientConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        headers = {"Comet-Workspace": config.effective_workspace}
        if config.api_key:
            headers["Authorization"] = config.api_key
        self._http = httpx.AsyncClient(
            base_url=config.url,
            headers=headers,
            timeout=config.timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "OpikRestClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the connection pool."""
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{method} {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e
        if error := _error_for_status(response):
            raise error
        return response

    async def list_projects(self, page: int = 1, size: int = 10) -> list[ProjectSummary]:
        """Fetch one page of projects."""
        response = await self._request("GET", PATH_PROJECTS, params={"page": page, "size": size})
        try:
            content = response.json().get("content", [])
            return [ProjectSummary.model_validate(item) for item in content]
        except (ValueError, AttributeError, PydanticValidationError) as e:
            raise NetworkError(f"Malformed project list response: {e}") from e

    async def upsert_traces(self, rows: Sequence[BaseModel]) -> None:
        """Create or replace traces by id."""
        await self._request("POST", PATH_TRACES_BATCH, json={"traces": _dump(rows)})

    async def upsert_spans(self, rows: Sequence[BaseModel]) -> None:
        """Create or replace spans by id."""
        await self._request("POST", PATH_SPANS_BATCH, json={"spans": _dump(rows)})

    async def add_span_feedback_scores(self, rows: Sequence[BaseModel]) -> None:
        """Attach feedback scores to spans."""
        await self._request("PUT", PATH_SPAN_FEEDBACK_SCORES, json={"scores": _dump(rows)})

    async def send_batch(self, kind: str, rows: Sequence[BaseModel]) -> None:
        """Dispatch a batch of rows to the endpoint for its record kind."""
        if kind == KIND_TRACES:
            await self.upsert_traces(rows)
        elif kind == KIND_SPANS:
            await self.upsert_spans(rows)
        elif kind == KIND_FEEDBACK_SCORES:
            await self.add_span_feedback_scores(rows)
        else:
            raise ValueError(f"Unknown record kind: {kind}")
        logger.debug(f"Delivered {len(rows)} {kind}")


def _dump(rows: Sequence[BaseModel]) -> list[dict[str, Any]]:
    return [row.model_dump(mode="json", exclude_none=True) for row in rows]
