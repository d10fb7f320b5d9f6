"""Opik client: configuration holder, trace factory and delivery owner."""

import asyncio
from threading import Lock
from types import TracebackType
from typing import Any
from weakref import WeakValueDictionary

import httpx
from pydantic import BaseModel

from opik_tracing._delivery._models import KIND_TRACES, ProjectSummary
from opik_tracing._delivery._rest import OpikRestClient
from opik_tracing._delivery._writer import DeliveryWriter
from opik_tracing.config import ClientConfig
from opik_tracing.exceptions import LifecycleError, NetworkError, ValidationError
from opik_tracing.logging import get_tracing_logger
from opik_tracing.settings import Settings
from opik_tracing.trace import Trace

logger = get_tracing_logger(__name__)


class OpikClient:
    """Entry point for reporting traces to an Opik backend.

    Thread-safe: many threads may create traces from one client. Record
    mutations (trace and span creation, ``end()``, feedback scores) only
    touch local state and enqueue rows; a background writer delivers them.

    Example:
        >>> client = OpikClient.from_env(project_name="my-project")
        >>> with client.trace("handle-request", input={"q": "hi"}) as trace:
        ...     span = trace.span("llm-call", type=SpanType.LLM, model="gpt-4o")
        ...     span.end(output={"answer": "hello"})
        >>> client.close()
    """

    def __init__(self, config: ClientConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Validate config and start the background writer.

        Raises:
            ConfigurationError: If credentials are missing (and ``anonymous``
                is not set) or delivery options are out of range.
        """
        config.validate_for_client()
        self._config = config
        self._transport = transport
        self._lock = Lock()
        self._traces: WeakValueDictionary[str, Trace] = WeakValueDictionary()
        self._closed = False

        self._writer = DeliveryWriter(
            self._new_rest_client,
            batch_size=config.batch_size,
            flush_interval_seconds=config.flush_interval_seconds,
            max_queue_size=config.max_queue_size,
            max_retries=config.max_retries,
            retry_base_delay_seconds=config.retry_base_delay_seconds,
        )
        self._writer.start()
        logger.debug(f"Opik client created for {config.url} (workspace={config.effective_workspace!r}, project={config.project_name!r})")

    @classmethod
    def from_env(
        cls,
        *,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **overrides: Any,
    ) -> "OpikClient":
        """Create a client from ``OPIK_*`` environment variables plus explicit overrides."""
        return cls(ClientConfig.from_settings(settings, **overrides), transport=transport)

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def writer(self) -> DeliveryWriter:
        """The background delivery writer, exposing delivery counters."""
        return self._writer

    @property
    def closed(self) -> bool:
        return self._closed

    def _new_rest_client(self) -> OpikRestClient:
        return OpikRestClient(self._config, transport=self._transport)

    # --- Backend queries ---

    async def list_projects(self, page: int = 1, size: int = 10, *, timeout: float | None = None) -> list[ProjectSummary]:
        """Fetch one page of projects from the backend.

        Cancelling the awaiting task aborts the request. ``timeout`` bounds
        the whole call.

        Raises:
            ValidationError: If page or size is not positive.
            NetworkError: On transport failure or timeout.
            AuthError: If the backend rejects the credentials.
        """
        if page < 1 or size < 1:
            raise ValidationError(f"page and size must be positive, got page={page} size={size}")
        try:
            async with asyncio.timeout(timeout):
                async with self._new_rest_client() as rest:
                    return await rest.list_projects(page, size)
        except TimeoutError as e:
            raise NetworkError(f"Listing projects did not complete within {timeout}s") from e

    # --- Trace factory ---

    def trace(
        self,
        name: str,
        *,
        input: dict[str, Any] | None = None,  # noqa: A002
        tags: list[str] | tuple[str, ...] | None = None,
        metadata: dict[str, Any] | None = None,
        project_name: str | None = None,
    ) -> Trace:
        """Create a trace and queue its start record. Never waits on the network.

        Raises:
            LifecycleError: If the client has been closed.
        """
        if self._closed:
            raise LifecycleError("Client is closed; cannot create trace")
        trace = Trace(
            self,
            name,
            project_name=project_name or self._config.project_name,
            input=input,
            tags=tags,
            metadata=metadata,
        )
        with self._lock:
            self._traces[trace.id] = trace
        self._enqueue(KIND_TRACES, trace.to_write())
        return trace

    def _enqueue(self, kind: str, row: BaseModel) -> None:
        self._writer.write(kind, [row])

    # --- Lifecycle ---

    def flush(self, timeout: float = 30.0) -> bool:
        """Block until queued records are delivered, then seal traces that had ended.

        Returns False if the timeout expired or the delivery thread has died;
        traces are not sealed in that case.
        """
        with self._lock:
            ended = [t for t in self._traces.values() if t.ended]
        completed = self._writer.flush(timeout=timeout)
        if completed:
            with self._lock:
                for trace in ended:
                    trace._seal()
                    self._traces.pop(trace.id, None)
        return completed

    def close(self, timeout: float = 30.0) -> None:
        """Deliver everything still queued, stop the writer and seal all traces."""
        if self._closed:
            return
        self._closed = True
        self._writer.shutdown(timeout=timeout)
        with self._lock:
            for trace in list(self._traces.values()):
                trace._seal()
            self._traces.clear()
        if self._writer.dropped_count or self._writer.failed_count:
            logger.warning(f"Opik client closed with {self._writer.dropped_count} dropped and {self._writer.failed_count} undelivered records")

    def __enter__(self) -> "OpikClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
