"""Traces: top-level records of one logical execution."""

from datetime import UTC, datetime
from threading import Lock
from types import TracebackType
from typing import Any, Protocol

from pydantic import BaseModel

from opik_tracing._delivery._models import KIND_SPANS, KIND_TRACES, SpanType, TraceWrite, check_payload
from opik_tracing._ids import new_id
from opik_tracing.exceptions import LifecycleError, ValidationError
from opik_tracing.span import Span


class RecordSink(Protocol):
    """Protocol satisfied by OpikClient for handing records to the delivery channel."""

    def _enqueue(self, kind: str, row: BaseModel) -> None:
        """Queue one row for background delivery."""
        ...


def _dedupe(tags: list[str] | tuple[str, ...] | None) -> list[str] | None:
    if not tags:
        return None
    return list(dict.fromkeys(tags))


class Trace:
    """Top-level execution record that owns zero or more spans.

    Created through ``OpikClient.trace()``. The id is assigned locally at
    creation, so no network round-trip is needed. A trace may be ended once;
    after it ends no new spans can be added. Once an ended trace has been
    flushed by its client it is sealed and rejects further amendments.
    """

    def __init__(
        self,
        sink: RecordSink,
        name: str,
        *,
        project_name: str,
        input: dict[str, Any] | None = None,  # noqa: A002
        tags: list[str] | tuple[str, ...] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if not name:
            raise ValidationError("Trace name must be a non-empty string")
        check_payload(input, "Trace input")
        check_payload(metadata, "Trace metadata")
        self._sink = sink
        self._id = new_id()
        self._name = name
        self._project_name = project_name
        self._input = dict(input) if input else None
        self._output: dict[str, Any] | None = None
        self._tags = _dedupe(tags)
        self._metadata = dict(metadata) if metadata else None
        self._start_time = datetime.now(UTC)
        self._end_time: datetime | None = None
        self._spans: list[Span] = []
        self._sealed = False
        self._lock = Lock()

    # --- Identity and state ---

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def project_name(self) -> str:
        return self._project_name

    @property
    def input(self) -> dict[str, Any] | None:
        return self._input

    @property
    def output(self) -> dict[str, Any] | None:
        return self._output

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(self._tags or ())

    @property
    def metadata(self) -> dict[str, Any] | None:
        return self._metadata

    @property
    def start_time(self) -> datetime:
        return self._start_time

    @property
    def end_time(self) -> datetime | None:
        return self._end_time

    @property
    def ended(self) -> bool:
        return self._end_time is not None

    @property
    def sealed(self) -> bool:
        """Whether amendments are refused: the trace ended before a client flush, or the client closed."""
        return self._sealed

    @property
    def spans(self) -> tuple[Span, ...]:
        """All spans of this trace, nested ones included, in creation order."""
        with self._lock:
            return tuple(self._spans)

    # --- Operations ---

    def span(
        self,
        name: str,
        *,
        type: SpanType = SpanType.GENERAL,  # noqa: A002
        model: str | None = None,
        provider: str | None = None,
        input: dict[str, Any] | None = None,  # noqa: A002
        metadata: dict[str, Any] | None = None,
        usage: dict[str, int] | None = None,
    ) -> Span:
        """Create a top-level span in this trace.

        Raises:
            LifecycleError: If the trace has already ended.
            ValidationError: If input or metadata cannot be serialized to JSON.
        """
        return self._start_span(
            name,
            type=type,
            model=model,
            provider=provider,
            input=input,
            metadata=metadata,
            usage=usage,
            parent_span_id=None,
        )

    def _start_span(self, name: str, *, parent_span_id: str | None, **options: Any) -> Span:
        with self._lock:
            if self._end_time is not None:
                raise LifecycleError(f"Trace {self._id} has already ended; cannot add span {name!r}")
            self._ensure_not_sealed()
            span = Span(self, name, parent_span_id=parent_span_id, **options)
            self._spans.append(span)
        self._enqueue(KIND_SPANS, span.to_write())
        return span

    def end(self, *, output: dict[str, Any] | None = None, metadata: dict[str, Any] | None = None) -> None:
        """Record end time and output, and queue the final trace record.

        Raises:
            LifecycleError: If the trace has already ended.
            ValidationError: If output or metadata cannot be serialized to JSON.
        """
        check_payload(output, "Trace output")
        check_payload(metadata, "Trace metadata")
        with self._lock:
            if self._end_time is not None:
                raise LifecycleError(f"Trace {self._id} has already ended")
            self._ensure_not_sealed()
            self._end_time = max(datetime.now(UTC), self._start_time)
            if output is not None:
                self._output = dict(output)
            if metadata:
                self._metadata = {**(self._metadata or {}), **metadata}
        self._enqueue(KIND_TRACES, self.to_write())

    def to_write(self) -> TraceWrite:
        """Build the upsert payload for the current state of the trace."""
        return TraceWrite(
            id=self._id,
            project_name=self._project_name,
            name=self._name,
            start_time=self._start_time,
            end_time=self._end_time,
            input=self._input,
            output=self._output,
            metadata=self._metadata,
            tags=self._tags,
        )

    # --- Client hooks ---

    def _seal(self) -> None:
        self._sealed = True

    def _ensure_not_sealed(self) -> None:
        if self._sealed:
            raise LifecycleError(f"Trace {self._id} has been flushed and no longer accepts amendments")

    def _enqueue(self, kind: str, row: BaseModel) -> None:
        self._sink._enqueue(kind, row)

    def __enter__(self) -> "Trace":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.ended:
            return
        metadata = {"error": f"{exc_type.__name__}: {exc}"} if exc_type is not None else None
        self.end(metadata=metadata)

    def __repr__(self) -> str:
        return f"Trace(id={self._id!r}, name={self._name!r}, spans={len(self._spans)}, ended={self.ended})"
