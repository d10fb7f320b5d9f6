"""Spans: timed units of work inside a trace."""

import builtins
import math
from datetime import UTC, datetime
from numbers import Real
from types import TracebackType
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from opik_tracing._delivery._models import (
    KIND_FEEDBACK_SCORES,
    KIND_SPANS,
    FeedbackScoreWrite,
    SpanType,
    SpanWrite,
    check_payload,
)
from opik_tracing._ids import new_id
from opik_tracing.exceptions import LifecycleError, ValidationError

if TYPE_CHECKING:
    from opik_tracing.trace import Trace


class FeedbackScore(BaseModel):
    """A named numeric judgement attached to one span."""

    model_config = ConfigDict(frozen=True)

    span_id: str
    name: str
    value: float
    reason: str | None = None


def _validate_score(name: str, value: object) -> float:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Feedback score name must be a non-empty string")
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError(f"Feedback score value must be a number, got {type(value).__name__}")
    result = float(value)
    if not math.isfinite(result):
        raise ValidationError(f"Feedback score value must be finite, got {result}")
    return result


class Span:
    """A timed unit of work owned by a :class:`Trace`.

    Created through ``Trace.span()`` or ``Span.span()``; never instantiated
    directly. A span may be ended once. Feedback scores can be added before
    or after it ends, until the owning trace is sealed by a client flush.
    """

    def __init__(
        self,
        trace: "Trace",
        name: str,
        *,
        type: SpanType = SpanType.GENERAL,  # noqa: A002
        model: str | None = None,
        provider: str | None = None,
        input: dict[str, Any] | None = None,  # noqa: A002
        metadata: dict[str, Any] | None = None,
        usage: dict[str, int] | None = None,
        parent_span_id: str | None = None,
    ) -> None:
        if not name:
            raise ValidationError("Span name must be a non-empty string")
        check_payload(input, "Span input")
        check_payload(metadata, "Span metadata")
        self._trace = trace
        self._id = new_id()
        self._name = name
        self._type = SpanType(type)
        self._model = model
        self._provider = provider
        self._input = dict(input) if input else None
        self._output: dict[str, Any] | None = None
        self._metadata = dict(metadata) if metadata else None
        self._usage = dict(usage) if usage else None
        self._parent_span_id = parent_span_id
        self._start_time = datetime.now(UTC)
        self._end_time: datetime | None = None
        self._feedback_scores: list[FeedbackScore] = []

    # --- Identity and state ---

    @property
    def id(self) -> str:
        return self._id

    @property
    def trace_id(self) -> str:
        return self._trace.id

    @property
    def parent_span_id(self) -> str | None:
        return self._parent_span_id

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> SpanType:
        return self._type

    @property
    def model(self) -> str | None:
        return self._model

    @property
    def provider(self) -> str | None:
        return self._provider

    @property
    def input(self) -> dict[str, Any] | None:
        return self._input

    @property
    def output(self) -> dict[str, Any] | None:
        return self._output

    @property
    def metadata(self) -> dict[str, Any] | None:
        return self._metadata

    @property
    def usage(self) -> dict[str, int] | None:
        return self._usage

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
    def feedback_scores(self) -> tuple[FeedbackScore, ...]:
        return tuple(self._feedback_scores)

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
    ) -> "Span":
        """Create a nested span on the same trace with this span as parent."""
        return self._trace._start_span(
            name,
            type=type,
            model=model,
            provider=provider,
            input=input,
            metadata=metadata,
            usage=usage,
            parent_span_id=self._id,
        )

    def end(
        self,
        *,
        output: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        usage: dict[str, int] | None = None,
    ) -> None:
        """Record end time and output.

        Raises:
            LifecycleError: If the span already ended or its trace is sealed.
            ValidationError: If output or metadata cannot be serialized to JSON.
        """
        if self._end_time is not None:
            raise LifecycleError(f"Span {self._id} has already ended")
        check_payload(output, "Span output")
        check_payload(metadata, "Span metadata")
        self._trace._ensure_not_sealed()
        end_time = datetime.now(UTC)
        self._end_time = max(end_time, self._start_time)
        if output is not None:
            self._output = dict(output)
        if metadata:
            self._metadata = {**(self._metadata or {}), **metadata}
        if usage:
            self._usage = {**(self._usage or {}), **usage}
        self._trace._enqueue(KIND_SPANS, self.to_write())

    def add_feedback_score(self, name: str, value: float, reason: str | None = None) -> FeedbackScore:
        """Attach a feedback score to this span.

        Raises:
            ValidationError: If the name is empty or the value is not a finite number.
            LifecycleError: If the owning trace has been sealed.
        """
        numeric = _validate_score(name, value)
        self._trace._ensure_not_sealed()
        score = FeedbackScore(span_id=self._id, name=name, value=numeric, reason=reason)
        self._feedback_scores.append(score)
        self._trace._enqueue(
            KIND_FEEDBACK_SCORES,
            FeedbackScoreWrite(
                id=self._id,
                project_name=self._trace.project_name,
                name=score.name,
                value=score.value,
                reason=score.reason,
            ),
        )
        return score

    def to_write(self) -> SpanWrite:
        """Build the upsert payload for the current state of the span."""
        return SpanWrite(
            id=self._id,
            project_name=self._trace.project_name,
            trace_id=self._trace.id,
            parent_span_id=self._parent_span_id,
            name=self._name,
            type=self._type,
            start_time=self._start_time,
            end_time=self._end_time,
            input=self._input,
            output=self._output,
            metadata=self._metadata,
            model=self._model,
            provider=self._provider,
            usage=self._usage,
        )

    def __enter__(self) -> "Span":
        return self

    def __exit__(
        self,
        exc_type: builtins.type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.ended:
            return
        metadata = {"error": f"{exc_type.__name__}: {exc}"} if exc_type is not None else None
        self.end(metadata=metadata)

    def __repr__(self) -> str:
        return f"Span(id={self._id!r}, name={self._name!r}, type={self._type.value!r}, ended={self.ended})"
