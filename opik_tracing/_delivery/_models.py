"""Pydantic write models and enums for the Opik ingestion endpoints."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, TypeAdapter

from opik_tracing.exceptions import ValidationError


class SpanType(StrEnum):
    """Span type classification."""

    GENERAL = "general"
    LLM = "llm"
    TOOL = "tool"
    GUARDRAIL = "guardrail"


# --- Record kinds, in delivery order ---

KIND_TRACES = "traces"
KIND_SPANS = "spans"
KIND_FEEDBACK_SCORES = "feedback_scores"

DELIVERY_ORDER = (KIND_TRACES, KIND_SPANS, KIND_FEEDBACK_SCORES)

FEEDBACK_SOURCE_SDK = "sdk"

_PAYLOAD_ADAPTER = TypeAdapter(dict[str, Any])


def check_payload(value: dict[str, Any] | None, field: str) -> None:
    """Reject payload mappings that cannot be serialized to JSON.

    Raises:
        ValidationError: If any value in the mapping has no JSON form.
    """
    if not value:
        return
    try:
        _PAYLOAD_ADAPTER.dump_json(value)
    except ValueError as e:
        raise ValidationError(f"{field} must be JSON-serializable: {e}") from e


# --- Write models ---


class TraceWrite(BaseModel):
    """Upsert payload for one trace, keyed by ``id``."""

    model_config = ConfigDict(frozen=True)

    id: str
    project_name: str
    name: str
    start_time: datetime
    end_time: datetime | None = None
    input: dict[str, Any] | None = None
    output: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    tags: list[str] | None = None


class SpanWrite(BaseModel):
    """Upsert payload for one span, keyed by ``id``."""

    model_config = ConfigDict(frozen=True)

    id: str
    project_name: str
    trace_id: str
    parent_span_id: str | None = None
    name: str
    type: SpanType
    start_time: datetime
    end_time: datetime | None = None
    input: dict[str, Any] | None = None
    output: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None
    model: str | None = None
    provider: str | None = None
    usage: dict[str, int] | None = None


class FeedbackScoreWrite(BaseModel):
    """Feedback score payload; ``id`` is the span the score is attached to."""

    model_config = ConfigDict(frozen=True)

    id: str
    project_name: str
    name: str
    value: float
    reason: str | None = None
    source: str = FEEDBACK_SOURCE_SDK


# --- Read models ---


class ProjectSummary(BaseModel):
    """One entry of the paginated project list."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
