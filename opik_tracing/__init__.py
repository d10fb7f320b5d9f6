"""Opik tracing client.

Instrument application code with traces and spans, attach feedback scores,
and ship them asynchronously to an Opik backend.

Quick Start:
    >>> from opik_tracing import OpikClient, SpanType
    >>>
    >>> client = OpikClient.from_env(project_name="my-project")
    >>> trace = client.trace("answer-question", input={"question": "2+2?"}, tags=["demo"])
    >>> span = trace.span("llm-call", type=SpanType.LLM, model="gpt-4o", provider="openai")
    >>> span.end(output={"answer": "4"})
    >>> span.add_feedback_score("quality", 0.95, "Correct answer")
    >>> trace.end(output={"answer": "4"})
    >>> client.close()

Environment Variables:
    - OPIK_API_KEY: API key (required unless anonymous=True)
    - OPIK_WORKSPACE: Workspace name (required unless anonymous=True)
    - OPIK_URL_OVERRIDE: Backend URL
    - OPIK_PROJECT_NAME: Default project
"""

from ._delivery._models import ProjectSummary, SpanType
from ._ids import new_id
from .client import OpikClient
from .config import ClientConfig
from .exceptions import (
    AuthError,
    ConfigurationError,
    LifecycleError,
    NetworkError,
    NotFoundError,
    OpikError,
    ValidationError,
)
from .logging import get_tracing_logger, setup_logging
from .settings import Settings
from .span import FeedbackScore, Span
from .trace import Trace

__version__ = "0.1.0"

__all__ = [
    "AuthError",
    "ClientConfig",
    "ConfigurationError",
    "FeedbackScore",
    "LifecycleError",
    "NetworkError",
    "NotFoundError",
    "OpikClient",
    "OpikError",
    "ProjectSummary",
    "Settings",
    "Span",
    "SpanType",
    "Trace",
    "ValidationError",
    "get_tracing_logger",
    "new_id",
    "setup_logging",
]
