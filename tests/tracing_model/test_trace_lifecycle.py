"""Tests for Trace and Span lifecycle."""

import time
import typing
from datetime import timedelta

import pytest

from opik_tracing import LifecycleError, OpikClient, Span, SpanType, ValidationError


class TestTraceCreation:
    """Test OpikClient.trace()."""

    def test_trace_has_id_immediately(self, client: OpikClient):
        trace = client.trace("t1", input={"test": "integration"}, tags=["integration-test", "python-sdk"])
        assert trace.id
        assert trace.input == {"test": "integration"}
        assert trace.tags == ("integration-test", "python-sdk")
        assert trace.project_name == "unit-tests"
        assert not trace.ended

    def test_trace_ids_are_unique(self, client: OpikClient):
        ids = {client.trace(f"t{i}").id for i in range(200)}
        assert len(ids) == 200

    def test_tags_are_deduplicated_in_order(self, client: OpikClient):
        trace = client.trace("t", tags=["b", "a", "b"])
        assert trace.tags == ("b", "a")

    def test_project_name_override(self, client: OpikClient):
        trace = client.trace("t", project_name="other")
        assert trace.project_name == "other"

    def test_empty_name_rejected(self, client: OpikClient):
        with pytest.raises(ValidationError):
            client.trace("")

    def test_input_is_copied(self, client: OpikClient):
        payload = {"k": "v"}
        trace = client.trace("t", input=payload)
        payload["k"] = "changed"
        assert trace.input == {"k": "v"}


class TestTraceEnd:
    """Test Trace.end()."""

    def test_end_records_output_and_time(self, client: OpikClient):
        trace = client.trace("t")
        trace.end(output={"result": "success"})
        assert trace.ended
        assert trace.output == {"result": "success"}
        assert trace.end_time is not None
        assert trace.end_time >= trace.start_time

    def test_second_end_raises(self, client: OpikClient):
        trace = client.trace("t")
        trace.end()
        with pytest.raises(LifecycleError):
            trace.end()

    def test_second_end_keeps_first_output(self, client: OpikClient):
        trace = client.trace("t")
        trace.end(output={"n": 1})
        with pytest.raises(LifecycleError):
            trace.end(output={"n": 2})
        assert trace.output == {"n": 1}

    def test_span_after_end_raises(self, client: OpikClient):
        trace = client.trace("t")
        trace.end()
        with pytest.raises(LifecycleError):
            trace.span("late")

    def test_metadata_merges_on_end(self, client: OpikClient):
        trace = client.trace("t", metadata={"a": 1})
        trace.end(metadata={"b": 2})
        assert trace.metadata == {"a": 1, "b": 2}

    def test_context_manager_ends_trace(self, client: OpikClient):
        with client.trace("t") as trace:
            pass
        assert trace.ended

    def test_context_manager_records_error(self, client: OpikClient):
        with pytest.raises(RuntimeError):
            with client.trace("t") as trace:
                raise RuntimeError("boom")
        assert trace.ended
        assert trace.metadata == {"error": "RuntimeError: boom"}


class TestSpans:
    """Test Trace.span() and Span.end()."""

    def test_span_ids_differ_from_trace_and_siblings(self, client: OpikClient):
        trace = client.trace("t")
        spans = [trace.span(f"s{i}") for i in range(20)]
        ids = {s.id for s in spans}
        assert len(ids) == 20
        assert trace.id not in ids
        assert all(s.trace_id == trace.id for s in spans)
        assert trace.spans == tuple(spans)

    def test_span_options(self, client: OpikClient):
        trace = client.trace("t")
        span = trace.span(
            "llm",
            type=SpanType.LLM,
            model="test-model",
            provider="test-provider",
            input={"messages": [{"role": "user", "content": "hi"}]},
            usage={"prompt_tokens": 3},
        )
        assert span.type is SpanType.LLM
        assert span.model == "test-model"
        assert span.provider == "test-provider"
        assert span.input == {"messages": [{"role": "user", "content": "hi"}]}
        assert span.usage == {"prompt_tokens": 3}
        assert span.parent_span_id is None

    def test_span_type_accepts_string(self, client: OpikClient):
        span = client.trace("t").span("s", type="tool")  # type: ignore[arg-type]
        assert span.type is SpanType.TOOL

    def test_span_end_duration(self, client: OpikClient):
        trace = client.trace("t1", input={"test": "integration"}, tags=["integration-test", "python-sdk"])
        span = trace.span("s1", type=SpanType.LLM, model="test-model")
        time.sleep(0.05)
        span.end(output={"response": "Integration test response"})
        trace.end(output={"result": "success"})
        assert span.end_time is not None
        assert span.end_time >= span.start_time + timedelta(milliseconds=50)
        assert span.output == {"response": "Integration test response"}

    def test_second_span_end_raises(self, client: OpikClient):
        span = client.trace("t").span("s")
        span.end()
        with pytest.raises(LifecycleError):
            span.end()

    def test_span_can_end_after_trace(self, client: OpikClient):
        trace = client.trace("t")
        span = trace.span("s")
        trace.end()
        span.end()
        assert span.ended

    def test_usage_merges_on_end(self, client: OpikClient):
        span = client.trace("t").span("s", usage={"prompt_tokens": 5})
        span.end(usage={"completion_tokens": 7})
        assert span.usage == {"prompt_tokens": 5, "completion_tokens": 7}

    def test_nested_spans(self, client: OpikClient):
        trace = client.trace("t")
        parent = trace.span("parent")
        child = parent.span("child", type=SpanType.TOOL)
        grandchild = child.span("grandchild")
        assert child.parent_span_id == parent.id
        assert grandchild.parent_span_id == child.id
        assert grandchild.trace_id == trace.id
        assert trace.spans == (parent, child, grandchild)

    def test_nested_span_after_trace_end_raises(self, client: OpikClient):
        trace = client.trace("t")
        parent = trace.span("parent")
        trace.end()
        with pytest.raises(LifecycleError):
            parent.span("child")

    def test_span_context_manager(self, client: OpikClient):
        trace = client.trace("t")
        with trace.span("s") as span:
            pass
        assert span.ended

    def test_span_context_manager_records_error(self, client: OpikClient):
        trace = client.trace("t")
        with pytest.raises(ValueError):
            with trace.span("s", type="tool") as span:
                raise ValueError("bad tool input")
        assert span.ended
        assert span.type is SpanType.TOOL
        assert span.metadata == {"error": "ValueError: bad tool input"}

    def test_span_exit_hints_resolve_despite_type_property(self):
        hints = typing.get_type_hints(Span.__exit__)
        assert hints["exc_type"] == type[BaseException] | None
        assert isinstance(Span.type, property)

    def test_unserializable_span_input_rejected(self, client: OpikClient):
        trace = client.trace("t")
        with pytest.raises(ValidationError, match="Span input"):
            trace.span("s", input={"when": object()})
        assert trace.spans == ()

    def test_empty_span_name_rejected(self, client: OpikClient):
        with pytest.raises(ValidationError):
            client.trace("t").span("")
