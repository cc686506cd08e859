import asyncio
from types import SimpleNamespace
from typing import Any

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind, StatusCode

from tokenmeter.context import attribute_scope
from tokenmeter.cost import with_cost, with_cost_sync
from tokenmeter.instrumentation.proxy import MonitoredProxy, monitor, should_proxy, unwrap
from tokenmeter.models import ErrorContext, RequestContext, ResponseContext
from tokenmeter.registry import register_provider

RESPONSE = {
    "id": "chatcmpl-1",
    "model": "gpt-4o",
    "choices": [{"message": {"role": "assistant", "content": "hi"}}],
    "usage": {"prompt_tokens": 1000, "completion_tokens": 500, "total_tokens": 1500},
}


class FakeCompletions:
    def __init__(self, response: "Any" = None, error: "Exception | None" = None) -> "None":
        self.response = RESPONSE if response is None else response
        self.error = error
        self.calls: "list[dict[str, Any]]" = []
        self.current_span: "Any" = None

    def create(self, **kwargs: "Any") -> "Any":
        self.calls.append(kwargs)
        self.current_span = trace.get_current_span()
        if self.error is not None:
            raise self.error
        return self.response


class FakeAsyncCompletions(FakeCompletions):
    async def create(self, **kwargs: "Any") -> "Any":  # type: ignore[override]
        self.calls.append(kwargs)
        self.current_span = trace.get_current_span()
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.response


class FakeOpenAI:
    def __init__(self, completions: "FakeCompletions | None" = None) -> "None":
        self.api_key = "sk-test"
        self.max_retries = 2
        self.chat = SimpleNamespace(completions=completions or FakeCompletions())

    def __enter__(self) -> "FakeOpenAI":
        return self

    def __exit__(self, *exc_info: "Any") -> "None":
        return None


class FakeGenerativeModel:
    def __init__(self, model_name: "str") -> "None":
        self.model_name = model_name

    def generate_content(self, prompt: "str") -> "Any":
        return SimpleNamespace(
            text="ok",
            model_version=self.model_name,
            usage_metadata=SimpleNamespace(
                prompt_token_count=1_000_000,
                candidates_token_count=1_000_000,
                total_token_count=2_000_000,
            ),
        )


class FakeGoogle:
    def get_generative_model(self, model_name: "str") -> "FakeGenerativeModel":
        return FakeGenerativeModel(model_name)


def _spans(exporter: "InMemorySpanExporter") -> "list[Any]":
    return list(exporter.get_finished_spans())


class TestSyncCalls:
    def test_returns_response_and_records_span(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        client = monitor(FakeOpenAI(), tracer_provider=tracer_provider)

        result = client.chat.completions.create(model="gpt-4o", messages=[])

        assert result is RESPONSE
        (span,) = _spans(span_exporter)
        assert span.name == "openai.chat.completions.create"
        assert span.kind is SpanKind.CLIENT
        assert span.status.status_code is StatusCode.OK
        assert span.attributes["tokenmeter.provider"] == "openai"
        assert span.attributes["tokenmeter.model"] == "gpt-4o"
        assert span.attributes["tokenmeter.cost_usd"] == pytest.approx(0.0075)
        assert span.attributes["tokenmeter.unit"] == "1m_tokens"
        assert span.attributes["gen_ai.usage.input_tokens"] == 1000
        assert span.attributes["gen_ai.usage.output_tokens"] == 500
        assert span.attributes["gen_ai.system"] == "openai"
        assert span.attributes["rpc.method"] == "chat.completions.create"

    def test_span_is_current_during_call(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        completions = FakeCompletions()
        client = monitor(FakeOpenAI(completions), tracer_provider=tracer_provider)

        client.chat.completions.create(model="gpt-4o")

        (span,) = _spans(span_exporter)
        assert completions.current_span.get_span_context().span_id == span.context.span_id

    def test_name_and_attributes_options(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        client = monitor(
            FakeOpenAI(),
            name="search-llm",
            attributes={"team": "search"},
            tracer_provider=tracer_provider,
        )

        client.chat.completions.create(model="gpt-4o")

        (span,) = _spans(span_exporter)
        assert span.name == "search-llm.chat.completions.create"
        assert span.attributes["team"] == "search"
        assert span.attributes["rpc.service"] == "search-llm"

    def test_baggage_attributes_are_copied(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        client = monitor(FakeOpenAI(), tracer_provider=tracer_provider)

        with attribute_scope({"org.id": "org_123", "user.id": 42}):
            client.chat.completions.create(model="gpt-4o")

        (span,) = _spans(span_exporter)
        assert span.attributes["org.id"] == "org_123"
        assert span.attributes["user.id"] == "42"

    def test_unpriced_model_has_zero_cost(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        response = {**RESPONSE, "model": "gpt-99"}
        client = monitor(FakeOpenAI(FakeCompletions(response)), tracer_provider=tracer_provider)

        client.chat.completions.create(model="gpt-99")

        (span,) = _spans(span_exporter)
        assert span.attributes["tokenmeter.cost_usd"] == 0.0
        assert "tokenmeter.unit" not in span.attributes

    def test_unknown_client_still_traced(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        target = SimpleNamespace(ping=lambda: "pong")
        client = monitor(target, tracer_provider=tracer_provider)

        assert client.ping() == "pong"

        (span,) = _spans(span_exporter)
        assert span.name == "unknown.ping"
        assert span.attributes["tokenmeter.provider"] == "unknown"
        assert "tokenmeter.cost_usd" not in span.attributes


class TestAsyncCalls:
    @pytest.mark.asyncio
    async def test_coroutine_method(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        completions = FakeAsyncCompletions()
        client = monitor(FakeOpenAI(completions), tracer_provider=tracer_provider)

        result = await client.chat.completions.create(model="gpt-4o")

        assert result is RESPONSE
        (span,) = _spans(span_exporter)
        assert span.attributes["tokenmeter.cost_usd"] == pytest.approx(0.0075)
        assert completions.current_span.get_span_context().span_id == span.context.span_id

    @pytest.mark.asyncio
    async def test_sync_method_returning_awaitable(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        inner = FakeAsyncCompletions()

        class DecoratedCompletions:
            # plain function handing back a coroutine, like decorated SDK methods
            def create(self, **kwargs: "Any") -> "Any":
                return inner.create(**kwargs)

        client = monitor(
            FakeOpenAI(DecoratedCompletions()),  # type: ignore[arg-type]
            tracer_provider=tracer_provider,
        )

        pending = client.chat.completions.create(model="gpt-4o")
        assert not span_exporter.get_finished_spans()
        result = await pending

        assert result is RESPONSE
        (span,) = _spans(span_exporter)
        assert span.attributes["tokenmeter.cost_usd"] == pytest.approx(0.0075)

    @pytest.mark.asyncio
    async def test_cancelled_call_ends_span_without_hooks(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        started = asyncio.Event()
        errors: "list[ErrorContext]" = []

        class SlowCompletions:
            async def create(self, **kwargs: "Any") -> "Any":
                started.set()
                await asyncio.sleep(10)

        client = monitor(
            FakeOpenAI(SlowCompletions()),  # type: ignore[arg-type]
            on_error=errors.append,
            tracer_provider=tracer_provider,
        )

        task = asyncio.ensure_future(client.chat.completions.create(model="gpt-4o"))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert errors == []
        (span,) = _spans(span_exporter)
        assert span.status.status_code is StatusCode.UNSET


class TestErrors:
    def test_sync_error_propagates_after_on_error(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        error = RuntimeError("Incorrect API key provided: sk-abcdefghijklmnopqrstuvwxyz")
        seen: "list[ErrorContext]" = []
        client = monitor(
            FakeOpenAI(FakeCompletions(error=error)),
            on_error=seen.append,
            tracer_provider=tracer_provider,
        )

        with pytest.raises(RuntimeError) as excinfo:
            client.chat.completions.create(model="gpt-4o")

        assert excinfo.value is error
        assert len(seen) == 1
        assert seen[0].error is error
        assert seen[0].method_path == ("chat", "completions", "create")
        assert seen[0].partial_usage is None

        (span,) = _spans(span_exporter)
        assert span.status.status_code is StatusCode.ERROR
        assert "sk-abcdefghij" not in span.status.description
        assert "sk-***" in span.status.description
        assert [event.name for event in span.events] == ["exception"]

    @pytest.mark.asyncio
    async def test_async_error_surfaces_on_await(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        error = ValueError("bad request")
        order: "list[str]" = []

        async def on_error(ctx: "ErrorContext") -> "None":
            await asyncio.sleep(0)
            order.append("on_error")

        client = monitor(
            FakeOpenAI(FakeAsyncCompletions(error=error)),
            on_error=on_error,
            tracer_provider=tracer_provider,
        )

        pending = client.chat.completions.create(model="gpt-4o")
        with pytest.raises(ValueError):
            try:
                await pending
            finally:
                order.append("raised")

        assert order == ["on_error", "raised"]
        (span,) = _spans(span_exporter)
        assert span.status.status_code is StatusCode.ERROR

    def test_before_request_failure_aborts_call(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        completions = FakeCompletions()
        seen: "list[ErrorContext]" = []

        def before_request(ctx: "RequestContext") -> "None":
            raise PermissionError("budget exceeded")

        client = monitor(
            FakeOpenAI(completions),
            before_request=before_request,
            on_error=seen.append,
            tracer_provider=tracer_provider,
        )

        with pytest.raises(PermissionError):
            client.chat.completions.create(model="gpt-4o")

        assert completions.calls == []
        assert len(seen) == 1
        (span,) = _spans(span_exporter)
        assert span.status.status_code is StatusCode.ERROR


class TestHooks:
    def test_hook_order_and_contexts(self, tracer_provider: "TracerProvider") -> "None":
        order: "list[str]" = []
        responses: "list[ResponseContext]" = []
        completions = FakeCompletions()
        original_create = completions.create

        def create(**kwargs: "Any") -> "Any":
            order.append("call")
            return original_create(**kwargs)

        completions.create = create  # type: ignore[method-assign]

        def before_request(ctx: "RequestContext") -> "None":
            order.append("before")
            assert ctx.kwargs["model"] == "gpt-4o"
            assert ctx.span_name == "openai.chat.completions.create"

        def after_response(ctx: "ResponseContext") -> "None":
            order.append("after")
            responses.append(ctx)

        client = monitor(
            FakeOpenAI(completions),
            before_request=before_request,
            after_response=after_response,
            tracer_provider=tracer_provider,
        )
        client.chat.completions.create(model="gpt-4o")

        assert order == ["before", "call", "after"]
        (ctx,) = responses
        assert ctx.result is RESPONSE
        assert ctx.cost == pytest.approx(0.0075)
        assert ctx.usage is not None and ctx.usage.input_units == 1000
        assert ctx.duration_ms >= 0

    def test_after_response_failure_is_swallowed(self, tracer_provider: "TracerProvider") -> "None":
        def after_response(ctx: "ResponseContext") -> "None":
            raise RuntimeError("hook broke")

        client = monitor(
            FakeOpenAI(), after_response=after_response, tracer_provider=tracer_provider
        )
        assert client.chat.completions.create(model="gpt-4o") is RESPONSE

    @pytest.mark.asyncio
    async def test_async_before_request_on_sync_method(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        completions = FakeCompletions()
        order: "list[str]" = []

        async def before_request(ctx: "RequestContext") -> "None":
            await asyncio.sleep(0)
            order.append("before")

        client = monitor(
            FakeOpenAI(completions), before_request=before_request, tracer_provider=tracer_provider
        )

        pending = client.chat.completions.create(model="gpt-4o")
        assert completions.calls == []
        assert await pending is RESPONSE

        assert order == ["before"]
        assert len(completions.calls) == 1
        assert len(span_exporter.get_finished_spans()) == 1


class TestProxyBehaviour:
    def test_transparent_attributes(self) -> "None":
        target = FakeOpenAI()
        client = monitor(target)

        assert client.api_key == "sk-test"
        assert client.max_retries == 2
        assert isinstance(client, FakeOpenAI)
        assert unwrap(client) is target
        assert client == target
        assert "chat" in dir(client)

    def test_writes_reach_the_target(self) -> "None":
        target = FakeOpenAI()
        client = monitor(target)
        client.max_retries = 5
        assert target.max_retries == 5

    def test_nested_proxies_are_memoized(self) -> "None":
        client = monitor(FakeOpenAI())
        chat = client.chat
        assert client.chat is chat
        assert type(chat) is MonitoredProxy

    def test_monitoring_a_proxy_returns_it(self) -> "None":
        client = monitor(FakeOpenAI())
        assert monitor(client) is client

    def test_context_manager_yields_proxy(self) -> "None":
        client = monitor(FakeOpenAI())
        with client as entered:
            assert entered is client

    def test_explicit_provider_skips_detection(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        client = monitor(FakeOpenAI(), provider="azure", tracer_provider=tracer_provider)
        client.chat.completions.create(model="gpt-4o")

        (span,) = _spans(span_exporter)
        assert span.name == "azure.chat.completions.create"
        assert span.attributes["rpc.service"] == "azure"

    def test_options_object_and_keywords_are_exclusive(self) -> "None":
        from tokenmeter.models import MonitorOptions

        with pytest.raises(TypeError):
            monitor(FakeOpenAI(), MonitorOptions(), name="x")


class TestFactories:
    def test_builtin_factory_result_is_wrapped(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        client = monitor(FakeGoogle(), tracer_provider=tracer_provider)

        model = client.get_generative_model("gemini-2.0-flash")
        assert type(model) is MonitoredProxy
        assert not span_exporter.get_finished_spans()

        response = model.generate_content("hello")
        assert response.text == "ok"

        (span,) = _spans(span_exporter)
        assert span.name == "google.get_generative_model.generate_content"
        assert span.attributes["tokenmeter.model"] == "gemini-2.0-flash"
        assert span.attributes["tokenmeter.cost_usd"] == pytest.approx(0.5)

    def test_registered_factory_method(
        self, tracer_provider: "TracerProvider", span_exporter: "InMemorySpanExporter"
    ) -> "None":
        class Session:
            def send_message(self, text: "str") -> "str":
                return text.upper()

        class MistralClient:
            def open_session(self) -> "Session":
                return Session()

        register_provider(
            name="mistral",
            detect=lambda c: isinstance(c, MistralClient),
            factory_methods=["open_session"],
        )
        client = monitor(MistralClient(), tracer_provider=tracer_provider)

        session = client.open_session()
        assert session.send_message("hi") == "HI"

        (span,) = _spans(span_exporter)
        assert span.name == "mistral.open_session.send_message"


class TestShouldProxy:
    @pytest.mark.parametrize(
        "value",
        [None, 1, "text", b"bytes", [1], {"a": 1}, RuntimeError("x"), RESPONSE],
    )
    def test_terminal_values(self, value: "Any") -> "None":
        assert should_proxy(value, ("create",)) is False

    def test_response_shape_is_not_proxied(self) -> "None":
        assert should_proxy(SimpleNamespace(id="x", generate_content=1), ("start_chat",)) is False

    def test_client_shape_is_proxied(self) -> "None":
        assert should_proxy(SimpleNamespace(send_message=lambda: None), ("anything",)) is True

    def test_method_name_heuristic(self) -> "None":
        assert should_proxy(SimpleNamespace(), ("get_client",)) is True
        assert should_proxy(SimpleNamespace(), ("models",)) is True
        assert should_proxy(SimpleNamespace(), ("list",)) is False


class TestCostCapture:
    def test_with_cost_sync(self, tracer_provider: "TracerProvider") -> "None":
        client = monitor(FakeOpenAI(), tracer_provider=tracer_provider)

        captured = with_cost_sync(client.chat.completions.create, model="gpt-4o")

        assert captured.result is RESPONSE
        assert captured.cost == pytest.approx(0.0075)
        assert captured.usage is not None
        assert captured.usage.model == "gpt-4o"
        assert captured.call_count == 1

    @pytest.mark.asyncio
    async def test_with_cost_async(self, tracer_provider: "TracerProvider") -> "None":
        client = monitor(FakeOpenAI(FakeAsyncCompletions()), tracer_provider=tracer_provider)

        async def two_calls() -> "str":
            await client.chat.completions.create(model="gpt-4o")
            await client.chat.completions.create(model="gpt-4o")
            return "done"

        captured = await with_cost(two_calls)

        assert captured.result == "done"
        assert captured.cost == pytest.approx(0.0075)
        assert captured.total_cost == pytest.approx(0.015)
        assert captured.call_count == 2

    def test_failed_call_publishes_nothing(self, tracer_provider: "TracerProvider") -> "None":
        client = monitor(
            FakeOpenAI(FakeCompletions(error=RuntimeError("x"))), tracer_provider=tracer_provider
        )

        def call() -> "None":
            with pytest.raises(RuntimeError):
                client.chat.completions.create(model="gpt-4o")

        captured = with_cost_sync(call)
        assert captured.cost == 0.0
        assert captured.usage is None
        assert captured.call_count == 0
