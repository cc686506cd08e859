import time
from typing import Any

from opentelemetry.trace import Span, Status, StatusCode

from tokenmeter.constants import STREAM_USAGE_KEYS
from tokenmeter.cost import record_cost
from tokenmeter.instrumentation.sanitize import sanitize_error_message
from tokenmeter.instrumentation.spans import (
    add_usage_to_span,
    invoke_streaming_callback,
    price_usage,
)
from tokenmeter.models import (
    ErrorContext,
    MonitorOptions,
    RequestContext,
    ResponseContext,
    UsageData,
    request_context_fields,
)
from tokenmeter.strategies.base import get_field, has_field, is_object
from tokenmeter.strategies.dispatch import extract_usage

# nested members a stream event can carry its usage under
_NESTED_USAGE_KEYS = ("response", "message")


class CallTracker:
    """
    CallTracker owns the span of one intercepted call and guarantees
    it is finalized exactly once, whether the call returns, raises, or
    streams. The finalizing methods return the hook context to hand to
    after_response/on_error, or None when the call was already finalized.
    """

    def __init__(self, span: "Span", request: "RequestContext", options: "MonitorOptions"):
        self.span = span
        self.request = request
        self._options = options
        self._start = time.perf_counter()
        self._finalized = False
        # latest usage seen on a stream
        self.usage: "UsageData | None" = None
        self.last_chunk: "Any" = None

    @property
    def finalized(self) -> "bool":
        return self._finalized

    @property
    def duration_ms(self) -> "float":
        return (time.perf_counter() - self._start) * 1000

    def _claim(self) -> "bool":
        if self._finalized:
            return False
        self._finalized = True
        return True

    def _extract(self, value: "Any") -> "UsageData | None":
        return extract_usage(
            self.request.method_path,
            value,
            self.request.args,
            self.request.kwargs,
            provider_hint=self.request.provider,
        )

    def _apply_usage(self, usage: "UsageData | None") -> "float":
        if usage is None:
            record_cost(0.0, None)
            return 0.0
        cost, unit = price_usage(usage)
        record_cost(cost, usage)
        add_usage_to_span(self.span, usage, cost, unit)
        return cost

    def _end_with_error(self, error: "BaseException") -> "None":
        self.span.record_exception(error)
        self.span.set_status(Status(StatusCode.ERROR, sanitize_error_message(error)))
        self.span.end()

    def complete(self, result: "Any") -> "ResponseContext | None":
        """
        finalizes a plain (non-stream) success.
        """
        if not self._claim():
            return None
        usage = self._extract(result)
        cost = self._apply_usage(usage)
        duration_ms = self.duration_ms
        self.span.set_status(Status(StatusCode.OK))
        self.span.end()
        return ResponseContext(
            **request_context_fields(self.request),
            result=result,
            cost=cost,
            usage=usage,
            duration_ms=duration_ms,
        )

    def fail(self, error: "BaseException") -> "ErrorContext | None":
        """
        finalizes a call that raised before producing a result. Nothing
        is published to cost capture.
        """
        if not self._claim():
            return None
        duration_ms = self.duration_ms
        self._end_with_error(error)
        return ErrorContext(
            **request_context_fields(self.request),
            error=error,
            duration_ms=duration_ms,
        )

    def abandon(self) -> "None":
        """
        ends the span of a cancelled call without status or hooks.
        """
        if self._claim():
            self.span.end()

    def seed(self, stream: "Any") -> "None":
        """
        primes stream usage from the stream object itself, for providers
        whose usage depends only on the request (text-to-speech).
        """
        usage = self._extract(stream)
        if usage is not None:
            self.usage = usage

    def record_chunk(self, chunk: "Any") -> "None":
        self.last_chunk = chunk
        if not any(has_field(chunk, key) for key in STREAM_USAGE_KEYS):
            return

        usage = self._extract(chunk)
        if usage is None:
            for key in _NESTED_USAGE_KEYS:
                nested = get_field(chunk, key)
                if is_object(nested):
                    usage = self._extract(nested)
                    if usage is not None:
                        break
        if usage is None:
            return

        self.usage = usage
        invoke_streaming_callback(self._options.on_streaming_cost, usage, False)

    def finish_stream(self) -> "ResponseContext | None":
        """
        finalizes a stream that was exhausted, closed by the caller or
        dropped before either.
        """
        if not self._claim():
            return None
        cost = self._apply_usage(self.usage)
        duration_ms = self.duration_ms
        self.span.set_status(Status(StatusCode.OK))
        self.span.end()
        invoke_streaming_callback(self._options.on_streaming_cost, self.usage, True, cost)
        return ResponseContext(
            **request_context_fields(self.request),
            result=self.last_chunk,
            cost=cost,
            usage=self.usage,
            duration_ms=duration_ms,
        )

    def fail_stream(self, error: "BaseException") -> "ErrorContext | None":
        """
        finalizes a stream whose source raised. Usage seen so far is
        still priced and published.
        """
        if not self._claim():
            return None
        cost = self._apply_usage(self.usage)
        duration_ms = self.duration_ms
        self._end_with_error(error)
        invoke_streaming_callback(self._options.on_streaming_cost, self.usage, True, cost)
        return ErrorContext(
            **request_context_fields(self.request),
            error=error,
            duration_ms=duration_ms,
            partial_usage=self.usage,
        )
