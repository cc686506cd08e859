from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Union

from opentelemetry.trace import TracerProvider


@dataclass(frozen=True, slots=True)
class UsageData:
    """
    UsageData is the normalized result of extracting usage from
    a single provider response or stream chunk. Quantities are in
    provider-native units (tokens, characters, images, seconds).
    """

    provider: "str"
    model: "str"
    input_units: "float | None" = None
    output_units: "float | None" = None
    cached_input_units: "float | None" = None
    # open keys such as "output_images_4k" for multi-modal pricing
    usage_by_type: "dict[str, float] | None" = None
    # cost already reported by the provider, used when no rate entry exists
    raw_cost: "float | None" = None
    metadata: "dict[str, Any] | None" = None


@dataclass(frozen=True, slots=True)
class RequestContext:
    """
    read-only view of an intercepted call, handed to hooks.
    """

    method_path: "tuple[str, ...]"
    args: "tuple[Any, ...]"
    kwargs: "Mapping[str, Any]"
    provider: "str"
    span_name: "str"


@dataclass(frozen=True, slots=True)
class ResponseContext:
    method_path: "tuple[str, ...]"
    args: "tuple[Any, ...]"
    kwargs: "Mapping[str, Any]"
    provider: "str"
    span_name: "str"
    result: "Any"
    cost: "float"
    usage: "UsageData | None"
    duration_ms: "float"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    method_path: "tuple[str, ...]"
    args: "tuple[Any, ...]"
    kwargs: "Mapping[str, Any]"
    provider: "str"
    span_name: "str"
    error: "BaseException"
    duration_ms: "float"
    # usage accumulated by a stream before it failed
    partial_usage: "UsageData | None" = None


@dataclass(frozen=True, slots=True)
class StreamingCostUpdate:
    """
    progress notification emitted while a monitored stream is consumed.
    """

    estimated_cost: "float"
    input_tokens: "float"
    output_tokens: "float"
    provider: "str"
    model: "str"
    is_complete: "bool"


HookResult = Union[None, Awaitable[None]]
BeforeRequestHook = Callable[[RequestContext], HookResult]
AfterResponseHook = Callable[[ResponseContext], HookResult]
OnErrorHook = Callable[[ErrorContext], HookResult]
StreamingCostCallback = Callable[[StreamingCostUpdate], None]


@dataclass
class MonitorOptions:
    # client name used as the span name prefix, defaults to the provider
    name: "str | None" = None
    # explicit provider id, skips detection
    provider: "str | None" = None
    # extra attributes set on every span
    attributes: "Mapping[str, Any]" = field(default_factory=dict)
    on_streaming_cost: "StreamingCostCallback | None" = None
    before_request: "BeforeRequestHook | None" = None
    after_response: "AfterResponseHook | None" = None
    on_error: "OnErrorHook | None" = None
    # defaults to the globally registered provider
    tracer_provider: "TracerProvider | None" = None


def request_context_fields(ctx: "RequestContext") -> "dict[str, Any]":
    """
    returns the shared request fields so response/error contexts can
    be built from a request context.
    """
    return {
        "method_path": ctx.method_path,
        "args": ctx.args,
        "kwargs": ctx.kwargs,
        "provider": ctx.provider,
        "span_name": ctx.span_name,
    }
