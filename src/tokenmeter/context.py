import inspect
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, Mapping, TypeVar, Union

from opentelemetry import baggage, context, propagate
from opentelemetry.context import Context

T = TypeVar("T")


@contextmanager
def attribute_scope(attributes: "Mapping[str, Any]") -> "Iterator[None]":
    """
    makes attributes ambient for every span started inside the scope.
    Values are stored as baggage entries, so they are stringified and
    travel with outgoing trace headers. Inner scopes add to (and may
    override) the entries of outer ones.

        with attribute_scope({"org.id": "org_123", "user.id": "user_456"}):
            client.chat.completions.create(...)
    """
    ctx = context.get_current()
    for key, value in attributes.items():
        ctx = baggage.set_baggage(key, str(value), context=ctx)

    token = context.attach(ctx)
    try:
        yield
    finally:
        context.detach(token)


async def with_attributes(
    attributes: "Mapping[str, Any]",
    fn: "Callable[..., Union[Awaitable[T], T]]",
    *args: "Any",
    **kwargs: "Any",
) -> "T":
    with attribute_scope(attributes):
        result = fn(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
    return result


def with_attributes_sync(
    attributes: "Mapping[str, Any]", fn: "Callable[..., T]", *args: "Any", **kwargs: "Any"
) -> "T":
    with attribute_scope(attributes):
        return fn(*args, **kwargs)


def get_current_attributes() -> "dict[str, str]":
    return {key: str(value) for key, value in baggage.get_all().items()}


def get_attribute(key: "str") -> "str | None":
    value = baggage.get_baggage(key)
    return None if value is None else str(value)


def extract_trace_headers() -> "dict[str, str]":
    """
    returns traceparent/tracestate/baggage headers for the current
    context, for handing work to another service or a job queue.
    """
    headers: "dict[str, str]" = {}
    propagate.inject(headers)
    return headers


def context_from_headers(headers: "Mapping[str, str]") -> "Context":
    """
    builds a context from propagated headers, starting from an empty
    context rather than the current one.
    """
    return propagate.extract(headers, context=Context())


async def with_extracted_context(
    headers: "Mapping[str, str]",
    fn: "Callable[..., Union[Awaitable[T], T]]",
    *args: "Any",
    **kwargs: "Any",
) -> "T":
    """
    runs fn as a continuation of the trace described by headers.
    """
    token = context.attach(context_from_headers(headers))
    try:
        result = fn(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
    finally:
        context.detach(token)
    return result
