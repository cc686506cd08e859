import datetime
import decimal
import enum
import functools
import inspect
import pathlib
import re
import uuid
import weakref
from types import MappingProxyType
from typing import Any, Callable, Mapping

import structlog
from opentelemetry import trace
from opentelemetry.trace import SpanKind

from tokenmeter.constants import (
    ATTR_PROVIDER,
    BLOCKED_PROPERTIES,
    CLIENT_KEYS,
    FACTORY_METHODS,
    RESPONSE_KEYS,
    RPC_METHOD,
    RPC_SERVICE,
)
from tokenmeter.instrumentation.detect import detect_provider
from tokenmeter.instrumentation.hooks import fire_hook, invoke_before_request, run_hook
from tokenmeter.instrumentation.spans import get_baggage_attributes, get_tracer
from tokenmeter.instrumentation.stream import (
    AsyncStreamWrapper,
    SyncStreamWrapper,
    is_async_stream,
    is_sync_stream,
)
from tokenmeter.instrumentation.tracker import CallTracker
from tokenmeter.models import MonitorOptions, RequestContext
from tokenmeter.pricing.manifest import get_cached_manifest
from tokenmeter.registry import get_factory_methods
from tokenmeter.strategies.base import has_field

logger = structlog.get_logger()

_TERMINAL_TYPES = (
    str,
    bytes,
    bytearray,
    memoryview,
    int,
    float,
    complex,
    bool,
    list,
    tuple,
    set,
    frozenset,
    Mapping,
    type,
    BaseException,
    enum.Enum,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    decimal.Decimal,
    uuid.UUID,
    pathlib.PurePath,
    re.Pattern,
)


def _use_span(span: "trace.Span") -> "Any":
    # error recording is done by the call tracker
    return trace.use_span(
        span, end_on_exit=False, record_exception=False, set_status_on_exception=False
    )


def is_terminal(value: "Any") -> "bool":
    """
    True for values that are returned as they are instead of being wrapped.
    """
    return value is None or isinstance(value, _TERMINAL_TYPES)


def should_proxy(value: "Any", method_path: "tuple[str, ...]") -> "bool":
    """
    decides whether a call result is a sub-client (wrapped) or a finished
    response (returned verbatim). Response markers win over client markers.
    """
    if is_terminal(value) or isinstance(value, MonitoredProxy):
        return False
    if is_async_stream(value) or is_sync_stream(value):
        return False
    if any(has_field(value, key) for key in RESPONSE_KEYS):
        return False
    if any(has_field(value, key) for key in CLIENT_KEYS):
        return True

    name = method_path[-1] if method_path else ""
    return name.startswith(("get", "create")) or name in ("model", "models")


class MonitoredProxy:
    """
    MonitoredProxy stands in for an SDK client or one of its nested
    resources. Attribute reads are forwarded to the target: methods come
    back wrapped so each call gets a span, nested resources come back as
    further proxies, and everything else is returned untouched.
    """

    __slots__ = ("_tm_target", "_tm_path", "_tm_monitor", "__weakref__")

    def __init__(self, target: "Any", path: "tuple[str, ...]", monitor: "Monitor"):
        object.__setattr__(self, "_tm_target", target)
        object.__setattr__(self, "_tm_path", path)
        object.__setattr__(self, "_tm_monitor", monitor)

    @property  # type: ignore[misc]
    def __class__(self) -> "type":
        return type(object.__getattribute__(self, "_tm_target"))

    def __getattr__(self, name: "str") -> "Any":
        target = object.__getattribute__(self, "_tm_target")
        path = object.__getattribute__(self, "_tm_path")
        monitor = object.__getattribute__(self, "_tm_monitor")
        return monitor.wrap_member(target, name, path)

    def __setattr__(self, name: "str", value: "Any") -> "None":
        setattr(object.__getattribute__(self, "_tm_target"), name, value)

    def __delattr__(self, name: "str") -> "None":
        delattr(object.__getattribute__(self, "_tm_target"), name)

    def __dir__(self) -> "list[str]":
        return dir(object.__getattribute__(self, "_tm_target"))

    def __repr__(self) -> "str":
        return repr(object.__getattribute__(self, "_tm_target"))

    def __str__(self) -> "str":
        return str(object.__getattribute__(self, "_tm_target"))

    def __bool__(self) -> "bool":
        return bool(object.__getattribute__(self, "_tm_target"))

    def __eq__(self, other: "Any") -> "bool":
        if isinstance(other, MonitoredProxy):
            other = object.__getattribute__(other, "_tm_target")
        return object.__getattribute__(self, "_tm_target") == other

    def __hash__(self) -> "int":
        return hash(object.__getattribute__(self, "_tm_target"))

    def __enter__(self) -> "Any":
        target = object.__getattribute__(self, "_tm_target")
        entered = target.__enter__()
        return self if entered is target else entered

    def __exit__(self, *exc_info: "Any") -> "Any":
        return object.__getattribute__(self, "_tm_target").__exit__(*exc_info)

    async def __aenter__(self) -> "Any":
        target = object.__getattribute__(self, "_tm_target")
        entered = await target.__aenter__()
        return self if entered is target else entered

    async def __aexit__(self, *exc_info: "Any") -> "Any":
        return await object.__getattribute__(self, "_tm_target").__aexit__(*exc_info)


def unwrap(value: "Any") -> "Any":
    """
    returns the object behind a monitored proxy, or value itself.
    """
    if isinstance(value, MonitoredProxy):
        return object.__getattribute__(value, "_tm_target")
    return value


class Monitor:
    """
    Monitor holds the per-client state shared by every proxy of one
    monitored client, and runs the call lifecycle: before_request,
    the call itself, usage extraction, pricing, span finalization and
    after_response/on_error.
    """

    def __init__(self, options: "MonitorOptions", provider: "str"):
        self.options = options
        self.provider = provider
        self.client_name = options.name or provider
        self._tracer = get_tracer(options.tracer_provider)
        # one proxy per (target, path) while it is referenced
        self._proxies: "weakref.WeakValueDictionary[tuple[int, tuple[str, ...]], MonitoredProxy]" = (
            weakref.WeakValueDictionary()
        )

    def wrap(self, target: "Any", path: "tuple[str, ...]") -> "MonitoredProxy":
        if isinstance(target, MonitoredProxy):
            return target

        key = (id(target), path)
        proxy = self._proxies.get(key)
        if proxy is not None and object.__getattribute__(proxy, "_tm_target") is target:
            return proxy

        proxy = MonitoredProxy(target, path, self)
        self._proxies[key] = proxy
        return proxy

    def wrap_member(self, target: "Any", name: "str", path: "tuple[str, ...]") -> "Any":
        value = getattr(target, name)
        if name.startswith("_") or name in BLOCKED_PROPERTIES:
            return value
        if isinstance(value, MonitoredProxy) or is_terminal(value):
            return value
        if callable(value):
            return self._wrap_callable(value, path + (name,))
        return self.wrap(value, path + (name,))

    def _is_factory(self, name: "str") -> "bool":
        return name in FACTORY_METHODS or name in get_factory_methods(self.provider)

    def _maybe_wrap(self, value: "Any", method_path: "tuple[str, ...]") -> "Any":
        if should_proxy(value, method_path):
            return self.wrap(value, method_path)
        return value

    def _wrap_callable(self, fn: "Callable[..., Any]", method_path: "tuple[str, ...]") -> "Any":
        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def async_wrapper(*args: "Any", **kwargs: "Any") -> "Any":
                return await self.call_async(fn, method_path, args, kwargs)

            return async_wrapper

        @functools.wraps(fn)
        def wrapper(*args: "Any", **kwargs: "Any") -> "Any":
            return self.call(fn, method_path, args, kwargs)

        return wrapper

    def _start(
        self, method_path: "tuple[str, ...]", args: "tuple[Any, ...]", kwargs: "dict[str, Any]"
    ) -> "CallTracker":
        method = ".".join(method_path)
        span_name = f"{self.client_name}.{method}"
        attributes = {
            **self.options.attributes,
            **get_baggage_attributes(),
            ATTR_PROVIDER: self.provider,
            RPC_SERVICE: self.client_name,
            RPC_METHOD: method,
        }
        span = self._tracer.start_span(span_name, kind=SpanKind.CLIENT, attributes=attributes)
        request = RequestContext(
            method_path=method_path,
            args=tuple(args),
            kwargs=MappingProxyType(dict(kwargs)),
            provider=self.provider,
            span_name=span_name,
        )
        return CallTracker(span, request, self.options)

    def _wrap_stream(self, tracker: "CallTracker", value: "Any") -> "Any":
        if is_async_stream(value):
            return AsyncStreamWrapper(value, tracker, self.options)
        if is_sync_stream(value):
            return SyncStreamWrapper(value, tracker, self.options)
        return None

    # sync call sites

    def call(
        self,
        fn: "Callable[..., Any]",
        method_path: "tuple[str, ...]",
        args: "tuple[Any, ...]",
        kwargs: "dict[str, Any]",
    ) -> "Any":
        """
        runs an intercepted call made from a plain function. When the
        target or before_request hands back an awaitable, the rest of
        the lifecycle moves into the returned coroutine.
        """
        if self._is_factory(method_path[-1]):
            result = fn(*args, **kwargs)
            if inspect.isawaitable(result):
                return self._await_factory(result, method_path)
            return self._maybe_wrap(result, method_path)

        tracker = self._start(method_path, args, kwargs)
        with _use_span(tracker.span):
            try:
                before = invoke_before_request(self.options.before_request, tracker.request)
                if inspect.isawaitable(before):
                    return self._call_after_hook(tracker, before, fn, args, kwargs)
                result = fn(*args, **kwargs)
            except Exception as exc:
                fire_hook("on_error", self.options.on_error, tracker.fail(exc))
                raise
            except BaseException:
                tracker.abandon()
                raise

        if inspect.isawaitable(result):
            return self._await_result(tracker, result)

        stream = self._wrap_stream(tracker, result)
        if stream is not None:
            return stream

        fire_hook("after_response", self.options.after_response, tracker.complete(result))
        return self._maybe_wrap(result, method_path)

    # async call sites

    async def call_async(
        self,
        fn: "Callable[..., Any]",
        method_path: "tuple[str, ...]",
        args: "tuple[Any, ...]",
        kwargs: "dict[str, Any]",
    ) -> "Any":
        if self._is_factory(method_path[-1]):
            return await self._await_factory(fn(*args, **kwargs), method_path)

        tracker = self._start(method_path, args, kwargs)
        with _use_span(tracker.span):
            try:
                before = invoke_before_request(self.options.before_request, tracker.request)
                if inspect.isawaitable(before):
                    await before
                result = await fn(*args, **kwargs)
            except Exception as exc:
                await run_hook("on_error", self.options.on_error, tracker.fail(exc))
                raise
            except BaseException:
                tracker.abandon()
                raise

        return await self._resolve(tracker, result)

    async def _await_factory(self, awaitable: "Any", method_path: "tuple[str, ...]") -> "Any":
        return self._maybe_wrap(await awaitable, method_path)

    async def _call_after_hook(
        self,
        tracker: "CallTracker",
        before: "Any",
        fn: "Callable[..., Any]",
        args: "tuple[Any, ...]",
        kwargs: "dict[str, Any]",
    ) -> "Any":
        with _use_span(tracker.span):
            try:
                await before
                result = fn(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:
                await run_hook("on_error", self.options.on_error, tracker.fail(exc))
                raise
            except BaseException:
                tracker.abandon()
                raise

        return await self._resolve(tracker, result)

    async def _await_result(self, tracker: "CallTracker", awaitable: "Any") -> "Any":
        with _use_span(tracker.span):
            try:
                result = await awaitable
            except Exception as exc:
                await run_hook("on_error", self.options.on_error, tracker.fail(exc))
                raise
            except BaseException:
                tracker.abandon()
                raise

        return await self._resolve(tracker, result)

    async def _resolve(self, tracker: "CallTracker", result: "Any") -> "Any":
        stream = self._wrap_stream(tracker, result)
        if stream is not None:
            return stream

        await run_hook("after_response", self.options.after_response, tracker.complete(result))
        return self._maybe_wrap(result, tracker.request.method_path)


def monitor(client: "Any", options: "MonitorOptions | None" = None, **kwargs: "Any") -> "Any":
    """
    returns an instrumented stand-in for an AI SDK client. Every method
    call made through it produces a client span carrying usage and cost;
    the values the SDK returns are passed back unchanged.

    Options come either as a MonitorOptions or as its fields by keyword:

        client = monitor(OpenAI(), name="openai-prod", attributes={"team": "search"})
    """
    if isinstance(client, MonitoredProxy):
        return client

    if options is None:
        options = MonitorOptions(**kwargs)
    elif kwargs:
        raise TypeError("pass either options or keyword options, not both")

    provider = options.provider or detect_provider(client)
    logger.debug("client_monitored", provider=provider, name=options.name or provider)

    # warms the pricing cache in the background when a loop is running
    get_cached_manifest()

    return Monitor(options, provider).wrap(client, ())
