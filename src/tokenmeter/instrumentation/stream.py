import asyncio
import inspect
from typing import Any

from tokenmeter.instrumentation.hooks import fire_hook, run_hook
from tokenmeter.instrumentation.tracker import CallTracker
from tokenmeter.models import MonitorOptions


def is_async_stream(value: "Any") -> "bool":
    return hasattr(type(value), "__aiter__")


def is_sync_stream(value: "Any") -> "bool":
    """
    only real iterators count as streams: containers such as lists or
    dicts are iterable but are plain results.
    """
    if isinstance(value, (str, bytes, bytearray)):
        return False
    cls = type(value)
    return hasattr(cls, "__iter__") and hasattr(cls, "__next__")


def _finish_abandoned(wrapper: "Any") -> "None":
    """
    finalizes a stream dropped before exhaustion or close, e.g. after a
    `break` out of the loop. Runs from __del__, so it cannot await:
    async hooks are scheduled on the running loop if there is one.
    """
    state = wrapper.__dict__
    tracker = state.get("_tracker")
    if tracker is None or tracker.finalized:
        return
    ctx = tracker.finish_stream()
    if ctx is not None:
        fire_hook("after_response", state["_options"].after_response, ctx)


class AsyncStreamWrapper:
    """
    AsyncStreamWrapper passes chunks of an async stream through
    unchanged while accumulating usage, and finalizes the call's span
    exactly once on exhaustion, early close or error, or when the wrapper
    is garbage collected unfinished. Cancellation is treated as a close,
    not an error.
    """

    def __init__(self, stream: "Any", tracker: "CallTracker", options: "MonitorOptions"):
        self._stream = stream
        self._iterator: "Any" = None
        self._tracker = tracker
        self._options = options
        tracker.seed(stream)

    def __getattr__(self, name: "str") -> "Any":
        try:
            stream = self.__dict__["_stream"]
        except KeyError:
            raise AttributeError(name) from None
        return getattr(stream, name)

    def __aiter__(self) -> "AsyncStreamWrapper":
        return self

    async def __anext__(self) -> "Any":
        if self._iterator is None:
            self._iterator = self._stream.__aiter__()

        try:
            chunk = await self._iterator.__anext__()
        except StopAsyncIteration:
            await self._finish()
            raise
        except asyncio.CancelledError:
            await self._finish()
            raise
        except Exception as exc:
            await self._fail(exc)
            raise

        self._tracker.record_chunk(chunk)
        return chunk

    async def _finish(self) -> "None":
        ctx = self._tracker.finish_stream()
        if ctx is not None:
            await run_hook("after_response", self._options.after_response, ctx)

    async def _fail(self, error: "BaseException") -> "None":
        ctx = self._tracker.fail_stream(error)
        if ctx is not None:
            await run_hook("on_error", self._options.on_error, ctx)

    async def aclose(self) -> "None":
        await self._finish()
        target = self._iterator if self._iterator is not None else self._stream
        close = getattr(target, "aclose", None) or getattr(self._stream, "close", None)
        if close is not None:
            result = close()
            if inspect.isawaitable(result):
                await result

    async def athrow(self, error: "BaseException") -> "Any":
        await self._fail(error)
        athrow = getattr(self._iterator, "athrow", None)
        if athrow is None:
            raise error
        return await athrow(error)

    async def __aenter__(self) -> "AsyncStreamWrapper":
        return self

    async def __aexit__(self, *exc_info: "Any") -> "None":
        await self.aclose()

    def __del__(self) -> "None":
        _finish_abandoned(self)


class SyncStreamWrapper:
    """
    blocking counterpart of AsyncStreamWrapper for SDKs that return
    plain iterators. Async hooks are scheduled on the running loop.
    """

    def __init__(self, stream: "Any", tracker: "CallTracker", options: "MonitorOptions"):
        self._stream = stream
        self._iterator = iter(stream)
        self._tracker = tracker
        self._options = options
        tracker.seed(stream)

    def __getattr__(self, name: "str") -> "Any":
        try:
            stream = self.__dict__["_stream"]
        except KeyError:
            raise AttributeError(name) from None
        return getattr(stream, name)

    def __iter__(self) -> "SyncStreamWrapper":
        return self

    def __next__(self) -> "Any":
        try:
            chunk = next(self._iterator)
        except StopIteration:
            self._finish()
            raise
        except Exception as exc:
            self._fail(exc)
            raise

        self._tracker.record_chunk(chunk)
        return chunk

    def _finish(self) -> "None":
        ctx = self._tracker.finish_stream()
        if ctx is not None:
            fire_hook("after_response", self._options.after_response, ctx)

    def _fail(self, error: "BaseException") -> "None":
        ctx = self._tracker.fail_stream(error)
        if ctx is not None:
            fire_hook("on_error", self._options.on_error, ctx)

    def close(self) -> "None":
        self._finish()
        close = getattr(self._iterator, "close", None) or getattr(self._stream, "close", None)
        if close is not None:
            close()

    def throw(self, error: "BaseException") -> "Any":
        self._fail(error)
        throw = getattr(self._iterator, "throw", None)
        if throw is None:
            raise error
        return throw(error)

    def __enter__(self) -> "SyncStreamWrapper":
        return self

    def __exit__(self, *exc_info: "Any") -> "None":
        self.close()

    def __del__(self) -> "None":
        _finish_abandoned(self)
