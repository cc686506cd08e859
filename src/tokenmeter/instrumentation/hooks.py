import asyncio
import inspect
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger()

# strong refs for hooks scheduled from sync call sites
_background: "set[asyncio.Task[None]]" = set()


def invoke_before_request(hook: "Callable[[Any], Any] | None", ctx: "Any") -> "Any":
    """
    runs the before_request hook and returns its result, which may be
    an awaitable. Exceptions propagate: raising aborts the call.
    """
    if hook is None:
        return None
    return hook(ctx)


async def run_hook(name: "str", hook: "Callable[[Any], Any] | None", ctx: "Any") -> "None":
    """
    runs a best-effort hook (after_response, on_error), awaiting it
    when it is async. Failures are logged and discarded.
    """
    if hook is None:
        return
    try:
        result = hook(ctx)
        if inspect.isawaitable(result):
            await result
    except Exception as exc:
        logger.warning("hook_failed", hook=name, span_name=ctx.span_name, error=str(exc))


def fire_hook(name: "str", hook: "Callable[[Any], Any] | None", ctx: "Any") -> "None":
    """
    sync variant of run_hook. An async hook called from a sync call site
    is scheduled on the running loop, or dropped with a warning when
    there is none.
    """
    if hook is None:
        return
    try:
        result = hook(ctx)
    except Exception as exc:
        logger.warning("hook_failed", hook=name, span_name=ctx.span_name, error=str(exc))
        return

    if inspect.isawaitable(result):
        _schedule(name, result, ctx.span_name)


def _schedule(name: "str", awaitable: "Awaitable[Any]", span_name: "str") -> "None":
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.warning("async_hook_without_loop", hook=name, span_name=span_name)
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        return

    async def _await() -> "None":
        try:
            await awaitable
        except Exception as exc:
            logger.warning("hook_failed", hook=name, span_name=span_name, error=str(exc))

    task = loop.create_task(_await())
    _background.add(task)
    task.add_done_callback(_background.discard)
