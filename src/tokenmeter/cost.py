import inspect
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Iterator, TypeVar, Union

from tokenmeter.models import UsageData

T = TypeVar("T")


@dataclass
class CostCapture:
    """
    CostCapture collects what monitored calls report inside one scope.
    `cost` and `usage` belong to the most recent call; `total_cost`
    and `call_count` cover every call in the scope.
    """

    cost: "float" = 0.0
    usage: "UsageData | None" = None
    total_cost: "float" = 0.0
    call_count: "int" = 0

    def record(self, cost: "float", usage: "UsageData | None") -> "None":
        self.cost = cost
        self.usage = usage
        self.total_cost += cost
        self.call_count += 1


@dataclass(frozen=True, slots=True)
class CostResult(Generic[T]):
    result: "T"
    cost: "float"
    usage: "UsageData | None"
    total_cost: "float"
    call_count: "int"


_capture: "ContextVar[CostCapture | None]" = ContextVar(
    "tokenmeter_cost_capture", default=None
)


def get_cost_capture() -> "CostCapture | None":
    return _capture.get()


def record_cost(cost: "float", usage: "UsageData | None") -> "None":
    """
    publishes a finished call to the active capture scope, if any.
    """
    capture = _capture.get()
    if capture is not None:
        capture.record(cost, usage)


@contextmanager
def capture_cost() -> "Iterator[CostCapture]":
    """
    opens a capture scope. Nested scopes shadow outer ones: calls made
    inside the inner scope are not seen by the outer capture.
    """
    capture = CostCapture()
    token = _capture.set(capture)
    try:
        yield capture
    finally:
        _capture.reset(token)


def _result(result: "T", capture: "CostCapture") -> "CostResult[T]":
    return CostResult(
        result=result,
        cost=capture.cost,
        usage=capture.usage,
        total_cost=capture.total_cost,
        call_count=capture.call_count,
    )


async def with_cost(
    fn: "Callable[..., Union[Awaitable[T], T]]", *args: "Any", **kwargs: "Any"
) -> "CostResult[T]":
    """
    runs `fn` and returns its result together with the cost of the
    monitored calls it made. With no monitored calls the cost is 0
    and usage is None.
    """
    with capture_cost() as capture:
        result = fn(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
    return _result(result, capture)


def with_cost_sync(fn: "Callable[..., T]", *args: "Any", **kwargs: "Any") -> "CostResult[T]":
    with capture_cost() as capture:
        result = fn(*args, **kwargs)
    return _result(result, capture)
