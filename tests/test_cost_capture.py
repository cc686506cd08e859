import asyncio

import pytest

from tokenmeter.cost import capture_cost, get_cost_capture, record_cost, with_cost, with_cost_sync
from tokenmeter.models import UsageData

USAGE = UsageData(provider="openai", model="gpt-4o", input_units=10, output_units=5)


class TestWithCost:
    def test_no_calls(self) -> "None":
        captured = with_cost_sync(lambda: "plain")
        assert captured.result == "plain"
        assert captured.cost == 0.0
        assert captured.usage is None
        assert captured.call_count == 0

    def test_last_call_wins_totals_sum(self) -> "None":
        def work() -> "int":
            record_cost(0.25, None)
            record_cost(0.5, USAGE)
            return 3

        captured = with_cost_sync(work)
        assert captured.result == 3
        assert captured.cost == 0.5
        assert captured.usage is USAGE
        assert captured.total_cost == pytest.approx(0.75)
        assert captured.call_count == 2

    def test_arguments_are_forwarded(self) -> "None":
        captured = with_cost_sync(lambda a, b=0: a + b, 1, b=2)
        assert captured.result == 3

    def test_exception_propagates_and_scope_closes(self) -> "None":
        def work() -> "None":
            record_cost(1.0, USAGE)
            raise ValueError("boom")

        with pytest.raises(ValueError):
            with_cost_sync(work)
        assert get_cost_capture() is None

    @pytest.mark.asyncio
    async def test_async_function(self) -> "None":
        async def work() -> "str":
            await asyncio.sleep(0)
            record_cost(0.1, USAGE)
            return "ok"

        captured = await with_cost(work)
        assert captured.result == "ok"
        assert captured.cost == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_concurrent_scopes_are_isolated(self) -> "None":
        async def work(cost: "float") -> "float":
            await asyncio.sleep(0)
            record_cost(cost, None)
            await asyncio.sleep(0)
            return cost

        first, second = await asyncio.gather(with_cost(work, 0.1), with_cost(work, 0.2))
        assert first.total_cost == pytest.approx(0.1)
        assert second.total_cost == pytest.approx(0.2)


class TestCaptureScopes:
    def test_outside_scope_is_ignored(self) -> "None":
        record_cost(1.0, USAGE)
        assert get_cost_capture() is None

    def test_inner_scope_shadows_outer(self) -> "None":
        with capture_cost() as outer:
            record_cost(1.0, None)
            with capture_cost() as inner:
                record_cost(2.0, USAGE)
            record_cost(3.0, None)

        assert inner.total_cost == 2.0
        assert outer.total_cost == 4.0
        assert outer.call_count == 2
        assert outer.cost == 3.0
