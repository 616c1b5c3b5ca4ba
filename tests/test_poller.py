"""Tests for inditrade.market.poller — ordering and lifecycle."""

import asyncio

import pytest

from inditrade.errors import NetworkTimeout
from inditrade.market.models import Quote
from inditrade.market.poller import QuotePoller


def _quote(symbol: str, price: float) -> Quote:
    return Quote(symbol, price, 0.0, 0.0, 0, "INR", 0, "OPEN")


class TestPollOnce:
    @pytest.mark.asyncio
    async def test_applies_result_and_notifies(self):
        updates = []

        async def fetch(symbols):
            return {s: _quote(s, 100.0) for s in symbols}

        poller = QuotePoller(fetch, lambda: ["TCS.NS", "TCS.NS", "INFY.NS"], on_update=updates.append)
        assert await poller.poll_once() is True
        assert set(poller.latest) == {"TCS.NS", "INFY.NS"}
        assert len(updates) == 1

    @pytest.mark.asyncio
    async def test_empty_symbol_set_skips_fetch(self):
        calls = []

        async def fetch(symbols):
            calls.append(symbols)
            return {}

        poller = QuotePoller(fetch, lambda: [])
        assert await poller.poll_once() is False
        assert calls == []

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_previous(self):
        results = [{"TCS.NS": _quote("TCS.NS", 100.0)}, NetworkTimeout("slow")]

        async def fetch(symbols):
            outcome = results.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        poller = QuotePoller(fetch, lambda: ["TCS.NS"])
        await poller.poll_once()
        assert await poller.poll_once() is False
        assert poller.latest["TCS.NS"].price == 100.0

    @pytest.mark.asyncio
    async def test_late_result_dropped(self):
        """A slow earlier refresh must not overwrite a newer one."""
        release_first = asyncio.Event()
        prices = iter([100.0, 200.0])

        async def fetch(symbols):
            price = next(prices)
            if price == 100.0:
                await release_first.wait()
            return {"TCS.NS": _quote("TCS.NS", price)}

        poller = QuotePoller(fetch, lambda: ["TCS.NS"])
        first = asyncio.create_task(poller.poll_once())
        await asyncio.sleep(0)
        assert await poller.poll_once() is True

        release_first.set()
        assert await first is False
        assert poller.latest["TCS.NS"].price == 200.0

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_break_refresh(self, caplog):
        def explode(quotes):
            raise RuntimeError("listener gone")

        async def fetch(symbols):
            return {s: _quote(s, 100.0) for s in symbols}

        poller = QuotePoller(fetch, lambda: ["TCS.NS"], on_update=explode)
        assert await poller.poll_once() is True
        assert poller.latest["TCS.NS"].price == 100.0
        assert "listener gone" in caplog.text


class TestLifecycle:
    def test_rejects_non_positive_interval(self):
        async def fetch(symbols):
            return {}

        with pytest.raises(ValueError):
            QuotePoller(fetch, lambda: ["TCS.NS"], interval=0)

    @pytest.mark.asyncio
    async def test_start_polls_until_stopped(self):
        ticks = []

        async def fetch(symbols):
            ticks.append(symbols)
            return {s: _quote(s, 1.0) for s in symbols}

        poller = QuotePoller(fetch, lambda: ["TCS.NS"], interval=0.01)
        poller.start()
        poller.start()
        assert poller.running
        await asyncio.sleep(0.05)
        await poller.stop()

        assert not poller.running
        assert len(ticks) >= 2
        count = len(ticks)
        await asyncio.sleep(0.03)
        assert len(ticks) == count

    @pytest.mark.asyncio
    async def test_stop_cancels_inflight_fetch(self):
        cancelled = asyncio.Event()

        async def fetch(symbols):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return {}

        poller = QuotePoller(fetch, lambda: ["TCS.NS"], interval=10)
        poller.start()
        await asyncio.sleep(0.01)
        await poller.stop()
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_crashed_background_tick_is_logged(self, caplog):
        def symbols():
            raise RuntimeError("watchlist unavailable")

        async def fetch(symbols):
            return {}

        poller = QuotePoller(fetch, symbols, interval=10)
        poller.start()
        await asyncio.sleep(0.01)
        await poller.stop()
        assert "watchlist unavailable" in caplog.text
