"""Tests for the AlertDispatcher tick and loop."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from boss_alerts.alerts.channels import LogChannel, NotificationChannel
from boss_alerts.alerts.config import MARK_MARGIN_SECONDS, DispatchConfig
from boss_alerts.alerts.dispatcher import AlertDispatcher, render_message
from boss_alerts.alerts.memory import InMemoryAlertStore
from boss_alerts.alerts.schemas import Alert

MESSAGE = "⏰ <@&role> World Boss spawning in 5 minutes!"


class FlakyChannel(NotificationChannel):
    """Fails sends to the destinations listed in ``failing``."""

    def __init__(self, failing=(), raising=(), hanging=()):
        self.failing = set(failing)
        self.raising = set(raising)
        self.hanging = set(hanging)
        self.sent: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "flaky"

    async def send(self, destination_id: str, content: str) -> bool:
        if destination_id in self.raising:
            raise RuntimeError("boom")
        if destination_id in self.hanging:
            await asyncio.sleep(10)
        if destination_id in self.failing:
            return False
        self.sent.append((destination_id, content))
        return True


async def _insert(store, source, destination="chan-1", run_at=0):
    alert = Alert(source_event_id=source, destination_id=destination, run_at=run_at, created_at=0)
    await store.insert_if_absent(alert)
    return alert


def _dispatcher(store, channel, clock, metrics, **config):
    return AlertDispatcher(
        store,
        channel,
        message=MESSAGE,
        tick_interval=0.01,
        config=DispatchConfig(**config),
        clock=clock,
        metrics=metrics,
    )


class TestRenderMessage:

    def test_default_template(self):
        message = render_message("123", 5)
        assert "<@&123>" in message
        assert "5 minutes" in message

    def test_custom_template(self):
        assert render_message("9", 3, "{role_id}/{lead_minutes}") == "9/3"


class TestRunTick:

    @pytest.mark.asyncio
    async def test_nothing_due(self, store, clock, metrics):
        await _insert(store, "evt-1", run_at=clock.now + 60_000)
        channel = LogChannel()

        result = await _dispatcher(store, channel, clock, metrics).run_tick()

        assert result.claimed == 0
        assert result.idle
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_fires_due_alert(self, store, clock, metrics):
        await _insert(store, "evt-1", run_at=clock.now)
        channel = LogChannel()

        result = await _dispatcher(store, channel, clock, metrics).run_tick()

        assert (result.claimed, result.fired, result.failed) == (1, 1, 0)
        assert channel.sent == [("chan-1", MESSAGE)]
        alert = await store.get_by_source_event_id("evt-1")
        assert alert.fired_at == clock.now

    @pytest.mark.asyncio
    async def test_fired_alert_not_sent_again(self, store, clock, metrics):
        await _insert(store, "evt-1", run_at=clock.now)
        channel = LogChannel()
        dispatcher = _dispatcher(store, channel, clock, metrics)

        await dispatcher.run_tick()
        clock.advance(minutes=10)
        result = await dispatcher.run_tick()

        assert result.claimed == 0
        assert len(channel.sent) == 1

    @pytest.mark.asyncio
    async def test_explicit_now_overrides_clock(self, store, clock, metrics):
        await _insert(store, "evt-1", run_at=clock.now + 60_000)
        dispatcher = _dispatcher(store, LogChannel(), clock, metrics)

        result = await dispatcher.run_tick(now=clock.now + 60_000)

        assert result.fired == 1

    @pytest.mark.asyncio
    async def test_send_failure_releases_claim(self, store, clock, metrics):
        await _insert(store, "evt-1", destination="down", run_at=clock.now)
        channel = FlakyChannel(failing={"down"})
        dispatcher = _dispatcher(store, channel, clock, metrics)

        result = await dispatcher.run_tick()

        assert (result.claimed, result.fired, result.failed) == (1, 0, 1)
        alert = await store.get_by_source_event_id("evt-1")
        assert alert.fired_at is None
        assert alert.claimed_at is None
        metrics.record_dispatch_failure.assert_called_with("send_failed")

        # Retried on the next tick once the destination recovers
        channel.failing.clear()
        clock.advance(seconds=10)
        result = await dispatcher.run_tick()
        assert result.fired == 1
        assert channel.sent == [("down", MESSAGE)]

    @pytest.mark.asyncio
    async def test_failure_does_not_abort_batch(self, store, clock, metrics):
        await _insert(store, "evt-1", destination="ok-1", run_at=clock.now)
        await _insert(store, "evt-2", destination="raises", run_at=clock.now)
        await _insert(store, "evt-3", destination="fails", run_at=clock.now)
        await _insert(store, "evt-4", destination="ok-2", run_at=clock.now)
        channel = FlakyChannel(failing={"fails"}, raising={"raises"})

        result = await _dispatcher(store, channel, clock, metrics).run_tick()

        assert (result.claimed, result.fired, result.failed) == (4, 2, 2)
        assert {d for d, _ in channel.sent} == {"ok-1", "ok-2"}

    @pytest.mark.asyncio
    async def test_send_timeout_is_failure(self, store, clock, metrics):
        await _insert(store, "evt-1", destination="slow", run_at=clock.now)
        channel = FlakyChannel(hanging={"slow"})
        dispatcher = _dispatcher(store, channel, clock, metrics, send_timeout_seconds=0.05)

        result = await dispatcher.run_tick()

        assert result.failed == 1
        metrics.record_dispatch_failure.assert_called_with("timeout")
        alert = await store.get_by_source_event_id("evt-1")
        assert alert.fired_at is None
        assert alert.claimed_at is None

    @pytest.mark.asyncio
    async def test_mark_failure_keeps_claim(self, store, clock, metrics):
        await _insert(store, "evt-1", run_at=clock.now)
        store.mark_fired = AsyncMock(side_effect=ConnectionError("db down"))
        store.release = AsyncMock()
        channel = LogChannel()

        result = await _dispatcher(store, channel, clock, metrics).run_tick()

        assert result.failed == 1
        assert len(channel.sent) == 1
        store.release.assert_not_called()
        metrics.record_dispatch_failure.assert_called_with("mark_failed")

    @pytest.mark.asyncio
    async def test_mark_failure_resent_after_claim_expires(self, store, clock, metrics):
        await _insert(store, "evt-1", run_at=clock.now)
        real_mark_fired = store.mark_fired
        store.mark_fired = AsyncMock(side_effect=ConnectionError("db down"))
        channel = LogChannel()
        dispatcher = _dispatcher(store, channel, clock, metrics)

        await dispatcher.run_tick()
        store.mark_fired = real_mark_fired

        clock.advance(seconds=10)
        assert (await dispatcher.run_tick()).claimed == 0

        clock.advance(minutes=5)
        result = await dispatcher.run_tick()
        assert result.fired == 1
        assert len(channel.sent) == 2

    @pytest.mark.asyncio
    async def test_release_failure_is_logged_not_raised(self, store, clock, metrics):
        await _insert(store, "evt-1", destination="down", run_at=clock.now)
        store.release = AsyncMock(side_effect=ConnectionError("db down"))

        result = await _dispatcher(store, FlakyChannel(failing={"down"}), clock, metrics).run_tick()

        assert result.failed == 1
        metrics.record_dispatch_failure.assert_called_with("release_failed")

    @pytest.mark.asyncio
    async def test_in_flight_send_keeps_claim(self, clock, metrics):
        config = DispatchConfig(send_timeout_seconds=0.2, claim_timeout_seconds=31)
        store = InMemoryAlertStore(claim_timeout_ms=config.claim_timeout_ms)
        await _insert(store, "evt-1", destination="slow", run_at=clock.now)
        channel = FlakyChannel(hanging={"slow"})
        first = AlertDispatcher(store, channel, MESSAGE, config=config, clock=clock, metrics=metrics)
        second = AlertDispatcher(store, LogChannel(), MESSAGE, config=config, clock=clock, metrics=metrics)

        in_flight = asyncio.create_task(first.run_tick())
        await asyncio.sleep(0.05)
        clock.advance(seconds=config.send_timeout_seconds + MARK_MARGIN_SECONDS)

        assert (await second.run_tick()).claimed == 0
        assert (await in_flight).failed == 1

    @pytest.mark.asyncio
    async def test_claim_error_propagates(self, clock, metrics):
        store = AsyncMock()
        store.claim_due.side_effect = ConnectionError("db down")

        with pytest.raises(ConnectionError):
            await _dispatcher(store, LogChannel(), clock, metrics).run_tick()

    @pytest.mark.asyncio
    async def test_batch_size_limits_claims(self, store, clock, metrics):
        for i in range(5):
            await _insert(store, f"evt-{i}", run_at=clock.now)

        result = await _dispatcher(store, LogChannel(), clock, metrics, batch_size=2).run_tick()

        assert result.claimed == 2
        assert len(await store.list_pending()) == 3

    @pytest.mark.asyncio
    async def test_overlapping_dispatchers_send_once(self, store, clock, metrics):
        for i in range(6):
            await _insert(store, f"evt-{i}", destination=f"chan-{i}", run_at=clock.now)
        channel = LogChannel()
        first = _dispatcher(store, channel, clock, metrics)
        second = _dispatcher(store, channel, clock, metrics)

        a, b = await asyncio.gather(first.run_tick(), second.run_tick())

        assert a.fired + b.fired == 6
        assert sorted(d for d, _ in channel.sent) == [f"chan-{i}" for i in range(6)]

    @pytest.mark.asyncio
    async def test_records_tick_metrics(self, store, clock, metrics):
        await _insert(store, "evt-1", run_at=clock.now)

        await _dispatcher(store, LogChannel(), clock, metrics).run_tick()

        kwargs = metrics.record_tick.call_args.kwargs
        assert kwargs["claimed"] == 1
        assert kwargs["fired"] == 1


class TestLoop:

    @pytest.mark.asyncio
    async def test_start_and_stop(self, store, clock, metrics):
        await _insert(store, "evt-1", run_at=clock.now)
        channel = LogChannel()
        dispatcher = _dispatcher(store, channel, clock, metrics)

        task = asyncio.create_task(dispatcher.start())
        await asyncio.sleep(0.05)
        assert dispatcher.is_running

        await dispatcher.stop()
        await asyncio.wait_for(task, timeout=1)

        assert not dispatcher.is_running
        assert len(channel.sent) == 1

    @pytest.mark.asyncio
    async def test_loop_survives_tick_errors(self, clock, metrics):
        store = AsyncMock()
        store.claim_due.side_effect = [ConnectionError("db down"), [], [], [], [], [], []]
        dispatcher = _dispatcher(store, LogChannel(), clock, metrics)

        task = asyncio.create_task(dispatcher.start())
        await asyncio.sleep(0.05)
        await dispatcher.stop()
        await asyncio.wait_for(task, timeout=1)

        assert store.claim_due.await_count >= 2
