"""Announcement-to-notification flow on a virtual clock."""

import pytest

from boss_alerts.alerts.channels import LogChannel
from boss_alerts.alerts.dispatcher import AlertDispatcher, render_message
from boss_alerts.alerts.scheduler import AlertScheduler
from boss_alerts.alerts.service import AlertService
from boss_alerts.ingestion.schemas import InboundEvent

WATCH_CHANNEL = "111111111111111111"
ROLE_ID = "222222222222222222"


@pytest.fixture
def pipeline(store, clock, metrics):
    channel = LogChannel()
    service = AlertService(
        AlertScheduler(store),
        watch_channel_id=WATCH_CHANNEL,
        lead_minutes=5,
        clock=clock,
        metrics=metrics,
    )
    dispatcher = AlertDispatcher(
        store,
        channel,
        message=render_message(ROLE_ID, 5),
        clock=clock,
        metrics=metrics,
    )
    return service, dispatcher, channel


class TestAnnouncementFlow:

    @pytest.mark.asyncio
    async def test_fires_lead_minutes_before_spawn(self, pipeline, store, clock, announcement):
        service, dispatcher, channel = pipeline

        await service.process_event(announcement)

        assert (await dispatcher.run_tick()).claimed == 0
        clock.advance(minutes=4, seconds=59)
        assert (await dispatcher.run_tick()).claimed == 0
        assert channel.sent == []

        clock.advance(seconds=1)
        result = await dispatcher.run_tick()

        assert result.fired == 1
        [(destination, content)] = channel.sent
        assert destination == WATCH_CHANNEL
        assert f"<@&{ROLE_ID}>" in content
        assert "5 minutes" in content
        alert = await store.get_by_source_event_id(announcement.event_id)
        assert alert.fired_at == clock.now

    @pytest.mark.asyncio
    async def test_short_countdown_fires_on_next_tick(self, pipeline, clock):
        service, dispatcher, channel = pipeline

        await service.process_event(InboundEvent(
            event_id="evt-short",
            channel_id=WATCH_CHANNEL,
            content="World Boss spawning in 3 minutes",
        ))

        assert (await dispatcher.run_tick()).fired == 1
        assert len(channel.sent) == 1

    @pytest.mark.asyncio
    async def test_redelivered_event_notifies_once(self, pipeline, store, clock, announcement):
        service, dispatcher, channel = pipeline

        await service.process_event(announcement)
        clock.advance(minutes=1)
        await service.process_event(announcement)
        assert len(store) == 1

        clock.advance(minutes=10)
        await dispatcher.run_tick()
        await dispatcher.run_tick()
        await service.process_event(announcement)
        await dispatcher.run_tick()

        assert len(channel.sent) == 1
