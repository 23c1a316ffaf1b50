"""
Tests for the event bus.
"""

import pytest

from triage_service.core.event_bus import EventBus, create_event_id
from triage_service.models.events import EventType, QueueEvent


def make_event(event_type=EventType.PATIENT_QUEUED, patient_id="P1"):
    return QueueEvent(id=create_event_id(), event_type=event_type, patient_id=patient_id)


@pytest.mark.asyncio
async def test_subscribers_receive_matching_events():
    bus = EventBus()
    queued, everything = [], []

    async def on_queued(event):
        queued.append(event)

    bus.subscribe(EventType.PATIENT_QUEUED, on_queued)
    bus.subscribe_all(everything.append)

    await bus.publish(make_event(EventType.PATIENT_QUEUED))
    await bus.publish(make_event(EventType.QUEUE_CLEARED, patient_id=None))

    assert len(queued) == 1
    assert [e.event_type for e in everything] == [EventType.PATIENT_QUEUED, EventType.QUEUE_CLEARED]


@pytest.mark.asyncio
async def test_handler_error_is_isolated():
    bus = EventBus()
    received = []

    async def broken(event):
        raise ValueError("boom")

    bus.subscribe(EventType.PATIENT_CALLED, broken, priority=10)
    bus.subscribe(EventType.PATIENT_CALLED, received.append)

    await bus.publish(make_event(EventType.PATIENT_CALLED))

    assert len(received) == 1


@pytest.mark.asyncio
async def test_history_is_bounded_and_newest_first():
    bus = EventBus(max_history=3)
    for i in range(5):
        await bus.publish(make_event(patient_id=f"P{i}"))

    history = bus.get_history()

    assert [e.patient_id for e in history] == ["P4", "P3", "P2"]
    assert bus.get_history(EventType.QUEUE_CLEARED) == []


@pytest.mark.asyncio
async def test_stopped_bus_drops_events():
    bus = EventBus()
    received = []
    bus.subscribe_all(received.append)

    bus.stop()
    await bus.publish(make_event())
    bus.start()
    await bus.publish(make_event())

    assert len(received) == 1


def test_unsubscribe_all():
    bus = EventBus()

    def handler(event):
        pass

    bus.subscribe(EventType.PATIENT_QUEUED, handler)
    bus.subscribe_all(handler)
    assert bus.get_subscriber_count() == 2

    bus.unsubscribe_all(handler)
    assert bus.get_subscriber_count() == 0
    assert handler not in bus._priorities


def test_event_to_dict():
    event = make_event()
    data = event.to_dict()

    assert data["event_type"] == "patient_queued"
    assert data["id"].startswith("evt_")
    assert data["queue_size"] == 0
