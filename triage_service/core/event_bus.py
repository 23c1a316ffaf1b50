"""
Event bus for the triage queue service.
Async pub/sub so queue changes reach the WebSocket layer and alert handlers
without the queue knowing about them.
"""

import asyncio
import inspect
import logging
from typing import Callable, Dict, List, Any, Optional
import uuid

from triage_service.models.events import EventType, QueueEvent

logger = logging.getLogger(__name__)


class EventBus:
    """
    Async event bus for queue notifications.

    Supports:
    - Publishing events to all subscribers
    - Subscribing to specific event types
    - Event history for debugging
    - Priority-based event handling
    """

    def __init__(self, max_history: int = 1000):
        """Initialize the event bus."""
        self._subscribers: Dict[EventType, List[Callable]] = {}
        self._global_subscribers: List[Callable] = []
        self._priorities: Dict[Callable, int] = {}
        self._event_history: List[QueueEvent] = []
        self._max_history = max_history
        self._lock = asyncio.Lock()
        self._is_running = True

        for event_type in EventType:
            self._subscribers[event_type] = []

        logger.info("EventBus initialized")

    async def publish(self, event: QueueEvent) -> None:
        """
        Publish an event to all subscribers.

        A failing handler is logged and never propagates to the publisher.

        Args:
            event: The event to publish
        """
        if not self._is_running:
            logger.warning("EventBus is stopped, ignoring event")
            return

        async with self._lock:
            self._event_history.append(event)
            if len(self._event_history) > self._max_history:
                self._event_history.pop(0)

        logger.debug(f"Publishing event: {event.event_type.value} for {event.patient_id}")

        type_subscribers = self._subscribers.get(event.event_type, [])
        all_subscribers = sorted(
            type_subscribers + self._global_subscribers,
            key=lambda s: self._priorities.get(s, 5),
            reverse=True
        )

        tasks = []
        for callback in all_subscribers:
            if inspect.iscoroutinefunction(callback):
                tasks.append(self._safe_call(callback, event))
            else:
                tasks.append(self._safe_call_sync(callback, event))

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _safe_call(self, callback: Callable, event: QueueEvent) -> None:
        """Safely call an async callback, catching exceptions."""
        try:
            await callback(event)
        except Exception as e:
            logger.error(f"Error in event callback: {e}", exc_info=True)

    async def _safe_call_sync(self, callback: Callable, event: QueueEvent) -> None:
        """Safely call a sync callback."""
        try:
            callback(event)
        except Exception as e:
            logger.error(f"Error in sync event callback: {e}", exc_info=True)

    def subscribe(
        self,
        event_type: EventType,
        callback: Callable[[QueueEvent], Any],
        priority: int = 5
    ) -> None:
        """
        Subscribe to a specific event type.

        Args:
            event_type: Type of event to subscribe to
            callback: Function to call when event occurs
            priority: Handler priority (1-10, 10 = highest)
        """
        self._priorities[callback] = priority

        if callback not in self._subscribers[event_type]:
            self._subscribers[event_type].append(callback)
            logger.debug(f"Subscribed to {event_type.value} with priority {priority}")

    def subscribe_all(
        self,
        callback: Callable[[QueueEvent], Any],
        priority: int = 5
    ) -> None:
        """Subscribe to all events."""
        self._priorities[callback] = priority
        if callback not in self._global_subscribers:
            self._global_subscribers.append(callback)
            logger.debug(f"Subscribed to all events with priority {priority}")

    def unsubscribe_all(self, callback: Callable) -> None:
        """Remove a callback from all subscriptions."""
        self._priorities.pop(callback, None)
        if callback in self._global_subscribers:
            self._global_subscribers.remove(callback)

        for subscribers in self._subscribers.values():
            if callback in subscribers:
                subscribers.remove(callback)

    def get_history(
        self,
        event_type: Optional[EventType] = None,
        limit: int = 100
    ) -> List[QueueEvent]:
        """
        Get event history, optionally filtered by type.

        Returns:
            List of events, most recent first
        """
        history = self._event_history.copy()

        if event_type:
            history = [e for e in history if e.event_type == event_type]

        history.reverse()
        return history[:limit]

    def get_subscriber_count(self, event_type: Optional[EventType] = None) -> int:
        """Get number of subscribers for an event type or total."""
        if event_type:
            return len(self._subscribers.get(event_type, []))
        return sum(len(subs) for subs in self._subscribers.values()) + len(self._global_subscribers)

    def stop(self) -> None:
        """Stop the event bus from processing events."""
        self._is_running = False
        logger.info("EventBus stopped")

    def start(self) -> None:
        """Start/resume the event bus."""
        self._is_running = True
        logger.info("EventBus started")


def create_event_id() -> str:
    """Generate a unique event ID."""
    return f"evt_{uuid.uuid4().hex[:12]}"
