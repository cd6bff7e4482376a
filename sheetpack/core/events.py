"""
sheetpack - Event Channel
=========================
Publish channel between a packing run and its consumers (progress bars,
live previews, loggers). The driver publishes, consumers subscribe.

A run owns one channel. Publishing waits for every consumer before the run
resumes, so a slow consumer paces the run; a failing consumer is logged,
recorded and skipped, never aborting the run.
"""

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .exceptions import CallbackError

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Packing run event types"""
    PROGRESS = "packing.progress"
    PLACEMENT = "packing.placement"


@dataclass
class PackingEvent:
    """
    Event published by a packing run.

    Attributes:
        type: Event type
        payload: PackingProgress for PROGRESS, PlacedPart/RectangleSuggestion for PLACEMENT
        timestamp: Creation time
        event_id: Unique identifier
        source: Publishing driver
    """
    type: EventType
    payload: Any
    timestamp: datetime = field(default_factory=datetime.now)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    source: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "type": self.type.value,
            "payload": repr(self.payload),
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
        }


# Handler may return None or an awaitable (awaited by publish_async)
EventHandler = Callable[[PackingEvent], Any]


class PackingEventChannel:
    """
    Per-run event channel.

    Usage:
        channel = PackingEventChannel()
        channel.subscribe(EventType.PROGRESS, lambda e: print(e.payload.fraction))
        channel.publish(PackingEvent(EventType.PROGRESS, progress))
    """

    def __init__(self, source: str = None):
        self.source = source
        self._handlers: Dict[EventType, List[Tuple[int, EventHandler]]] = {}
        self.errors: List[CallbackError] = []

    def subscribe(self, event_type: EventType, handler: EventHandler, priority: int = 0) -> None:
        """
        Subscribe a handler to one event type.

        Args:
            event_type: Event type
            handler: Callable receiving the PackingEvent
            priority: Higher runs first
        """
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append((priority, handler))
        handlers.sort(key=lambda x: x[0], reverse=True)
        logger.debug(f"[EventChannel] Subscribed handler to {event_type.value}")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> bool:
        """Returns True when the handler was removed"""
        handlers = self._handlers.get(event_type, [])
        remaining = [(p, h) for p, h in handlers if h != handler]
        self._handlers[event_type] = remaining
        return len(remaining) < len(handlers)

    def handler_count(self, event_type: EventType = None) -> int:
        if event_type:
            return len(self._handlers.get(event_type, []))
        return sum(len(h) for h in self._handlers.values())

    def publish(self, event: PackingEvent) -> None:
        """
        Deliver an event to every handler synchronously.

        Awaitable results cannot be awaited here; they are closed and logged.
        Use publish_async from a coroutine driver instead.
        """
        for _, handler in self._handlers.get(event.type, []):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    if inspect.iscoroutine(result):
                        result.close()
                    logger.warning(
                        f"[EventChannel] Async handler for {event.type.value} "
                        f"skipped in synchronous run, use run_async()"
                    )
            except Exception as e:
                self._record_failure(event, e)

    async def publish_async(self, event: PackingEvent) -> None:
        """Deliver an event, awaiting handlers that return awaitables"""
        for _, handler in self._handlers.get(event.type, []):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._record_failure(event, e)

    def clear(self) -> None:
        self._handlers.clear()
        self.errors.clear()

    def _record_failure(self, event: PackingEvent, error: Exception) -> None:
        failure = CallbackError(event.type.value, error)
        self.errors.append(failure)
        logger.warning(f"[EventChannel] {failure}", exc_info=True)


# ============================================================
# Helpers
# ============================================================

def payload_handler(callback: Callable[[Any], Any]) -> EventHandler:
    """Adapt a callback that takes only the payload"""
    def handler(event: PackingEvent):
        return callback(event.payload)
    return handler


def logging_handler(event: PackingEvent) -> None:
    """Handler logging every packing event"""
    logger.info(
        f"[EVENT] {event.type.value} | "
        f"ID: {event.event_id[:8]} | "
        f"Source: {event.source or '-'} | "
        f"Payload: {event.payload}"
    )


def setup_event_logging(channel: PackingEventChannel) -> None:
    """Log all events published on the channel"""
    for event_type in EventType:
        channel.subscribe(event_type, logging_handler, priority=-100)


# ============================================================
# Driving a run
# ============================================================

# Marker yielded by a run generator where run_async() hands control back
# to the event loop
YIELD_POINT = object()


def build_channel(source: str, on_progress: Callable = None, on_placement: Callable = None,
                  channel: PackingEventChannel = None) -> PackingEventChannel:
    """Channel for one run, with the option callbacks subscribed"""
    channel = channel or PackingEventChannel(source=source)
    if channel.source is None:
        channel.source = source
    if on_progress is not None:
        channel.subscribe(EventType.PROGRESS, payload_handler(on_progress))
    if on_placement is not None:
        channel.subscribe(EventType.PLACEMENT, payload_handler(on_placement))
    return channel


def drive(steps, channel: PackingEventChannel) -> None:
    """Consume a run generator, publishing each event before resuming it"""
    for step in steps:
        if step is YIELD_POINT:
            continue
        channel.publish(step)


async def drive_async(steps, channel: PackingEventChannel) -> None:
    """Async variant: awaits consumers and yields to the loop at YIELD_POINT"""
    for step in steps:
        if step is YIELD_POINT:
            await asyncio.sleep(0)
            continue
        await channel.publish_async(step)
