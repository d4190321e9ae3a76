"""
Navigation events
Decouples the animation engines from narration and rendering collaborators.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List

logger = logging.getLogger(__name__)


class NavigationEventType(str, Enum):
    STARTED = 'started'
    STATE_CHANGED = 'state_changed'
    INSTRUCTION = 'instruction'
    FLOOR_CHANGED = 'floor_changed'
    ARRIVED = 'arrived'
    PAUSED = 'paused'
    RESUMED = 'resumed'
    STOPPED = 'stopped'


@dataclass(frozen=True)
class NavigationEvent:
    event_type: NavigationEventType
    payload: Dict[str, Any] = field(default_factory=dict)


class EventChannel:
    """FIFO channel of navigation events with optional synchronous subscribers."""

    def __init__(self, maxlen: int = 1000):
        self._queue: Deque[NavigationEvent] = deque(maxlen=maxlen)
        self._subscribers: List[Callable[[NavigationEvent], None]] = []

    def publish(self, event_type: NavigationEventType, **payload) -> NavigationEvent:
        event = NavigationEvent(event_type, payload)
        self._queue.append(event)
        logger.debug(f"Event {event_type.value}: {payload}")
        for subscriber in list(self._subscribers):
            subscriber(event)
        return event

    def subscribe(self, callback: Callable[[NavigationEvent], None]):
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[NavigationEvent], None]):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def drain(self) -> List[NavigationEvent]:
        """Remove and return all queued events."""
        events = list(self._queue)
        self._queue.clear()
        return events

    def clear(self):
        self._queue.clear()

    def __len__(self):
        return len(self._queue)
