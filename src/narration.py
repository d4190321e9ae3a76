"""
Narration queue
Turns instruction and arrival events into spoken texts. Playback stays with
the client; this module only decides what gets said and in which order.
"""

import logging
from collections import deque
from typing import Deque, List, Optional

from events import EventChannel, NavigationEvent, NavigationEventType
from instructions import NavigationInstruction

logger = logging.getLogger(__name__)

ARRIVAL_MESSAGE = "You have arrived at your destination"


class NarrationQueue:
    """Speaks each path node index at most once per navigation run."""

    def __init__(self, muted: bool = False):
        self.muted = muted
        self._pending: Deque[str] = deque()
        self._history: List[str] = []
        self._last_spoken_index = -1

    def attach(self, channel: EventChannel):
        channel.subscribe(self.handle_event)

    def detach(self, channel: EventChannel):
        channel.unsubscribe(self.handle_event)

    def handle_event(self, event: NavigationEvent):
        if event.event_type == NavigationEventType.INSTRUCTION:
            self.speak_instruction(event.payload['instruction'])
        elif event.event_type == NavigationEventType.ARRIVED:
            self.speak(ARRIVAL_MESSAGE)
        elif event.event_type == NavigationEventType.STARTED:
            # The run greeting covers node 0
            self._last_spoken_index = 0

    def speak(self, text: str) -> bool:
        """Queue free text. Returns False when muted."""
        if self.muted:
            return False
        self._pending.append(text)
        self._history.append(text)
        logger.debug(f"Narration queued: {text}")
        return True

    def speak_instruction(self, instruction: NavigationInstruction) -> bool:
        # Several instructions can share a node (turn plus landmark, start plus
        # arrive); only the first one at each index is spoken.
        if instruction.node_index <= self._last_spoken_index:
            return False
        self._last_spoken_index = instruction.node_index
        return self.speak(instruction.text)

    def next_utterance(self) -> Optional[str]:
        return self._pending.popleft() if self._pending else None

    def drain(self) -> List[str]:
        texts = list(self._pending)
        self._pending.clear()
        return texts

    @property
    def pending(self) -> List[str]:
        return list(self._pending)

    @property
    def history(self) -> List[str]:
        return list(self._history)

    def toggle_mute(self) -> bool:
        """Flip mute. Muting drops anything not yet spoken."""
        self.muted = not self.muted
        if self.muted:
            self._pending.clear()
        logger.info(f"Narration {'muted' if self.muted else 'unmuted'}")
        return self.muted

    def reset(self):
        self._pending.clear()
        self._history.clear()
        self._last_spoken_index = -1
