"""
Frame scheduling for the navigation animation engines.

The engines are driven by a per-frame callback, one frame at a time. A frame
is requested only after the previous one has been handled, and every engine
owns at most one pending frame handle.
"""

import asyncio
import itertools
import logging
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

FrameCallback = Callable[[float], None]


class FrameScheduler:
    """Interface for requesting and cancelling animation frames."""

    def request_frame(self, callback: FrameCallback):
        raise NotImplementedError

    def cancel_frame(self, handle):
        raise NotImplementedError


class ManualFrameScheduler(FrameScheduler):
    """Deterministic scheduler: frames fire only when `advance` is called."""

    def __init__(self, start_ms: float = 0.0):
        self.now_ms = start_ms
        self._pending: Dict[int, FrameCallback] = {}
        self._ids = itertools.count(1)

    def request_frame(self, callback: FrameCallback) -> int:
        handle = next(self._ids)
        self._pending[handle] = callback
        return handle

    def cancel_frame(self, handle: int):
        self._pending.pop(handle, None)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def run_frame(self, frame_ms: float = 16.0) -> int:
        """Advance the clock by one frame and fire the callbacks due now."""
        self.now_ms += frame_ms
        due = sorted(self._pending.items())
        self._pending.clear()
        for _, callback in due:
            callback(self.now_ms)
        return len(due)

    def advance(self, total_ms: float, frame_ms: float = 16.0) -> int:
        """Run frames until `total_ms` has elapsed. Returns frames fired."""
        fired = 0
        elapsed = 0.0
        while elapsed + frame_ms <= total_ms + 1e-9:
            elapsed += frame_ms
            fired += self.run_frame(frame_ms)
        return fired


class AsyncioFrameScheduler(FrameScheduler):
    """Schedules frames on the running asyncio event loop."""

    def __init__(self, frame_interval_ms: float = 16.0):
        self.frame_interval_ms = frame_interval_ms

    def request_frame(self, callback: FrameCallback) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(
            self.frame_interval_ms / 1000.0,
            lambda: callback(loop.time() * 1000.0)
        )

    def cancel_frame(self, handle: asyncio.TimerHandle):
        handle.cancel()


class AnimationLoop:
    """Base class for engines advanced by `tick(delta_ms)` once per frame."""

    def __init__(self, scheduler: Optional[FrameScheduler] = None):
        self.scheduler = scheduler
        self._frame_handle = None
        self._last_timestamp: Optional[float] = None

    @property
    def is_looping(self) -> bool:
        return self._frame_handle is not None

    def tick(self, delta_ms: float):
        raise NotImplementedError

    def _should_continue(self) -> bool:
        raise NotImplementedError

    def _schedule_frame(self):
        if self.scheduler is None:
            return
        # Never let two frames race on the same run state
        self._cancel_frame()
        self._frame_handle = self.scheduler.request_frame(self._on_frame)

    def _cancel_frame(self):
        if self._frame_handle is not None:
            self.scheduler.cancel_frame(self._frame_handle)
            self._frame_handle = None

    def _reanchor(self):
        """The next frame measures its delta from itself, not from a stale timestamp."""
        self._last_timestamp = None

    def _on_frame(self, timestamp_ms: float):
        self._frame_handle = None
        if self._last_timestamp is None:
            self._last_timestamp = timestamp_ms
        delta_ms = timestamp_ms - self._last_timestamp
        self._last_timestamp = timestamp_ms

        self.tick(delta_ms)

        if self._should_continue() and self._frame_handle is None:
            self._schedule_frame()
