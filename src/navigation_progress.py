"""
Navigation Progress Engine
Simple 2D walk-through of a solved path: fixed-timestep progress
accumulation, linear marker interpolation, instruction crossings and a single
arrival notification.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from animation_loop import AnimationLoop, FrameScheduler
from config.settings import PROGRESS_CONFIG
from events import EventChannel, NavigationEventType
from instructions import NavigationInstruction, instructions_at
from pathfinder import NavigationPath

logger = logging.getLogger(__name__)


@dataclass
class ProgressConfig:
    speed_per_ms: float = PROGRESS_CONFIG['speed_per_ms']
    fixed_timestep_ms: float = PROGRESS_CONFIG['fixed_timestep_ms']
    max_frame_delta_ms: float = PROGRESS_CONFIG['max_frame_delta_ms']

    @property
    def step_increment(self) -> float:
        return self.speed_per_ms * self.fixed_timestep_ms


@dataclass(frozen=True)
class ProgressSnapshot:
    current_node_index: int
    progress: float
    position: Tuple[float, float]
    percent_complete: float
    active_instruction: Optional[NavigationInstruction]
    arrived: bool
    is_paused: bool = False


def interpolate_position(path: NavigationPath, node_index: int,
                         progress: float) -> Tuple[float, float]:
    """Linear position between node `node_index` and the next one."""
    nodes = path.nodes
    if not nodes:
        return (0.0, 0.0)
    if node_index >= len(nodes) - 1:
        return nodes[-1].position

    current = np.array(nodes[node_index].position, dtype=float)
    following = np.array(nodes[node_index + 1].position, dtype=float)
    x, y = current + (following - current) * progress
    return (float(x), float(y))


class NavigationProgressEngine(AnimationLoop):
    """Advances a marker along a path at a constant per-segment pace."""

    def __init__(self, events: Optional[EventChannel] = None,
                 scheduler: Optional[FrameScheduler] = None,
                 config: Optional[ProgressConfig] = None,
                 on_arrival: Optional[Callable[[], None]] = None,
                 on_floor_change: Optional[Callable[[int], None]] = None):
        super().__init__(scheduler)
        self.events = events if events is not None else EventChannel()
        self.config = config or ProgressConfig()
        self.on_arrival = on_arrival
        self.on_floor_change = on_floor_change
        self._reset()

    def _reset(self):
        self.path: Optional[NavigationPath] = None
        self.current_node_index = 0
        self.progress = 0.0
        self.active_instruction: Optional[NavigationInstruction] = None
        self.arrived = False
        self.paused = False
        self._accumulated_ms = 0.0

    @property
    def is_active(self) -> bool:
        return self.path is not None and not self.arrived

    def start(self, path: NavigationPath):
        """Start walking `path` from its first node."""
        if self.path is not None:
            self.stop()

        self.path = path
        self._reanchor()
        self.events.publish(NavigationEventType.STARTED, node_count=len(path.nodes),
                            engine='progress')
        self._activate_instructions(0)

        if len(path.nodes) < 2:
            # Start and destination coincide
            self.progress = 1.0
            self._arrive()
            return

        self._schedule_frame()

    def pause(self):
        if not self.is_active or self.paused:
            return
        self.paused = True
        self._cancel_frame()
        self.events.publish(NavigationEventType.PAUSED, node_index=self.current_node_index)

    def resume(self):
        if not self.is_active or not self.paused:
            return
        self.paused = False
        self._reanchor()
        self.events.publish(NavigationEventType.RESUMED, node_index=self.current_node_index)
        self._schedule_frame()

    def stop(self):
        """Cancel the loop and clear all progress."""
        self._cancel_frame()
        was_running = self.path is not None
        self._reset()
        if was_running:
            self.events.publish(NavigationEventType.STOPPED, engine='progress')

    def tick(self, delta_ms: float):
        """Consume a wall-clock delta in fixed simulation steps."""
        if not self.is_active or self.paused:
            return

        delta_ms = min(max(delta_ms, 0.0), self.config.max_frame_delta_ms)
        self._accumulated_ms += delta_ms

        while self._accumulated_ms >= self.config.fixed_timestep_ms and not self.arrived:
            self._accumulated_ms -= self.config.fixed_timestep_ms
            self._step()

    def _step(self):
        last_index = len(self.path.nodes) - 1
        self.progress += self.config.step_increment

        if self.progress < 1.0:
            return

        if self.current_node_index + 1 < last_index:
            self.progress = 0.0
            self._enter_node(self.current_node_index + 1)
            self._activate_instructions(self.current_node_index)
        else:
            self._enter_node(last_index)
            self.progress = 1.0
            self._activate_instructions(last_index)
            self._arrive()

    def _enter_node(self, node_index: int):
        from_floor = self.path.nodes[self.current_node_index].floor
        self.current_node_index = node_index
        floor = self.path.nodes[node_index].floor
        if floor == from_floor:
            return

        self.events.publish(NavigationEventType.FLOOR_CHANGED,
                            floor=floor, from_floor=from_floor, node_index=node_index)
        if self.on_floor_change:
            self.on_floor_change(floor)

    def _activate_instructions(self, node_index: int):
        for instruction in instructions_at(self.path.instructions, node_index):
            self.active_instruction = instruction
            self.events.publish(NavigationEventType.INSTRUCTION,
                                instruction=instruction, node_index=node_index)

    def _arrive(self):
        if self.arrived:
            return
        self.arrived = True
        self._cancel_frame()
        logger.info(f"Arrived at {self.path.destination.display_name}")
        self.events.publish(NavigationEventType.ARRIVED,
                            node_id=self.path.destination.id,
                            floor=self.path.destination.floor)
        if self.on_arrival:
            self.on_arrival()

    def _should_continue(self) -> bool:
        return self.is_active and not self.paused

    @property
    def position(self) -> Optional[Tuple[float, float]]:
        if self.path is None:
            return None
        return interpolate_position(self.path, self.current_node_index, min(self.progress, 1.0))

    @property
    def percent_complete(self) -> float:
        if self.path is None:
            return 0.0
        segments = len(self.path.nodes) - 1
        if segments <= 0:
            return 100.0 if self.arrived else 0.0
        percent = (self.current_node_index + self.progress) / segments * 100
        return float(np.clip(percent, 0.0, 100.0))

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            current_node_index=self.current_node_index,
            progress=self.progress,
            position=self.position,
            percent_complete=self.percent_complete,
            active_instruction=self.active_instruction,
            arrived=self.arrived,
            is_paused=self.paused
        )
