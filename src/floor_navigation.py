"""
Floor-Transition State Machine
Drives the navigation marker along a solved path: position easing, rotation,
gait phase, stairs climbing, lift waiting and travel, and the floor switch
half way through every floor-changing segment.
"""

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional

from animation_loop import AnimationLoop, FrameScheduler
from config.settings import FLOOR_NAVIGATION_CONFIG
from errors import InvalidRunRequest
from events import EventChannel, NavigationEventType
from graph_model import (CampusGraph, CampusNode, DIRECTION_TO_ROTATION,
                         LIFT, STAIRS, WALK)
from instructions import NavigationInstruction, instructions_at
from pathfinder import NavigationPath

logger = logging.getLogger(__name__)


class NavState(str, Enum):
    IDLE = 'IDLE'                              # Not navigating
    WALKING = 'WALKING'                        # Moving on the current floor
    TURNING = 'TURNING'                        # Rotating at a junction
    APPROACHING_STAIRS = 'APPROACHING_STAIRS'  # Last stretch before the stairs
    CLIMBING_STAIRS = 'CLIMBING_STAIRS'
    APPROACHING_LIFT = 'APPROACHING_LIFT'      # Last stretch before the lift
    WAITING_FOR_LIFT = 'WAITING_FOR_LIFT'      # Waiting for the lift doors
    IN_LIFT = 'IN_LIFT'
    EXITING_VERTICAL = 'EXITING_VERTICAL'      # Second half of stairs/lift
    ARRIVED = 'ARRIVED'


@dataclass
class FloorNavigationConfig:
    """Animation tunables. Speeds are map units per second."""
    walk_speed: float = FLOOR_NAVIGATION_CONFIG['walk_speed']
    stair_speed: float = FLOOR_NAVIGATION_CONFIG['stair_speed']
    lift_speed: float = FLOOR_NAVIGATION_CONFIG['lift_speed']
    lift_wait_ms: float = FLOOR_NAVIGATION_CONFIG['lift_wait_ms']
    turn_duration_ms: float = FLOOR_NAVIGATION_CONFIG['turn_duration_ms']
    step_frequency: float = FLOOR_NAVIGATION_CONFIG['step_frequency']
    max_frame_delta_ms: float = FLOOR_NAVIGATION_CONFIG['max_frame_delta_ms']
    stair_sway: float = FLOOR_NAVIGATION_CONFIG['stair_sway']
    rotation_snap_deg: float = FLOOR_NAVIGATION_CONFIG['rotation_snap_deg']
    approach_fraction: float = FLOOR_NAVIGATION_CONFIG['approach_fraction']

    def speed_for(self, transition_type: str) -> float:
        if transition_type == STAIRS:
            return self.stair_speed
        if transition_type == LIFT:
            return self.lift_speed
        return self.walk_speed


@dataclass(frozen=True)
class MarkerPose:
    x: float
    y: float
    floor: int
    rotation: float  # degrees, 0 = north, 90 = east
    step_phase: float  # 0-1 walking oscillation, presentation only


@dataclass(frozen=True)
class NavigationSegment:
    """One edge traversal between consecutive path nodes."""
    from_node: CampusNode
    to_node: CampusNode
    transition_type: str
    direction: str
    distance: float

    @property
    def is_vertical(self) -> bool:
        return self.from_node.floor != self.to_node.floor


@dataclass
class NavigationRunState:
    """Live state of one walk-through. Owned and mutated by the state machine only."""
    path: NavigationPath
    segments: List[NavigationSegment]
    marker: MarkerPose
    current_floor: int
    rotation: float
    target_rotation: float
    state: NavState = NavState.IDLE
    segment_index: int = 0
    progress: float = 0.0
    step_time_s: float = 0.0
    lift_wait_elapsed_ms: float = 0.0
    lift_wait_progress: float = 0.0
    lift_boarded: bool = False
    floor_switched: bool = False
    active_instruction: Optional[NavigationInstruction] = None
    arrival_notified: bool = False
    paused: bool = False

    @property
    def current_segment(self) -> Optional[NavigationSegment]:
        if self.segment_index < len(self.segments):
            return self.segments[self.segment_index]
        return None


@dataclass(frozen=True)
class FloorNavigationSnapshot:
    state: NavState
    marker: Optional[MarkerPose]
    current_segment_index: int
    transition_progress: float
    current_transition_type: Optional[str]
    lift_wait_progress: float
    percent_complete: float
    active_instruction: Optional[NavigationInstruction]
    is_paused: bool


def build_segments(path: NavigationPath, graph: CampusGraph) -> List[NavigationSegment]:
    """Derive traversal segments from a path and the graph's edges."""
    segments = []
    for from_node, to_node in zip(path.nodes, path.nodes[1:]):
        edge = graph.get_edge(from_node.id, to_node.id)
        if edge is None:
            raise InvalidRunRequest(f"Path nodes {from_node.id} and {to_node.id} are not connected")
        segments.append(NavigationSegment(
            from_node=from_node,
            to_node=to_node,
            transition_type=edge.transition_type,
            direction=edge.direction,
            distance=edge.distance
        ))
    return segments


def ease_in_out_quad(t: float) -> float:
    return 2 * t * t if t < 0.5 else 1 - (-2 * t + 2) ** 2 / 2


def normalize_angle(angle: float) -> float:
    return angle % 360


def shortest_angle_diff(from_angle: float, to_angle: float) -> float:
    """Signed rotation in (-180, 180] that takes from_angle to to_angle."""
    diff = normalize_angle(to_angle) - normalize_angle(from_angle)
    if diff > 180:
        diff -= 360
    elif diff <= -180:
        diff += 360
    return diff


def interpolate_rotation(from_angle: float, to_angle: float, t: float) -> float:
    """Rotate along the shortest arc; never the long way around."""
    return normalize_angle(normalize_angle(from_angle) + shortest_angle_diff(from_angle, to_angle) * t)


class FloorNavigationStateMachine(AnimationLoop):
    """
    Floor-aware marker animation over a solved path.

    Exactly one run is live at a time. Collaborators read `snapshot()` and
    issue start/pause/resume/stop; floor changes, instruction crossings and
    arrival are published on the event channel.
    """

    def __init__(self, graph: CampusGraph,
                 events: Optional[EventChannel] = None,
                 scheduler: Optional[FrameScheduler] = None,
                 config: Optional[FloorNavigationConfig] = None,
                 on_floor_change: Optional[Callable[[int], None]] = None,
                 on_arrival: Optional[Callable[[], None]] = None):
        super().__init__(scheduler)
        self.graph = graph
        self.events = events if events is not None else EventChannel()
        self.config = config or FloorNavigationConfig()
        self.on_floor_change = on_floor_change
        self.on_arrival = on_arrival
        self.run: Optional[NavigationRunState] = None

    @property
    def state(self) -> NavState:
        return self.run.state if self.run else NavState.IDLE

    @property
    def is_paused(self) -> bool:
        return bool(self.run and self.run.paused)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self, path: NavigationPath):
        """IDLE -> WALKING. Any previous run, finished or not, is reset first."""
        if len(path.nodes) < 2:
            raise InvalidRunRequest("Navigation needs a path of at least two nodes")

        if self.run is not None:
            self.stop()

        segments = build_segments(path, self.graph)
        start_node = path.nodes[0]
        rotation = DIRECTION_TO_ROTATION.get(segments[0].direction, 0)

        self.run = NavigationRunState(
            path=path,
            segments=segments,
            marker=MarkerPose(start_node.x, start_node.y, start_node.floor, rotation, 0.0),
            current_floor=start_node.floor,
            rotation=rotation,
            target_rotation=rotation
        )
        self._reanchor()

        logger.info(f"Starting navigation over {len(segments)} segments "
                    f"from {start_node.display_name} to {path.destination.display_name}")
        self.events.publish(NavigationEventType.STARTED, node_count=len(path.nodes),
                            floor=start_node.floor, engine='floor')
        self._transition(NavState.WALKING)
        self._activate_instructions(0)
        self._enter_segment()
        self._schedule_frame()

    def pause(self):
        run = self.run
        if run is None or run.paused or run.state == NavState.ARRIVED:
            return
        run.paused = True
        self._cancel_frame()
        self.events.publish(NavigationEventType.PAUSED, segment_index=run.segment_index)

    def resume(self):
        run = self.run
        if run is None or not run.paused:
            return
        run.paused = False
        self._reanchor()
        self.events.publish(NavigationEventType.RESUMED, segment_index=run.segment_index)
        self._schedule_frame()

    def stop(self):
        """Full reset to IDLE, available from every state."""
        self._cancel_frame()
        if self.run is None:
            return
        self._transition(NavState.IDLE)
        self.run = None
        self.events.publish(NavigationEventType.STOPPED, engine='floor')

    # ------------------------------------------------------------------
    # Frame handling
    # ------------------------------------------------------------------

    def tick(self, delta_ms: float):
        run = self.run
        if run is None or run.paused or run.state in (NavState.IDLE, NavState.ARRIVED):
            return

        segment = run.current_segment
        if segment is None:
            self._arrive()
            return

        delta_ms = min(max(delta_ms, 0.0), self.config.max_frame_delta_ms)
        run.step_time_s += delta_ms / 1000.0
        self._update_rotation(segment, delta_ms)

        travel_ms = delta_ms
        if segment.is_vertical and segment.transition_type == LIFT and not run.lift_boarded:
            travel_ms = self._wait_for_lift(delta_ms)
            if travel_ms is None:
                return

        self._advance(segment, travel_ms)

    def _should_continue(self) -> bool:
        return self.run is not None and not self.run.paused and self.run.state != NavState.ARRIVED

    def _update_rotation(self, segment: NavigationSegment, delta_ms: float):
        run = self.run
        run.target_rotation = DIRECTION_TO_ROTATION.get(segment.direction, run.target_rotation)
        remaining = abs(shortest_angle_diff(run.rotation, run.target_rotation))
        if remaining == 0:
            return
        if self.config.turn_duration_ms <= 0:
            run.rotation = normalize_angle(run.target_rotation)
            return

        max_step = 360.0 * delta_ms / self.config.turn_duration_ms
        run.rotation = interpolate_rotation(run.rotation, run.target_rotation,
                                            min(1.0, max_step / remaining))

    def _wait_for_lift(self, delta_ms: float) -> Optional[float]:
        """Hold the marker while the lift arrives.

        Returns the part of the delta left over for travel once the wait is
        over, or None while still waiting.
        """
        run = self.run
        run.lift_wait_elapsed_ms += delta_ms
        wait_ms = self.config.lift_wait_ms
        run.lift_wait_progress = 1.0 if wait_ms <= 0 else min(1.0, run.lift_wait_elapsed_ms / wait_ms)
        run.marker = replace(run.marker, rotation=run.rotation, step_phase=0.0)

        if run.lift_wait_progress < 1.0:
            return None

        run.lift_boarded = True
        self._transition(NavState.IN_LIFT)
        return max(0.0, run.lift_wait_elapsed_ms - wait_ms)

    def _advance(self, segment: NavigationSegment, travel_ms: float):
        run = self.run

        if segment.distance <= 0:
            progress = 1.0
        else:
            speed = self.config.speed_for(segment.transition_type)
            progress = min(1.0, run.progress + speed * (travel_ms / 1000.0) / segment.distance)
        run.progress = progress

        eased = ease_in_out_quad(progress)
        x = segment.from_node.x + (segment.to_node.x - segment.from_node.x) * eased
        y = segment.from_node.y + (segment.to_node.y - segment.from_node.y) * eased

        if segment.is_vertical:
            if segment.transition_type == STAIRS:
                self._transition(NavState.CLIMBING_STAIRS if progress < 0.5
                                 else NavState.EXITING_VERTICAL)
                # Diagonal sway while climbing
                sway = math.sin(progress * math.pi * 4) * self.config.stair_sway
                x += sway
                y -= sway
                step_phase = abs(math.sin(progress * math.pi * 8))
            else:
                self._transition(NavState.IN_LIFT if progress < 0.5
                                 else NavState.EXITING_VERTICAL)
                step_phase = 0.0

            if progress >= 0.5 and not run.floor_switched:
                self._switch_floor(segment)
            floor = segment.to_node.floor if run.floor_switched else segment.from_node.floor
        else:
            self._transition(self._walking_state(progress))
            step_phase = (math.sin(run.step_time_s * math.pi * 2 * self.config.step_frequency) + 1) / 2
            floor = segment.from_node.floor

        run.marker = MarkerPose(x, y, floor, run.rotation, step_phase)

        if progress >= 1.0:
            self._complete_segment()

    def _walking_state(self, progress: float) -> NavState:
        run = self.run
        if abs(shortest_angle_diff(run.rotation, run.target_rotation)) > self.config.rotation_snap_deg:
            return NavState.TURNING

        next_index = run.segment_index + 1
        if next_index < len(run.segments):
            following = run.segments[next_index]
            if following.is_vertical and progress >= 1.0 - self.config.approach_fraction:
                if following.transition_type == LIFT:
                    return NavState.APPROACHING_LIFT
                return NavState.APPROACHING_STAIRS
        return NavState.WALKING

    def _switch_floor(self, segment: NavigationSegment):
        run = self.run
        run.floor_switched = True
        run.current_floor = segment.to_node.floor
        logger.info(f"Floor change {segment.from_node.floor} -> {segment.to_node.floor} "
                    f"by {segment.transition_type}")
        self.events.publish(NavigationEventType.FLOOR_CHANGED,
                            floor=segment.to_node.floor,
                            from_floor=segment.from_node.floor,
                            transition_type=segment.transition_type,
                            segment_index=run.segment_index)
        if self.on_floor_change:
            self.on_floor_change(segment.to_node.floor)

    def _complete_segment(self):
        run = self.run
        finished = run.current_segment
        run.current_floor = finished.to_node.floor
        run.segment_index += 1
        run.progress = 0.0
        run.lift_wait_elapsed_ms = 0.0
        run.lift_wait_progress = 0.0
        run.lift_boarded = False
        run.floor_switched = False

        if run.segment_index >= len(run.segments):
            run.progress = 1.0
            run.marker = MarkerPose(finished.to_node.x, finished.to_node.y,
                                    finished.to_node.floor, run.rotation, 0.0)
            self._arrive()
            return

        self._activate_instructions(run.segment_index)
        self._enter_segment()

    def _enter_segment(self):
        run = self.run
        segment = run.current_segment
        if segment.is_vertical:
            if segment.transition_type == LIFT:
                self._transition(NavState.WAITING_FOR_LIFT)
            else:
                self._transition(NavState.CLIMBING_STAIRS)
        elif run.state != NavState.WALKING:
            self._transition(self._walking_state(0.0))

    def _activate_instructions(self, node_index: int):
        run = self.run
        for instruction in instructions_at(run.path.instructions, node_index):
            run.active_instruction = instruction
            self.events.publish(NavigationEventType.INSTRUCTION,
                                instruction=instruction, node_index=node_index)

    def _arrive(self):
        run = self.run
        run.marker = replace(run.marker, step_phase=0.0)
        self._transition(NavState.ARRIVED)
        self._cancel_frame()
        if run.arrival_notified:
            return
        run.arrival_notified = True
        self._activate_instructions(len(run.path.nodes) - 1)
        destination = run.path.destination
        logger.info(f"Arrived at {destination.display_name} on floor {destination.floor}")
        self.events.publish(NavigationEventType.ARRIVED, node_id=destination.id,
                            floor=destination.floor)
        if self.on_arrival:
            self.on_arrival()

    def _transition(self, new_state: NavState):
        run = self.run
        if run is None or run.state == new_state:
            return
        logger.debug(f"Navigation state {run.state.value} -> {new_state.value}")
        previous = run.state
        run.state = new_state
        self.events.publish(NavigationEventType.STATE_CHANGED,
                            state=new_state, previous=previous,
                            segment_index=run.segment_index)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def percent_complete(self) -> float:
        run = self.run
        if run is None:
            return 0.0
        if run.state == NavState.ARRIVED:
            return 100.0
        return min(100.0, (run.segment_index + run.progress) / len(run.segments) * 100)

    def snapshot(self) -> FloorNavigationSnapshot:
        run = self.run
        if run is None:
            return FloorNavigationSnapshot(
                state=NavState.IDLE, marker=None, current_segment_index=0,
                transition_progress=0.0, current_transition_type=None,
                lift_wait_progress=0.0, percent_complete=0.0,
                active_instruction=None, is_paused=False
            )

        segment = run.current_segment
        transition_type = None
        if segment is not None and segment.transition_type != WALK:
            transition_type = segment.transition_type

        return FloorNavigationSnapshot(
            state=run.state,
            marker=run.marker,
            current_segment_index=run.segment_index,
            transition_progress=run.progress,
            current_transition_type=transition_type,
            lift_wait_progress=run.lift_wait_progress,
            percent_complete=self.percent_complete,
            active_instruction=run.active_instruction,
            is_paused=run.paused
        )
