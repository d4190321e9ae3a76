"""
Navigation Session
The command surface a UI drives: pick start and destination, choose stairs
or lift, begin/pause/resume/stop a walk-through and read snapshots of it.
"""

import logging
from typing import Dict, Optional

from animation_loop import FrameScheduler
from config.settings import CAMPUS_DATA_CONFIG
from errors import InvalidRunRequest
from events import EventChannel, NavigationEvent, NavigationEventType
from floor_navigation import (FloorNavigationConfig, FloorNavigationStateMachine,
                              NavState)
from graph_model import CampusGraph
from instructions import NavigationInstruction
from narration import NarrationQueue
from navigation_progress import NavigationProgressEngine, ProgressConfig
from pathfinder import CampusPathfinder, NavigationPath, RouteResult

logger = logging.getLogger(__name__)

FLOOR_MODE = 'floor'
SIMPLE_MODE = 'simple'


def instruction_to_dict(instruction: Optional[NavigationInstruction]) -> Optional[Dict]:
    if instruction is None:
        return None
    return {
        'text': instruction.text,
        'type': instruction.instruction_type,
        'node_index': instruction.node_index,
        'distance': instruction.distance
    }


class NavigationSession:
    """One user's navigation: a single live run at a time."""

    def __init__(self, graph: CampusGraph,
                 scheduler: Optional[FrameScheduler] = None,
                 mode: str = FLOOR_MODE,
                 floor_config: Optional[FloorNavigationConfig] = None,
                 progress_config: Optional[ProgressConfig] = None,
                 narration: Optional[NarrationQueue] = None):
        if mode not in (FLOOR_MODE, SIMPLE_MODE):
            raise ValueError(f"Unknown navigation mode: {mode}")

        self.graph = graph
        self.mode = mode
        self.pathfinder = CampusPathfinder(graph)
        self.events = EventChannel()
        self.narration = narration or NarrationQueue()
        self.narration.attach(self.events)

        self.floor_machine = FloorNavigationStateMachine(
            graph, events=self.events, scheduler=scheduler, config=floor_config,
            on_floor_change=self._on_floor_change, on_arrival=self._on_arrival)
        self.progress_engine = NavigationProgressEngine(
            events=self.events, scheduler=scheduler, config=progress_config,
            on_arrival=self._on_arrival, on_floor_change=self._on_floor_change)

        self.start_location_id: str = CAMPUS_DATA_CONFIG['default_start']
        self.destination_id: Optional[str] = None
        self.transport_preference: Optional[str] = None
        self.path: Optional[NavigationPath] = None
        self.is_navigating = False
        self.has_arrived = False
        self.current_floor = 0

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_start(self, location_id: str):
        self.graph.resolve_location(location_id)
        self.start_location_id = location_id

    def select_destination(self, location_id: str):
        self.graph.resolve_location(location_id)
        self.destination_id = location_id

    def set_transport_preference(self, transport_preference: Optional[str]):
        self.pathfinder.validate_preference(transport_preference)
        self.transport_preference = transport_preference

    def needs_transport_choice(self) -> bool:
        if self.destination_id is None:
            return False
        return self.pathfinder.needs_transport_choice(self.start_location_id, self.destination_id)

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------

    def begin_navigation(self) -> RouteResult:
        """
        Solve the selected route and start walking it.

        Returns:
            The NavigationPath, or NoPathFound (navigation is then not started)

        Raises:
            InvalidRunRequest: if no destination has been selected
            UnknownLocation: if a selected location has no graph node
        """
        if self.destination_id is None:
            raise InvalidRunRequest("Select a destination before starting navigation")

        result = self.pathfinder.find_path(self.start_location_id, self.destination_id,
                                           self.transport_preference)
        if not result:
            logger.info(f"Navigation not started: {result.reason}")
            return result

        self.stop_navigation()
        self.path = result
        self.is_navigating = True
        self.current_floor = result.start.floor

        start_name = self.graph.get_location(self.start_location_id).name
        destination_name = self.graph.get_location(self.destination_id).name
        self.narration.speak(f"Starting navigation from {start_name} to {destination_name}")

        if len(result.nodes) < 2 or self.mode == SIMPLE_MODE:
            self.progress_engine.start(result)
        else:
            self.floor_machine.start(result)
        return result

    def stop_navigation(self):
        self.floor_machine.stop()
        self.progress_engine.stop()
        self.narration.reset()
        self.path = None
        self.is_navigating = False
        self.has_arrived = False

    def pause(self):
        self._active_engine().pause()

    def resume(self):
        self._active_engine().resume()

    def tick(self, delta_ms: float):
        """Drive the active engine directly, for callers without a scheduler."""
        self._active_engine().tick(delta_ms)

    def _active_engine(self):
        if self.floor_machine.run is not None:
            return self.floor_machine
        return self.progress_engine

    def _on_floor_change(self, floor: int):
        self.current_floor = floor

    def _on_arrival(self):
        self.has_arrived = True

    def drain_events(self):
        return self.events.drain()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict:
        snapshot = {
            'mode': self.mode,
            'is_navigating': self.is_navigating,
            'has_arrived': self.has_arrived,
            'start_location': self.start_location_id,
            'destination': self.destination_id,
            'transport_preference': self.transport_preference,
            'current_floor': self.current_floor,
            'path': self.path.node_ids if self.path else None
        }

        if self.floor_machine.run is not None:
            machine = self.floor_machine.snapshot()
            marker = machine.marker
            snapshot.update({
                'state': machine.state.value,
                'marker': {
                    'x': marker.x,
                    'y': marker.y,
                    'floor': marker.floor,
                    'rotation': marker.rotation,
                    'step_phase': marker.step_phase
                },
                'percent_complete': machine.percent_complete,
                'active_instruction': instruction_to_dict(machine.active_instruction),
                'current_segment_index': machine.current_segment_index,
                'transition_progress': machine.transition_progress,
                'current_transition_type': machine.current_transition_type,
                'lift_wait_progress': machine.lift_wait_progress,
                'is_paused': machine.is_paused
            })
            return snapshot

        if self.progress_engine.path is not None:
            progress = self.progress_engine.snapshot()
            x, y = progress.position
            node = self.progress_engine.path.nodes[progress.current_node_index]
            snapshot.update({
                'state': (NavState.ARRIVED if progress.arrived else NavState.WALKING).value,
                'marker': {'x': x, 'y': y, 'floor': node.floor,
                           'rotation': None, 'step_phase': None},
                'percent_complete': progress.percent_complete,
                'active_instruction': instruction_to_dict(progress.active_instruction),
                'current_node_index': progress.current_node_index,
                'transition_progress': progress.progress,
                'current_transition_type': None,
                'lift_wait_progress': 0.0,
                'is_paused': progress.is_paused
            })
            return snapshot

        snapshot.update({
            'state': NavState.IDLE.value,
            'marker': None,
            'percent_complete': 0.0,
            'active_instruction': None,
            'current_transition_type': None,
            'lift_wait_progress': 0.0,
            'is_paused': False
        })
        return snapshot


def describe_event(event: NavigationEvent) -> str:
    """One-line console description of an event."""
    payload = event.payload
    if event.event_type == NavigationEventType.STATE_CHANGED:
        return f"state -> {payload['state'].value}"
    if event.event_type == NavigationEventType.INSTRUCTION:
        return f"instruction @{payload['node_index']}: {payload['instruction'].text}"
    if event.event_type == NavigationEventType.FLOOR_CHANGED:
        description = f"floor {payload['from_floor']} -> {payload['floor']}"
        if payload.get('transition_type'):
            description += f" by {payload['transition_type']}"
        return description
    if event.event_type == NavigationEventType.ARRIVED:
        return f"arrived at {payload['node_id']} (floor {payload['floor']})"
    return event.event_type.value
