"""
Turn-by-turn instruction generation
Turns a solved node path into start/turn/straight/landmark/arrive narration.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from config.settings import INSTRUCTION_CONFIG
from graph_model import CampusGraph, CampusNode, euclidean_distance

START = 'start'
TURN_LEFT = 'turn_left'
TURN_RIGHT = 'turn_right'
GO_STRAIGHT = 'go_straight'
ARRIVE = 'arrive'
LANDMARK = 'landmark'


@dataclass(frozen=True)
class NavigationInstruction:
    """Narration event anchored to a node index of the path."""
    text: str
    instruction_type: str  # 'start', 'turn_left', 'turn_right', 'go_straight', 'arrive', 'landmark'
    node_index: int
    distance: Optional[float] = None


def bearing(from_node: CampusNode, to_node: CampusNode) -> float:
    """Bearing of the segment in degrees, measured with atan2 on map coordinates."""
    return math.degrees(math.atan2(to_node.y - from_node.y, to_node.x - from_node.x))


def turn_direction(prev_angle: float, next_angle: float,
                   straight_threshold: float = INSTRUCTION_CONFIG['straight_threshold_deg']) -> str:
    """Classify a turn as 'left', 'right' or 'straight'.

    The difference is normalised to (-180, 180]; a positive difference is a
    right turn on the map (y grows downward).
    """
    diff = next_angle - prev_angle
    while diff > 180:
        diff -= 360
    while diff <= -180:
        diff += 360

    if abs(diff) < straight_threshold:
        return 'straight'
    return 'right' if diff > 0 else 'left'


def generate_instructions(path: Sequence[CampusNode],
                          config: Optional[dict] = None,
                          segment_distances: Optional[Sequence[float]] = None
                          ) -> List[NavigationInstruction]:
    """
    Generate the instruction sequence for a path.

    Args:
        path: Ordered nodes from start to destination
        config: Overrides for INSTRUCTION_CONFIG
        segment_distances: Edge distances along the path, one per segment;
            straight-line distances are used when omitted

    Returns:
        Instructions ordered by node index, starting with 'start' and
        ending with 'arrive'
    """
    config = {**INSTRUCTION_CONFIG, **(config or {})}
    if segment_distances is None:
        segment_distances = [euclidean_distance(a, b) for a, b in zip(path, path[1:])]
    threshold = config['straight_threshold_deg']
    interval = config['straight_callout_interval']

    instructions = [NavigationInstruction("Starting navigation", START, 0)]

    if len(path) < 2:
        instructions.append(
            NavigationInstruction("You've arrived at your destination", ARRIVE, 0))
        return instructions

    prev_angle = bearing(path[0], path[1])

    for i in range(1, len(path) - 1):
        next_angle = bearing(path[i], path[i + 1])
        turn = turn_direction(prev_angle, next_angle, threshold)
        outgoing = segment_distances[i]

        if turn == 'left':
            instructions.append(NavigationInstruction("Turn left", TURN_LEFT, i, outgoing))
        elif turn == 'right':
            instructions.append(NavigationInstruction("Turn right", TURN_RIGHT, i, outgoing))
        elif i % interval == 0:
            instructions.append(NavigationInstruction("Continue straight", GO_STRAIGHT, i))

        if path[i - 1].is_indoor and not path[i].is_indoor:
            instructions.append(NavigationInstruction("Exiting the building", LANDMARK, i))
        elif not path[i - 1].is_indoor and path[i].is_indoor:
            instructions.append(NavigationInstruction("Entering the building", LANDMARK, i))

        prev_angle = next_angle

    instructions.append(NavigationInstruction("You have arrived", ARRIVE, len(path) - 1))
    return instructions


def instructions_at(instructions: Sequence[NavigationInstruction],
                    node_index: int) -> List[NavigationInstruction]:
    return [inst for inst in instructions if inst.node_index == node_index]


def summarize_directions(path: Sequence[CampusNode], graph: CampusGraph) -> List[str]:
    """
    Spoken route overview built from the authored compass directions.

    Consecutive corridor segments heading the same way are merged into a
    single "Continue <direction>" call-out.
    """
    if not path:
        return []

    directions = [f"Starting from {path[0].display_name}"]
    prev_direction = ''
    straight_distance = 0

    for i in range(1, len(path)):
        prev_node = path[i - 1]
        node = path[i]
        edge = graph.get_edge(prev_node.id, node.id)
        direction = edge.direction if edge else ''
        length = edge.distance if edge else euclidean_distance(prev_node, node)
        # Map units to the nearest 5 metres
        distance = round(length / 10) * 5

        if direction == prev_direction and node.node_type not in ('room', 'outdoor'):
            straight_distance += distance
            continue

        if straight_distance > 0 and prev_direction:
            directions.append(f"Continue {prev_direction} for {straight_distance} meters")

        if node.node_type in ('room', 'outdoor'):
            if direction:
                directions.append(f"Turn {direction} and enter {node.display_name}")
            else:
                directions.append(f"You have arrived at {node.display_name}")
        elif node.node_type in ('junction', 'entrance'):
            if direction and direction != prev_direction:
                directions.append(f"Turn {direction} at {node.display_name}")
        elif node.node_type in ('stairs', 'lift') and direction in ('up', 'down'):
            directions.append(f"Take the {node.node_type} {direction} to floor {node.floor}")

        straight_distance = distance
        prev_direction = direction

    directions.append(f"You have reached your destination: {path[-1].display_name}")
    return directions
