"""
Campus Dijkstra Pathfinding
Computes minimum-distance routes between campus locations, optionally
restricting floor changes to stairs or the lift.
"""

import heapq
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from config.settings import ROUTE_CONFIG
from errors import UnknownLocation
from graph_model import CampusEdge, CampusGraph, CampusNode, TRANSITION_TYPES
from instructions import NavigationInstruction, generate_instructions

logger = logging.getLogger(__name__)


@dataclass
class NavigationPath:
    """Solved route with derived distance, time and instructions."""
    nodes: List[CampusNode]
    distance: float
    estimated_time: int  # seconds
    instructions: List[NavigationInstruction] = field(default_factory=list)
    transport_preference: Optional[str] = None

    @property
    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    @property
    def start(self) -> CampusNode:
        return self.nodes[0]

    @property
    def destination(self) -> CampusNode:
        return self.nodes[-1]

    @property
    def floors_visited(self) -> List[int]:
        floors = []
        for node in self.nodes:
            if not floors or floors[-1] != node.floor:
                floors.append(node.floor)
        return floors


@dataclass(frozen=True)
class NoPathFound:
    """The destination cannot be reached under the active transport filter."""
    start_node_id: str
    end_node_id: str
    transport_preference: Optional[str] = None
    reason: str = "destination unreachable"

    def __bool__(self):
        return False


RouteResult = Union[NavigationPath, NoPathFound]


class CampusPathfinder:
    """Dijkstra pathfinding over the campus graph."""

    def __init__(self, graph: CampusGraph, route_config: Optional[Dict] = None):
        self.graph = graph
        self.route_config = {**ROUTE_CONFIG, **(route_config or {})}

    def find_path(self, start_location_id: str, end_location_id: str,
                  transport_preference: Optional[str] = None) -> RouteResult:
        """
        Find the shortest route between two user-facing locations.

        Args:
            start_location_id: Location the user starts from
            end_location_id: Destination location
            transport_preference: 'stairs' or 'lift' to restrict floor changes

        Returns:
            NavigationPath, or NoPathFound when the destination is unreachable

        Raises:
            UnknownLocation: if either location has no graph node
        """
        start_node_id = self.graph.resolve_location(start_location_id)
        end_node_id = self.graph.resolve_location(end_location_id)
        return self.find_path_between_nodes(start_node_id, end_node_id, transport_preference)

    def find_path_between_nodes(self, start_node_id: str, end_node_id: str,
                                transport_preference: Optional[str] = None) -> RouteResult:
        self.validate_preference(transport_preference)
        for node_id in (start_node_id, end_node_id):
            if not self.graph.has_node(node_id):
                raise UnknownLocation(node_id)

        adjacency = self._build_adjacency(transport_preference)
        result = self._dijkstra_search(start_node_id, end_node_id, adjacency)

        if result is None:
            logger.warning(f"No route from {start_node_id} to {end_node_id} "
                           f"(transport preference: {transport_preference})")
            return NoPathFound(start_node_id, end_node_id, transport_preference)

        node_ids, _ = result
        path = self._build_path(node_ids, transport_preference)
        logger.info(f"Route {start_node_id} -> {end_node_id}: {len(path.nodes)} nodes, "
                    f"{path.distance:.1f} units")
        return path

    def validate_preference(self, transport_preference: Optional[str]):
        allowed = self.route_config['transport_preferences']
        if transport_preference is not None and transport_preference not in allowed:
            raise ValueError(
                f"Transport preference must be one of {allowed}, got '{transport_preference}'")

    def _build_adjacency(self, transport_preference: Optional[str]) -> Dict[str, List[CampusEdge]]:
        """Adjacency view for one query; same-floor edges are never filtered."""
        adjacency = {}
        for node_id in self.graph.nodes:
            allowed = []
            for edge in self.graph.neighbors(node_id):
                if (transport_preference and self.graph.is_vertical(edge)
                        and edge.transition_type != transport_preference):
                    continue
                allowed.append(edge)
            adjacency[node_id] = allowed
        return adjacency

    def _dijkstra_search(self, start_node_id: str, end_node_id: str,
                         adjacency: Dict[str, List[CampusEdge]]) -> Optional[Tuple[List[str], float]]:
        """Core Dijkstra search. Ties are broken by node id."""
        # Priority queue: (distance, node_id)
        pq = [(0.0, start_node_id)]
        distances = {start_node_id: 0.0}
        previous: Dict[str, str] = {}
        visited = set()

        while pq:
            current_distance, current_node = heapq.heappop(pq)

            if current_node in visited:
                continue
            visited.add(current_node)

            if current_node == end_node_id:
                break

            for edge in adjacency[current_node]:
                neighbor = edge.target_id
                if neighbor in visited:
                    continue
                new_distance = current_distance + edge.distance
                if new_distance < distances.get(neighbor, float('inf')):
                    distances[neighbor] = new_distance
                    previous[neighbor] = current_node
                    heapq.heappush(pq, (new_distance, neighbor))

        if end_node_id not in visited:
            return None

        # Walk predecessor links back to the start
        node_ids = [end_node_id]
        while node_ids[-1] != start_node_id:
            node_ids.append(previous[node_ids[-1]])
        node_ids.reverse()

        return node_ids, distances[end_node_id]

    def _build_path(self, node_ids: List[str],
                    transport_preference: Optional[str]) -> NavigationPath:
        nodes = [self.graph.get_node(node_id) for node_id in node_ids]

        segment_distances = [self.graph.get_edge(from_id, to_id).distance
                             for from_id, to_id in zip(node_ids, node_ids[1:])]
        total_distance = float(sum(segment_distances))

        return NavigationPath(
            nodes=nodes,
            distance=total_distance,
            estimated_time=self.estimate_travel_time(total_distance),
            instructions=generate_instructions(nodes, segment_distances=segment_distances),
            transport_preference=transport_preference
        )

    def estimate_travel_time(self, distance: float) -> int:
        """Estimated seconds to walk a distance."""
        return int(round(distance / self.route_config['walking_speed_ms']
                         * self.route_config['time_scale']))

    def needs_transport_choice(self, start_location_id: str, end_location_id: str) -> bool:
        """True when the route has to change floor, so stairs or lift can be chosen."""
        start = self.graph.get_node(self.graph.resolve_location(start_location_id))
        end = self.graph.get_node(self.graph.resolve_location(end_location_id))
        return start.floor != end.floor

    def find_route_options(self, start_location_id: str,
                           end_location_id: str) -> Dict[Optional[str], RouteResult]:
        """Routes with no preference and with each transport preference."""
        options = {None: self.find_path(start_location_id, end_location_id)}
        for preference in self.route_config['transport_preferences']:
            options[preference] = self.find_path(start_location_id, end_location_id, preference)
        return options

    def get_route_summary(self, path: NavigationPath) -> Dict:
        """Get a summary of route information."""
        segment_types = {transition: 0 for transition in TRANSITION_TYPES}
        for from_node, to_node in zip(path.nodes, path.nodes[1:]):
            edge = self.graph.get_edge(from_node.id, to_node.id)
            segment_types[edge.transition_type] += 1

        return {
            'total_nodes': len(path.nodes),
            'total_distance': round(path.distance, 1),
            'estimated_time_s': path.estimated_time,
            'estimated_time_min': round(path.estimated_time / 60, 1),
            'floors_visited': path.floors_visited,
            'segment_types': segment_types,
            'instruction_count': len(path.instructions),
            'transport_preference': path.transport_preference,
            'start': path.start.display_name,
            'destination': path.destination.display_name
        }
