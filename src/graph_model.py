"""
Campus Graph Model
Static graph of rooms, corridor junctions, stairs, lift and outdoor points,
with floor-aware walk/stairs/lift edges.
"""

import json
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Iterator, List, Optional, Tuple

import networkx as nx
import numpy as np

from errors import GraphDataError, UnknownLocation

logger = logging.getLogger(__name__)

WALK = 'walk'
STAIRS = 'stairs'
LIFT = 'lift'
TRANSITION_TYPES = (WALK, STAIRS, LIFT)
VERTICAL_TRANSITIONS = (STAIRS, LIFT)

NODE_TYPES = ('room', 'junction', 'entrance', 'outdoor', 'stairs', 'lift')

COMPASS_DIRECTIONS = ('north', 'northeast', 'east', 'southeast',
                      'south', 'southwest', 'west', 'northwest')

# Direction to marker rotation in degrees (0 = north, 90 = east)
DIRECTION_TO_ROTATION = {
    'north': 0,
    'northeast': 45,
    'east': 90,
    'southeast': 135,
    'south': 180,
    'southwest': 225,
    'west': 270,
    'northwest': 315,
    'up': 0,
    'down': 180,
}

OPPOSITE_DIRECTIONS = {
    'north': 'south',
    'south': 'north',
    'east': 'west',
    'west': 'east',
    'northeast': 'southwest',
    'southwest': 'northeast',
    'northwest': 'southeast',
    'southeast': 'northwest',
    'up': 'down',
    'down': 'up',
}


@dataclass(frozen=True)
class CampusNode:
    """Point in the navigation graph."""
    id: str
    x: float
    y: float
    floor: int = 0
    is_indoor: bool = True
    node_type: str = 'junction'  # 'room', 'junction', 'entrance', 'outdoor', 'stairs', 'lift'
    name: Optional[str] = None

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    @property
    def display_name(self) -> str:
        return self.name or self.id


@dataclass(frozen=True)
class CampusEdge:
    """Connection between two nodes, stored in the direction it was authored."""
    source_id: str
    target_id: str
    distance: float
    direction: str
    transition_type: str = WALK  # 'walk', 'stairs', 'lift'

    def reversed(self) -> 'CampusEdge':
        return CampusEdge(
            source_id=self.target_id,
            target_id=self.source_id,
            distance=self.distance,
            direction=opposite_direction(self.direction),
            transition_type=self.transition_type
        )


@dataclass(frozen=True)
class CampusLocation:
    """User-facing destination mapped onto a graph node."""
    id: str
    name: str
    node_id: str
    location_type: str = 'room'  # 'room', 'block', 'facility', 'entrance'
    short_name: Optional[str] = None
    block: Optional[str] = None


def opposite_direction(direction: str) -> str:
    return OPPOSITE_DIRECTIONS.get(direction, direction)


def euclidean_distance(a: CampusNode, b: CampusNode) -> float:
    return float(np.hypot(b.x - a.x, b.y - a.y))


def compass_direction(a: CampusNode, b: CampusNode) -> str:
    """Compass direction from a to b. The map's y axis grows southward."""
    if a.floor != b.floor:
        return 'up' if b.floor > a.floor else 'down'
    if a.x == b.x and a.y == b.y:
        return ''
    angle = np.degrees(np.arctan2(b.x - a.x, a.y - b.y)) % 360
    return COMPASS_DIRECTIONS[int(round(angle / 45.0)) % 8]


class CampusGraph:
    """Read-only campus graph backed by an undirected NetworkX graph."""

    def __init__(self, nodes: List[CampusNode], edges: List[CampusEdge],
                 locations: Optional[List[CampusLocation]] = None):
        self.graph = nx.Graph()
        self.nodes: Dict[str, CampusNode] = {}
        self.locations: Dict[str, CampusLocation] = {}

        for node in nodes:
            if node.id in self.nodes:
                raise GraphDataError(f"Duplicate node id: {node.id}")
            self.nodes[node.id] = node
            self.graph.add_node(node.id, floor=node.floor, is_indoor=node.is_indoor)

        for edge in edges:
            self._add_edge(edge)

        for location in locations or []:
            if location.node_id not in self.nodes:
                raise GraphDataError(
                    f"Location {location.id} points to unknown node {location.node_id}")
            self.locations[location.id] = location

        logger.info(f"Loaded campus graph with {self.graph.number_of_nodes()} nodes, "
                    f"{self.graph.number_of_edges()} edges, {len(self.locations)} locations")

    def _add_edge(self, edge: CampusEdge):
        for endpoint in (edge.source_id, edge.target_id):
            if endpoint not in self.nodes:
                raise GraphDataError(
                    f"Edge {edge.source_id}-{edge.target_id} references unknown node {endpoint}")
        if edge.transition_type not in TRANSITION_TYPES:
            raise GraphDataError(
                f"Edge {edge.source_id}-{edge.target_id} has unknown transition type "
                f"'{edge.transition_type}'")
        if edge.distance < 0:
            raise GraphDataError(
                f"Edge {edge.source_id}-{edge.target_id} has negative distance {edge.distance}")
        if edge.distance == 0:
            logger.warning(f"Edge {edge.source_id}-{edge.target_id} has zero length")

        source = self.nodes[edge.source_id]
        target = self.nodes[edge.target_id]
        if source.floor != target.floor and edge.transition_type not in VERTICAL_TRANSITIONS:
            raise GraphDataError(
                f"Edge {edge.source_id}-{edge.target_id} changes floor but is '{edge.transition_type}'")
        if self.graph.has_edge(edge.source_id, edge.target_id):
            raise GraphDataError(f"Duplicate edge {edge.source_id}-{edge.target_id}")

        self.graph.add_edge(
            edge.source_id,
            edge.target_id,
            edge=edge,
            distance=edge.distance,
            transition_type=edge.transition_type
        )

    def get_node(self, node_id: str) -> CampusNode:
        return self.nodes[node_id]

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def get_edge(self, from_id: str, to_id: str) -> Optional[CampusEdge]:
        """Edge oriented from `from_id` to `to_id`, or None if not adjacent."""
        data = self.graph.get_edge_data(from_id, to_id)
        if data is None:
            return None
        edge = data['edge']
        return edge if edge.source_id == from_id else edge.reversed()

    def neighbors(self, node_id: str) -> Iterator[CampusEdge]:
        """Outgoing oriented edges, in node id order."""
        for neighbor_id in sorted(self.graph.neighbors(node_id)):
            yield self.get_edge(node_id, neighbor_id)

    def is_vertical(self, edge: CampusEdge) -> bool:
        return self.nodes[edge.source_id].floor != self.nodes[edge.target_id].floor

    def resolve_location(self, location_id: str) -> str:
        location = self.locations.get(location_id)
        if location is None:
            raise UnknownLocation(location_id)
        return location.node_id

    def get_location(self, location_id: str) -> CampusLocation:
        location = self.locations.get(location_id)
        if location is None:
            raise UnknownLocation(location_id)
        return location

    def floors(self) -> List[int]:
        return sorted({node.floor for node in self.nodes.values()})

    def nodes_on_floor(self, floor: int) -> List[CampusNode]:
        return [node for node in self.nodes.values() if node.floor == floor]

    def edges(self) -> List[CampusEdge]:
        return [data['edge'] for _, _, data in self.graph.edges(data=True)]

    def number_of_nodes(self) -> int:
        return self.graph.number_of_nodes()

    def number_of_edges(self) -> int:
        return self.graph.number_of_edges()

    def to_dict(self) -> Dict:
        return {
            'nodes': [asdict(node) for node in self.nodes.values()],
            'edges': [asdict(edge) for edge in self.edges()],
            'locations': [asdict(location) for location in self.locations.values()]
        }

    @classmethod
    def from_dict(cls, graph_data: Dict) -> 'CampusGraph':
        """Build a graph from raw node/edge/location records.

        Edges may omit `distance` (Euclidean length is used) and `direction`
        (derived from the endpoint geometry).
        """
        try:
            nodes = [CampusNode(**node_data) for node_data in graph_data['nodes']]
        except (KeyError, TypeError) as e:
            raise GraphDataError(f"Invalid node data: {e}") from e

        node_map = {node.id: node for node in nodes}
        edges = []
        for edge_data in graph_data.get('edges', []):
            try:
                source_id = edge_data['source_id']
                target_id = edge_data['target_id']
            except KeyError as e:
                raise GraphDataError(f"Edge is missing {e}") from e
            if source_id not in node_map or target_id not in node_map:
                raise GraphDataError(f"Edge {source_id}-{target_id} references unknown node")

            source, target = node_map[source_id], node_map[target_id]
            distance = edge_data.get('distance')
            if distance is None:
                distance = euclidean_distance(source, target)
            direction = edge_data.get('direction') or compass_direction(source, target)

            edges.append(CampusEdge(
                source_id=source_id,
                target_id=target_id,
                distance=float(distance),
                direction=direction,
                transition_type=edge_data.get('transition_type', WALK)
            ))

        try:
            locations = [CampusLocation(**loc) for loc in graph_data.get('locations', [])]
        except TypeError as e:
            raise GraphDataError(f"Invalid location data: {e}") from e

        return cls(nodes, edges, locations)

    @classmethod
    def load_graph(cls, filepath: str) -> 'CampusGraph':
        """Load graph from a JSON file."""
        with open(filepath, 'r') as f:
            graph_data = json.load(f)
        return cls.from_dict(graph_data)

    def save_graph(self, filepath: str):
        """Save graph to a JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
