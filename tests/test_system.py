"""
System tests for the campus graph, route solver and instruction generator
"""

import pytest
import sys
from pathlib import Path

# Add src and project root to path
sys.path.append(str(Path(__file__).parent.parent / "src"))
sys.path.append(str(Path(__file__).parent.parent))

from config.settings import CAMPUS_DATA_CONFIG
from errors import GraphDataError, UnknownLocation
from graph_model import CampusEdge, CampusGraph, CampusLocation, CampusNode
from instructions import (ARRIVE, GO_STRAIGHT, LANDMARK, START, TURN_LEFT, TURN_RIGHT,
                          generate_instructions, summarize_directions, turn_direction)
from pathfinder import CampusPathfinder, NavigationPath, NoPathFound


def build_graph(nodes, edges, locations=None):
    """Graph from compact tuples; every node gets a same-named location."""
    node_records = [
        {"id": node_id, "x": x, "y": y, "floor": floor}
        for node_id, x, y, floor in nodes
    ]
    edge_records = []
    for edge in edges:
        source, target, distance = edge[:3]
        record = {"source_id": source, "target_id": target, "distance": distance}
        if len(edge) > 3:
            record["transition_type"] = edge[3]
        edge_records.append(record)
    if locations is None:
        locations = [{"id": node_id, "name": node_id, "node_id": node_id}
                     for node_id, _, _, _ in nodes]
    return CampusGraph.from_dict({"nodes": node_records, "edges": edge_records,
                                  "locations": locations})


def stairs_graph():
    """A(floor 0) -walk 10- B(floor 0) -stairs 5- C(floor 1)."""
    return build_graph(
        [("A", 0, 0, 0), ("B", 10, 0, 0), ("C", 10, 5, 1)],
        [("A", "B", 10), ("B", "C", 5, "stairs")]
    )


def nodes_along(points, indoor=None):
    indoor = indoor or [True] * len(points)
    return [CampusNode(f"n{i}", x, y, is_indoor=flag)
            for i, ((x, y), flag) in enumerate(zip(points, indoor))]


@pytest.fixture(scope="module")
def campus():
    return CampusGraph.load_graph(CAMPUS_DATA_CONFIG['campus_graph'])


class TestGraphModel:
    """Test campus graph loading and validation."""

    def test_bundled_campus_loads(self, campus):
        """Test the bundled two-floor campus."""
        assert campus.number_of_nodes() > 40
        assert campus.floors() == [0, 1]
        assert campus.resolve_location("entrance") == "n_entrance"
        assert all(node.floor == 1 for node in campus.nodes_on_floor(1))

    def test_bundled_campus_ships_with_config(self):
        import config
        graph_file = Path(CAMPUS_DATA_CONFIG['campus_graph'])

        assert graph_file.is_file()
        assert Path(config.__file__).parent in graph_file.parents

    def test_vertical_edges(self, campus):
        """Test that stairs and lift join the floors and reverse to 'down'."""
        up = campus.get_edge("n_stairs", "n_f1_stairs")
        down = campus.get_edge("n_f1_stairs", "n_stairs")

        assert up.transition_type == "stairs"
        assert up.direction == "up"
        assert down.direction == "down"
        assert down.source_id == "n_f1_stairs"
        assert campus.is_vertical(up)
        assert campus.get_edge("n_lift", "n_f1_lift").transition_type == "lift"

    def test_missing_distance_and_direction_are_derived(self):
        """Test Euclidean distance and compass direction for sparse edges."""
        graph = build_graph([("A", 0, 0, 0), ("B", 3, 4, 0), ("C", 0, 10, 0)],
                            [("A", "B", None), ("A", "C", None)])

        assert graph.get_edge("A", "B").distance == pytest.approx(5.0)
        # y grows southward
        assert graph.get_edge("A", "C").direction == "south"
        assert graph.get_edge("C", "A").direction == "north"

    def test_edge_with_unknown_endpoint(self):
        nodes = [CampusNode("A", 0, 0)]
        with pytest.raises(GraphDataError):
            CampusGraph(nodes, [CampusEdge("A", "Z", 1.0, "east")])

    def test_cross_floor_walk_edge_rejected(self):
        nodes = [CampusNode("A", 0, 0, floor=0), CampusNode("B", 0, 0, floor=1)]
        with pytest.raises(GraphDataError):
            CampusGraph(nodes, [CampusEdge("A", "B", 5.0, "up", "walk")])

    def test_invalid_edges_rejected(self):
        """Test unknown transition types and negative distances."""
        nodes = [CampusNode("A", 0, 0), CampusNode("B", 10, 0)]
        with pytest.raises(GraphDataError):
            CampusGraph(nodes, [CampusEdge("A", "B", 10.0, "east", "escalator")])
        with pytest.raises(GraphDataError):
            CampusGraph(nodes, [CampusEdge("A", "B", -1.0, "east")])

    def test_duplicate_node_rejected(self):
        with pytest.raises(GraphDataError):
            CampusGraph([CampusNode("A", 0, 0), CampusNode("A", 1, 1)], [])

    def test_location_to_missing_node_rejected(self):
        with pytest.raises(GraphDataError):
            CampusGraph([CampusNode("A", 0, 0)], [],
                        [CampusLocation("lab", "Lab", "n_lab")])

    def test_graph_data_error_is_value_error(self):
        with pytest.raises(ValueError):
            CampusGraph.from_dict({"nodes": [{"x": 1}]})

    def test_save_and_load(self, tmp_path):
        """Test saving a graph to JSON and loading it back."""
        graph = stairs_graph()
        filepath = tmp_path / "graph.json"
        graph.save_graph(str(filepath))

        loaded = CampusGraph.load_graph(str(filepath))
        assert loaded.number_of_edges() == 2
        assert loaded.get_edge("B", "C") == graph.get_edge("B", "C")


class TestPathfinder:
    """Test route solving."""

    def test_stairs_scenario(self):
        """Test the A-B-C route over a walk and a stairs segment."""
        pathfinder = CampusPathfinder(stairs_graph())
        path = pathfinder.find_path("A", "C")

        assert isinstance(path, NavigationPath)
        assert path.node_ids == ["A", "B", "C"]
        assert path.distance == pytest.approx(15.0)
        assert path.floors_visited == [0, 1]

    def test_endpoints_for_all_campus_pairs(self, campus):
        """Test that every reachable pair starts and ends at the resolved nodes."""
        pathfinder = CampusPathfinder(campus)
        location_ids = sorted(campus.locations)

        for start in location_ids:
            for end in location_ids:
                path = pathfinder.find_path(start, end)
                assert path, f"{start} -> {end}"
                assert path.nodes[0].id == campus.resolve_location(start)
                assert path.nodes[-1].id == campus.resolve_location(end)

    def test_filter_removes_only_vertical_link(self):
        """Test NoPathFound when the preference excludes the only floor change."""
        pathfinder = CampusPathfinder(stairs_graph())
        result = pathfinder.find_path("A", "C", transport_preference="lift")

        assert isinstance(result, NoPathFound)
        assert not result
        assert result.transport_preference == "lift"

        # Same-floor edges are never filtered
        assert pathfinder.find_path("A", "B", transport_preference="lift").node_ids == ["A", "B"]

    def test_transport_preference_on_campus(self, campus):
        """Test stairs and lift routes to the first floor."""
        pathfinder = CampusPathfinder(campus)

        by_lift = pathfinder.find_path("entrance", "staff_room", "lift")
        by_stairs = pathfinder.find_path("entrance", "staff_room", "stairs")

        assert "n_lift" in by_lift.node_ids
        assert "n_stairs" not in by_lift.node_ids
        assert "n_stairs" in by_stairs.node_ids
        assert "n_lift" not in by_stairs.node_ids

    def test_determinism(self, campus):
        pathfinder = CampusPathfinder(campus)
        first = pathfinder.find_path("library", "eee_lab")
        second = pathfinder.find_path("library", "eee_lab")

        assert first.node_ids == second.node_ids
        assert first.distance == second.distance

    def test_tie_break_by_node_id(self):
        """Test equal-cost routes resolve the same way every time."""
        graph = build_graph(
            [("A", 0, 0, 0), ("B", 10, 0, 0), ("C", 0, 10, 0), ("D", 10, 10, 0)],
            [("A", "B", 10), ("A", "C", 10), ("B", "D", 10), ("C", "D", 10)]
        )
        assert CampusPathfinder(graph).find_path("A", "D").node_ids == ["A", "B", "D"]

    def test_shorter_route_wins(self):
        """Test the direct edge is used only when it is not longer than the detour."""
        nodes = [("A", 0, 0, 0), ("B", 10, 0, 0), ("C", 20, 0, 0)]
        direct = build_graph(nodes, [("A", "B", 10), ("B", "C", 10), ("A", "C", 15)])
        detour = build_graph(nodes, [("A", "B", 10), ("B", "C", 10), ("A", "C", 25)])

        assert CampusPathfinder(direct).find_path("A", "C").distance == pytest.approx(15.0)
        assert CampusPathfinder(detour).find_path("A", "C").node_ids == ["A", "B", "C"]

    def test_start_equals_destination(self):
        path = CampusPathfinder(stairs_graph()).find_path("B", "B")

        assert path.node_ids == ["B"]
        assert path.distance == 0
        assert [inst.instruction_type for inst in path.instructions] == [START, ARRIVE]

    def test_unknown_location(self):
        pathfinder = CampusPathfinder(stairs_graph())
        with pytest.raises(UnknownLocation):
            pathfinder.find_path("A", "nowhere")
        with pytest.raises(UnknownLocation):
            pathfinder.find_path("nowhere", "A")

    def test_unknown_node(self):
        """Test raw node ids fail the same way as location ids."""
        pathfinder = CampusPathfinder(stairs_graph())
        with pytest.raises(UnknownLocation) as excinfo:
            pathfinder.find_path_between_nodes("A", "n_missing")
        assert excinfo.value.location_id == "n_missing"

    def test_invalid_transport_preference(self):
        with pytest.raises(ValueError):
            CampusPathfinder(stairs_graph()).find_path("A", "C", "escalator")

    def test_route_summary(self):
        pathfinder = CampusPathfinder(stairs_graph())
        summary = pathfinder.get_route_summary(pathfinder.find_path("A", "C"))

        assert summary['total_nodes'] == 3
        assert summary['segment_types'] == {'walk': 1, 'stairs': 1, 'lift': 0}
        assert summary['floors_visited'] == [0, 1]
        assert summary['estimated_time_s'] == round(15 / 1.4 * 2)

    def test_transport_choice_and_options(self):
        pathfinder = CampusPathfinder(stairs_graph())

        assert pathfinder.needs_transport_choice("A", "C")
        assert not pathfinder.needs_transport_choice("A", "B")

        options = pathfinder.find_route_options("A", "C")
        assert set(options) == {None, "stairs", "lift"}
        assert options["stairs"].node_ids == ["A", "B", "C"]
        assert not options["lift"]


class TestInstructions:
    """Test turn-by-turn instruction generation."""

    def test_straight_corridor(self):
        """Test five collinear nodes produce one straight call-out at index 3."""
        path = nodes_along([(0, 0), (10, 0), (20, 0), (30, 0), (40, 0)])
        instructions = generate_instructions(path)
        types = [inst.instruction_type for inst in instructions]

        assert TURN_LEFT not in types and TURN_RIGHT not in types
        straights = [inst for inst in instructions if inst.instruction_type == GO_STRAIGHT]
        assert len(straights) == 1
        assert straights[0].node_index == 3
        assert instructions[0].instruction_type == START
        assert instructions[-1].instruction_type == ARRIVE
        assert instructions[-1].node_index == 4

    def test_left_corner(self):
        """Test a single 90 degree left corner."""
        path = nodes_along([(0, 0), (10, 0), (10, -10)])
        turns = [inst for inst in generate_instructions(path)
                 if inst.instruction_type in (TURN_LEFT, TURN_RIGHT)]

        assert len(turns) == 1
        assert turns[0].instruction_type == TURN_LEFT
        assert turns[0].text == "Turn left"
        assert turns[0].node_index == 1
        assert turns[0].distance == pytest.approx(10.0)

    def test_turn_distance_uses_edge_distance(self):
        """Test turn call-outs carry the authored edge distance."""
        graph = build_graph(
            [("A", 0, 0, 0), ("B", 10, 0, 0), ("C", 10, 10, 0)],
            [("A", "B", 10), ("B", "C", 25)]
        )
        path = CampusPathfinder(graph).find_path("A", "C")
        turns = [inst for inst in path.instructions if inst.instruction_type == TURN_RIGHT]

        assert len(turns) == 1
        assert turns[0].distance == pytest.approx(25.0)

    def test_right_corner(self):
        path = nodes_along([(0, 0), (10, 0), (10, 10)])
        types = [inst.instruction_type for inst in generate_instructions(path)]
        assert types == [START, TURN_RIGHT, ARRIVE]

    def test_turn_classification(self):
        assert turn_direction(0, 29.9) == 'straight'
        assert turn_direction(0, 30) == 'right'
        assert turn_direction(0, -45) == 'left'
        assert turn_direction(170, -170) == 'straight'
        assert turn_direction(0, 180) == 'right'

    def test_leaving_the_building(self):
        path = nodes_along([(0, 0), (10, 0), (20, 0), (30, 0)],
                           indoor=[True, True, False, False])
        landmarks = [inst for inst in generate_instructions(path)
                     if inst.instruction_type == LANDMARK]

        assert len(landmarks) == 1
        assert landmarks[0].text == "Exiting the building"
        assert landmarks[0].node_index == 2

    def test_single_node(self):
        instructions = generate_instructions(nodes_along([(5, 5)]))

        assert [inst.instruction_type for inst in instructions] == [START, ARRIVE]
        assert all(inst.node_index == 0 for inst in instructions)

    def test_generation_is_pure(self):
        path = nodes_along([(0, 0), (10, 0), (10, 10), (20, 10)])
        assert generate_instructions(path) == generate_instructions(path)

    def test_summarize_directions(self):
        graph = stairs_graph()
        path = CampusPathfinder(graph).find_path("A", "C")
        directions = summarize_directions(path.nodes, graph)

        assert directions[0] == "Starting from A"
        assert directions[-1] == "You have reached your destination: C"

    def test_summarize_campus_route(self, campus):
        path = CampusPathfinder(campus).find_path("entrance", "staff_room", "stairs")
        directions = summarize_directions(path.nodes, campus)

        assert directions[0] == "Starting from Main Entrance"
        assert "Take the stairs up to floor 1" in directions
        assert directions[-1].startswith("You have reached your destination")
