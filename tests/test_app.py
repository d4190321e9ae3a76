"""
Tests for the navigation session and the web API
"""

import pytest
import sys
from pathlib import Path

from fastapi.testclient import TestClient

# Add src and project root to path
sys.path.append(str(Path(__file__).parent.parent / "src"))
sys.path.append(str(Path(__file__).parent.parent))

from animation_loop import ManualFrameScheduler
from config.settings import CAMPUS_DATA_CONFIG
from errors import InvalidRunRequest, UnknownLocation
from floor_navigation import NavState
from graph_model import CampusGraph
from navigation_app import NavigationApp
from navigation_session import NavigationSession
from pathfinder import NoPathFound


def stairs_only_graph():
    return CampusGraph.from_dict({
        "nodes": [
            {"id": "A", "x": 0, "y": 0, "floor": 0},
            {"id": "B", "x": 10, "y": 0, "floor": 0},
            {"id": "C", "x": 10, "y": 5, "floor": 1}
        ],
        "edges": [
            {"source_id": "A", "target_id": "B"},
            {"source_id": "B", "target_id": "C", "distance": 5, "transition_type": "stairs"}
        ],
        "locations": [
            {"id": "entrance", "name": "Entrance", "node_id": "A"},
            {"id": "hall", "name": "Hall", "node_id": "B"},
            {"id": "office", "name": "Office", "node_id": "C"}
        ]
    })


@pytest.fixture(scope="module")
def campus():
    return CampusGraph.load_graph(CAMPUS_DATA_CONFIG['campus_graph'])


def run_until_arrived(session, scheduler, limit_ms=300000):
    elapsed = 0
    while not session.has_arrived and elapsed < limit_ms:
        scheduler.advance(1000)
        elapsed += 1000


class TestNavigationSession:
    """Test the UI command surface."""

    def test_requires_destination(self, campus):
        session = NavigationSession(campus, scheduler=ManualFrameScheduler())
        with pytest.raises(InvalidRunRequest):
            session.begin_navigation()

    def test_unknown_location_leaves_state_untouched(self, campus):
        session = NavigationSession(campus, scheduler=ManualFrameScheduler())
        with pytest.raises(UnknownLocation):
            session.select_destination("moon_base")

        assert session.destination_id is None
        assert session.start_location_id == "entrance"
        assert session.snapshot()['state'] == NavState.IDLE.value

    def test_lift_route_to_first_floor(self, campus):
        """Test a full walk-through by lift."""
        scheduler = ManualFrameScheduler()
        session = NavigationSession(campus, scheduler=scheduler)
        session.select_destination("staff_room")
        assert session.needs_transport_choice()
        session.set_transport_preference("lift")

        path = session.begin_navigation()
        assert "n_lift" in path.node_ids
        assert session.snapshot()['state'] == NavState.WALKING.value
        assert session.narration.next_utterance() == \
            "Starting navigation from Main Entrance to Staff Room"

        run_until_arrived(session, scheduler)

        snapshot = session.snapshot()
        assert session.has_arrived
        assert snapshot['state'] == NavState.ARRIVED.value
        assert snapshot['current_floor'] == 1
        assert snapshot['marker']['floor'] == 1
        assert snapshot['percent_complete'] == 100.0
        assert "You have arrived at your destination" in session.narration.drain()

    def test_no_route_does_not_start(self):
        session = NavigationSession(stairs_only_graph(), scheduler=ManualFrameScheduler())
        session.select_destination("office")
        session.set_transport_preference("lift")

        result = session.begin_navigation()
        assert isinstance(result, NoPathFound)
        assert not session.is_navigating
        assert session.snapshot()['state'] == NavState.IDLE.value
        assert session.narration.pending == []

    def test_same_start_and_destination(self, campus):
        session = NavigationSession(campus, scheduler=ManualFrameScheduler())
        session.select_destination("entrance")
        session.begin_navigation()

        assert session.has_arrived
        assert session.snapshot()['state'] == NavState.ARRIVED.value

    def test_simple_mode(self):
        scheduler = ManualFrameScheduler()
        session = NavigationSession(stairs_only_graph(), scheduler=scheduler, mode="simple")
        session.select_destination("office")
        session.begin_navigation()
        scheduler.advance(1600)

        snapshot = session.snapshot()
        assert snapshot['mode'] == "simple"
        assert snapshot['marker']['rotation'] is None
        assert 0 < snapshot['percent_complete'] < 100

        run_until_arrived(session, scheduler)
        snapshot = session.snapshot()
        assert snapshot['state'] == NavState.ARRIVED.value
        assert snapshot['current_floor'] == snapshot['marker']['floor'] == 1
        assert session.current_floor == 1

    def test_pause_resume_stop(self):
        scheduler = ManualFrameScheduler()
        session = NavigationSession(stairs_only_graph(), scheduler=scheduler)
        session.select_destination("office")
        session.begin_navigation()
        scheduler.advance(320)

        session.pause()
        paused = session.snapshot()
        assert paused['is_paused']
        scheduler.advance(1000)
        assert session.snapshot()['transition_progress'] == paused['transition_progress']

        session.resume()
        assert not session.snapshot()['is_paused']

        session.stop_navigation()
        snapshot = session.snapshot()
        assert snapshot['state'] == NavState.IDLE.value
        assert snapshot['path'] is None
        assert scheduler.pending_count == 0

    def test_invalid_preference(self, campus):
        session = NavigationSession(campus)
        with pytest.raises(ValueError):
            session.set_transport_preference("escalator")


class TestNavigationApp:
    """Test the FastAPI endpoints."""

    @pytest.fixture
    def client(self, campus):
        with TestClient(NavigationApp(graph=campus).app) as client:
            yield client

    def test_locations(self, client, campus):
        response = client.get("/api/locations")
        assert response.status_code == 200
        data = response.json()
        assert data['count'] == len(campus.locations)
        staff_room = next(loc for loc in data['locations'] if loc['id'] == "staff_room")
        assert staff_room['floor'] == 1

    def test_map_and_floor_data(self, client):
        map_data = client.get("/api/map_data").json()
        assert [floor['floor'] for floor in map_data['floors']] == [0, 1]
        assert map_data['floors'][0]['name'] == "Ground Floor"

        first_floor = client.get("/api/floors/1").json()
        assert first_floor['nodes']
        assert all(node['floor'] == 1 for node in first_floor['nodes'])
        assert all(edge['type'] == "walk" for edge in first_floor['edges'])

        assert client.get("/api/floors/7").status_code == 404

    def test_find_route(self, client):
        response = client.post("/api/find_route", json={
            "start": "entrance", "destination": "staff_room", "transport_preference": "lift"})
        assert response.status_code == 200
        data = response.json()
        assert data['status'] == "success"
        node_ids = [node['id'] for node in data['route']['nodes']]
        assert "n_lift" in node_ids
        assert data['route']['instructions'][0]['text'] == "Starting navigation"
        assert data['route']['summary']['floors_visited'] == [0, 1]

    def test_find_route_errors(self, client):
        unknown = client.post("/api/find_route", json={"destination": "moon_base"})
        assert unknown.status_code == 404

        bad_preference = client.post("/api/find_route", json={
            "destination": "staff_room", "transport_preference": "escalator"})
        assert bad_preference.status_code == 422

    def test_no_route(self):
        with TestClient(NavigationApp(graph=stairs_only_graph()).app) as client:
            response = client.post("/api/find_route", json={
                "destination": "office", "transport_preference": "lift"})
            assert response.json()['status'] == "no_route"

    def test_transport_choice(self, client):
        data = client.get("/api/transport_choice",
                          params={"start": "entrance", "destination": "staff_room"}).json()
        assert data['needs_choice'] is True
        assert set(data['options']) == {"any", "stairs", "lift"}
        assert data['options']['lift']['segment_types']['lift'] == 1

    def test_navigation_lifecycle(self, client):
        started = client.post("/api/navigation/start", json={
            "destination": "staff_room", "transport_preference": "stairs"})
        assert started.status_code == 200
        assert started.json()['status'] == "started"

        state = client.get("/api/navigation/state").json()
        assert state['destination'] == "staff_room"
        assert state['state'] in {s.value for s in NavState}

        assert client.post("/api/navigation/pause").json()['navigation']['is_paused'] is True
        assert client.post("/api/navigation/resume").json()['navigation']['is_paused'] is False

        narration = client.get("/api/navigation/narration").json()
        assert narration['utterances'][0] == \
            "Starting navigation from Main Entrance to Staff Room"

        stopped = client.post("/api/navigation/stop").json()
        assert stopped['navigation']['state'] == NavState.IDLE.value

    def test_start_mode_defaults_per_request(self, client):
        simple = client.post("/api/navigation/start", json={
            "destination": "library", "mode": "simple"}).json()
        assert simple['navigation']['mode'] == "simple"

        default = client.post("/api/navigation/start", json={"destination": "library"}).json()
        assert default['navigation']['mode'] == "floor"

        client.post("/api/navigation/stop")

    def test_navigation_start_unknown_location(self, client):
        response = client.post("/api/navigation/start", json={"destination": "moon_base"})
        assert response.status_code == 404
