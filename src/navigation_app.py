"""
Navigation App Interface
FastAPI service exposing campus routes and a live, server-driven walk-through.
"""

import logging
from typing import Dict, Literal, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from animation_loop import AsyncioFrameScheduler
from config.settings import CAMPUS_DATA_CONFIG, FLOOR_NAMES, WEB_CONFIG
from errors import InvalidRunRequest, UnknownLocation
from graph_model import CampusGraph
from instructions import summarize_directions
from navigation_session import FLOOR_MODE, NavigationSession, instruction_to_dict
from pathfinder import NavigationPath

logger = logging.getLogger(__name__)

TransportPreference = Optional[Literal['stairs', 'lift']]


class RouteRequest(BaseModel):
    start: str = CAMPUS_DATA_CONFIG['default_start']
    destination: str
    transport_preference: TransportPreference = None


class NavigationStartRequest(RouteRequest):
    mode: Optional[Literal['floor', 'simple']] = None


def floor_name(floor: int) -> str:
    if 0 <= floor < len(FLOOR_NAMES):
        return FLOOR_NAMES[floor]
    return f"Floor {floor}"


class NavigationApp:
    """Campus navigation web service."""

    def __init__(self, graph_path: Optional[str] = None, graph: Optional[CampusGraph] = None,
                 mode: str = FLOOR_MODE):
        self.graph = graph or CampusGraph.load_graph(graph_path or CAMPUS_DATA_CONFIG['campus_graph'])
        self.default_mode = mode
        self.session = NavigationSession(
            self.graph,
            scheduler=AsyncioFrameScheduler(WEB_CONFIG['frame_interval_ms']),
            mode=mode
        )
        self.app = FastAPI(title=WEB_CONFIG['title'],
                           description=WEB_CONFIG['description'],
                           version="1.0.0")

        self._setup_routes()

    def _setup_routes(self):
        """Setup FastAPI routes."""

        @self.app.get("/api/locations")
        async def get_locations():
            """All selectable start and destination locations."""
            locations = []
            for location in self.graph.locations.values():
                node = self.graph.get_node(location.node_id)
                locations.append({
                    "id": location.id,
                    "name": location.name,
                    "short_name": location.short_name,
                    "type": location.location_type,
                    "block": location.block,
                    "node_id": location.node_id,
                    "floor": node.floor
                })
            return {"locations": locations, "count": len(locations)}

        @self.app.get("/api/map_data")
        async def get_map_data():
            """Get map visualization data."""
            return {
                "floors": [{"floor": floor, "name": floor_name(floor)} for floor in self.graph.floors()],
                "nodes": [self._node_to_dict(node) for node in self.graph.nodes.values()],
                "edges": [self._edge_to_dict(edge) for edge in self.graph.edges()]
            }

        @self.app.get("/api/floors/{floor}")
        async def get_floor(floor: int):
            """Nodes and same-floor edges of one floor."""
            if floor not in self.graph.floors():
                raise HTTPException(status_code=404, detail=f"Unknown floor: {floor}")

            nodes = self.graph.nodes_on_floor(floor)
            node_ids = {node.id for node in nodes}
            edges = [edge for edge in self.graph.edges()
                     if edge.source_id in node_ids and edge.target_id in node_ids]
            return {
                "floor": floor,
                "name": floor_name(floor),
                "nodes": [self._node_to_dict(node) for node in nodes],
                "edges": [self._edge_to_dict(edge) for edge in edges]
            }

        @self.app.post("/api/find_route")
        async def find_route(route_request: RouteRequest):
            """Find the shortest route between two locations."""
            try:
                result = self.session.pathfinder.find_path(
                    route_request.start,
                    route_request.destination,
                    route_request.transport_preference
                )
            except UnknownLocation as e:
                raise HTTPException(status_code=404, detail=str(e))

            if not result:
                return {"status": "no_route", "reason": result.reason}

            return {"status": "success", "route": self._route_to_dict(result)}

        @self.app.get("/api/transport_choice")
        async def get_transport_choice(start: str, destination: str):
            """Whether stairs or lift can be chosen, with the route for each option."""
            try:
                needs_choice = self.session.pathfinder.needs_transport_choice(start, destination)
                options = self.session.pathfinder.find_route_options(start, destination)
            except UnknownLocation as e:
                raise HTTPException(status_code=404, detail=str(e))

            return {
                "needs_choice": needs_choice,
                "options": {
                    (preference or "any"): (
                        self.session.pathfinder.get_route_summary(route) if route else None
                    )
                    for preference, route in options.items()
                }
            }

        @self.app.post("/api/navigation/start")
        async def start_navigation(start_request: NavigationStartRequest):
            """Solve a route and start the live walk-through."""
            try:
                self.session.select_start(start_request.start)
                self.session.select_destination(start_request.destination)
                self.session.set_transport_preference(start_request.transport_preference)
                self.session.mode = start_request.mode or self.default_mode
                result = self.session.begin_navigation()
            except UnknownLocation as e:
                raise HTTPException(status_code=404, detail=str(e))
            except InvalidRunRequest as e:
                raise HTTPException(status_code=400, detail=str(e))

            if not result:
                return {"status": "no_route", "reason": result.reason}

            return {
                "status": "started",
                "route": self._route_to_dict(result),
                "navigation": self.session.snapshot()
            }

        @self.app.post("/api/navigation/pause")
        async def pause_navigation():
            self.session.pause()
            return {"status": "paused", "navigation": self.session.snapshot()}

        @self.app.post("/api/navigation/resume")
        async def resume_navigation():
            self.session.resume()
            return {"status": "resumed", "navigation": self.session.snapshot()}

        @self.app.post("/api/navigation/stop")
        async def stop_navigation():
            self.session.stop_navigation()
            return {"status": "stopped", "navigation": self.session.snapshot()}

        @self.app.get("/api/navigation/state")
        async def get_navigation_state():
            """Current marker, state and progress of the live walk-through."""
            return self.session.snapshot()

        @self.app.get("/api/navigation/narration")
        async def get_narration():
            """Texts to speak since the last poll."""
            return {
                "muted": self.session.narration.muted,
                "utterances": self.session.narration.drain()
            }

        @self.app.post("/api/navigation/narration/mute")
        async def toggle_mute():
            return {"muted": self.session.narration.toggle_mute()}

    @staticmethod
    def _node_to_dict(node) -> Dict:
        return {
            "id": node.id,
            "x": node.x,
            "y": node.y,
            "floor": node.floor,
            "is_indoor": node.is_indoor,
            "type": node.node_type,
            "name": node.display_name
        }

    @staticmethod
    def _edge_to_dict(edge) -> Dict:
        return {
            "source": edge.source_id,
            "target": edge.target_id,
            "distance": edge.distance,
            "direction": edge.direction,
            "type": edge.transition_type
        }

    def _route_to_dict(self, path: NavigationPath) -> Dict:
        return {
            "nodes": [self._node_to_dict(node) for node in path.nodes],
            "distance": path.distance,
            "estimated_time": path.estimated_time,
            "transport_preference": path.transport_preference,
            "instructions": [instruction_to_dict(inst) for inst in path.instructions],
            "directions": summarize_directions(path.nodes, self.graph),
            "summary": self.session.pathfinder.get_route_summary(path)
        }

    def run(self, host: str = WEB_CONFIG['host'], port: int = WEB_CONFIG['port']):
        """Run the navigation application."""
        print("Starting Campus Navigation System...")
        print(f"Web interface: http://{host}:{port}")
        print(f"API documentation: http://{host}:{port}/docs")

        uvicorn.run(self.app, host=host, port=port)
