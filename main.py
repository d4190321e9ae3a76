"""
Main entry point for the Campus Navigation System
Demonstrates route planning across floors and a simulated walk-through.
"""

import logging
import sys
from pathlib import Path

# Add src directory to Python path
sys.path.append(str(Path(__file__).parent / "src"))

from config.settings import CAMPUS_DATA_CONFIG, LOGGING_CONFIG, LOGS_DIR
from animation_loop import ManualFrameScheduler
from events import NavigationEventType
from graph_model import CampusGraph
from instructions import summarize_directions
from navigation_app import NavigationApp
from navigation_session import NavigationSession, describe_event
from pathfinder import CampusPathfinder


def setup_logging():
    LOGS_DIR.mkdir(exist_ok=True)
    logging.basicConfig(
        level=LOGGING_CONFIG['level'],
        format=LOGGING_CONFIG['format'],
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(LOGGING_CONFIG['file'])
        ]
    )


def demo_system(start: str = "entrance", destination: str = "staff_room"):
    """Demonstrate route planning and a simulated floor-aware walk-through."""
    print("🏫 Campus Navigation System Demo")
    print("=" * 50)

    print("1. Loading campus graph...")
    graph = CampusGraph.load_graph(CAMPUS_DATA_CONFIG['campus_graph'])
    print(f"   ✓ {graph.number_of_nodes()} nodes, {graph.number_of_edges()} edges, "
          f"{len(graph.locations)} locations on floors {graph.floors()}")

    print(f"2. Planning routes from '{start}' to '{destination}'...")
    pathfinder = CampusPathfinder(graph)
    if pathfinder.needs_transport_choice(start, destination):
        print("   Route changes floor: comparing stairs and lift")

    options = pathfinder.find_route_options(start, destination)
    for preference, route in options.items():
        label = preference or "any"
        if not route:
            print(f"   ⚠ {label}: no route ({route.reason})")
            continue
        summary = pathfinder.get_route_summary(route)
        print(f"   ✓ {label}: {summary['total_distance']} units, "
              f"~{summary['estimated_time_s']}s, floors {summary['floors_visited']}, "
              f"segments {summary['segment_types']}")

    route = options[None]
    if not route:
        return False

    print("3. Turn-by-turn instructions:")
    for instruction in route.instructions:
        print(f"   [{instruction.node_index:2d}] {instruction.text}")

    print("4. Route overview:")
    for line in summarize_directions(route.nodes, graph):
        print(f"   • {line}")

    print("5. Simulating the walk-through (stairs)...")
    scheduler = ManualFrameScheduler()
    session = NavigationSession(graph, scheduler=scheduler)
    session.select_start(start)
    session.select_destination(destination)
    session.set_transport_preference("stairs")
    session.begin_navigation()

    elapsed_ms = 0.0
    while not session.has_arrived and elapsed_ms < 10 * 60 * 1000:
        scheduler.advance(1000)
        elapsed_ms += 1000
        for event in session.drain_events():
            if event.event_type in (NavigationEventType.STATE_CHANGED,
                                    NavigationEventType.FLOOR_CHANGED,
                                    NavigationEventType.ARRIVED):
                print(f"   {elapsed_ms / 1000:5.0f}s  {describe_event(event)}")

    print("   Narration:")
    for text in session.narration.drain():
        print(f"   🔊 {text}")

    print("6. System demonstration complete!")
    return session.has_arrived


def run_web_app():
    """Run the web application."""
    app = NavigationApp()
    app.run()


def main():
    """Main function - choose between demo or web app."""
    setup_logging()
    if len(sys.argv) > 1 and sys.argv[1] == "demo":
        demo_system(*sys.argv[2:4])
    else:
        print("🏫 Campus Navigation System")
        print("Starting web application...")
        print("Run 'python main.py demo' to see a simulated walk-through first.")
        run_web_app()


if __name__ == "__main__":
    main()
