"""
Configuration settings for the Campus Navigation System
"""

from pathlib import Path

# Base directories
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(__file__).parent / "data"  # installed with the config package
LOGS_DIR = BASE_DIR / "logs"

# Campus layout data
CAMPUS_DATA_CONFIG = {
    "campus_graph": str(DATA_DIR / "campus_graph.json"),
    "default_start": "entrance"
}

# Route planning defaults
ROUTE_CONFIG = {
    "walking_speed_ms": 1.4,  # 1.4 m/s = 5 km/h
    "time_scale": 2.0,  # map units are not quite metres
    "transport_preferences": ("stairs", "lift")
}

# Turn-by-turn narration
INSTRUCTION_CONFIG = {
    "straight_threshold_deg": 30.0,
    "straight_callout_interval": 3  # every 3rd straight node
}

# Simple 2D progress engine
PROGRESS_CONFIG = {
    "speed_per_ms": 0.00025,  # segment progress per millisecond
    "fixed_timestep_ms": 16.0,  # ~60fps
    "max_frame_delta_ms": 50.0
}

# Floor-aware marker animation
FLOOR_NAVIGATION_CONFIG = {
    "walk_speed": 8.0,  # map units per second, faster than reality for the UI
    "stair_speed": 4.0,
    "lift_speed": 2.0,
    "lift_wait_ms": 3000.0,  # waiting for the lift doors
    "turn_duration_ms": 300.0,  # one full 360 degree turn
    "step_frequency": 3.0,  # steps per second
    "max_frame_delta_ms": 50.0,
    "stair_sway": 0.5,
    "rotation_snap_deg": 5.0,
    "approach_fraction": 0.25
}

FLOOR_NAMES = ["Ground Floor", "First Floor", "Second Floor"]

# Web application settings
WEB_CONFIG = {
    "host": "127.0.0.1",
    "port": 8000,
    "title": "Campus Navigation System",
    "description": "Indoor campus navigation with stairs and lift transitions",
    "frame_interval_ms": 16.0
}

# Logging configuration
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "file": str(LOGS_DIR / "navigation.log")
}
