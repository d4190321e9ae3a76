"""
Error types shared by the campus navigation components.
"""


class NavigationError(Exception):
    """Base class for navigation failures."""


class GraphDataError(NavigationError, ValueError):
    """Campus graph data is malformed. Raised at load time."""


class UnknownLocation(NavigationError, KeyError):
    """A start or destination id has no node in the campus graph."""

    def __init__(self, location_id: str):
        super().__init__(location_id)
        self.location_id = location_id

    def __str__(self):
        return f"Unknown location: {self.location_id}"


class InvalidRunRequest(NavigationError):
    """Navigation was requested without a usable route."""
