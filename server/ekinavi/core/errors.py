"""Exceptions raised by the core. The API layer maps them to HTTP statuses."""

from __future__ import annotations


class EkinaviError(Exception):
    """Base class for all core errors."""


class InvalidStateError(EkinaviError):
    """Operation not allowed in the current session state."""


class InvalidInputError(EkinaviError):
    """Input violates the caller contract (bad timestamp, score out of range...)."""


class MalformedBodyError(EkinaviError):
    """Request body is not a JSON object."""


class RouteNotFoundError(EkinaviError):
    def __init__(self, route_id: str) -> None:
        super().__init__(f"route {route_id!r} not found")
        self.route_id = route_id
