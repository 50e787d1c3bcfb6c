"""Catalog interface (port) for published routes."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from ekinavi.core.models import RouteRecord, SurveyResponse


class RouteCatalog(Protocol):
    """Port: holds route records and the append-only feedback on them."""

    def add(self, record: RouteRecord) -> None: ...

    def get(self, route_id: str) -> RouteRecord: ...

    def all(self) -> list[RouteRecord]: ...

    def record_view(self, route_id: str) -> RouteRecord: ...

    def add_survey(self, route_id: str, survey: SurveyResponse) -> RouteRecord: ...

    def history(self) -> list[RouteRecord]: ...
