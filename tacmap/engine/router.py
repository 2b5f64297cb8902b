"""Interaction router: map clicks and drags -> drawing, editing or store.

Click dispatch:

  1. A tool is armed: the click goes to the drawing machine, unless an
     entity is already staged (then the click is ignored until the form is
     saved or cancelled).
  2. Otherwise the click is hit-tested against rendered entities; a hit
     opens the edit workflow on it, unless something else is staged.
  3. Empty map while idle: nothing happens.

Drag-end on an anchor marker moves a point entity to the drop position, or
translates an area rigidly by (drop - anchor). Dragging the entity that is
currently open in the form is refused.

Hit testing uses shapely for polygon containment and distance to lines. The
shapes are built in plain (lon, lat) degree space, which is fine for the
pick tolerances involved; circles and markers use haversine distance.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Callable

from shapely.geometry import LineString, Point, Polygon

from .drawing import DrawingStateMachine, Measurement
from .editing import EditWorkflow
from .geometry import anchor, distance_km, translate
from .store import EntityStore
from .types import Area, Entity, LatLon, kind_of, utc_now

logger = logging.getLogger(__name__)

# Mean length of one degree of latitude, used to turn km tolerances into
# degree tolerances for shapely distance checks.
KM_PER_DEGREE = 111.195

DEFAULT_TOLERANCE_KM = 0.05


def _xy(points: list[LatLon]) -> list[tuple[float, float]]:
    return [(lon, lat) for lat, lon in points]


def area_contains(area: Area, point: LatLon, tolerance_km: float) -> bool:
    """Whether point lies on/in the area's shape (not its anchor)."""
    if area.shape == "circle":
        assert area.center is not None and area.radius_m is not None
        return distance_km(area.center, point) * 1000.0 <= area.radius_m
    p = Point(point[1], point[0])
    if area.shape == "polygon":
        return Polygon(_xy(area.vertices)).covers(p)
    tol_deg = tolerance_km / KM_PER_DEGREE
    return LineString(_xy(area.vertices)).distance(p) <= tol_deg


class InteractionRouter:
    def __init__(
        self,
        store: EntityStore,
        drawing: DrawingStateMachine | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self._clock = clock
        self.drawing = drawing or DrawingStateMachine(clock=clock)
        self.workflow = EditWorkflow(store, on_close=self.drawing.reset, clock=clock)

    # -- tools --

    def select_tool(self, tool: str) -> bool:
        """Arm/disarm a tool. Refused while an entity is staged."""
        if self.workflow.is_open:
            return False
        self.drawing.select_tool(tool)
        return True

    def cancel_drawing(self) -> None:
        if self.workflow.is_open:
            return
        self.drawing.cancel()

    def complete_drawing(self) -> bool:
        """Finish the polygon/line being drawn and stage it for editing."""
        if self.workflow.is_open:
            return False
        area = self.drawing.complete()
        if area is None:
            return False
        return self.workflow.open_new(area)

    # -- form pass-throughs --

    def save(self) -> Entity | None:
        return self.workflow.save()

    def cancel(self) -> None:
        self.workflow.cancel()

    def delete(self) -> bool:
        return self.workflow.delete()

    # -- events --

    def on_click(
        self, point: LatLon, tolerance_km: float = DEFAULT_TOLERANCE_KM
    ) -> str:
        """Dispatch a map click. Returns what happened, for the caller's UI:
        "drawing", "staged", "measured", "opened" or "ignored"."""
        if not self.drawing.is_idle:
            if self.workflow.is_open:
                return "ignored"
            result = self.drawing.click(point)
            if result is None:
                return "drawing"
            if isinstance(result, Measurement):
                return "measured"
            self.workflow.open_new(result)
            return "staged"

        hit = self.hit_test(point, tolerance_km)
        if hit is None:
            return "ignored"
        kind, entity_id = hit
        if self.workflow.is_open:
            return "ignored"
        return "opened" if self.workflow.open_existing(kind, entity_id) else "ignored"

    def on_drag_end(self, entity_id: str, point: LatLon) -> bool:
        """Relocate a committed entity whose anchor was dropped at point."""
        if self.workflow.is_editing(entity_id):
            logger.info("Refusing drag of %s while it is open for editing", entity_id)
            return False
        found = self.store.find(entity_id)
        if found is None:
            return False
        kind, _ = found
        now = self._clock()

        def relocate(e: Entity) -> Entity:
            if isinstance(e, Area):
                a_lat, a_lon = anchor(e)
                moved = translate(e, point[0] - a_lat, point[1] - a_lon)
                return dataclasses.replace(moved, updated_at=now)
            return dataclasses.replace(e, position=point, updated_at=now)

        try:
            return self.store.update(kind, entity_id, relocate)
        except ValueError as e:
            logger.warning("Rejected drag of %s %s: %s", kind, entity_id, e)
            return False

    # -- hit testing --

    def entity_at_anchor(
        self, point: LatLon, tolerance_km: float = DEFAULT_TOLERANCE_KM
    ) -> tuple[str, str] | None:
        """Topmost marker (point entity or area anchor) within tolerance."""
        for kind in ("area", "ownforce", "target"):
            for e in reversed(self.store.all(kind)):
                p = anchor(e) if isinstance(e, Area) else e.position
                if distance_km(p, point) <= tolerance_km:
                    return kind, e.id
        return None

    def hit_test(
        self, point: LatLon, tolerance_km: float = DEFAULT_TOLERANCE_KM
    ) -> tuple[str, str] | None:
        """Return (kind, id) of the topmost entity under point, or None.

        Markers and area anchors win over area shapes; within a group the
        most recently added entity is on top.
        """
        hit = self.entity_at_anchor(point, tolerance_km)
        if hit is not None:
            return hit
        for e in reversed(self.store.all("area")):
            if area_contains(e, point, tolerance_km):
                return kind_of(e), e.id
        return None
