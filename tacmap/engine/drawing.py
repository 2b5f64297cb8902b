"""Drawing state machine for placing and sketching annotations.

States and the tool that arms them:

  =========================  ==============  ===============================
  state                      tool            click does
  =========================  ==============  ===============================
  idle                       (none)          nothing (router hit-tests)
  placing-point              target/ownforce returns a pending point entity
  collecting-polygon         area-polygon    appends a vertex
  collecting-line            area-line       appends a vertex
  collecting-circle-center   area-circle     records center, -> radius
  collecting-circle-radius   area-circle     returns a pending circle
  measuring                  measure         two clicks -> Measurement
  =========================  ==============  ===============================

Selecting the active tool again toggles back to idle. Selecting any tool
discards the point buffer, so vertices never carry over between shapes.
The buffer is owned by this class alone and only ever appended to or
cleared.

A placement tool stays armed after it produces a pending entity; the
caller resets the machine once the edit workflow saves or cancels.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Union

from .geometry import bearing_deg, distance_km
from .types import (
    MIN_VERTICES,
    Area,
    LatLon,
    OwnForce,
    Target,
    new_circle_area,
    new_own_force,
    new_target,
    new_vertex_area,
    utc_now,
)

logger = logging.getLogger(__name__)

TOOLS = ("target", "ownforce", "area-polygon", "area-line", "area-circle", "measure")

_TOOL_STATES = {
    "target": "placing-point",
    "ownforce": "placing-point",
    "area-polygon": "collecting-polygon",
    "area-line": "collecting-line",
    "area-circle": "collecting-circle-center",
    "measure": "measuring",
}

PendingEntity = Union[Target, OwnForce, Area]


@dataclass(frozen=True)
class Measurement:
    start: LatLon
    end: LatLon
    distance_km: float
    bearing_deg: float


def _new_id() -> str:
    return uuid.uuid4().hex


class DrawingStateMachine:
    def __init__(
        self,
        id_factory: Callable[[], str] = _new_id,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._id_factory = id_factory
        self._clock = clock
        self._tool: str | None = None
        self._state = "idle"
        self._points: list[LatLon] = []
        self.last_measurement: Measurement | None = None

    @property
    def state(self) -> str:
        return self._state

    @property
    def tool(self) -> str | None:
        return self._tool

    @property
    def is_idle(self) -> bool:
        return self._state == "idle"

    @property
    def points(self) -> tuple[LatLon, ...]:
        return tuple(self._points)

    @property
    def can_complete(self) -> bool:
        """True once a polygon has 3 vertices or a line has 2."""
        if self._state == "collecting-polygon":
            return len(self._points) >= MIN_VERTICES["polygon"]
        if self._state == "collecting-line":
            return len(self._points) >= MIN_VERTICES["line"]
        return False

    def _clear_points(self) -> None:
        self._points = []

    def select_tool(self, tool: str) -> str:
        """Arm a tool, or disarm it if it is already active. Returns the new state."""
        if tool not in TOOLS:
            raise ValueError(f"unknown tool: {tool!r}")
        self._clear_points()
        self.last_measurement = None
        if tool == self._tool:
            self._tool = None
            self._state = "idle"
        else:
            self._tool = tool
            self._state = _TOOL_STATES[tool]
        logger.debug("Tool %s -> state %s", tool, self._state)
        return self._state

    def cancel(self) -> None:
        """Drop any accumulated points and return to idle."""
        self._clear_points()
        self._tool = None
        self._state = "idle"
        self.last_measurement = None

    # Called by the router after the edit workflow closes.
    reset = cancel

    def click(self, point: LatLon) -> PendingEntity | Measurement | None:
        """Feed one map click to the active tool.

        Returns a pending entity when the click finishes one (point tools,
        circle radius), a Measurement for the second measure click, and
        None otherwise.
        """
        state = self._state
        if state == "placing-point":
            now = self._clock()
            if self._tool == "target":
                return new_target(self._id_factory(), point, now)
            return new_own_force(self._id_factory(), point, now)

        if state in ("collecting-polygon", "collecting-line"):
            self._points = [*self._points, point]
            return None

        if state == "collecting-circle-center":
            self._points = [point]
            self._state = "collecting-circle-radius"
            return None

        if state == "collecting-circle-radius":
            center = self._points[0]
            radius_m = distance_km(center, point) * 1000.0
            if radius_m <= 0:
                logger.info("Ignoring zero-radius circle click at %s", point)
                return None
            self._clear_points()
            self._state = "collecting-circle-center"
            return new_circle_area(self._id_factory(), center, radius_m, self._clock())

        if state == "measuring":
            if not self._points:
                self._points = [point]
                self.last_measurement = None
                return None
            start = self._points[0]
            self._clear_points()
            self.last_measurement = Measurement(
                start=start,
                end=point,
                distance_km=distance_km(start, point),
                bearing_deg=bearing_deg(start, point),
            )
            return self.last_measurement

        return None

    def complete(self) -> Area | None:
        """Finish the polygon/line being collected.

        Returns None while the minimum vertex count has not been reached.
        """
        if not self.can_complete:
            return None
        shape = "polygon" if self._state == "collecting-polygon" else "line"
        area = new_vertex_area(
            self._id_factory(), shape, list(self._points), self._clock()
        )
        self._clear_points()
        return area
