"""Tests for the drawing state machine."""

from datetime import datetime, timezone

import pytest

from .drawing import DrawingStateMachine, Measurement
from .geometry import destination
from .types import Area, OwnForce, Target

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _machine():
    counter = iter(range(1, 1000))
    return DrawingStateMachine(
        id_factory=lambda: f"id{next(counter)}", clock=lambda: T0
    )


# -- tool selection -----------------------------------------------------------


class TestToolSelection:
    @pytest.mark.parametrize(
        "tool, state",
        [
            ("target", "placing-point"),
            ("ownforce", "placing-point"),
            ("area-polygon", "collecting-polygon"),
            ("area-line", "collecting-line"),
            ("area-circle", "collecting-circle-center"),
            ("measure", "measuring"),
        ],
    )
    def test_tool_arms_state(self, tool, state):
        m = _machine()
        assert m.state == "idle"
        assert m.select_tool(tool) == state
        assert m.tool == tool

    def test_same_tool_toggles_off(self):
        m = _machine()
        m.select_tool("area-polygon")
        m.click((60.0, 10.0))
        assert m.select_tool("area-polygon") == "idle"
        assert m.tool is None
        assert m.points == ()

    def test_unknown_tool(self):
        with pytest.raises(ValueError):
            _machine().select_tool("lasso")

    def test_cancel_returns_to_idle(self):
        m = _machine()
        m.select_tool("area-line")
        m.click((60.0, 10.0))
        m.cancel()
        assert m.state == "idle"
        assert m.points == ()

    def test_switching_tool_discards_points(self):
        m = _machine()
        m.select_tool("area-polygon")
        m.click((60.0, 10.0))
        m.click((60.0, 10.1))
        m.select_tool("area-line")
        assert m.state == "collecting-line"
        assert m.points == ()

    def test_idle_click_does_nothing(self):
        m = _machine()
        assert m.click((60.0, 10.0)) is None
        assert m.state == "idle"


# -- point placement ----------------------------------------------------------


class TestPlacement:
    def test_target_defaults(self):
        m = _machine()
        m.select_tool("target")
        t = m.click((59.91, 10.75))
        assert isinstance(t, Target)
        assert t.id == "id1"
        assert t.position == (59.91, 10.75)
        assert t.classification == "unknown"
        assert t.certainty == 50
        assert t.disposition == "unknown"
        assert t.created_at == T0
        # Tool stays armed until the workflow closes
        assert m.state == "placing-point"

    def test_own_force_defaults(self):
        m = _machine()
        m.select_tool("ownforce")
        f = m.click((60.0, 10.0))
        assert isinstance(f, OwnForce)
        assert f.force_type == "infantry"
        assert f.status == "active"


# -- polygons & lines ---------------------------------------------------------


class TestVertexShapes:
    def test_polygon_needs_three_points(self):
        m = _machine()
        m.select_tool("area-polygon")
        m.click((60.0, 10.0))
        m.click((60.0, 10.1))
        assert m.can_complete is False
        assert m.complete() is None
        assert len(m.points) == 2

        m.click((60.1, 10.1))
        assert m.can_complete is True

    def test_polygon_does_not_auto_finish(self):
        m = _machine()
        m.select_tool("area-polygon")
        for i in range(5):
            assert m.click((60.0 + i * 0.01, 10.0)) is None
        assert len(m.points) == 5

    def test_complete_polygon(self):
        m = _machine()
        m.select_tool("area-polygon")
        pts = [(60.0, 10.0), (60.0, 10.1), (60.1, 10.1)]
        for p in pts:
            m.click(p)
        area = m.complete()
        assert isinstance(area, Area)
        assert area.shape == "polygon"
        assert area.vertices == pts
        assert area.area_type == "patrol"
        assert m.points == ()

    def test_line_needs_two_points(self):
        m = _machine()
        m.select_tool("area-line")
        m.click((60.0, 10.0))
        assert m.can_complete is False
        m.click((60.0, 10.1))
        assert m.can_complete is True
        area = m.complete()
        assert area.shape == "line"
        assert len(area.vertices) == 2

    def test_duplicate_points_accepted(self):
        m = _machine()
        m.select_tool("area-polygon")
        m.click((60.0, 10.0))
        m.click((60.0, 10.0))
        m.click((60.0, 10.0))
        assert len(m.points) == 3

    def test_cancel_then_restart_starts_empty(self):
        m = _machine()
        m.select_tool("area-polygon")
        m.click((60.0, 10.0))
        m.click((60.0, 10.1))
        m.cancel()
        m.select_tool("area-polygon")
        assert m.points == ()
        m.click((61.0, 11.0))
        assert m.points == ((61.0, 11.0),)

    def test_complete_not_available_for_other_tools(self):
        m = _machine()
        m.select_tool("area-circle")
        m.click((60.0, 10.0))
        assert m.can_complete is False
        assert m.complete() is None


# -- circles ------------------------------------------------------------------


class TestCircle:
    def test_center_then_radius(self):
        m = _machine()
        m.select_tool("area-circle")
        assert m.click((60.0, 10.0)) is None
        assert m.state == "collecting-circle-radius"

        east = destination((60.0, 10.0), 90.0, 1.0)
        area = m.click(east)
        assert isinstance(area, Area)
        assert area.shape == "circle"
        assert area.center == (60.0, 10.0)
        assert area.radius_m == pytest.approx(1000.0, abs=0.5)
        assert m.points == ()

    def test_zero_radius_ignored(self):
        m = _machine()
        m.select_tool("area-circle")
        m.click((60.0, 10.0))
        assert m.click((60.0, 10.0)) is None
        assert m.state == "collecting-circle-radius"


# -- measurement --------------------------------------------------------------


class TestMeasure:
    def test_two_clicks_measure(self):
        m = _machine()
        m.select_tool("measure")
        assert m.click((60.0, 10.0)) is None
        east = destination((60.0, 10.0), 90.0, 2.0)
        result = m.click(east)
        assert isinstance(result, Measurement)
        assert result.distance_km == pytest.approx(2.0, rel=1e-9)
        assert result.bearing_deg == pytest.approx(90.0, abs=1e-6)
        assert m.last_measurement is result
        assert m.points == ()

    def test_third_click_starts_new_measurement(self):
        m = _machine()
        m.select_tool("measure")
        m.click((60.0, 10.0))
        m.click((60.0, 10.1))
        m.click((61.0, 10.0))
        assert m.last_measurement is None
        assert m.points == ((61.0, 10.0),)

    def test_leaving_measure_clears_result(self):
        m = _machine()
        m.select_tool("measure")
        m.click((60.0, 10.0))
        m.click((60.0, 10.1))
        m.select_tool("measure")
        assert m.last_measurement is None
