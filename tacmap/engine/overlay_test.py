"""Tests for draw request generation."""

from .drawing import DrawingStateMachine
from .editing import EditWorkflow
from .overlay import (
    AREA_FILL_OPACITY,
    CIRCLE_PREVIEW_RADIUS_M,
    DASH_DEFAULT,
    DASH_RESTRICTED,
    FALLBACK_COLOR,
    PENDING_COLOR,
    LayerVisibility,
    build_overlay,
    drawing_requests,
    entity_color,
    entity_requests,
)
from .storage import MemoryStorage
from .store import EntityStore
from .types import Area, OwnForce, Target


def _parts():
    store = EntityStore(MemoryStorage())
    drawing = DrawingStateMachine()
    workflow = EditWorkflow(store, on_close=drawing.reset)
    return store, workflow, drawing


# -- colors & styles ----------------------------------------------------------


class TestEntityStyle:
    def test_target_color_and_opacity(self):
        t = Target(id="t1", position=(60.0, 10.0), disposition="hostile", certainty=80)
        (req,) = entity_requests(t)
        assert req.geometry == "marker"
        assert req.color == "#ef4444"
        assert req.opacity == 0.8
        assert req.glyph == "?"
        assert req.draggable is True

    def test_force_color_by_status(self):
        f = OwnForce(id="f1", position=(60.0, 10.0), status="moving", force_type="command")
        (req,) = entity_requests(f)
        assert req.color == "#3b82f6"
        assert req.glyph == "C"
        assert req.marker_style == "round"

    def test_unknown_value_falls_back_to_gray(self):
        t = Target(id="t1", position=(60.0, 10.0))
        t.disposition = "mystery"
        assert entity_color(t) == FALLBACK_COLOR

    def test_restricted_polygon_dash(self):
        a = Area(
            id="a1",
            shape="polygon",
            vertices=[(60.0, 10.0), (60.0, 10.1), (60.1, 10.1)],
            area_type="restricted",
        )
        shape, marker = entity_requests(a)
        assert shape.geometry == "polygon"
        assert shape.dash == DASH_RESTRICTED
        assert shape.fill_opacity == AREA_FILL_OPACITY
        assert marker.marker_style == "anchor"
        assert marker.draggable is True

    def test_line_has_no_fill(self):
        a = Area(id="l1", shape="line", vertices=[(60.0, 10.0), (60.0, 10.1)])
        shape, _ = entity_requests(a)
        assert shape.geometry == "polyline"
        assert shape.fill_opacity == 0.0
        assert shape.dash == DASH_DEFAULT

    def test_names_hidden(self):
        t = Target(id="t1", position=(60.0, 10.0), name="Truck")
        assert entity_requests(t, show_names=True)[0].label == "Truck"
        assert entity_requests(t, show_names=False)[0].label == ""

    def test_pending_area_is_green_without_anchor(self):
        a = Area(id="c1", shape="circle", center=(60.0, 10.0), radius_m=200.0)
        reqs = entity_requests(a, pending=True)
        assert len(reqs) == 1
        assert reqs[0].color == PENDING_COLOR
        assert reqs[0].pending is True


# -- overlay composition ------------------------------------------------------


class TestBuildOverlay:
    def test_layers_filter_committed_entities(self):
        store, workflow, drawing = _parts()
        store.add("target", Target(id="t1", position=(60.0, 10.0)))
        store.add("ownforce", OwnForce(id="f1", position=(60.1, 10.0)))
        layers = LayerVisibility(targets=False)
        reqs = build_overlay(store, workflow, drawing, layers)
        assert {r.kind for r in reqs} == {"ownforce"}

    def test_pending_entity_drawn(self):
        store, workflow, drawing = _parts()
        workflow.open_new(Target(id="new", position=(60.0, 10.0)))
        reqs = build_overlay(store, workflow, drawing)
        assert [r.entity_id for r in reqs] == ["new"]
        assert reqs[0].pending is True
        assert reqs[0].draggable is False

    def test_edited_entity_not_duplicated(self):
        store, workflow, drawing = _parts()
        store.add("target", Target(id="t1", position=(60.0, 10.0)))
        workflow.open_existing("target", "t1")
        reqs = build_overlay(store, workflow, drawing)
        assert [r.entity_id for r in reqs] == ["t1"]


class TestDrawingAids:
    def test_polyline_needs_two_points(self):
        drawing = DrawingStateMachine()
        drawing.select_tool("area-polygon")
        drawing.click((60.0, 10.0))
        assert [r.geometry for r in drawing_requests(drawing)] == ["vertex"]
        drawing.click((60.0, 10.1))
        assert [r.geometry for r in drawing_requests(drawing)] == [
            "polyline",
            "vertex",
            "vertex",
        ]

    def test_circle_preview(self):
        drawing = DrawingStateMachine()
        drawing.select_tool("area-circle")
        drawing.click((60.0, 10.0))
        circle = drawing_requests(drawing)[0]
        assert circle.geometry == "circle"
        assert circle.radius_m == CIRCLE_PREVIEW_RADIUS_M
        assert circle.color == PENDING_COLOR

    def test_measurement_label(self):
        drawing = DrawingStateMachine()
        drawing.select_tool("measure")
        drawing.click((0.0, 0.0))
        drawing.click((0.0, 0.001))
        (line,) = drawing_requests(drawing)
        assert line.label == "111 m / 090°"
