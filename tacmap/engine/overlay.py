"""Draw requests for the map widget.

The engine never draws. ``build_overlay`` turns the store, the staged
entity and the drawing machine into a flat list of ``DrawRequest`` records
that any map widget can render: committed entities first (filtered by
``LayerVisibility``), then the pending preview, then in-progress drawing
aids and the last measurement.

Color keys follow the operator conventions: targets by disposition, own
forces by status, areas by area type. Pending and in-progress geometry is
always drawn in ``PENDING_COLOR``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .drawing import DrawingStateMachine
from .editing import EditWorkflow
from .geometry import anchor, format_bearing, format_distance
from .store import EntityStore
from .types import Area, Entity, LatLon, OwnForce, Target

FALLBACK_COLOR = "#6b7280"
PENDING_COLOR = "#00ff88"

DISPOSITION_COLORS = {
    "hostile": "#ef4444",
    "unknown": "#f59e0b",
    "neutral": "#10b981",
}

STATUS_COLORS = {
    "active": "#10b981",
    "standby": "#f59e0b",
    "moving": "#3b82f6",
    "engaged": "#ef4444",
}

AREA_COLORS = {
    "restricted": "#ef4444",
    "patrol": "#3b82f6",
    "objective": "#10b981",
    "hazard": "#f59e0b",
}

CLASSIFICATION_GLYPHS = {
    "personnel": "P",
    "vehicle": "V",
    "building": "B",
    "equipment": "E",
    "unknown": "?",
}

FORCE_GLYPHS = {
    "infantry": "I",
    "vehicle": "V",
    "command": "C",
    "support": "S",
}

AREA_GLYPH = "A"
DASH_DEFAULT = (5, 5)
DASH_RESTRICTED = (10, 5)
AREA_FILL_OPACITY = 0.2
CIRCLE_PREVIEW_RADIUS_M = 50.0


@dataclass
class LayerVisibility:
    targets: bool = True
    ownforces: bool = True
    areas: bool = True
    names: bool = True

    def shows(self, kind: str) -> bool:
        return {
            "target": self.targets,
            "ownforce": self.ownforces,
            "area": self.areas,
        }[kind]


@dataclass
class DrawRequest:
    geometry: str  # "marker", "polygon", "circle", "polyline", "vertex"
    coordinates: list[LatLon]
    color: str
    kind: str | None = None  # entity collection, None for drawing aids
    entity_id: str | None = None
    radius_m: float | None = None
    fill_opacity: float = 0.0
    opacity: float = 1.0
    dash: tuple[int, int] | None = None
    glyph: str = ""
    marker_style: str = "square"  # "square", "round", "anchor"
    label: str = ""
    draggable: bool = False
    pending: bool = False
    extra: dict = field(default_factory=dict)


def entity_color(entity: Entity) -> str:
    if isinstance(entity, Target):
        return DISPOSITION_COLORS.get(entity.disposition, FALLBACK_COLOR)
    if isinstance(entity, OwnForce):
        return STATUS_COLORS.get(entity.status, FALLBACK_COLOR)
    return AREA_COLORS.get(entity.area_type, FALLBACK_COLOR)


def _point_request(
    entity: Target | OwnForce, label: str, color: str, pending: bool
) -> DrawRequest:
    if isinstance(entity, Target):
        return DrawRequest(
            geometry="marker",
            coordinates=[entity.position],
            color=color,
            kind="target",
            entity_id=entity.id,
            opacity=entity.certainty / 100,
            glyph=CLASSIFICATION_GLYPHS.get(entity.classification, "?"),
            marker_style="square",
            label=label,
            draggable=not pending,
            pending=pending,
        )
    return DrawRequest(
        geometry="marker",
        coordinates=[entity.position],
        color=color,
        kind="ownforce",
        entity_id=entity.id,
        glyph=FORCE_GLYPHS.get(entity.force_type, "I"),
        marker_style="round",
        label=label,
        draggable=not pending,
        pending=pending,
    )


def _area_requests(
    area: Area, label: str, color: str, pending: bool
) -> list[DrawRequest]:
    dash = DASH_RESTRICTED if area.area_type == "restricted" and not pending else DASH_DEFAULT
    if area.shape == "circle":
        assert area.center is not None
        shape = DrawRequest(
            geometry="circle",
            coordinates=[area.center],
            radius_m=area.radius_m,
            color=color,
            kind="area",
            entity_id=area.id,
            fill_opacity=AREA_FILL_OPACITY,
            dash=DASH_DEFAULT,
            pending=pending,
        )
    else:
        shape = DrawRequest(
            geometry="polygon" if area.shape == "polygon" else "polyline",
            coordinates=list(area.vertices),
            color=color,
            kind="area",
            entity_id=area.id,
            fill_opacity=AREA_FILL_OPACITY if area.shape == "polygon" else 0.0,
            dash=dash,
            pending=pending,
        )
    if pending:
        shape.label = label
        return [shape]
    marker = DrawRequest(
        geometry="marker",
        coordinates=[anchor(area)],
        color=color,
        kind="area",
        entity_id=area.id,
        glyph=AREA_GLYPH,
        marker_style="anchor",
        label=label,
        draggable=True,
    )
    return [shape, marker]


def entity_requests(
    entity: Entity, show_names: bool = True, pending: bool = False
) -> list[DrawRequest]:
    label = entity.name if show_names else ""
    color = PENDING_COLOR if pending and isinstance(entity, Area) else entity_color(entity)
    if isinstance(entity, Area):
        return _area_requests(entity, label, color, pending)
    return [_point_request(entity, label, color, pending)]


def drawing_requests(drawing: DrawingStateMachine) -> list[DrawRequest]:
    """Aids for the shape being drawn and the last measurement."""
    reqs: list[DrawRequest] = []
    pts = list(drawing.points)
    state = drawing.state
    if state in ("collecting-polygon", "collecting-line") and len(pts) >= 2:
        reqs.append(
            DrawRequest(
                geometry="polyline",
                coordinates=pts,
                color=PENDING_COLOR,
                opacity=0.8,
                dash=DASH_DEFAULT,
            )
        )
    if state == "collecting-circle-radius" and pts:
        reqs.append(
            DrawRequest(
                geometry="circle",
                coordinates=[pts[0]],
                radius_m=CIRCLE_PREVIEW_RADIUS_M,
                color=PENDING_COLOR,
                fill_opacity=0.1,
                opacity=0.8,
                dash=DASH_DEFAULT,
            )
        )
    for p in pts:
        reqs.append(DrawRequest(geometry="vertex", coordinates=[p], color=PENDING_COLOR))

    m = drawing.last_measurement
    if m is not None:
        reqs.append(
            DrawRequest(
                geometry="polyline",
                coordinates=[m.start, m.end],
                color=PENDING_COLOR,
                dash=DASH_DEFAULT,
                label=f"{format_distance(m.distance_km)} / {format_bearing(m.bearing_deg)}",
                extra={"distance_km": m.distance_km, "bearing_deg": m.bearing_deg},
            )
        )
    return reqs


def build_overlay(
    store: EntityStore,
    workflow: EditWorkflow,
    drawing: DrawingStateMachine,
    layers: LayerVisibility | None = None,
) -> list[DrawRequest]:
    layers = layers or LayerVisibility()
    reqs: list[DrawRequest] = []
    for kind in ("target", "ownforce", "area"):
        if not layers.shows(kind):
            continue
        for e in store.all(kind):
            reqs.extend(entity_requests(e, layers.names))

    preview = workflow.preview()
    if preview is not None and workflow.is_new:
        reqs.extend(entity_requests(preview, layers.names, pending=True))

    reqs.extend(drawing_requests(drawing))
    return reqs

