"""Data types for tactical annotations: targets, own forces and areas.

Every entity is a dataclass with ``from_dict`` / ``to_dict`` for the JSON
representation used by the storage collaborator and overlay export, and a
``validate()`` method that raises ``ValueError`` when an invariant is
broken. The store validates on every write, so nothing invalid is ever
persisted.

Positions are ``(lat, lon)`` tuples in WGS84 decimal degrees. Timestamps are
timezone-aware UTC datetimes, serialized as ISO-8601 strings.
"""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Union

LatLon = tuple[float, float]

EntityKind = Literal["target", "ownforce", "area"]
ENTITY_KINDS: tuple[str, ...] = ("target", "ownforce", "area")

CLASSIFICATIONS = ("personnel", "vehicle", "building", "equipment", "unknown")
DISPOSITIONS = ("hostile", "unknown", "neutral")
FORCE_TYPES = ("infantry", "vehicle", "command", "support")
FORCE_STATUSES = ("active", "standby", "moving", "engaged")
AREA_TYPES = ("restricted", "patrol", "objective", "hazard")
AREA_SHAPES = ("polygon", "circle", "line")

# Minimum vertex count per vertex-based shape
MIN_VERTICES = {"polygon": 3, "line": 2}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _check_position(p: LatLon, what: str = "position") -> None:
    lat, lon = p
    if not -90.0 <= lat <= 90.0:
        raise ValueError(f"{what} latitude out of range: {lat}")
    if not -180.0 <= lon <= 180.0:
        raise ValueError(f"{what} longitude out of range: {lon}")


def _check_choice(value: str, choices: tuple[str, ...], what: str) -> None:
    if value not in choices:
        raise ValueError(
            f"invalid {what} {value!r} (expected one of {', '.join(choices)})"
        )


def _check_text(value, what: str) -> None:
    if not isinstance(value, str):
        raise ValueError(f"{what} must be text, got {type(value).__name__}")


def _int_from(v) -> int:
    """Integer field from JSON; rejects fractions, NaN and infinities."""
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError(f"expected an integer, got {v!r}")
    if isinstance(v, float) and not (math.isfinite(v) and v.is_integer()):
        raise ValueError(f"expected an integer, got {v!r}")
    return int(v)


def _pos_from(v) -> LatLon:
    lat, lon = v
    return (float(lat), float(lon))


def _ts_from(v) -> datetime:
    if isinstance(v, datetime):
        return v
    ts = datetime.fromisoformat(v)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass
class Target:
    id: str
    position: LatLon
    name: str = ""
    description: str = ""
    classification: str = "unknown"
    certainty: int = 50
    disposition: str = "unknown"
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def validate(self) -> None:
        _check_position(self.position)
        _check_text(self.name, "name")
        _check_text(self.description, "description")
        _check_choice(self.classification, CLASSIFICATIONS, "classification")
        _check_choice(self.disposition, DISPOSITIONS, "disposition")
        if isinstance(self.certainty, bool) or not isinstance(
            self.certainty, int
        ):
            raise ValueError(f"certainty must be an integer: {self.certainty!r}")
        if not 0 <= self.certainty <= 100:
            raise ValueError(f"certainty out of range 0-100: {self.certainty}")

    @staticmethod
    def from_dict(d: dict) -> Target:
        t = Target(
            id=str(d["id"]),
            position=_pos_from(d["position"]),
            name=d.get("name", ""),
            description=d.get("description", ""),
            classification=d.get("classification", "unknown"),
            certainty=_int_from(d.get("certainty", 50)),
            disposition=d.get("disposition", "unknown"),
            created_at=_ts_from(d["created_at"]),
            updated_at=_ts_from(d.get("updated_at", d["created_at"])),
        )
        t.validate()
        return t

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": [self.position[0], self.position[1]],
            "name": self.name,
            "description": self.description,
            "classification": self.classification,
            "certainty": self.certainty,
            "disposition": self.disposition,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class OwnForce:
    id: str
    position: LatLon
    name: str = ""
    force_type: str = "infantry"
    status: str = "active"
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def validate(self) -> None:
        _check_position(self.position)
        _check_text(self.name, "name")
        _check_choice(self.force_type, FORCE_TYPES, "own-force type")
        _check_choice(self.status, FORCE_STATUSES, "status")

    @staticmethod
    def from_dict(d: dict) -> OwnForce:
        f = OwnForce(
            id=str(d["id"]),
            position=_pos_from(d["position"]),
            name=d.get("name", ""),
            force_type=d.get("type", "infantry"),
            status=d.get("status", "active"),
            created_at=_ts_from(d["created_at"]),
            updated_at=_ts_from(d.get("updated_at", d["created_at"])),
        )
        f.validate()
        return f

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": [self.position[0], self.position[1]],
            "name": self.name,
            "type": self.force_type,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class Area:
    id: str
    shape: str
    vertices: list[LatLon] = field(default_factory=list)
    center: LatLon | None = None
    radius_m: float | None = None
    name: str = ""
    description: str = ""
    area_type: str = "patrol"
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def validate(self) -> None:
        _check_choice(self.shape, AREA_SHAPES, "shape")
        _check_text(self.name, "name")
        _check_text(self.description, "description")
        _check_choice(self.area_type, AREA_TYPES, "area type")
        if self.shape == "circle":
            if self.center is None or self.radius_m is None:
                raise ValueError("circle area needs a center and a radius")
            _check_position(self.center, "center")
            if not (math.isfinite(self.radius_m) and self.radius_m > 0):
                raise ValueError(f"circle radius must be > 0: {self.radius_m}")
            return
        need = MIN_VERTICES[self.shape]
        if len(self.vertices) < need:
            raise ValueError(
                f"{self.shape} needs at least {need} vertices, "
                f"got {len(self.vertices)}"
            )
        for i, v in enumerate(self.vertices):
            _check_position(v, f"vertex {i}")

    @staticmethod
    def from_dict(d: dict) -> Area:
        center = d.get("center")
        radius = d.get("radius_m")
        a = Area(
            id=str(d["id"]),
            shape=d["shape"],
            vertices=[_pos_from(v) for v in d.get("vertices", [])],
            center=_pos_from(center) if center is not None else None,
            radius_m=float(radius) if radius is not None else None,
            name=d.get("name", ""),
            description=d.get("description", ""),
            area_type=d.get("type", "patrol"),
            created_at=_ts_from(d["created_at"]),
            updated_at=_ts_from(d.get("updated_at", d["created_at"])),
        )
        a.validate()
        return a

    def to_dict(self) -> dict:
        d: dict = {
            "id": self.id,
            "shape": self.shape,
            "name": self.name,
            "description": self.description,
            "type": self.area_type,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.shape == "circle":
            assert self.center is not None
            d["center"] = [self.center[0], self.center[1]]
            d["radius_m"] = self.radius_m
        else:
            d["vertices"] = [[lat, lon] for lat, lon in self.vertices]
        return d


Entity = Union[Target, OwnForce, Area]

ENTITY_TYPES: dict[str, type] = {
    "target": Target,
    "ownforce": OwnForce,
    "area": Area,
}


def kind_of(entity: Entity) -> str:
    """Return the collection key ("target", "ownforce", "area") for an entity."""
    for kind, cls in ENTITY_TYPES.items():
        if isinstance(entity, cls):
            return kind
    raise TypeError(f"not a tactical entity: {type(entity).__name__}")


def entity_from_dict(kind: str, d: dict) -> Entity:
    return ENTITY_TYPES[kind].from_dict(d)


def clone(entity: Entity) -> Entity:
    return copy.deepcopy(entity)


# -- factories for freshly placed / drawn entities --


def new_target(entity_id: str, position: LatLon, now: datetime) -> Target:
    return Target(id=entity_id, position=position, created_at=now, updated_at=now)


def new_own_force(entity_id: str, position: LatLon, now: datetime) -> OwnForce:
    return OwnForce(
        id=entity_id, position=position, created_at=now, updated_at=now
    )


def new_vertex_area(
    entity_id: str, shape: str, vertices: list[LatLon], now: datetime
) -> Area:
    return Area(
        id=entity_id,
        shape=shape,
        vertices=list(vertices),
        created_at=now,
        updated_at=now,
    )


def new_circle_area(
    entity_id: str, center: LatLon, radius_m: float, now: datetime
) -> Area:
    return Area(
        id=entity_id,
        shape="circle",
        center=center,
        radius_m=radius_m,
        created_at=now,
        updated_at=now,
    )
