"""Tests for entity types: validation and dict serialization."""

from datetime import datetime, timezone

import pytest

from .types import Area, OwnForce, Target, entity_from_dict, kind_of

T0 = datetime(2026, 1, 1, 12, 30, tzinfo=timezone.utc)


class TestValidation:
    def test_target_defaults_are_valid(self):
        Target(id="t1", position=(59.91, 10.75)).validate()

    @pytest.mark.parametrize("position", [(90.5, 0.0), (-91.0, 0.0), (0.0, 180.5)])
    def test_position_out_of_range(self, position):
        with pytest.raises(ValueError):
            Target(id="t1", position=position).validate()

    def test_name_must_be_text(self):
        with pytest.raises(ValueError):
            Target(id="t1", position=(0.0, 0.0), name=5).validate()
        with pytest.raises(ValueError):
            Area(id="c1", shape="circle", center=(0.0, 0.0), radius_m=5.0, description=None).validate()

    def test_infinite_radius_rejected(self):
        with pytest.raises(ValueError):
            Area(id="c1", shape="circle", center=(0.0, 0.0), radius_m=float("inf")).validate()

    def test_unknown_choice(self):
        with pytest.raises(ValueError):
            OwnForce(id="f1", position=(0.0, 0.0), status="asleep").validate()

    def test_polygon_vertex_minimum(self):
        with pytest.raises(ValueError):
            Area(id="a1", shape="polygon", vertices=[(0.0, 0.0), (0.0, 1.0)]).validate()

    def test_line_vertex_minimum(self):
        Area(id="a1", shape="line", vertices=[(0.0, 0.0), (0.0, 1.0)]).validate()
        with pytest.raises(ValueError):
            Area(id="a1", shape="line", vertices=[(0.0, 0.0)]).validate()

    @pytest.mark.parametrize("radius", [0.0, -5.0, None])
    def test_circle_radius_must_be_positive(self, radius):
        with pytest.raises(ValueError):
            Area(id="c1", shape="circle", center=(0.0, 0.0), radius_m=radius).validate()


class TestSerialization:
    def test_own_force_uses_type_key(self):
        f = OwnForce(id="f1", position=(60.0, 10.0), force_type="command", created_at=T0, updated_at=T0)
        d = f.to_dict()
        assert d["type"] == "command"
        assert d["position"] == [60.0, 10.0]
        assert d["created_at"] == "2026-01-01T12:30:00+00:00"
        assert OwnForce.from_dict(d) == f

    def test_circle_has_no_vertices_key(self):
        a = Area(id="c1", shape="circle", center=(60.0, 10.0), radius_m=250.0, created_at=T0, updated_at=T0)
        d = a.to_dict()
        assert "vertices" not in d
        assert d["center"] == [60.0, 10.0]
        assert entity_from_dict("area", d) == a

    def test_naive_timestamp_read_as_utc(self):
        d = Target(id="t1", position=(1.0, 2.0), created_at=T0, updated_at=T0).to_dict()
        d["created_at"] = "2026-01-01T12:30:00"
        del d["updated_at"]
        t = Target.from_dict(d)
        assert t.created_at == T0
        assert t.updated_at == T0

    def test_from_dict_validates(self):
        d = Target(id="t1", position=(1.0, 2.0)).to_dict()
        d["disposition"] = "friendly"
        with pytest.raises(ValueError):
            Target.from_dict(d)

    def test_kind_of(self):
        assert kind_of(Target(id="t", position=(0.0, 0.0))) == "target"
        assert kind_of(OwnForce(id="f", position=(0.0, 0.0))) == "ownforce"
        with pytest.raises(TypeError):
            kind_of("not an entity")
