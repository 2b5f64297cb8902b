"""Tests for overlay_io export/import helpers."""

import json

import pytest
from PIL import Image

from ..engine.storage import MemoryStorage
from ..engine.store import EntityStore
from ..engine.types import Area, Target
from .overlay_io import (
    load_overlay,
    load_overlay_json,
    load_overlay_png,
    save_overlay_json,
    save_overlay_png,
)


def _snapshot():
    store = EntityStore(MemoryStorage())
    store.add(
        "target",
        Target(id="t1", position=(59.91, 10.75), classification="vehicle", certainty=80),
    )
    store.add(
        "area",
        Area(id="c1", shape="circle", center=(59.9, 10.7), radius_m=1000.0),
    )
    return store.snapshot()


def test_save_and_load_png_roundtrip(tmp_path):
    """Save a snapshot in a PNG, load it back, and verify equality."""
    snap = _snapshot()
    img = Image.new("RGB", (100, 100), "green")
    path = str(tmp_path / "overlay.png")

    save_overlay_png(img, snap, path)
    assert load_overlay_png(path) == snap


def test_png_round_trip_restores_store(tmp_path):
    snap = _snapshot()
    path = str(tmp_path / "overlay.png")
    save_overlay_png(Image.new("RGB", (10, 10)), snap, path)

    store = EntityStore(MemoryStorage())
    store.replace_all(load_overlay(path))
    t = store.get("target", "t1")
    assert t.classification == "vehicle"
    assert store.get("area", "c1").radius_m == 1000.0


def test_load_png_missing_chunk(tmp_path):
    """A plain PNG without metadata raises ValueError."""
    path = str(tmp_path / "plain.png")
    Image.new("RGB", (100, 100), "red").save(path)

    with pytest.raises(ValueError, match="tacmap_overlay"):
        load_overlay_png(path)


def test_json_roundtrip(tmp_path):
    snap = _snapshot()
    path = str(tmp_path / "overlay.json")
    save_overlay_json(snap, path)
    assert load_overlay_json(path) == snap


def test_json_without_collections_rejected(tmp_path):
    path = str(tmp_path / "other.json")
    with open(path, "w") as f:
        json.dump({"table_width_inches": 60}, f)
    with pytest.raises(ValueError):
        load_overlay_json(path)


def test_load_overlay_dispatches_by_extension(tmp_path):
    snap = _snapshot()
    png_path = str(tmp_path / "test.PNG")
    save_overlay_png(Image.new("RGB", (10, 10), "blue"), snap, png_path)
    assert load_overlay(png_path) == snap

    json_path = str(tmp_path / "test.json")
    save_overlay_json(snap, json_path)
    assert load_overlay(json_path) == snap

    with pytest.raises(ValueError):
        load_overlay(str(tmp_path / "test.txt"))
