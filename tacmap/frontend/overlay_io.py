"""Export and import annotation overlays as PNG (with embedded data) or JSON.

The primary format is PNG: the rendered map view is saved with the full
store snapshot embedded in a PNG tEXt chunk (key: ``tacmap_overlay``), so
an exported file is both a briefing image and a complete overlay that can
be imported back. Plain JSON files holding the same snapshot are also
accepted.

A snapshot is ``{"target": [...], "ownforce": [...], "area": [...]}`` as
produced by ``EntityStore.snapshot()``. Loading only checks the outer
shape; ``EntityStore.replace_all`` validates the entities.
"""

import json

from PIL import Image
from PIL.PngImagePlugin import PngInfo

from ..engine.types import ENTITY_KINDS

METADATA_KEY = "tacmap_overlay"


def _check_snapshot(data) -> dict:
    if not isinstance(data, dict) or not any(k in data for k in ENTITY_KINDS):
        raise ValueError(
            f"not an overlay snapshot (expected keys: {', '.join(ENTITY_KINDS)})"
        )
    return data


def save_overlay_png(img: Image.Image, snapshot: dict, path: str) -> None:
    """Save a rendered view with the snapshot embedded as a PNG tEXt chunk."""
    info = PngInfo()
    info.add_text(METADATA_KEY, json.dumps(snapshot))
    img.save(path, pnginfo=info)


def save_overlay_json(snapshot: dict, path: str) -> None:
    with open(path, "w") as f:
        json.dump(snapshot, f, indent=2)
        f.write("\n")


def load_overlay_png(path: str) -> dict:
    """Load a snapshot from a PNG file's tEXt metadata.

    Raises ValueError if the PNG does not contain overlay metadata.
    """
    with Image.open(path) as img:
        text_data = getattr(img, "text", None)
        if not text_data or METADATA_KEY not in text_data:
            raise ValueError(
                f"PNG file does not contain overlay metadata (missing '{METADATA_KEY}' chunk)"
            )
        raw = text_data[METADATA_KEY]
    return _check_snapshot(json.loads(raw))


def load_overlay_json(path: str) -> dict:
    with open(path) as f:
        return _check_snapshot(json.load(f))


def load_overlay(path: str) -> dict:
    """Load a snapshot from a file, dispatching by extension.

    Supports .png (reads embedded metadata) and .json (reads raw JSON).
    Raises ValueError for unsupported extensions.
    """
    lower = path.lower()
    if lower.endswith(".png"):
        return load_overlay_png(path)
    elif lower.endswith(".json"):
        return load_overlay_json(path)
    else:
        raise ValueError(f"Unsupported file extension: {path}")
