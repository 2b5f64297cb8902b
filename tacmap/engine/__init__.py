"""Headless tactical annotation engine.

``create_engine`` wires a storage collaborator into the store, drawing
machine, edit workflow and router. Front ends talk to the returned
``InteractionRouter`` and render ``build_overlay`` output.
"""

from __future__ import annotations

from .overlay import LayerVisibility, build_overlay
from .router import InteractionRouter
from .storage import JsonFileStorage, MemoryStorage, Storage, StorageError
from .store import EntityStore


def create_engine(storage: Storage | None = None) -> InteractionRouter:
    """Build a router over a fresh store (in-memory unless storage is given)."""
    return InteractionRouter(EntityStore(storage or MemoryStorage()))


__all__ = [
    "EntityStore",
    "InteractionRouter",
    "JsonFileStorage",
    "LayerVisibility",
    "MemoryStorage",
    "Storage",
    "StorageError",
    "build_overlay",
    "create_engine",
]
