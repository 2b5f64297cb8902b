"""Entity store: the single owner of the three annotation collections.

Collections are keyed ``"target"``, ``"ownforce"`` and ``"area"``. Each is
an insertion-ordered ``dict`` of id -> entity. Nothing else in the engine
holds a reference to a stored entity: reads hand out deep copies and
``update`` gives the mutator a private copy, so a caller can never write
through to the store behind its back.

Every mutation writes the whole affected collection to the storage
collaborator. Loading happens once at construction, per collection; a
missing, unreadable or corrupt collection falls back to empty without
touching the other two.
"""

from __future__ import annotations

import copy
import logging
from typing import Callable

from .storage import Storage, StorageError
from .types import ENTITY_KINDS, Area, Entity, entity_from_dict

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    "target": "tacticalTargets",
    "ownforce": "tacticalOwnForces",
    "area": "tacticalAreas",
}

_LABELS = {"target": "targets", "ownforce": "forces", "area": "areas"}


def _check_kind(kind: str) -> None:
    if kind not in STORAGE_KEYS:
        raise KeyError(f"unknown collection: {kind!r}")


def _index(entities: list[Entity], source: str) -> dict[str, Entity]:
    """Key entities by id; a repeated id keeps the last entry."""
    out: dict[str, Entity] = {}
    for e in entities:
        if e.id in out:
            logger.warning("Duplicate id %s in %s, keeping the last", e.id, source)
        out[e.id] = e
    return out


class EntityStore:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage
        self._collections: dict[str, dict[str, Entity]] = {
            kind: self._load(kind) for kind in ENTITY_KINDS
        }

    # -- persistence --

    def _load(self, kind: str) -> dict[str, Entity]:
        key = STORAGE_KEYS[kind]
        try:
            raw = self.storage.load(key)
        except StorageError as e:
            logger.warning("Storage unavailable for %s, starting empty: %s", key, e)
            return {}
        except ValueError as e:
            logger.warning("Corrupt data in %s, starting empty: %s", key, e)
            return {}
        if raw is None:
            return {}
        try:
            if not isinstance(raw, list):
                raise ValueError(f"expected a list, got {type(raw).__name__}")
            entities = [entity_from_dict(kind, d) for d in raw]
        except (ValueError, KeyError, TypeError, OverflowError) as e:
            logger.warning("Corrupt data in %s, starting empty: %s", key, e)
            return {}
        loaded = _index(entities, key)
        logger.debug("Loaded %d entries from %s", len(loaded), key)
        return loaded

    def _persist(self, kind: str) -> None:
        key = STORAGE_KEYS[kind]
        data = [e.to_dict() for e in self._collections[kind].values()]
        try:
            self.storage.save(key, data)
        except StorageError as e:
            # In-memory state stays authoritative; the next save retries.
            logger.warning("Could not save %s: %s", key, e)

    # -- operations --

    def add(self, kind: str, entity: Entity) -> None:
        """Insert a new entity. The id must not already be in the collection."""
        _check_kind(kind)
        entity.validate()
        coll = self._collections[kind]
        if entity.id in coll:
            raise ValueError(f"duplicate {kind} id: {entity.id}")
        self._collections[kind] = {**coll, entity.id: copy.deepcopy(entity)}
        logger.debug("Added %s %s", kind, entity.id)
        self._persist(kind)

    def update(
        self, kind: str, entity_id: str, mutator: Callable[[Entity], Entity]
    ) -> bool:
        """Replace an entity with ``mutator(copy_of_current)``.

        Returns False (and does nothing) when the id is not present. The
        replacement must keep the same id, and an area must keep its shape.
        Raises ValueError if the replacement is invalid; the store is left
        unchanged in that case.
        """
        _check_kind(kind)
        coll = self._collections[kind]
        current = coll.get(entity_id)
        if current is None:
            logger.debug("Ignoring update of stale %s id %s", kind, entity_id)
            return False
        updated = mutator(copy.deepcopy(current))
        if updated.id != entity_id:
            raise ValueError(f"update may not change id {entity_id} -> {updated.id}")
        if type(updated) is not type(current):
            raise ValueError(
                f"{kind} {entity_id} cannot become a {type(updated).__name__}"
            )
        if isinstance(current, Area) and updated.shape != current.shape:
            raise ValueError(f"area {entity_id} shape is fixed at {current.shape}")
        updated.validate()
        self._collections[kind] = {**coll, entity_id: copy.deepcopy(updated)}
        self._persist(kind)
        return True

    def remove(self, kind: str, entity_id: str) -> bool:
        """Delete by id. Removing an absent id is a no-op that returns False."""
        _check_kind(kind)
        coll = self._collections[kind]
        if entity_id not in coll:
            return False
        self._collections[kind] = {
            k: v for k, v in coll.items() if k != entity_id
        }
        logger.debug("Removed %s %s", kind, entity_id)
        self._persist(kind)
        return True

    def all(self, kind: str) -> list[Entity]:
        """Snapshot of a collection in insertion order."""
        _check_kind(kind)
        return [copy.deepcopy(e) for e in self._collections[kind].values()]

    def get(self, kind: str, entity_id: str) -> Entity | None:
        _check_kind(kind)
        e = self._collections[kind].get(entity_id)
        return copy.deepcopy(e) if e is not None else None

    def find(self, entity_id: str) -> tuple[str, Entity] | None:
        """Locate an id in any collection. Returns (kind, copy) or None."""
        for kind in ENTITY_KINDS:
            e = self._collections[kind].get(entity_id)
            if e is not None:
                return kind, copy.deepcopy(e)
        return None

    def counts(self) -> dict[str, int]:
        return {kind: len(self._collections[kind]) for kind in ENTITY_KINDS}

    def summary(self) -> str:
        """Header text, e.g. ``"2 targets • 1 forces • 0 areas"``."""
        c = self.counts()
        return " • ".join(f"{c[k]} {_LABELS[k]}" for k in ENTITY_KINDS)

    # -- bulk import/export --

    def snapshot(self) -> dict[str, list[dict]]:
        return {
            kind: [e.to_dict() for e in self._collections[kind].values()]
            for kind in ENTITY_KINDS
        }

    def replace_all(self, snapshot: dict[str, list[dict]]) -> None:
        """Replace every collection from a snapshot dict.

        All collections are parsed before any is replaced, so a malformed
        snapshot raises ValueError and leaves the store untouched.
        """
        parsed: dict[str, dict[str, Entity]] = {}
        for kind in ENTITY_KINDS:
            entries = snapshot.get(kind, [])
            if not isinstance(entries, list):
                raise ValueError(f"snapshot entry {kind!r} must be a list")
            try:
                entities = [entity_from_dict(kind, d) for d in entries]
            except (KeyError, TypeError, OverflowError) as e:
                raise ValueError(f"malformed {kind} entry: {e}") from e
            parsed[kind] = _index(entities, f"imported {kind}")
        for kind in ENTITY_KINDS:
            self._collections[kind] = parsed[kind]
            self._persist(kind)
        logger.info("Replaced overlay: %s", self.summary())

    def clear(self) -> None:
        for kind in ENTITY_KINDS:
            self._collections[kind] = {}
            self._persist(kind)
