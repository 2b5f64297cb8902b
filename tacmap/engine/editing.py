"""Edit/commit workflow: one staged entity and its attribute form.

The staging slot holds at most one of:

  * ``NewEntity``: a pending entity from the drawing machine, not in the
    store yet. Saving adds it; cancelling makes it vanish without trace.
  * ``EditingExisting``: an id of a committed entity plus the copy that
    was loaded into the form. Saving merges the form over the stored
    entity; deleting removes it.

Opening a second entity while the slot is occupied is rejected (the open
call returns False and nothing changes). The form never carries geometry:
positions, vertices, center and radius always come from placement,
drawing or drag.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Union

from .store import EntityStore
from .types import (
    AREA_TYPES,
    CLASSIFICATIONS,
    DISPOSITIONS,
    FORCE_STATUSES,
    FORCE_TYPES,
    Entity,
    kind_of,
    utc_now,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewEntity:
    kind: str
    entity: Entity


@dataclass(frozen=True)
class EditingExisting:
    kind: str
    entity_id: str
    original: Entity


Staging = Union[NewEntity, EditingExisting, None]

# form field -> entity attribute, per kind
FORM_FIELDS: dict[str, dict[str, str]] = {
    "target": {
        "name": "name",
        "description": "description",
        "classification": "classification",
        "certainty": "certainty",
        "disposition": "disposition",
    },
    "ownforce": {
        "name": "name",
        "type": "force_type",
        "status": "status",
    },
    "area": {
        "name": "name",
        "description": "description",
        "type": "area_type",
    },
}

FIELD_CHOICES: dict[tuple[str, str], tuple[str, ...]] = {
    ("target", "classification"): CLASSIFICATIONS,
    ("target", "disposition"): DISPOSITIONS,
    ("ownforce", "type"): FORCE_TYPES,
    ("ownforce", "status"): FORCE_STATUSES,
    ("area", "type"): AREA_TYPES,
}


def form_from_entity(kind: str, entity: Entity) -> dict[str, Any]:
    return {f: getattr(entity, attr) for f, attr in FORM_FIELDS[kind].items()}


def merge_form(
    kind: str, entity: Entity, form: dict[str, Any], now: datetime
) -> Entity:
    """Apply form values over an entity, keeping its geometry and id."""
    changes = {FORM_FIELDS[kind][f]: v for f, v in form.items()}
    return dataclasses.replace(entity, **changes, updated_at=now)


def check_field(kind: str, name: str, value: Any) -> None:
    """Raise ValueError if value is not acceptable for the given form field."""
    if name not in FORM_FIELDS[kind]:
        raise ValueError(f"{kind} has no editable field {name!r}")
    choices = FIELD_CHOICES.get((kind, name))
    if choices is not None:
        if value not in choices:
            raise ValueError(
                f"invalid {name} {value!r} (expected one of {', '.join(choices)})"
            )
    elif name == "certainty":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"certainty must be an integer: {value!r}")
        if not 0 <= value <= 100:
            raise ValueError(f"certainty out of range 0-100: {value}")
    elif not isinstance(value, str):
        raise ValueError(f"{name} must be text, got {type(value).__name__}")


class EditWorkflow:
    def __init__(
        self,
        store: EntityStore,
        on_close: Callable[[], None] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.on_close = on_close
        self._clock = clock
        self._staging: Staging = None
        self._form: dict[str, Any] = {}

    @property
    def staging(self) -> Staging:
        return self._staging

    @property
    def is_open(self) -> bool:
        return self._staging is not None

    @property
    def is_new(self) -> bool:
        return isinstance(self._staging, NewEntity)

    @property
    def kind(self) -> str | None:
        return self._staging.kind if self._staging is not None else None

    @property
    def form(self) -> dict[str, Any]:
        return dict(self._form)

    def is_editing(self, entity_id: str) -> bool:
        s = self._staging
        if isinstance(s, EditingExisting):
            return s.entity_id == entity_id
        if isinstance(s, NewEntity):
            return s.entity.id == entity_id
        return False

    # -- opening --

    def open_new(self, entity: Entity) -> bool:
        if self._staging is not None:
            logger.info("Rejecting new %s: another entity is staged", kind_of(entity))
            return False
        kind = kind_of(entity)
        self._staging = NewEntity(kind, copy.deepcopy(entity))
        self._form = form_from_entity(kind, entity)
        return True

    def open_existing(self, kind: str, entity_id: str) -> bool:
        if self._staging is not None:
            logger.info("Rejecting edit of %s %s: another entity is staged", kind, entity_id)
            return False
        current = self.store.get(kind, entity_id)
        if current is None:
            return False
        self._staging = EditingExisting(kind, entity_id, current)
        self._form = form_from_entity(kind, current)
        return True

    # -- form --

    def set_field(self, name: str, value: Any) -> None:
        if self._staging is None:
            raise ValueError("nothing is staged for editing")
        check_field(self._staging.kind, name, value)
        self._form[name] = value

    def update_form(self, **fields: Any) -> None:
        """Set several fields at once; all are checked before any is applied."""
        if self._staging is None:
            raise ValueError("nothing is staged for editing")
        for name, value in fields.items():
            check_field(self._staging.kind, name, value)
        self._form.update(fields)

    def preview(self) -> Entity | None:
        """The staged entity as it would look if saved now."""
        s = self._staging
        if s is None:
            return None
        base = s.entity if isinstance(s, NewEntity) else s.original
        return merge_form(s.kind, base, self._form, base.updated_at)

    # -- closing --

    def _close(self) -> None:
        self._staging = None
        self._form = {}
        if self.on_close is not None:
            self.on_close()

    def save(self) -> Entity | None:
        """Commit the staged entity. Returns the saved entity, or None if
        nothing was staged or an edited entity disappeared meanwhile."""
        s = self._staging
        if s is None:
            return None
        now = self._clock()
        form = dict(self._form)
        saved: Entity | None
        if isinstance(s, NewEntity):
            saved = merge_form(s.kind, s.entity, form, s.entity.updated_at)
            self.store.add(s.kind, saved)
        else:
            if self.store.update(
                s.kind, s.entity_id, lambda cur: merge_form(s.kind, cur, form, now)
            ):
                saved = self.store.get(s.kind, s.entity_id)
            else:
                logger.info("%s %s vanished before save", s.kind, s.entity_id)
                saved = None
        self._close()
        return saved

    def cancel(self) -> None:
        if self._staging is not None:
            self._close()

    def delete(self) -> bool:
        """Remove the entity being edited. Rejected for pending entities."""
        s = self._staging
        if not isinstance(s, EditingExisting):
            return False
        self.store.remove(s.kind, s.entity_id)
        self._close()
        return True
