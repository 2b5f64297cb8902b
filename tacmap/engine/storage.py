"""Storage collaborators for the entity store.

The store only needs ``load(key)`` and ``save(key, data)`` where ``data`` is
a JSON-compatible list. Two implementations:

  * ``MemoryStorage``: keeps serialized JSON text per key. Used by tests and
    as a throwaway session store.
  * ``JsonFileStorage``: one ``<key>.json`` file per collection in a
    directory (``config.DATA_DIR`` by default).

Failures surface as ``StorageError``; a missing key loads as ``None``.
Malformed JSON raises ``ValueError`` (``json.JSONDecodeError``) so the store
can tell "corrupt" apart from "unavailable" in its logs.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Protocol


class StorageError(Exception):
    """The storage backend could not be read or written."""


class Storage(Protocol):
    def load(self, key: str) -> Any | None: ...

    def save(self, key: str, data: Any) -> None: ...


class MemoryStorage:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.blobs: dict[str, str] = dict(initial or {})

    def load(self, key: str) -> Any | None:
        blob = self.blobs.get(key)
        if blob is None:
            return None
        return json.loads(blob)

    def save(self, key: str, data: Any) -> None:
        self.blobs[key] = json.dumps(data)


class JsonFileStorage:
    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Any | None:
        path = self.path_for(key)
        try:
            with open(path) as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"cannot read {path}: {e}") from e

    def save(self, key: str, data: Any) -> None:
        """Write the collection, replacing the previous file in one step.

        Creates the directory if it doesn't exist.
        """
        path = self.path_for(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"cannot write {path}: {e}") from e
