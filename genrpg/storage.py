"""Whole-state persistence.

The game keeps exactly one save: the serialised GameState as a single JSON
blob. Every save overwrites the whole blob, so a stored state is never half
of one turn and half of another.

    FileStore   — one JSON file, written atomically (temp file + rename).
    MemoryStore — keeps the blob in memory; for tests and throwaway games.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from genrpg.models import GameState

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when a stored blob cannot be turned back into a GameState."""


class Store(Protocol):
    def save(self, blob: bytes) -> None: ...

    def load(self) -> bytes | None: ...


def serialize_state(state: GameState) -> bytes:
    return state.model_dump_json(indent=2).encode("utf-8")


def deserialize_state(blob: bytes) -> GameState:
    try:
        return GameState.model_validate_json(blob)
    except ValidationError as e:
        raise StorageError(f"Stored game state is unreadable: {e}") from e


class FileStore:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def save(self, blob: bytes) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_bytes(blob)
        os.replace(tmp, self._path)
        logger.debug("saved %d bytes to %s", len(blob), self._path)

    def load(self) -> bytes | None:
        if not self._path.exists():
            return None
        return self._path.read_bytes()

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


class MemoryStore:
    def __init__(self, blob: bytes | None = None) -> None:
        self._blob = blob
        self.saves = 0

    def save(self, blob: bytes) -> None:
        self._blob = blob
        self.saves += 1

    def load(self) -> bytes | None:
        return self._blob

    def clear(self) -> None:
        self._blob = None
