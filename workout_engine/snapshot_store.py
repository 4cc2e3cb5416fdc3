"""Key-value stores for session snapshots.

The controller writes the whole serialised session after every mutation and
reads it back on cold start.  Blobs are opaque strings; last write wins.
A store may raise any exception (``OSError`` from files, ``sqlite3.Error``
from a database); the controller reports it and keeps the transition.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from workout_engine import DEFAULT_DATA_DIR


class SnapshotStore:
    """Interface every snapshot store implements."""

    def save(self, session_id: str, blob: str) -> None:
        raise NotImplementedError

    def load(self, session_id: str) -> str | None:
        raise NotImplementedError

    def clear(self, session_id: str) -> None:
        raise NotImplementedError


class MemorySnapshotStore(SnapshotStore):
    """Keep snapshots in a dictionary; nothing survives the process."""

    def __init__(self) -> None:
        self.blobs: dict[str, str] = {}

    def save(self, session_id: str, blob: str) -> None:
        self.blobs[session_id] = blob

    def load(self, session_id: str) -> str | None:
        return self.blobs.get(session_id)

    def clear(self, session_id: str) -> None:
        self.blobs.pop(session_id, None)


class JsonFileSnapshotStore(SnapshotStore):
    """Persist snapshots as a pair of recovery files.

    Every save writes the same payload to ``<key>_1.json`` and
    ``<key>_2.json``.  Each file is written to a temporary path first and then
    renamed into place, so a crash mid-write leaves at most one damaged copy
    and :meth:`load` falls back to the other.
    """

    def __init__(self, directory: Path = DEFAULT_DATA_DIR) -> None:
        self.directory = Path(directory)

    def paths(self, session_id: str) -> tuple[Path, Path]:
        return (
            self.directory / f"{session_id}_1.json",
            self.directory / f"{session_id}_2.json",
        )

    @staticmethod
    def _atomic_write(path: Path, text: str) -> None:
        tmp = path.with_suffix(".tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)

    def save(self, session_id: str, blob: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        for path in self.paths(session_id):
            self._atomic_write(path, blob)

    def load(self, session_id: str) -> str | None:
        for path in self.paths(session_id):
            try:
                text = path.read_text(encoding="utf-8").strip()
            except FileNotFoundError:
                continue
            except OSError:
                logging.exception("Could not read recovery file %s", path)
                continue
            if not text:
                continue
            try:
                json.loads(text)
            except ValueError:
                logging.warning("Ignoring unreadable recovery file %s", path)
                continue
            return text
        return None

    def clear(self, session_id: str) -> None:
        for path in self.paths(session_id):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
