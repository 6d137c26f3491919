"""JSON file adapters for the persistent-store and history interfaces."""

from __future__ import annotations

import fcntl
import json
import logging
from pathlib import Path
from typing import Any

from flowclock.core.models import SessionSummary

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Key/value store keeping one ``<key>.json`` file per key.

    Files are locked with ``fcntl`` so concurrent CLI invocations never see a
    half-written document.  An unreadable file reads as ``None``.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path) as f:
                fcntl.flock(f, fcntl.LOCK_SH)
                return json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Could not read %s: %s", path, exc)
            return None

    def set(self, key: str, value: Any) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        with open(self._path(key), "w") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            json.dump(value, f)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class JsonlHistoryStore:
    """Append-only history of finished sessions, one JSON object per line."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def record(self, summary: SessionSummary) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "a") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            f.write(json.dumps(summary.to_dict()) + "\n")

    def recent(self, limit: int = 10) -> list[dict]:
        """Return up to *limit* records, newest first, skipping bad lines."""
        if not self._path.exists():
            return []
        records = []
        with open(self._path) as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except ValueError:
                    logger.debug("Skipping unparseable history line %r", line)
                    continue
                if isinstance(record, dict) and isinstance(record.get("duration"), (int, float)):
                    records.append(record)
        return records[::-1][:limit]
