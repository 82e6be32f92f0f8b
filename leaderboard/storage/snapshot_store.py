"""JSON snapshot persistence with per-file atomic writes."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from leaderboard.exceptions import SnapshotWriteError
from leaderboard.models.activity import Period, RecentActivityFeed, Snapshot

logger = logging.getLogger(__name__)

RECENT_ACTIVITIES_FILE = "recent-activities.json"


class SnapshotStore:
    """Reads and writes leaderboard files under one output directory."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, name: str) -> Path:
        return self._root / name

    def list_snapshot_files(self) -> list[str]:
        """Period files present on disk, excluding the recent feed."""

        if not self._root.is_dir():
            return []
        return sorted(
            path.name
            for path in self._root.glob("*.json")
            if path.is_file() and path.name != RECENT_ACTIVITIES_FILE
        )

    def read_json(self, name: str) -> Optional[dict[str, Any]]:
        path = self.path_for(name)
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except FileNotFoundError:
            logger.info("Snapshot file not found", extra={"file": str(path)})
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read snapshot file", extra={"file": str(path), "error": str(exc)})
            return None

        if not isinstance(payload, dict):
            logger.warning("Snapshot file is not a JSON object", extra={"file": str(path)})
            return None
        return payload

    def load_snapshot(self, period: Period) -> Optional[Snapshot]:
        """Load a period snapshot; missing or malformed files count as absent."""

        payload = self.read_json(f"{period.value}.json")
        if payload is None:
            return None
        try:
            return Snapshot.from_dict(payload)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(
                "Discarding malformed snapshot",
                extra={"period": period.value, "error": str(exc)},
            )
            return None

    def save_snapshot(self, snapshot: Snapshot) -> Path:
        return self.write_json(f"{snapshot.period.value}.json", snapshot.to_dict())

    def save_recent_feed(self, feed: RecentActivityFeed) -> Path:
        return self.write_json(RECENT_ACTIVITIES_FILE, feed.to_dict())

    def write_json(self, name: str, payload: dict[str, Any]) -> Path:
        """Write `payload` in full to a temp file, then replace the target."""

        target = self.path_for(name)
        tmp_name: Optional[str] = None
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._root,
                prefix=f".{name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                json.dump(payload, handle, indent=2, ensure_ascii=False)
                handle.write("\n")
            os.replace(tmp_name, target)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise SnapshotWriteError(f"Failed to write {target}: {exc}") from exc

        logger.info("Wrote snapshot file", extra={"file": str(target)})
        return target
