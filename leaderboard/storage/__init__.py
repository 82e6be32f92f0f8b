"""Snapshot persistence helpers."""

from leaderboard.storage.snapshot_store import SnapshotStore

__all__ = ["SnapshotStore"]
