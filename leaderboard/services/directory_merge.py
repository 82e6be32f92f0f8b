"""Serving-time merge of period snapshots into one people directory."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from leaderboard.models.activity import format_timestamp, parse_timestamp
from leaderboard.services.classifier import is_bot_account

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _activities_of(entry: dict[str, Any]) -> list[dict[str, Any]]:
    activities = entry.get("activities")
    if activities is None:
        activities = entry.get("raw_activities")
    return list(activities or [])


def _merge_identity(activity: dict[str, Any]) -> tuple[Any, ...]:
    if activity.get("link"):
        return activity.get("type"), activity.get("link")
    return activity.get("type"), activity.get("title"), activity.get("occured_at")


def _sort_key(activity: dict[str, Any]) -> datetime:
    raw = activity.get("occured_at")
    if not raw:
        return EPOCH
    try:
        return parse_timestamp(raw)
    except (TypeError, ValueError):
        return EPOCH


def union_activities(existing: Iterable[dict[str, Any]], incoming: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Union two activity lists on the merge identity, newest first."""

    seen: set[tuple[Any, ...]] = set()
    combined: list[dict[str, Any]] = []
    for activity in [*existing, *incoming]:
        key = _merge_identity(activity)
        if key in seen:
            continue
        seen.add(key)
        combined.append(activity)
    combined.sort(key=_sort_key, reverse=True)
    return combined


def fill_placeholders(activities: list[dict[str, Any]], breakdown: dict[str, Any]) -> list[dict[str, Any]]:
    """Pad `activities` with synthetic entries until each label matches its declared count.

    Short period files do not retain older raw events, so the visible list can
    fall behind `activity_breakdown`. The padding is a lossy approximation kept
    for count parity: generic title, empty link, epoch timestamp.

    Placeholders carry zero points instead of repeating the label's points
    total, so summing a visible list never exceeds the contributor's
    `total_points`.
    """

    expected = sum(int((info or {}).get("count", 0)) for info in breakdown.values())
    if len(activities) >= expected:
        return activities

    padded = list(activities)
    for label, info in breakdown.items():
        present = sum(1 for activity in padded if activity.get("type") == label)
        missing = int((info or {}).get("count", 0)) - present
        for _ in range(max(missing, 0)):
            padded.append(
                {
                    "type": label,
                    "title": f"{label} contribution",
                    "occured_at": format_timestamp(EPOCH),
                    "link": "",
                    "points": 0,
                }
            )
    return padded


def merge_snapshots(snapshots: Iterable[dict[str, Any]], *, display_cap: int = 15) -> dict[str, Any]:
    """Combine snapshot payloads keyed by username.

    Returns `{"updatedAt": ..., "people": [...]}` with people ranked by points.
    """

    people: dict[str, dict[str, Any]] = {}
    latest_updated_at = 0

    for snapshot in snapshots:
        latest_updated_at = max(latest_updated_at, int(snapshot.get("updatedAt") or 0))

        for entry in snapshot.get("entries") or []:
            username = entry.get("username")
            if not username or is_bot_account(username):
                continue

            base = {key: value for key, value in entry.items() if key != "raw_activities"}
            existing = people.get(username)
            if existing is None:
                newest_first = sorted(_activities_of(entry), key=_sort_key, reverse=True)
                people[username] = {**base, "activities": newest_first[:display_cap]}
                continue

            combined = union_activities(existing.get("activities") or [], _activities_of(entry))
            combined = fill_placeholders(combined, entry.get("activity_breakdown") or {})
            people[username] = {**existing, **base, "activities": combined[:display_cap]}

    ranked = sorted(people.values(), key=lambda person: int(person.get("total_points") or 0), reverse=True)
    return {"updatedAt": latest_updated_at, "people": ranked}


def build_people_directory(
    store: Any,
    *,
    core_team: Iterable[str],
    alumni: Iterable[str],
    display_cap: int = 15,
) -> dict[str, Any]:
    """Read every period file from `store` and assemble the read-API payload."""

    payloads: list[dict[str, Any]] = []
    for name in store.list_snapshot_files():
        payload = store.read_json(name)
        if payload is None:
            logger.warning("Skipping unreadable snapshot file", extra={"file": name})
            continue
        payloads.append(payload)

    merged = merge_snapshots(payloads, display_cap=display_cap)
    return {
        "updatedAt": merged["updatedAt"],
        "people": merged["people"],
        "coreTeam": list(core_team),
        "alumni": list(alumni),
    }
