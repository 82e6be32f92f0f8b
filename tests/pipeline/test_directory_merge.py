from __future__ import annotations

import json
from pathlib import Path

from leaderboard.services.directory_merge import build_people_directory, merge_snapshots
from leaderboard.storage.snapshot_store import SnapshotStore


def _entry(username: str, activities: list[dict], breakdown: dict, total: int) -> dict:
    return {
        "username": username,
        "name": None,
        "avatar_url": None,
        "role": "Contributor",
        "total_points": total,
        "activity_breakdown": breakdown,
        "daily_activity": [],
        "activities": activities,
    }


def test_missing_history_is_padded_with_placeholders() -> None:
    real = {
        "type": "Issue opened",
        "title": "Crash",
        "occured_at": "2026-10-10T00:00:00Z",
        "link": "https://github.com/acme/app/issues/1",
        "points": 1,
    }
    week = {"updatedAt": 1, "entries": [_entry("dana", [real], {"Issue opened": {"count": 1, "points": 1}}, 1)]}
    year = {"updatedAt": 2, "entries": [_entry("dana", [real], {"Issue opened": {"count": 3, "points": 3}}, 3)]}

    merged = merge_snapshots([week, year])

    activities = merged["people"][0]["activities"]
    placeholders = [activity for activity in activities if activity["link"] == ""]
    assert len(activities) == 3
    assert len(placeholders) == 2
    assert all(activity["occured_at"] == "1970-01-01T00:00:00Z" for activity in placeholders)
    assert all(activity["title"] == "Issue opened contribution" for activity in placeholders)
    assert all(activity["points"] == 0 for activity in placeholders)
    assert merged["updatedAt"] == 2


def test_union_dedupes_and_truncates_to_display_cap() -> None:
    first = [
        {"type": "PR opened", "title": f"pr {i}", "occured_at": f"2026-10-{i + 1:02d}T00:00:00Z", "link": f"l{i}", "points": 2}
        for i in range(10)
    ]
    second = first[5:] + [
        {"type": "PR opened", "title": "late", "occured_at": "2026-10-15T00:00:00Z", "link": "late", "points": 2}
    ]
    breakdown = {"PR opened": {"count": 11, "points": 22}}

    merged = merge_snapshots(
        [
            {"updatedAt": 1, "entries": [_entry("erin", first, breakdown, 22)]},
            {"updatedAt": 1, "entries": [_entry("erin", second, breakdown, 22)]},
        ],
        display_cap=5,
    )

    activities = merged["people"][0]["activities"]
    assert len(activities) == 5
    assert activities[0]["link"] == "late"
    assert [activity["occured_at"] for activity in activities] == sorted(
        (activity["occured_at"] for activity in activities), reverse=True
    )


def test_bots_are_dropped_and_people_ranked() -> None:
    merged = merge_snapshots(
        [
            {
                "updatedAt": 5,
                "entries": [
                    _entry("dependabot[bot]", [], {}, 100),
                    _entry("low", [], {}, 1),
                    _entry("high", [], {}, 9),
                ],
            }
        ]
    )

    assert [person["username"] for person in merged["people"]] == ["high", "low"]


def test_build_people_directory_reads_period_files(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path)
    store.write_json("week.json", {"updatedAt": 10, "entries": [_entry("fay", [], {}, 2)]})
    store.write_json("recent-activities.json", {"updatedAt": 99, "groups": []})
    (tmp_path / "month.json").write_text("{not json", encoding="utf-8")

    directory = build_people_directory(store, core_team=["maya"], alumni=["old-timer"])

    assert directory["updatedAt"] == 10
    assert [person["username"] for person in directory["people"]] == ["fay"]
    assert directory["coreTeam"] == ["maya"]
    assert directory["alumni"] == ["old-timer"]
    assert json.loads((tmp_path / "week.json").read_text(encoding="utf-8"))["updatedAt"] == 10


def test_year_only_contributor_is_served_a_capped_newest_first_list(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path)
    log = [
        {
            "type": "Issue opened",
            "title": f"issue {i}",
            "occured_at": f"2026-{(i % 9) + 1:02d}-{(i % 27) + 1:02d}T00:00:00Z",
            "link": f"https://github.com/acme/app/issues/{i}",
            "points": 1,
        }
        for i in range(40)
    ]
    quiet = {**_entry("quiet", [], {"Issue opened": {"count": 40, "points": 40}}, 40), "raw_activities": log}
    del quiet["activities"]
    store.write_json("year.json", {"updatedAt": 3, "entries": [quiet]})

    directory = build_people_directory(store, core_team=[], alumni=[], display_cap=15)

    activities = directory["people"][0]["activities"]
    assert len(activities) == 15
    assert "raw_activities" not in directory["people"][0]
    assert activities[0]["occured_at"] == max(activity["occured_at"] for activity in log)
    assert [activity["occured_at"] for activity in activities] == sorted(
        (activity["occured_at"] for activity in activities), reverse=True
    )
