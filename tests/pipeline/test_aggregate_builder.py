from __future__ import annotations

from datetime import datetime, timezone

from leaderboard.models.activity import ContributorAggregate, RawActivity
from leaderboard.services.aggregate_builder import AggregateBuilder, record_event
from leaderboard.services.roles import MembershipConfig, RoleResolver


def _event(label: str, points: int, day: int, link: str) -> RawActivity:
    return RawActivity(
        type=label,
        occured_at=datetime(2026, 3, day, 12, tzinfo=timezone.utc),
        title=None,
        link=link,
        points=points,
    )


def _resolver() -> RoleResolver:
    return RoleResolver(MembershipConfig(core_team=("Maya",), alumni=("old-timer", "maya")))


def test_role_resolution_is_case_insensitive_with_maintainer_precedence() -> None:
    resolver = _resolver()

    assert resolver.resolve("maya") == "Maintainer"
    assert resolver.resolve("OLD-TIMER") == "Alumni"
    assert resolver.resolve("newcomer") == "Contributor"


def test_record_event_creates_once_and_caches_totals() -> None:
    aggregates: dict[str, ContributorAggregate] = {}
    resolver = _resolver()

    record_event(aggregates, "maya", _event("PR opened", 2, 1, "l1"), resolver, avatar_url="https://img/maya")
    record_event(aggregates, "maya", _event("PR merged", 5, 2, "l1"), resolver)

    maya = aggregates["maya"]
    assert maya.role == "Maintainer"
    assert maya.avatar_url == "https://img/maya"
    assert maya.total_points == 7
    assert len(maya.raw_activities) == 2
    assert maya.activity_breakdown["PR merged"].points == 5


def test_builder_rejects_bot_accounts() -> None:
    builder = AggregateBuilder(_resolver())

    assert builder.record_event("renovate[bot]", _event("PR opened", 2, 1, "l1")) is None
    assert builder.record_event("someone", _event("PR opened", 2, 1, "l2"), account_type="Bot") is None
    assert builder.aggregates == {}


def test_history_only_contributors_keep_their_stored_role() -> None:
    builder = AggregateBuilder(_resolver())
    builder.record_event("maya", _event("PR opened", 2, 5, "new"))
    history = [
        ContributorAggregate(
            username="old-timer",
            name="Old Timer",
            avatar_url=None,
            role="Contributor",
            raw_activities=[_event("Issue opened", 1, 1, "old")],
        ),
        ContributorAggregate(
            username="maya",
            name="Maya",
            avatar_url=None,
            role="Contributor",
            raw_activities=[_event("PR opened", 2, 5, "new"), _event("Issue closed", 1, 2, "older")],
        ),
    ]

    adopted = builder.merge_history(history)
    entries = {entry.username: entry for entry in builder.build()}

    assert adopted == 1
    assert entries["old-timer"].role == "Contributor"
    assert entries["maya"].role == "Maintainer"
    assert entries["maya"].name == "Maya"
    assert entries["maya"].total_points == 3
    assert len(entries["maya"].raw_activities) == 2


def test_build_orders_by_total_points() -> None:
    builder = AggregateBuilder(_resolver())
    builder.record_event("low", _event("Issue opened", 1, 1, "a"))
    builder.record_event("high", _event("PR merged", 5, 1, "b"))

    assert [entry.username for entry in builder.build()] == ["high", "low"]


def test_builder_keeps_one_daily_bucket_per_day_across_appends_and_rebuilds() -> None:
    builder = AggregateBuilder(_resolver())
    for n in range(50):
        builder.record_event("busy", _event("Issue opened", 1, 3, f"issue-{n}"))

    busy = builder.aggregates["busy"]
    assert len(busy.daily_activity) == 1
    assert busy.daily_activity[0].count == 50

    builder.build()
    builder.record_event("busy", _event("PR opened", 2, 3, "pr-1"))
    builder.record_event("busy", _event("PR opened", 2, 4, "pr-2"))

    assert sorted((day.date.day, day.count) for day in busy.daily_activity) == [(3, 51), (4, 1)]
    assert busy.total_points == 54
