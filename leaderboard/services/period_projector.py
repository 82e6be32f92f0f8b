"""Short-window projections and the recent-activity feed."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from leaderboard.models.activity import (
    ContributorAggregate,
    Period,
    RecentActivity,
    RecentActivityFeed,
    RecentActivityGroup,
    Snapshot,
    TopContributor,
    parse_timestamp,
)
from leaderboard.services.deduplicator import recompute


def filter_window(aggregate: ContributorAggregate, cutoff: datetime) -> Optional[ContributorAggregate]:
    """Copy of `aggregate` holding only activities at or after `cutoff`, or None if empty."""

    kept = [activity for activity in aggregate.raw_activities if activity.occured_at >= cutoff]
    if not kept:
        return None
    return recompute(
        ContributorAggregate(
            username=aggregate.username,
            name=aggregate.name,
            avatar_url=aggregate.avatar_url,
            role=aggregate.role,
            raw_activities=kept,
        )
    )


def rank_entries(entries: Iterable[ContributorAggregate]) -> list[ContributorAggregate]:
    return sorted(entries, key=lambda item: (-item.total_points, item.username.lower()))


def top_by_activity(entries: Iterable[ContributorAggregate], *, limit: int = 3) -> dict[str, list[TopContributor]]:
    """Highest scorers per activity label."""

    by_label: dict[str, list[TopContributor]] = defaultdict(list)
    for entry in entries:
        for label, stat in entry.activity_breakdown.items():
            if stat.count <= 0:
                continue
            by_label[label].append(
                TopContributor(
                    username=entry.username,
                    name=entry.name,
                    avatar_url=entry.avatar_url,
                    points=stat.points,
                    count=stat.count,
                )
            )

    return {
        label: sorted(tops, key=lambda top: (-top.points, -top.count, top.username.lower()))[:limit]
        for label, tops in sorted(by_label.items())
    }


def project_period(
    entries: Iterable[ContributorAggregate],
    *,
    period: Period,
    days: int,
    now: datetime,
    hidden_roles: Optional[list[str]] = None,
    top_limit: int = 3,
) -> Snapshot:
    """Derive an independent snapshot for the trailing `days` from the full logs.

    Totals are recomputed from the filtered subset; nothing is reused from the
    year totals. Contributors with no activity in the window are omitted.
    """

    now = parse_timestamp(now)
    cutoff = now - timedelta(days=days)
    projected = [
        windowed
        for windowed in (filter_window(entry, cutoff) for entry in entries)
        if windowed is not None
    ]
    ranked = rank_entries(projected)
    return Snapshot(
        period=period,
        updated_at=now,
        start_date=cutoff.date(),
        end_date=now.date(),
        entries=ranked,
        hidden_roles=list(hidden_roles or []),
        top_by_activity=top_by_activity(ranked, limit=top_limit),
    )


def build_recent_feed(
    entries: Iterable[ContributorAggregate],
    *,
    days: int,
    now: datetime,
) -> RecentActivityFeed:
    """Group individual events from the trailing `days` by calendar day, newest first."""

    now = parse_timestamp(now)
    cutoff = now - timedelta(days=days)
    by_day: dict[date, list[RecentActivity]] = defaultdict(list)
    for entry in entries:
        for activity in entry.raw_activities:
            if activity.occured_at < cutoff:
                continue
            by_day[activity.day].append(
                RecentActivity(
                    username=entry.username,
                    name=entry.name,
                    avatar_url=entry.avatar_url,
                    type=activity.type,
                    title=activity.title,
                    link=activity.link,
                    points=activity.points,
                    occured_at=activity.occured_at,
                )
            )

    groups = [
        RecentActivityGroup(
            date=day,
            activities=sorted(by_day[day], key=lambda item: item.occured_at, reverse=True),
        )
        for day in sorted(by_day, reverse=True)
    ]
    return RecentActivityFeed(updated_at=now, groups=groups)
