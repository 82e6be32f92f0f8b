"""Deduplication of raw activity logs and full recomputation of derived totals."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, Optional

from leaderboard.models.activity import ActivityStat, ContributorAggregate, DailyActivity, RawActivity

logger = logging.getLogger(__name__)

ActivityIdentity = tuple[str, datetime, Optional[str]]


def activity_identity(activity: RawActivity) -> ActivityIdentity:
    """Natural key for a raw event: (type, occured_at, link or title)."""

    return activity.type, activity.occured_at, activity.link or activity.title


def dedupe_activities(activities: Iterable[RawActivity]) -> list[RawActivity]:
    """Keep the first occurrence of every identity key, preserving order."""

    seen: set[ActivityIdentity] = set()
    unique: list[RawActivity] = []
    for activity in activities:
        key = activity_identity(activity)
        if key in seen:
            continue
        seen.add(key)
        unique.append(activity)
    return unique


def apply_activity(
    aggregate: ContributorAggregate,
    activity: RawActivity,
    days: Optional[dict[date, DailyActivity]] = None,
) -> None:
    """Fold one activity into the derived fields of `aggregate`."""

    aggregate.total_points += activity.points

    stat = aggregate.activity_breakdown.setdefault(activity.type, ActivityStat())
    stat.count += 1
    stat.points += activity.points

    if days is None:
        days = {day.date: day for day in aggregate.daily_activity}
    day = days.get(activity.day)
    if day is None:
        day = DailyActivity(date=activity.day)
        days[activity.day] = day
        aggregate.daily_activity.append(day)
    day.count += 1
    day.points += activity.points


def recompute(aggregate: ContributorAggregate) -> ContributorAggregate:
    """Dedupe the log and rebuild every derived field from it.

    Derived values already on the aggregate are discarded. Running this on an
    already-deduplicated aggregate leaves it unchanged.
    """

    before = len(aggregate.raw_activities)
    aggregate.raw_activities = dedupe_activities(aggregate.raw_activities)
    dropped = before - len(aggregate.raw_activities)
    if dropped:
        logger.debug(
            "Dropped duplicate activities",
            extra={"username": aggregate.username, "duplicates": dropped},
        )

    aggregate.total_points = 0
    aggregate.activity_breakdown = {}
    aggregate.daily_activity = []
    days: dict[date, DailyActivity] = {}
    for activity in aggregate.raw_activities:
        apply_activity(aggregate, activity, days)

    aggregate.daily_activity.sort(key=lambda item: item.date, reverse=True)
    return aggregate


def recompute_all(aggregates: Iterable[ContributorAggregate]) -> list[ContributorAggregate]:
    return [recompute(aggregate) for aggregate in aggregates]
