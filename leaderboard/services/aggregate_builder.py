"""Per-contributor aggregate construction from classified activity."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from leaderboard.models.activity import ContributorAggregate, DailyActivity, RawActivity
from leaderboard.services.classifier import is_bot_account
from leaderboard.services.deduplicator import apply_activity, recompute_all
from leaderboard.services.roles import RoleResolver

logger = logging.getLogger(__name__)


def record_event(
    aggregates: dict[str, ContributorAggregate],
    username: str,
    event: RawActivity,
    resolver: RoleResolver,
    *,
    name: Optional[str] = None,
    avatar_url: Optional[str] = None,
    days: Optional[dict[date, DailyActivity]] = None,
) -> ContributorAggregate:
    """Append `event` to the contributor's log, creating the contributor on first sight.

    Derived totals are updated incrementally as a cache only; `recompute` is the
    authoritative fold and always runs before a snapshot is written. Pass the
    contributor's `days` index to avoid rebuilding it on every append.
    """

    aggregate = aggregates.get(username)
    if aggregate is None:
        aggregate = ContributorAggregate(
            username=username,
            name=name,
            avatar_url=avatar_url,
            role=resolver.resolve(username),
        )
        aggregates[username] = aggregate
    else:
        aggregate.name = aggregate.name or name
        aggregate.avatar_url = aggregate.avatar_url or avatar_url

    aggregate.raw_activities.append(event)
    apply_activity(aggregate, event, days)
    return aggregate


class AggregateBuilder:
    """Owns the username -> aggregate map for one run."""

    def __init__(self, resolver: RoleResolver) -> None:
        self._resolver = resolver
        self._aggregates: dict[str, ContributorAggregate] = {}
        self._day_index: dict[str, dict[date, DailyActivity]] = {}

    @property
    def aggregates(self) -> dict[str, ContributorAggregate]:
        return self._aggregates

    def record_event(
        self,
        username: Optional[str],
        event: RawActivity,
        *,
        name: Optional[str] = None,
        avatar_url: Optional[str] = None,
        account_type: Optional[str] = None,
    ) -> Optional[ContributorAggregate]:
        if not username or is_bot_account(username, account_type):
            return None
        return record_event(
            self._aggregates,
            username,
            event,
            self._resolver,
            name=name,
            avatar_url=avatar_url,
            days=self._days_for(username),
        )

    def _days_for(self, username: str) -> dict[date, DailyActivity]:
        days = self._day_index.get(username)
        if days is None:
            existing = self._aggregates.get(username)
            days = {day.date: day for day in existing.daily_activity} if existing else {}
            self._day_index[username] = days
        return days

    def merge_history(self, history: list[ContributorAggregate]) -> int:
        """Union prior raw logs into the current aggregates.

        Contributors known only from history are adopted as-is and keep the role
        stored with them; roles are not re-resolved here.
        """

        adopted = 0
        for previous in history:
            if is_bot_account(previous.username):
                continue
            current = self._aggregates.get(previous.username)
            if current is None:
                self._aggregates[previous.username] = ContributorAggregate(
                    username=previous.username,
                    name=previous.name,
                    avatar_url=previous.avatar_url,
                    role=previous.role,
                    raw_activities=list(previous.raw_activities),
                )
                adopted += 1
                continue
            current.name = current.name or previous.name
            current.avatar_url = current.avatar_url or previous.avatar_url
            current.raw_activities.extend(previous.raw_activities)
        logger.info("Merged prior snapshot history", extra={"contributors": len(history), "adopted": adopted})
        return adopted

    def build(self) -> list[ContributorAggregate]:
        """Recompute every aggregate and return them by total points, highest first."""

        rebuilt = recompute_all(self._aggregates.values())
        # recompute replaces every DailyActivity, so cached indexes are stale.
        self._day_index.clear()
        return sorted(rebuilt, key=lambda item: (-item.total_points, item.username.lower()))
