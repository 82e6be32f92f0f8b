"""Leaderboard orchestrator: incremental year merge followed by period projections."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from leaderboard.config.settings import settings
from leaderboard.crawlers.activity_stage import ActivityStage
from leaderboard.crawlers.client import GitHubActivityClient, sanitize_for_log, sanitize_log_extra
from leaderboard.exceptions import MissingCredentialError
from leaderboard.models.activity import ContributorAggregate, Period, Snapshot, parse_timestamp
from leaderboard.services.aggregate_builder import AggregateBuilder
from leaderboard.services.classifier import is_bot_account
from leaderboard.services.period_projector import (
    build_recent_feed,
    filter_window,
    project_period,
    rank_entries,
    top_by_activity,
)
from leaderboard.services.roles import MembershipConfig, RoleResolver
from leaderboard.storage.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

MODE_FULL = "full"
MODE_INCREMENTAL = "incremental"

RUN_AUTO = "auto"
RUN_FULL = "full"
RUN_PROJECTIONS = "projections"
RUN_MODES = (RUN_AUTO, RUN_FULL, RUN_PROJECTIONS)


@dataclass(frozen=True, slots=True)
class FetchWindow:
    """Time range requested from the activity source for one run."""

    mode: str
    since: datetime
    until: datetime


class LeaderboardOrchestrator:
    """Coordinates fetching, history merge, recompute, and snapshot output."""

    def __init__(
        self,
        *,
        store: Optional[SnapshotStore] = None,
        membership: Optional[MembershipConfig] = None,
        token: Optional[str] = None,
        github_client_factory: Optional[Callable[[], Any]] = None,
        activity_stage_factory: Callable[[Any, AggregateBuilder], Any] = ActivityStage,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store or SnapshotStore(settings.LEADERBOARD_OUTPUT_DIR)
        self._membership = membership or MembershipConfig.from_settings()
        self._token = settings.GITHUB_TOKEN if token is None else token
        self._github_client_factory = github_client_factory or (lambda: GitHubActivityClient(token=self._token))
        self._activity_stage_factory = activity_stage_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @staticmethod
    def determine_window(previous: Optional[Snapshot], now: datetime, *, force_full: bool = False) -> FetchWindow:
        """Full trailing year without a usable cursor, otherwise `[lastFetchedAt, now)`."""

        now = parse_timestamp(now)
        if force_full or previous is None or previous.last_fetched_at is None:
            return FetchWindow(MODE_FULL, now - timedelta(days=settings.LEADERBOARD_YEAR_DAYS), now)
        since = min(parse_timestamp(previous.last_fetched_at), now)
        return FetchWindow(MODE_INCREMENTAL, since, now)

    async def run(self, *, mode: str = RUN_AUTO) -> dict[str, Any]:
        """Run one batch pass and return run statistics.

        A failure in the year stage skips the projections, so nothing derived
        from a partial run is written.
        """

        started_at = self._clock()
        run_stats: dict[str, Any] = {
            "mode": mode,
            "started_at": started_at.isoformat(),
            "stages": {},
            "errors": [],
        }
        logger.info("Leaderboard run started", extra=sanitize_log_extra(mode=mode))

        try:
            if mode not in RUN_MODES:
                raise ValueError(f"Unknown run mode: {mode}")

            if mode == RUN_PROJECTIONS:
                year_snapshot = self._store.load_snapshot(Period.YEAR)
                if year_snapshot is None:
                    raise FileNotFoundError("No year snapshot available for projections")
            else:
                year_snapshot, year_stats = await self.run_year(now=started_at, force_full=mode == RUN_FULL)
                run_stats["stages"]["year"] = {"success": True, "stats": year_stats}

            projection_stats = self.run_projections(year_snapshot, now=started_at)
            run_stats["stages"]["projections"] = {"success": True, "stats": projection_stats}
        except Exception as exc:
            sanitized_error = sanitize_for_log(str(exc), key="error")
            logger.exception("Leaderboard run failed", extra=sanitize_log_extra(mode=mode, error=sanitized_error))
            run_stats["errors"].append(sanitized_error)

        run_stats["completed_at"] = self._clock().isoformat()
        run_stats["success"] = not run_stats["errors"]
        logger.info(
            "Leaderboard run completed",
            extra=sanitize_log_extra(success=run_stats["success"], errors=run_stats["errors"]),
        )
        return run_stats

    async def run_year(self, *, now: Optional[datetime] = None, force_full: bool = False) -> tuple[Snapshot, dict[str, Any]]:
        """Fetch the window, union with the prior year log, recompute, and persist `year.json`."""

        if not self._token:
            raise MissingCredentialError("GITHUB_TOKEN is required to fetch contributor activity")

        now = parse_timestamp(now or self._clock())
        previous = self._store.load_snapshot(Period.YEAR)
        window = self.determine_window(previous, now, force_full=force_full)
        logger.info(
            "Resolved fetch window",
            extra=sanitize_log_extra(mode=window.mode, since=window.since.isoformat(), until=window.until.isoformat()),
        )

        builder = AggregateBuilder(RoleResolver(self._membership))
        async with self._github_client_factory() as client:
            stage = self._activity_stage_factory(client, builder)
            ingestion = await stage.collect(window.since, window.until)

        fresh_contributors = len(builder.aggregates)
        if previous is not None:
            builder.merge_history(previous.entries)

        # The year log never holds events older than the trailing display window.
        cutoff = now - timedelta(days=settings.LEADERBOARD_YEAR_DAYS)
        entries: list[ContributorAggregate] = []
        for entry in builder.build():
            if is_bot_account(entry.username):
                continue
            trimmed = filter_window(entry, cutoff)
            if trimmed is not None and trimmed.total_points > 0:
                entries.append(trimmed)
        entries = rank_entries(entries)
        snapshot = Snapshot(
            period=Period.YEAR,
            updated_at=now,
            start_date=cutoff.date(),
            end_date=now.date(),
            entries=entries,
            last_fetched_at=now,
            hidden_roles=list(settings.LEADERBOARD_HIDDEN_ROLES),
            top_by_activity=top_by_activity(entries, limit=settings.LEADERBOARD_TOP_BY_ACTIVITY_LIMIT),
        )
        self._store.save_snapshot(snapshot)

        stats = {
            "fetch_mode": window.mode,
            "since": window.since.isoformat(),
            "until": window.until.isoformat(),
            "fresh_contributors": fresh_contributors,
            "contributors": len(entries),
            "ingestion": ingestion.to_stats(),
        }
        return snapshot, stats

    def run_projections(self, year_snapshot: Snapshot, *, now: Optional[datetime] = None) -> dict[str, Any]:
        """Write `month.json`, `week.json`, and the recent-activity feed from the year log."""

        now = parse_timestamp(now or self._clock())
        stats: dict[str, Any] = {}
        for period, days in ((Period.MONTH, settings.LEADERBOARD_MONTH_DAYS), (Period.WEEK, settings.LEADERBOARD_WEEK_DAYS)):
            snapshot = project_period(
                year_snapshot.entries,
                period=period,
                days=days,
                now=now,
                hidden_roles=list(settings.LEADERBOARD_HIDDEN_ROLES),
                top_limit=settings.LEADERBOARD_TOP_BY_ACTIVITY_LIMIT,
            )
            self._store.save_snapshot(snapshot)
            stats[period.value] = len(snapshot.entries)

        feed = build_recent_feed(year_snapshot.entries, days=settings.LEADERBOARD_RECENT_DAYS, now=now)
        self._store.save_recent_feed(feed)
        stats["recent_days"] = len(feed.groups)
        return stats
