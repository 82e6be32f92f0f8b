"""Contributor activity ingestion stage.

Drives the GitHub client over a fetch window, classifies what comes back, and
folds the scored events into an `AggregateBuilder`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Sequence, TypeVar

from leaderboard.config.settings import settings
from leaderboard.crawlers.client import sanitize_log_extra
from leaderboard.crawlers.contracts import FetchResult
from leaderboard.models.activity import RawActivity, parse_timestamp
from leaderboard.services.aggregate_builder import AggregateBuilder
from leaderboard.services.classifier import (
    ACTIVITY_TABLE,
    ActivityKind,
    ScoredActivity,
    classify_issue_event,
    is_bot_user,
    should_count_review,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class ActivityIngestionResult:
    """Counters and non-fatal failures for one collection pass."""

    repositories: int = 0
    pull_requests_opened: int = 0
    pull_requests_merged: int = 0
    issues_opened: int = 0
    reviews: int = 0
    issue_events: int = 0
    failure_reasons: list[str] = field(default_factory=list)

    def to_stats(self) -> dict[str, Any]:
        return {
            "repositories": self.repositories,
            "pull_requests_opened": self.pull_requests_opened,
            "pull_requests_merged": self.pull_requests_merged,
            "issues_opened": self.issues_opened,
            "reviews": self.reviews,
            "issue_events": self.issue_events,
            "failure_reasons": list(self.failure_reasons),
        }


@dataclass(frozen=True, slots=True)
class _IssueRef:
    owner: str
    repo: str
    number: int
    title: Optional[str]
    html_url: Optional[str]
    author: Optional[str]


class ActivityStage:
    """Collects scored contributor activity for `[since, until)`."""

    def __init__(
        self,
        github_client: Any,
        builder: AggregateBuilder,
        *,
        org: Optional[str] = None,
        repositories: Optional[Sequence[str]] = None,
        batch_size: Optional[int] = None,
        batch_delay_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._github_client = github_client
        self._builder = builder
        self._org = org or settings.GITHUB_ORG
        self._repositories = list(repositories if repositories is not None else settings.GITHUB_REPOSITORIES)
        self._batch_size = max(1, batch_size or settings.LEADERBOARD_DETAIL_BATCH_SIZE)
        self._batch_delay_seconds = (
            settings.LEADERBOARD_BATCH_DELAY_SECONDS if batch_delay_seconds is None else batch_delay_seconds
        )
        self._sleep = sleep

    async def collect(self, since: datetime, until: datetime) -> ActivityIngestionResult:
        since = parse_timestamp(since)
        until = parse_timestamp(until)
        result = ActivityIngestionResult()

        repositories = await self._resolve_repositories()
        result.repositories = len(repositories)
        logger.info(
            "Collecting contributor activity",
            extra=sanitize_log_extra(org=self._org, since=since.isoformat(), until=until.isoformat(), repositories=len(repositories)),
        )

        await self._collect_opened_pull_requests(since, until, result)
        await self._collect_merged_pull_requests(since, until, result)
        await self._collect_opened_issues(since, until, result)
        for repo in repositories:
            await self._collect_reviews(repo, since, until, result)
        await self._collect_issue_events(since, until, result)

        logger.info("Finished collecting contributor activity", extra=sanitize_log_extra(**result.to_stats()))
        return result

    async def _resolve_repositories(self) -> list[str]:
        if self._repositories:
            return list(self._repositories)
        return await self._github_client.list_repositories(self._org)

    def _scope(self) -> str:
        if self._repositories:
            return " ".join(f"repo:{self._org}/{repo}" for repo in self._repositories)
        return f"org:{self._org}"

    async def _collect_opened_pull_requests(self, since: datetime, until: datetime, result: ActivityIngestionResult) -> None:
        async for item in self._github_client.iter_search_by_date_range(
            f"{self._scope()} is:pr", since, until, date_field="created"
        ):
            if self._record_item(item, ActivityKind.PULL_REQUEST_OPENED, item.get("created_at"), since, until):
                result.pull_requests_opened += 1

    async def _collect_merged_pull_requests(self, since: datetime, until: datetime, result: ActivityIngestionResult) -> None:
        async for item in self._github_client.iter_search_by_date_range(
            f"{self._scope()} is:pr is:merged", since, until, date_field="merged"
        ):
            pull_request = item.get("pull_request") if isinstance(item.get("pull_request"), dict) else {}
            if self._record_item(item, ActivityKind.PULL_REQUEST_MERGED, pull_request.get("merged_at"), since, until):
                result.pull_requests_merged += 1

    async def _collect_opened_issues(self, since: datetime, until: datetime, result: ActivityIngestionResult) -> None:
        async for item in self._github_client.iter_search_by_date_range(
            f"{self._scope()} is:issue", since, until, date_field="created"
        ):
            if self._record_item(item, ActivityKind.ISSUE_OPENED, item.get("created_at"), since, until):
                result.issues_opened += 1

    async def _collect_reviews(self, repo: str, since: datetime, until: datetime, result: ActivityIngestionResult) -> None:
        pulls = await self._github_client.list_pull_requests(self._org, repo, since=since)
        if pulls.is_failed:
            result.failure_reasons.append(f"pulls({repo}): {pulls.error or 'unknown'}")
            return

        numbered = [pr for pr in pulls.data or [] if isinstance(pr.get("number"), int)]
        async for batch in self._fan_out(
            numbered, lambda pr: self._github_client.list_reviews(self._org, repo, pr["number"])
        ):
            for pr, reviews in batch:
                if reviews.is_failed:
                    result.failure_reasons.append(f"reviews({repo}#{pr['number']}): {reviews.error or 'unknown'}")
                    continue
                result.reviews += self._apply_reviews(pr, reviews.data or [], since, until)

    def _apply_reviews(self, pr: dict[str, Any], reviews: list[dict[str, Any]], since: datetime, until: datetime) -> int:
        author = (pr.get("user") or {}).get("login")
        recorded = 0
        for review in reviews:
            reviewer = review.get("user") if isinstance(review.get("user"), dict) else None
            if reviewer is None or is_bot_user(reviewer):
                continue
            if not should_count_review(reviewer.get("login"), author, review.get("state")):
                continue
            occured_at = _parse_in_window(review.get("submitted_at"), since, until)
            if occured_at is None:
                continue
            activity = _build_activity(
                ACTIVITY_TABLE[ActivityKind.REVIEW_SUBMITTED],
                occured_at,
                pr.get("title"),
                review.get("html_url") or pr.get("html_url"),
            )
            if self._builder.record_event(
                reviewer.get("login"),
                activity,
                avatar_url=reviewer.get("avatar_url"),
                account_type=reviewer.get("type"),
            ):
                recorded += 1
        return recorded

    async def _collect_issue_events(self, since: datetime, until: datetime, result: ActivityIngestionResult) -> None:
        issues: list[_IssueRef] = []
        async for item in self._github_client.iter_search_by_date_range(
            f"{self._scope()} is:issue", since, until, date_field="updated"
        ):
            ref = _issue_ref(item)
            if ref is not None:
                issues.append(ref)

        async for batch in self._fan_out(
            issues, lambda ref: self._github_client.list_issue_events(ref.owner, ref.repo, ref.number)
        ):
            for ref, events in batch:
                if events.is_failed:
                    result.failure_reasons.append(
                        f"issue_events({ref.owner}/{ref.repo}#{ref.number}): {events.error or 'unknown'}"
                    )
                    continue
                result.issue_events += self._apply_issue_events(ref, events.data or [], since, until)

    def _apply_issue_events(self, ref: _IssueRef, events: list[dict[str, Any]], since: datetime, until: datetime) -> int:
        recorded = 0
        for event in events:
            scored = classify_issue_event(event, issue_author=ref.author)
            if scored is None:
                continue
            occured_at = _parse_in_window(event.get("created_at"), since, until)
            if occured_at is None:
                continue
            link = f"{ref.html_url}#event-{event['id']}" if ref.html_url and event.get("id") else ref.html_url
            actor = event["actor"]
            activity = _build_activity(scored, occured_at, ref.title, link)
            if self._builder.record_event(
                actor.get("login"),
                activity,
                avatar_url=actor.get("avatar_url"),
                account_type=actor.get("type"),
            ):
                recorded += 1
        return recorded

    def _record_item(
        self,
        item: dict[str, Any],
        kind: ActivityKind,
        raw_timestamp: Any,
        since: datetime,
        until: datetime,
    ) -> bool:
        user = item.get("user") if isinstance(item.get("user"), dict) else None
        if user is None or is_bot_user(user):
            return False
        occured_at = _parse_in_window(raw_timestamp, since, until)
        if occured_at is None:
            return False
        activity = _build_activity(ACTIVITY_TABLE[kind], occured_at, item.get("title"), item.get("html_url"))
        recorded = self._builder.record_event(
            user.get("login"),
            activity,
            avatar_url=user.get("avatar_url"),
            account_type=user.get("type"),
        )
        return recorded is not None

    async def _fan_out(
        self,
        items: list[T],
        fetch: Callable[[T], Awaitable[FetchResult[Any]]],
    ) -> AsyncIterator[list[tuple[T, FetchResult[Any]]]]:
        """Fetch details in fixed-size concurrent batches.

        Each batch is fully joined before it is yielded, so callers apply results
        to shared state sequentially. Batches are separated by a fixed delay.
        """

        for start in range(0, len(items), self._batch_size):
            batch = items[start : start + self._batch_size]
            responses = await asyncio.gather(*(fetch(item) for item in batch))
            yield list(zip(batch, responses))
            if start + self._batch_size < len(items) and self._batch_delay_seconds > 0:
                await self._sleep(self._batch_delay_seconds)


def _build_activity(
    scored: ScoredActivity,
    occured_at: datetime,
    title: Optional[str],
    link: Optional[str],
) -> RawActivity:
    return RawActivity(type=scored.label, occured_at=occured_at, title=title, link=link or None, points=scored.points)


def _parse_in_window(raw: Any, since: datetime, until: datetime) -> Optional[datetime]:
    if not raw:
        return None
    try:
        parsed = parse_timestamp(raw)
    except (TypeError, ValueError):
        return None
    if parsed < since or parsed >= until:
        return None
    return parsed


def _issue_ref(item: dict[str, Any]) -> Optional[_IssueRef]:
    repository_url = item.get("repository_url")
    number = item.get("number")
    if not isinstance(repository_url, str) or not isinstance(number, int):
        return None
    parts = repository_url.rstrip("/").split("/")
    if len(parts) < 2:
        return None
    user = item.get("user") if isinstance(item.get("user"), dict) else {}
    return _IssueRef(
        owner=parts[-2],
        repo=parts[-1],
        number=number,
        title=item.get("title"),
        html_url=item.get("html_url"),
        author=user.get("login"),
    )
