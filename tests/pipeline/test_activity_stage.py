from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import pytest

from leaderboard.crawlers.activity_stage import ActivityStage
from leaderboard.crawlers.contracts import FetchResult, FetchState
from leaderboard.services.aggregate_builder import AggregateBuilder
from leaderboard.services.roles import MembershipConfig, RoleResolver

SINCE = datetime(2026, 10, 1, tzinfo=timezone.utc)
UNTIL = datetime(2026, 10, 18, tzinfo=timezone.utc)


def _user(login: str, kind: str = "User") -> dict[str, Any]:
    return {"login": login, "type": kind, "avatar_url": f"https://img/{login}"}


class FakeClient:
    def __init__(self) -> None:
        self.search_results: dict[str, list[dict[str, Any]]] = {}
        self.pulls: dict[str, FetchResult[list[dict[str, Any]]]] = {}
        self.reviews: dict[int, FetchResult[list[dict[str, Any]]]] = {}
        self.issue_events: dict[int, FetchResult[list[dict[str, Any]]]] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def list_repositories(self, org: str) -> list[str]:
        return ["app"]

    async def iter_search_by_date_range(self, query: str, since: datetime, until: datetime, *, date_field: str = "created"):
        key = f"{query}|{date_field}"
        for item in self.search_results.get(key, []):
            yield item

    async def list_pull_requests(self, owner: str, repo: str, *, since: datetime | None = None):
        return self.pulls.get(repo, FetchResult(state=FetchState.EMPTY, data=[]))

    async def list_reviews(self, owner: str, repo: str, pr_number: int):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        return self.reviews.get(pr_number, FetchResult(state=FetchState.EMPTY, data=[]))

    async def list_issue_events(self, owner: str, repo: str, issue_number: int):
        return self.issue_events.get(issue_number, FetchResult(state=FetchState.EMPTY, data=[]))


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _stage(client: FakeClient, builder: AggregateBuilder, sleep: SleepRecorder) -> ActivityStage:
    return ActivityStage(client, builder, org="acme", repositories=[], batch_size=2, batch_delay_seconds=1.5, sleep=sleep)


@pytest.mark.asyncio
async def test_collects_scored_pull_request_and_issue_activity() -> None:
    client = FakeClient()
    client.search_results["org:acme is:pr|created"] = [
        {"user": _user("alice"), "title": "Add cache", "html_url": "https://gh/acme/app/pull/1", "created_at": "2026-10-02T10:00:00Z"},
        {"user": _user("dependabot[bot]", "Bot"), "title": "Bump", "html_url": "https://gh/acme/app/pull/2", "created_at": "2026-10-02T11:00:00Z"},
        {"user": _user("alice"), "title": "Old", "html_url": "https://gh/acme/app/pull/0", "created_at": "2026-09-02T11:00:00Z"},
    ]
    client.search_results["org:acme is:pr is:merged|merged"] = [
        {
            "user": _user("alice"),
            "title": "Add cache",
            "html_url": "https://gh/acme/app/pull/1",
            "pull_request": {"merged_at": "2026-10-03T10:00:00Z"},
        }
    ]
    client.search_results["org:acme is:issue|created"] = [
        {"user": _user("carol"), "title": "Crash", "html_url": "https://gh/acme/app/issues/5", "created_at": "2026-10-04T10:00:00Z"}
    ]
    builder = AggregateBuilder(RoleResolver(MembershipConfig()))

    result = await _stage(client, builder, SleepRecorder()).collect(SINCE, UNTIL)

    assert result.pull_requests_opened == 1
    assert result.pull_requests_merged == 1
    assert result.issues_opened == 1
    assert set(builder.aggregates) == {"alice", "carol"}
    assert builder.aggregates["alice"].total_points == 7
    assert builder.aggregates["alice"].avatar_url == "https://img/alice"


@pytest.mark.asyncio
async def test_self_review_earns_no_points_and_batches_are_bounded() -> None:
    client = FakeClient()
    pulls = [{"number": n, "title": f"PR {n}", "html_url": f"https://gh/pull/{n}", "user": _user("bob")} for n in range(1, 6)]
    client.pulls["app"] = FetchResult(state=FetchState.OK, data=pulls)
    client.reviews[1] = FetchResult(
        state=FetchState.OK,
        data=[
            {"user": _user("bob"), "state": "APPROVED", "submitted_at": "2026-10-05T00:00:00Z", "html_url": "r1"},
            {"user": _user("alice"), "state": "APPROVED", "submitted_at": "2026-10-05T01:00:00Z", "html_url": "r2"},
            {"user": _user("alice"), "state": "COMMENTED", "submitted_at": "2026-10-05T02:00:00Z", "html_url": "r3"},
        ],
    )
    client.reviews[4] = FetchResult(state=FetchState.FAILED, error="timeout", status_code=504)
    builder = AggregateBuilder(RoleResolver(MembershipConfig()))
    sleep = SleepRecorder()
    stage = ActivityStage(client, builder, org="acme", repositories=["app"], batch_size=2, batch_delay_seconds=1.5, sleep=sleep)

    result = await stage.collect(SINCE, UNTIL)

    assert "bob" not in builder.aggregates
    assert builder.aggregates["alice"].total_points == 4
    assert result.reviews == 1
    assert client.max_in_flight <= 2
    assert sleep.calls == [1.5, 1.5]
    assert any("reviews(app#4)" in reason for reason in result.failure_reasons)


@pytest.mark.asyncio
async def test_issue_events_are_scored_with_triage_rules() -> None:
    client = FakeClient()
    client.search_results["org:acme is:issue|updated"] = [
        {
            "number": 9,
            "title": "Flaky test",
            "html_url": "https://gh/acme/app/issues/9",
            "repository_url": "https://api.github.com/repos/acme/app",
            "user": _user("dave"),
        }
    ]
    client.issue_events[9] = FetchResult(
        state=FetchState.OK,
        data=[
            {"id": 1, "event": "labeled", "actor": _user("maya"), "label": {"name": "bug"}, "created_at": "2026-10-06T00:00:00Z"},
            {"id": 2, "event": "labeled", "actor": _user("maya"), "label": {"name": "stale"}, "created_at": "2026-10-06T00:01:00Z"},
            {"id": 3, "event": "assigned", "actor": _user("maya"), "assignee": _user("maya"), "created_at": "2026-10-06T00:02:00Z"},
            {"id": 4, "event": "closed", "actor": _user("maya"), "created_at": "2026-10-07T00:00:00Z"},
            {"id": 5, "event": "closed", "actor": _user("dave"), "created_at": "2026-10-08T00:00:00Z"},
        ],
    )
    builder = AggregateBuilder(RoleResolver(MembershipConfig(core_team=("maya",))))

    result = await _stage(client, builder, SleepRecorder()).collect(SINCE, UNTIL)

    maya = builder.aggregates["maya"]
    assert result.issue_events == 2
    assert maya.role == "Maintainer"
    assert maya.total_points == 3
    assert {activity.link for activity in maya.raw_activities} == {
        "https://gh/acme/app/issues/9#event-1",
        "https://gh/acme/app/issues/9#event-4",
    }
    assert "dave" not in builder.aggregates
