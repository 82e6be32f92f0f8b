"""Leaderboard data model shared by the pipeline and the snapshot files."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

from dateutil import parser as date_parser


class Period(str, enum.Enum):
    """Snapshot periods; values double as file stems."""

    YEAR = "year"
    MONTH = "month"
    WEEK = "week"


class Role(str, enum.Enum):
    MAINTAINER = "Maintainer"
    ALUMNI = "Alumni"
    CONTRIBUTOR = "Contributor"


def parse_timestamp(raw: Any) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""

    if isinstance(raw, datetime):
        parsed = raw
    else:
        parsed = date_parser.isoparse(str(raw))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return parse_timestamp(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def to_epoch_millis(value: datetime) -> int:
    return int(parse_timestamp(value).timestamp() * 1000)


@dataclass(frozen=True, slots=True)
class RawActivity:
    """One scored contributor action; the append-only unit of truth."""

    type: str
    occured_at: datetime
    title: Optional[str]
    link: Optional[str]
    points: int

    @property
    def day(self) -> date:
        return self.occured_at.date()

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "occured_at": format_timestamp(self.occured_at),
            "link": self.link,
            "points": self.points,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RawActivity":
        return cls(
            type=str(payload["type"]),
            occured_at=parse_timestamp(payload["occured_at"]),
            title=payload.get("title"),
            link=payload.get("link") or None,
            points=int(payload.get("points") or 0),
        )


@dataclass(slots=True)
class ActivityStat:
    count: int = 0
    points: int = 0


@dataclass(slots=True)
class DailyActivity:
    date: date
    count: int = 0
    points: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "count": self.count, "points": self.points}


@dataclass(slots=True)
class ContributorAggregate:
    """Per-contributor log plus the totals derived from it."""

    username: str
    name: Optional[str]
    avatar_url: Optional[str]
    role: str
    total_points: int = 0
    activity_breakdown: dict[str, ActivityStat] = field(default_factory=dict)
    daily_activity: list[DailyActivity] = field(default_factory=list)
    raw_activities: list[RawActivity] = field(default_factory=list)

    def to_dict(self, *, activities_key: str = "raw_activities") -> dict[str, Any]:
        return {
            "username": self.username,
            "name": self.name,
            "avatar_url": self.avatar_url,
            "role": self.role,
            "total_points": self.total_points,
            "activity_breakdown": {
                label: {"count": stat.count, "points": stat.points}
                for label, stat in self.activity_breakdown.items()
            },
            "daily_activity": [day.to_dict() for day in self.daily_activity],
            activities_key: [
                activity.to_dict()
                for activity in sorted(self.raw_activities, key=lambda item: item.occured_at, reverse=True)
            ],
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ContributorAggregate":
        raw = payload.get("raw_activities")
        if raw is None:
            raw = payload.get("activities") or []
        breakdown = payload.get("activity_breakdown") or {}
        return cls(
            username=str(payload["username"]),
            name=payload.get("name"),
            avatar_url=payload.get("avatar_url"),
            role=str(payload.get("role") or Role.CONTRIBUTOR.value),
            total_points=int(payload.get("total_points") or 0),
            activity_breakdown={
                str(label): ActivityStat(count=int(stat.get("count", 0)), points=int(stat.get("points", 0)))
                for label, stat in breakdown.items()
            },
            daily_activity=[
                DailyActivity(
                    date=date.fromisoformat(str(day["date"])),
                    count=int(day.get("count", 0)),
                    points=int(day.get("points", 0)),
                )
                for day in payload.get("daily_activity") or []
            ],
            raw_activities=[RawActivity.from_dict(item) for item in raw],
        )


@dataclass(slots=True)
class TopContributor:
    username: str
    name: Optional[str]
    avatar_url: Optional[str]
    points: int
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "name": self.name,
            "avatar_url": self.avatar_url,
            "points": self.points,
            "count": self.count,
        }


@dataclass(slots=True)
class Snapshot:
    """A persisted, self-contained aggregation for one period."""

    period: Period
    updated_at: datetime
    start_date: date
    end_date: date
    entries: list[ContributorAggregate] = field(default_factory=list)
    last_fetched_at: Optional[datetime] = None
    hidden_roles: list[str] = field(default_factory=list)
    top_by_activity: dict[str, list[TopContributor]] = field(default_factory=dict)

    @property
    def activities_key(self) -> str:
        return "raw_activities" if self.period == Period.YEAR else "activities"

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "period": self.period.value,
            "updatedAt": to_epoch_millis(self.updated_at),
        }
        if self.last_fetched_at is not None:
            payload["lastFetchedAt"] = format_timestamp(self.last_fetched_at)
        payload.update(
            {
                "startDate": self.start_date.isoformat(),
                "endDate": self.end_date.isoformat(),
                "hiddenRoles": list(self.hidden_roles),
                "topByActivity": {
                    label: [top.to_dict() for top in tops] for label, tops in self.top_by_activity.items()
                },
                "entries": [entry.to_dict(activities_key=self.activities_key) for entry in self.entries],
            }
        )
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Snapshot":
        last_fetched = payload.get("lastFetchedAt")
        return cls(
            period=Period(payload["period"]),
            updated_at=datetime.fromtimestamp(int(payload.get("updatedAt") or 0) / 1000, tz=timezone.utc),
            start_date=date.fromisoformat(str(payload["startDate"])[:10]),
            end_date=date.fromisoformat(str(payload["endDate"])[:10]),
            entries=[ContributorAggregate.from_dict(entry) for entry in payload.get("entries") or []],
            last_fetched_at=parse_timestamp(last_fetched) if last_fetched else None,
            hidden_roles=[str(role) for role in payload.get("hiddenRoles") or []],
            top_by_activity={
                str(label): [TopContributor(**top) for top in tops]
                for label, tops in (payload.get("topByActivity") or {}).items()
            },
        )


@dataclass(slots=True)
class RecentActivity:
    username: str
    name: Optional[str]
    avatar_url: Optional[str]
    type: str
    title: Optional[str]
    link: Optional[str]
    points: int
    occured_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "name": self.name,
            "type": self.type,
            "title": self.title,
            "link": self.link,
            "avatar_url": self.avatar_url,
            "points": self.points,
            "occured_at": format_timestamp(self.occured_at),
        }


@dataclass(slots=True)
class RecentActivityGroup:
    date: date
    activities: list[RecentActivity] = field(default_factory=list)


@dataclass(slots=True)
class RecentActivityFeed:
    updated_at: datetime
    groups: list[RecentActivityGroup] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "updatedAt": to_epoch_millis(self.updated_at),
            "groups": [
                {"date": group.date.isoformat(), "activities": [item.to_dict() for item in group.activities]}
                for group in self.groups
            ],
        }
