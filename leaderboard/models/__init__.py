"""Leaderboard models"""

from leaderboard.models.activity import (
    ActivityStat,
    ContributorAggregate,
    DailyActivity,
    Period,
    RawActivity,
    RecentActivity,
    RecentActivityFeed,
    RecentActivityGroup,
    Role,
    Snapshot,
    TopContributor,
)

__all__ = [
    "ActivityStat",
    "ContributorAggregate",
    "DailyActivity",
    "Period",
    "RawActivity",
    "RecentActivity",
    "RecentActivityFeed",
    "RecentActivityGroup",
    "Role",
    "Snapshot",
    "TopContributor",
]
