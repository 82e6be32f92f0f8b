"""Leaderboard service helpers."""

from leaderboard.services.aggregate_builder import AggregateBuilder, record_event
from leaderboard.services.deduplicator import activity_identity, dedupe_activities, recompute, recompute_all
from leaderboard.services.roles import MembershipConfig, RoleResolver

__all__ = [
    "AggregateBuilder",
    "record_event",
    "activity_identity",
    "dedupe_activities",
    "recompute",
    "recompute_all",
    "MembershipConfig",
    "RoleResolver",
]
