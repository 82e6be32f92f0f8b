"""Contributor role resolution from static membership lists."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from leaderboard.config.settings import settings
from leaderboard.models.activity import Role


@dataclass(frozen=True, slots=True)
class MembershipConfig:
    """Current team and alumni handles, as configured for this run."""

    core_team: tuple[str, ...] = field(default_factory=tuple)
    alumni: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_settings(cls) -> "MembershipConfig":
        return cls(core_team=tuple(settings.CORE_TEAM_MEMBERS), alumni=tuple(settings.ALUMNI_MEMBERS))


class RoleResolver:
    """Case-insensitive lookup; maintainers take precedence over alumni."""

    def __init__(self, membership: MembershipConfig) -> None:
        self._core_team = _normalize(membership.core_team)
        self._alumni = _normalize(membership.alumni)

    def resolve(self, username: str) -> str:
        handle = username.lower()
        if handle in self._core_team:
            return Role.MAINTAINER.value
        if handle in self._alumni:
            return Role.ALUMNI.value
        return Role.CONTRIBUTOR.value


def _normalize(handles: Iterable[str]) -> frozenset[str]:
    return frozenset(handle.strip().lower() for handle in handles if handle and handle.strip())
