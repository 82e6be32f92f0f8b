"""Typed fetch contracts shared by the GitHub client and ingestion stages."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class FetchState(str, enum.Enum):
    """Outcome of a single upstream call."""

    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(slots=True)
class FetchResult(Generic[T]):
    """Response envelope; transport failures are values, not exceptions."""

    state: FetchState
    data: Optional[T] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    rate_limit_remaining: Optional[int] = None

    @property
    def is_ok(self) -> bool:
        return self.state == FetchState.OK

    @property
    def is_failed(self) -> bool:
        return self.state == FetchState.FAILED


PullRequestContract = FetchResult[list[dict[str, Any]]]
ReviewContract = FetchResult[list[dict[str, Any]]]
IssueEventContract = FetchResult[list[dict[str, Any]]]
SearchContract = FetchResult[list[dict[str, Any]]]
