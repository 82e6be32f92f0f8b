"""Activity classification, scoring, and exclusion rules."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional


class ActivityKind(str, enum.Enum):
    """Raw event kinds observed from the activity source."""

    PULL_REQUEST_OPENED = "pull_request_opened"
    PULL_REQUEST_MERGED = "pull_request_merged"
    ISSUE_OPENED = "issue_opened"
    REVIEW_SUBMITTED = "review_submitted"
    ISSUE_LABELED = "issue_labeled"
    ISSUE_ASSIGNED = "issue_assigned"
    ISSUE_CLOSED = "issue_closed"


@dataclass(frozen=True, slots=True)
class ScoredActivity:
    """Normalized label and point value for a raw event kind."""

    label: str
    points: int


ACTIVITY_TABLE: dict[ActivityKind, ScoredActivity] = {
    ActivityKind.PULL_REQUEST_OPENED: ScoredActivity("PR opened", 2),
    ActivityKind.PULL_REQUEST_MERGED: ScoredActivity("PR merged", 5),
    ActivityKind.ISSUE_OPENED: ScoredActivity("Issue opened", 1),
    ActivityKind.REVIEW_SUBMITTED: ScoredActivity("Review submitted", 4),
    ActivityKind.ISSUE_LABELED: ScoredActivity("Issue labeled", 2),
    ActivityKind.ISSUE_ASSIGNED: ScoredActivity("Issue assigned", 2),
    ActivityKind.ISSUE_CLOSED: ScoredActivity("Issue closed", 1),
}

BOT_SUFFIXES = ("[bot]", "-bot", "_bot")
BOT_PREFIXES = ("dependabot[", "renovate[")
KNOWN_AUTOMATION_ACCOUNTS = frozenset(
    {"dependabot", "renovate", "github-actions", "codecov", "allcontributors"}
)
COUNTED_REVIEW_STATES = frozenset({"APPROVED", "CHANGES_REQUESTED"})
AUTOMATED_LABELS = frozenset(
    {"stale", "wontfix", "duplicate", "invalid", "dependencies", "security", "ci"}
)

_ISSUE_EVENT_KINDS = {
    "labeled": ActivityKind.ISSUE_LABELED,
    "assigned": ActivityKind.ISSUE_ASSIGNED,
    "closed": ActivityKind.ISSUE_CLOSED,
}


def classify(kind: str | ActivityKind) -> Optional[ScoredActivity]:
    """Map a raw event kind to its label and points; unknown kinds yield None."""

    try:
        return ACTIVITY_TABLE[ActivityKind(kind)]
    except ValueError:
        return None


def is_bot_account(login: Optional[str], account_type: Optional[str] = None) -> bool:
    if not login:
        return True
    if account_type is not None and account_type != "User":
        return True

    lowered = login.lower()
    return (
        lowered in KNOWN_AUTOMATION_ACCOUNTS
        or lowered.endswith(BOT_SUFFIXES)
        or lowered.startswith(BOT_PREFIXES)
    )


def is_bot_user(user: Any) -> bool:
    """Bot check for a GitHub `user` payload (`login` + `type`)."""

    if not isinstance(user, dict):
        return True
    return is_bot_account(user.get("login"), user.get("type"))


def should_count_review(reviewer: Optional[str], pr_author: Optional[str], state: Optional[str]) -> bool:
    if not reviewer or _same_login(reviewer, pr_author):
        return False
    return (state or "").upper() in COUNTED_REVIEW_STATES


def should_count_label(label: Optional[str]) -> bool:
    if not label:
        return False
    return label.strip().lower() not in AUTOMATED_LABELS


def should_count_assignment(actor: Optional[str], assignee: Optional[str]) -> bool:
    return not _same_login(actor, assignee)


def should_count_close(closer: Optional[str], issue_author: Optional[str]) -> bool:
    return not _same_login(closer, issue_author)


def classify_issue_event(event: dict[str, Any], *, issue_author: Optional[str]) -> Optional[ScoredActivity]:
    """Score a triage event from the issue events timeline.

    Returns None when the event kind is not scored or an exclusion rule applies.
    """

    kind = _ISSUE_EVENT_KINDS.get(str(event.get("event") or ""))
    if kind is None:
        return None

    actor = event.get("actor") if isinstance(event.get("actor"), dict) else None
    if actor is None or is_bot_user(actor):
        return None
    actor_login = actor.get("login")

    if kind == ActivityKind.ISSUE_LABELED:
        label = event.get("label") if isinstance(event.get("label"), dict) else {}
        if not should_count_label(label.get("name")):
            return None
    elif kind == ActivityKind.ISSUE_ASSIGNED:
        assignee = event.get("assignee") if isinstance(event.get("assignee"), dict) else {}
        if not should_count_assignment(actor_login, assignee.get("login")):
            return None
    elif kind == ActivityKind.ISSUE_CLOSED:
        if not should_count_close(actor_login, issue_author):
            return None

    return classify(kind)


def _same_login(left: Optional[str], right: Optional[str]) -> bool:
    if not left or not right:
        return False
    return left.lower() == right.lower()
