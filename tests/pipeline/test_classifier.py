from __future__ import annotations

import pytest

from leaderboard.services.classifier import (
    ActivityKind,
    classify,
    classify_issue_event,
    is_bot_account,
    should_count_assignment,
    should_count_close,
    should_count_label,
    should_count_review,
)


def test_classify_maps_kinds_to_labels_and_points() -> None:
    assert classify("pull_request_opened").label == "PR opened"
    assert classify("pull_request_opened").points == 2
    assert classify(ActivityKind.PULL_REQUEST_MERGED).points == 5
    assert classify("issue_opened").points == 1
    assert classify("review_submitted").points == 4
    assert classify("issue_labeled").points == 2
    assert classify("issue_assigned").points == 2
    assert classify("issue_closed").points == 1


def test_classify_drops_unknown_kinds() -> None:
    assert classify("star_created") is None
    assert classify("") is None


@pytest.mark.parametrize(
    "login",
    ["dependabot[bot]", "release-bot", "ci_bot", "renovate", "GitHub-Actions", "renovate[bot]", "Dependabot"],
)
def test_bot_naming_conventions_are_excluded(login: str) -> None:
    assert is_bot_account(login) is True


def test_non_human_account_type_is_excluded() -> None:
    assert is_bot_account("octo-app", "Bot") is True
    assert is_bot_account("octocat", "Organization") is True
    assert is_bot_account("octocat", "User") is False
    assert is_bot_account("robotics-fan") is False


def test_self_review_and_plain_comments_do_not_count() -> None:
    assert should_count_review("bob", "bob", "APPROVED") is False
    assert should_count_review("Bob", "bob", "CHANGES_REQUESTED") is False
    assert should_count_review("alice", "bob", "COMMENTED") is False
    assert should_count_review("alice", "bob", "approved") is True
    assert should_count_review("alice", "bob", "CHANGES_REQUESTED") is True


def test_triage_exclusion_rules() -> None:
    assert should_count_label("Stale") is False
    assert should_count_label("dependencies") is False
    assert should_count_label("good first issue") is True
    assert should_count_assignment("carol", "carol") is False
    assert should_count_assignment("carol", "dave") is True
    assert should_count_close("erin", "erin") is False
    assert should_count_close("erin", "frank") is True


def test_classify_issue_event_applies_rules() -> None:
    human = {"login": "carol", "type": "User"}

    labeled = {"event": "labeled", "actor": human, "label": {"name": "bug"}}
    automated = {"event": "labeled", "actor": human, "label": {"name": "wontfix"}}
    self_assigned = {"event": "assigned", "actor": human, "assignee": {"login": "carol"}}
    closed_by_author = {"event": "closed", "actor": human}
    bot_close = {"event": "closed", "actor": {"login": "stale[bot]", "type": "Bot"}}
    mentioned = {"event": "mentioned", "actor": human}

    assert classify_issue_event(labeled, issue_author="dave").label == "Issue labeled"
    assert classify_issue_event(automated, issue_author="dave") is None
    assert classify_issue_event(self_assigned, issue_author="dave") is None
    assert classify_issue_event(closed_by_author, issue_author="carol") is None
    assert classify_issue_event(closed_by_author, issue_author="dave").points == 1
    assert classify_issue_event(bot_close, issue_author="dave") is None
    assert classify_issue_event(mentioned, issue_author="dave") is None
