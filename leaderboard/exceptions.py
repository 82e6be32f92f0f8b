"""Pipeline error types."""


class LeaderboardError(Exception):
    """Base error for leaderboard runs."""


class MissingCredentialError(LeaderboardError):
    """A required credential (for example GITHUB_TOKEN) is not configured."""


class SnapshotWriteError(LeaderboardError):
    """A snapshot file could not be written."""
