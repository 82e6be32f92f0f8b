"""Contributor leaderboard pipeline."""
