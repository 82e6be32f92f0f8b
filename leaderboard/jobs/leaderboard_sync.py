"""Leaderboard batch job entrypoints."""

from __future__ import annotations

from typing import Any

from leaderboard.orchestrator import RUN_AUTO, RUN_FULL, RUN_MODES, RUN_PROJECTIONS, LeaderboardOrchestrator


def normalize_run_mode(raw: Any, *, default: str = RUN_AUTO) -> str:
    """Normalize a mode selector from event payloads/CLI args; unknown values fall back to default."""
    if raw is None:
        return default
    mode = str(raw).strip().lower()
    if mode == "incremental":
        return RUN_AUTO
    return mode if mode in RUN_MODES else default


async def run_leaderboard_sync(
    *,
    orchestrator: LeaderboardOrchestrator | None = None,
    mode: str | None = None,
) -> dict[str, Any]:
    """Incremental run when a cursor exists, full otherwise; then projections."""
    job_orchestrator = orchestrator or LeaderboardOrchestrator()
    return await job_orchestrator.run(mode=normalize_run_mode(mode))


async def run_leaderboard_backfill(*, orchestrator: LeaderboardOrchestrator | None = None) -> dict[str, Any]:
    """Ignore the stored cursor and refetch the whole trailing year."""
    job_orchestrator = orchestrator or LeaderboardOrchestrator()
    return await job_orchestrator.run(mode=RUN_FULL)


async def run_leaderboard_projections(*, orchestrator: LeaderboardOrchestrator | None = None) -> dict[str, Any]:
    """Rebuild week/month/recent files from the stored year snapshot without fetching."""
    job_orchestrator = orchestrator or LeaderboardOrchestrator()
    return await job_orchestrator.run(mode=RUN_PROJECTIONS)
