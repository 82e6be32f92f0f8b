"""
Batch entrypoint for the leaderboard pipeline

Invoked by a scheduler (event payload) or locally via `python -m leaderboard.handler`.
Each invocation is one batch pass; there is no long-lived loop.
"""

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, Optional, Sequence

from leaderboard.jobs.leaderboard_sync import (
    normalize_run_mode,
    run_leaderboard_backfill,
    run_leaderboard_projections,
    run_leaderboard_sync,
)
from leaderboard.orchestrator import RUN_FULL, RUN_PROJECTIONS

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def lambda_handler(event: Optional[Dict[str, Any]], context: Any) -> Dict[str, Any]:
    """
    Scheduler entrypoint for the leaderboard pipeline.

    Expected event payloads:
    - {"mode": "auto"}         incremental when a cursor exists, full otherwise
    - {"mode": "full"}         refetch the trailing year
    - {"mode": "projections"}  rebuild week/month/recent from year.json

    Args:
        event: Event payload from the scheduler
        context: Runtime context object (unused)

    Returns:
        Dictionary with statusCode, mode, and result
    """
    mode = normalize_run_mode((event or {}).get("mode"))
    logger.info(f"Leaderboard handler invoked with mode: {mode}")

    try:
        if mode == RUN_FULL:
            result = asyncio.run(run_leaderboard_backfill())
        elif mode == RUN_PROJECTIONS:
            result = asyncio.run(run_leaderboard_projections())
        else:
            result = asyncio.run(run_leaderboard_sync(mode=mode))
    except Exception as e:
        logger.error(f"Leaderboard run crashed: {e}", exc_info=True)
        return {"statusCode": 500, "mode": mode, "error": str(e)}

    if not result.get("success", False):
        logger.error(f"Leaderboard run failed: {result.get('errors')}")
        return {"statusCode": 500, "mode": mode, "result": result}

    logger.info(f"Leaderboard run completed successfully: {result.get('stages')}")
    return {"statusCode": 200, "mode": mode, "result": result}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Command-line entrypoint; returns a process exit code."""
    parser = argparse.ArgumentParser(description="Generate contributor leaderboard snapshots")
    parser.add_argument(
        "--mode",
        default="auto",
        choices=["auto", "incremental", "full", "projections"],
        help="auto/incremental resume from year.json, full refetches the trailing year",
    )
    args = parser.parse_args(argv)

    response = lambda_handler({"mode": args.mode}, None)
    return 0 if response["statusCode"] == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
