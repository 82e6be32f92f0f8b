"""FastAPI read API over the persisted leaderboard files"""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from leaderboard.config.settings import settings
from leaderboard.models.activity import Period
from leaderboard.services.directory_merge import build_people_directory
from leaderboard.storage.snapshot_store import RECENT_ACTIVITIES_FILE, SnapshotStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Contributor Leaderboard",
    description="Read API for scored contributor leaderboard snapshots",
    version=settings.APP_VERSION
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

store = SnapshotStore(settings.LEADERBOARD_OUTPUT_DIR)


@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "contributor-leaderboard",
        "version": settings.APP_VERSION
    }


@app.get("/api/people")
async def get_people():
    """Combined directory merged from every period snapshot"""
    try:
        return build_people_directory(
            store,
            core_team=settings.CORE_TEAM_MEMBERS,
            alumni=settings.ALUMNI_MEMBERS,
            display_cap=settings.LEADERBOARD_DISPLAY_CAP,
        )
    except Exception as e:
        logger.error(f"Error fetching people: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to fetch people"})


@app.get("/api/leaderboard/{period}")
async def get_leaderboard(period: str):
    """Raw snapshot for week, month, or year"""
    try:
        selected = Period(period)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown period: {period}")

    payload = store.read_json(f"{selected.value}.json")
    if payload is None:
        raise HTTPException(status_code=404, detail=f"Leaderboard data not found for {period}")
    return payload


@app.get("/api/recent-activities")
async def get_recent_activities():
    """Day-grouped recent activity feed"""
    payload = store.read_json(RECENT_ACTIVITIES_FILE)
    if payload is None:
        raise HTTPException(status_code=404, detail="Recent activity feed not found")
    return payload
