"""Application settings and configuration"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Contributor Leaderboard"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # GitHub API
    GITHUB_TOKEN: Optional[str] = None
    GITHUB_ORG: str = "example-org"
    GITHUB_REPOSITORIES: List[str] = []  # Explicit repo names; empty means "discover from org"
    USER_AGENT: str = "ContributorLeaderboard/1.0"

    # GitHub client resilience controls
    GITHUB_TIMEOUT_SECONDS: float = 30.0
    GITHUB_MAX_RETRIES: int = 3
    GITHUB_BACKOFF_BASE_SECONDS: float = 1.0
    GITHUB_BACKOFF_MAX_SECONDS: float = 16.0
    GITHUB_RATE_LIMIT_BUFFER_SECONDS: int = 2

    # Quota-aware pacing (seconds slept after each call)
    GITHUB_DELAY_SHORT_SECONDS: float = 0.1  # remaining > 500
    GITHUB_DELAY_MEDIUM_SECONDS: float = 0.5  # remaining > 100
    GITHUB_DELAY_LONG_SECONDS: float = 2.0  # remaining <= 100
    GITHUB_DELAY_DEFAULT_SECONDS: float = 1.0  # no quota header
    GITHUB_SEARCH_MIN_INTERVAL_SECONDS: float = 2.0  # search API has its own, stricter quota

    # Fetch windows
    LEADERBOARD_SEARCH_WINDOW_DAYS: int = 30  # search API caps a query at 1000 results
    LEADERBOARD_YEAR_DAYS: int = 365
    LEADERBOARD_MONTH_DAYS: int = 30
    LEADERBOARD_WEEK_DAYS: int = 7
    LEADERBOARD_RECENT_DAYS: int = 14

    # Detail fan-out
    LEADERBOARD_DETAIL_BATCH_SIZE: int = 5
    LEADERBOARD_BATCH_DELAY_SECONDS: float = 1.0

    # Output
    LEADERBOARD_OUTPUT_DIR: str = "public/leaderboard"
    LEADERBOARD_DISPLAY_CAP: int = 15
    LEADERBOARD_TOP_BY_ACTIVITY_LIMIT: int = 3
    LEADERBOARD_HIDDEN_ROLES: List[str] = []

    # Membership
    CORE_TEAM_MEMBERS: List[str] = []
    ALUMNI_MEMBERS: List[str] = []

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env


settings = Settings()
