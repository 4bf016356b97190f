"""
Configuration settings for the Test Execution Video Triage service
"""
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Test Execution Video Triage"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Reporting API paging
    TEST_RUNS_PAGE_SIZE: int = 1000
    LOG_PAGE_SIZE: int = 1000

    # Frame extraction defaults
    DEFAULT_EXTRACTION_MODE: str = "smart"
    DEFAULT_FAILURE_WINDOW_SECONDS: int = 30
    DEFAULT_FRAME_INTERVAL: int = 5

    # Failure analysis
    FAILURE_FRAME_COUNT: int = 3
    FRAME_MATCH_TOLERANCE_SECONDS: float = 5.0

    # Per-stage timeout for awaited collaborator calls (None = no timeout)
    STAGE_TIMEOUT_SECONDS: Optional[float] = None

    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()
