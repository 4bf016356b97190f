"""
FastAPI Application - Test Execution Video Triage
"""
import logging
from datetime import datetime

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .agents.orchestrator_agent import VideoAnalyzer
from .exceptions import VideoAnalysisError
from .models import VideoAnalysisParams, VideoAnalysisResult

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s"
)


def create_app(analyzer: VideoAnalyzer) -> FastAPI:
    """
    Build the API around a configured analyzer.

    Args:
        analyzer: VideoAnalyzer wired to the reporting, media and TCM clients

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description="Root-cause triage of failed automated test executions from their session videos",
        version="1.0.0"
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        """Service info"""
        return {"message": settings.APP_NAME, "docs": "/docs"}

    @app.post("/api/analyze-video", response_model=VideoAnalysisResult)
    async def analyze_video(params: VideoAnalysisParams):
        """
        Analyze the session video of a failed test execution and
        predict whether it failed because of a bug or the test itself.
        """
        try:
            return await analyzer.analyze_test_execution_video(params)
        except VideoAnalysisError as e:
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "timestamp": datetime.now().isoformat()}

    return app
