"""
Video and Frame Data Models
"""
from typing import List, Optional
from pydantic import BaseModel, Field


class TestSessionVideo(BaseModel):
    """One recorded device/browser session, as reported by the reporting API."""

    session_id: str
    video_url: str
    project_id: Optional[int] = None
    session_start: Optional[str] = None
    session_end: Optional[str] = None
    platform_name: Optional[str] = None
    device_name: Optional[str] = None
    status: Optional[str] = None


class VideoDownloadResult(BaseModel):
    """Outcome of downloading a session recording to local storage."""

    success: bool
    local_path: Optional[str] = None
    duration: Optional[float] = None
    resolution: Optional[str] = None
    session_id: Optional[str] = None
    file_size: Optional[int] = None
    error: Optional[str] = None


class VideoMetadata(BaseModel):
    """Describes the downloaded video used for one analysis run."""

    video_url: str
    session_id: str
    session_start: Optional[str] = None
    session_end: Optional[str] = None
    video_duration: float = 0
    extracted_frames: int = 0
    video_resolution: str = "unknown"
    download_success: bool = True
    local_video_path: Optional[str] = None
    platform_name: Optional[str] = None
    device_name: Optional[str] = None
    status: Optional[str] = None
    frame_extraction_error: Optional[str] = None


class FrameAnalysis(BaseModel):
    """One sampled video frame and what was seen in it."""

    timestamp: float = Field(..., ge=0, description="Seconds from video start")
    frame_number: int
    local_path: Optional[str] = None
    image_base64: Optional[str] = None
    ocr_text: Optional[str] = None
    visual_analysis: str = ""
    detected_elements: List[str] = Field(default_factory=list)
    app_state: str = ""
    anomalies_detected: List[str] = Field(default_factory=list)
