import asyncio
from typing import Any, Dict, List, Optional

import pytest

from video_triage.agents.orchestrator_agent import VideoAnalyzer
from video_triage.collaborators import (
    ReportingClient,
    VideoDownloader,
    FrameExtractor,
    TestCaseManagementClient,
)
from video_triage.models import FrameAnalysis, TestSessionVideo, VideoDownloadResult

BASE_URL = "https://reporting.example.com"
PROJECT_ID = 7
PROJECT_KEY = "MFP"
RUN_ID = 55
TEST_ID = 101
VIDEO_PATH = "/tmp/videos/test_101.mp4"


def log(value: str, level: str = "INFO", instant: str = "2024-05-01T10:00:00Z", kind: str = "log") -> Dict[str, Any]:
    return {"kind": kind, "level": level, "value": value, "instant": instant}


def frame(timestamp: float, number: int = 1, **kwargs) -> FrameAnalysis:
    return FrameAnalysis(
        timestamp=timestamp,
        frame_number=number,
        local_path=f"/tmp/frames/frame_{number:03d}.png",
        **kwargs
    )


class FakeReportingClient(ReportingClient):
    def __init__(
        self,
        tests: Optional[List[Dict[str, Any]]] = None,
        log_items: Optional[List[Dict[str, Any]]] = None,
        video: Optional[TestSessionVideo] = None,
        logs_error: Optional[Exception] = None
    ):
        self.base_url = BASE_URL
        self.tests = tests if tests is not None else []
        self.log_items = log_items if log_items is not None else []
        self.video = video
        self.logs_error = logs_error
        self.calls: List[str] = []

    async def get_video_url_from_test_sessions(self, test_id, run_id, project_id):
        self.calls.append("get_video_url_from_test_sessions")
        return self.video

    async def get_test_runs(self, run_id, project_id, page=1, page_size=1000):
        self.calls.append("get_test_runs")
        return {"items": self.tests}

    async def get_test_logs_and_screenshots(self, run_id, test_id, max_page_size=1000):
        self.calls.append("get_test_logs_and_screenshots")
        if self.logs_error:
            raise self.logs_error
        return {"items": self.log_items}

    async def get_project_id(self, project_key):
        self.calls.append("get_project_id")
        return PROJECT_ID

    async def get_project_key(self, project_id):
        self.calls.append("get_project_key")
        return PROJECT_KEY


class FakeDownloader(VideoDownloader):
    def __init__(self, result: Optional[VideoDownloadResult] = None):
        self.result = result or VideoDownloadResult(
            success=True,
            local_path=VIDEO_PATH,
            duration=60,
            resolution="1080x1920"
        )
        self.downloads: List[str] = []
        self.cleaned: List[str] = []

    async def download_video(self, url, test_id, session_id):
        self.downloads.append(url)
        return self.result

    def cleanup_video(self, path):
        self.cleaned.append(path)


class FakeExtractor(FrameExtractor):
    def __init__(
        self,
        frames: Optional[List[FrameAnalysis]] = None,
        error: Optional[Exception] = None,
        delay: float = 0
    ):
        self.frames = frames if frames is not None else []
        self.error = error
        self.delay = delay
        self.started: Optional[asyncio.Event] = None
        self.calls: List[Dict[str, Any]] = []
        self.cleaned: List[List[FrameAnalysis]] = []

    async def extract_frames(
        self,
        video_path,
        video_duration,
        extraction_mode,
        failure_timestamp=None,
        failure_window_seconds=30,
        frame_interval=5,
        include_ocr=False
    ):
        self.calls.append({
            "video_path": video_path,
            "mode": extraction_mode,
            "failure_timestamp": failure_timestamp,
            "window": failure_window_seconds,
            "interval": frame_interval,
            "ocr": include_ocr,
        })
        if self.started is not None:
            self.started.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.frames)

    def cleanup_frames(self, frames):
        self.cleaned.append(list(frames))


class FakeTCMClient(TestCaseManagementClient):
    def __init__(self, test_cases: Optional[Dict[str, Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.test_cases = test_cases or {}
        self.error = error
        self.requested: List[str] = []

    async def get_test_case_by_key(self, project_key, test_case_key):
        self.requested.append(test_case_key)
        if self.error:
            raise self.error
        return self.test_cases.get(test_case_key)


def make_test_record(**overrides) -> Dict[str, Any]:
    record = {
        "id": TEST_ID,
        "name": "Login with valid user",
        "status": "FAILED",
        "testCases": [{"testCaseId": "MFP-1"}],
    }
    record.update(overrides)
    return record


def make_video() -> TestSessionVideo:
    return TestSessionVideo(
        session_id="session-1",
        video_url="https://cdn.example.com/video/session-1.mp4",
        project_id=PROJECT_ID,
        platform_name="Android",
        device_name="Pixel 7",
        status="COMPLETED",
    )


@pytest.fixture
def login_logs() -> List[Dict[str, Any]]:
    return [
        log("open app", instant="2024-05-01T10:00:00Z"),
        log("enter credentials", instant="2024-05-01T10:00:05Z"),
        log("click debug overlay", level="DEBUG", instant="2024-05-01T10:00:06Z"),
        log("click login", instant="2024-05-01T10:00:10Z"),
        log("screenshot.png", kind="screenshot", instant="2024-05-01T10:00:11Z"),
        log("assert welcome banner", level="ERROR", instant="2024-05-01T10:00:15Z"),
    ]


@pytest.fixture
def login_test_case() -> Dict[str, Any]:
    return {
        "title": "Login with valid user",
        "steps": ["open app", "enter credentials", "click login"],
    }


@pytest.fixture
def pipeline(login_logs, login_test_case):
    """Analyzer wired to fakes for a failed login test."""
    reporting = FakeReportingClient(
        tests=[make_test_record()],
        log_items=login_logs,
        video=make_video(),
    )
    downloader = FakeDownloader()
    extractor = FakeExtractor(frames=[
        frame(10, 1, visual_analysis="Login screen", app_state="Login"),
        frame(50, 2, visual_analysis="Home screen", app_state="Home"),
    ])
    tcm = FakeTCMClient({"MFP-1": login_test_case})
    analyzer = VideoAnalyzer(reporting, downloader, extractor, tcm)
    return analyzer, reporting, downloader, extractor, tcm
