"""
External collaborators consumed by the analysis pipeline.

The REST clients, media download and frame extraction live outside this
package; these abstract classes pin down the calls the pipeline makes.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models import TestSessionVideo, VideoDownloadResult, FrameAnalysis


class ReportingClient(ABC):
    """Reporting API: launches, test results, logs and session recordings."""

    base_url: str = ""

    @abstractmethod
    async def get_video_url_from_test_sessions(
        self,
        test_id: int,
        run_id: int,
        project_id: int
    ) -> Optional[TestSessionVideo]:
        """Return the recording of the test's last session, if any."""

    @abstractmethod
    async def get_test_runs(
        self,
        run_id: int,
        project_id: int,
        page: int = 1,
        page_size: int = 1000
    ) -> Dict[str, Any]:
        """Return ``{"items": [test_record, ...]}`` for a launch."""

    @abstractmethod
    async def get_test_logs_and_screenshots(
        self,
        run_id: int,
        test_id: int,
        max_page_size: int = 1000
    ) -> Dict[str, Any]:
        """Return ``{"items": [{"kind", "level", "value", "instant"}, ...]}``."""

    @abstractmethod
    async def get_project_id(self, project_key: str) -> int:
        """Resolve a project key to its numeric id."""

    @abstractmethod
    async def get_project_key(self, project_id: int) -> str:
        """Resolve a numeric project id to its key."""


class VideoDownloader(ABC):
    """Downloads session recordings to local temporary storage."""

    @abstractmethod
    async def download_video(
        self,
        url: str,
        test_id: int,
        session_id: str
    ) -> VideoDownloadResult:
        """Download the recording and read its duration/resolution."""

    @abstractmethod
    def cleanup_video(self, path: str) -> None:
        """Delete a downloaded video file."""


class FrameExtractor(ABC):
    """Extracts and visually analyses frames from a local video."""

    @abstractmethod
    async def extract_frames(
        self,
        video_path: str,
        video_duration: float,
        extraction_mode: str,
        failure_timestamp: Optional[float] = None,
        failure_window_seconds: int = 30,
        frame_interval: int = 5,
        include_ocr: bool = False
    ) -> List[FrameAnalysis]:
        """Extract frames according to the extraction mode."""

    @abstractmethod
    def cleanup_frames(self, frames: List[FrameAnalysis]) -> None:
        """Delete the files backing extracted frames."""


class TestCaseManagementClient(ABC):
    """Test case management API."""

    __test__ = False

    @abstractmethod
    async def get_test_case_by_key(
        self,
        project_key: str,
        test_case_key: str
    ) -> Optional[Dict[str, Any]]:
        """Return ``{"title", "steps"}`` for a test case, or None."""
