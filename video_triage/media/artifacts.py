"""
Media Artifacts - Scoped ownership of a downloaded video and its frames
"""
import logging
from typing import List, Optional

from ..collaborators import VideoDownloader, FrameExtractor
from ..models import FrameAnalysis

logger = logging.getLogger(__name__)


class MediaArtifacts:
    """
    Holds the temporary media of one analysis run:
    - the downloaded video file
    - the frame files extracted from it

    Use as ``async with``; everything registered is released exactly once
    when the block exits, whether it completed, raised or was cancelled.
    """

    def __init__(self, downloader: VideoDownloader, extractor: FrameExtractor):
        """
        Initialize artifact ownership for a run.

        Args:
            downloader: Collaborator that deletes the video file
            extractor: Collaborator that deletes frame files
        """
        self.downloader = downloader
        self.extractor = extractor
        self.video_path: Optional[str] = None
        self.frames: List[FrameAnalysis] = []
        self.released = False

    async def __aenter__(self) -> "MediaArtifacts":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self.release()
        return False

    def track_video(self, path: str):
        """Take ownership of a downloaded video file."""
        self.video_path = path

    def track_frames(self, frames: List[FrameAnalysis]):
        """Take ownership of extracted frame files."""
        self.frames = list(frames)

    def release(self):
        """Delete frames and video. Later calls are no-ops."""
        if self.released:
            return
        self.released = True

        if self.frames:
            try:
                self.extractor.cleanup_frames(self.frames)
            except Exception as e:
                logger.warning(f"Failed to clean up {len(self.frames)} frames: {e}")

        if self.video_path:
            try:
                self.downloader.cleanup_video(self.video_path)
            except Exception as e:
                logger.warning(f"Failed to clean up video {self.video_path}: {e}")

    def get_artifacts_summary(self) -> dict:
        """
        Get a summary of the tracked artifacts.

        Returns:
            Dictionary with artifact summary
        """
        return {
            "video_path": self.video_path,
            "total_frames": len(self.frames),
            "released": self.released
        }
