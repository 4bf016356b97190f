"""
Error types raised by the video analysis pipeline
"""


class VideoAnalysisError(Exception):
    """Raised to callers when a video analysis run fails for any reason."""

    PREFIX = "Video analysis failed: "

    def __init__(self, message: str):
        super().__init__(f"{self.PREFIX}{message}")
        self.reason = message


class TestContextError(Exception):
    """Project, launch or test record could not be resolved."""

    __test__ = False


class VideoUnavailableError(Exception):
    """No recording exists for the test, or it could not be downloaded."""


class StageTimeoutError(Exception):
    """A pipeline stage exceeded STAGE_TIMEOUT_SECONDS."""

    def __init__(self, stage: str, timeout: float):
        super().__init__(f"Stage '{stage}' timed out after {timeout}s")
        self.stage = stage
        self.timeout = timeout
