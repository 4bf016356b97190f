"""
Video Analyzer - Orchestrates the test execution video analysis pipeline
"""
import asyncio
import json
import math
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Tuple

from .base_agent import BaseAgent
from .comparator_agent import TestCaseComparator
from .failure_classifier import FailureClassifier
from .prediction_agent import PredictionEngine
from ..collaborators import ReportingClient, VideoDownloader, FrameExtractor, TestCaseManagementClient
from ..config import settings
from ..exceptions import VideoAnalysisError, TestContextError, VideoUnavailableError, StageTimeoutError
from ..media import MediaArtifacts
from ..models import (
    AnalysisLinks,
    ComparisonOutcome,
    CorrelatedStep,
    ExecutionFlow,
    FrameAnalysis,
    LogStep,
    Prediction,
    TestCaseComparison,
    VideoAnalysisParams,
    VideoAnalysisResult,
    VideoMetadata,
    VideoStep,
    VideoTimestamp,
)
from ..utils.helpers import to_epoch_ms, truncate_text
from ..utils.step_matching import is_action_log


class AnalysisStage(str, Enum):
    """Pipeline states, in execution order."""

    RESOLVING_CONTEXT = "resolving_context"
    LOCATING_VIDEO = "locating_video"
    DOWNLOADING = "downloading"
    EXTRACTING_FRAMES = "extracting_frames"
    PARSING_LOGS = "parsing_logs"
    ANALYZING_FAILURE = "analyzing_failure"
    COMPARING_TEST_CASE = "comparing_test_case"
    PREDICTING = "predicting"
    ASSEMBLING = "assembling"
    CLEANUP = "cleanup"
    DONE = "done"
    FAILED = "failed"


# analysis depth -> (extract frames, min frames, max frames, force OCR)
DEPTH_SETTINGS = {
    "quick_text_only": (False, 0, 0, False),
    "standard": (True, 5, 12, False),
    "detailed": (True, 10, 30, True),
}


def parse_logs_to_steps(log_items: List[Dict[str, Any]]) -> List[LogStep]:
    """Keep non-DEBUG/TRACE log entries that describe an action."""
    steps: List[LogStep] = []
    for item in log_items:
        level = item.get("level") or "INFO"
        if level in ("DEBUG", "TRACE"):
            continue

        message = item.get("value") or ""
        if is_action_log(message):
            steps.append(LogStep(
                step_number=len(steps) + 1,
                timestamp=str(item.get("instant") or ""),
                action=message,
                result="Failed" if level == "ERROR" else "Success",
                log_level=level
            ))
    return steps


def compute_failure_offset(test: Dict[str, Any], video_duration: float) -> Optional[float]:
    """
    Approximate failure position in the video from the test's own timing.

    Returns None when start or finish time is unknown. Offsets past the end
    of the video fall back to the last 30 seconds.
    """
    start_ms = to_epoch_ms(test.get("startTime"))
    finish_ms = to_epoch_ms(test.get("finishTime"))
    if start_ms is None or finish_ms is None:
        return None

    offset = math.floor((finish_ms - start_ms) / 1000)
    if offset < 0:
        return 0
    if video_duration and offset > video_duration:
        return max(0, video_duration - 30)
    return offset


def find_closest_frame_timestamp(log_timestamp: str, frames: List[FrameAnalysis]) -> float:
    """
    Frame timestamp nearest a log entry.

    Compares the log's epoch milliseconds with ``frame.timestamp * 1000`` and
    has no tolerance, so some frame is always returned when any exist.
    """
    if not frames:
        return 0
    log_ms = to_epoch_ms(log_timestamp)
    if log_ms is None:
        return frames[0].timestamp

    closest = frames[0]
    min_diff = abs(log_ms - closest.timestamp * 1000)
    for frame in frames:
        diff = abs(log_ms - frame.timestamp * 1000)
        if diff < min_diff:
            min_diff = diff
            closest = frame
    return closest.timestamp


def build_execution_flow(log_steps: List[LogStep], frames: List[FrameAnalysis]) -> ExecutionFlow:
    """Log steps, per-frame steps and the naive log-to-frame correlation."""
    return ExecutionFlow(
        steps_from_logs=log_steps,
        steps_from_video=[
            VideoStep(
                step_number=index + 1,
                timestamp=frame.timestamp,
                inferred_action=frame.visual_analysis or "Frame analysis pending",
                screen_transition=frame.app_state or "Unknown",
                confidence="medium"
            )
            for index, frame in enumerate(frames)
        ],
        correlated_steps=[
            CorrelatedStep(
                log_step=index + 1,
                video_timestamp=find_closest_frame_timestamp(step.timestamp, frames),
                match=True
            )
            for index, step in enumerate(log_steps)
        ]
    )


def generate_summary(
    test: Dict[str, Any],
    video_metadata: VideoMetadata,
    prediction: Prediction,
    comparison: Optional[TestCaseComparison]
) -> str:
    """Human-readable markdown summary of the analysis."""
    parts = [
        "**Test Execution Video Analysis Summary**\n",
        f"Test: {test.get('name', 'Unknown')}",
        f"Status: {test.get('status', 'Unknown')}",
        f"Video Duration: {video_metadata.video_duration}s",
        f"Frames Analyzed: {video_metadata.extracted_frames}",
        f"\n**Prediction:** {prediction.verdict} ({prediction.confidence}% confidence)",
    ]
    if comparison:
        parts.append(f"\n**Test Case Coverage:** {comparison.coverage_analysis.coverage_percentage}%")

    parts.append("\n**Recommended Action:**")
    if prediction.recommendations:
        top = prediction.recommendations[0]
        parts.append(f"{top.description} ({top.priority} priority)")

    return "\n".join(parts)


class VideoAnalyzer(BaseAgent):
    """
    Drives the end-to-end analysis of a failed test execution:
    - Resolves project and test record
    - Downloads the session recording and extracts frames
    - Parses execution logs into action steps
    - Classifies the failure and compares against the test case
    - Predicts the root cause and assembles the report

    Temporary media is always released before the call returns or raises.
    """

    def __init__(
        self,
        reporting_client: ReportingClient,
        downloader: VideoDownloader,
        extractor: FrameExtractor,
        tcm_client: Optional[TestCaseManagementClient] = None,
        stage_timeout: Optional[float] = None
    ):
        super().__init__(
            name="VideoAnalyzer",
            description="Analyzes failed test execution videos"
        )
        self.reporting_client = reporting_client
        self.downloader = downloader
        self.extractor = extractor
        self.comparator = TestCaseComparator(tcm_client) if tcm_client is not None else None
        self.classifier = FailureClassifier()
        self.predictor = PredictionEngine()
        self.stage_timeout = stage_timeout if stage_timeout is not None else settings.STAGE_TIMEOUT_SECONDS

    async def execute(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Execute video analysis."""
        params = VideoAnalysisParams(**context)
        result = await self.analyze_test_execution_video(params)
        return {"result": result}

    async def analyze_test_execution_video(self, params: VideoAnalysisParams) -> VideoAnalysisResult:
        """
        Analyze the recording of a failed test execution.

        Args:
            params: Analysis parameters

        Returns:
            Complete VideoAnalysisResult

        Raises:
            VideoAnalysisError: for any failure, with the original message
        """
        self.log_info("Starting video analysis", test_id=params.test_id, launch_id=params.test_run_id)
        stage = self._enter(AnalysisStage.RESOLVING_CONTEXT)

        try:
            test, project_id, project_key = await self._await_stage(
                stage, self._resolve_context(params)
            )
            self.log_info(f"Test: {test.get('name')}", project=project_key, project_id=project_id)

            stage = self._enter(AnalysisStage.LOCATING_VIDEO)
            video_info = await self._await_stage(
                stage,
                self.reporting_client.get_video_url_from_test_sessions(
                    params.test_id, params.test_run_id, project_id
                )
            )
            if not video_info or not video_info.video_url:
                raise VideoUnavailableError("No video found for this test execution")

            async with MediaArtifacts(self.downloader, self.extractor) as artifacts:
                stage = self._enter(AnalysisStage.DOWNLOADING)
                download = await self._await_stage(
                    stage,
                    self.downloader.download_video(
                        video_info.video_url, params.test_id, video_info.session_id
                    )
                )
                if not download.success or not download.local_path:
                    raise VideoUnavailableError(download.error or "Failed to download video")
                artifacts.track_video(download.local_path)

                video_duration = download.duration or 0
                self.log_info(f"Video downloaded: {video_duration}s, {download.resolution}")

                stage = self._enter(AnalysisStage.EXTRACTING_FRAMES)
                failure_offset = compute_failure_offset(test, video_duration)
                frames, frame_extraction_error = await self._extract_frames(
                    params, artifacts, download.local_path, video_duration, failure_offset
                )

                stage = self._enter(AnalysisStage.PARSING_LOGS)
                logs_response = await self._await_stage(
                    stage,
                    self.reporting_client.get_test_logs_and_screenshots(
                        params.test_run_id, params.test_id, max_page_size=settings.LOG_PAGE_SIZE
                    )
                )
                log_items = [
                    item for item in (logs_response or {}).get("items", [])
                    if item.get("kind") == "log"
                ]
                log_steps = parse_logs_to_steps(log_items)
                self.log_info(f"Parsed {len(log_steps)} log steps from {len(log_items)} log items")

                stage = self._enter(AnalysisStage.ANALYZING_FAILURE)
                failure_video_timestamp = (
                    failure_offset if failure_offset is not None else max(0, video_duration - 15)
                )
                failure_analysis = self.classifier.analyze(
                    test, log_items, frames, failure_video_timestamp
                )

                stage = self._enter(AnalysisStage.COMPARING_TEST_CASE)
                outcome = await self._compare_test_case(params, test, project_key, log_steps, frames)
                comparison = outcome.comparison

                stage = self._enter(AnalysisStage.PREDICTING)
                prediction = self.predictor.predict_issue_type(
                    failure_analysis,
                    comparison,
                    frames,
                    json.dumps(log_items, default=str)
                )

                stage = self._enter(AnalysisStage.ASSEMBLING)
                video_metadata = VideoMetadata(
                    video_url=video_info.video_url,
                    session_id=video_info.session_id,
                    session_start=video_info.session_start,
                    session_end=video_info.session_end,
                    video_duration=video_duration,
                    extracted_frames=len(frames),
                    video_resolution=download.resolution or "unknown",
                    download_success=True,
                    local_video_path=download.local_path,
                    platform_name=video_info.platform_name,
                    device_name=video_info.device_name,
                    status=video_info.status,
                    frame_extraction_error=frame_extraction_error
                )
                result = VideoAnalysisResult(
                    video_metadata=video_metadata,
                    frames=frames,
                    execution_flow=build_execution_flow(log_steps, frames),
                    test_case_comparison=comparison,
                    comparison_outcome=outcome,
                    failure_analysis=failure_analysis,
                    prediction=prediction,
                    summary=generate_summary(test, video_metadata, prediction, comparison),
                    links=self._build_links(params, video_info.video_url, comparison)
                )

                stage = self._enter(AnalysisStage.CLEANUP)

            self.log_debug(f"Released media: {artifacts.get_artifacts_summary()}")
            self._enter(AnalysisStage.DONE)
            self.log_info(f"Analysis complete: {prediction.verdict} ({prediction.confidence}% confidence)")
            return result

        except Exception as e:
            message = str(e) or e.__class__.__name__
            self.log_error(f"Analysis failed: {truncate_text(message, 300)}", stage=stage.value, test_id=params.test_id)
            self._enter(AnalysisStage.FAILED)
            raise VideoAnalysisError(message) from e

    def _enter(self, stage: AnalysisStage) -> AnalysisStage:
        self.log_debug(f"Stage {stage.value}")
        return stage

    async def _await_stage(self, stage: AnalysisStage, awaitable: Awaitable) -> Any:
        """Await a collaborator call, bounded by the stage timeout when configured."""
        if self.stage_timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self.stage_timeout)
        except asyncio.TimeoutError:
            raise StageTimeoutError(stage.value, self.stage_timeout)

    async def _resolve_context(self, params: VideoAnalysisParams) -> Tuple[Dict[str, Any], int, str]:
        """
        Resolve project id/key and fetch the test record from the launch.

        Returns:
            (test record, project id, project key)
        """
        project_id = params.project_id
        project_key = params.project_key

        if not project_id and project_key:
            project_id = await self.reporting_client.get_project_id(project_key)
        elif project_id and not project_key:
            project_key = await self.reporting_client.get_project_key(project_id)

        if not project_id:
            raise TestContextError("Could not determine project ID")

        response = await self.reporting_client.get_test_runs(
            params.test_run_id,
            project_id,
            page=1,
            page_size=settings.TEST_RUNS_PAGE_SIZE
        )
        test = next(
            (t for t in (response or {}).get("items", []) if t.get("id") == params.test_id),
            None
        )
        if not test:
            raise TestContextError(f"Test {params.test_id} not found in launch {params.test_run_id}")

        return test, project_id, project_key or "UNKNOWN"

    async def _extract_frames(
        self,
        params: VideoAnalysisParams,
        artifacts: MediaArtifacts,
        video_path: str,
        video_duration: float,
        failure_offset: Optional[float]
    ) -> Tuple[List[FrameAnalysis], Optional[str]]:
        """
        Extract frames according to the analysis depth.

        Every extracted frame is handed to ``artifacts`` before filtering so
        all frame files get cleaned up.

        Returns:
            (frames kept for analysis, extraction note or None)
        """
        should_extract, min_frames, max_frames, force_ocr = DEPTH_SETTINGS[params.analysis_depth]
        if not should_extract:
            self.log_info(f"Skipping frame extraction ({params.analysis_depth} mode)")
            return [], f"Frame extraction skipped (analysis depth: {params.analysis_depth})"

        extracted = await self._await_stage(
            AnalysisStage.EXTRACTING_FRAMES,
            self.extractor.extract_frames(
                video_path,
                video_duration,
                params.extraction_mode or settings.DEFAULT_EXTRACTION_MODE,
                failure_offset,
                params.failure_window_seconds or settings.DEFAULT_FAILURE_WINDOW_SECONDS,
                params.frame_interval or settings.DEFAULT_FRAME_INTERVAL,
                params.include_ocr or force_ocr
            )
        )
        extracted = list(extracted or [])
        artifacts.track_frames(extracted)

        frames = extracted
        if video_duration > 0:
            frames = [f for f in extracted if 0 <= f.timestamp <= video_duration]
            dropped = len(extracted) - len(frames)
            if dropped:
                self.log_warning(f"Dropped {dropped} frames outside the video duration ({video_duration}s)")

        if len(frames) > max_frames:
            self.log_info(f"Limiting frames from {len(frames)} to {max_frames} for {params.analysis_depth} mode")
            frames = frames[:max_frames]

        self.log_info(f"Extracted {len(frames)} frames")
        if len(frames) < min_frames:
            note = f"Frame extraction produced only {len(frames)} frames (minimum required: {min_frames})"
            self.log_warning(note)
            return frames, note
        return frames, None

    async def _compare_test_case(
        self,
        params: VideoAnalysisParams,
        test: Dict[str, Any],
        project_key: str,
        log_steps: List[LogStep],
        frames: List[FrameAnalysis]
    ) -> ComparisonOutcome:
        """Run the optional test case comparison; never raises."""
        if not params.compare_with_test_case:
            return ComparisonOutcome.not_requested("Test case comparison was not requested")
        if self.comparator is None:
            return ComparisonOutcome.not_requested("No test case management client configured")

        referenced = [tc.get("testCaseId") for tc in test.get("testCases") or [] if tc.get("testCaseId")]
        if not referenced:
            return ComparisonOutcome.not_requested("Test does not reference any test case")

        test_case_key = params.test_case_key or referenced[0]
        video_timestamps = [
            VideoTimestamp(timestamp=f.timestamp, action=f.visual_analysis) for f in frames
        ]

        try:
            comparison = await self._await_stage(
                AnalysisStage.COMPARING_TEST_CASE,
                self.comparator.compare_with_test_case(
                    test_case_key, project_key, log_steps, video_timestamps
                )
            )
        except Exception as e:
            self.log_warning(f"Test case comparison failed: {e}")
            comparison = None

        if comparison is None:
            return ComparisonOutcome.unavailable(f"Test case {test_case_key} could not be compared")
        return ComparisonOutcome.present(comparison)

    def _build_links(
        self,
        params: VideoAnalysisParams,
        video_url: str,
        comparison: Optional[TestCaseComparison]
    ) -> AnalysisLinks:
        """Deep links into the reporting UI."""
        base_url = (self.reporting_client.base_url or "").rstrip("/")
        return AnalysisLinks(
            video_url=video_url,
            test_url=f"{base_url}/tests/runs/{params.test_run_id}/results/{params.test_id}",
            test_case_url=f"{base_url}/tests/cases/{comparison.test_case_key}" if comparison else None
        )
