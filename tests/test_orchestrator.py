import asyncio
import logging

import pytest

from video_triage.agents.orchestrator_agent import (
    VideoAnalyzer,
    build_execution_flow,
    compute_failure_offset,
    find_closest_frame_timestamp,
    parse_logs_to_steps,
)
from video_triage.exceptions import StageTimeoutError, VideoAnalysisError
from video_triage.models import LogStep, VideoAnalysisParams, VideoDownloadResult

from .conftest import (
    PROJECT_ID,
    RUN_ID,
    TEST_ID,
    VIDEO_PATH,
    FakeDownloader,
    FakeExtractor,
    FakeReportingClient,
    frame,
    log,
    make_test_record,
    make_video,
)


def params(**overrides):
    values = {"test_id": TEST_ID, "test_run_id": RUN_ID, "project_id": PROJECT_ID}
    values.update(overrides)
    return VideoAnalysisParams(**values)


def run(analyzer, **overrides):
    return asyncio.run(analyzer.analyze_test_execution_video(params(**overrides)))


class TestLogParsing:
    def test_skips_debug_and_non_actions(self, login_logs):
        log_items = [item for item in login_logs if item["kind"] == "log"]
        log_items.append(log("Session created"))

        steps = parse_logs_to_steps(log_items)

        assert [s.action for s in steps] == ["open app", "enter credentials", "click login", "assert welcome banner"]
        assert [s.step_number for s in steps] == [1, 2, 3, 4]
        assert steps[-1].result == "Failed"
        assert steps[-1].log_level == "ERROR"
        assert steps[0].result == "Success"
        assert steps[0].timestamp == "2024-05-01T10:00:00Z"


class TestFailureOffset:
    def test_within_video(self):
        test = {"startTime": "2024-05-01T10:00:00Z", "finishTime": "2024-05-01T10:00:42.900Z"}
        assert compute_failure_offset(test, 60) == 42

    def test_past_video_end(self):
        test = {"startTime": 1714557600000, "finishTime": 1714557690000}
        assert compute_failure_offset(test, 60) == 30
        assert compute_failure_offset(test, 20) == 0

    def test_finish_before_start(self):
        test = {"startTime": 1714557690000, "finishTime": 1714557600000}
        assert compute_failure_offset(test, 60) == 0

    def test_unknown_timing(self):
        assert compute_failure_offset({"startTime": 1714557600000}, 60) is None


class TestFrameCorrelation:
    def test_no_frames(self):
        assert find_closest_frame_timestamp("2024-05-01T10:00:00Z", []) == 0

    def test_unparseable_log_time_uses_first_frame(self):
        assert find_closest_frame_timestamp("", [frame(10, 1), frame(50, 2)]) == 10

    def test_wall_clock_logs_land_on_latest_frame(self):
        flow = build_execution_flow(
            [LogStep(step_number=1, timestamp="2024-05-01T10:00:00Z", action="open app")],
            [frame(10, 1), frame(50, 2)]
        )

        assert flow.correlated_steps[0].log_step == 1
        assert flow.correlated_steps[0].video_timestamp == 50
        assert flow.correlated_steps[0].match is True

    def test_video_steps(self):
        flow = build_execution_flow([], [frame(10, 1, visual_analysis="Login screen"), frame(50, 2)])

        assert [s.inferred_action for s in flow.steps_from_video] == ["Login screen", "Frame analysis pending"]
        assert flow.steps_from_video[1].screen_transition == "Unknown"


class TestAnalyzeTestExecutionVideo:
    def test_failed_login_with_test_case(self, pipeline):
        analyzer, reporting, downloader, extractor, tcm = pipeline

        result = run(analyzer)

        assert reporting.calls[0] == "get_project_key"
        assert result.video_metadata.video_duration == 60
        assert result.video_metadata.extracted_frames == 2
        assert result.video_metadata.video_resolution == "1080x1920"
        assert result.video_metadata.frame_extraction_error == (
            "Frame extraction produced only 2 frames (minimum required: 5)"
        )

        assert len(result.execution_flow.steps_from_logs) == 4
        assert [c.video_timestamp for c in result.execution_flow.correlated_steps] == [50, 50, 50, 50]

        assert result.failure_analysis.failure_type == "Assertion"
        assert result.failure_analysis.error_message == "assert welcome banner"
        assert result.failure_analysis.failure_video_timestamp == 45

        comparison = result.test_case_comparison
        assert result.comparison_outcome.status == "present"
        assert comparison.coverage_analysis.coverage_percentage == 100
        assert comparison.coverage_analysis.extra_steps == [4]
        assert tcm.requested == ["MFP-1"]

        assert result.prediction.verdict == "unclear"
        assert result.prediction.evidence_for_test_update == ["Assertion failure - expected vs actual mismatch"]
        assert [(r.type, r.priority) for r in result.prediction.recommendations] == [
            ("investigation", "high"),
            ("test_update", "medium"),
        ]

        assert result.links.video_url == make_video().video_url
        assert result.links.test_url == "https://reporting.example.com/tests/runs/55/results/101"
        assert result.links.test_case_url == "https://reporting.example.com/tests/cases/MFP-1"
        assert "**Test Case Coverage:** 100%" in result.summary

        assert downloader.cleaned == [VIDEO_PATH]
        assert len(extractor.cleaned) == 1

    def test_extraction_parameters(self, pipeline):
        analyzer, _, _, extractor, _ = pipeline

        run(analyzer, analysis_depth="detailed", extraction_mode="failure_focused", frame_interval=2)

        call = extractor.calls[0]
        assert call["video_path"] == VIDEO_PATH
        assert call["mode"] == "failure_focused"
        assert call["failure_timestamp"] is None
        assert call["window"] == 30
        assert call["interval"] == 2
        assert call["ocr"] is True

    def test_failure_offset_from_test_timing(self, pipeline):
        analyzer, reporting, _, extractor, _ = pipeline
        reporting.tests = [make_test_record(startTime=1714557600000, finishTime=1714557620000)]

        result = run(analyzer)

        assert extractor.calls[0]["failure_timestamp"] == 20
        assert result.failure_analysis.failure_video_timestamp == 20

    def test_no_test_case_reference(self, pipeline):
        analyzer, reporting, _, _, tcm = pipeline
        reporting.tests = [make_test_record(testCases=[])]

        result = run(analyzer)

        assert result.test_case_comparison is None
        assert result.comparison_outcome.status == "not_requested"
        assert result.links.test_case_url is None
        assert tcm.requested == []

    def test_comparison_opt_out(self, pipeline):
        analyzer, _, _, _, tcm = pipeline

        result = run(analyzer, compare_with_test_case=False)

        assert result.comparison_outcome.status == "not_requested"
        assert tcm.requested == []

    def test_explicit_test_case_key(self, pipeline, login_test_case):
        analyzer, _, _, _, tcm = pipeline
        tcm.test_cases["MFP-9"] = login_test_case

        result = run(analyzer, test_case_key="MFP-9")

        assert tcm.requested == ["MFP-9"]
        assert result.test_case_comparison.test_case_key == "MFP-9"

    def test_comparison_failure_is_not_fatal(self, pipeline):
        analyzer, _, _, _, tcm = pipeline
        tcm.error = RuntimeError("TCM down")

        result = run(analyzer)

        assert result.test_case_comparison is None
        assert result.comparison_outcome.status == "unavailable"
        assert result.comparison_outcome.reason == "Test case MFP-1 could not be compared"

    def test_without_tcm_client(self, login_logs):
        reporting = FakeReportingClient(tests=[make_test_record()], log_items=login_logs, video=make_video())
        analyzer = VideoAnalyzer(reporting, FakeDownloader(), FakeExtractor())

        result = run(analyzer)

        assert result.comparison_outcome.status == "not_requested"
        assert result.video_metadata.frame_extraction_error == (
            "Frame extraction produced only 0 frames (minimum required: 5)"
        )

    def test_quick_text_only_skips_extraction(self, pipeline):
        analyzer, _, downloader, extractor, _ = pipeline

        result = run(analyzer, analysis_depth="quick_text_only")

        assert extractor.calls == []
        assert result.frames == []
        assert result.video_metadata.frame_extraction_error == (
            "Frame extraction skipped (analysis depth: quick_text_only)"
        )
        assert extractor.cleaned == []
        assert downloader.cleaned == [VIDEO_PATH]

    def test_frames_outside_video_are_dropped(self, pipeline):
        analyzer, _, _, extractor, _ = pipeline
        extractor.frames = [frame(10, 1), frame(59, 2), frame(75, 3)]

        result = run(analyzer)

        assert [f.timestamp for f in result.frames] == [10, 59]
        assert len(extractor.cleaned[0]) == 3

    def test_enough_frames_leave_no_note(self, pipeline):
        analyzer, _, _, extractor, _ = pipeline
        extractor.frames = [frame(i * 10, i + 1) for i in range(5)]

        result = run(analyzer)

        assert result.video_metadata.extracted_frames == 5
        assert result.video_metadata.frame_extraction_error is None

    def test_detailed_depth_requires_more_frames(self, pipeline):
        analyzer, _, _, extractor, _ = pipeline
        extractor.frames = [frame(i * 5, i + 1) for i in range(7)]

        result = run(analyzer, analysis_depth="detailed")

        assert len(result.frames) == 7
        assert result.video_metadata.frame_extraction_error == (
            "Frame extraction produced only 7 frames (minimum required: 10)"
        )

    def test_standard_depth_caps_frames(self, pipeline):
        analyzer, _, _, extractor, _ = pipeline
        extractor.frames = [frame(i * 2, i + 1) for i in range(20)]

        result = run(analyzer)

        assert len(result.frames) == 12
        assert result.video_metadata.extracted_frames == 12

    def test_project_id_from_key(self, pipeline):
        analyzer, reporting, _, _, _ = pipeline

        run(analyzer, project_id=None, project_key="MFP")

        assert reporting.calls[0] == "get_project_id"

    def test_execute_wraps_result(self, pipeline):
        analyzer, _, _, _, _ = pipeline

        output = asyncio.run(analyzer.execute({"test_id": TEST_ID, "test_run_id": RUN_ID, "project_id": PROJECT_ID}))

        assert output["result"].prediction.verdict == "unclear"


class TestAnalysisFailures:
    def test_no_video(self, pipeline):
        analyzer, reporting, downloader, _, _ = pipeline
        reporting.video = None

        with pytest.raises(VideoAnalysisError) as exc_info:
            run(analyzer)

        assert str(exc_info.value) == "Video analysis failed: No video found for this test execution"
        assert downloader.downloads == []
        assert downloader.cleaned == []

    def test_download_failure(self, pipeline):
        analyzer, _, downloader, extractor, _ = pipeline
        downloader.result = VideoDownloadResult(success=False, error="403 Forbidden")

        with pytest.raises(VideoAnalysisError, match="^Video analysis failed: 403 Forbidden$"):
            run(analyzer)

        assert extractor.calls == []
        assert downloader.cleaned == []

    def test_download_failure_without_reason(self, pipeline):
        analyzer, _, downloader, _, _ = pipeline
        downloader.result = VideoDownloadResult(success=False)

        with pytest.raises(VideoAnalysisError, match="Failed to download video"):
            run(analyzer)

    def test_unknown_test(self, pipeline):
        analyzer, _, downloader, _, _ = pipeline

        with pytest.raises(VideoAnalysisError) as exc_info:
            run(analyzer, test_id=999)

        assert str(exc_info.value) == "Video analysis failed: Test 999 not found in launch 55"
        assert downloader.downloads == []

    def test_unknown_project(self, pipeline):
        analyzer, _, _, _, _ = pipeline

        with pytest.raises(VideoAnalysisError, match="Could not determine project ID"):
            run(analyzer, project_id=None)

    def test_extraction_error_still_cleans_up_video(self, pipeline):
        analyzer, _, downloader, extractor, _ = pipeline
        extractor.error = RuntimeError("ffmpeg exploded")

        with pytest.raises(VideoAnalysisError) as exc_info:
            run(analyzer)

        assert str(exc_info.value) == "Video analysis failed: ffmpeg exploded"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert downloader.cleaned == [VIDEO_PATH]
        assert extractor.cleaned == []

    def test_log_fetch_error_cleans_up_everything_once(self, pipeline):
        analyzer, reporting, downloader, extractor, _ = pipeline
        reporting.logs_error = ConnectionError("reporting API unreachable")

        with pytest.raises(VideoAnalysisError, match="reporting API unreachable"):
            run(analyzer)

        assert downloader.cleaned == [VIDEO_PATH]
        assert len(extractor.cleaned) == 1

    def test_stage_timeout(self, pipeline):
        analyzer, _, downloader, extractor, _ = pipeline
        analyzer.stage_timeout = 0.05
        extractor.delay = 1

        with pytest.raises(VideoAnalysisError) as exc_info:
            run(analyzer)

        assert isinstance(exc_info.value.__cause__, StageTimeoutError)
        assert str(exc_info.value) == "Video analysis failed: Stage 'extracting_frames' timed out after 0.05s"
        assert downloader.cleaned == [VIDEO_PATH]

    def test_cancellation_cleans_up(self, pipeline):
        analyzer, _, downloader, extractor, _ = pipeline
        extractor.delay = 10

        async def cancel_during_extraction():
            extractor.started = asyncio.Event()
            task = asyncio.ensure_future(analyzer.analyze_test_execution_video(params()))
            await extractor.started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(cancel_during_extraction())

        assert downloader.cleaned == [VIDEO_PATH]

    def test_empty_error_message_uses_exception_name(self, pipeline):
        analyzer, _, _, extractor, _ = pipeline
        extractor.error = KeyError()

        with pytest.raises(VideoAnalysisError, match="^Video analysis failed: KeyError$"):
            run(analyzer)


def test_logs_carry_run_identifiers(pipeline, caplog):
    analyzer = pipeline[0]
    caplog.set_level(logging.INFO, logger="agent.VideoAnalyzer")

    run(analyzer)

    assert "[VideoAnalyzer] Starting video analysis (test_id=101, launch_id=55)" in caplog.text
    assert "[VideoAnalyzer] Test: Login with valid user (project=MFP, project_id=7)" in caplog.text
