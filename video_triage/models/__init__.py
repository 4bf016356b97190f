"""Models package"""
from .video import TestSessionVideo, VideoDownloadResult, VideoMetadata, FrameAnalysis
from .execution import LogStep, VideoStep, CorrelatedStep, ExecutionFlow
from .comparison import (
    TestCaseStep,
    VideoTimestamp,
    CoverageAnalysis,
    StepComparison,
    TestCaseQuality,
    TestCaseComparison,
    ComparisonOutcome,
)
from .analysis import (
    FailureFrame,
    RootCause,
    FailureAnalysis,
    Recommendation,
    Prediction,
    AnalysisLinks,
    VideoAnalysisParams,
    VideoAnalysisResult,
)

__all__ = [
    "TestSessionVideo",
    "VideoDownloadResult",
    "VideoMetadata",
    "FrameAnalysis",
    "LogStep",
    "VideoStep",
    "CorrelatedStep",
    "ExecutionFlow",
    "TestCaseStep",
    "VideoTimestamp",
    "CoverageAnalysis",
    "StepComparison",
    "TestCaseQuality",
    "TestCaseComparison",
    "ComparisonOutcome",
    "FailureFrame",
    "RootCause",
    "FailureAnalysis",
    "Recommendation",
    "Prediction",
    "AnalysisLinks",
    "VideoAnalysisParams",
    "VideoAnalysisResult",
]
