"""
Failure Analysis, Prediction and Report Data Models
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from .video import VideoMetadata, FrameAnalysis
from .execution import ExecutionFlow
from .comparison import ComparisonOutcome, TestCaseComparison

RootCauseCategory = Literal["app_bug", "test_issue", "environment_issue", "data_issue", "unclear"]
Verdict = Literal["bug", "test_needs_update", "infrastructure_issue", "data_issue", "unclear"]
RecommendationType = Literal["bug_report", "test_update", "infrastructure_fix", "investigation"]
Priority = Literal["high", "medium", "low"]
ExtractionMode = Literal["failure_focused", "full_test", "smart"]
AnalysisDepth = Literal["quick_text_only", "standard", "detailed"]


class FailureFrame(BaseModel):
    """A frame close to the point of failure."""

    timestamp: float
    description: str
    visual_state: str


class RootCause(BaseModel):
    """First-pass classification of the failure."""

    category: RootCauseCategory = "unclear"
    confidence: int = Field(default=50, ge=0, le=100)
    reasoning: str = ""
    evidence: List[str] = Field(default_factory=list)


class FailureAnalysis(BaseModel):
    """The inferred point of failure."""

    failure_timestamp: str
    failure_video_timestamp: Optional[float] = None
    failure_type: str = "Unknown"
    error_message: str = "Unknown error"
    stack_trace: str = ""
    failure_frames: List[FailureFrame] = Field(default_factory=list)
    root_cause: RootCause = Field(default_factory=RootCause)


class Recommendation(BaseModel):
    """A typed, prioritised follow-up action."""

    type: RecommendationType
    priority: Priority
    description: str
    action_items: List[str] = Field(default_factory=list)


class Prediction(BaseModel):
    """Final verdict on why the test failed."""

    verdict: Verdict
    confidence: int = Field(..., ge=0, le=100)
    reasoning: str
    evidence_for_bug: List[str] = Field(default_factory=list)
    evidence_for_test_update: List[str] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)


class AnalysisLinks(BaseModel):
    """Deep links into the reporting UI."""

    video_url: str
    test_url: str
    test_case_url: Optional[str] = None


class VideoAnalysisParams(BaseModel):
    """Parameters for one video analysis run."""

    test_id: int
    test_run_id: int
    project_key: Optional[str] = None
    project_id: Optional[int] = None

    # Frame extraction
    extraction_mode: Optional[ExtractionMode] = None
    frame_interval: Optional[int] = Field(default=None, gt=0)
    failure_window_seconds: Optional[int] = Field(default=None, gt=0)
    analysis_depth: AnalysisDepth = "standard"
    include_ocr: bool = False

    # Test case comparison
    compare_with_test_case: bool = True
    test_case_key: Optional[str] = None


class VideoAnalysisResult(BaseModel):
    """Complete analysis report for a failed test execution."""

    video_metadata: VideoMetadata
    frames: List[FrameAnalysis] = Field(default_factory=list)
    execution_flow: ExecutionFlow
    test_case_comparison: Optional[TestCaseComparison] = None
    comparison_outcome: ComparisonOutcome
    failure_analysis: FailureAnalysis
    prediction: Prediction
    summary: str
    links: AnalysisLinks
