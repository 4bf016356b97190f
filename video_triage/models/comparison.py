"""
Test Case Comparison Data Models
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class TestCaseStep(BaseModel):
    """One authored test case step."""

    step_number: int
    expected_action: str
    expected_result: str = ""


class VideoTimestamp(BaseModel):
    """A frame timestamp offered to the comparator for human review links."""

    timestamp: float
    action: str = ""


class CoverageAnalysis(BaseModel):
    """How many authored steps were matched by executed steps."""

    total_steps: int
    executed_steps: int
    skipped_steps: List[int] = Field(default_factory=list)
    extra_steps: List[int] = Field(default_factory=list)
    coverage_percentage: int = Field(..., ge=0, le=100)


class StepComparison(BaseModel):
    """An authored step paired with its best matching executed step."""

    test_case_step: int
    expected_action: str
    actual_execution: str
    video_timestamp: Optional[float] = None
    log_reference: Optional[str] = None
    match: bool
    deviation: Optional[str] = None


class TestCaseQuality(BaseModel):
    """Whether the authored test case still describes what automation does."""

    is_outdated: bool
    confidence: int
    reasoning: str
    recommendation: str


class TestCaseComparison(BaseModel):
    """Authored steps reconciled against the executed steps."""

    test_case_key: str
    test_case_title: str
    test_case_steps: List[TestCaseStep] = Field(default_factory=list)
    coverage_analysis: CoverageAnalysis
    step_by_step_comparison: List[StepComparison] = Field(default_factory=list)
    test_case_quality: Optional[TestCaseQuality] = None


class ComparisonOutcome(BaseModel):
    """
    Why a comparison is or is not part of the result:
    not_requested (opted out, or nothing to compare against),
    unavailable (comparison attempted but produced nothing) or present.
    """

    status: Literal["not_requested", "unavailable", "present"]
    reason: Optional[str] = None
    comparison: Optional[TestCaseComparison] = None

    @classmethod
    def not_requested(cls, reason: str) -> "ComparisonOutcome":
        return cls(status="not_requested", reason=reason)

    @classmethod
    def unavailable(cls, reason: str) -> "ComparisonOutcome":
        return cls(status="unavailable", reason=reason)

    @classmethod
    def present(cls, comparison: TestCaseComparison) -> "ComparisonOutcome":
        return cls(status="present", comparison=comparison)
