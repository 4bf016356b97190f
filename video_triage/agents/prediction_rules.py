"""
Prediction Rules - Independent scoring rules folded by the PredictionEngine

Every rule is a pure function of a PredictionContext returning the score
contributions it fires. Rules never depend on each other's output.
"""
from dataclasses import dataclass, field
from typing import Callable, List, Literal, Optional

from ..models import FailureAnalysis, FrameAnalysis, TestCaseComparison

Target = Literal["bug", "test"]


@dataclass(frozen=True)
class PredictionContext:
    """Everything the rules may look at."""

    failure_analysis: FailureAnalysis
    comparison: Optional[TestCaseComparison]
    frames: List[FrameAnalysis] = field(default_factory=list)
    logs_text: str = ""

    @property
    def failure_type(self) -> str:
        return self.failure_analysis.failure_type.lower()

    @property
    def error_message(self) -> str:
        return self.failure_analysis.error_message.lower()


@dataclass(frozen=True)
class ScoreContribution:
    """A weight added to one running score, with its justification."""

    delta: float
    target: Target
    evidence: str


Rule = Callable[[PredictionContext], List[ScoreContribution]]


def _keyword_rule(source: str, keywords, delta: float, target: Target, evidence: str) -> Rule:
    """Build a rule firing once when any keyword appears in the failure type or message."""
    def rule(ctx: PredictionContext) -> List[ScoreContribution]:
        text = ctx.failure_type if source == "type" else ctx.error_message
        if any(k in text for k in keywords):
            return [ScoreContribution(delta, target, evidence)]
        return []
    rule.__name__ = f"{target}_{source}_{keywords[0].replace(' ', '_')}"
    return rule


# Bug indicators
crash_rule = _keyword_rule(
    "type", ("crash", "anr", "freeze"), 30, "bug",
    "Application crashed or became unresponsive")
null_pointer_rule = _keyword_rule(
    "message", ("nullpointer", "null reference"), 25, "bug",
    "NullPointerException indicates code defect")
index_error_rule = _keyword_rule(
    "message", ("index out of bounds", "array"), 20, "bug",
    "Array/Index error suggests code issue")
network_rule = _keyword_rule(
    "message", ("network", "connection", "timeout"), 15, "bug",
    "Network/connection issue detected")
database_rule = _keyword_rule(
    "message", ("database", "sql"), 15, "bug",
    "Database error detected")

# Test issue indicators
element_not_found_rule = _keyword_rule(
    "type", ("elementnotfound", "nosuchelement"), 25, "test",
    "Element not found - UI may have changed")
wait_timeout_rule = _keyword_rule(
    "type", ("timeout", "wait"), 20, "test",
    "Wait timeout - may need increased wait time")
assertion_rule = _keyword_rule(
    "type", ("assertion", "expected"), 15, "test",
    "Assertion failure - expected vs actual mismatch")
stale_element_rule = _keyword_rule(
    "message", ("stale element", "detached"), 20, "test",
    "Stale element reference - test needs to re-locate element")


def low_coverage_rule(ctx: PredictionContext) -> List[ScoreContribution]:
    if ctx.comparison is None:
        return []
    coverage = ctx.comparison.coverage_analysis.coverage_percentage
    if coverage < 50:
        return [ScoreContribution(
            20, "test", f"Low test case coverage ({coverage}%) - test may be outdated")]
    return []


def skipped_steps_rule(ctx: PredictionContext) -> List[ScoreContribution]:
    if ctx.comparison is None:
        return []
    skipped = ctx.comparison.coverage_analysis.skipped_steps
    if skipped:
        return [ScoreContribution(10, "test", f"{len(skipped)} test case steps were skipped")]
    return []


def extra_steps_rule(ctx: PredictionContext) -> List[ScoreContribution]:
    if ctx.comparison is None:
        return []
    extra = ctx.comparison.coverage_analysis.extra_steps
    if len(extra) > 3:
        return [ScoreContribution(
            15, "test", f"Test executed {len(extra)} extra steps not in test case")]
    return []


def deviation_rule(ctx: PredictionContext) -> List[ScoreContribution]:
    if ctx.comparison is None:
        return []
    deviations = [s for s in ctx.comparison.step_by_step_comparison if not s.match]
    if deviations:
        return [ScoreContribution(10, "test", f"{len(deviations)} steps deviated from test case")]
    return []


def frame_anomaly_rule(ctx: PredictionContext) -> List[ScoreContribution]:
    """One contribution per matching anomaly tag on any frame."""
    contributions = []
    for frame in ctx.frames:
        for anomaly in frame.anomalies_detected:
            lower = anomaly.lower()
            if "error dialog" in lower or "crash screen" in lower:
                contributions.append(ScoreContribution(
                    20, "bug", f"Visual anomaly detected: {anomaly}"))
            if "wrong screen" in lower or "unexpected" in lower:
                contributions.append(ScoreContribution(
                    15, "test", f"Unexpected UI state: {anomaly}"))
    return contributions


def root_cause_rule(ctx: PredictionContext) -> List[ScoreContribution]:
    """The upstream classification weighs in at 30% of its confidence."""
    root_cause = ctx.failure_analysis.root_cause
    if root_cause.category == "app_bug":
        return [ScoreContribution(root_cause.confidence * 0.3, "bug", root_cause.reasoning)]
    if root_cause.category == "test_issue":
        return [ScoreContribution(root_cause.confidence * 0.3, "test", root_cause.reasoning)]
    return []


DEFAULT_RULES: List[Rule] = [
    crash_rule,
    null_pointer_rule,
    index_error_rule,
    network_rule,
    database_rule,
    element_not_found_rule,
    wait_timeout_rule,
    assertion_rule,
    stale_element_rule,
    low_coverage_rule,
    skipped_steps_rule,
    extra_steps_rule,
    deviation_rule,
    frame_anomaly_rule,
    root_cause_rule,
]
