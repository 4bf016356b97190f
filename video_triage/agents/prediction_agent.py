"""
Prediction Engine - Decides whether a failure is a bug, a test issue or something else
"""
from typing import Any, Dict, List, Optional, Tuple

from .base_agent import BaseAgent
from .prediction_rules import DEFAULT_RULES, PredictionContext, Rule
from ..models import (
    FailureAnalysis,
    FrameAnalysis,
    Prediction,
    Recommendation,
    TestCaseComparison,
)
from ..utils.helpers import round_half_up

INFRASTRUCTURE_MARKERS = ("connection refused", "server error", "infrastructure")
DATA_MARKERS = ("invalid data", "data not found", "constraint violation")

MIN_SCORE_GAP = 10
MIN_WINNING_SCORE = 30

VERDICT_EXPLANATIONS = {
    "bug": (
        "this appears to be an **application bug**. "
        "The failure characteristics, error messages, and visual evidence point to a code "
        "defect rather than test automation issues."
    ),
    "test_needs_update": (
        "this appears to be a **test automation issue**. "
        "The test likely needs updates to match current application behavior or improved "
        "element locators/waits."
    ),
    "infrastructure_issue": (
        "this appears to be an **infrastructure/environment issue**. "
        "The failure is likely due to environment instability, network issues, or resource constraints."
    ),
    "data_issue": (
        "this appears to be a **data-related issue**. "
        "The test may have encountered invalid, missing, or conflicting data."
    ),
    "unclear": (
        "the root cause is **unclear**. "
        "Further investigation is needed as evidence points to multiple possible causes."
    ),
}


def determine_verdict(bug_score: float, test_score: float, failure_analysis: FailureAnalysis) -> str:
    """
    Pick the verdict.

    Infrastructure and data markers in the message win outright; otherwise
    the higher score wins when it leads by at least 10 and exceeds 30.
    """
    message = failure_analysis.error_message.lower()

    if any(marker in message for marker in INFRASTRUCTURE_MARKERS):
        return "infrastructure_issue"
    if any(marker in message for marker in DATA_MARKERS):
        return "data_issue"

    if abs(bug_score - test_score) < MIN_SCORE_GAP:
        return "unclear"
    if bug_score > test_score:
        return "bug" if bug_score > MIN_WINNING_SCORE else "unclear"
    return "test_needs_update" if test_score > MIN_WINNING_SCORE else "unclear"


def compute_confidence(bug_score: float, test_score: float) -> int:
    """Share of the winning score in the total, 50 when nothing scored."""
    total = bug_score + test_score
    if total <= 0:
        return 50
    return min(100, round_half_up(max(bug_score, test_score) / total * 100))


def build_recommendations(
    verdict: str,
    failure_analysis: FailureAnalysis,
    evidence_for_bug: List[str],
    evidence_for_test_update: List[str]
) -> List[Recommendation]:
    """Verdict-keyed recommendation table with one conditional follow-up."""
    recommendations = []

    if verdict == "bug":
        recommendations.append(Recommendation(
            type="bug_report",
            priority="high",
            description="Create bug report with evidence",
            action_items=[
                f"Report to development team: {failure_analysis.error_message}",
                "Attach video and failure screenshots",
                "Include stack trace and error logs",
                "Specify environment and device details",
                "Document steps to reproduce from test case"
            ]
        ))
        if evidence_for_test_update:
            recommendations.append(Recommendation(
                type="test_update",
                priority="low",
                description="Review test automation and test case documentation",
                action_items=[
                    "Verify test case steps match actual execution",
                    "Update any outdated step descriptions"
                ]
            ))

    elif verdict == "test_needs_update":
        recommendations.append(Recommendation(
            type="test_update",
            priority="high",
            description="Update test automation",
            action_items=[
                f"Fix element locators for: {failure_analysis.failure_type}",
                "Add explicit waits or increase timeout values",
                "Update test case steps to match current UI flow",
                "Consider using more robust locator strategies",
                "Re-run test after fixes to verify"
            ]
        ))
        if evidence_for_bug:
            recommendations.append(Recommendation(
                type="investigation",
                priority="medium",
                description="Investigate potential app issues",
                action_items=[
                    "Verify if application behavior has changed intentionally",
                    "Check with developers if UI changes were planned",
                    "Review recent application commits"
                ]
            ))

    elif verdict == "infrastructure_issue":
        recommendations.append(Recommendation(
            type="infrastructure_fix",
            priority="high",
            description="Fix environment/infrastructure",
            action_items=[
                "Check network connectivity and stability",
                "Verify server/API availability",
                "Review resource usage (CPU, memory, disk)",
                "Check for external service dependencies",
                "Re-run test to confirm if issue is transient"
            ]
        ))

    elif verdict == "data_issue":
        recommendations.append(Recommendation(
            type="test_update",
            priority="high",
            description="Fix test data issues",
            action_items=[
                "Verify test data is valid and available",
                "Check data dependencies and prerequisites",
                "Update test data setup/cleanup procedures",
                "Consider using data factories or fixtures"
            ]
        ))

    else:
        recommendations.append(Recommendation(
            type="investigation",
            priority="high",
            description="Investigate root cause",
            action_items=[
                "Review full test execution video carefully",
                "Analyze complete log file for additional clues",
                "Compare with previous successful executions",
                "Try to reproduce failure manually",
                "Consult with development team if needed"
            ]
        ))
        if evidence_for_bug and len(evidence_for_bug) >= len(evidence_for_test_update):
            recommendations.append(Recommendation(
                type="bug_report",
                priority="medium",
                description="Consider filing bug report",
                action_items=[
                    "Document all observed symptoms",
                    "Gather additional evidence",
                    "Discuss with team before filing"
                ]
            ))
        elif evidence_for_test_update:
            recommendations.append(Recommendation(
                type="test_update",
                priority="medium",
                description="Consider test improvements",
                action_items=[
                    "Review test implementation for potential issues",
                    "Update element locators if needed",
                    "Add better error handling and logging"
                ]
            ))

    return recommendations


class PredictionEngine(BaseAgent):
    """
    Aggregates failure classification, test case comparison and visual
    evidence into a verdict with reasoning and recommendations.
    Stateless: the same inputs always give the same prediction.
    """

    def __init__(self, rules: Optional[List[Rule]] = None):
        super().__init__(
            name="PredictionEngine",
            description="Predicts bug vs test issue"
        )
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    async def execute(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Execute prediction."""
        prediction = self.predict_issue_type(
            failure_analysis=context["failure_analysis"],
            test_case_comparison=context.get("test_case_comparison"),
            frames=context.get("frames", []),
            logs_text=context.get("logs_text", "")
        )
        return {"prediction": prediction}

    def score(self, ctx: PredictionContext) -> Tuple[float, float, List[str], List[str]]:
        """
        Fold every rule into the two running scores.

        Returns:
            (bug_score, test_score, evidence_for_bug, evidence_for_test_update)
        """
        bug_score = 0.0
        test_score = 0.0
        evidence_for_bug: List[str] = []
        evidence_for_test_update: List[str] = []

        for rule in self.rules:
            for contribution in rule(ctx):
                if contribution.target == "bug":
                    bug_score += contribution.delta
                    evidence_for_bug.append(contribution.evidence)
                else:
                    test_score += contribution.delta
                    evidence_for_test_update.append(contribution.evidence)

        return bug_score, test_score, evidence_for_bug, evidence_for_test_update

    def predict_issue_type(
        self,
        failure_analysis: FailureAnalysis,
        test_case_comparison: Optional[TestCaseComparison],
        frames: List[FrameAnalysis],
        logs_text: str
    ) -> Prediction:
        """
        Predict the issue type from all available evidence.

        Args:
            failure_analysis: Classified point of failure
            test_case_comparison: Comparison with the test case, if any
            frames: Extracted frames
            logs_text: Raw log items serialised as text

        Returns:
            Prediction with verdict, confidence, evidence and recommendations
        """
        ctx = PredictionContext(
            failure_analysis=failure_analysis,
            comparison=test_case_comparison,
            frames=list(frames),
            logs_text=logs_text or ""
        )
        bug_score, test_score, evidence_for_bug, evidence_for_test_update = self.score(ctx)

        verdict = determine_verdict(bug_score, test_score, failure_analysis)
        confidence = compute_confidence(bug_score, test_score)

        reasoning = (
            f"Based on analysis of the failure evidence (bug score: {round_half_up(bug_score)}, "
            f"test score: {round_half_up(test_score)}), {VERDICT_EXPLANATIONS[verdict]}"
        )
        if failure_analysis.root_cause.reasoning:
            reasoning += f"\n\nAdditional context: {failure_analysis.root_cause.reasoning}"

        recommendations = build_recommendations(
            verdict,
            failure_analysis,
            evidence_for_bug,
            evidence_for_test_update
        )

        self.log_info(f"Prediction: {verdict} ({confidence}% confidence)")
        self.log_debug(f"Bug score: {bug_score}, Test score: {test_score}")

        return Prediction(
            verdict=verdict,
            confidence=confidence,
            reasoning=reasoning,
            evidence_for_bug=evidence_for_bug,
            evidence_for_test_update=evidence_for_test_update,
            recommendations=recommendations
        )
