"""
Test Case Comparator - Reconciles executed steps with the authored test case
"""
from typing import Any, Dict, List, Optional, Set

from .base_agent import BaseAgent
from ..collaborators import TestCaseManagementClient
from ..config import settings
from ..models import (
    LogStep,
    TestCaseStep,
    VideoTimestamp,
    CoverageAnalysis,
    StepComparison,
    TestCaseQuality,
    TestCaseComparison,
)
from ..utils.helpers import round_half_up, to_epoch_ms
from ..utils.step_matching import steps_match

NOT_EXECUTED = "Not executed or not found in logs"
NOT_EXECUTED_DEVIATION = "Step was not executed or could not be matched in logs"

# Action category -> phrases that reveal it in an executed log step
ACTION_CATEGORIES = {
    "login": ["login", "sign in"],
    "UI interactions": ["click", "tap"],
    "text input": ["enter", "type", "input"],
    "verification": ["verify", "check", "assert"],
    "navigation": ["navigate", "open"],
    "search": ["search"],
    "selection": ["select", "choose"],
    "scrolling": ["scroll", "swipe"],
    "waiting": ["wait", "loading"],
    "dismiss/close": ["close", "dismiss"],
}

# Action category -> phrases an authored step may use to describe it
CATEGORY_SYNONYMS = {
    "login": ["sign in", "authenticate", "log in", "credentials"],
    "navigation": ["open", "go to", "navigate", "access", "menu"],
    "search": ["find", "look for", "query"],
    "UI interactions": ["click", "tap", "press", "button", "select"],
    "text input": ["enter", "type", "input", "fill", "provide"],
    "verification": ["verify", "check", "confirm", "see", "expect", "assert"],
    "selection": ["choose", "pick", "select"],
    "scrolling": ["scroll", "swipe", "move"],
    "dismiss/close": ["close", "dismiss", "exit", "cancel"],
}


def parse_test_case_steps(steps: List[str]) -> List[TestCaseStep]:
    """
    Parse raw step strings into structured steps.

    ``"open app | app is shown"`` splits into action and expected result;
    text without a ``|`` is all action. Only the text between the first
    and second ``|`` is kept as the result.
    """
    parsed = []
    for index, step in enumerate(steps):
        if "|" in step:
            parts = step.split("|")
            # "| shown" leaves an empty action, which matches every executed step
            parsed.append(TestCaseStep(
                step_number=index + 1,
                expected_action=parts[0].strip(),
                expected_result=parts[1].strip()
            ))
        else:
            parsed.append(TestCaseStep(
                step_number=index + 1,
                expected_action=step,
                expected_result=""
            ))
    return parsed


def extract_step_texts(raw_steps: Any) -> List[str]:
    """Normalise the TCM ``steps`` field into a list of step strings."""
    if isinstance(raw_steps, str):
        return [line for line in raw_steps.split("\n") if line.strip()]

    texts = []
    for step in raw_steps or []:
        if isinstance(step, str):
            texts.append(step)
        elif isinstance(step, dict):
            text = step.get("action") or step.get("name")
            if text:
                texts.append(text)
    return texts


def analyze_coverage(
    test_case_steps: List[TestCaseStep],
    executed_steps: List[LogStep]
) -> CoverageAnalysis:
    """
    Match each executed step to the first authored step it corresponds to.

    Unmatched executed steps are extra; authored steps never matched are
    skipped.
    """
    total_steps = len(test_case_steps)
    covered: Set[int] = set()
    extra_steps = []

    for index, exec_step in enumerate(executed_steps):
        matched = False
        for tc_step in test_case_steps:
            if steps_match(exec_step.action, tc_step.expected_action):
                covered.add(tc_step.step_number)
                matched = True
                break
        if not matched:
            extra_steps.append(index + 1)

    skipped_steps = [n for n in range(1, total_steps + 1) if n not in covered]

    if total_steps > 0:
        coverage = round_half_up(len(covered) / total_steps * 100)
        if len(covered) < total_steps:
            coverage = min(coverage, 99)
    else:
        coverage = 0

    return CoverageAnalysis(
        total_steps=total_steps,
        executed_steps=len(covered),
        skipped_steps=skipped_steps,
        extra_steps=extra_steps,
        coverage_percentage=max(0, min(100, coverage))
    )


def compare_steps(
    test_case_steps: List[TestCaseStep],
    executed_steps: List[LogStep],
    video_timestamps: List[VideoTimestamp],
    tolerance_seconds: float = 5.0
) -> List[StepComparison]:
    """Pair every authored step with the first executed step matching it."""
    comparison = []

    for tc_step in test_case_steps:
        matched: Optional[LogStep] = None
        matched_video_timestamp: Optional[float] = None

        for exec_step in executed_steps:
            if not steps_match(exec_step.action, tc_step.expected_action):
                continue
            matched = exec_step

            log_ms = to_epoch_ms(exec_step.timestamp)
            if log_ms is not None:
                log_seconds = log_ms / 1000
                for vt in video_timestamps:
                    if abs(vt.timestamp - log_seconds) < tolerance_seconds:
                        matched_video_timestamp = vt.timestamp
                        break
            break

        if matched:
            comparison.append(StepComparison(
                test_case_step=tc_step.step_number,
                expected_action=tc_step.expected_action,
                actual_execution=matched.action,
                video_timestamp=matched_video_timestamp,
                log_reference=matched.timestamp,
                match=True
            ))
        else:
            comparison.append(StepComparison(
                test_case_step=tc_step.step_number,
                expected_action=tc_step.expected_action,
                actual_execution=NOT_EXECUTED,
                match=False,
                deviation=NOT_EXECUTED_DEVIATION
            ))

    return comparison


def assess_test_case_quality(
    test_case_steps: List[TestCaseStep],
    executed_steps: List[LogStep]
) -> TestCaseQuality:
    """
    Judge whether the test case still describes what the automation does.

    Automation having many more steps than the test case is normal and is
    not penalised; only placeholder text, vague single steps and action
    categories missing from the test case are.
    """
    matched_steps, undocumented = _semantic_coverage(test_case_steps, executed_steps)
    undocumented_count = len(undocumented)

    placeholder = any(
        "no steps" in s.expected_action.lower()
        or "undefined" in s.expected_action.lower()
        or len(s.expected_action.strip()) < 10
        for s in test_case_steps
    )
    semantic_mismatch = matched_steps < len(test_case_steps) * 0.5
    very_vague = len(test_case_steps) == 1 and len(test_case_steps[0].expected_action) < 30

    if placeholder:
        return TestCaseQuality(
            is_outdated=True,
            confidence=95,
            reasoning="Test case contains placeholder text or no meaningful steps.",
            recommendation="HIGH PRIORITY: Add actual test case steps describing the expected behavior and actions."
        )

    if semantic_mismatch and undocumented_count >= 3:
        described = ", ".join(s.expected_action[:30] for s in test_case_steps)
        missing = ", ".join(undocumented[:3])
        return TestCaseQuality(
            is_outdated=True,
            confidence=70,
            reasoning=(
                f'Test case describes "{described}" but automation performs '
                f"undocumented actions: {missing}. The test case may not accurately "
                f"describe what the automation does."
            ),
            recommendation=f"MEDIUM PRIORITY: Consider updating the test case to include: {missing}."
        )

    if very_vague and undocumented_count > 0:
        only_step = test_case_steps[0].expected_action
        return TestCaseQuality(
            is_outdated=True,
            confidence=60,
            reasoning=(
                f'Test case has only 1 very brief step: "{only_step}" while automation '
                f"has {len(executed_steps)} steps."
            ),
            recommendation="MEDIUM PRIORITY: Expand the test case to describe key expected outcomes and main user flows."
        )

    return TestCaseQuality(
        is_outdated=False,
        confidence=80,
        reasoning=(
            f"Test case provides an adequate high-level description. Automation has "
            f"{len(executed_steps)} detailed steps vs {len(test_case_steps)} test case step(s), "
            f"which is expected."
        ),
        recommendation="Test case documentation is adequate. Focus on the failure root cause."
    )


def _semantic_coverage(test_case_steps: List[TestCaseStep], executed_steps: List[LogStep]):
    """Count authored steps describing an automation action category."""
    categories: List[str] = []
    for exec_step in executed_steps:
        action = exec_step.action.lower()
        for category, phrases in ACTION_CATEGORIES.items():
            if category not in categories and any(p in action for p in phrases):
                categories.append(category)

    matched_steps = 0
    for tc_step in test_case_steps:
        text = tc_step.expected_action.lower()
        for category in categories:
            synonyms = CATEGORY_SYNONYMS.get(category, [])
            if category.lower() in text or any(term in text for term in synonyms):
                matched_steps += 1
                categories.remove(category)
                break

    return matched_steps, categories


class TestCaseComparator(BaseAgent):
    """
    Compares the executed steps of a test with its authored test case:
    - Fetches and parses the test case
    - Computes coverage (covered / skipped / extra steps)
    - Builds a step-by-step deviation report
    - Assesses whether the test case is outdated
    """

    __test__ = False

    def __init__(self, tcm_client: TestCaseManagementClient):
        super().__init__(
            name="TestCaseComparator",
            description="Compares execution with the authored test case"
        )
        self.tcm_client = tcm_client
        self.tolerance_seconds = settings.FRAME_MATCH_TOLERANCE_SECONDS

    async def execute(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Execute test case comparison."""
        comparison = await self.compare_with_test_case(
            test_case_key=context.get("test_case_key"),
            project_key=context.get("project_key"),
            executed_steps=context.get("executed_steps", []),
            video_timestamps=context.get("video_timestamps", [])
        )
        return {"test_case_comparison": comparison}

    async def compare_with_test_case(
        self,
        test_case_key: str,
        project_key: str,
        executed_steps: List[LogStep],
        video_timestamps: List[VideoTimestamp]
    ) -> Optional[TestCaseComparison]:
        """
        Compare executed steps with the authored test case.

        Args:
            test_case_key: Test case key, e.g. "MFP-123"
            project_key: Project key
            executed_steps: Action steps parsed from the execution logs
            video_timestamps: Frame timestamps available for review links

        Returns:
            The comparison, or None when the test case is missing, has no
            steps, or anything goes wrong
        """
        try:
            self.log_info(f"Fetching test case {test_case_key}")
            test_case = await self.tcm_client.get_test_case_by_key(project_key, test_case_key)

            if not test_case:
                self.log_warning(f"Test case {test_case_key} not found")
                return None

            step_texts = extract_step_texts(test_case.get("steps"))
            if not step_texts:
                self.log_warning(f"Test case {test_case_key} has no steps")
                return None

            test_case_steps = parse_test_case_steps(step_texts)
            coverage = analyze_coverage(test_case_steps, executed_steps)
            step_by_step = compare_steps(
                test_case_steps,
                executed_steps,
                video_timestamps,
                self.tolerance_seconds
            )
            quality = assess_test_case_quality(test_case_steps, executed_steps)

            self.log_info(
                f"Test case {test_case_key}: {coverage.coverage_percentage}% coverage, "
                f"{len(coverage.skipped_steps)} skipped, {len(coverage.extra_steps)} extra"
            )

            return TestCaseComparison(
                test_case_key=test_case_key,
                test_case_title=test_case.get("title") or "Untitled Test Case",
                test_case_steps=test_case_steps,
                coverage_analysis=coverage,
                step_by_step_comparison=step_by_step,
                test_case_quality=quality
            )

        except Exception as e:
            self.log_warning(f"Comparison with test case {test_case_key} failed: {e}")
            return None
