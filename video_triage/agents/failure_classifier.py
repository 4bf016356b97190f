"""
Failure Classifier - Locates the point of failure and assigns a first-pass root cause
"""
import re
from typing import Any, Dict, List, Optional

from .base_agent import BaseAgent
from ..config import settings
from ..models import FrameAnalysis, FailureAnalysis, FailureFrame, RootCause
from ..utils.helpers import timestamp_now, to_iso

TEST_FAILED_PATTERN = re.compile(r"TEST \[.*?\] FAILED at \[.*?\] - (.*?)(?:\n|$)")
LOCATOR_PATTERN = re.compile(r"Locator:(\w+)\s*\(By\.(\w+):\s*(.+?)\)")
METHOD_PATTERN = re.compile(r"at\s+([\w.]+\.[\w]+)\([\w.]+:\d+\)")
EXCEPTION_PATTERN = re.compile(r"([\w.]+Exception|[\w.]+Error|org\.testng\.Assert\.\w+)")
ELEMENT_NAME_PATTERN = re.compile(r"(?:button|element|field|link|menu|icon)\s+['\"]?(\w+)['\"]?", re.IGNORECASE)
ANR_PATTERN = re.compile(r"\banr\b")
FRAMEWORK_NOISE = "Your retry_interval is too low"
NOISE_RECOVERY_PATTERN = re.compile(
    r"TEST \[.*?\] FAILED.*? - ((?:(?!retry_interval).)*?)(?:Your retry_interval|$)", re.DOTALL
)


def select_failure_record(log_items: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """First ERROR log item, or the last item when nothing is ERROR."""
    for item in log_items:
        if item.get("level") == "ERROR":
            return item
    return log_items[-1] if log_items else None


def classify_failure_type(text: str) -> str:
    """
    Derive a failure type label from error text.

    Returns:
        ElementNotFound, Timeout, Assertion, Crash, NetworkError or Unknown
    """
    lower = (text or "").lower()
    if "not found" in lower or "wasn't found" in lower or "no such element" in lower:
        return "ElementNotFound"
    if "timeout" in lower or "timed out" in lower:
        return "Timeout"
    if "assert" in lower:
        return "Assertion"
    if "crash" in lower or ANR_PATTERN.search(lower):
        return "Crash"
    if "network" in lower or "connection" in lower:
        return "NetworkError"
    return "Unknown"


def parse_stack_trace(log_items: List[Dict[str, Any]]) -> Dict[str, Optional[str]]:
    """
    Pull structured failure details out of log messages.

    ERROR logs are preferred; all logs are used when there are none.

    Returns:
        Dictionary with error_message, locator, failing_method,
        exception_class and full_stack_trace
    """
    error_logs = [log for log in log_items if log.get("level") == "ERROR"]
    logs = error_logs or log_items

    details: Dict[str, Optional[str]] = {
        "error_message": None,
        "locator": None,
        "failing_method": None,
        "exception_class": None,
    }
    trace_lines = []

    for log in logs:
        message = log.get("value") or ""
        trace_lines.append(message)

        match = TEST_FAILED_PATTERN.search(message)
        if match and not details["error_message"]:
            details["error_message"] = match.group(1).strip()

        match = LOCATOR_PATTERN.search(message)
        if match and not details["locator"]:
            details["locator"] = f"{match.group(2)}={match.group(3)}"

        match = METHOD_PATTERN.search(message)
        if match and not details["failing_method"]:
            details["failing_method"] = match.group(1)

        match = EXCEPTION_PATTERN.search(message)
        if match and not details["exception_class"]:
            details["exception_class"] = match.group(1)

    details["full_stack_trace"] = "\n".join(trace_lines).strip()
    return details


def strip_framework_noise(error_message: str, full_stack_trace: str) -> str:
    """Recover the real failure message when retry noise from the test framework is attached to it."""
    if FRAMEWORK_NOISE not in error_message:
        return error_message
    match = NOISE_RECOVERY_PATTERN.search(full_stack_trace or "")
    if match and match.group(1).strip():
        return match.group(1).strip()
    return error_message


def find_closest_frames(
    timestamp: Optional[float],
    frames: List[FrameAnalysis],
    count: int = 3
) -> List[FrameAnalysis]:
    """N frames nearest a video timestamp (none when the timestamp is unknown or 0)."""
    if not timestamp or not frames:
        return []
    ordered = sorted(frames, key=lambda f: abs(f.timestamp - timestamp))
    return ordered[:count]


def investigate_element_not_found(
    error_message: str,
    locator: Optional[str],
    closest_frames: List[FrameAnalysis]
) -> Dict[str, Any]:
    """
    Use the frames around the failure to explain why an element was missing.

    Returns:
        Dictionary with category, confidence, findings and diagnosis
    """
    if not closest_frames:
        return {
            "category": "test_issue",
            "confidence": 75,
            "findings": ["Unable to verify visually - no frames extracted near failure"],
            "diagnosis": "No frames available for visual investigation"
        }

    name_match = ELEMENT_NAME_PATTERN.search(error_message)
    element_name = (name_match.group(1) if name_match else "element").lower()

    loading = modal = mentioned = app_error = False
    for frame in closest_frames:
        visual = (frame.visual_analysis or "").lower()
        ocr = (frame.ocr_text or "").lower()

        if any(k in visual or k in ocr for k in ("loading", "please wait")):
            loading = True
        if any(k in visual for k in ("modal", "popup", "dialog", "overlay")):
            modal = True
        if element_name in ocr or element_name in visual:
            mentioned = True
        if "error" in visual or any(k in ocr for k in ("error", "failed", "unable")):
            app_error = True

    if loading:
        return {
            "category": "test_issue",
            "confidence": 85,
            "findings": [
                "Loading/waiting screen detected in frames - timing issue",
                "Recommendation: Add explicit wait for loading to complete"
            ],
            "diagnosis": "App was in loading state when the locator was checked."
        }
    if modal:
        return {
            "category": "test_issue",
            "confidence": 80,
            "findings": [
                "Modal/popup detected - element may be covered or inaccessible",
                "Recommendation: Dismiss modal/popup before searching for element"
            ],
            "diagnosis": "Modal, popup, or overlay was present on screen."
        }
    if mentioned and locator:
        return {
            "category": "test_issue",
            "confidence": 90,
            "findings": [
                f'Element "{element_name}" visible in UI but locator failed',
                "Recommendation: Update locator strategy or check if element attributes changed"
            ],
            "diagnosis": f'Element "{element_name}" appears in frames but locator {locator} failed.'
        }
    if app_error:
        return {
            "category": "app_bug",
            "confidence": 70,
            "findings": [
                "App error detected in frames - element may not render due to app issue",
                "Possible app bug preventing element from appearing"
            ],
            "diagnosis": "App displayed an error message before the element was searched."
        }

    state = closest_frames[0].app_state or "Unknown"
    return {
        "category": "test_issue",
        "confidence": 75,
        "findings": [
            f'App state: "{state}" - verify element should exist on this screen',
            "Possible issues: Wrong navigation path, UI redesign, or element moved to different screen"
        ],
        "diagnosis": f'App was on "{state}" screen. Element may not exist on this screen.'
    }


def analyze_root_cause(
    error_message: str,
    failure_type: str,
    trace_details: Dict[str, Optional[str]],
    closest_frames: List[FrameAnalysis]
) -> RootCause:
    """Keyword heuristic mapping the failure to a root-cause category."""
    lower = error_message.lower()
    evidence: List[str] = []
    category = "unclear"
    confidence = 50
    locator = trace_details.get("locator")
    failing_method = trace_details.get("failing_method")

    if failure_type == "ElementNotFound":
        investigation = investigate_element_not_found(error_message, locator, closest_frames)
        category = investigation["category"]
        confidence = investigation["confidence"]
        evidence.append(f"Element locator failed: {locator or 'unknown locator'}")
        if failing_method:
            evidence.append(f"Failed in method: {failing_method}")
        evidence.extend(investigation["findings"])
        evidence.append(f"Visual diagnosis: {investigation['diagnosis']}")
    elif "stale element" in lower:
        category = "test_issue"
        confidence = 80
        evidence.append("Stale element reference - test synchronization issue")
    elif failure_type == "Timeout":
        if "element" in lower or "condition" in lower:
            category = "test_issue"
            confidence = 75
            evidence.append("Test wait condition timeout - may need longer timeout or better wait strategy")
        else:
            category = "environment_issue"
            confidence = 70
            evidence.append("General timeout - possible environment or app performance issue")
    elif failure_type == "Crash":
        category = "app_bug"
        confidence = 95
        evidence.append("Application crashed during test execution")
        if closest_frames:
            evidence.append(f"App state before crash: {closest_frames[0].app_state or 'unknown'}")
    elif failure_type == "Assertion":
        if "expected" in lower and "actual" in lower:
            category = "app_bug"
            confidence = 70
            evidence.append("Assertion failed - actual value differs from expected")
        else:
            confidence = 60
            evidence.append("Assertion failed - need to verify expected vs actual behavior")
    elif "nullpointer" in lower or "nullreferenceexception" in lower:
        category = "app_bug"
        confidence = 90
        evidence.append("NullPointer exception - application bug")
    elif failure_type == "NetworkError":
        category = "environment_issue"
        confidence = 75
        evidence.append("Network or connectivity issue detected")

    reasoning = f'Failure type: "{failure_type}". Root cause: {error_message[:150]}'
    if locator:
        reasoning += f". Locator: {locator}"
    if failing_method:
        reasoning += f". Failed in: {failing_method}"

    return RootCause(
        category=category,
        confidence=confidence,
        reasoning=reasoning,
        evidence=evidence
    )


class FailureClassifier(BaseAgent):
    """
    Turns raw execution logs into a FailureAnalysis:
    - Picks the failure record
    - Labels the failure type
    - Attaches the frames nearest the failure
    - Assigns a first-pass root cause
    """

    def __init__(self):
        super().__init__(
            name="FailureClassifier",
            description="Classifies the point of failure"
        )
        self.frame_count = settings.FAILURE_FRAME_COUNT

    async def execute(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """Execute failure classification."""
        analysis = self.analyze(
            test=context.get("test", {}),
            log_items=context.get("log_items", []),
            frames=context.get("frames", []),
            failure_video_timestamp=context.get("failure_video_timestamp")
        )
        return {"failure_analysis": analysis}

    def analyze(
        self,
        test: Dict[str, Any],
        log_items: List[Dict[str, Any]],
        frames: List[FrameAnalysis],
        failure_video_timestamp: Optional[float]
    ) -> FailureAnalysis:
        """
        Build the failure analysis for a test.

        Args:
            test: Test record from the launch
            log_items: Log entries of the test (kind == "log")
            frames: Extracted frames
            failure_video_timestamp: Estimated failure offset in the video

        Returns:
            FailureAnalysis with root cause
        """
        record = select_failure_record(log_items)
        trace_details = parse_stack_trace(log_items)

        error_message = (
            trace_details.get("error_message")
            or (record.get("value") if record else None)
            or test.get("reason")
            or "Unknown error"
        )
        error_message = strip_framework_noise(error_message, trace_details.get("full_stack_trace") or "")
        failure_type = classify_failure_type(error_message)

        closest = find_closest_frames(failure_video_timestamp, frames, self.frame_count)
        failure_frames = [
            FailureFrame(
                timestamp=frame.timestamp,
                description=frame.visual_analysis or "Frame analysis pending",
                visual_state=frame.app_state or "Unknown state"
            )
            for frame in closest
        ]

        root_cause = analyze_root_cause(error_message, failure_type, trace_details, closest)
        self.log_info(
            f"Failure type {failure_type}, root cause {root_cause.category} "
            f"({root_cause.confidence}%)"
        )

        return FailureAnalysis(
            failure_timestamp=to_iso(test.get("finishTime")) or timestamp_now(),
            failure_video_timestamp=failure_video_timestamp,
            failure_type=failure_type,
            error_message=error_message,
            stack_trace=trace_details.get("full_stack_trace") or "",
            failure_frames=failure_frames,
            root_cause=root_cause
        )
