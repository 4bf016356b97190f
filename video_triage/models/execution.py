"""
Execution Flow Data Models
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class LogStep(BaseModel):
    """An execution log entry recognised as a test action."""

    step_number: int
    timestamp: str = ""
    action: str
    result: str = "Success"  # Success, Failed
    log_level: str = "INFO"


class VideoStep(BaseModel):
    """A step inferred from an extracted frame."""

    step_number: int
    timestamp: float
    inferred_action: str
    screen_transition: str
    confidence: Literal["high", "medium", "low"] = "medium"


class CorrelatedStep(BaseModel):
    """Pairing of a log step with the nearest frame timestamp."""

    log_step: int
    video_timestamp: float
    match: bool = True
    discrepancy: Optional[str] = None


class ExecutionFlow(BaseModel):
    """Log steps, frame steps and their correlation."""

    steps_from_logs: List[LogStep] = Field(default_factory=list)
    steps_from_video: List[VideoStep] = Field(default_factory=list)
    correlated_steps: List[CorrelatedStep] = Field(default_factory=list)
