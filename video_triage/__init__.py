"""Root-cause triage of failed test executions from their session recordings"""
from .agents import VideoAnalyzer, TestCaseComparator, PredictionEngine
from .exceptions import VideoAnalysisError

__all__ = ["VideoAnalyzer", "TestCaseComparator", "PredictionEngine", "VideoAnalysisError"]
