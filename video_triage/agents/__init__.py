"""Agents package"""
from .base_agent import BaseAgent
from .comparator_agent import TestCaseComparator
from .failure_classifier import FailureClassifier
from .prediction_agent import PredictionEngine
from .orchestrator_agent import VideoAnalyzer, AnalysisStage

__all__ = [
    "BaseAgent",
    "TestCaseComparator",
    "FailureClassifier",
    "PredictionEngine",
    "VideoAnalyzer",
    "AnalysisStage"
]
