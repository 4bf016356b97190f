"""Collaborators package"""
from .base import ReportingClient, VideoDownloader, FrameExtractor, TestCaseManagementClient

__all__ = ["ReportingClient", "VideoDownloader", "FrameExtractor", "TestCaseManagementClient"]
