"""Media package"""
from .artifacts import MediaArtifacts

__all__ = ["MediaArtifacts"]
