"""
This package contains the application layer of segmenter.

The application layer orchestrates running, loading, summarizing and plotting.
"""

from .segmentation_service import SegmentationService

__all__ = ["SegmentationService"]
