"""
Data access package for segmenter.

Parsing of ChromHMM output directories and writing of tables back to disk.
"""

from .data_loader import ChromHMMOutputLoader
from .data_saver import SegmentationWriter

__all__ = ["ChromHMMOutputLoader", "SegmentationWriter"]
