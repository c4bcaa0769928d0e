"""
This package contains the domain layer of segmenter.

The domain layer holds the segmentation model and the summaries computed from it.
"""

from .exceptions import (
    ChromHMMError,
    DimensionMismatchError,
    EmptyInputError,
    ParseError,
    SegmenterError,
)
from .models import (
    BinarizeConfig,
    CompareConfig,
    ComparisonResult,
    LearnModelConfig,
    ModelParameters,
    ProcessingResult,
    RunOptions,
    Segmentation,
)

__all__ = [
    "BinarizeConfig",
    "ChromHMMError",
    "CompareConfig",
    "ComparisonResult",
    "DimensionMismatchError",
    "EmptyInputError",
    "LearnModelConfig",
    "ModelParameters",
    "ParseError",
    "ProcessingResult",
    "RunOptions",
    "SegmenterError",
    "Segmentation",
]
