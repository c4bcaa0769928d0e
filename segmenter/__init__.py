"""
segmenter

Run ChromHMM, load its output directory into an immutable segmentation model,
and summarize, compare and plot the learned chromatin states.
The package keeps a clean separation between domain models and services,
infrastructure (subprocess, file parsing, logging) and presentation.
"""

from segmenter.domain.models import (
    BinarizeConfig,
    CompareConfig,
    ComparisonResult,
    LearnModelConfig,
    ModelParameters,
    ProcessingResult,
    RunOptions,
    Segmentation,
)

__version__ = "0.1.0"

__all__ = [
    "BinarizeConfig",
    "CompareConfig",
    "ComparisonResult",
    "LearnModelConfig",
    "ModelParameters",
    "ProcessingResult",
    "RunOptions",
    "Segmentation",
]
