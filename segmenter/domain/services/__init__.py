"""
Summarization and comparison services over loaded segmentations.
"""

from .enrichment_accessor import EnrichmentAccessor
from .frequency_summarizer import FrequencySummarizer
from .model_comparator import ModelComparator

__all__ = [
    "EnrichmentAccessor",
    "FrequencySummarizer",
    "ModelComparator",
]
