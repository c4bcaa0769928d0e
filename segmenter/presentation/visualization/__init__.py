"""
Visualization package for segmenter.
"""

from .plot_generator import PlotGenerator

__all__ = ["PlotGenerator"]
