"""
Presentation layer of segmenter.
"""
