"""
Infrastructure package for segmenter.

This package contains the ChromHMM subprocess runner, output file parsing and
writing, logging and command line handling.
"""
