"""
Exception types raised by the segmenter package.
"""

from typing import Optional


class SegmenterError(Exception):
    """Base class for all segmenter errors"""

    pass


class ChromHMMError(SegmenterError):
    """Raised when the ChromHMM subprocess fails or times out"""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        self.returncode = returncode
        self.stderr = stderr
        if stderr:
            message = f"{message}\n{stderr.strip()}"
        super().__init__(message)


class ParseError(SegmenterError, ValueError):
    """Raised when a ChromHMM output file is missing or malformed"""

    def __init__(self, path: str, message: str, line: Optional[int] = None):
        self.path = str(path)
        self.line = line
        location = self.path if line is None else f"{self.path}, line {line}"
        super().__init__(f"{location}: {message}")


class DimensionMismatchError(SegmenterError, ValueError):
    """Raised when models cannot be compared because their marks differ"""

    pass


class EmptyInputError(SegmenterError, ValueError):
    """Raised when an operation receives no models"""

    pass
