"""
Capture package for fitwright.
Persists screenshots taken by commands and embedded in failure messages.
"""

from .screenshot import CaptureResult, ScreenshotStore

__all__ = [
    "CaptureResult",
    "ScreenshotStore",
]
