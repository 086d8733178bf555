"""
Processing Module - Turning the captured still into the finished card image.

This module provides:
- Homography-based perspective correction (rectifier.py)
- Landscape orientation normalization (orientation.py)
- Decoding, post-hoc detection and final assembly (photo.py)
"""

from .rectifier import PerspectiveRectifier
from .orientation import ensure_landscape, is_landscape
from .photo import PhotoProcessor, decode_still

__all__ = [
    'PerspectiveRectifier',
    'ensure_landscape',
    'is_landscape',
    'PhotoProcessor',
    'decode_still',
]
