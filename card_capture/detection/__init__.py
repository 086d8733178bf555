"""
Detection Module - Card outline detection in single frames.

This module provides:
- Edge/contour based rectangle detection (rectangle_detector.py)
- Contrast-boosted fallback pass for low-contrast scenes (contrast_fallback.py)
"""

from .rectangle_detector import RectangleDetector, order_corners
from .contrast_fallback import ContrastFallbackDetector, detect_with_fallback, enhance_contrast

__all__ = [
    'RectangleDetector',
    'order_corners',
    'ContrastFallbackDetector',
    'detect_with_fallback',
    'enhance_contrast',
]
