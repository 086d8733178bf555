"""
Contrast-boosted fallback detection for Card Capture.

Low-contrast card edges (a white card on a light desk) often fail the primary
pass. Rather than loosening the detection thresholds for every frame, the
frame is re-examined once with a slight contrast boost.
"""

import cv2 as cv
import logging

from card_capture.config import FallbackConfig
from card_capture.utils.quad import DetectionSource

logger = logging.getLogger(__name__)


def enhance_contrast(frame, factor=FallbackConfig.CONTRAST_FACTOR,
                     pivot=FallbackConfig.CONTRAST_PIVOT):
    """
    Return a contrast-boosted copy of a frame.

    Intensities are stretched around `pivot`: out = pivot + factor * (in - pivot),
    saturated to the frame's value range. The input is never modified.

    Args:
        frame (numpy.ndarray): 8-bit image
        factor (float): Contrast multiplier (1.0 = unchanged)
        pivot (float): Intensity left unchanged by the boost

    Returns:
        numpy.ndarray: New image with the same shape and dtype
    """
    return cv.addWeighted(frame, factor, frame, 0.0, pivot * (1.0 - factor))


class ContrastFallbackDetector:
    """
    Second detection pass run on a contrast-enhanced copy of the frame.

    Uses the same detector (and therefore the same configuration) as the
    primary pass. Observations it finds are tagged as fallback-sourced.
    """

    def __init__(self, detector, factor=None):
        """
        Initialize the fallback detector.

        Args:
            detector (RectangleDetector): Detector shared with the primary pass
            factor (float): Contrast multiplier. If None, uses config default.
        """
        self.detector = detector
        self.factor = factor if factor is not None else FallbackConfig.CONTRAST_FACTOR

    def detect(self, frame):
        """
        Re-run detection on a contrast-boosted copy of `frame`.

        Args:
            frame (numpy.ndarray): Original frame

        Returns:
            Observation or None: Fallback-tagged observation, or None
        """
        if frame is None or frame.size == 0:
            return None

        try:
            enhanced = enhance_contrast(frame, self.factor)
        except (cv.error, MemoryError) as e:
            logger.warning(f"Contrast enhancement failed: {e}")
            return None

        observation = self.detector.detect(enhanced, source=DetectionSource.FALLBACK)
        if observation is not None:
            logger.debug("Card found by contrast fallback pass")
        return observation


def detect_with_fallback(frame, detector, fallback=None):
    """
    Run the primary pass and, if it finds nothing, the fallback pass.

    Args:
        frame (numpy.ndarray): Frame to examine
        detector (RectangleDetector): Primary detector
        fallback (ContrastFallbackDetector): Optional fallback detector

    Returns:
        Observation or None: First observation found
    """
    observation = detector.detect(frame)
    if observation is None and fallback is not None:
        observation = fallback.detect(frame)
    return observation
