"""
Final photo assembly for Card Capture.

Turns the raw still delivered by the camera into the image handed to the
"photo taken" collaborator: decode, crop and straighten the card, and rotate
to landscape. Each step degrades to the least-processed valid image.
"""

import cv2 as cv
import numpy as np
import logging

from card_capture.processing.orientation import ensure_landscape
from card_capture.processing.rectifier import PerspectiveRectifier

logger = logging.getLogger(__name__)


def decode_still(payload):
    """
    Convert a raw still into an image array.

    Args:
        payload: numpy image array, or encoded image bytes (JPEG, PNG, ...)

    Returns:
        numpy.ndarray or None: Decoded image, None if conversion failed
    """
    if payload is None:
        return None
    if isinstance(payload, np.ndarray):
        return payload if payload.size > 0 else None
    if isinstance(payload, (bytes, bytearray, memoryview)):
        try:
            image = cv.imdecode(np.frombuffer(payload, dtype=np.uint8), cv.IMREAD_COLOR)
        except cv.error as e:
            logger.error(f"Could not decode captured still: {e}")
            return None
        if image is None:
            logger.error("Could not decode captured still")
        return image
    logger.error(f"Unsupported still payload type: {type(payload).__name__}")
    return None


class PhotoProcessor:
    """
    Produces the finished card image from a captured still.

    With a stored observation the still is cropped to it directly. Without one
    (manual capture with no live detection) rectangle detection runs once on
    the still itself, using the same detector as the live feed.
    """

    def __init__(self, detector, rectifier=None):
        """
        Initialize the processor.

        Args:
            detector (RectangleDetector): Detector used for post-hoc detection on the still
            rectifier (PerspectiveRectifier): Perspective corrector. If None, a default one is created.
        """
        self.detector = detector
        self.rectifier = rectifier if rectifier is not None else PerspectiveRectifier()

    def process(self, payload, observation=None):
        """
        Build the finished image.

        Args:
            payload: Raw still (image array or encoded bytes)
            observation (Observation): Card outline from the live feed, or None

        Returns:
            numpy.ndarray or None: Landscape card image, None if the still could not be decoded
        """
        still = decode_still(payload)
        if still is None:
            return None

        if observation is None:
            observation = self._detect_on_still(still)
            if observation is None:
                logger.info("No card found on the still, returning the full photo")
                return ensure_landscape(still)

        return ensure_landscape(self.rectifier.rectify(still, observation))

    def _detect_on_still(self, still):
        try:
            return self.detector.detect(still)
        except Exception as e:
            logger.warning(f"Detection on captured still failed: {e}")
            return None
