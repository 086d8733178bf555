"""
Perspective correction of the captured still.

Maps the card quadrilateral onto an axis-aligned rectangle with a homography
so the output contains only the card, seen straight on.
"""

import cv2 as cv
import numpy as np
import logging

from card_capture.config import RectifyConfig

logger = logging.getLogger(__name__)


def target_size(quad):
    """
    Output size for a clockwise-ordered quad: the longer of each pair of opposite edges.

    Args:
        quad (numpy.ndarray): (4, 2) pixel corners ordered TL, TR, BR, BL

    Returns:
        tuple: (width, height) in whole pixels
    """
    tl, tr, br, bl = quad
    width = max(np.linalg.norm(tr - tl), np.linalg.norm(br - bl))
    height = max(np.linalg.norm(bl - tl), np.linalg.norm(br - tr))
    return int(round(width)), int(round(height))


class PerspectiveRectifier:
    """
    Warps the region inside a card observation onto an upright rectangle.

    Failures never propagate: the original image is returned instead.
    """

    def __init__(self, interpolation=RectifyConfig.INTERPOLATION,
                 min_output_side=RectifyConfig.MIN_OUTPUT_SIDE):
        self.interpolation = interpolation
        self.min_output_side = min_output_side

    def rectify(self, image, observation):
        """
        Perspective-correct `image` to the card described by `observation`.

        Args:
            image (numpy.ndarray): Full-resolution still
            observation (Observation): Card corners in normalized, bottom-left-origin coordinates

        Returns:
            numpy.ndarray: Rectified card image, or `image` itself on failure
        """
        result = self.try_rectify(image, observation)
        return image if result is None else result

    def try_rectify(self, image, observation):
        """
        Like `rectify` but returns None instead of the original image on failure.
        """
        if image is None or image.size == 0 or observation is None:
            return None

        h, w = image.shape[:2]
        # Normalized coordinates have a bottom-left origin, OpenCV expects top-left
        src = observation.to_pixels(w, h)
        out_w, out_h = target_size(src)
        if min(out_w, out_h) < self.min_output_side:
            logger.warning(f"Degenerate card outline ({out_w}x{out_h}), skipping rectification")
            return None

        dst = np.array([
            [0, 0],
            [out_w, 0],
            [out_w, out_h],
            [0, out_h],
        ], dtype=np.float32)

        try:
            M = cv.getPerspectiveTransform(src, dst)
            warped = cv.warpPerspective(image, M, (out_w, out_h), flags=self.interpolation,
                                        borderMode=cv.BORDER_REPLICATE)
        except cv.error as e:
            logger.warning(f"Perspective correction failed: {e}")
            return None

        if warped is None or warped.size == 0:
            logger.warning("Perspective correction produced an empty image")
            return None

        logger.debug(f"Rectified card to {out_w}x{out_h}")
        return warped
