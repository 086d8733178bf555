"""
Single-frame card rectangle detection for Card Capture.

This module finds the card outline in one image using edge detection and
contour approximation, and reports it as a normalized `Observation`.
"""

import cv2 as cv
import numpy as np
import logging

from card_capture.config import DetectionConfig, DetectionSettings
from card_capture.utils.quad import DetectionSource, Observation

logger = logging.getLogger(__name__)


def order_corners(pts):
    """
    Order four points clockwise starting at the top-left corner.

    Args:
        pts (numpy.ndarray): Four (x, y) points in pixel coordinates, any order

    Returns:
        numpy.ndarray: (4, 2) float32 array ordered TL, TR, BR, BL
    """
    pts = np.asarray(pts, dtype=np.float32).reshape(4, 2)
    s = pts.sum(axis=1)
    d = np.diff(pts, axis=1)[:, 0]  # y - x

    tl = pts[np.argmin(s)]
    br = pts[np.argmax(s)]
    tr = pts[np.argmin(d)]
    bl = pts[np.argmax(d)]

    ordered = np.array([tl, tr, br, bl], dtype=np.float32)
    # Sum/diff ordering collapses for near-45 degree quads, fall back to angular order
    if len({tuple(p) for p in ordered.tolist()}) < 4:
        center = pts.mean(axis=0)
        angles = np.arctan2(pts[:, 1] - center[1], pts[:, 0] - center[0])
        ordered = pts[np.argsort(angles)]
        start = int(np.argmin(ordered.sum(axis=1)))
        ordered = np.roll(ordered, -start, axis=0)
    return ordered


def quad_side_lengths(quad):
    """
    Average width and height of a clockwise-ordered quadrilateral.

    Returns:
        tuple: (width, height) in the units of `quad`
    """
    tl, tr, br, bl = quad
    width = (np.linalg.norm(tr - tl) + np.linalg.norm(br - bl)) / 2.0
    height = (np.linalg.norm(bl - tl) + np.linalg.norm(br - tr)) / 2.0
    return float(width), float(height)


def to_grayscale(frame):
    """Convert a BGR, BGRA or single-channel frame to grayscale."""
    if frame.ndim == 2:
        return frame
    if frame.shape[2] == 4:
        return cv.cvtColor(frame, cv.COLOR_BGRA2GRAY)
    return cv.cvtColor(frame, cv.COLOR_BGR2GRAY)


class RectangleDetector:
    """
    Detector for card-shaped quadrilaterals in a single image.

    The configuration is fixed at construction: aspect ratio band, minimum
    relative size, minimum confidence and maximum number of results. Errors
    raised while processing a frame are logged and reported as "no detection".
    """

    def __init__(self, settings=None, max_side=DetectionConfig.MAX_SIDE):
        """
        Initialize the detector.

        Args:
            settings (DetectionSettings): Detection configuration. If None, uses config defaults.
            max_side (int): Frames are downscaled so their longer side is at most this many pixels
        """
        self.settings = settings if settings is not None else DetectionSettings()
        self.max_side = max_side

    def detect(self, frame, source=DetectionSource.PRIMARY):
        """
        Detect the best card outline in a frame.

        Args:
            frame (numpy.ndarray): BGR, BGRA or grayscale image
            source (DetectionSource): Tag attached to the returned observation

        Returns:
            Observation or None: Best observation, or None if nothing qualifies
        """
        observations = self.detect_all(frame, source=source)
        return observations[0] if observations else None

    def detect_all(self, frame, source=DetectionSource.PRIMARY):
        """
        Detect up to `max_observations` card outlines, best first.

        Args:
            frame (numpy.ndarray): BGR, BGRA or grayscale image
            source (DetectionSource): Tag attached to the returned observations

        Returns:
            list: Observations sorted by score, possibly empty
        """
        if frame is None or frame.size == 0:
            return []

        try:
            candidates = self._find_candidates(frame)
        except cv.error as e:
            logger.warning(f"Rectangle detection failed: {e}")
            return []

        candidates.sort(key=lambda c: c[0], reverse=True)
        h, w = frame.shape[:2]
        observations = []
        for _, quad, confidence in candidates[:self.settings.max_observations]:
            observations.append(
                Observation.from_pixels(quad, w, h, confidence=confidence, source=source)
            )
        return observations

    def _find_candidates(self, frame):
        """
        Run edge detection and contour approximation on a frame.

        Returns:
            list: (score, quad, confidence) tuples, quad in full-resolution pixels
        """
        gray = to_grayscale(frame)
        h, w = gray.shape[:2]

        scale = 1.0
        if max(h, w) > self.max_side:
            scale = self.max_side / float(max(h, w))
            gray = cv.resize(gray, (max(1, int(round(w * scale))), max(1, int(round(h * scale)))),
                             interpolation=cv.INTER_AREA)
        sh, sw = gray.shape[:2]

        edges = self._edge_map(gray)
        contours, _ = cv.findContours(edges, cv.RETR_EXTERNAL, cv.CHAIN_APPROX_SIMPLE)

        min_side_px = self.settings.min_size * min(sh, sw)
        low_ar, high_ar = self.settings.aspect_ratio_range
        min_area = min_side_px * min_side_px * low_ar * self.settings.min_confidence

        candidates = []
        for contour in contours:
            area = cv.contourArea(contour)
            if area < min_area:
                continue

            peri = cv.arcLength(contour, True)
            approx = cv.approxPolyDP(contour, DetectionConfig.APPROX_EPSILON * peri, True)
            if len(approx) != 4 or not cv.isContourConvex(approx):
                continue

            quad = order_corners(approx.reshape(4, 2))
            width, height = quad_side_lengths(quad)
            short_side, long_side = min(width, height), max(width, height)
            if short_side <= 0:
                continue

            aspect = long_side / short_side
            if not (low_ar <= aspect <= high_ar):
                logger.debug(f"Rejected quad with aspect ratio {aspect:.2f}")
                continue
            if short_side < min_side_px:
                continue

            quad_area = cv.contourArea(quad)
            if quad_area <= 0:
                continue
            confidence = min(area, quad_area) / max(area, quad_area)
            if confidence < self.settings.min_confidence:
                logger.debug(f"Rejected quad with confidence {confidence:.2f}")
                continue

            candidates.append((confidence * quad_area, quad / scale, confidence))

        return candidates

    def _edge_map(self, gray):
        """
        Build a binary edge map with median-adaptive Canny thresholds.

        Args:
            gray (numpy.ndarray): Grayscale image

        Returns:
            numpy.ndarray: Dilated edge map
        """
        k = DetectionConfig.BLUR_KSIZE
        blurred = cv.GaussianBlur(gray, (k, k), 0)

        # Edge strength is bounded by the headroom left above a bright background,
        # so the median is measured from the nearer end of the intensity range
        median = float(np.median(blurred))
        v = min(median, 255.0 - median)
        lower = int(max(DetectionConfig.CANNY_MIN_THRESHOLD, DetectionConfig.CANNY_LOW_MULT * v))
        upper = int(min(255, max(lower + DetectionConfig.CANNY_MIN_THRESHOLD,
                                 DetectionConfig.CANNY_HIGH_MULT * v)))
        edges = cv.Canny(blurred, lower, upper)

        kernel = np.ones((3, 3), np.uint8)
        return cv.dilate(edges, kernel, iterations=DetectionConfig.DILATE_ITERATIONS)
