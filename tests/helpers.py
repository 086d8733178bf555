"""
Synthetic scene builders and fakes shared by the tests.
"""
from __future__ import annotations

from concurrent.futures import Future

import cv2
import numpy as np

from card_capture.detection.rectangle_detector import order_corners
from card_capture.utils.coords import Coords
from card_capture.utils.quad import Observation

# ID-1 card proportions, 300 x 189 px (~1.587)
CARD_W, CARD_H = 300, 189
FRAME_W, FRAME_H = 640, 480


def card_corners_px(cx: float = FRAME_W / 2, cy: float = FRAME_H / 2,
                    w: float = CARD_W, h: float = CARD_H, angle: float = 0.0) -> np.ndarray:
    """Clockwise TL, TR, BR, BL corners of a (possibly rotated) card."""
    return order_corners(cv2.boxPoints(((cx, cy), (w, h), angle)))


def draw_card_frame(corners: np.ndarray, frame_w: int = FRAME_W, frame_h: int = FRAME_H,
                    background: int = 30, card: int = 235) -> np.ndarray:
    """Dark frame with a light, filled card quadrilateral."""
    frame = np.full((frame_h, frame_w, 3), background, np.uint8)
    cv2.fillConvexPoly(frame, np.round(corners).astype(np.int32), (card, card, card))
    return frame


def make_observation(x: float = 0.25, y: float = 0.25, w: float = 0.5, h: float = 0.3,
                     dx: float = 0.0, dy: float = 0.0) -> Observation:
    """Axis-aligned observation in normalized, bottom-left-origin coordinates."""
    return Observation(
        top_left=Coords(x + dx, y + h + dy),
        top_right=Coords(x + w + dx, y + h + dy),
        bottom_left=Coords(x + dx, y + dy),
        bottom_right=Coords(x + w + dx, y + dy),
        confidence=0.95,
    )


class FakeStillSource:
    """
    Still-capture primitive returning futures the test resolves by hand
    (or immediately when `auto_result` is set).
    """

    def __init__(self, auto_result=None):
        self.auto_result = auto_result
        self.futures = []
        self.settings = []

    def capture_still(self, settings=None):
        self.settings.append(settings)
        future = Future()
        self.futures.append(future)
        if self.auto_result is not None:
            future.set_result(self.auto_result)
        return future


class Recorder:
    """Collects callback invocations."""

    def __init__(self):
        self.calls = []

    def __call__(self, value):
        self.calls.append(value)
