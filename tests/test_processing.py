"""
Tests for perspective correction, orientation and final photo assembly.
"""
from __future__ import annotations

import cv2
import numpy as np

from card_capture.detection.rectangle_detector import RectangleDetector
from card_capture.processing.orientation import ensure_landscape, is_landscape
from card_capture.processing.photo import PhotoProcessor, decode_still
from card_capture.processing.rectifier import PerspectiveRectifier, target_size
from card_capture.utils.coords import Coords
from card_capture.utils.quad import Observation

from helpers import FRAME_H, FRAME_W, draw_card_frame

FULL_FRAME = Observation(
    top_left=Coords(0.0, 1.0),
    top_right=Coords(1.0, 1.0),
    bottom_left=Coords(0.0, 0.0),
    bottom_right=Coords(1.0, 0.0),
)

# TL, TR, BR, BL in pixels
SKEWED = np.array([[100, 80], [520, 120], [500, 400], [120, 360]], dtype=np.float32)


def gradient_image(w=FRAME_W, h=FRAME_H):
    xs = np.linspace(0, 255, w, dtype=np.float32)
    ys = np.linspace(0, 255, h, dtype=np.float32)
    grey = ((xs[None, :] + ys[:, None]) / 2).astype(np.uint8)
    return cv2.cvtColor(grey, cv2.COLOR_GRAY2BGR)


# ==================== Rectifier ====================

def test_target_size_uses_longer_opposite_edges():
    assert target_size(SKEWED) == (422, 281)


def test_full_frame_observation_is_identity():
    image = gradient_image()
    out = PerspectiveRectifier().rectify(image, FULL_FRAME)

    assert out.shape == image.shape
    assert np.abs(out.astype(int) - image.astype(int)).max() <= 1


def test_skewed_card_is_straightened():
    frame = draw_card_frame(SKEWED)
    obs = Observation.from_pixels(SKEWED, FRAME_W, FRAME_H)

    out = PerspectiveRectifier().rectify(frame, obs)

    assert out.shape == (281, 422, 3)
    # only card remains, the dark background is cut away
    assert out.mean() > 200


def test_degenerate_observation_returns_original():
    image = gradient_image()
    point = Coords(0.5, 0.5)
    collapsed = Observation(point, point, point, point)

    rectifier = PerspectiveRectifier()
    assert rectifier.rectify(image, collapsed) is image
    assert rectifier.try_rectify(image, collapsed) is None


def test_warp_failure_returns_original(monkeypatch):
    def boom(*args, **kwargs):
        raise cv2.error("warp failed")

    monkeypatch.setattr(cv2, "warpPerspective", boom)
    image = gradient_image()

    assert PerspectiveRectifier().rectify(image, FULL_FRAME) is image


# ==================== Orientation ====================

def test_landscape_image_passes_through():
    image = np.zeros((100, 200, 3), np.uint8)
    assert ensure_landscape(image) is image


def test_portrait_image_is_rotated_clockwise():
    image = np.zeros((200, 100), np.uint8)
    image[0, 0] = 255  # top-left ends up top-right after a clockwise turn

    out = ensure_landscape(image)

    assert out.shape == (100, 200)
    assert out[0, 199] == 255


def test_square_image_is_not_rotated():
    image = np.zeros((50, 50, 3), np.uint8)
    assert ensure_landscape(image) is image
    assert is_landscape(image)


def test_ensure_landscape_is_idempotent():
    image = np.arange(6 * 4, dtype=np.uint8).reshape(6, 4)
    once = ensure_landscape(image)
    assert np.array_equal(ensure_landscape(once), once)


# ==================== Photo assembly ====================

def test_decode_still_accepts_arrays_and_encoded_bytes():
    image = gradient_image(64, 48)
    assert decode_still(image) is image

    ok, buf = cv2.imencode(".png", image)
    assert ok
    decoded = decode_still(buf.tobytes())
    assert np.array_equal(decoded, image)


def test_decode_still_rejects_garbage():
    assert decode_still(None) is None
    assert decode_still(b"not an image") is None
    assert decode_still(np.zeros((0, 0, 3), np.uint8)) is None
    assert decode_still(12345) is None


def test_processor_crops_to_given_observation():
    frame = draw_card_frame(SKEWED)
    obs = Observation.from_pixels(SKEWED, FRAME_W, FRAME_H)

    out = PhotoProcessor(RectangleDetector()).process(frame, obs)

    assert out.shape == (281, 422, 3)


def test_processor_detects_on_still_without_observation(card_frame):
    frame, _ = card_frame

    out = PhotoProcessor(RectangleDetector()).process(frame)

    h, w = out.shape[:2]
    assert w > h
    assert abs(w - 300) <= 10 and abs(h - 189) <= 10
    assert out.mean() > 200


def test_processor_rotates_portrait_card_to_landscape():
    # upright card in a portrait still: taller than wide after cropping
    corners = np.array([[100, 100], [289, 100], [289, 400], [100, 400]], dtype=np.float32)
    frame = draw_card_frame(corners, frame_w=480, frame_h=640)
    obs = Observation.from_pixels(corners, 480, 640)

    out = PhotoProcessor(RectangleDetector()).process(frame, obs)

    assert out.shape[:2] == (189, 300)


def test_processor_without_card_returns_full_landscape_still():
    still = np.full((640, 480, 3), 60, np.uint8)

    out = PhotoProcessor(RectangleDetector()).process(still)

    assert out.shape == (480, 640, 3)


def test_processor_returns_none_for_undecodable_still():
    assert PhotoProcessor(RectangleDetector()).process(b"\x00\x01") is None
