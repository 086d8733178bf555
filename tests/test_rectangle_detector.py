"""
Tests for single-frame card detection on synthetic scenes.
"""
from __future__ import annotations

import cv2
import numpy as np
import pytest

from card_capture.config import DetectionSettings
from card_capture.detection.rectangle_detector import RectangleDetector, order_corners
from card_capture.utils.quad import DetectionSource, Observation

from helpers import FRAME_H, FRAME_W, card_corners_px, draw_card_frame


def _expected(corners: np.ndarray) -> Observation:
    return Observation.from_pixels(corners, FRAME_W, FRAME_H)


def _assert_corners_close(obs: Observation, expected: Observation, tol: float = 0.02):
    for got, want in zip(obs.corners, expected.corners):
        assert got.manhattan_distance_to(want) < tol, (got, want)


def test_detects_upright_card(card_frame):
    frame, corners = card_frame
    obs = RectangleDetector().detect(frame)

    assert obs is not None
    assert obs.source is DetectionSource.PRIMARY
    assert obs.confidence >= 0.7
    _assert_corners_close(obs, _expected(corners))
    # bottom-left origin: the top edge has the larger y
    assert obs.top_left.y > obs.bottom_left.y


def test_detects_rotated_card():
    corners = card_corners_px(angle=20)
    frame = draw_card_frame(corners)

    obs = RectangleDetector().detect(frame)

    assert obs is not None
    _assert_corners_close(obs, _expected(corners))


def test_accepts_grayscale_frames(card_frame):
    frame, corners = card_frame
    gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
    obs = RectangleDetector().detect(gray)
    assert obs is not None
    _assert_corners_close(obs, _expected(corners))


@pytest.mark.parametrize("background", [200, 230])
def test_detects_white_card_on_light_background(background):
    corners = card_corners_px()
    frame = draw_card_frame(corners, background=background, card=255)

    obs = RectangleDetector().detect(frame)

    assert obs is not None
    _assert_corners_close(obs, _expected(corners))


def test_rejects_square_outside_aspect_band():
    frame = draw_card_frame(card_corners_px(w=250, h=250))
    assert RectangleDetector().detect(frame) is None


def test_rejects_card_below_minimum_size():
    # short side 60 px is below 0.2 * 480
    frame = draw_card_frame(card_corners_px(w=95, h=60))
    assert RectangleDetector().detect(frame) is None


def test_minimum_size_is_configurable():
    frame = draw_card_frame(card_corners_px(w=95, h=60))
    detector = RectangleDetector(DetectionSettings(min_size=0.1))
    assert detector.detect(frame) is not None


def test_empty_scene_has_no_detection():
    frame = np.full((FRAME_H, FRAME_W, 3), 30, np.uint8)
    assert RectangleDetector().detect(frame) is None
    assert RectangleDetector().detect(None) is None
    assert RectangleDetector().detect(np.zeros((0, 0, 3), np.uint8)) is None


def test_returns_at_most_max_observations():
    frame = np.full((FRAME_H, FRAME_W, 3), 30, np.uint8)
    for cx in (170, 470):
        corners = card_corners_px(cx=cx, w=240, h=151)
        cv2.fillConvexPoly(frame, np.round(corners).astype(np.int32), (235, 235, 235))

    assert len(RectangleDetector().detect_all(frame)) == 1
    two = RectangleDetector(DetectionSettings(max_observations=2)).detect_all(frame)
    assert len(two) == 2


def test_large_frames_are_detected_in_full_resolution_coordinates():
    w, h = 1920, 1440
    corners = card_corners_px(cx=w / 2, cy=h / 2, w=900, h=567)
    frame = draw_card_frame(corners, frame_w=w, frame_h=h)

    obs = RectangleDetector().detect(frame)

    assert obs is not None
    expected = Observation.from_pixels(corners, w, h)
    _assert_corners_close(obs, expected)


def test_opencv_errors_are_reported_as_no_detection(card_frame, monkeypatch):
    frame, _ = card_frame

    def boom(*args, **kwargs):
        raise cv2.error("simulated failure")

    monkeypatch.setattr("card_capture.detection.rectangle_detector.cv.findContours", boom)
    assert RectangleDetector().detect(frame) is None


def test_order_corners_is_clockwise_from_top_left():
    shuffled = np.array([[300, 200], [10, 20], [10, 200], [300, 20]], dtype=np.float32)
    np.testing.assert_allclose(order_corners(shuffled),
                               [[10, 20], [300, 20], [300, 200], [10, 200]])


def test_invalid_settings_raise():
    with pytest.raises(ValueError):
        DetectionSettings(aspect_ratio_range=(1.7, 1.5))
    with pytest.raises(ValueError):
        DetectionSettings(max_observations=0)
