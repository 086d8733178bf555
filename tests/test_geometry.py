"""
Tests for the geometry types: coordinates and card observations.
"""
from __future__ import annotations

import numpy as np
import pytest

from card_capture.utils.coords import Coords
from card_capture.utils.quad import DetectionSource, Observation

from helpers import make_observation


def test_manhattan_distance_sums_both_axes():
    assert Coords(0.1, 0.2).manhattan_distance_to(Coords(0.4, 0.0)) == pytest.approx(0.5)
    assert Coords(0.3, 0.3).manhattan_distance_to(Coords(0.3, 0.3)) == 0.0


def test_coords_are_immutable():
    c = Coords(1, 2)
    with pytest.raises(Exception):
        c.x = 5  # type: ignore[misc]


def test_flipped_y_moves_origin():
    assert Coords(0.2, 0.9).flipped_y() == Coords(0.2, pytest.approx(0.1))
    assert Coords(10, 30).flipped_y(100) == Coords(10, 70)


def test_corner_distances_are_per_corner():
    a = make_observation()
    b = Observation(
        top_left=a.top_left + Coords(0.01, 0.0),
        top_right=a.top_right,
        bottom_left=a.bottom_left,
        bottom_right=a.bottom_right + Coords(0.0, -0.02),
    )
    tl, tr, bl, br = b.corner_distances(a)
    assert tl == pytest.approx(0.01)
    assert tr == 0.0
    assert bl == 0.0
    assert br == pytest.approx(0.02)
    assert not b.is_close_to(a, 0.015)
    assert b.is_close_to(a, 0.03)


def test_to_pixels_flips_vertical_axis_and_orders_clockwise():
    obs = make_observation(x=0.25, y=0.25, w=0.5, h=0.5)
    pts = obs.to_pixels(200, 100)
    # TL, TR, BR, BL in top-left-origin pixels
    np.testing.assert_allclose(pts, [[50, 25], [150, 25], [150, 75], [50, 75]])
    assert pts.dtype == np.float32


def test_from_pixels_normalizes_with_bottom_left_origin():
    pts = np.array([[50, 25], [150, 25], [150, 75], [50, 75]], dtype=np.float32)
    obs = Observation.from_pixels(pts, 200, 100, confidence=0.8)
    assert obs.top_left == Coords(0.25, 0.75)
    assert obs.bottom_right == Coords(0.75, 0.25)
    assert obs.confidence == pytest.approx(0.8)
    assert obs.source is DetectionSource.PRIMARY


def test_with_source_returns_new_observation():
    obs = make_observation()
    tagged = obs.with_source(DetectionSource.FALLBACK)
    assert tagged.is_fallback
    assert not obs.is_fallback
    assert tagged.corners == obs.corners
