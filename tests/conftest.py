"""
Shared fixtures. Synthetic images are generated on the fly, so no test assets are required.
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(__file__))

from helpers import card_corners_px, draw_card_frame  # noqa: E402


@pytest.fixture
def card_frame():
    """Frame with an upright card centered on a dark background, plus its pixel corners."""
    corners = card_corners_px()
    return draw_card_frame(corners), corners
