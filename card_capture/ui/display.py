"""
UI Display Module - Drawing the live preview overlay.

This module draws the detected card outline and the status banner that tells
the user what to do: fit the card in the frame, then hold it steady.
"""

import cv2 as cv
import numpy as np
import logging

from card_capture.config import UIConfig

logger = logging.getLogger(__name__)


def draw_observation(display_img, observation):
    """
    Draw the card outline on the preview image.

    Primary detections are drawn in green, fallback detections in cyan, with a
    thinner white guide on top.

    Args:
        display_img (numpy.ndarray): Image to draw on (modified in place)
        observation (Observation): Card outline, or None

    Returns:
        numpy.ndarray: Image with outline drawn
    """
    if observation is None:
        return display_img

    h, w = display_img.shape[:2]
    pts = np.int32(observation.to_pixels(w, h)).reshape(-1, 1, 2)
    color = UIConfig.COLOR_CYAN if observation.is_fallback else UIConfig.COLOR_GREEN

    try:
        cv.polylines(display_img, [pts], isClosed=True, color=color,
                     thickness=UIConfig.OUTLINE_THICKNESS)
        cv.polylines(display_img, [pts], isClosed=True, color=UIConfig.COLOR_WHITE,
                     thickness=UIConfig.GUIDE_THICKNESS, lineType=cv.LINE_AA)
    except cv.error as e:
        logger.debug(f"Error drawing card outline: {e}")

    return display_img


def status_message(stable_count, required_frames, is_fallback=False, capturing=False):
    """
    Build the status banner text and color.

    Args:
        stable_count (int): Current stable run length
        required_frames (int): Run length that triggers a capture
        is_fallback (bool): The outline came from the fallback pass
        capturing (bool): A still capture is in progress

    Returns:
        tuple: (text, BGR color)
    """
    if capturing:
        return UIConfig.MSG_CAPTURING, UIConfig.COLOR_GREEN
    suffix = UIConfig.FALLBACK_SUFFIX if is_fallback else ""
    if stable_count > 0:
        text = UIConfig.MSG_HOLD_STEADY.format(count=stable_count, required=required_frames) + suffix
        if stable_count >= required_frames - UIConfig.COUNTDOWN_GREEN_MARGIN:
            return text, UIConfig.COLOR_GREEN
        return text, UIConfig.COLOR_YELLOW
    return UIConfig.MSG_FIT_CARD + suffix, UIConfig.COLOR_WHITE


def draw_status_banner(display_img, text, color):
    """
    Draw a centered status banner near the bottom of the preview.

    Args:
        display_img (numpy.ndarray): Image to draw on (modified in place)
        text (str): Banner text
        color (tuple): BGR text color

    Returns:
        numpy.ndarray: Image with banner drawn
    """
    h, w = display_img.shape[:2]
    margin = UIConfig.BANNER_MARGIN
    top = max(0, h - UIConfig.BANNER_OFFSET)
    bottom = min(h, top + 40)

    # Darkened strip behind the text
    strip = display_img[top:bottom, margin:max(margin, w - margin)]
    if strip.size > 0:
        strip[:] = (strip * 0.3).astype(display_img.dtype)

    (text_w, text_h), _ = cv.getTextSize(text, cv.FONT_HERSHEY_SIMPLEX,
                                         UIConfig.FONT_SCALE, UIConfig.FONT_THICKNESS)
    x = max(margin, (w - text_w) // 2)
    y = top + (bottom - top + text_h) // 2
    cv.putText(display_img, text, (x, y), cv.FONT_HERSHEY_SIMPLEX,
               UIConfig.FONT_SCALE, color, UIConfig.FONT_THICKNESS, cv.LINE_AA)
    return display_img


def draw_overlay(display_img, observation, stable_count, required_frames, capturing=False):
    """
    Draw the complete preview overlay.

    Args:
        display_img (numpy.ndarray): Image to draw on (modified in place)
        observation (Observation): Latest card outline, or None
        stable_count (int): Current stable run length
        required_frames (int): Run length that triggers a capture
        capturing (bool): A still capture is in progress

    Returns:
        numpy.ndarray: Image with overlay drawn
    """
    if observation is None:
        return display_img

    draw_observation(display_img, observation)
    text, color = status_message(stable_count, required_frames, observation.is_fallback, capturing)
    return draw_status_banner(display_img, text, color)
