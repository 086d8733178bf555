"""
Utility functions for Card Capture.

This module contains helper functions for camera discovery and for saving
finished card images.
"""

import os
import time
import cv2 as cv
import logging

logger = logging.getLogger(__name__)


# ==================== Camera Management ====================

def list_camera_ports(max_failures=3):
    """
    Test camera ports and return the ones that open and read images.

    Args:
        max_failures (int): Stop after this many consecutive ports fail to open

    Returns:
        list: (port, height, width) tuples for working ports
    """
    working_ports = []
    failures = 0
    dev_port = 0

    while failures < max_failures:
        camera = cv.VideoCapture(dev_port)
        if not camera.isOpened():
            failures += 1
            logger.debug(f"Port {dev_port} is not working.")
        else:
            failures = 0
            is_reading, _ = camera.read()
            w = camera.get(cv.CAP_PROP_FRAME_WIDTH)
            h = camera.get(cv.CAP_PROP_FRAME_HEIGHT)
            if is_reading:
                logger.info(f"Port {dev_port} is working and reads images ({h:.0f} x {w:.0f})")
                working_ports.append((dev_port, h, w))
            else:
                logger.info(f"Port {dev_port} for camera ({h:.0f} x {w:.0f}) is present but does not read.")
        camera.release()
        dev_port += 1

    return working_ports


def select_camera_port(requested=None):
    """
    Pick the camera port to use.

    Args:
        requested (int): Port given on the command line, used as-is when set

    Returns:
        int: Selected camera port number
    """
    if requested is not None:
        return requested

    working_ports = list_camera_ports()
    if working_ports:
        port = working_ports[0][0]
        if len(working_ports) > 1:
            logger.info(f"{len(working_ports)} cameras found, using port {port} (override with --camera)")
        else:
            logger.info(f"Auto-selected camera port {port}")
        return port

    logger.warning("No working cameras detected, using default port 0")
    return 0


# ==================== Output ====================

def save_card_image(image, out_dir, prefix="card"):
    """
    Write a finished card image to disk as JPEG.

    Args:
        image (numpy.ndarray): Image to save
        out_dir (str): Output directory, created if missing
        prefix (str): File name prefix

    Returns:
        str or None: Path written, None if writing failed
    """
    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, f"{prefix}_{time.strftime('%Y%m%d_%H%M%S')}_{int(time.time() * 1000) % 1000:03d}.jpg")
    if not cv.imwrite(path, image):
        logger.error(f"Could not write card image to {path}")
        return None
    return path
