"""
Threaded camera capture for Card Capture.

This module provides a background thread that continuously reads frames from
the camera and pushes them to a consumer, plus the asynchronous still-capture
primitive used once a card is stable.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
import threading
import time
import logging

import cv2 as cv
import numpy as np

from card_capture.config import CameraConfig

logger = logging.getLogger(__name__)


class CameraAccess(Enum):
    """Camera availability as seen by the application."""

    AUTHORIZED = "authorized"
    NOT_DETERMINED = "not_determined"
    DENIED = "denied"


@dataclass(frozen=True)
class Frame:
    """One video frame."""

    image: np.ndarray
    timestamp: float
    "Monotonic capture time in seconds."
    index: int
    "Sequence number, strictly increasing."


def check_camera_access(cap, timeout=CameraConfig.FIRST_FRAME_TIMEOUT):
    """
    Determine whether frames can be read from a capture device.

    Args:
        cap: OpenCV VideoCapture (or compatible) object
        timeout (float): Seconds to wait for a first frame

    Returns:
        CameraAccess: DENIED if the device cannot be opened, NOT_DETERMINED if it
                      opened but produced no frame in time, AUTHORIZED otherwise
    """
    if cap is None or not cap.isOpened():
        return CameraAccess.DENIED

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        ret, _ = cap.read()
        if ret:
            return CameraAccess.AUTHORIZED
        time.sleep(0.05)
    return CameraAccess.NOT_DETERMINED


class ThreadedCamera:
    """
    Background thread for continuous camera frame capture.

    Every frame read is pushed to `frame_sink` (if given) as a `Frame`. The sink
    must not block; consumers that are busy drop frames rather than queue them.
    Still captures run on a single-thread executor, so at most one is in progress.
    """

    def __init__(self, cap, frame_sink=None, start=True):
        """
        Initialize threaded camera capture.

        Args:
            cap: OpenCV VideoCapture object
            frame_sink (callable): Called with each new Frame from the capture thread
            start (bool): Start the capture thread immediately
        """
        self.cap = cap
        self.frame_sink = frame_sink
        self.frame = None
        self.frame_index = 0
        self.stopped = False
        self.lock = threading.Lock()
        self.new_frame = threading.Condition(self.lock)

        self._still_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="StillCapture")
        self.thread = threading.Thread(target=self._read_frames, daemon=True, name="CameraThread")
        if start:
            self.start()

    def start(self):
        """Start the capture thread and wait briefly for the first frame."""
        self.thread.start()

        with self.new_frame:
            self.new_frame.wait_for(lambda: self.frame is not None,
                                    timeout=CameraConfig.FIRST_FRAME_TIMEOUT)
            ready = self.frame is not None

        if not ready:
            logger.warning("ThreadedCamera started but no frame captured yet")
        else:
            logger.info("ThreadedCamera started and ready")

    def _read_frames(self):
        """Background thread that continuously reads frames."""
        while not self.stopped:
            ret, image = self.cap.read()
            if not ret or image is None:
                time.sleep(0.01)
                continue

            with self.new_frame:
                self.frame_index += 1
                frame = Frame(image, time.monotonic(), self.frame_index)
                self.frame = frame
                self.new_frame.notify_all()

            if self.frame_sink is not None:
                try:
                    self.frame_sink(frame)
                except Exception as e:
                    logger.error(f"Frame consumer failed: {e}", exc_info=True)

    def read(self):
        """
        Get the latest frame (non-blocking).

        Returns:
            Frame or None: Latest frame, None before the first one arrives
        """
        with self.lock:
            return self.frame

    def capture_still(self, settings=None):
        """
        Capture a still image asynchronously.

        The still is the first frame read after the request, so it never shows
        the scene from before the capture was triggered.

        Args:
            settings (CaptureSettings): Capture settings (flash is not supported by webcams)

        Returns:
            concurrent.futures.Future: Resolves to a BGR image array, or raises on failure
        """
        if settings is not None and getattr(settings, 'flash', False):
            logger.debug("Flash requested but not supported, capturing without flash")
        return self._still_executor.submit(self._grab_still)

    def _grab_still(self):
        with self.new_frame:
            requested_after = self.frame_index
            got_frame = self.new_frame.wait_for(
                lambda: self.frame_index > requested_after or self.stopped,
                timeout=CameraConfig.FIRST_FRAME_TIMEOUT,
            )
            if not got_frame or self.stopped or self.frame is None:
                raise RuntimeError("No camera frame available for still capture")
            return self.frame.image.copy()

    def stop(self):
        """Stop the background thread and the still executor."""
        self.stopped = True
        with self.new_frame:
            self.new_frame.notify_all()
        if self.thread.is_alive():
            self.thread.join(timeout=1.0)
        self._still_executor.shutdown(wait=True)
        logger.info("ThreadedCamera stopped")

    def release(self):
        """Release the camera (stops thread and releases VideoCapture)."""
        self.stop()
        self.cap.release()

    def isOpened(self):
        """Check if camera is still open."""
        return self.cap.isOpened()


def setup_camera(cam_port, frame_sink=None):
    """
    Initialize and configure the camera.

    Args:
        cam_port (int): Camera port number
        frame_sink (callable): Consumer for pushed frames

    Returns:
        tuple: (ThreadedCamera or None, CameraAccess)
    """
    logger.info(f"Setting up camera on port {cam_port}")

    if CameraConfig.BACKEND:
        cap = cv.VideoCapture(cam_port, CameraConfig.BACKEND)
    else:
        cap = cv.VideoCapture(cam_port)

    # Set buffer size BEFORE other properties to reduce latency
    cap.set(cv.CAP_PROP_BUFFERSIZE, CameraConfig.BUFFER_SIZE)
    cap.set(cv.CAP_PROP_FPS, CameraConfig.TARGET_FPS)
    cap.set(cv.CAP_PROP_FRAME_WIDTH, CameraConfig.DEFAULT_WIDTH)
    cap.set(cv.CAP_PROP_FRAME_HEIGHT, CameraConfig.DEFAULT_HEIGHT)
    cap.set(cv.CAP_PROP_AUTOFOCUS, CameraConfig.AUTOFOCUS)

    access = check_camera_access(cap)
    if access is not CameraAccess.AUTHORIZED:
        # Reported once; without camera access no frames ever arrive
        logger.warning(f"Camera access {access.value}, no frames will be processed")
        cap.release()
        return None, access

    actual_fps = cap.get(cv.CAP_PROP_FPS)
    actual_width = cap.get(cv.CAP_PROP_FRAME_WIDTH)
    actual_height = cap.get(cv.CAP_PROP_FRAME_HEIGHT)
    logger.info(f"Camera configured: {actual_width:.0f}x{actual_height:.0f} @ {actual_fps:.1f}fps")

    return ThreadedCamera(cap, frame_sink=frame_sink), access
