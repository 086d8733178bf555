"""
Configuration module for Card Capture.

This module contains all configuration parameters and constants used throughout the application.
Centralizing configuration makes it easier to tune parameters and understand system behavior.

TUNING NOTES:
- Cards on light backgrounds: keep FallbackConfig.ENABLED so the contrast-boosted pass runs
- Shaky hands: raise StabilityConfig.CORNER_TOLERANCE slightly rather than lowering REQUIRED_FRAMES
- Slow machines: lower CameraConfig.DEFAULT_WIDTH/HEIGHT, detection cost scales with frame area
"""

from dataclasses import dataclass
from typing import Tuple


# ==================== Camera Configuration ====================
class CameraConfig:
    """Camera capture configuration parameters."""

    # Default camera resolution
    DEFAULT_WIDTH = 1280
    DEFAULT_HEIGHT = 720

    # Camera buffer size (one frame, stale frames are dropped)
    BUFFER_SIZE = 1

    # Continuous autofocus where the backend supports it
    AUTOFOCUS = 1

    # Target FPS for camera (actual may vary by camera capability)
    TARGET_FPS = 30

    # Camera backend to use (None lets OpenCV choose)
    BACKEND = None

    # Seconds to wait for the first frame before reporting the camera as unavailable
    FIRST_FRAME_TIMEOUT = 2.0

    # Flash is always off for still captures
    STILL_FLASH = False

    # Run without a preview window
    HEADLESS = False


# ==================== Detection Configuration ====================
class DetectionConfig:
    """Configuration for single-frame rectangle detection."""

    # Accepted card aspect ratio, long side / short side (ID-1 cards are ~1.586)
    MIN_ASPECT_RATIO = 1.5
    MAX_ASPECT_RATIO = 1.7

    # Shorter card side relative to the shorter frame side
    MIN_SIZE = 0.2

    # Contour area / fitted quadrilateral area
    MIN_CONFIDENCE = 0.7

    # At most this many observations per frame
    MAX_OBSERVATIONS = 1

    # Preprocessing
    BLUR_KSIZE = 5
    CANNY_LOW_MULT = 0.66
    CANNY_HIGH_MULT = 1.33
    DILATE_ITERATIONS = 1

    # Polygon approximation tolerance, fraction of contour perimeter
    APPROX_EPSILON = 0.02

    # Lowest Canny threshold, keeps flat dark frames from producing noise edges
    CANNY_MIN_THRESHOLD = 10

    # Frames are downscaled so the longer side is at most this many pixels
    MAX_SIDE = 960


# ==================== Fallback Detection Configuration ====================
class FallbackConfig:
    """Configuration for the contrast-boosted fallback detection pass."""

    # Run the fallback pass when primary detection finds nothing
    ENABLED = True

    # Contrast multiplier applied around mid-grey
    CONTRAST_FACTOR = 1.15

    # Pivot intensity for the contrast boost
    CONTRAST_PIVOT = 127.5


# ==================== Stability Configuration ====================
class StabilityConfig:
    """Configuration for frame-to-frame stability tracking."""

    # Per-corner Manhattan distance (normalized coordinates) still counted as "not moved"
    CORNER_TOLERANCE = 0.015

    # Consecutive stable frames needed before an automatic capture
    REQUIRED_FRAMES = 30


# ==================== Rectification Configuration ====================
class RectifyConfig:
    """Configuration for perspective correction of the captured still."""

    # Interpolation used by warpPerspective
    INTERPOLATION = 1  # cv2.INTER_LINEAR

    # Smallest output side (pixels) accepted as a valid rectification
    MIN_OUTPUT_SIDE = 2


# ==================== UI Configuration ====================
class UIConfig:
    """Configuration for the preview overlay."""

    # Colors (BGR format)
    COLOR_GREEN = (0, 255, 0)
    COLOR_CYAN = (255, 255, 0)
    COLOR_YELLOW = (0, 255, 255)
    COLOR_WHITE = (255, 255, 255)

    # Outline thickness
    OUTLINE_THICKNESS = 3
    GUIDE_THICKNESS = 2

    # Countdown turns green this many frames before capture
    COUNTDOWN_GREEN_MARGIN = 5

    # Text display
    FONT_SCALE = 0.8
    FONT_THICKNESS = 2
    BANNER_MARGIN = 20
    BANNER_OFFSET = 120

    # Messages
    MSG_HOLD_STEADY = "Hold the card steady: {count}/{required}"
    MSG_FIT_CARD = "Fit the card inside the frame"
    MSG_CAPTURING = "Capturing..."
    FALLBACK_SUFFIX = " (B)"

    WINDOW_NAME = "Card Capture"


# ==================== Worker Thread Configuration ====================
class WorkerConfig:
    """Configuration for background worker threads."""

    # Queue sizes
    FRAME_QUEUE_MAXSIZE = 1
    EVENT_QUEUE_MAXSIZE = 0  # unbounded, capture completions must never be dropped

    # Queue timeout (seconds)
    QUEUE_TIMEOUT = 0.1

    # Thread shutdown timeout (seconds)
    THREAD_SHUTDOWN_TIMEOUT = 2.0


# ==================== Runtime settings ====================

@dataclass(frozen=True)
class DetectionSettings:
    """
    Fixed configuration handed to a rectangle detector.
    Defaults come from `DetectionConfig`.
    """

    aspect_ratio_range: Tuple[float, float] = (
        DetectionConfig.MIN_ASPECT_RATIO,
        DetectionConfig.MAX_ASPECT_RATIO,
    )
    "Accepted long side / short side band."
    min_size: float = DetectionConfig.MIN_SIZE
    "Shorter card side relative to the shorter frame side."
    min_confidence: float = DetectionConfig.MIN_CONFIDENCE
    "Minimum detection confidence."
    max_observations: int = DetectionConfig.MAX_OBSERVATIONS
    "Maximum observations returned per frame."

    def __post_init__(self) -> None:
        low, high = self.aspect_ratio_range
        if low <= 0 or high < low:
            raise ValueError(f"Invalid aspect ratio range: {self.aspect_ratio_range}")
        if self.max_observations < 1:
            raise ValueError("max_observations must be at least 1")


@dataclass(frozen=True)
class StabilitySettings:
    """
    Tolerance and run length used by the stability tracker.
    Defaults come from `StabilityConfig`.
    """

    tolerance: float = StabilityConfig.CORNER_TOLERANCE
    "Per-corner Manhattan distance below which a corner counts as still."
    required_frames: int = StabilityConfig.REQUIRED_FRAMES
    "Consecutive stable frames needed before stability is reported."

    def __post_init__(self) -> None:
        if self.tolerance <= 0:
            raise ValueError("tolerance must be positive")
        if self.required_frames < 1:
            raise ValueError("required_frames must be at least 1")
