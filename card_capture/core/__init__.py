"""
Core Module - Stability tracking, capture state machine, camera and workers.

This module contains the temporal side of the card capture pipeline:
- Frame-to-frame stability tracking (stability.py)
- Capture state machine and its owner (orchestrator.py)
- Threaded camera capture and still capture (camera_thread.py)
- Background worker threads (workers.py)
- Camera discovery and output helpers (utils.py)
"""

from .stability import StabilityOutcome, StabilityState, StabilityTracker, evaluate_stability
from .orchestrator import (
    CaptureOrchestrator,
    CaptureRequest,
    CaptureSession,
    CaptureSettings,
    CaptureState,
    CaptureTrigger,
    transition,
)
from .camera_thread import CameraAccess, Frame, ThreadedCamera, check_camera_access, setup_camera
from .workers import DetectionWorker, OrchestratorWorker

__all__ = [
    # Stability
    'StabilityOutcome',
    'StabilityState',
    'StabilityTracker',
    'evaluate_stability',
    # Capture state machine
    'CaptureOrchestrator',
    'CaptureRequest',
    'CaptureSession',
    'CaptureSettings',
    'CaptureState',
    'CaptureTrigger',
    'transition',
    # Camera
    'CameraAccess',
    'Frame',
    'ThreadedCamera',
    'check_camera_access',
    'setup_camera',
    # Workers
    'DetectionWorker',
    'OrchestratorWorker',
]
