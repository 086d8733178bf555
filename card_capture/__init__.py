"""
Card Capture - Automatic ID card capture from a live camera feed.

Finds the card outline in every frame, waits until it holds still, then takes
a still photo and straightens it into an upright, cropped landscape image.

Main components:
- config: Centralized configuration (in package root for easy access)
- utils: Geometry types (coordinates, card quadrilaterals)
- detection: Rectangle detection and the contrast-boosted fallback pass
- core: Stability tracking, capture state machine, camera and worker threads
- processing: Perspective correction, orientation, final photo assembly
- ui: Preview overlay rendering
"""

__version__ = "1.0.0"
