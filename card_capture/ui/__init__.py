"""
UI Module - Preview overlay rendering.

This module provides:
- Card outline drawing (primary / fallback colors)
- Status banner with the stability countdown
"""

from .display import (
    draw_observation,
    draw_overlay,
    draw_status_banner,
    status_message
)

__all__ = [
    'draw_observation',
    'draw_overlay',
    'draw_status_banner',
    'status_message',
]
