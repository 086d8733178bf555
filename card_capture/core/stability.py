"""
Frame-to-frame stability tracking for Card Capture.

A card counts as stable when every one of its four corners moves less than a
tolerance between consecutive frames. Each frame is compared with the one
immediately before it, not with a fixed anchor, so slow drift such as hand
tremor still settles eventually. Per-corner thresholds reject translation,
rotation and skew jitter alike.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import logging

from card_capture.config import StabilitySettings
from card_capture.utils.quad import Observation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StabilityState:
    """
    Memory of the stability tracker between frames.
    """

    last_observation: Optional[Observation] = None
    "Observation from the previous frame, None after a frame without detection."
    stable_count: int = 0
    "Consecutive stable frames in the current run."


@dataclass(frozen=True)
class StabilityOutcome:
    """
    Result of evaluating one frame.
    """

    detected: bool
    "A card was observed in this frame."
    stable_count: int
    "Length of the stable run including this frame."
    achieved: bool = False
    "The run just reached the required number of frames."

    @property
    def counting(self) -> bool:
        """
        True while a stable run is in progress.
        """
        return self.detected and self.stable_count > 0 and not self.achieved


def evaluate_stability(
    state: StabilityState,
    observation: Optional[Observation],
    settings: StabilitySettings,
) -> Tuple[StabilityState, StabilityOutcome]:
    """
    Pure stability transition for one frame.

    Returns the next state and the outcome. Reaching `required_frames` is
    reported once and the counter restarts from 0, so a fresh run is needed
    before stability is reported again.
    """
    if observation is None:
        return StabilityState(), StabilityOutcome(detected=False, stable_count=0)

    last = state.last_observation
    if last is None:
        return (
            StabilityState(last_observation=observation, stable_count=0),
            StabilityOutcome(detected=True, stable_count=0),
        )

    if observation.is_close_to(last, settings.tolerance):
        count = state.stable_count + 1
    else:
        count = 0

    if count >= settings.required_frames:
        return (
            StabilityState(last_observation=observation, stable_count=0),
            StabilityOutcome(detected=True, stable_count=count, achieved=True),
        )

    return (
        StabilityState(last_observation=observation, stable_count=count),
        StabilityOutcome(detected=True, stable_count=count),
    )


class StabilityTracker:
    """
    Stateful wrapper around `evaluate_stability`.

    Owns the last observation and the consecutive-stable counter.
    """

    def __init__(self, settings: Optional[StabilitySettings] = None) -> None:
        self.settings = settings if settings is not None else StabilitySettings()
        self.state = StabilityState()

    @property
    def stable_count(self) -> int:
        return self.state.stable_count

    @property
    def last_observation(self) -> Optional[Observation]:
        return self.state.last_observation

    def evaluate(self, observation: Optional[Observation]) -> StabilityOutcome:
        """
        Feed one frame's observation (or None) and return the outcome.
        """
        self.state, outcome = evaluate_stability(self.state, observation, self.settings)
        if outcome.achieved:
            logger.info(f"Card stable for {outcome.stable_count} frames")
        return outcome

    def reset(self) -> None:
        self.state = StabilityState()
