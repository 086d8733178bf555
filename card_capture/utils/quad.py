from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator, Tuple

import numpy as np

from .coords import Coords


class DetectionSource(Enum):
    """
    Which detection pass produced an observation.
    """

    PRIMARY = "primary"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class Observation:
    """
    A detected card outline in one frame.

    Corners are in normalized image coordinates in the range [0, 1] with the
    origin at the bottom-left of the image, so `top_left.y` is larger than
    `bottom_left.y` for an upright card.
    Instances are immutable. A new observation replaces the previous one on every frame.
    """

    top_left: Coords
    "Top-left corner."
    top_right: Coords
    "Top-right corner."
    bottom_left: Coords
    "Bottom-left corner."
    bottom_right: Coords
    "Bottom-right corner."

    confidence: float = 1.0
    "Detection confidence in [0, 1]."
    source: DetectionSource = DetectionSource.PRIMARY
    "Detection pass that produced the observation."

    @property
    def corners(self) -> Tuple[Coords, Coords, Coords, Coords]:
        """
        Returns the corners as (top-left, top-right, bottom-left, bottom-right).
        """
        return self.top_left, self.top_right, self.bottom_left, self.bottom_right

    @property
    def is_fallback(self) -> bool:
        return self.source is DetectionSource.FALLBACK

    def corner_distances(self, other: "Observation") -> Tuple[float, float, float, float]:
        """
        Returns the Manhattan distance between each pair of corresponding corners.
        """
        return tuple(  # type: ignore[return-value]
            mine.manhattan_distance_to(theirs)
            for mine, theirs in zip(self.corners, other.corners)
        )

    def is_close_to(self, other: "Observation", tolerance: float) -> bool:
        """
        True if every corner moved strictly less than `tolerance` from `other`.
        """
        return all(d < tolerance for d in self.corner_distances(other))

    def with_source(self, source: DetectionSource) -> "Observation":
        return replace(self, source=source)

    def to_pixels(self, width: int, height: int) -> np.ndarray:
        """
        Returns the corners as a (4, 2) float32 array in pixel coordinates with
        a top-left origin, ordered clockwise: TL, TR, BR, BL.
        """
        ordered = (self.top_left, self.top_right, self.bottom_right, self.bottom_left)
        return np.array(
            [tuple(c.flipped_y().scaled(width, height)) for c in ordered],
            dtype=np.float32,
        )

    @classmethod
    def from_pixels(
        cls,
        pts: np.ndarray,
        width: int,
        height: int,
        confidence: float = 1.0,
        source: DetectionSource = DetectionSource.PRIMARY,
    ) -> "Observation":
        """
        Builds an observation from a (4, 2) array of pixel corners (top-left
        origin) ordered clockwise: TL, TR, BR, BL.
        """
        p = np.asarray(pts, dtype=np.float64).reshape(4, 2)
        tl, tr, br, bl = (
            Coords(float(x), float(y)).scaled(1.0 / width, 1.0 / height).flipped_y()
            for x, y in p
        )
        return cls(tl, tr, bl, br, confidence=float(confidence), source=source)

    def __iter__(self) -> Iterator[Coords]:
        return iter(self.corners)
