from .coords import Coords
from .quad import DetectionSource, Observation

__all__ = ["Coords", "DetectionSource", "Observation"]
