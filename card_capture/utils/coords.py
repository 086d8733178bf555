from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class Coords:
    """
    Class to represent a pair of coordinates (x, y) or a 2D vector.
    Instances are immutable. Math operations always return a new instance.
    """

    x: float
    "X coordinate."
    y: float
    "Y coordinate."

    def manhattan_distance_to(self, other: "Coords") -> float:
        """
        Returns the Manhattan distance between the point and another one.
        """
        return abs(self.x - other.x) + abs(self.y - other.y)

    def flipped_y(self, height: float = 1.0) -> "Coords":
        """
        Returns the point mirrored on the horizontal axis of a surface of the given height.
        Converts between bottom-left and top-left origins.
        """
        return Coords(self.x, height - self.y)

    def scaled(self, sx: float, sy: float) -> "Coords":
        """
        Returns the point with each axis scaled independently.
        """
        return Coords(self.x * sx, self.y * sy)

    def __add__(self, other: "Coords") -> "Coords":
        return Coords(self.x + other.x, self.y + other.y)

    def __iter__(self) -> Iterator[float]:
        return iter((self.x, self.y))

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"

    def __repr__(self) -> str:
        return str(self)
