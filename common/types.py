from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Sequence, Tuple
import numpy as np


Coord = Tuple[float, float]


@dataclass(slots=True, eq=False)
class InterestPoint:
    """
    A detected image feature.

    Attributes:
        x, y: pixel coordinates (column, row), pixel centres at integers.
        scale: detector scale (keypoint diameter for OpenCV detectors).
        orientation: dominant orientation in degrees (-1 if not computed).
        response: detector strength.
        octave: pyramid level the point was found on.
        descriptor: 1-D numpy array; dtype is whatever the extractor emits.

    Two points are considered the same feature when their (x, y) coincide;
    ``==`` compares every field so codec round trips can be checked directly.
    """
    x: float
    y: float
    scale: float = 1.0
    orientation: float = -1.0
    response: float = 0.0
    octave: int = 0
    descriptor: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint8), repr=False)

    def __post_init__(self) -> None:
        self.x = float(self.x)
        self.y = float(self.y)
        self.scale = float(self.scale)
        self.orientation = float(self.orientation)
        self.response = float(self.response)
        self.octave = int(self.octave)
        if not isinstance(self.descriptor, np.ndarray):
            self.descriptor = np.asarray(self.descriptor)
        if self.descriptor.ndim != 1:
            raise ValueError("descriptor must be 1-D")

    @property
    def coord(self) -> Coord:
        return (self.x, self.y)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InterestPoint):
            return NotImplemented
        return (
            self.x == other.x
            and self.y == other.y
            and self.scale == other.scale
            and self.orientation == other.orientation
            and self.response == other.response
            and self.octave == other.octave
            and self.descriptor.dtype == other.descriptor.dtype
            and np.array_equal(self.descriptor, other.descriptor)
        )

    __hash__ = None  # type: ignore[assignment]

    def to_meta(self) -> Dict[str, Any]:
        """Loggable summary without descriptor bytes."""
        return {
            "x": self.x,
            "y": self.y,
            "scale": self.scale,
            "orientation": self.orientation,
            "response": self.response,
            "octave": self.octave,
            "descriptor_len": int(self.descriptor.size),
        }


@dataclass(frozen=True, slots=True)
class CorrespondenceSet:
    """
    Matched interest points: ``left[i]`` pairs with ``right[i]``.

    The index is the only correlation key, so both sides always have the
    same length.
    """
    left: Tuple[InterestPoint, ...] = ()
    right: Tuple[InterestPoint, ...] = ()

    def __post_init__(self) -> None:
        # frozen: normalise lists through object.__setattr__
        object.__setattr__(self, "left", tuple(self.left))
        object.__setattr__(self, "right", tuple(self.right))
        if len(self.left) != len(self.right):
            raise ValueError(
                f"left/right length mismatch: {len(self.left)} != {len(self.right)}"
            )

    @classmethod
    def from_pairs(cls, pairs: Sequence[Tuple[InterestPoint, InterestPoint]]) -> "CorrespondenceSet":
        return cls(tuple(p[0] for p in pairs), tuple(p[1] for p in pairs))

    def __len__(self) -> int:
        return len(self.left)

    def __iter__(self) -> Iterator[Tuple[InterestPoint, InterestPoint]]:
        return iter(zip(self.left, self.right))

    def subset(self, indices: Sequence[int]) -> "CorrespondenceSet":
        """Keep the given indices, in the order given."""
        idx = [int(i) for i in indices]
        return CorrespondenceSet(
            tuple(self.left[i] for i in idx),
            tuple(self.right[i] for i in idx),
        )

    def left_xy(self) -> np.ndarray:
        return _xy(self.left)

    def right_xy(self) -> np.ndarray:
        return _xy(self.right)


def _xy(points: Sequence[InterestPoint]) -> np.ndarray:
    if not points:
        return np.zeros((0, 2), dtype=float)
    return np.array([p.coord for p in points], dtype=float)
