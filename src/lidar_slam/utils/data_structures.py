"""
Data structures for lidar samples, poses and map cells.
"""

from dataclasses import dataclass
from enum import IntEnum
import numpy as np


@dataclass(frozen=True)
class Sample:
    """Single lidar measurement."""
    angle: float  # Bearing in sensor frame (radians, [0, 2*pi))
    distance: float  # Range (meters)

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [angle, distance]."""
        return np.array([self.angle, self.distance])


@dataclass(frozen=True)
class Pose:
    """Sensor pose in 2D space."""
    x: float  # X position (meters)
    y: float  # Y position (meters)
    theta: float  # Orientation (radians)

    def to_array(self) -> np.ndarray:
        """Convert to numpy array [x, y, theta]."""
        return np.array([self.x, self.y, self.theta])

    @classmethod
    def from_array(cls, pose: np.ndarray):
        """Create from numpy array [x, y, theta]."""
        return cls(x=float(pose[0]), y=float(pose[1]), theta=float(pose[2]))


class CellState(IntEnum):
    """Display band of a grid cell, using 8-bit image values."""
    FREE = 0
    UNKNOWN = 127
    OCCUPIED = 255


def samples_to_arrays(samples):
    """Split a sample list into (angles, distances) float arrays."""
    if not samples:
        return np.empty(0), np.empty(0)
    angles = np.fromiter((s.angle for s in samples), dtype=np.float64, count=len(samples))
    distances = np.fromiter((s.distance for s in samples), dtype=np.float64, count=len(samples))
    return angles, distances
