"""
Probabilistic occupancy grid.

Each cell holds a confidence counter in [0, 65535]. 32768 is the unknown
baseline; hits raise the counter quickly and misses lower it slowly, a
simplified log-odds filter. Cells that were never observed hold a separate
sentinel so the first observation of a cell can be told apart from a cell
that settled back at the baseline.
"""

import math
from typing import Dict, Iterable, Optional, Tuple

import numpy as np

from ..utils.config import require_positive_float, require_positive_int
from ..utils.data_structures import CellState, Pose, Sample
from ..utils.errors import ConfigError


CELL_MIN = 0
CELL_MAX = 65535
CELL_BASELINE = 32768
NEVER_TOUCHED = -1


class OccupancyGrid:
    """Fixed-size occupancy grid updated by ray casting."""

    def __init__(self, config=None):
        """
        Initialize occupancy grid.

        Args:
            config: Mapping configuration dictionary

        Raises:
            ConfigError: On invalid dimensions, resolution or thresholds
        """
        self.config = config or {}

        self._width = require_positive_int(self.config, 'width', 200)
        self._height = require_positive_int(self.config, 'height', 200)
        self._resolution = require_positive_float(self.config, 'resolution', 0.05)

        self.hit_increment = require_positive_int(self.config, 'hit_increment', 2000)
        self.miss_decrement = require_positive_int(self.config, 'miss_decrement', 500)
        self.occupied_threshold = int(self.config.get('occupied_threshold', 45000))
        self.free_threshold = int(self.config.get('free_threshold', 20000))
        if not CELL_MIN <= self.free_threshold < self.occupied_threshold <= CELL_MAX:
            raise ConfigError(
                f"Display thresholds must satisfy 0 <= free < occupied <= 65535, "
                f"got free={self.free_threshold}, occupied={self.occupied_threshold}"
            )

        self.cells = np.full((self._height, self._width), NEVER_TOUCHED, dtype=np.int32)
        self.display = np.full((self._height, self._width), CellState.UNKNOWN, dtype=np.uint8)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def resolution(self) -> float:
        return self._resolution

    @property
    def center(self) -> Tuple[float, float]:
        """Geometric center of the grid in world coordinates (meters)."""
        return self._width * self._resolution / 2.0, self._height * self._resolution / 2.0

    def world_to_grid(self, x: float, y: float) -> Tuple[int, int]:
        """
        Convert world coordinates to grid coordinates.

        Args:
            x, y: World coordinates (meters)

        Returns:
            Grid coordinates (gx, gy)
        """
        return int(math.floor(x / self._resolution)), int(math.floor(y / self._resolution))

    def grid_to_world(self, gx: int, gy: int) -> Tuple[float, float]:
        """
        Convert grid coordinates to the world coordinates of the cell center.

        Args:
            gx, gy: Grid coordinates

        Returns:
            World coordinates (x, y) in meters
        """
        return (gx + 0.5) * self._resolution, (gy + 0.5) * self._resolution

    def in_bounds(self, gx: int, gy: int) -> bool:
        return 0 <= gx < self._width and 0 <= gy < self._height

    def is_touched(self, gx: int, gy: int) -> bool:
        """Whether the cell has been observed at least once. Out of bounds is untouched."""
        return self.in_bounds(gx, gy) and self.cells[gy, gx] != NEVER_TOUCHED

    def cell_value(self, gx: int, gy: int) -> Optional[int]:
        """Confidence of a cell, or None if never touched or out of bounds."""
        if not self.is_touched(gx, gy):
            return None
        return int(self.cells[gy, gx])

    def cell_state(self, gx: int, gy: int) -> CellState:
        if not self.in_bounds(gx, gy):
            return CellState.UNKNOWN
        return CellState(int(self.display[gy, gx]))

    def integrate(self, samples: Iterable[Sample], pose: Pose):
        """
        Ray cast a batch of samples into the grid.

        Cells along each ray get a miss and the end cell gets a hit. Cells
        outside the grid are ignored.

        Args:
            samples: Samples in the sensor frame
            pose: Sensor pose the samples were taken from
        """
        cx, cy = self.world_to_grid(pose.x, pose.y)

        for sample in samples:
            distance = sample.distance
            if not math.isfinite(distance) or distance <= 0 or not math.isfinite(sample.angle):
                continue

            angle = sample.angle + pose.theta
            hit_x = pose.x + distance * math.cos(angle)
            hit_y = pose.y + distance * math.sin(angle)
            gx, gy = self.world_to_grid(hit_x, hit_y)

            self._trace_misses(cx, cy, gx, gy)
            self._update_cell(gx, gy, True)

    def _trace_misses(self, x0: int, y0: int, x1: int, y1: int):
        """Mark cells from (x0, y0) up to, but excluding, (x1, y1) as missed (Bresenham)."""
        dx = abs(x1 - x0)
        dy = -abs(y1 - y0)
        sx = 1 if x0 < x1 else -1
        sy = 1 if y0 < y1 else -1
        err = dx + dy

        while x0 != x1 or y0 != y1:
            self._update_cell(x0, y0, False)
            e2 = 2 * err
            if e2 >= dy:
                err += dy
                x0 += sx
            if e2 <= dx:
                err += dx
                y0 += sy

    def _update_cell(self, gx: int, gy: int, hit: bool):
        if not (0 <= gx < self._width and 0 <= gy < self._height):
            return

        value = int(self.cells[gy, gx])
        if value == NEVER_TOUCHED:
            value = CELL_BASELINE

        if hit:
            value = min(CELL_MAX, value + self.hit_increment)
        else:
            value = max(CELL_MIN, value - self.miss_decrement)

        self.cells[gy, gx] = value

        if value > self.occupied_threshold:
            self.display[gy, gx] = CellState.OCCUPIED
        elif value < self.free_threshold:
            self.display[gy, gx] = CellState.FREE
        else:
            self.display[gy, gx] = CellState.UNKNOWN

    def get_display_snapshot(self) -> np.ndarray:
        """Flat, read-only copy of the display bands in row-major order."""
        snapshot = self.display.ravel().copy()
        snapshot.flags.writeable = False
        return snapshot

    def get_map_image(self) -> np.ndarray:
        """Display bands as a (height, width) uint8 image, row 0 at y = 0."""
        return self.display.copy()

    def statistics(self) -> Dict[str, int]:
        """Cell counts per display band, plus touched cells."""
        return {
            'free': int(np.count_nonzero(self.display == CellState.FREE)),
            'unknown': int(np.count_nonzero(self.display == CellState.UNKNOWN)),
            'occupied': int(np.count_nonzero(self.display == CellState.OCCUPIED)),
            'touched': int(np.count_nonzero(self.cells != NEVER_TOUCHED)),
        }
