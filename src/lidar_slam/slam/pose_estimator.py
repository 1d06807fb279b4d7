"""
Pose estimator based on randomized correlation search.

Candidate poses are drawn uniformly around the prior pose and scored by how
well the scan lands on cells the map already believes are occupied. The
best scoring candidate wins. This is a coarse search: it does not refine
the winner and makes no attempt at a least-squares fit, so the estimate
can only be as good as the nearest random candidate.
"""

from typing import List, Sequence, Tuple

import numpy as np

from .occupancy_grid import CELL_MAX, CELL_MIN, NEVER_TOUCHED, OccupancyGrid
from ..utils.config import require_non_negative_float, require_positive_float, require_positive_int
from ..utils.data_structures import Pose, Sample, samples_to_arrays
from ..utils.errors import ConfigError


# Candidates scored per numpy pass
CANDIDATE_CHUNK = 512


class PoseEstimator:
    """Finds the pose that best matches a scan against the map."""

    def __init__(self, config=None):
        """
        Initialize pose estimator.

        Args:
            config: Localization configuration dictionary
        """
        self.config = config or {}

        self.trials = require_positive_int(self.config, 'trials', 3000)
        self.search_window = require_non_negative_float(self.config, 'search_window', 20)
        self.angle_window = require_non_negative_float(self.config, 'angle_window', 0.2)
        self.sample_step = require_positive_int(self.config, 'sample_step', 2)
        self.min_range = require_non_negative_float(self.config, 'min_range', 0.1)
        self.max_range = require_positive_float(self.config, 'max_range', 10.0)
        if self.min_range > self.max_range:
            raise ConfigError(
                f"'min_range' ({self.min_range}) must not exceed 'max_range' ({self.max_range})"
            )

        self.occupied_threshold = int(self.config.get('occupied_threshold', 40000))
        self.free_threshold = int(self.config.get('free_threshold', 20000))
        if not CELL_MIN <= self.free_threshold < self.occupied_threshold <= CELL_MAX:
            raise ConfigError(
                f"Score thresholds must satisfy 0 <= free < occupied <= 65535, "
                f"got free={self.free_threshold}, occupied={self.occupied_threshold}"
            )
        self.hit_score = float(self.config.get('hit_score', 1.0))
        self.miss_score = float(self.config.get('miss_score', -0.5))

        self.rng = np.random.default_rng(self.config.get('seed'))

    def is_bootstrap(self, pose: Pose, grid: OccupancyGrid) -> bool:
        """True while the map has nothing under the pose to match against."""
        gx, gy = grid.world_to_grid(pose.x, pose.y)
        return not grid.is_touched(gx, gy)

    def estimate(self, samples: Sequence[Sample], prior_pose: Pose, grid: OccupancyGrid) -> Pose:
        """
        Estimate the sensor pose for a scan.

        Args:
            samples: Scan in the sensor frame
            prior_pose: Previous pose estimate
            grid: Current map (read only)

        Returns:
            Best scoring pose; ``prior_pose`` itself when nothing beats it
        """
        if not samples or self.is_bootstrap(prior_pose, grid):
            return prior_pose

        angles, distances = self._select_samples(samples)
        if angles.size == 0:
            return prior_pose

        candidates = self._draw_candidates(prior_pose, grid.resolution)
        scores = self._score_candidates(angles, distances, candidates, grid)

        # argmax keeps the first of equal scores, so the prior wins ties
        best = int(np.argmax(scores))
        if best == 0:
            return prior_pose
        return Pose.from_array(candidates[best])

    def score(self, samples: Sequence[Sample], pose: Pose, grid: OccupancyGrid) -> float:
        """Match score of a single pose."""
        angles, distances = self._select_samples(samples)
        if angles.size == 0:
            return 0.0
        scores = self._score_candidates(angles, distances, pose.to_array()[np.newaxis, :], grid)
        return float(scores[0])

    def _select_samples(self, samples: Sequence[Sample]) -> Tuple[np.ndarray, np.ndarray]:
        subset: List[Sample] = list(samples)[::self.sample_step]
        angles, distances = samples_to_arrays(subset)
        keep = (distances >= self.min_range) & (distances <= self.max_range)
        return angles[keep], distances[keep]

    def _draw_candidates(self, prior_pose: Pose, resolution: float) -> np.ndarray:
        half_xy = resolution * self.search_window / 2.0
        half_theta = self.angle_window / 2.0

        offsets = np.empty((self.trials, 3))
        offsets[:, 0] = self.rng.uniform(-half_xy, half_xy, size=self.trials)
        offsets[:, 1] = self.rng.uniform(-half_xy, half_xy, size=self.trials)
        offsets[:, 2] = self.rng.uniform(-half_theta, half_theta, size=self.trials)
        offsets[0] = 0.0

        return prior_pose.to_array()[np.newaxis, :] + offsets

    def _cell_weights(self, grid: OccupancyGrid) -> np.ndarray:
        cells = grid.cells
        touched = cells != NEVER_TOUCHED
        weights = np.zeros(cells.shape, dtype=np.float64)
        weights[touched & (cells > self.occupied_threshold)] = self.hit_score
        weights[touched & (cells < self.free_threshold)] = self.miss_score
        return weights

    def _score_candidates(self, angles: np.ndarray, distances: np.ndarray,
                          candidates: np.ndarray, grid: OccupancyGrid) -> np.ndarray:
        weights = self._cell_weights(grid)
        resolution = grid.resolution
        scores = np.empty(len(candidates))

        for start in range(0, len(candidates), CANDIDATE_CHUNK):
            chunk = candidates[start:start + CANDIDATE_CHUNK]
            theta = chunk[:, 2:3] + angles[np.newaxis, :]
            hit_x = chunk[:, 0:1] + distances * np.cos(theta)
            hit_y = chunk[:, 1:2] + distances * np.sin(theta)

            gx = np.floor(hit_x / resolution).astype(np.int64)
            gy = np.floor(hit_y / resolution).astype(np.int64)
            inside = (gx >= 0) & (gx < grid.width) & (gy >= 0) & (gy < grid.height)

            values = np.zeros(gx.shape)
            values[inside] = weights[gy[inside], gx[inside]]
            scores[start:start + len(chunk)] = values.sum(axis=1)

        return scores
