"""
SLAM Engine - Main orchestrator for SLAM.
Combines pose estimation and occupancy mapping.
"""

from collections import deque
from typing import Deque, List, Optional, Sequence

import numpy as np

from .occupancy_grid import OccupancyGrid
from .pose_estimator import PoseEstimator
from ..sensor.sample_channel import SampleChannel
from ..utils.config import require_positive_int
from ..utils.data_structures import Pose, Sample, samples_to_arrays
from ..utils.logger import get_logger


class SLAMEngine:
    """Main SLAM engine that orchestrates localization and mapping."""

    def __init__(self, channel: Optional[SampleChannel] = None, config=None):
        """
        Initialize SLAM engine.

        Args:
            channel: Channel to drain samples from (None to feed batches directly)
            config: SLAM configuration dictionary (the ``slam`` section)
        """
        self.config = config or {}
        self.channel = channel
        self.logger = get_logger(__name__)

        self.drain_limit = require_positive_int(self.config, 'drain_limit', 2000)
        self.trajectory_length = require_positive_int(self.config, 'trajectory_length', 10000)
        self.mapping_config = self.config.get('mapping', {})
        self.localization_config = self.config.get('localization', {})

        self.pose_estimator = PoseEstimator(config=self.localization_config)
        self.grid = OccupancyGrid(config=self.mapping_config)
        self.current_pose = self._initial_pose()

        self.trajectory: Deque[Pose] = deque([self.current_pose], maxlen=self.trajectory_length)
        self.last_samples: List[Sample] = []
        self.batch_count = 0
        self.bootstrap_count = 0

    def _initial_pose(self) -> Pose:
        x, y = self.grid.center
        return Pose(x, y, 0.0)

    def process(self) -> Pose:
        """
        Drain the channel and process whatever arrived.

        Returns:
            Current pose estimate
        """
        if self.channel is None:
            return self.current_pose

        samples = self.channel.drain_up_to(self.drain_limit)
        if not samples:
            return self.current_pose
        return self.process_samples(samples)

    def process_samples(self, samples: Sequence[Sample]) -> Pose:
        """
        Localize a batch of samples and add it to the map.

        Args:
            samples: Samples in the sensor frame

        Returns:
            Current pose estimate
        """
        samples = list(samples)
        if not samples:
            return self.current_pose

        if self.pose_estimator.is_bootstrap(self.current_pose, self.grid):
            self.bootstrap_count += 1
            pose = self.current_pose
        else:
            pose = self.pose_estimator.estimate(samples, self.current_pose, self.grid)

        self.grid.integrate(samples, pose)

        self.current_pose = pose
        self.trajectory.append(pose)
        self.last_samples = samples
        self.batch_count += 1

        self.logger.debug(
            f"Batch {self.batch_count}: {len(samples)} samples, "
            f"pose=({pose.x:.3f}, {pose.y:.3f}, {pose.theta:.3f})"
        )
        return pose

    def get_current_pose(self) -> Pose:
        """Get current pose estimate."""
        return self.current_pose

    def get_display_snapshot(self) -> np.ndarray:
        """Get flat display snapshot of the map."""
        return self.grid.get_display_snapshot()

    def get_map_image(self) -> np.ndarray:
        """Get current map as image."""
        return self.grid.get_map_image()

    def get_last_samples(self) -> List[Sample]:
        """Samples of the most recent batch, for point cloud rendering."""
        return list(self.last_samples)

    def get_point_cloud(self) -> np.ndarray:
        """Most recent batch as world-frame points (N x 2, meters) at the current pose."""
        angles, distances = samples_to_arrays(self.last_samples)
        pose = self.current_pose
        theta = angles + pose.theta
        return np.column_stack((pose.x + distances * np.cos(theta),
                                pose.y + distances * np.sin(theta)))

    def reset(self):
        """Reset SLAM engine to initial state."""
        self.grid = OccupancyGrid(config=self.mapping_config)
        self.current_pose = self._initial_pose()
        self.trajectory = deque([self.current_pose], maxlen=self.trajectory_length)
        self.last_samples = []
        self.batch_count = 0
        self.bootstrap_count = 0
        if self.channel is not None:
            self.channel.clear()
