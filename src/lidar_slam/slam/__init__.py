"""
SLAM module: randomized scan matching against a probabilistic occupancy grid.
"""

from .slam_engine import SLAMEngine
from .pose_estimator import PoseEstimator
from .occupancy_grid import OccupancyGrid

__all__ = ['SLAMEngine', 'PoseEstimator', 'OccupancyGrid']
