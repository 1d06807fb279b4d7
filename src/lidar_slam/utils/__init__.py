"""
Utility functions for logging, configuration, errors and data structures.
"""

from .logger import setup_logger, get_logger
from .data_structures import Sample, Pose, CellState
from .config import load_config, DEFAULT_CONFIG
from .errors import (
    LidarSlamError,
    ConfigError,
    SourceUnavailableError,
    StreamClosedError,
    FrameAbortError,
    ReadTimeout,
)

__all__ = [
    'setup_logger', 'get_logger', 'Sample', 'Pose', 'CellState',
    'load_config', 'DEFAULT_CONFIG',
    'LidarSlamError', 'ConfigError', 'SourceUnavailableError',
    'StreamClosedError', 'FrameAbortError', 'ReadTimeout',
]
