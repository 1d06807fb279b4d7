"""
Exception types raised across the lidar SLAM pipeline.
"""


class LidarSlamError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(LidarSlamError):
    """Invalid configuration, rejected at construction time."""


class SourceUnavailableError(LidarSlamError):
    """The byte source could not be opened."""


class StreamClosedError(LidarSlamError):
    """The byte source reported end of stream or lost its device."""


class FrameAbortError(LidarSlamError):
    """A malformed or interrupted frame was dropped."""


class ReadTimeout(LidarSlamError):
    """No bytes arrived within the read timeout. Not a failure."""
