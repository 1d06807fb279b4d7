"""
Configuration loading and validation.

Configuration lives in YAML files under ``config/`` and is handed to the
components as plain dictionaries. Every key has a default here, so a
component built with ``config=None`` behaves like one built from the
shipped YAML files.
"""

import copy
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError


DEFAULT_CONFIG = {
    'lidar': {
        'port': None,  # None for auto-detect
        'baud_rate': 128000,
        'timeout': 1.0,  # seconds
        'read_buffer_size': 8192,
        'replay_file': None,
        'reconnect_backoff': 0.5,  # seconds
        'error_backoff': 0.1,  # seconds
        'max_reconnect_attempts': None,  # None retries forever
        'stop_timeout': None,  # None means timeout + 0.5s
        'distance_scale': 0.001,  # millimetres -> meters
        'max_distance': None,  # meters, None for no upper bound
    },
    'slam': {
        'drain_limit': 2000,
        'process_rate': 10,  # Hz
        'trajectory_length': 10000,  # poses kept
        'mapping': {
            'width': 200,
            'height': 200,
            'resolution': 0.05,  # meters per cell
            'hit_increment': 2000,
            'miss_decrement': 500,
            'occupied_threshold': 45000,
            'free_threshold': 20000,
        },
        'localization': {
            'trials': 3000,
            'search_window': 20,  # cells
            'angle_window': 0.2,  # radians
            'sample_step': 2,
            'min_range': 0.1,  # meters
            'max_range': 10.0,  # meters
            'occupied_threshold': 40000,
            'free_threshold': 20000,
            'hit_score': 1.0,
            'miss_score': -0.5,
            'seed': None,
        },
    },
    'logging': {
        'level': 'INFO',
        'log_file': 'data/logs/lidar_slam.log',
    },
}

CONFIG_FILES = ('lidar_config.yaml', 'slam_config.yaml')


def merge_config(base: dict, override: Optional[dict]) -> dict:
    """Return a deep copy of ``base`` with ``override`` merged on top."""
    merged = copy.deepcopy(base)
    if not override:
        return merged
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_dir=None) -> dict:
    """
    Load configuration from a directory of YAML files.

    Args:
        config_dir: Directory holding lidar_config.yaml and slam_config.yaml
            (None for the repository's config/ directory)

    Returns:
        Complete configuration dictionary
    """
    if config_dir is None:
        config_dir = Path(__file__).resolve().parents[3] / "config"

    config = copy.deepcopy(DEFAULT_CONFIG)
    for filename in CONFIG_FILES:
        path = Path(config_dir) / filename
        if not path.exists():
            continue
        try:
            with open(path, 'r') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse {path}: {e}") from e
        if loaded is None:
            continue
        if not isinstance(loaded, dict):
            raise ConfigError(f"{path} must contain a mapping, got {type(loaded).__name__}")
        config = merge_config(config, loaded)

    return config


def require_positive_int(section: dict, key: str, default: int) -> int:
    """Read ``key`` as an integer greater than zero."""
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"'{key}' must be a positive integer, got {value!r}")
    return value


def require_positive_float(section: dict, key: str, default: float) -> float:
    """Read ``key`` as a number greater than zero."""
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"'{key}' must be a positive number, got {value!r}")
    return float(value)


def require_non_negative_float(section: dict, key: str, default: float) -> float:
    """Read ``key`` as a number greater than or equal to zero."""
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ConfigError(f"'{key}' must be a non-negative number, got {value!r}")
    return float(value)
