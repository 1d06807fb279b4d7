"""
Lidar SLAM front end: serial frame decoding, pose search and occupancy mapping.
"""

__version__ = "0.1.0"
