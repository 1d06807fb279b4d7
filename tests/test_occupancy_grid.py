"""
Unit tests for the occupancy grid.
"""

import math
import unittest
from pathlib import Path
import sys

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lidar_slam.slam.occupancy_grid import CELL_BASELINE, CELL_MAX, OccupancyGrid
from lidar_slam.utils.data_structures import CellState, Pose, Sample
from lidar_slam.utils.errors import ConfigError


SMALL_GRID = {'width': 10, 'height': 10, 'resolution': 1.0}


class TestGridConstruction(unittest.TestCase):
    """Test grid construction and coordinates."""

    def test_initial_state(self):
        """Test that a new grid is untouched and displays unknown."""
        grid = OccupancyGrid(config=SMALL_GRID)
        self.assertEqual((grid.width, grid.height, grid.resolution), (10, 10, 1.0))
        self.assertEqual(grid.cells.shape, (10, 10))
        self.assertIsNone(grid.cell_value(3, 3))
        self.assertFalse(grid.is_touched(3, 3))
        self.assertTrue(np.all(grid.get_display_snapshot() == CellState.UNKNOWN))
        self.assertEqual(grid.center, (5.0, 5.0))

    def test_invalid_configuration(self):
        """Test that bad dimensions are rejected."""
        with self.assertRaises(ConfigError):
            OccupancyGrid(config={'width': 0, 'height': 10, 'resolution': 1.0})
        with self.assertRaises(ConfigError):
            OccupancyGrid(config={'width': 10, 'height': -1, 'resolution': 1.0})
        with self.assertRaises(ConfigError):
            OccupancyGrid(config={'width': 10, 'height': 10, 'resolution': 0})
        with self.assertRaises(ConfigError):
            OccupancyGrid(config=dict(SMALL_GRID, free_threshold=50000, occupied_threshold=40000))

    def test_dimensions_read_only(self):
        """Test that geometry cannot be reassigned."""
        grid = OccupancyGrid(config=SMALL_GRID)
        with self.assertRaises(AttributeError):
            grid.resolution = 2.0

    def test_world_grid_conversion(self):
        """Test world to grid conversion and back."""
        grid = OccupancyGrid(config={'width': 100, 'height': 50, 'resolution': 0.1})
        self.assertEqual(grid.world_to_grid(0.05, 0.05), (0, 0))
        self.assertEqual(grid.world_to_grid(-0.01, 0.0), (-1, 0))
        gx, gy = grid.world_to_grid(*grid.grid_to_world(42, 17))
        self.assertEqual((gx, gy), (42, 17))
        self.assertFalse(grid.in_bounds(100, 0))
        self.assertFalse(grid.in_bounds(0, 50))


class TestGridIntegration(unittest.TestCase):
    """Test ray-cast integration."""

    def setUp(self):
        self.grid = OccupancyGrid(config=SMALL_GRID)
        self.pose = Pose(5.5, 5.5, 0.0)

    def test_adjacent_hit(self):
        """Test a hit in the cell next to the sensor."""
        self.grid.integrate([Sample(0.0, 1.0)], self.pose)

        self.assertEqual(self.grid.cell_value(6, 5), CELL_BASELINE + 2000)
        self.assertEqual(self.grid.cell_value(5, 5), CELL_BASELINE - 500)
        touched = {(gx, gy) for gy in range(10) for gx in range(10) if self.grid.is_touched(gx, gy)}
        self.assertEqual(touched, {(5, 5), (6, 5)})

    def test_ray_marks_path_and_hit(self):
        """Test that cells before the hit are missed and the hit cell is not."""
        self.grid.integrate([Sample(0.0, 3.0)], self.pose)

        for gx in (5, 6, 7):
            self.assertEqual(self.grid.cell_value(gx, 5), CELL_BASELINE - 500)
        self.assertEqual(self.grid.cell_value(8, 5), CELL_BASELINE + 2000)
        self.assertIsNone(self.grid.cell_value(9, 5))

    def test_pose_heading_rotates_rays(self):
        """Test that the pose heading is applied to sample angles."""
        pose = Pose(5.5, 5.5, math.pi / 2)
        self.grid.integrate([Sample(0.0, 2.0)], pose)
        self.assertEqual(self.grid.cell_value(5, 7), CELL_BASELINE + 2000)
        self.assertEqual(self.grid.cell_value(5, 6), CELL_BASELINE - 500)

    def test_out_of_bounds_ignored(self):
        """Test that rays leaving the grid do not fail."""
        self.grid.integrate([Sample(0.0, 20.0), Sample(math.pi, 20.0)], self.pose)
        for gx in range(10):
            if gx == 5:
                # Sensor cell is crossed by both rays
                self.assertEqual(self.grid.cell_value(gx, 5), CELL_BASELINE - 1000)
            else:
                self.assertEqual(self.grid.cell_value(gx, 5), CELL_BASELINE - 500)

    def test_invalid_samples_skipped(self):
        """Test that non-positive and non-finite distances are ignored."""
        self.grid.integrate([Sample(0.0, 0.0), Sample(0.0, -1.0), Sample(0.0, float('nan'))], self.pose)
        self.assertEqual(self.grid.statistics()['touched'], 0)

    def test_misses_converge_to_zero(self):
        """Test repeated misses decrease monotonically and clamp at zero."""
        previous = None
        for _ in range(100):
            self.grid.integrate([Sample(0.0, 3.0)], self.pose)
            value = self.grid.cell_value(6, 5)
            self.assertGreaterEqual(value, 0)
            if previous is not None:
                self.assertLessEqual(value, previous)
            previous = value
        self.assertEqual(previous, 0)
        self.assertEqual(self.grid.cell_state(6, 5), CellState.FREE)

    def test_hits_converge_to_max(self):
        """Test repeated hits increase monotonically and clamp at 65535."""
        previous = None
        for _ in range(40):
            self.grid.integrate([Sample(0.0, 3.0)], self.pose)
            value = self.grid.cell_value(8, 5)
            self.assertLessEqual(value, CELL_MAX)
            if previous is not None:
                self.assertGreaterEqual(value, previous)
            previous = value
        self.assertEqual(previous, CELL_MAX)
        self.assertEqual(self.grid.cell_state(8, 5), CellState.OCCUPIED)

    def test_display_bands(self):
        """Test display quantization thresholds."""
        grid = OccupancyGrid(config=dict(SMALL_GRID, hit_increment=12232, miss_decrement=12768))
        grid.integrate([Sample(0.0, 1.0)], self.pose)
        # 32768 + 12232 = 45000 is not above the occupied threshold
        self.assertEqual(grid.cell_value(6, 5), 45000)
        self.assertEqual(grid.cell_state(6, 5), CellState.UNKNOWN)
        # 32768 - 12768 = 20000 is not below the free threshold
        self.assertEqual(grid.cell_value(5, 5), 20000)
        self.assertEqual(grid.cell_state(5, 5), CellState.UNKNOWN)

        grid.integrate([Sample(0.0, 1.0)], self.pose)
        self.assertEqual(grid.cell_state(6, 5), CellState.OCCUPIED)
        self.assertEqual(grid.cell_state(5, 5), CellState.FREE)

    def test_snapshot_row_major_and_read_only(self):
        """Test the flat display snapshot."""
        self.grid.integrate([Sample(0.0, 1.0)] * 10, self.pose)
        snapshot = self.grid.get_display_snapshot()

        self.assertEqual(snapshot.shape, (100,))
        self.assertEqual(snapshot[5 * 10 + 6], CellState.OCCUPIED)
        self.assertEqual(snapshot[5 * 10 + 5], CellState.UNKNOWN)
        with self.assertRaises(ValueError):
            snapshot[0] = CellState.FREE

        image = self.grid.get_map_image()
        self.assertEqual(image.shape, (10, 10))
        self.assertEqual(image[5, 6], CellState.OCCUPIED)


if __name__ == "__main__":
    unittest.main()
