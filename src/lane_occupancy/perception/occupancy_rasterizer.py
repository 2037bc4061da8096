"""
Occupancy Rasterizer - warp the lane mask onto a metric ground grid.

Cell (i, j) of the output grid samples the world point at its centre,
    X = x_min + (j + 0.5) * resolution
    Y = y_min + (i + 0.5) * resolution
so rows grow with Y and columns with X. The image-to-grid transform is
    M = A^-1 * H_i2g
with A the grid-to-world affine. cv2.warpPerspective inverts M internally and
bilinearly samples the lane mask at H_g2i * A * [j, i, 1] for every cell.
The sampled value is the cell's lane coverage; a cell is occupied when the
coverage is strictly above one half.

warpPerspective divides by w without checking its sign, so ground points
behind the camera (w <= 0) pick up a point-mirrored image sample. Those cells
are masked out and always read as free.
"""

import logging

import cv2
import numpy as np

from lane_occupancy.config.pipeline_config import GridConfig
from lane_occupancy.gateway.data_types import OccupancyGrid
from .ground_projector import GroundProjector

logger = logging.getLogger(__name__)

OCCUPANCY_LEVEL = 0.5


def binarize_coverage(coverage: np.ndarray, level: float = OCCUPANCY_LEVEL) -> np.ndarray:
    """Occupied iff coverage > level (exactly level stays free)."""
    return np.asarray(coverage) > level


def grid_to_world_matrix(grid: GridConfig) -> np.ndarray:
    """Affine map from grid [col, row, 1] to the world [X, Y, 1] of the cell centre."""
    res = grid.resolution
    return np.array([
        [res, 0.0, grid.x_limits[0] + 0.5 * res],
        [0.0, res, grid.y_limits[0] + 0.5 * res],
        [0.0, 0.0, 1.0],
    ], dtype=np.float64)


class OccupancyRasterizer:
    """Projects image-space lane masks into a fixed top-down occupancy grid."""

    def __init__(self, grid: GridConfig, projector: GroundProjector):
        """
        Initialize the rasterizer.

        Args:
            grid: World extents and resolution of the output grid
            projector: Source of the image-to-ground homography
        """
        self.grid = grid
        self.projector = projector
        self.grid_to_world = grid_to_world_matrix(grid)
        self.image_to_grid = np.linalg.inv(self.grid_to_world) @ projector.image_to_ground

        # w of H_g2i * [X, Y, 1] is the depth of the ground point along the optical axis
        centers = self.cell_centers()
        h_row = projector.ground_to_image[2]
        self.in_front = centers[..., 0] * h_row[0] + centers[..., 1] * h_row[1] + h_row[2] > 0

        rows, cols = grid.shape
        logger.info(
            f"Occupancy grid {rows}x{cols} cells, X {grid.x_limits} Y {grid.y_limits} "
            f"at {grid.resolution}m/cell, {int(self.in_front.sum())} cell(s) in front of the camera"
        )
        if not self.in_front.any():
            logger.warning("No grid cell lies in front of the camera; the occupancy grid will stay empty")

    def cell_centers(self) -> np.ndarray:
        """(rows, cols, 2) array of the world [X, Y] at each cell centre."""
        rows, cols = self.grid.shape
        jj, ii = np.meshgrid(np.arange(cols), np.arange(rows))
        res = self.grid.resolution
        x = self.grid.x_limits[0] + (jj + 0.5) * res
        y = self.grid.y_limits[0] + (ii + 0.5) * res
        return np.stack([x, y], axis=-1)

    def coverage(self, lane_pixels: np.ndarray) -> np.ndarray:
        """Fractional lane coverage per cell, 0 outside the image footprint or behind the camera."""
        rows, cols = self.grid.shape
        coverage = cv2.warpPerspective(
            lane_pixels.astype(np.float32),
            self.image_to_grid,
            (cols, rows),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=0,
        )
        coverage[~self.in_front] = 0.0
        return coverage

    def rasterize(self, lane_pixels: np.ndarray) -> OccupancyGrid:
        """
        Warp a lane mask (True = lane) into an occupancy grid.

        Args:
            lane_pixels: (H, W) bool mask in image coordinates

        Returns:
            OccupancyGrid with True where lane coverage exceeds one half
        """
        return OccupancyGrid(cells=binarize_coverage(self.coverage(lane_pixels)), grid=self.grid)
