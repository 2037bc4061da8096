"""
Perception module for lane occupancy mapping.
"""

from .threshold_estimator import ThresholdEstimator
from .lane_mask_extractor import LaneMaskExtractor, build_overlay, overlay_lane_pixels
from .ground_projector import GroundProjector, DegenerateCameraGeometryError
from .occupancy_rasterizer import OccupancyRasterizer, binarize_coverage
from .frame_processor import FrameProcessor, FrameShapeError

__all__ = ['ThresholdEstimator', 'LaneMaskExtractor', 'build_overlay', 'overlay_lane_pixels', 'GroundProjector', 'DegenerateCameraGeometryError', 'OccupancyRasterizer', 'binarize_coverage', 'FrameProcessor', 'FrameShapeError']
