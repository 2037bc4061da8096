"""
Frame Processor - per-frame orchestration of the lane occupancy pipeline.

This module sequences the pipeline stages for every frame:
    filter (display only) -> threshold -> morphology -> overlay -> projection
Each stage is a pure callable wrapped by a timer. The homography is computed
once at construction; the only state carried between frames is the last
grid and the last timings, kept for the reporting surface.
"""

import logging
import time
from typing import Callable, Optional, Tuple

import cv2
import numpy as np

from lane_occupancy.config.pipeline_config import PipelineConfig
from lane_occupancy.gateway.data_types import (
    Frame, BinaryMask, OccupancyGrid, StageTimings, FrameReport
)
from lane_occupancy.gateway.frame_source import IFrameSource, FrameSourceError
from .threshold_estimator import ThresholdEstimator
from .lane_mask_extractor import LaneMaskExtractor, build_overlay, overlay_lane_pixels
from .ground_projector import GroundProjector
from .occupancy_rasterizer import OccupancyRasterizer

logger = logging.getLogger(__name__)


class FrameShapeError(ValueError):
    """Frame dimensions do not match the configured camera."""


def _timed(stage: Callable, *args) -> Tuple[object, float]:
    """Run a stage and return (result, elapsed milliseconds)."""
    t0 = time.perf_counter()
    result = stage(*args)
    return result, (time.perf_counter() - t0) * 1000


class FrameProcessor:
    """
    Orchestrates the lane occupancy pipeline.

    Responsibilities:
    - Validate incoming frames against the configured camera
    - Run threshold, morphology, overlay and projection stages in order
    - Time every stage and package a FrameReport
    - Drive the blocking receive loop with skip-on-error semantics
    """

    def __init__(self, config: PipelineConfig = PipelineConfig()):
        """
        Initialize the pipeline stages.

        Args:
            config: Pipeline configuration

        Raises:
            DegenerateCameraGeometryError: Camera constants give a singular homography
        """
        self.config = config
        self.threshold_estimator = ThresholdEstimator(config.threshold)
        self.mask_extractor = LaneMaskExtractor(config.morphology)
        self.projector = GroundProjector(config.camera)
        self.rasterizer = OccupancyRasterizer(config.grid, self.projector)

        # Reporting state
        self.frame_count = 0
        self.last_grid: Optional[OccupancyGrid] = None
        self.last_timings: Optional[StageTimings] = None

    def validate(self, frame: Frame) -> None:
        """Reject frames whose shape differs from the configured camera."""
        expected = self.config.camera.image_shape
        if frame.image.shape != expected:
            raise FrameShapeError(
                f"Frame {frame.frame_id} is {frame.image.shape[1]}x{frame.image.shape[0]}, "
                f"expected {expected[1]}x{expected[0]}"
            )

    def _filter(self, image: np.ndarray) -> Optional[np.ndarray]:
        diagnostics = self.config.diagnostics
        if not diagnostics.bilateral_enabled:
            return None
        return cv2.bilateralFilter(
            image.copy(), diagnostics.bilateral_diameter,
            diagnostics.bilateral_sigma_color, diagnostics.bilateral_sigma_space
        )

    def _threshold(self, frame: Frame) -> Tuple[float, float, BinaryMask]:
        average_brightness = frame.average_brightness
        threshold = self.threshold_estimator.estimate(average_brightness)
        return average_brightness, threshold, self.mask_extractor.binarize(frame.image, threshold)

    def _overlay(self, enhanced: BinaryMask) -> Tuple[Optional[np.ndarray], np.ndarray]:
        if not self.config.overlay.materialize:
            return None, enhanced.lane_pixels()
        overlay = build_overlay(enhanced)
        return overlay, overlay_lane_pixels(overlay, self.config.overlay.lane_level)

    def process(self, frame: Frame, reception_ms: float = 0.0) -> FrameReport:
        """
        Run the full pipeline on one frame.

        Args:
            frame: Single-channel frame matching the configured camera
            reception_ms: Time spent waiting for the frame, for reporting

        Returns:
            FrameReport with intermediate results and stage timings

        Raises:
            FrameShapeError: Frame dimensions do not match the camera
        """
        frame_start = time.perf_counter()
        self.validate(frame)

        filtered, filtering_ms = _timed(self._filter, frame.image)
        (average_brightness, threshold, binary_mask), thresholding_ms = _timed(self._threshold, frame)
        enhanced, morphology_ms = _timed(self.mask_extractor.enhance, binary_mask)
        (overlay, lane_pixels), overlay_ms = _timed(self._overlay, enhanced)
        occupancy, projection_ms = _timed(self.rasterizer.rasterize, lane_pixels)

        timings = StageTimings(
            reception_ms=reception_ms,
            filtering_ms=filtering_ms,
            thresholding_ms=thresholding_ms,
            morphology_ms=morphology_ms,
            overlay_ms=overlay_ms,
            projection_ms=projection_ms,
            total_ms=reception_ms + (time.perf_counter() - frame_start) * 1000,
        )

        self.frame_count += 1
        self.last_grid = occupancy
        self.last_timings = timings

        return FrameReport(
            frame=frame,
            average_brightness=average_brightness,
            threshold=threshold,
            binary_mask=binary_mask,
            enhanced_mask=enhanced,
            occupancy=occupancy,
            timings=timings,
            filtered=filtered,
            overlay=overlay,
        )

    def run(
        self,
        source: IFrameSource,
        is_active: Callable[[], bool],
        on_report: Optional[Callable[[FrameReport], None]] = None,
        timeout: Optional[float] = None
    ) -> int:
        """
        Process frames until is_active() turns false.

        is_active is checked once per iteration, never while blocked on
        receive. Timeouts, transport errors and malformed frames abandon the
        current iteration only.

        Args:
            source: Frame source to receive from
            is_active: Cooperative cancellation predicate
            on_report: Optional consumer for every FrameReport
            timeout: Receive timeout in seconds (defaults to the subscriber config)

        Returns:
            Number of frames processed
        """
        if timeout is None:
            timeout = self.config.subscriber.receive_timeout_sec

        processed = 0
        while is_active():
            t0 = time.perf_counter()
            try:
                frame = source.receive(timeout)
            except TimeoutError as e:
                logger.warning(f"Failed to receive image: {e}")
                continue
            except FrameSourceError as e:
                logger.warning(f"Frame source error: {e}")
                continue
            reception_ms = (time.perf_counter() - t0) * 1000

            try:
                report = self.process(frame, reception_ms=reception_ms)
            except FrameShapeError as e:
                logger.warning(f"Skipping frame: {e}")
                continue

            processed += 1
            logger.debug(report.summary())
            if on_report is not None:
                on_report(report)

        logger.info(f"Processing loop stopped after {processed} frame(s)")
        return processed
