"""
Data structures for the lane occupancy pipeline.
"""

from dataclasses import dataclass
from typing import Optional
import numpy as np

from lane_occupancy.config.pipeline_config import GridConfig


@dataclass(frozen=True, eq=False)
class Frame:
    """Single-channel camera frame. The image array is read-only."""
    image: np.ndarray       # (H x W) uint8 intensity samples
    frame_id: int = 0       # Sequence number from the publisher
    stamp: float = 0.0      # Capture time in seconds

    def __post_init__(self):
        if self.image.ndim != 2:
            raise ValueError(f"Frame must be single-channel (H x W), got shape {self.image.shape}")
        # Read-only view; the caller keeps its own array writeable
        view = self.image.view()
        view.flags.writeable = False
        object.__setattr__(self, 'image', view)

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]

    @property
    def average_brightness(self) -> float:
        return float(self.image.mean())


@dataclass(frozen=True, eq=False)
class BinaryMask:
    """
    Boolean image-sized mask with explicit lane polarity.

    lane_value says which boolean marks a lane pixel: the raw binarization
    marks candidates with True, the morphologically enhanced mask marks
    background with True (lane_value=False). Use lane_pixels() instead of
    reading `data` directly.
    """
    data: np.ndarray        # (H x W) bool
    lane_value: bool = True

    def lane_pixels(self) -> np.ndarray:
        """Boolean array where True always means lane."""
        if self.lane_value:
            return self.data
        return ~self.data


@dataclass(frozen=True, eq=False)
class OccupancyGrid:
    """Top-down boolean grid. Row index grows with world Y, column index with world X."""
    cells: np.ndarray       # (rows x cols) bool, True = lane evidence
    grid: GridConfig

    @property
    def occupied_fraction(self) -> float:
        if self.cells.size == 0:
            return 0.0
        return float(np.count_nonzero(self.cells)) / self.cells.size


@dataclass
class StageTimings:
    """Per-stage processing durations in milliseconds."""
    reception_ms: float = 0.0
    filtering_ms: float = 0.0
    thresholding_ms: float = 0.0
    morphology_ms: float = 0.0
    overlay_ms: float = 0.0
    projection_ms: float = 0.0
    total_ms: float = 0.0


@dataclass
class FrameReport:
    """Everything the reporting surface needs for one processed frame."""
    frame: Frame
    average_brightness: float
    threshold: float
    binary_mask: BinaryMask                 # raw binarization
    enhanced_mask: BinaryMask               # after erode/reconstruct/dilate
    occupancy: OccupancyGrid
    timings: StageTimings
    filtered: Optional[np.ndarray] = None   # bilateral filter, display only
    overlay: Optional[np.ndarray] = None    # (H x W x 3) RGB, lane in red

    def summary(self) -> str:
        t = self.timings
        return (
            f"frame {self.frame.frame_id}: total {t.total_ms:.1f}ms "
            f"(receive {t.reception_ms:.1f}, filter {t.filtering_ms:.1f}, "
            f"threshold {t.thresholding_ms:.1f}, morphology {t.morphology_ms:.1f}, "
            f"overlay {t.overlay_ms:.1f}, projection {t.projection_ms:.1f}) | "
            f"brightness {round(self.average_brightness)} | threshold {round(self.threshold)} | "
            f"occupied {self.occupancy.occupied_fraction:.2%}"
        )
