"""
Configuration dataclasses for the lane occupancy pipeline.

This module centralizes every tunable constant of the pipeline (threshold
policy, structuring elements, camera model, output grid, transport) to
provide a single source of truth. Values are loaded from
config/occupancy_config.yaml and are immutable once loaded.
"""

import logging
import math
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import numpy as np
import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = 'LANE_OCCUPANCY_CONFIG'
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent.parent / "config" / "occupancy_config.yaml"


class ConfigurationError(ValueError):
    """Raised when a configuration value is missing, unknown or invalid."""


@dataclass(frozen=True)
class ThresholdPolicy:
    """Clamped piecewise-linear map from average brightness to threshold."""

    lower_input: float = 13.0
    lower_output: float = 12.0
    upper_input: float = 150.0
    upper_output: float = 175.0
    slope: float = 1.0788
    intercept: float = 4.0248

    def __post_init__(self):
        if self.lower_input >= self.upper_input:
            raise ConfigurationError(
                f"threshold lower_input ({self.lower_input}) must be below upper_input ({self.upper_input})"
            )


@dataclass(frozen=True)
class StructuringElement:
    """Rectangular morphology kernel with explicit (rows, cols) extents."""

    rows: int
    cols: int

    def __post_init__(self):
        if self.rows < 1 or self.cols < 1:
            raise ConfigurationError(f"structuring element must be at least 1x1, got {self.rows}x{self.cols}")

    @property
    def kernel(self) -> np.ndarray:
        return np.ones((self.rows, self.cols), dtype=np.uint8)

    def anchor(self, reflected: bool = False) -> Tuple[int, int]:
        """
        OpenCV (x, y) anchor of the kernel.

        The origin of an n-long side sits at (n - 1) // 2. Dilation uses the
        reflected element, so its anchor mirrors the origin. The two only
        differ for even-sized sides.
        """
        row_origin = (self.rows - 1) // 2
        col_origin = (self.cols - 1) // 2
        if reflected:
            row_origin = self.rows - 1 - row_origin
            col_origin = self.cols - 1 - col_origin
        return col_origin, row_origin


@dataclass(frozen=True)
class MorphologyConfig:
    """Structuring elements for the erode -> reconstruct -> dilate sequence."""

    erosion: StructuringElement = field(default_factory=lambda: StructuringElement(rows=1, cols=2))
    dilation: StructuringElement = field(default_factory=lambda: StructuringElement(rows=2, cols=6))
    reconstruction_connectivity: int = 8

    def __post_init__(self):
        if self.reconstruction_connectivity not in (4, 8):
            raise ConfigurationError(
                f"reconstruction_connectivity must be 4 or 8, got {self.reconstruction_connectivity}"
            )


@dataclass(frozen=True)
class CameraConfig:
    """Pinhole camera intrinsics and mounting pose (pitch-only)."""

    # Approximate MultiSense S7 2MP intrinsics scaled to 1024x544
    fx: float = 595.0
    fy: float = 590.0
    cx: float = 512.0
    cy: float = 272.0
    skew: float = 0.0
    pitch_deg: float = -30.0
    mount_height: float = 0.8
    image_width: int = 1024
    image_height: int = 544

    def __post_init__(self):
        if self.image_width <= 0 or self.image_height <= 0:
            raise ConfigurationError(
                f"image size must be positive, got {self.image_width}x{self.image_height}"
            )

    @property
    def intrinsic_matrix(self) -> np.ndarray:
        return np.array([
            [self.fx, self.skew, self.cx],
            [0.0, self.fy, self.cy],
            [0.0, 0.0, 1.0],
        ], dtype=np.float64)

    @property
    def pitch_rad(self) -> float:
        return math.radians(self.pitch_deg)

    @property
    def image_shape(self) -> Tuple[int, int]:
        """(rows, cols) of the frames this camera produces."""
        return self.image_height, self.image_width


def _round_half_away(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class GridConfig:
    """World extents (meters) and resolution (meters per cell) of the occupancy grid."""

    x_limits: Tuple[float, float] = (-1.0, 5.0)
    y_limits: Tuple[float, float] = (-2.0, 2.0)
    resolution: float = 0.01

    def __post_init__(self):
        # YAML hands us lists
        object.__setattr__(self, 'x_limits', tuple(float(v) for v in self.x_limits))
        object.__setattr__(self, 'y_limits', tuple(float(v) for v in self.y_limits))
        if len(self.x_limits) != 2 or len(self.y_limits) != 2:
            raise ConfigurationError("x_limits and y_limits must each hold two values")
        if self.resolution <= 0:
            raise ConfigurationError(f"resolution must be positive, got {self.resolution}")
        if self.x_limits[0] >= self.x_limits[1] or self.y_limits[0] >= self.y_limits[1]:
            raise ConfigurationError(
                f"world limits must be increasing, got x={self.x_limits} y={self.y_limits}"
            )
        if self.rows < 1 or self.cols < 1:
            raise ConfigurationError(
                f"grid must hold at least one cell, got {self.rows}x{self.cols} at resolution {self.resolution}"
            )

    @property
    def rows(self) -> int:
        return _round_half_away((self.y_limits[1] - self.y_limits[0]) / self.resolution)

    @property
    def cols(self) -> int:
        return _round_half_away((self.x_limits[1] - self.x_limits[0]) / self.resolution)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.rows, self.cols


@dataclass(frozen=True)
class OverlayConfig:
    """Overlay materialization for the dashboard."""

    materialize: bool = True
    lane_level: int = 200  # red channel must exceed this to count as lane


@dataclass(frozen=True)
class DiagnosticsConfig:
    """Bilateral filter shown on the dashboard (never feeds the mask)."""

    bilateral_enabled: bool = True
    bilateral_diameter: int = 5
    bilateral_sigma_color: float = 25.5
    bilateral_sigma_space: float = 1.0


@dataclass(frozen=True)
class SubscriberConfig:
    """ZeroMQ frame subscription settings."""

    host: str = 'localhost'
    port: int = 5560
    topic: str = 'image_rect'
    receive_timeout_sec: float = 5.0
    history_depth: int = 10

    def __post_init__(self):
        if self.receive_timeout_sec <= 0:
            raise ConfigurationError(f"receive_timeout_sec must be positive, got {self.receive_timeout_sec}")
        if self.history_depth < 1:
            raise ConfigurationError(f"history_depth must be >= 1, got {self.history_depth}")


@dataclass(frozen=True)
class PipelineConfig:
    """Top-level configuration for the lane occupancy pipeline."""

    threshold: ThresholdPolicy = field(default_factory=ThresholdPolicy)
    morphology: MorphologyConfig = field(default_factory=MorphologyConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    grid: GridConfig = field(default_factory=GridConfig)
    overlay: OverlayConfig = field(default_factory=OverlayConfig)
    diagnostics: DiagnosticsConfig = field(default_factory=DiagnosticsConfig)
    subscriber: SubscriberConfig = field(default_factory=SubscriberConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'PipelineConfig':
        """
        Build a configuration from a nested dictionary (parsed YAML).

        Missing sections and keys fall back to defaults; unknown ones raise.
        """
        data = data or {}
        _reject_unknown_keys('pipeline', data, cls)

        morphology = data.get('morphology') or {}
        _reject_unknown_keys('morphology', morphology, MorphologyConfig)
        morphology = dict(morphology)
        for name in ('erosion', 'dilation'):
            if name in morphology:
                element = morphology[name]
                _reject_unknown_keys(f'morphology.{name}', element, StructuringElement)
                morphology[name] = StructuringElement(**element)

        sections = {'morphology': MorphologyConfig(**morphology)}
        for name, section_cls in (
            ('threshold', ThresholdPolicy),
            ('camera', CameraConfig),
            ('grid', GridConfig),
            ('overlay', OverlayConfig),
            ('diagnostics', DiagnosticsConfig),
            ('subscriber', SubscriberConfig),
        ):
            section = data.get(name) or {}
            _reject_unknown_keys(name, section, section_cls)
            sections[name] = section_cls(**section)

        return cls(**sections)


def _reject_unknown_keys(section: str, values: Any, target) -> None:
    if not isinstance(values, dict):
        raise ConfigurationError(f"section '{section}' must be a mapping, got {type(values).__name__}")
    known = {f.name for f in fields(target)}
    unknown = set(values) - known
    if unknown:
        raise ConfigurationError(f"unknown keys in '{section}': {sorted(unknown)}")


def load_pipeline_config(config_path: Optional[Path] = None) -> PipelineConfig:
    """
    Load the pipeline configuration from YAML.

    Args:
        config_path: Explicit YAML path. Falls back to $LANE_OCCUPANCY_CONFIG,
            then to config/occupancy_config.yaml in the project root.

    Returns:
        PipelineConfig (built-in defaults if the default file is absent)
    """
    if config_path is None and os.environ.get(CONFIG_ENV_VAR):
        config_path = Path(os.environ[CONFIG_ENV_VAR])

    if config_path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.warning(f"No config found at {DEFAULT_CONFIG_PATH}. Using built-in defaults.")
            return PipelineConfig()
        config_path = DEFAULT_CONFIG_PATH

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f)

    config = PipelineConfig.from_dict(data)
    logger.info(f"Loaded pipeline config from {config_path}")
    return config
