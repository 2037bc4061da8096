"""
Configuration module for the lane occupancy pipeline.
"""

from .pipeline_config import (
    PipelineConfig, ThresholdPolicy, StructuringElement, MorphologyConfig,
    CameraConfig, GridConfig, OverlayConfig, DiagnosticsConfig, SubscriberConfig,
    ConfigurationError, load_pipeline_config
)

__all__ = [
    'PipelineConfig', 'ThresholdPolicy', 'StructuringElement', 'MorphologyConfig',
    'CameraConfig', 'GridConfig', 'OverlayConfig', 'DiagnosticsConfig', 'SubscriberConfig',
    'ConfigurationError', 'load_pipeline_config'
]
