"""
Gateway module for the lane occupancy pipeline.

This module provides the abstraction layer between the processing core and
the transport that delivers camera frames, plus the data types exchanged
with the reporting surface.
"""

from .frame_source import IFrameSource, FrameSourceError
from .frame_subscriber import ZmqFrameSubscriber, ZmqFramePublisher, encode_frame, decode_frame
from .data_types import (
    Frame, BinaryMask, OccupancyGrid, StageTimings, FrameReport
)

__all__ = [
    # Frame source interface
    'IFrameSource', 'FrameSourceError',
    # ZeroMQ transport
    'ZmqFrameSubscriber', 'ZmqFramePublisher', 'encode_frame', 'decode_frame',
    # Data types
    'Frame', 'BinaryMask', 'OccupancyGrid', 'StageTimings', 'FrameReport'
]
