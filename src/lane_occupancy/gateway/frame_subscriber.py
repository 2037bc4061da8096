"""
Frame Subscriber - ZeroMQ transport for camera frames.

Frames travel over PUB-SUB as multipart messages:
    [topic, header, payload]
where header is JSON {frame_id, stamp, width, height, encoding} and payload
is the raw row-major mono8 image. Delivery is best-effort and latest-only:
the subscriber keeps a bounded queue and always hands out the newest frame.
"""

import json
import logging
import time
from typing import List, Optional

import numpy as np
import zmq

from .data_types import Frame
from .frame_source import IFrameSource, FrameSourceError

logger = logging.getLogger(__name__)

MONO8 = 'mono8'


def encode_frame(topic: str, frame: Frame) -> List[bytes]:
    """Serialize a frame into a multipart ZeroMQ message."""
    header = {
        'frame_id': frame.frame_id,
        'stamp': frame.stamp,
        'width': frame.width,
        'height': frame.height,
        'encoding': MONO8,
    }
    image = np.ascontiguousarray(frame.image, dtype=np.uint8)
    return [topic.encode('utf-8'), json.dumps(header).encode('utf-8'), image.tobytes()]


def decode_frame(parts: List[bytes]) -> Frame:
    """
    Deserialize a multipart ZeroMQ message into a frame.

    Raises:
        FrameSourceError: Wrong part count, bad header, unsupported encoding
            or payload size mismatch
    """
    if len(parts) != 3:
        raise FrameSourceError(f"Expected 3 message parts, got {len(parts)}")

    _, header_bytes, payload = parts
    try:
        header = json.loads(header_bytes)
        width = int(header['width'])
        height = int(header['height'])
        encoding = header.get('encoding', MONO8)
        frame_id = int(header.get('frame_id', 0))
        stamp = float(header.get('stamp', 0.0))
    except (ValueError, KeyError, TypeError) as e:
        raise FrameSourceError(f"Malformed frame header: {e}") from e

    if encoding != MONO8:
        raise FrameSourceError(f"Unsupported encoding '{encoding}' (only {MONO8} frames are accepted)")
    if width <= 0 or height <= 0 or len(payload) != width * height:
        raise FrameSourceError(
            f"Payload of {len(payload)} bytes does not match {width}x{height} {MONO8}"
        )

    image = np.frombuffer(payload, dtype=np.uint8).reshape(height, width)
    return Frame(image=image, frame_id=frame_id, stamp=stamp)


class ZmqFrameSubscriber(IFrameSource):
    """
    ZeroMQ SUB socket delivering the latest camera frame.

    The receive high-water mark bounds the history depth. After a blocking
    receive the socket is drained without blocking so stale frames are
    dropped and only the newest one is returned.
    """

    def __init__(self, host: str = 'localhost', port: int = 5560, topic: str = 'image_rect',
                 history_depth: int = 10, endpoint: Optional[str] = None,
                 context: Optional[zmq.Context] = None):
        """
        Initialize the subscriber and connect.

        Args:
            host: Publisher host address
            port: Publisher port
            topic: Topic prefix to subscribe to
            history_depth: Maximum number of queued messages
            endpoint: Full endpoint overriding host/port (e.g. 'inproc://frames')
            context: Shared ZeroMQ context (a private one is created if None)
        """
        self.topic = topic
        self.endpoint = endpoint or f"tcp://{host}:{port}"
        self._owns_context = context is None
        self.context = context or zmq.Context()

        self.socket = self.context.socket(zmq.SUB)
        self.socket.setsockopt(zmq.RCVHWM, history_depth)
        self.socket.setsockopt(zmq.LINGER, 0)
        self.socket.setsockopt_string(zmq.SUBSCRIBE, topic)
        self.socket.connect(self.endpoint)
        logger.info(f"Connected SUB socket to {self.endpoint} (topic '{topic}', depth {history_depth})")

    def receive(self, timeout: float) -> Frame:
        self.socket.setsockopt(zmq.RCVTIMEO, max(int(timeout * 1000), 0))
        try:
            parts = self.socket.recv_multipart()
        except zmq.Again:
            raise TimeoutError(f"No frame received within {timeout:.1f}s")
        except zmq.ZMQError as e:
            raise FrameSourceError(f"Receive failed: {e}") from e

        # Keep only the most recent message
        dropped = 0
        while True:
            try:
                parts = self.socket.recv_multipart(flags=zmq.NOBLOCK)
                dropped += 1
            except zmq.Again:
                break
            except zmq.ZMQError as e:
                raise FrameSourceError(f"Receive failed while draining: {e}") from e
        if dropped:
            logger.debug(f"Dropped {dropped} stale frame(s)")

        return decode_frame(parts)

    def close(self) -> None:
        try:
            self.socket.close()
            if self._owns_context:
                self.context.term()
            logger.info("ZeroMQ subscriber closed")
        except zmq.ZMQError as e:
            logger.warning(f"Error during ZeroMQ cleanup: {e}")


class ZmqFramePublisher:
    """ZeroMQ PUB socket broadcasting camera frames."""

    def __init__(self, port: int = 5560, topic: str = 'image_rect', history_depth: int = 10,
                 endpoint: Optional[str] = None, context: Optional[zmq.Context] = None):
        self.topic = topic
        self.endpoint = endpoint or f"tcp://*:{port}"
        self._owns_context = context is None
        self.context = context or zmq.Context()
        self.frame_count = 0

        self.socket = self.context.socket(zmq.PUB)
        self.socket.setsockopt(zmq.SNDHWM, history_depth)
        self.socket.setsockopt(zmq.LINGER, 0)
        self.socket.bind(self.endpoint)
        logger.info(f"ZeroMQ PUB socket bound to {self.endpoint}")

    def publish(self, image: np.ndarray, stamp: Optional[float] = None) -> Frame:
        """Publish a mono8 image and return the frame that was sent."""
        frame = Frame(
            image=image,
            frame_id=self.frame_count,
            stamp=time.time() if stamp is None else stamp,
        )
        self.socket.send_multipart(encode_frame(self.topic, frame))
        self.frame_count += 1
        return frame

    def close(self) -> None:
        try:
            self.socket.close()
            if self._owns_context:
                self.context.term()
            logger.info("ZeroMQ publisher closed")
        except zmq.ZMQError as e:
            logger.warning(f"Error during ZeroMQ cleanup: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
