"""
Frame Server - publish grayscale camera frames over ZeroMQ.

Reads a video file or a folder of images, converts each frame to mono8,
resizes it to the configured camera resolution and publishes it at a fixed
rate for demo.py to consume.

Usage:
    python frame_server.py --video drive.mp4
    python frame_server.py --images recordings/left --fps 10 --loop
"""

import argparse
import logging
import sys
import time
from pathlib import Path

import cv2

from lane_occupancy.config import load_pipeline_config
from lane_occupancy.gateway import ZmqFramePublisher

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {'.png', '.jpg', '.jpeg', '.bmp', '.pgm', '.tif', '.tiff'}


def iter_video(path):
    capture = cv2.VideoCapture(str(path))
    if not capture.isOpened():
        raise FileNotFoundError(f"Cannot open video: {path}")
    try:
        while True:
            ok, image = capture.read()
            if not ok:
                break
            yield cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    finally:
        capture.release()


def iter_images(folder):
    paths = sorted(p for p in Path(folder).iterdir() if p.suffix.lower() in IMAGE_SUFFIXES)
    if not paths:
        raise FileNotFoundError(f"No images found in {folder}")
    for path in paths:
        image = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
        if image is None:
            logger.warning(f"Skipping unreadable image {path}")
            continue
        yield image


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Publish grayscale frames over ZeroMQ')
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--video', type=Path, help='Video file to publish')
    source.add_argument('--images', type=Path, help='Folder of images to publish')
    parser.add_argument('--config', type=Path, default=None,
                        help='Pipeline config YAML (default: config/occupancy_config.yaml)')
    parser.add_argument('--fps', type=float, default=10.0, help='Publish rate (default: 10)')
    parser.add_argument('--loop', action='store_true', help='Restart the source when it ends')
    args = parser.parse_args(argv)
    if args.fps <= 0:
        parser.error(f"--fps must be positive, got {args.fps}")
    return args


def main():
    args = parse_args()
    config = load_pipeline_config(args.config)
    camera = config.camera
    sub_config = config.subscriber
    period = 1.0 / args.fps

    with ZmqFramePublisher(port=sub_config.port, topic=sub_config.topic,
                           history_depth=sub_config.history_depth) as publisher:
        try:
            while True:
                frames = iter_video(args.video) if args.video else iter_images(args.images)
                for image in frames:
                    next_tick = time.perf_counter() + period
                    if image.shape != camera.image_shape:
                        image = cv2.resize(image, (camera.image_width, camera.image_height))
                    frame = publisher.publish(image)
                    logger.debug(f"Published frame {frame.frame_id}")

                    sleep_time = next_tick - time.perf_counter()
                    if sleep_time > 0:
                        time.sleep(sleep_time)
                if not args.loop:
                    break
        except KeyboardInterrupt:
            logger.info("Interrupted - stopping frame server")

        logger.info(f"Published {publisher.frame_count} frame(s)")

    return 0


if __name__ == '__main__':
    sys.exit(main())
