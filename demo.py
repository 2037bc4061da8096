"""
Lane Occupancy Demo - live lane detection and occupancy mapping.

Subscribes to camera frames over ZeroMQ, runs the lane occupancy pipeline on
each one and shows a 2x4 dashboard: original image, bilateral filter,
threshold mask, morphology result, overlay, occupancy map and timings.
The loop ends when the dashboard window is closed or ESC is pressed.

Usage:
    python demo.py
    python demo.py --host 192.168.1.100 --config config/occupancy_config.yaml
    python demo.py --headless
"""

import argparse
import logging
import sys
from pathlib import Path

import cv2
import numpy as np

from lane_occupancy.config import load_pipeline_config
from lane_occupancy.gateway import ZmqFrameSubscriber, FrameReport
from lane_occupancy.perception import FrameProcessor, DegenerateCameraGeometryError

logger = logging.getLogger(__name__)

WINDOW_NAME = 'Real-time Lane Detection, Dynamic Threshold & Occupancy Map'
PANEL_WIDTH = 512
PANEL_HEIGHT = 272


def setup_logging(verbose=False):
    """
    Configure logging for the entire application.

    Args:
        verbose: If True, set DEBUG level. Otherwise INFO level.
    """
    log_level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _panel(image, title):
    """Resize an image into a BGR dashboard panel with a caption."""
    if image is None:
        image = np.zeros((PANEL_HEIGHT, PANEL_WIDTH), dtype=np.uint8)
    if image.dtype == bool:
        image = image.astype(np.uint8) * 255
    panel = cv2.resize(image, (PANEL_WIDTH, PANEL_HEIGHT), interpolation=cv2.INTER_NEAREST)
    if panel.ndim == 2:
        panel = cv2.cvtColor(panel, cv2.COLOR_GRAY2BGR)
    for i, line in enumerate(title.split('\n')):
        cv2.putText(panel, line, (8, 22 + 20 * i), cv2.FONT_HERSHEY_SIMPLEX, 0.55, (0, 255, 255), 1, cv2.LINE_AA)
    return panel


def _text_panel(report: FrameReport):
    t = report.timings
    lines = [
        f"Total Frame Processing Time: {t.total_ms / 1000:.3f} s",
        f"Receive: {t.reception_ms / 1000:.3f} s",
        f"Bilateral Filtering: {t.filtering_ms / 1000:.3f} s",
        f"Threshold: {t.thresholding_ms / 1000:.3f} s",
        f"Morphological: {t.morphology_ms / 1000:.3f} s",
        f"Average Brightness: {round(report.average_brightness)}",
        f"Dynamic Threshold: {round(report.threshold)}",
    ]
    panel = np.zeros((PANEL_HEIGHT, PANEL_WIDTH, 3), dtype=np.uint8)
    for i, line in enumerate(lines):
        cv2.putText(panel, line, (12, 40 + 30 * i), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1, cv2.LINE_AA)
    return panel


def render_dashboard(report: FrameReport):
    """Compose the 2x4 dashboard image for one frame."""
    t = report.timings
    overlay_bgr = None
    if report.overlay is not None:
        overlay_bgr = cv2.cvtColor(report.overlay, cv2.COLOR_RGB2BGR)

    top = [
        _panel(report.frame.image, f"Original Image\n(Receive: {t.reception_ms / 1000:.3f} s)"),
        _panel(report.filtered, f"Bilateral Filtering\n({t.filtering_ms / 1000:.3f} s)"),
        _panel(report.binary_mask.data, f"Threshold (<{round(report.threshold)})\n({t.thresholding_ms / 1000:.3f} s)"),
        _panel(report.enhanced_mask.data, f"Morphological Processing\n({t.morphology_ms / 1000:.3f} s)"),
    ]
    bottom = [
        _panel(overlay_bgr, f"Overlay Image\n({t.overlay_ms / 1000:.3f} s)"),
        _panel(report.occupancy.cells, f"Occupancy Map\n({t.projection_ms / 1000:.3f} s)"),
        _text_panel(report),
        _panel(None, ''),
    ]
    return np.vstack([np.hstack(top), np.hstack(bottom)])


def main():
    """Live lane occupancy demo."""
    parser = argparse.ArgumentParser(description='Real-time lane detection and occupancy map')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable verbose logging (DEBUG level)')
    parser.add_argument('--config', type=Path, default=None,
                        help='Pipeline config YAML (default: config/occupancy_config.yaml)')
    parser.add_argument('--host', type=str, default=None,
                        help='Frame publisher host (overrides config)')
    parser.add_argument('--port', type=int, default=None,
                        help='Frame publisher port (overrides config)')
    parser.add_argument('--headless', action='store_true',
                        help='Run without the dashboard window (stop with Ctrl+C)')
    args = parser.parse_args()

    setup_logging(verbose=args.verbose)

    config = load_pipeline_config(args.config)
    sub_config = config.subscriber

    try:
        processor = FrameProcessor(config)
    except DegenerateCameraGeometryError as e:
        logger.error(f"Invalid camera geometry: {e}")
        return 1

    logger.info("=" * 80)
    logger.info("LANE OCCUPANCY DEMO")
    logger.info(f"Grid: {config.grid.rows}x{config.grid.cols} cells at {config.grid.resolution} m/cell")
    logger.info("=" * 80)

    running = True

    if args.headless:
        def is_active():
            return running

        def on_report(report):
            logger.info(report.summary())
    else:
        cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)

        def is_active():
            return running and cv2.getWindowProperty(WINDOW_NAME, cv2.WND_PROP_VISIBLE) >= 1

        def on_report(report):
            nonlocal running
            cv2.imshow(WINDOW_NAME, render_dashboard(report))
            if cv2.waitKey(1) & 0xFF == 27:
                logger.info("ESC pressed - ending demo")
                running = False
            logger.info(report.summary())

    with ZmqFrameSubscriber(
        host=args.host or sub_config.host,
        port=args.port or sub_config.port,
        topic=sub_config.topic,
        history_depth=sub_config.history_depth,
    ) as subscriber:
        try:
            processor.run(subscriber, is_active, on_report)
        except KeyboardInterrupt:
            logger.info("Interrupted - ending demo")
        finally:
            if not args.headless:
                cv2.destroyAllWindows()

    return 0


if __name__ == '__main__':
    sys.exit(main())
