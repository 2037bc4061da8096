"""
Lane Mask Extractor - binarization and morphological enhancement.

The frame is binarized against the dynamic threshold, then cleaned with an
erode -> reconstruct -> dilate sequence:
- erosion with a small kernel keeps only well-supported pixels as seeds,
- reconstruction regrows every connected region a seed touches, restoring
  the shape erosion removed while discarding regions with no seed,
- dilation with an elongated kernel bridges small gaps along the lane.

Polarity: the raw binarization marks candidates with True. The enhanced mask
is read the other way round (True = background), which is why it carries
lane_value=False and the overlay negates it.
"""

import logging

import cv2
import numpy as np

from lane_occupancy.config.pipeline_config import MorphologyConfig, StructuringElement
from lane_occupancy.gateway.data_types import BinaryMask

logger = logging.getLogger(__name__)

RED_CHANNEL = 0  # overlays are RGB


def _as_uint8(mask: np.ndarray) -> np.ndarray:
    return mask.astype(np.uint8)


class LaneMaskExtractor:
    """Binarizes frames and applies the morphological lane enhancement."""

    def __init__(self, config: MorphologyConfig = MorphologyConfig()):
        """
        Initialize the extractor.

        Args:
            config: Structuring elements and reconstruction connectivity
        """
        self.config = config

    def binarize(self, image: np.ndarray, threshold: float) -> BinaryMask:
        """Mark every sample strictly below threshold."""
        return BinaryMask(data=image < threshold, lane_value=True)

    def erode(self, mask: np.ndarray, element: StructuringElement = None) -> np.ndarray:
        """Binary erosion; samples outside the image count as True."""
        element = element or self.config.erosion
        eroded = cv2.erode(
            _as_uint8(mask), element.kernel, anchor=element.anchor(),
            borderType=cv2.BORDER_CONSTANT, borderValue=1
        )
        return eroded.astype(bool)

    def dilate(self, mask: np.ndarray, element: StructuringElement = None) -> np.ndarray:
        """Binary dilation; samples outside the image count as False."""
        element = element or self.config.dilation
        dilated = cv2.dilate(
            _as_uint8(mask), element.kernel, anchor=element.anchor(reflected=True),
            borderType=cv2.BORDER_CONSTANT, borderValue=0
        )
        return dilated.astype(bool)

    def reconstruct(self, marker: np.ndarray, mask: np.ndarray) -> np.ndarray:
        """
        Binary morphological reconstruction of mask from marker.

        Equivalent to iterated geodesic dilation until stability: a connected
        component of mask survives iff the marker touches it.
        """
        num_labels, labels = cv2.connectedComponents(
            _as_uint8(mask), connectivity=self.config.reconstruction_connectivity
        )
        if num_labels <= 1:
            return np.zeros(mask.shape, dtype=bool)

        seeded = np.zeros(num_labels, dtype=bool)
        seeded[labels[marker & mask]] = True
        seeded[0] = False  # background label
        return seeded[labels]

    def enhance(self, mask: BinaryMask) -> BinaryMask:
        """Erode, reconstruct and dilate a binarized mask."""
        marker = self.erode(mask.data)
        reconstructed = self.reconstruct(marker, mask.data)
        enhanced = self.dilate(reconstructed)
        logger.debug(
            f"Morphology: {np.count_nonzero(mask.data)} raw -> {np.count_nonzero(marker)} seeds -> "
            f"{np.count_nonzero(reconstructed)} reconstructed -> {np.count_nonzero(enhanced)} dilated"
        )
        return BinaryMask(data=enhanced, lane_value=False)


def build_overlay(enhanced: BinaryMask) -> np.ndarray:
    """RGB image with lane pixels in pure red and everything else black."""
    lane = enhanced.lane_pixels()
    overlay = np.zeros(lane.shape + (3,), dtype=np.uint8)
    overlay[:, :, RED_CHANNEL] = 255 * lane.astype(np.uint8)
    return overlay


def overlay_lane_pixels(overlay: np.ndarray, lane_level: int = 200) -> np.ndarray:
    """Select lane pixels from an overlay: red channel strictly above lane_level."""
    return overlay[:, :, RED_CHANNEL] > lane_level
