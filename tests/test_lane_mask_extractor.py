import numpy as np
import pytest

from lane_occupancy.config import MorphologyConfig
from lane_occupancy.gateway import BinaryMask
from lane_occupancy.perception import LaneMaskExtractor, build_overlay, overlay_lane_pixels


@pytest.fixture
def extractor():
    return LaneMaskExtractor(MorphologyConfig())


def test_binarize_is_strictly_below_threshold(extractor):
    image = np.array([[98, 99, 100, 101]], dtype=np.uint8)
    mask = extractor.binarize(image, 100.0)
    assert mask.data.tolist() == [[True, True, False, False]]
    assert mask.lane_value is True


def test_binarize_fractional_threshold(extractor):
    image = np.array([[112, 113]], dtype=np.uint8)
    assert extractor.binarize(image, 112.9048).data.tolist() == [[True, False]]


@pytest.mark.parametrize("value", [True, False])
def test_uniform_masks_are_unchanged(extractor, value):
    mask = np.full((30, 40), value, dtype=bool)
    assert np.array_equal(extractor.erode(mask), mask)
    assert np.array_equal(extractor.reconstruct(mask, mask), mask)
    assert np.array_equal(extractor.dilate(mask), mask)
    assert np.array_equal(extractor.enhance(BinaryMask(mask)).data, mask)


def test_erosion_removes_one_pixel_wide_line(extractor):
    mask = np.zeros((20, 20), dtype=bool)
    mask[:, 10] = True
    assert not extractor.erode(mask).any()


def test_erosion_origin_keeps_left_end_of_run(extractor):
    mask = np.zeros((7, 10), dtype=bool)
    mask[3, 2:7] = True
    eroded = extractor.erode(mask)
    assert np.flatnonzero(eroded[3]).tolist() == [2, 3, 4, 5]
    assert eroded.sum() == 4


def test_dilation_uses_reflected_origin(extractor):
    mask = np.zeros((12, 12), dtype=bool)
    mask[5, 5] = True
    dilated = extractor.dilate(mask)
    rows, cols = np.nonzero(dilated)
    assert dilated.sum() == 12
    assert (rows.min(), rows.max()) == (5, 6)
    assert (cols.min(), cols.max()) == (3, 8)


def test_reconstruction_restores_line_from_surviving_seed(extractor):
    mask = np.zeros((20, 20), dtype=bool)
    mask[:, 10] = True           # thin line, lost by erosion
    mask[8:12, 11:15] = True     # block attached to the line, survives erosion
    mask[:, 3] = True            # isolated thin line, no seed

    marker = extractor.erode(mask)
    assert not marker[:8, 10].any()
    assert not marker[12:, 10].any()
    assert marker[8:12, 10:14].all()

    reconstructed = extractor.reconstruct(marker, mask)
    assert reconstructed[:, 10].all()
    assert reconstructed[8:12, 11:15].all()
    assert not reconstructed[:, 3].any()


def test_reconstruction_without_seed_is_empty(extractor):
    mask = np.zeros((10, 10), dtype=bool)
    mask[2, 2] = True
    marker = np.zeros_like(mask)
    assert not extractor.reconstruct(marker, mask).any()


def test_enhanced_mask_has_background_polarity(extractor):
    image = np.full((20, 20), 200, dtype=np.uint8)
    image[:, 8:12] = 20
    enhanced = extractor.enhance(extractor.binarize(image, 100.0))
    assert enhanced.lane_value is False
    assert np.array_equal(enhanced.lane_pixels(), ~enhanced.data)


def test_overlay_marks_lane_in_red_only():
    data = np.ones((6, 8), dtype=bool)
    data[:, 4] = False
    enhanced = BinaryMask(data=data, lane_value=False)

    overlay = build_overlay(enhanced)
    assert overlay.shape == (6, 8, 3)
    assert overlay.dtype == np.uint8
    assert (overlay[:, 4, 0] == 255).all()
    assert (overlay[:, :4, 0] == 0).all()
    assert not overlay[:, :, 1:].any()
    assert np.array_equal(overlay_lane_pixels(overlay), enhanced.lane_pixels())
