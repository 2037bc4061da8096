import numpy as np
import pytest

from lane_occupancy.config import CameraConfig, GridConfig
from lane_occupancy.perception import GroundProjector, OccupancyRasterizer, binarize_coverage


@pytest.fixture
def projector():
    return GroundProjector(CameraConfig())


@pytest.fixture
def rasterizer(projector):
    return OccupancyRasterizer(GridConfig(), projector)


@pytest.fixture
def downward_projector():
    # Optical axis tilted 60 degrees below the horizon, looking along +X
    return GroundProjector(CameraConfig(pitch_deg=-150.0))


@pytest.fixture
def downward_rasterizer(downward_projector):
    return OccupancyRasterizer(GridConfig(), downward_projector)


def _inside(pixels, camera, margin, in_front):
    u, v = pixels[..., 0], pixels[..., 1]
    return (
        in_front & np.isfinite(u) & np.isfinite(v)
        & (u >= margin) & (u <= camera.image_width - 1 - margin)
        & (v >= margin) & (v <= camera.image_height - 1 - margin)
    )


def test_grid_dimensions_from_extents():
    grid = GridConfig(x_limits=(-1.0, 5.0), y_limits=(-2.0, 2.0), resolution=0.01)
    assert grid.shape == (400, 600)


def test_grid_dimensions_round_to_nearest():
    grid = GridConfig(x_limits=(0.0, 1.0), y_limits=(0.0, 1.0), resolution=0.3)
    assert grid.shape == (3, 3)
    grid = GridConfig(x_limits=(0.0, 1.0), y_limits=(0.0, 0.26), resolution=0.1)
    assert grid.shape == (3, 10)


def test_coverage_binarization_is_strict():
    assert binarize_coverage(np.array([0.5, 0.51, 0.49, 1.0, 0.0])).tolist() == [
        False, True, False, True, False
    ]


def test_cell_centers(rasterizer):
    centers = rasterizer.cell_centers()
    assert centers.shape == (400, 600, 2)
    assert np.allclose(centers[0, 0], [-0.995, -1.995])
    assert np.allclose(centers[-1, -1], [4.995, 1.995])
    assert np.allclose(centers[0, 1], [-0.985, -1.995])


def test_output_matches_grid_shape(rasterizer):
    lane = np.zeros((544, 1024), dtype=bool)
    occupancy = rasterizer.rasterize(lane)
    assert occupancy.cells.shape == (400, 600)
    assert occupancy.cells.dtype == bool
    assert not occupancy.cells.any()


def test_full_lane_mask_fills_projected_footprint(downward_rasterizer, downward_projector):
    camera = downward_projector.camera
    pixels = downward_projector.project_to_image(downward_rasterizer.cell_centers())
    in_front = downward_rasterizer.in_front
    inside = _inside(pixels, camera, 2, in_front)
    outside = ~_inside(pixels, camera, -2, in_front)
    assert inside.any()

    occupancy = downward_rasterizer.rasterize(np.ones((camera.image_height, camera.image_width), dtype=bool))
    assert occupancy.cells[inside].all()
    assert not occupancy.cells[outside].any()


def test_cells_behind_camera_stay_free(rasterizer, projector):
    camera = projector.camera
    pixels = projector.project_to_image(rasterizer.cell_centers())
    behind = ~rasterizer.in_front
    # Behind-camera cells still map to in-image pixels through the homography
    mirrored = behind & _inside(pixels, camera, 2, True)
    assert mirrored.any()

    occupancy = rasterizer.rasterize(np.ones((camera.image_height, camera.image_width), dtype=bool))
    assert not occupancy.cells[behind].any()
    # At this pitch the visible ground starts beyond the grid
    assert not occupancy.cells.any()


def test_in_front_mask_matches_camera_depth(rasterizer, projector):
    centers = rasterizer.cell_centers()
    offsets = np.concatenate([centers, np.zeros(centers.shape[:2] + (1,))], axis=-1) - projector.camera_center
    depth = offsets @ projector.rotation[2]
    assert np.array_equal(rasterizer.in_front, depth > 0)


def test_lane_blob_lands_in_matching_cell(downward_rasterizer, downward_projector):
    camera = downward_projector.camera
    centers = downward_rasterizer.cell_centers()
    pixels = downward_projector.project_to_image(centers)
    rows, cols = np.nonzero(_inside(pixels, camera, 20, downward_rasterizer.in_front))
    i, j = rows[len(rows) // 2], cols[len(cols) // 2]
    u, v = np.round(pixels[i, j]).astype(int)

    lane = np.zeros((camera.image_height, camera.image_width), dtype=bool)
    lane[v - 10:v + 11, u - 10:u + 11] = True

    occupancy = downward_rasterizer.rasterize(lane)
    assert occupancy.cells[i, j]
    assert occupancy.occupied_fraction < 0.5
