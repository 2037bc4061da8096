"""
Ground Projector - planar homography between the ground plane and the image.

For points on the ground plane (Z = 0) the pinhole projection
    s * [u, v, 1]^T = K * [R | t] * [X, Y, 0, 1]^T
collapses to a 3x3 homography
    H_g2i = K * [r1, r2, t]
where r1, r2 are the first two columns of R and t = -R * C for a camera
centred at C = (0, 0, h). Back-projecting pixels onto the ground needs the
inverse, H_i2g = H_g2i^-1. The two directions are kept as separate
attributes; mixing them up silently inverts the projection.

Matrix convention: numpy and OpenCV apply homographies to column vectors
(p' = H p), so H_i2g is used as-is. Toolkits that multiply row vectors from
the left (p' = p T) expect the transpose, T = H_i2g^T; passing the
untransposed matrix there mirrors the grid.
"""

import logging

import numpy as np

from lane_occupancy.config.pipeline_config import CameraConfig

logger = logging.getLogger(__name__)

MAX_CONDITION_NUMBER = 1e12


class DegenerateCameraGeometryError(ValueError):
    """The camera constants yield a singular ground-to-image homography."""


def pitch_rotation(pitch_rad: float) -> np.ndarray:
    """Rotation about the lateral (Y) axis."""
    c, s = np.cos(pitch_rad), np.sin(pitch_rad)
    return np.array([
        [c, 0.0, s],
        [0.0, 1.0, 0.0],
        [-s, 0.0, c],
    ], dtype=np.float64)


def invert_homography(homography: np.ndarray) -> np.ndarray:
    """
    Invert a 3x3 homography, refusing singular or ill-conditioned ones.

    Raises:
        DegenerateCameraGeometryError: Matrix is not invertible in practice
    """
    if not np.all(np.isfinite(homography)):
        raise DegenerateCameraGeometryError(f"Homography has non-finite entries:\n{homography}")

    condition = np.linalg.cond(homography)
    if not np.isfinite(condition) or condition > MAX_CONDITION_NUMBER:
        raise DegenerateCameraGeometryError(
            f"Homography is singular (condition number {condition:.3g}); check intrinsics, pitch and mount height"
        )

    try:
        return np.linalg.inv(homography)
    except np.linalg.LinAlgError as e:
        raise DegenerateCameraGeometryError(f"Homography inversion failed: {e}") from e


def apply_homography(homography: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Map 2D points through a homography.

    Args:
        homography: (3, 3) matrix acting on column vectors
        points: (N, 2) or (2,) array of [x, y]

    Returns:
        Mapped points with the same leading shape as the input
    """
    points = np.asarray(points, dtype=np.float64)
    flat = points.reshape(-1, 2)
    homogeneous = np.hstack([flat, np.ones((len(flat), 1))])
    mapped = homogeneous @ homography.T
    with np.errstate(divide='ignore', invalid='ignore'):
        result = mapped[:, :2] / mapped[:, 2:3]
    return result.reshape(points.shape)


class GroundProjector:
    """Builds and holds the ground <-> image homographies for a fixed camera."""

    def __init__(self, camera: CameraConfig = CameraConfig()):
        """
        Compute both homographies once.

        Args:
            camera: Intrinsics and mounting pose

        Raises:
            DegenerateCameraGeometryError: Camera geometry gives a singular homography
        """
        self.camera = camera
        self.intrinsics = camera.intrinsic_matrix
        self.rotation = pitch_rotation(camera.pitch_rad)
        self.camera_center = np.array([0.0, 0.0, camera.mount_height])
        self.translation = -self.rotation @ self.camera_center

        self.ground_to_image = self.intrinsics @ np.column_stack(
            (self.rotation[:, 0], self.rotation[:, 1], self.translation)
        )
        self.image_to_ground = invert_homography(self.ground_to_image)

        logger.info(
            f"Ground projector ready: pitch={camera.pitch_deg:.1f}deg, height={camera.mount_height:.2f}m, "
            f"image {camera.image_width}x{camera.image_height}"
        )
        logger.debug(f"H_g2i:\n{self.ground_to_image}\nH_i2g:\n{self.image_to_ground}")

    def project_to_image(self, ground_points: np.ndarray) -> np.ndarray:
        """Ground [X, Y] (meters) -> image [u, v] (pixels)."""
        return apply_homography(self.ground_to_image, ground_points)

    def project_to_ground(self, pixel_points: np.ndarray) -> np.ndarray:
        """Image [u, v] (pixels) -> ground [X, Y] (meters)."""
        return apply_homography(self.image_to_ground, pixel_points)
