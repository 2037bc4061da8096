import pytest

pytest.importorskip("numpy")
pytest.importorskip("cv2")

from lane_occupancy.config import PipelineConfig


@pytest.fixture
def config():
    return PipelineConfig()
