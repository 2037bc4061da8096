import importlib.util
from pathlib import Path

import pytest

pytest.importorskip("zmq")

SCRIPT = Path(__file__).parent.parent / "frame_server.py"


@pytest.fixture(scope="module")
def frame_server():
    spec = importlib.util.spec_from_file_location("frame_server", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_default_publish_rate(frame_server):
    args = frame_server.parse_args(['--video', 'drive.mp4'])
    assert args.fps == 10.0
    assert args.video == Path('drive.mp4')
    assert not args.loop


@pytest.mark.parametrize("fps", ['0', '-5'])
def test_non_positive_fps_is_rejected(frame_server, fps):
    with pytest.raises(SystemExit) as excinfo:
        frame_server.parse_args(['--images', 'recordings', '--fps', fps])
    assert excinfo.value.code == 2


def test_source_is_required(frame_server):
    with pytest.raises(SystemExit):
        frame_server.parse_args([])
