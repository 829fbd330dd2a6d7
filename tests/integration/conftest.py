"""Integration fixtures: skip unless PyAV and an H.264 encoder are usable."""

import pytest

av = pytest.importorskip("av")


@pytest.fixture(scope="session")
def h264_encoder() -> str:
    try:
        av.codec.Codec("libx264", "w")
    except Exception:
        pytest.skip("libx264 encoder not available in this FFmpeg build")
    return "libx264"
