import pytest

from livestream_dl.models.config import CaptureConfig


@pytest.fixture
def make_config(tmp_path):
    def factory(**overrides):
        values = {
            "url": "https://example.com/live/index.m3u8",
            "output_dir": str(tmp_path / "out"),
            "retry_min_delay": 0.01,
            "retry_max_delay": 0.02,
            "max_concurrent_downloads": 4,
        }
        values.update(overrides)
        return CaptureConfig(**values)

    return factory
