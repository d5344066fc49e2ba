import configparser
from datetime import date

import pytest

from livestream_dl.exceptions import ConfigurationError
from livestream_dl.storage.config_manager import ConfigManager
from livestream_dl.utils.formatting import format_bitrate
from livestream_dl.utils.path import default_output_dir

REQUIRED = {"url": "https://example.com/live.m3u8", "output_dir": "out"}


def test_missing_file_uses_defaults(tmp_path):
    config = ConfigManager(tmp_path / "config.ini").load_config(REQUIRED)
    assert config.max_concurrent_downloads == 20
    assert config.fail_fast is True
    assert config.effective_init_cache_size == 20


def test_file_values_are_overridden_by_cli(tmp_path):
    config_file = tmp_path / "config.ini"
    config_file.write_text(
        "[DEFAULT]\nmax_concurrent_downloads = 8\ntimeout = 30\nfail_fast = false\n",
        encoding="utf-8",
    )

    config = ConfigManager(config_file).load_config(
        {**REQUIRED, "max_concurrent_downloads": 2, "timeout": None}
    )

    assert config.max_concurrent_downloads == 2
    assert config.timeout == 30.0
    assert config.fail_fast is False


def test_missing_keys_are_migrated_into_the_file(tmp_path):
    config_file = tmp_path / "config.ini"
    config_file.write_text("[DEFAULT]\nmax_retries = 3\n", encoding="utf-8")

    ConfigManager(config_file).load_config(REQUIRED)

    parser = configparser.ConfigParser(interpolation=None)
    parser.read(config_file)
    assert parser["DEFAULT"]["max_retries"] == "3"
    assert parser["DEFAULT"]["ffmpeg_path"] == "ffmpeg"
    assert "url" not in parser["DEFAULT"]


def test_saved_defaults_load_back(tmp_path):
    manager = ConfigManager(tmp_path / "nested" / "config.ini")
    manager.save_new_config({"segment_retries": 2})

    config = ConfigManager(tmp_path / "nested" / "config.ini").load_config(REQUIRED)
    assert config.segment_retries == 2
    assert config.init_cache_size is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"url": "ftp://example.com/live.m3u8"},
        {"max_concurrent_downloads": 0},
        {"retry_min_delay": 5.0, "retry_max_delay": 1.0},
        {"cookies": "/does/not/exist.txt"},
    ],
)
def test_invalid_values_raise_configuration_error(tmp_path, overrides):
    with pytest.raises(ConfigurationError):
        ConfigManager(tmp_path / "config.ini").load_config({**REQUIRED, **overrides})


def test_default_output_dir_skips_existing(tmp_path):
    today = date(2024, 3, 9)
    first = default_output_dir(tmp_path, today)
    assert first == tmp_path / "20240309-stream-download"

    first.mkdir()
    (tmp_path / "20240309-stream-download.1").mkdir()
    assert default_output_dir(tmp_path, today) == tmp_path / "20240309-stream-download.2"


@pytest.mark.parametrize(
    "bandwidth, expected",
    [(800, "800 b/s"), (128000, "128.0 Kb/s"), (2500000, "2.5 Mb/s")],
)
def test_format_bitrate(bandwidth, expected):
    assert format_bitrate(bandwidth) == expected
