"""
Pydantic model for capture configuration.
Provides robust validation for all settings.
"""

from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CaptureConfig(BaseModel):
    """A validated configuration model for one capture session."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Source & Output
    url: str
    output_dir: str = Field(..., repr=False)

    # Network Settings
    max_concurrent_downloads: int = 20
    max_retries: int = 10
    timeout: float = 10.0
    retry_min_delay: float = 1.0
    retry_max_delay: float = 10.0
    cookies: str | None = None
    copy_query: bool = False
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0"
    )

    # Capture Behavior
    choose_stream: bool = False
    no_remux: bool = False
    fail_fast: bool = True
    segment_retries: int = 0
    init_cache_size: int | None = None

    # External Tools
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Only http(s) playlists can be captured."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Playlist URL must be an http(s) URL, got: {v}")
        return v

    @field_validator("max_concurrent_downloads")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent downloads."""
        if v < 1 or v > 128:
            raise ValueError("Max concurrent downloads must be between 1 and 128.")
        return v

    @field_validator("max_retries", "segment_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0 or v > 100:
            raise ValueError("Retry counts must be between 0 and 100.")
        return v

    @field_validator("timeout", "retry_min_delay", "retry_max_delay")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts and retry delays must be positive.")
        return v

    @field_validator("init_cache_size")
    @classmethod
    def validate_init_cache_size(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("Initialization cache size must be at least 1.")
        return v

    @field_validator("cookies")
    @classmethod
    def validate_cookies(cls, v: str | None) -> str | None:
        """The cookie file must exist if one is given."""
        if v and not Path(v).expanduser().is_file():
            raise ValueError(f"Cookie file not found: {v}")
        return v or None

    @model_validator(mode="after")
    def validate_retry_bounds(self) -> "CaptureConfig":
        """Checks that the retry backoff bounds are ordered."""
        if self.retry_min_delay > self.retry_max_delay:
            raise ValueError(
                "retry_min_delay cannot be greater than retry_max_delay "
                f"({self.retry_min_delay} > {self.retry_max_delay})."
            )
        return self

    @property
    def effective_init_cache_size(self) -> int:
        """The initialization cache is sized to the concurrency limit by default."""
        return self.init_cache_size or self.max_concurrent_downloads

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"url", "output_dir", "cookies", "choose_stream", "no_remux"}
        return {key for key in cls.model_fields if key not in internal_fields}
