"""
Dataclass for tracking capture session statistics.
"""

import time
from collections import Counter
from dataclasses import dataclass, field


@dataclass
class CaptureStats:
    """Tracks statistics for a capture session."""

    segments_downloaded: int = 0
    segments_failed: int = 0
    bytes_written: int = 0
    pollers_failed: int = 0
    muxed_files: list[str] = field(default_factory=list)
    segments_per_track: Counter = field(default_factory=Counter)
    start_time: float = field(default_factory=time.monotonic, repr=False)

    def record_segment(self, track_name: str, size: int) -> None:
        self.segments_downloaded += 1
        self.bytes_written += size
        self.segments_per_track[track_name] += 1

    def record_failure(self) -> None:
        self.segments_failed += 1

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time
