"""
Data Models Layer.

This package contains the value types that flow through a capture session
(tracks, segments, remote resources) and the validated configuration model.
"""

from .config import CaptureConfig
from .segment import (
    ByteRange,
    InitializationSegment,
    MediaFormat,
    RemoteResource,
    Segment,
    SequenceSegment,
)
from .stats import CaptureStats
from .track import Track, TrackKind

__all__ = [
    "ByteRange",
    "CaptureConfig",
    "CaptureStats",
    "InitializationSegment",
    "MediaFormat",
    "RemoteResource",
    "Segment",
    "SequenceSegment",
    "Track",
    "TrackKind",
]
