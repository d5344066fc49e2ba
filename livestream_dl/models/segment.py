"""
Value types describing remote byte spans and the media segments built from them.
"""

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Union


class MediaFormat(Enum):
    """Container or codec detected for a downloaded segment."""

    MPEG_TS = "mpegts"
    FMP4 = "fmp4"
    ADTS = "adts"
    MP3 = "mp3"
    AC3 = "ac3"
    EAC3 = "eac3"
    WEBVTT = "webvtt"
    UNKNOWN = "unknown"

    @classmethod
    def from_probe_name(cls, format_name: str) -> "MediaFormat":
        """Maps an ffprobe `format_name` to a format, UNKNOWN when unrecognized."""
        return PROBE_FORMAT_NAMES.get(format_name.strip(), cls.UNKNOWN)

    @property
    def extension(self) -> str:
        return FORMAT_EXTENSIONS.get(self, "ts")

    @property
    def needs_demuxer_concat(self) -> bool:
        """
        Frame based formats cannot be appended byte for byte and have to go through
        the ffmpeg concat demuxer instead.
        """
        return self is MediaFormat.MP3


PROBE_FORMAT_NAMES = {
    "mpegts": MediaFormat.MPEG_TS,
    "mov,mp4,m4a,3gp,3g2,mj2": MediaFormat.FMP4,
    "aac": MediaFormat.ADTS,
    "mp3": MediaFormat.MP3,
    "ac3": MediaFormat.AC3,
    "eac3": MediaFormat.EAC3,
    "webvtt": MediaFormat.WEBVTT,
}

FORMAT_EXTENSIONS = {
    MediaFormat.MPEG_TS: "ts",
    MediaFormat.FMP4: "mp4",
    MediaFormat.ADTS: "aac",
    MediaFormat.MP3: "mp3",
    MediaFormat.AC3: "ac3",
    MediaFormat.EAC3: "eac3",
    MediaFormat.WEBVTT: "vtt",
}

_BYTERANGE_RE = re.compile(r"^\s*(?P<length>\d+)(?:@(?P<offset>\d+))?\s*$")


@dataclass(frozen=True)
class ByteRange:
    """A half-open span `[offset, offset + length)` of a remote resource."""

    length: int
    offset: int | None = None

    @classmethod
    def parse(cls, value: str) -> "ByteRange":
        """Parses the playlist form `<length>[@<offset>]`."""
        match = _BYTERANGE_RE.match(value)
        if not match:
            raise ValueError(f"Invalid byte range: {value!r}")
        length = int(match.group("length"))
        if length == 0:
            raise ValueError(f"Empty byte range: {value!r}")
        offset = match.group("offset")
        return cls(length, int(offset) if offset else None)

    def header_value(self) -> str:
        """Formats the range as an HTTP `Range` header value."""
        start = self.offset or 0
        end = start + self.length - 1
        return f"bytes={start}-{end}"


@dataclass(frozen=True)
class RemoteResource:
    """A fetchable URL, optionally narrowed to a byte range."""

    url: str
    byte_range: ByteRange | None = None

    def range_header(self) -> str | None:
        return self.byte_range.header_value() if self.byte_range else None

    def __str__(self) -> str:
        if self.byte_range:
            return f"{self.url} ({self.range_header()})"
        return self.url


@dataclass(frozen=True)
class InitializationSegment:
    """Header bytes that prefix every following sequence segment until redeclared."""

    resource: RemoteResource


@dataclass(frozen=True)
class SequenceSegment:
    """
    A media segment published by the playlist.

    Segments within a track are totally ordered by `key`, the pair of
    discontinuity sequence and media sequence.
    """

    resource: RemoteResource
    discontinuity_sequence: int
    media_sequence: int
    initialization: InitializationSegment | None = None
    format: MediaFormat = MediaFormat.UNKNOWN

    @property
    def key(self) -> tuple[int, int]:
        return (self.discontinuity_sequence, self.media_sequence)

    @property
    def id(self) -> str:
        return f"d{self.discontinuity_sequence:010}s{self.media_sequence:010}"

    def with_format(self, media_format: MediaFormat) -> "SequenceSegment":
        return replace(self, format=media_format)


Segment = Union[InitializationSegment, SequenceSegment]
