"""
Identity of a logical media line captured from a playlist.
"""

from dataclasses import dataclass
from enum import Enum

from pathvalidate import sanitize_filename


class TrackKind(Enum):
    """The rendition a track was created from."""

    MAIN = "main"
    VIDEO = "video"
    AUDIO = "audio"
    SUBTITLE = "subtitle"


# ffmpeg stream specifier letters used for per-stream metadata
STREAM_SPECIFIERS = {
    TrackKind.VIDEO: "v",
    TrackKind.AUDIO: "a",
    TrackKind.SUBTITLE: "s",
}


@dataclass(frozen=True)
class Track:
    """
    A logical media line: the main variant or one of its alternative renditions.

    Tracks are created once while resolving the master playlist and are shared by
    the poller, the downloader and the mux stage. Equality and hashing use the kind,
    name and language, so a track can key the per-track segment ledger.
    """

    kind: TrackKind
    name: str | None = None
    lang: str | None = None

    @classmethod
    def main(cls) -> "Track":
        return cls(TrackKind.MAIN)

    @classmethod
    def video(cls, name: str, lang: str | None = None) -> "Track":
        return cls(TrackKind.VIDEO, name, lang)

    @classmethod
    def audio(cls, name: str, lang: str | None = None) -> "Track":
        return cls(TrackKind.AUDIO, name, lang)

    @classmethod
    def subtitle(cls, name: str, lang: str | None = None) -> "Track":
        return cls(TrackKind.SUBTITLE, name, lang)

    @property
    def is_main(self) -> bool:
        return self.kind is TrackKind.MAIN

    @property
    def stream_specifier(self) -> str | None:
        """The ffmpeg stream type letter for alternative renditions."""
        return STREAM_SPECIFIERS.get(self.kind)

    def __str__(self) -> str:
        if self.is_main:
            return self.kind.value
        parts = [self.kind.value, self.name or ""]
        if self.lang:
            parts.append(self.lang)
        return sanitize_filename("_".join(parts), replacement_text="_")
