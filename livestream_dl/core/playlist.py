"""
Playlist parsing and master playlist resolution.

The m3u8 library is only touched here and in the poller; everything downstream
works on Track and Segment values.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import m3u8

from livestream_dl.exceptions import ParsePlaylistError
from livestream_dl.models.track import Track, TrackKind
from livestream_dl.net.client import HttpClient
from livestream_dl.utils.formatting import format_bitrate
from livestream_dl.utils.url import make_absolute_url

log = logging.getLogger(__name__)

PLAYLIST_HEADER = "#EXTM3U"

# EXT-X-MEDIA TYPE attribute -> track kind
MEDIA_TYPES = {
    "VIDEO": TrackKind.VIDEO,
    "AUDIO": TrackKind.AUDIO,
    "SUBTITLES": TrackKind.SUBTITLE,
}


@dataclass
class Variant:
    """One entry of a master playlist."""

    uri: str
    bandwidth: int = 0
    resolution: Optional[tuple] = None
    codecs: Optional[str] = None
    groups: Dict[TrackKind, str] = field(default_factory=dict)

    def describe(self) -> str:
        parts = [format_bitrate(self.bandwidth)]
        if self.resolution:
            parts.append(f"{self.resolution[0]}x{self.resolution[1]}")
        if self.codecs:
            parts.append(self.codecs)
        return ", ".join(parts)


VariantChooser = Callable[[List[Variant]], Variant]


def parse_playlist(data: bytes, url: str) -> m3u8.M3U8:
    """
    Parses a playlist body.

    Raises:
        ParsePlaylistError: If the body is not an m3u8 playlist.
    """
    text = data.decode("utf-8-sig", errors="replace")
    if not text.lstrip().startswith(PLAYLIST_HEADER):
        raise ParsePlaylistError(url, f"missing {PLAYLIST_HEADER} header")
    try:
        return m3u8.loads(text, uri=url)
    except Exception as e:
        raise ParsePlaylistError(url, str(e)) from e


def parse_variants(playlist: m3u8.M3U8) -> List[Variant]:
    variants = []
    for entry in playlist.playlists:
        info = entry.stream_info
        groups = {}
        for kind, group in (
            (TrackKind.AUDIO, info.audio),
            (TrackKind.VIDEO, info.video),
            (TrackKind.SUBTITLE, info.subtitles),
        ):
            if group:
                groups[kind] = group
        variants.append(
            Variant(
                uri=entry.uri,
                bandwidth=int(info.bandwidth or 0),
                resolution=info.resolution,
                codecs=info.codecs,
                groups=groups,
            )
        )
    return variants


def select_variant(
    variants: List[Variant], url: str, chooser: Optional[VariantChooser] = None
) -> Variant:
    """
    Picks the variant with the highest bandwidth, or asks the chooser, which is
    given the variants sorted from highest to lowest bandwidth.
    """
    if not variants:
        raise ParsePlaylistError(url, "master playlist lists no variants")
    ordered = sorted(variants, key=lambda v: v.bandwidth, reverse=True)
    if chooser is not None:
        return chooser(ordered)
    return ordered[0]


def alternative_tracks(playlist: m3u8.M3U8, variant: Variant, base_url: str) -> Dict[Track, str]:
    """
    Collects the alternative renditions referenced by the chosen variant.

    Every track gets a distinct file label; a rendition whose label collides
    with an earlier one has a counter appended to its name.
    """
    tracks: Dict[Track, str] = {}
    labels = {str(Track.main())}
    for media in playlist.media:
        kind = MEDIA_TYPES.get((media.type or "").upper())
        if kind is None or not media.uri:
            continue
        if variant.groups.get(kind) != media.group_id:
            continue
        name = media.name or media.group_id
        track = Track(kind, name, media.language)
        counter = 2
        while str(track) in labels:
            track = Track(kind, f"{name} {counter}", media.language)
            counter += 1
        labels.add(str(track))
        tracks[track] = make_absolute_url(base_url, media.uri)
    return tracks


async def resolve_tracks(
    client: HttpClient, url: str, chooser: Optional[VariantChooser] = None
) -> Dict[Track, str]:
    """
    Resolves the input URL into the media playlists to capture.

    A media playlist becomes the single Main track. For a master playlist the
    selected variant becomes Main and its alternative renditions become extra
    tracks. Relative URIs are resolved against the effective URL of the master.
    """
    response = await client.get(url)
    playlist = parse_playlist(response.data, response.url)

    if not playlist.is_variant:
        log.debug(f"{response.url} is a media playlist")
        return {Track.main(): response.url}

    variant = select_variant(parse_variants(playlist), response.url, chooser)
    log.info(f"Selected variant: {variant.describe()}")

    tracks = {Track.main(): make_absolute_url(response.url, variant.uri)}
    tracks.update(alternative_tracks(playlist, variant, response.url))
    for track, track_url in tracks.items():
        log.debug(f"Track {track}: {track_url}")
    return tracks
