"""
Playlist poller: one long-running task per track that turns successive
snapshots of a live media playlist into a strictly increasing stream of jobs.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import m3u8

from livestream_dl.core.playlist import parse_playlist
from livestream_dl.core.stopper import Stopper
from livestream_dl.exceptions import ParsePlaylistError
from livestream_dl.media.downloader import SegmentJob
from livestream_dl.media.encryption import Encryption
from livestream_dl.models.segment import (
    ByteRange,
    InitializationSegment,
    RemoteResource,
    SequenceSegment,
)
from livestream_dl.models.track import Track
from livestream_dl.net.client import HttpClient
from livestream_dl.utils.url import make_absolute_url

log = logging.getLogger(__name__)

DEFAULT_TARGET_DURATION = 6.0


class PollerOutcome(Enum):
    """How a poller finished without failing."""

    ENDED = "ended"
    STOPPED = "stopped"


@dataclass
class PollerState:
    """Mutable state owned by a single poller."""

    last_key: Optional[Tuple[int, int]] = None
    key_tag: Optional[tuple] = None
    encryption: Encryption = field(default_factory=Encryption.none)
    initialization: Optional[InitializationSegment] = None


def _key_tag(key) -> Optional[tuple]:
    if key is None:
        return None
    return (key.method, key.uri, key.iv, key.keyformat)


def _byte_range(
    value: Optional[str], url: str, previous_end: Dict[str, int]
) -> Optional[ByteRange]:
    """
    Parses a segment byte range. Without an explicit offset the range continues
    where the previous range of the same resource ended.
    """
    if not value:
        return None
    byte_range = ByteRange.parse(value)
    if byte_range.offset is None and url in previous_end:
        byte_range = ByteRange(byte_range.length, previous_end[url])
    previous_end[url] = (byte_range.offset or 0) + byte_range.length
    return byte_range


class PlaylistPoller:
    """
    Polls one media playlist until it ends, the stopper fires, or an error occurs.

    Each cycle emits every segment whose (discontinuity sequence, media sequence)
    key exceeds the last one emitted, so overlapping playlist windows never
    produce duplicates.
    """

    def __init__(
        self,
        client: HttpClient,
        stopper: Stopper,
        jobs: "asyncio.Queue[Optional[SegmentJob]]",
        track: Track,
        url: str,
    ):
        self.client = client
        self.stopper = stopper
        self.jobs = jobs
        self.track = track
        self.url = url
        self.state = PollerState()

    def collect_new_segments(self, playlist: m3u8.M3U8, base_url: str) -> List[SegmentJob]:
        """
        Builds the jobs for the segments of one playlist snapshot that have not
        been emitted yet and advances the last seen key.
        """
        state = self.state
        base_sequence = playlist.media_sequence or 0
        base_discontinuity = playlist.discontinuity_sequence or 0
        discontinuity_offset = 0
        previous_end: Dict[str, int] = {}
        new_jobs = []

        for index, entry in enumerate(playlist.segments):
            if entry.discontinuity:
                discontinuity_offset += 1

            url = make_absolute_url(base_url, entry.uri)
            byte_range = _byte_range(entry.byterange, url, previous_end)
            key = (base_discontinuity + discontinuity_offset, base_sequence + index)
            if state.last_key is not None and key <= state.last_key:
                continue

            tag = _key_tag(entry.key)
            if tag != state.key_tag:
                if entry.key is None:
                    state.encryption = Encryption.none()
                else:
                    state.encryption = Encryption.from_key_tag(
                        entry.key.method,
                        entry.key.uri,
                        entry.key.iv,
                        entry.key.keyformat,
                        base_url,
                    )
                state.key_tag = tag

            init_section = entry.init_section
            if init_section is not None and init_section.uri:
                init_url = make_absolute_url(base_url, init_section.uri)
                init_range = (
                    ByteRange.parse(init_section.byterange) if init_section.byterange else None
                )
                state.initialization = InitializationSegment(RemoteResource(init_url, init_range))

            segment = SequenceSegment(
                resource=RemoteResource(url, byte_range),
                discontinuity_sequence=key[0],
                media_sequence=key[1],
                initialization=state.initialization,
            )
            new_jobs.append(SegmentJob(self.track, segment, state.encryption))
            state.last_key = key

        return new_jobs

    async def poll_once(self) -> Tuple[m3u8.M3U8, List[SegmentJob]]:
        response = await self.client.get(self.url)
        log.debug(f"Fetched playlist for {self.track} from {response.url}")
        playlist = parse_playlist(response.data, response.url)
        try:
            return playlist, self.collect_new_segments(playlist, response.url)
        except ValueError as e:
            raise ParsePlaylistError(response.url, str(e)) from e

    def next_poll_delay(self, playlist: m3u8.M3U8, found_new: bool) -> float:
        """
        Seconds between the start of one cycle and the next: the target duration
        after a cycle that found new segments, half of it otherwise.
        """
        target = float(playlist.target_duration or DEFAULT_TARGET_DURATION)
        return target if found_new else target / 2

    async def run(self) -> PollerOutcome:
        """
        Runs the polling loop.

        Returns:
            ENDED once the playlist declares its end, STOPPED when the stopper fires.

        Raises:
            NetworkError, ParsePlaylistError, EncryptionError: Fatal for this track.
        """
        while True:
            cycle_start = time.monotonic()
            playlist, new_jobs = await self.poll_once()
            if self.stopper.stopped():
                log.info(f"Poller for {self.track} stopped")
                return PollerOutcome.STOPPED

            for job in new_jobs:
                log.debug(f"Discovered {self.track} segment {job.segment.id}")
                await self.jobs.put(job)

            if playlist.is_endlist:
                log.info(f"Playlist for {self.track} ended")
                return PollerOutcome.ENDED

            delay = self.next_poll_delay(playlist, bool(new_jobs))
            remaining = max(delay - (time.monotonic() - cycle_start), 0)
            try:
                await asyncio.wait_for(self.stopper.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                continue
            log.info(f"Poller for {self.track} stopped")
            return PollerOutcome.STOPPED
