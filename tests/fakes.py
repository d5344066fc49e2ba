"""Test doubles for the HTTP client and the ffmpeg/ffprobe runner."""

import asyncio
from pathlib import Path

from livestream_dl.exceptions import ExternalToolError, NetworkError
from livestream_dl.media.probe import MediaTools, StreamType
from livestream_dl.models.segment import MediaFormat, RemoteResource
from livestream_dl.net.client import FetchResult


class FakeClient:
    """
    In-memory stand-in for HttpClient.

    `routes` maps a URL to bytes, or to a list of bytes that is consumed one
    entry per request (the last entry repeats), to simulate a playlist that
    changes between polls. Unknown URLs raise a 404 NetworkError.
    """

    retry_min_delay = 0.01

    def __init__(self, routes=None, delay=0.0):
        self.routes = dict(routes or {})
        self.delay = delay
        self.requests = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get(self, url, headers=None):
        self.requests.append((url, dict(headers or {})))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            body = self.routes.get(url)
            if body is None:
                raise NetworkError(404, url)
            if isinstance(body, list):
                data = body.pop(0) if len(body) > 1 else body[0]
            else:
                data = body
            if isinstance(data, Exception):
                raise data
            return FetchResult(data=data, url=url)
        finally:
            self.in_flight -= 1

    async def fetch(self, resource: RemoteResource):
        headers = {}
        if resource.byte_range:
            headers["Range"] = resource.range_header()
        return await self.get(resource.url, headers=headers)


class FakeTools(MediaTools):
    """Records ffmpeg invocations instead of running them."""

    def __init__(self, media_format=MediaFormat.MPEG_TS, stream_types=None, fail=False):
        super().__init__()
        self.media_format = media_format
        self.main_stream_types = stream_types or [StreamType.VIDEO, StreamType.AUDIO]
        self.fail = fail
        self.ffmpeg_calls = []

    async def detect_format(self, data):
        return self.media_format

    async def stream_types(self, path):
        return list(self.main_stream_types)

    async def ffmpeg(self, args):
        self.ffmpeg_calls.append(list(args))
        if self.fail:
            raise ExternalToolError("ffmpeg", 1, "simulated failure")
        Path(args[-1]).write_bytes(b"muxed")


def media_playlist(*segments, media_sequence=0, target=2, endlist=True, header_lines=()):
    lines = ["#EXTM3U", "#EXT-X-VERSION:3", f"#EXT-X-TARGETDURATION:{target}"]
    lines.append(f"#EXT-X-MEDIA-SEQUENCE:{media_sequence}")
    lines.extend(header_lines)
    for segment in segments:
        if isinstance(segment, str) and segment.startswith("#"):
            lines.append(segment)
        else:
            lines.append("#EXTINF:2.0,")
            lines.append(segment)
    if endlist:
        lines.append("#EXT-X-ENDLIST")
    return ("\n".join(lines) + "\n").encode()
