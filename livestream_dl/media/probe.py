"""
Runs the external ffmpeg/ffprobe tools and interprets their output.
"""

import asyncio
import json
import logging
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

from livestream_dl.exceptions import ExternalToolError
from livestream_dl.models.config import CaptureConfig
from livestream_dl.models.segment import MediaFormat

log = logging.getLogger(__name__)


class StreamType(Enum):
    """Codec type of a stream inside a media file, as reported by ffprobe."""

    VIDEO = "video"
    AUDIO = "audio"
    SUBTITLE = "subtitle"
    OTHER = "other"

    @classmethod
    def from_codec_type(cls, value: str) -> "StreamType":
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.OTHER


@dataclass
class ToolResult:
    returncode: int
    stdout: bytes
    stderr: bytes


class MediaTools:
    """Invokes ffmpeg and ffprobe as subprocesses with explicit argument lists."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe"):
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path

    @classmethod
    def from_config(cls, config: CaptureConfig) -> "MediaTools":
        return cls(ffmpeg_path=config.ffmpeg_path, ffprobe_path=config.ffprobe_path)

    def check_available(self, need_ffmpeg: bool = True) -> None:
        """Fails early when a required executable is not installed."""
        required = [self.ffprobe_path] + ([self.ffmpeg_path] if need_ffmpeg else [])
        for program in required:
            if shutil.which(program) is None:
                raise ExternalToolError(program, None, "executable not found in PATH")

    async def run(
        self, program: str, args: Sequence[str], input_data: Optional[bytes] = None
    ) -> ToolResult:
        """Runs a program to completion, killing it if the caller is cancelled."""
        argv = [program, *args]
        log.debug(f"Running {argv}")
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE
                if input_data is not None
                else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExternalToolError(program, None, str(e)) from e

        try:
            stdout, stderr = await process.communicate(input_data)
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise

        log.debug(f"{program} stdout: {stdout.decode(errors='replace')!r}")
        log.debug(f"{program} stderr: {stderr.decode(errors='replace')!r}")
        return ToolResult(process.returncode, stdout, stderr)

    async def ffmpeg(self, args: Sequence[str]) -> None:
        """Runs ffmpeg and raises if it exits with a non-zero status."""
        result = await self.run(self.ffmpeg_path, args)
        if result.returncode != 0:
            detail = result.stderr.decode(errors="replace").strip().splitlines()
            raise ExternalToolError("ffmpeg", result.returncode, detail[-1] if detail else "")

    async def detect_format(self, data: bytes) -> MediaFormat:
        """
        Classifies a downloaded segment by piping it through ffprobe.

        Unrecognized or unparseable output maps to MediaFormat.UNKNOWN.
        """
        result = await self.run(
            self.ffprobe_path,
            [
                "-loglevel",
                "quiet",
                "-show_entries",
                "format=format_name",
                "-print_format",
                "json",
                "-",
            ],
            input_data=data,
        )
        if result.returncode != 0:
            log.debug(f"ffprobe format detection failed with status {result.returncode}")
            return MediaFormat.UNKNOWN

        try:
            format_name = json.loads(result.stdout)["format"]["format_name"]
        except (ValueError, KeyError, TypeError) as e:
            log.debug(f"Unable to parse ffprobe output {result.stdout!r}: {e}")
            return MediaFormat.UNKNOWN
        return MediaFormat.from_probe_name(str(format_name))

    async def stream_types(self, path: Path) -> list[StreamType]:
        """Lists the codec types of all streams in a media file."""
        result = await self.run(
            self.ffprobe_path,
            [
                "-loglevel",
                "quiet",
                "-show_entries",
                "stream=codec_type",
                "-print_format",
                "json",
                str(path),
            ],
        )
        if result.returncode != 0:
            raise ExternalToolError("ffprobe", result.returncode, str(path))

        try:
            streams = json.loads(result.stdout).get("streams", [])
        except ValueError as e:
            raise ExternalToolError("ffprobe", result.returncode, f"invalid JSON: {e}") from e
        return [StreamType.from_codec_type(s.get("codec_type", "")) for s in streams]
