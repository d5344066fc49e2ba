"""
Mux engine: combines the concatenated tracks of each discontinuity run into one
MP4 file with per-stream metadata.
"""

import asyncio
import logging
from collections import Counter
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from livestream_dl.exceptions import ExternalToolError, RemuxError
from livestream_dl.media.probe import MediaTools, StreamType
from livestream_dl.models.segment import SequenceSegment
from livestream_dl.models.track import STREAM_SPECIFIERS, Track, TrackKind

from .concat import ConcatenatedStream, concat_streams
from .language import to_three_letter_code

log = logging.getLogger(__name__)

OUTPUT_FLAGS = [
    "-muxpreload",
    "0",
    "-muxdelay",
    "0",
    "-avoid_negative_ts",
    "make_zero",
    "-c:v",
    "copy",
    "-c:a",
    "copy",
    "-c:s",
    "mov_text",
    "-dn",
    "-movflags",
    "+faststart",
]

STREAM_TYPE_KINDS = {
    StreamType.VIDEO: TrackKind.VIDEO,
    StreamType.AUDIO: TrackKind.AUDIO,
    StreamType.SUBTITLE: TrackKind.SUBTITLE,
}


def muxed_output_path(output_dir: Path, discontinuity_sequence: int, run_count: int) -> Path:
    """The discontinuity index is only part of the name when there are several runs."""
    if run_count > 1:
        return output_dir / f"video_{discontinuity_sequence:010}.mp4"
    return output_dir / "video.mp4"


def stream_metadata(track: Track, index: int) -> List[str]:
    """Builds the `-metadata:s:<type>:<index>` arguments for an alternative track."""
    specifier = f"-metadata:s:{track.stream_specifier}:{index}"
    args = []
    language = to_three_letter_code(track.lang)
    if language:
        args += [specifier, f"language={language}"]
    if track.name:
        args += [specifier, f"title={track.name}", specifier, f"handler={track.name}"]
    return args


async def build_mux_args(
    tools: MediaTools, streams: Sequence[ConcatenatedStream], output: Path
) -> List[str]:
    """
    Builds the ffmpeg arguments for one run.

    Streams contributed by the main track are counted first so the metadata
    indices of the alternative tracks point at the right output streams.
    """
    args = ["-y", "-copyts"]
    for stream in streams:
        args += ["-i", str(stream.path)]
    for index in range(len(streams)):
        args += ["-map", str(index)]

    counters: Counter = Counter()
    for stream in streams:
        if stream.track.is_main:
            for stream_type in await tools.stream_types(stream.path):
                kind = STREAM_TYPE_KINDS.get(stream_type)
                if kind is not None:
                    counters[STREAM_SPECIFIERS[kind]] += 1
            continue
        specifier = stream.track.stream_specifier
        args += stream_metadata(stream.track, counters[specifier])
        counters[specifier] += 1

    return args + OUTPUT_FLAGS + [str(output)]


async def remux(
    ledger: Dict[Track, List[Tuple[SequenceSegment, Path]]],
    output_dir: Path,
    tools: MediaTools,
) -> List[Path]:
    """
    Concatenates and muxes the captured segments.

    The concatenated intermediates of a run are deleted once its mux succeeds.
    The raw segment files are never touched.

    Raises:
        RemuxError: If ffmpeg fails or a file cannot be read or written. The
            intermediates of the failing run are kept.
    """
    outputs = []
    try:
        runs = await concat_streams(ledger, output_dir, tools)
        for discontinuity, streams in runs.items():
            output = muxed_output_path(output_dir, discontinuity, len(runs))
            await tools.ffmpeg(await build_mux_args(tools, streams, output))
            log.info(f"[green]✓ Muxed {output.name}[/green]")
            for stream in streams:
                await asyncio.to_thread(stream.path.unlink, missing_ok=True)
            outputs.append(output)
    except (ExternalToolError, OSError) as e:
        raise RemuxError(f"Failed to remux captured segments: {e}") from e
    return outputs
