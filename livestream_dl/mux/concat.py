"""
Concatenation engine: merges the segment files of each track into one file per
discontinuity run.
"""

import asyncio
import itertools
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

import aiofiles

from livestream_dl.media.probe import MediaTools
from livestream_dl.models.segment import MediaFormat, SequenceSegment
from livestream_dl.models.track import Track

log = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024

LedgerEntry = Tuple[SequenceSegment, Path]


@dataclass(frozen=True)
class ConcatenatedStream:
    """One track's merged file for a single discontinuity run."""

    track: Track
    discontinuity_sequence: int
    path: Path


def group_by_discontinuity(
    entries: Iterable[LedgerEntry],
) -> List[Tuple[int, List[LedgerEntry]]]:
    """Sorts ledger entries by key and splits them into runs of equal discontinuity."""
    ordered = sorted(entries, key=lambda entry: entry[0].key)
    return [
        (discontinuity, list(run))
        for discontinuity, run in itertools.groupby(
            ordered, key=lambda entry: entry[0].discontinuity_sequence
        )
    ]


def concat_path(
    output_dir: Path, track: Track, discontinuity_sequence: int, media_format: MediaFormat
) -> Path:
    return output_dir / f"{track}_{discontinuity_sequence:010}.{media_format.extension}"


async def file_concat(paths: Sequence[Path], output: Path) -> None:
    """Appends the files byte for byte."""
    async with aiofiles.open(output, "wb") as out:
        for path in paths:
            async with aiofiles.open(path, "rb") as f:
                while chunk := await f.read(COPY_CHUNK_SIZE):
                    await out.write(chunk)


def _concat_list_line(path: Path) -> str:
    escaped = str(path.resolve()).replace("'", "'\\''")
    return f"file '{escaped}'\n"


async def demuxer_concat(tools: MediaTools, paths: Sequence[Path], output: Path) -> None:
    """Merges the files through the ffmpeg concat demuxer."""
    fd, list_name = tempfile.mkstemp(prefix="concat_", suffix=".txt", dir=output.parent)
    os.close(fd)
    list_path = Path(list_name)
    try:
        async with aiofiles.open(list_path, "w", encoding="utf-8") as f:
            await f.write("".join(_concat_list_line(path) for path in paths))
        await tools.ffmpeg(
            [
                "-y",
                "-f",
                "concat",
                "-safe",
                "0",
                "-i",
                str(list_path),
                "-c",
                "copy",
                "-fflags",
                "+genpts",
                str(output),
            ]
        )
    finally:
        await asyncio.to_thread(list_path.unlink, missing_ok=True)


async def concat_track(
    tools: MediaTools, track: Track, entries: Iterable[LedgerEntry], output_dir: Path
) -> List[ConcatenatedStream]:
    """Produces one file per discontinuity run of a single track."""
    streams = []
    for discontinuity, run in group_by_discontinuity(entries):
        media_format = run[0][0].format
        output = concat_path(output_dir, track, discontinuity, media_format)
        paths = [path for _, path in run]
        if media_format.needs_demuxer_concat:
            await demuxer_concat(tools, paths, output)
        else:
            await file_concat(paths, output)
        log.info(f"Concatenated {len(paths)} segments into {output.name}")
        streams.append(ConcatenatedStream(track, discontinuity, output))
    return streams


async def concat_streams(
    ledger: Dict[Track, List[LedgerEntry]], output_dir: Path, tools: MediaTools
) -> Dict[int, List[ConcatenatedStream]]:
    """
    Concatenates every track of the ledger.

    Returns:
        The merged files grouped by discontinuity sequence, in ascending order.
        Within a run, streams keep the ledger's track order.
    """
    runs: Dict[int, List[ConcatenatedStream]] = {}
    for track, entries in ledger.items():
        for stream in await concat_track(tools, track, entries, output_dir):
            runs.setdefault(stream.discontinuity_sequence, []).append(stream)
    return dict(sorted(runs.items()))
