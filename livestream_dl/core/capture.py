"""
Capture coordinator.

Wires the pollers, the download pool and the single writer loop together:

    pollers --jobs--> SegmentDownloader --results--> writer --> ledger

The writer is the only consumer of the results queue and the only task that
touches the ledger.
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import aiofiles

from livestream_dl.core.playlist import VariantChooser, resolve_tracks
from livestream_dl.core.poller import PlaylistPoller, PollerOutcome
from livestream_dl.core.stopper import (
    Stopper,
    install_interrupt_handler,
    remove_interrupt_handler,
)
from livestream_dl.exceptions import CaptureError
from livestream_dl.media.downloader import DownloadedSegment, SegmentDownloader, SegmentJob
from livestream_dl.media.probe import MediaTools
from livestream_dl.models.config import CaptureConfig
from livestream_dl.models.segment import SequenceSegment
from livestream_dl.models.stats import CaptureStats
from livestream_dl.models.track import Track
from livestream_dl.mux.muxer import remux
from livestream_dl.net.client import HttpClient
from livestream_dl.utils.path import create_dir

log = logging.getLogger(__name__)

SEGMENTS_DIR = "segments"

Ledger = Dict[Track, List[Tuple[SequenceSegment, Path]]]


def segment_path(segments_dir: Path, track: Track, segment: SequenceSegment) -> Path:
    return segments_dir / f"segment_{track}_{segment.id}.{segment.format.extension}"


class CaptureSession:
    """
    Captures every track of one playlist URL into an output directory and
    optionally remuxes the result.
    """

    def __init__(
        self,
        config: CaptureConfig,
        client: HttpClient,
        tools: MediaTools,
        stopper: Optional[Stopper] = None,
        stats: Optional[CaptureStats] = None,
        chooser: Optional[VariantChooser] = None,
    ):
        self.config = config
        self.client = client
        self.tools = tools
        self.stopper = stopper or Stopper()
        self.stats = stats or CaptureStats()
        self.chooser = chooser
        self.poller_errors: List[BaseException] = []

    async def _run_poller(self, poller: PlaylistPoller) -> PollerOutcome:
        try:
            return await poller.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error(f"[red]✗ Poller for {poller.track} failed: {e}[/red]")
            self.stats.pollers_failed += 1
            self.poller_errors.append(e)
            if self.config.fail_fast:
                self.stopper.stop()
            raise

    async def _next_or_stop(
        self, results: "asyncio.Queue[Optional[DownloadedSegment]]"
    ) -> Optional[DownloadedSegment]:
        """Waits for the next completed download, or returns None once stopped."""
        if self.stopper.stopped():
            return None
        get_task = asyncio.create_task(results.get())
        stop_task = asyncio.create_task(self.stopper.wait())
        try:
            done, _ = await asyncio.wait(
                {get_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            get_task.cancel()
            stop_task.cancel()
        if stop_task in done:
            return None
        return get_task.result()

    async def _write(self, segments_dir: Path, item: DownloadedSegment) -> Path:
        path = segment_path(segments_dir, item.track, item.segment)
        async with aiofiles.open(path, "wb") as f:
            await f.write(item.data)
        self.stats.record_segment(str(item.track), len(item.data))
        log.debug(f"Wrote {path.name}")
        return path

    async def capture(
        self, output_dir: Path, tracks: Optional[Dict[Track, str]] = None
    ) -> Ledger:
        """
        Captures segments until every poller has ended or the stopper fires.

        Returns:
            The per-track ledger of written segments in arrival order.
        """
        if tracks is None:
            tracks = await self.resolve_tracks()

        segments_dir = output_dir / SEGMENTS_DIR
        await asyncio.to_thread(create_dir, segments_dir)

        jobs: "asyncio.Queue[Optional[SegmentJob]]" = asyncio.Queue()
        results: "asyncio.Queue[Optional[DownloadedSegment]]" = asyncio.Queue()
        downloader = SegmentDownloader(
            self.client,
            self.tools,
            max_concurrent=self.config.max_concurrent_downloads,
            init_cache_size=self.config.effective_init_cache_size,
            segment_retries=self.config.segment_retries,
            stats=self.stats,
        )

        pollers = [
            asyncio.create_task(
                self._run_poller(PlaylistPoller(self.client, self.stopper, jobs, track, url)),
                name=f"poller-{track}",
            )
            for track, url in tracks.items()
        ]

        async def close_jobs() -> None:
            await asyncio.gather(*pollers, return_exceptions=True)
            await jobs.put(None)

        closer = asyncio.create_task(close_jobs())
        pool = asyncio.create_task(downloader.run(jobs, results))

        ledger: Ledger = {track: [] for track in tracks}
        try:
            while True:
                item = await self._next_or_stop(results)
                if item is None:
                    break
                path = await self._write(segments_dir, item)
                ledger[item.track].append((item.segment, path))
            # stopped pollers return after their current request
            await closer
        finally:
            for task in (pool, closer, *pollers):
                task.cancel()
            await asyncio.gather(pool, closer, *pollers, return_exceptions=True)

        log.info(
            f"Captured {self.stats.segments_downloaded} segments "
            f"({self.stats.segments_failed} dropped)"
        )
        return ledger

    async def resolve_tracks(self) -> Dict[Track, str]:
        return await resolve_tracks(self.client, self.config.url, self.chooser)

    async def run(
        self, output_dir: Path, tracks: Optional[Dict[Track, str]] = None
    ) -> List[Path]:
        """
        Captures, then concatenates and muxes unless remuxing is disabled.

        Raises:
            CaptureError: If any poller failed. Remuxing still runs first so the
                captured segments are not lost.
            RemuxError: If concatenation or muxing failed.
        """
        ledger = await self.capture(output_dir, tracks)

        muxed: List[Path] = []
        if self.config.no_remux:
            log.info("Skipping remux, segments are kept in the output directory")
        elif not any(ledger.values()):
            log.warning("[yellow]No segments were captured, nothing to remux[/yellow]")
        else:
            muxed = await remux(ledger, output_dir, self.tools)
            self.stats.muxed_files.extend(str(path) for path in muxed)

        if self.poller_errors:
            raise CaptureError(
                f"{len(self.poller_errors)} playlist poller(s) failed"
            ) from self.poller_errors[0]
        return muxed

    async def run_interruptible(self, output_dir: Path) -> List[Path]:
        """
        Like `run`, with Ctrl-C routed to the stopper once capturing starts.

        Tracks are resolved first so an interactive variant prompt still receives
        Ctrl-C as a KeyboardInterrupt.
        """
        tracks = await self.resolve_tracks()
        install_interrupt_handler(self.stopper)
        try:
            return await self.run(output_dir, tracks)
        finally:
            remove_interrupt_handler()
