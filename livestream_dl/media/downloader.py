"""
Bounded worker pool that fetches, decrypts and classifies segments.

Every poller feeds one shared job queue. At most `max_concurrent` workers pull from
it, so the concurrency limit is global across tracks. Results are delivered in
completion order; each carries its full track and sequence key so the writer can
sort deterministically.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import NamedTuple, Optional

from tenacity import AsyncRetrying, stop_after_attempt, wait_fixed

from livestream_dl.media.encryption import Encryption
from livestream_dl.media.probe import MediaTools
from livestream_dl.models.segment import RemoteResource, SequenceSegment
from livestream_dl.models.stats import CaptureStats
from livestream_dl.models.track import Track
from livestream_dl.net.client import HttpClient

log = logging.getLogger(__name__)


class SegmentJob(NamedTuple):
    """A segment discovered by a poller, waiting to be downloaded."""

    track: Track
    segment: SequenceSegment
    encryption: Encryption


class DownloadedSegment(NamedTuple):
    """A decrypted, classified segment payload ready to be written."""

    track: Track
    segment: SequenceSegment
    data: bytes


class InitializationCache:
    """
    LRU cache of initialization segment bytes keyed by RemoteResource.

    The lock only guards the dictionary; it is released while fetching, so
    concurrent misses for the same resource may fetch it more than once.
    """

    def __init__(self, capacity: int):
        self.capacity = max(capacity, 1)
        self._entries: OrderedDict[RemoteResource, bytes] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, resource: RemoteResource) -> Optional[bytes]:
        async with self._lock:
            data = self._entries.get(resource)
            if data is not None:
                self._entries.move_to_end(resource)
            return data

    async def put(self, resource: RemoteResource, data: bytes) -> None:
        async with self._lock:
            self._entries[resource] = data
            self._entries.move_to_end(resource)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    async def get_or_fetch(self, client: HttpClient, resource: RemoteResource) -> bytes:
        data = await self.get(resource)
        if data is None:
            log.debug(f"Fetching initialization segment {resource}")
            data = (await client.fetch(resource)).data
            await self.put(resource, data)
        return data


class SegmentDownloader:
    """Runs the worker pool between the job queue and the result queue."""

    def __init__(
        self,
        client: HttpClient,
        tools: MediaTools,
        max_concurrent: int = 20,
        init_cache_size: Optional[int] = None,
        segment_retries: int = 0,
        stats: Optional[CaptureStats] = None,
    ):
        """
        Args:
            client: The shared HTTP client.
            tools: Used to probe the format of every downloaded segment.
            max_concurrent: Number of workers, i.e. the global in-flight limit.
            init_cache_size: Capacity of the initialization LRU, defaults to
                `max_concurrent`.
            segment_retries: Extra attempts for a failed segment after the
                transport's own retries are exhausted. 0 drops it immediately.
            stats: Receives a failure count for every dropped segment.
        """
        self.client = client
        self.tools = tools
        self.max_concurrent = max_concurrent
        self.segment_retries = segment_retries
        self.stats = stats or CaptureStats()
        self.init_cache = InitializationCache(init_cache_size or max_concurrent)

    async def fetch_segment(self, job: SegmentJob) -> DownloadedSegment:
        """Fetches, decrypts, prefixes and classifies a single segment."""
        segment = job.segment
        response = await self.client.fetch(segment.resource)
        data = await job.encryption.decrypt(self.client, response.data, segment.media_sequence)

        if segment.initialization is not None:
            init_data = await self.init_cache.get_or_fetch(
                self.client, segment.initialization.resource
            )
            data = init_data + data

        media_format = await self.tools.detect_format(data)
        range_info = f" ({segment.resource.range_header()})" if segment.resource.byte_range else ""
        log.info(f"Downloaded {response.url}{range_info}")
        return DownloadedSegment(job.track, segment.with_format(media_format), data)

    async def _process(self, job: SegmentJob) -> Optional[DownloadedSegment]:
        """Downloads one job, logging and dropping it on failure."""
        try:
            if self.segment_retries <= 0:
                return await self.fetch_segment(job)
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.segment_retries + 1),
                wait=wait_fixed(self.client.retry_min_delay),
                reraise=True,
            ):
                with attempt:
                    result = await self.fetch_segment(job)
            return result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning(
                f"[yellow]Dropping {job.track} segment {job.segment.id} "
                f"({job.segment.resource}): {e}[/yellow]"
            )
            self.stats.record_failure()
            return None

    async def _worker(
        self,
        jobs: "asyncio.Queue[Optional[SegmentJob]]",
        results: "asyncio.Queue[Optional[DownloadedSegment]]",
    ) -> None:
        while True:
            job = await jobs.get()
            if job is None:
                # leave the sentinel for the sibling workers
                await jobs.put(None)
                return
            downloaded = await self._process(job)
            if downloaded is not None:
                await results.put(downloaded)

    async def run(
        self,
        jobs: "asyncio.Queue[Optional[SegmentJob]]",
        results: "asyncio.Queue[Optional[DownloadedSegment]]",
    ) -> None:
        """
        Consumes `jobs` until a None sentinel arrives, then puts a single None on
        `results` once every worker has finished.
        """
        log.debug(f"Starting {self.max_concurrent} download workers")
        workers = [
            asyncio.create_task(self._worker(jobs, results), name=f"download-worker-{i}")
            for i in range(self.max_concurrent)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                worker.cancel()
        await results.put(None)
