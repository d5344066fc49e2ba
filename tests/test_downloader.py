import asyncio

from Crypto.Cipher import AES
from Crypto.Util.Padding import pad
from fakes import FakeClient, FakeTools

from livestream_dl.exceptions import NetworkError
from livestream_dl.media.downloader import InitializationCache, SegmentDownloader, SegmentJob
from livestream_dl.media.encryption import Encryption, derive_iv
from livestream_dl.models.segment import (
    ByteRange,
    InitializationSegment,
    MediaFormat,
    RemoteResource,
    SequenceSegment,
)
from livestream_dl.models.stats import CaptureStats
from livestream_dl.models.track import Track

BASE = "https://cdn.example.com/live"


def job(n, track=None, encryption=None, initialization=None):
    segment = SequenceSegment(
        RemoteResource(f"{BASE}/{n}.ts"), 0, n, initialization=initialization
    )
    return SegmentJob(track or Track.main(), segment, encryption or Encryption.none())


def run_pool(downloader, jobs):
    async def scenario():
        job_queue = asyncio.Queue()
        results = asyncio.Queue()
        for item in jobs:
            job_queue.put_nowait(item)
        job_queue.put_nowait(None)
        await asyncio.wait_for(downloader.run(job_queue, results), timeout=10)
        collected = []
        while (item := results.get_nowait()) is not None:
            collected.append(item)
        return collected

    return asyncio.run(scenario())


def test_pool_never_exceeds_concurrency_limit():
    routes = {f"{BASE}/{n}.ts": f"segment {n}".encode() for n in range(20)}
    client = FakeClient(routes, delay=0.02)
    downloader = SegmentDownloader(client, FakeTools(), max_concurrent=3)

    results = run_pool(
        downloader,
        [job(n, Track.audio("en") if n % 2 else Track.main()) for n in range(20)],
    )

    assert client.max_in_flight <= 3
    assert len(results) == 20
    assert {r.segment.media_sequence for r in results} == set(range(20))
    assert all(r.segment.format is MediaFormat.MPEG_TS for r in results)


def test_encrypted_segment_is_decrypted_and_prefixed_with_init():
    key = b"k" * 16
    plaintext = b"\x00\x01payload" * 10
    ciphertext = AES.new(key, AES.MODE_CBC, derive_iv(7)).encrypt(pad(plaintext, 16))
    client = FakeClient(
        {
            f"{BASE}/7.ts": ciphertext,
            f"{BASE}/key.bin": key,
            f"{BASE}/init.mp4": b"INIT",
        }
    )
    encryption = Encryption.from_key_tag("AES-128", "key.bin", None, None, f"{BASE}/index.m3u8")
    init = InitializationSegment(RemoteResource(f"{BASE}/init.mp4"))
    downloader = SegmentDownloader(client, FakeTools(MediaFormat.FMP4), max_concurrent=1)

    [result] = run_pool(downloader, [job(7, encryption=encryption, initialization=init)])

    assert result.data == b"INIT" + plaintext
    assert result.segment.format is MediaFormat.FMP4
    assert result.segment.key == (0, 7)


def test_initialization_segment_is_fetched_once():
    init = InitializationSegment(RemoteResource(f"{BASE}/init.mp4"))
    routes = {f"{BASE}/{n}.ts": b"data" for n in range(3)}
    routes[f"{BASE}/init.mp4"] = b"INIT"
    client = FakeClient(routes)
    downloader = SegmentDownloader(client, FakeTools(), max_concurrent=1)

    results = run_pool(downloader, [job(n, initialization=init) for n in range(3)])

    assert [r.data for r in results] == [b"INITdata"] * 3
    assert [url for url, _ in client.requests].count(f"{BASE}/init.mp4") == 1


def test_byte_range_is_sent_as_range_header():
    client = FakeClient({f"{BASE}/all.ts": b"abc"})
    ranged = SequenceSegment(RemoteResource(f"{BASE}/all.ts", ByteRange(50, 100)), 0, 0)
    downloader = SegmentDownloader(client, FakeTools(), max_concurrent=1)

    run_pool(downloader, [SegmentJob(Track.main(), ranged, Encryption.none())])

    assert client.requests == [(f"{BASE}/all.ts", {"Range": "bytes=100-149"})]


def test_failed_segment_is_dropped_and_counted():
    client = FakeClient({f"{BASE}/0.ts": b"ok", f"{BASE}/2.ts": b"ok"})
    stats = CaptureStats()
    downloader = SegmentDownloader(client, FakeTools(), max_concurrent=2, stats=stats)

    results = run_pool(downloader, [job(0), job(1), job(2)])

    assert sorted(r.segment.media_sequence for r in results) == [0, 2]
    assert stats.segments_failed == 1


def test_segment_retries_give_failed_segment_another_attempt():
    url = f"{BASE}/0.ts"
    client = FakeClient({url: [NetworkError(404, url), b"second time lucky"]})
    stats = CaptureStats()
    downloader = SegmentDownloader(
        client, FakeTools(), max_concurrent=1, segment_retries=1, stats=stats
    )

    [result] = run_pool(downloader, [job(0)])

    assert result.data == b"second time lucky"
    assert stats.segments_failed == 0


def test_initialization_cache_evicts_least_recently_used():
    async def scenario():
        cache = InitializationCache(capacity=2)
        a, b, c = (RemoteResource(f"{BASE}/{name}.mp4") for name in "abc")
        await cache.put(a, b"a")
        await cache.put(b, b"b")
        assert await cache.get(a) == b"a"
        await cache.put(c, b"c")
        return len(cache), await cache.get(a), await cache.get(b), await cache.get(c)

    assert asyncio.run(scenario()) == (2, b"a", None, b"c")
