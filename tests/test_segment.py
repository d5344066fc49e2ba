import pytest

from livestream_dl.models.segment import (
    ByteRange,
    InitializationSegment,
    MediaFormat,
    RemoteResource,
    SequenceSegment,
)
from livestream_dl.models.track import Track, TrackKind


def test_byte_range_header_uses_half_open_span():
    assert ByteRange(length=50, offset=100).header_value() == "bytes=100-149"


def test_byte_range_without_offset_starts_at_zero():
    assert ByteRange(length=50).header_value() == "bytes=0-49"


def test_byte_range_parse():
    assert ByteRange.parse("1024@2048") == ByteRange(1024, 2048)
    assert ByteRange.parse("512") == ByteRange(512, None)
    with pytest.raises(ValueError):
        ByteRange.parse("abc@1")


def test_empty_byte_range_is_rejected():
    with pytest.raises(ValueError, match="Empty byte range"):
        ByteRange.parse("0@100")


def test_remote_resource_is_hashable_value():
    a = RemoteResource("https://example.com/init.mp4", ByteRange(10, 0))
    b = RemoteResource("https://example.com/init.mp4", ByteRange(10, 0))
    assert a == b
    assert len({a, b}) == 1
    assert a.range_header() == "bytes=0-9"
    assert RemoteResource("https://example.com/a.ts").range_header() is None


def test_sequence_segments_order_by_discontinuity_then_sequence():
    def seg(d, s):
        return SequenceSegment(RemoteResource(f"https://h/{s}.ts"), d, s)

    segments = [seg(1, 3), seg(0, 9), seg(1, 1), seg(0, 2)]
    assert [s.key for s in sorted(segments, key=lambda s: s.key)] == [
        (0, 2),
        (0, 9),
        (1, 1),
        (1, 3),
    ]


def test_segment_id_and_format():
    init = InitializationSegment(RemoteResource("https://h/init.mp4"))
    segment = SequenceSegment(RemoteResource("https://h/1.m4s"), 2, 17, initialization=init)
    assert segment.id == "d0000000002s0000000017"

    classified = segment.with_format(MediaFormat.FMP4)
    assert classified.format is MediaFormat.FMP4
    assert classified.initialization == init
    assert segment.format is MediaFormat.UNKNOWN


@pytest.mark.parametrize(
    "name, expected, extension",
    [
        ("mpegts", MediaFormat.MPEG_TS, "ts"),
        ("mov,mp4,m4a,3gp,3g2,mj2", MediaFormat.FMP4, "mp4"),
        ("aac", MediaFormat.ADTS, "aac"),
        ("mp3", MediaFormat.MP3, "mp3"),
        ("webvtt", MediaFormat.WEBVTT, "vtt"),
        ("matroska,webm", MediaFormat.UNKNOWN, "ts"),
    ],
)
def test_media_format_from_probe_name(name, expected, extension):
    media_format = MediaFormat.from_probe_name(name)
    assert media_format is expected
    assert media_format.extension == extension


def test_only_mp3_needs_demuxer_concat():
    assert MediaFormat.MP3.needs_demuxer_concat
    assert not MediaFormat.MPEG_TS.needs_demuxer_concat
    assert not MediaFormat.FMP4.needs_demuxer_concat


def test_track_identity_and_names():
    assert Track.audio("English", "en") == Track(TrackKind.AUDIO, "English", "en")
    assert Track.audio("English", "en") != Track.audio("English", "de")
    assert len({Track.main(), Track.main()}) == 1

    assert str(Track.main()) == "main"
    assert str(Track.subtitle("English/CC", "en")) == "subtitle_English_CC_en"
    assert str(Track.video("Angle 2")) == "video_Angle 2"
    assert Track.video("Angle 2").stream_specifier == "v"
    assert Track.main().stream_specifier is None
