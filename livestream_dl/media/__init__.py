"""
Media Layer.

This package handles everything that touches segment bytes: key resolution and
decryption, format probing through ffprobe, and the bounded download pool.
"""

from .downloader import DownloadedSegment, InitializationCache, SegmentDownloader, SegmentJob
from .encryption import Encryption, KeyMethod, decrypt_aes128, derive_iv, parse_iv
from .probe import MediaTools, StreamType

__all__ = [
    "DownloadedSegment",
    "Encryption",
    "InitializationCache",
    "KeyMethod",
    "MediaTools",
    "SegmentDownloader",
    "SegmentJob",
    "StreamType",
    "decrypt_aes128",
    "derive_iv",
    "parse_iv",
]
