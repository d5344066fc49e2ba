"""
Core Capture Logic.

This package contains the cancellation primitive, playlist resolution, the
per-track playlist pollers and the coordinator that ties them to the
download pool and the segment ledger.
"""

from .capture import CaptureSession, Ledger
from .playlist import Variant, resolve_tracks, select_variant
from .poller import PlaylistPoller, PollerOutcome
from .stopper import Stopper, install_interrupt_handler

__all__ = [
    "CaptureSession",
    "Ledger",
    "PlaylistPoller",
    "PollerOutcome",
    "Stopper",
    "Variant",
    "install_interrupt_handler",
    "resolve_tracks",
    "select_variant",
]
