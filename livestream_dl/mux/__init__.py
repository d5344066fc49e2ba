"""
Mux Layer.

This package merges the captured segments per discontinuity run and muxes the
tracks into the final files with ffmpeg.
"""

from .concat import ConcatenatedStream, concat_streams, group_by_discontinuity
from .language import to_three_letter_code
from .muxer import build_mux_args, muxed_output_path, remux

__all__ = [
    "ConcatenatedStream",
    "build_mux_args",
    "concat_streams",
    "group_by_discontinuity",
    "muxed_output_path",
    "remux",
    "to_three_letter_code",
]
