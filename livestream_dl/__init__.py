"""
livestream-dl: capture live HLS streams to disk and remux them with ffmpeg.
"""

__version__ = "0.6.0"
