"""
Utilities for handling the output directory.
"""

from datetime import date
from pathlib import Path
from typing import Optional


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def default_output_dir(base: Path, today: Optional[date] = None) -> Path:
    """
    Picks `<base>/<YYYYMMDD>-stream-download`, appending `.1`, `.2`, ... until the
    name is not taken.
    """
    stem = f"{(today or date.today()):%Y%m%d}-stream-download"
    candidate = base / stem
    counter = 0
    while candidate.exists():
        counter += 1
        candidate = base / f"{stem}.{counter}"
    return candidate


def is_non_empty_dir(path: Path) -> bool:
    return path.is_dir() and any(path.iterdir())
