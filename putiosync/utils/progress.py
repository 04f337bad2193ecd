"""
Terminal progress reporting for downloads.
"""
import sys
from typing import TextIO, Optional


def format_bytes(num_bytes: int) -> str:
    """Render a byte count with a binary unit suffix."""
    value = float(num_bytes)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024:
            return f"{value:.1f} {unit}" if unit != "B" else f"{int(value)} B"
        value /= 1024
    return f"{value:.1f} TiB"


def display_progress(
    current: int,
    total: int,
    message: str = "",
    width: int = 50,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Display a simple progress bar in the terminal.

    Args:
        current: Number of finished downloads
        total: Number of downloads in the run
        message: Optional label shown before the bar
        width: Width of the progress bar in characters
        stream: Output stream, stdout when omitted
    """
    out = stream or sys.stdout
    progress = min(1.0, current / total if total > 0 else 1.0)
    filled_width = int(width * progress)
    bar = '█' * filled_width + '-' * (width - filled_width)

    out.write(f"\r{message} [{bar}] {progress * 100:.1f}% ({current}/{total})")
    out.flush()

    if current >= total:
        out.write('\n')
