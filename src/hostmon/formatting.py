"""Formatting utilities shared by the console report and the dashboard."""

from collections.abc import Sequence

_UNITS = ("B", "KB", "MB", "GB", "TB")
_BLOCKS = " ▁▂▃▄▅▆▇█"


def format_bytes(size: float) -> str:
    """Format a byte count with 1024-based units and two decimals.

    >>> format_bytes(1536)
    '1.50 KB'
    """
    value = float(max(0.0, size))
    unit = 0
    while value >= 1024.0 and unit < len(_UNITS) - 1:
        value /= 1024.0
        unit += 1
    return f"{value:.2f} {_UNITS[unit]}"


def format_rate(bytes_per_second: float) -> str:
    """Format a throughput, e.g. '1.00 MB/s'."""
    return format_bytes(bytes_per_second) + "/s"


def format_gb(size: float) -> str:
    """Format a byte count in gigabytes, e.g. '7.45 GB'."""
    return f"{size / 1024**3:.2f} GB"


def sparkline(values: Sequence[float], scale: float = 100.0, width: int | None = None) -> str:
    """Render values as a one-row block graph.

    Args:
        values: Samples oldest-first.
        scale: Value drawn as a full block; larger values are clipped.
        width: Keep only the newest ``width`` samples, left-padded with blanks.

    Returns:
        A string of block characters, one per sample.
    """
    if width is not None:
        values = list(values)[-width:] if width > 0 else []
    top = len(_BLOCKS) - 1
    chars = []
    for value in values:
        ratio = 0.0 if scale <= 0 else max(0.0, min(1.0, value / scale))
        chars.append(_BLOCKS[round(ratio * top)])
    line = "".join(chars)
    if width is not None:
        line = line.rjust(width)
    return line


def percent_bar(percent: float, width: int = 20) -> str:
    """Text progress bar like '[#####     ]' for a 0-100 value."""
    filled = int(max(0.0, min(100.0, percent)) / 100.0 * width)
    return "[" + "#" * filled + " " * (width - filled) + "]"
