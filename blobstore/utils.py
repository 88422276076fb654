"""Formatting helpers for command-line output."""

from datetime import datetime, timezone


def format_size(size_bytes: int | None) -> str:
    """Format size in human-readable format."""
    if size_bytes is None:
        return "-"
    if size_bytes < 1024:
        return f"{size_bytes}B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.0f}KB"
    else:
        return f"{size_bytes / (1024 * 1024):.0f}MB"


def format_timestamp(epoch_ms: int | None) -> str:
    """Format epoch milliseconds as a UTC timestamp."""
    if epoch_ms is None:
        return "-"
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M:%S")
