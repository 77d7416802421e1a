"""Display helpers for durations, distances and start times."""

from datetime import datetime
from typing import Optional


def format_duration(seconds: float) -> str:
    """Render seconds as ``HH:MM:SS``, rounding down to the whole second."""
    total = max(int(seconds), 0)
    hours = total // 3600
    minutes = (total // 60) % 60
    secs = total % 60
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_distance(distance_km: float) -> str:
    return f"{distance_km:.2f}"


def format_start_time(started_at: Optional[datetime]) -> str:
    if started_at is None:
        return "-"
    return started_at.strftime("%H:%M:%S")
