from typing import Optional, Sequence

from ..core.metrics import SprintRecord, calculate_median_velocity_per_day


NOT_AVAILABLE = "N/A"


def format_delta(delta: float) -> str:
    """Signed delta with two decimals, e.g. ``+2.00`` or ``-5.50``."""
    sign = "+" if delta >= 0 else ""
    return f"{sign}{delta:.2f}"


def format_accuracy(accuracy: float) -> str:
    return f"{accuracy:.1f}%"


def format_velocity_per_day(velocity_per_day: Optional[float]) -> str:
    if velocity_per_day is None:
        return NOT_AVAILABLE
    return f"{velocity_per_day:.2f}"


def format_median_velocity_per_day(sprints: Sequence[SprintRecord]) -> str:
    """Median points per day for display, ``N/A`` without history."""
    return format_velocity_per_day(calculate_median_velocity_per_day(sprints))
