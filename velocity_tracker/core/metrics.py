"""
Velocity forecasting and statistics engine.

Pure, synchronous functions turning team availability into capacity, sprint
history into a forecast, and forecast/actual pairs into reporting figures.
Nothing here touches the database; services hand in snapshots built from
ORM rows with ``Model.model_validate(row)``.

Degenerate input (empty team, no history, open sprint) never raises: each
function returns the sentinel documented on it.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

# Type aliases
MemberId = int
SprintId = int


# Enums
class CapacityPolicy(str, Enum):
    """How velocity weight enters the days-available aggregate.

    DAYS_ONLY sums raw ``sprint_size - days_off``; weighting is left out of
    the aggregate. WEIGHTED folds each member's weight into the sum.
    """
    DAYS_ONLY = "days_only"
    WEIGHTED = "weighted"


class AccuracyBand(str, Enum):
    ON_TARGET = "on_target"
    CAUTION = "caution"
    OFF_TARGET = "off_target"


class DeltaDirection(str, Enum):
    OVER = "over"
    UNDER = "under"
    EXACT = "exact"


# Snapshot models
class MemberSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: MemberId
    name: str = ""
    velocity_weight: float = 1.0


class TeamSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str = ""
    sprint_size_in_days: float
    members: List[MemberSnapshot] = Field(default_factory=list)


class AvailabilityEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    member_id: MemberId
    days_off: float = 0.0


class SprintRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[SprintId] = None
    total_days_available: float = 0.0
    forecast_velocity: float = 0.0
    actual_velocity: Optional[float] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class MemberCapacity(BaseModel):
    member_id: MemberId
    name: str
    velocity_weight: float
    days_off: float
    days_available: float
    weighted_days_available: float


class SummaryStats(BaseModel):
    average_delta: float = 0.0
    average_accuracy: float = 0.0
    median_velocity: float = 0.0
    median_velocity_per_day: float = 0.0
    total_sprints: int = 0
    average_days_available: float = 0.0


# Medians

def median(values: Iterable[float]) -> Optional[float]:
    """Median averaging the two middle values on even counts.

    Used for forecasting. Returns None for empty input.
    """
    ordered = sorted(values)
    if not ordered:
        return None

    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def upper_median(values: Iterable[float]) -> Optional[float]:
    """Median taking the upper-middle value on even counts, no averaging.

    Used by the historical lookup and the summary aggregate.
    """
    ordered = sorted(values)
    if not ordered:
        return None

    return ordered[len(ordered) // 2]


# Availability / capacity

def calculate_member_days_available(
    days_off: float,
    velocity_weight: Optional[float],
    sprint_size_in_days: float
) -> float:
    """Weighted days a member contributes: (size - days_off) * weight.

    Not clamped: days off beyond the sprint size give a negative figure.
    """
    if not velocity_weight:
        return 0.0

    return (sprint_size_in_days - days_off) * velocity_weight


def _days_off_by_member(availability: Sequence[AvailabilityEntry]) -> Dict[MemberId, float]:
    days_off: Dict[MemberId, float] = {}
    for entry in availability:
        # first entry wins on duplicates
        days_off.setdefault(entry.member_id, entry.days_off or 0.0)
    return days_off


def calculate_total_days_available(
    team: TeamSnapshot,
    availability: Sequence[AvailabilityEntry],
    policy: CapacityPolicy = CapacityPolicy.DAYS_ONLY
) -> float:
    """Sum of available days across the team for one sprint.

    Members without an availability entry count as fully available. Entries
    for ids that are not on the team are ignored.
    """
    if not team.members:
        return 0.0

    days_off = _days_off_by_member(availability)
    total = 0.0

    for member in team.members:
        member_days_off = days_off.get(member.id, 0.0)

        if policy == CapacityPolicy.WEIGHTED:
            total += calculate_member_days_available(
                member_days_off, member.velocity_weight, team.sprint_size_in_days
            )
        else:
            total += team.sprint_size_in_days - member_days_off

    return total


def calculate_capacity_breakdown(
    team: TeamSnapshot,
    availability: Sequence[AvailabilityEntry]
) -> List[MemberCapacity]:
    """Per-member raw and weighted capacity, in team order."""

    days_off = _days_off_by_member(availability)

    return [
        MemberCapacity(
            member_id=member.id,
            name=member.name,
            velocity_weight=member.velocity_weight,
            days_off=days_off.get(member.id, 0.0),
            days_available=team.sprint_size_in_days - days_off.get(member.id, 0.0),
            weighted_days_available=calculate_member_days_available(
                days_off.get(member.id, 0.0),
                member.velocity_weight,
                team.sprint_size_in_days
            )
        )
        for member in team.members
    ]


# Velocity estimation

def calculate_median_velocity(sprints: Sequence[SprintRecord]) -> float:
    """Median of raw actual velocity over sprints with a positive actual.

    Returns 0 when no sprint qualifies.
    """
    velocities = [
        s.actual_velocity for s in sprints
        if s.actual_velocity is not None and s.actual_velocity > 0
    ]
    result = median(velocities)
    return result if result is not None else 0.0


def _velocity_per_day(sprint: SprintRecord) -> float:
    return sprint.actual_velocity / sprint.total_days_available


def calculate_median_velocity_per_day(sprints: Sequence[SprintRecord]) -> Optional[float]:
    """Median points per available day across completed sprints.

    Sprints with no positive actual or no positive day count are skipped.
    Returns None when nothing is left.
    """
    rates = [
        _velocity_per_day(s) for s in sprints
        if s.actual_velocity is not None
        and s.actual_velocity > 0
        and s.total_days_available > 0
    ]
    return median(rates)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def calculate_historical_median_velocity(
    sprint: SprintRecord,
    all_sprints: Sequence[SprintRecord]
) -> Optional[float]:
    """Median points per day as known when ``sprint`` was created.

    Only sprints completed strictly before ``sprint.created_at`` count. The
    even-count tie-break takes the upper-middle value. Returns None when no
    prior sprint qualifies, e.g. for the first sprint ever.
    """
    if sprint.created_at is None:
        return None

    reference = as_utc(sprint.created_at)

    rates = [
        _velocity_per_day(s) for s in all_sprints
        if s.completed_at is not None
        and as_utc(s.completed_at) < reference
        and s.actual_velocity is not None
        and s.total_days_available > 0
    ]
    return upper_median(rates)


def calculate_forecast_velocity(
    total_days_available: float,
    historical_sprints: Sequence[SprintRecord]
) -> float:
    """Expected points for a sprint with ``total_days_available`` days.

    Without usable history the forecast assumes one point per day.
    """
    velocity_per_day = calculate_median_velocity_per_day(historical_sprints)

    if velocity_per_day is None:
        return float(total_days_available)

    return total_days_available * velocity_per_day


# Forecast vs actual

def calculate_delta(forecast: float, actual: Optional[float]) -> float:
    """actual - forecast; 0 while the sprint is open."""
    if actual is None:
        return 0.0

    return actual - forecast


def calculate_accuracy(forecast: float, actual: Optional[float]) -> float:
    """Percentage of the forecast achieved; 0 when open or forecast is 0."""
    if actual is None or forecast == 0:
        return 0.0

    return (actual / forecast) * 100


def classify_accuracy(accuracy: float) -> AccuracyBand:
    if 95 <= accuracy <= 105:
        return AccuracyBand.ON_TARGET
    if 90 <= accuracy <= 110:
        return AccuracyBand.CAUTION
    return AccuracyBand.OFF_TARGET


def classify_delta(delta: float) -> DeltaDirection:
    if delta > 0:
        return DeltaDirection.OVER
    if delta < 0:
        return DeltaDirection.UNDER
    return DeltaDirection.EXACT


# Aggregates

def calculate_summary_stats(sprints: Sequence[SprintRecord]) -> SummaryStats:
    """Team-level roll-up over completed sprints.

    Open sprints are ignored. The per-day median uses the upper-middle
    tie-break and skips sprints without available days.
    """
    completed = [s for s in sprints if s.actual_velocity is not None]

    if not completed:
        return SummaryStats()

    count = len(completed)
    deltas = [calculate_delta(s.forecast_velocity, s.actual_velocity) for s in completed]
    accuracies = [calculate_accuracy(s.forecast_velocity, s.actual_velocity) for s in completed]

    rates = [_velocity_per_day(s) for s in completed if s.total_days_available > 0]
    median_rate = upper_median(rates)

    return SummaryStats(
        average_delta=sum(deltas) / count,
        average_accuracy=sum(accuracies) / count,
        median_velocity=calculate_median_velocity(completed),
        median_velocity_per_day=median_rate if median_rate is not None else 0.0,
        total_sprints=count,
        average_days_available=sum(s.total_days_available for s in completed) / count
    )


__all__ = [
    "CapacityPolicy",
    "AccuracyBand",
    "DeltaDirection",
    "MemberSnapshot",
    "TeamSnapshot",
    "AvailabilityEntry",
    "SprintRecord",
    "MemberCapacity",
    "SummaryStats",
    "median",
    "upper_median",
    "as_utc",
    "calculate_member_days_available",
    "calculate_total_days_available",
    "calculate_capacity_breakdown",
    "calculate_median_velocity",
    "calculate_median_velocity_per_day",
    "calculate_historical_median_velocity",
    "calculate_forecast_velocity",
    "calculate_delta",
    "calculate_accuracy",
    "classify_accuracy",
    "classify_delta",
    "calculate_summary_stats",
]
