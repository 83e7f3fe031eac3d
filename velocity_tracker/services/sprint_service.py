from __future__ import annotations

from typing import (
    Dict,
    List,
    Optional,
    Sequence,
)
from datetime import datetime, timezone
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from pydantic import BaseModel, Field, field_validator

from ..config import settings
from ..core.metrics import (
    AccuracyBand,
    AvailabilityEntry,
    CapacityPolicy,
    DeltaDirection,
    MemberCapacity,
    SprintRecord,
    SummaryStats,
    as_utc,
    calculate_accuracy,
    calculate_capacity_breakdown,
    calculate_delta,
    calculate_forecast_velocity,
    calculate_historical_median_velocity,
    calculate_median_velocity_per_day,
    calculate_member_days_available,
    calculate_summary_stats,
    calculate_total_days_available,
    classify_accuracy,
    classify_delta,
)
from ..models.sprint import Sprint, MemberAvailability
from ..models.team import Team
from ..utils.formatting import (
    format_accuracy,
    format_delta,
    format_median_velocity_per_day,
)
from .team_service import TeamService, team_snapshot

# Type aliases
TeamId = int
SprintId = int
MemberId = int

UNKNOWN_MEMBER_NAME = "Unknown"


# Pydantic models
class AvailabilityInput(BaseModel):
    member_id: MemberId
    days_off: float = Field(default=0.0, ge=0)

class ForecastPreview(BaseModel):
    team_id: TeamId
    capacity_policy: CapacityPolicy
    sprint_size_in_days: int
    members: List[MemberCapacity]
    total_days_available: float
    median_velocity_per_day: Optional[float]
    median_velocity_per_day_display: str
    forecast_velocity: float
    sprints_analyzed: int

class AvailabilityDetail(BaseModel):
    member_id: MemberId
    name: str
    velocity_weight: float
    days_off: float
    days_available: float
    weighted_days_available: float

class SprintHistoryEntry(BaseModel):
    id: SprintId
    name: str
    comment: str
    team_id: TeamId
    team_name: str
    sprint_size_in_days: int
    member_availability: List[AvailabilityDetail]
    total_days_available: float
    forecast_velocity: float
    actual_velocity: Optional[float]
    created_at: datetime
    completed_at: Optional[datetime]

    @field_validator("created_at", "completed_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

class SprintMetrics(BaseModel):
    sprint_id: SprintId
    is_completed: bool
    forecast_velocity: float
    actual_velocity: Optional[float]
    delta: float
    delta_display: str
    delta_direction: Optional[DeltaDirection]
    accuracy: float
    accuracy_display: str
    accuracy_band: Optional[AccuracyBand]
    historical_median_velocity_per_day: Optional[float]

# Custom exceptions
class SprintServiceError(Exception):
    def __init__(self, message: str, sprint_id: Optional[SprintId] = None) -> None:
        super().__init__(message)
        self.sprint_id = sprint_id

class SprintValidationError(SprintServiceError):
    pass

class SprintNotFoundError(SprintServiceError):
    def __init__(self, sprint_id: Optional[SprintId] = None) -> None:
        if sprint_id is None:
            super().__init__("No current sprint found")
        else:
            super().__init__(f"Sprint {sprint_id} not found", sprint_id)

class ActiveSprintExistsError(SprintServiceError):
    def __init__(self, sprint_id: SprintId) -> None:
        super().__init__(
            "Cannot create sprint. Please complete the current sprint first.", sprint_id
        )

class SprintAlreadyCompletedError(SprintServiceError):
    def __init__(self, sprint_id: SprintId) -> None:
        super().__init__(f"Sprint {sprint_id} is already completed", sprint_id)


# Main service class
class SprintService:
    """
    Sprint lifecycle and reporting.

    New sprints snapshot their capacity and forecast from the team and its
    completed history at creation time; completion records the actual
    velocity exactly once.
    """

    def __init__(
        self,
        db: AsyncSession,
        capacity_policy: Optional[CapacityPolicy] = None,
        history_limit: Optional[int] = None
    ) -> None:
        self.db = db
        self.teams = TeamService(db)
        self.capacity_policy = capacity_policy or settings.capacity_policy
        self.history_limit = history_limit if history_limit is not None else settings.history_limit
        self._logger = logging.getLogger(__name__)

    async def list_sprints(self, team_id: Optional[TeamId] = None) -> List[Sprint]:
        """All sprints of a team, newest first."""

        team = await self.teams.resolve_team(team_id)

        stmt = (
            select(Sprint)
            .where(Sprint.team_id == team.id)
            .order_by(desc(Sprint.created_at), desc(Sprint.id))
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_sprint(self, sprint_id: SprintId) -> Sprint:
        """Get sprint by ID."""

        result = await self.db.execute(select(Sprint).where(Sprint.id == sprint_id))
        sprint = result.scalar_one_or_none()

        if sprint is None:
            raise SprintNotFoundError(sprint_id)

        return sprint

    async def get_current_sprint(self, team_id: Optional[TeamId] = None) -> Sprint:
        team = await self.teams.resolve_team(team_id)
        sprint = await self._find_active_sprint(team.id)

        if sprint is None:
            raise SprintNotFoundError()

        return sprint

    async def get_completed_sprints(
        self,
        team_id: TeamId,
        limit: Optional[int] = None
    ) -> List[Sprint]:
        """Completed sprints, most recently completed first."""

        stmt = (
            select(Sprint)
            .where(Sprint.team_id == team_id, Sprint.actual_velocity.isnot(None))
            .order_by(desc(Sprint.completed_at), desc(Sprint.id))
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_sprint_history(self, team_id: Optional[TeamId] = None) -> List[SprintHistoryEntry]:
        """Completed sprints with availability resolved against the current roster.

        Members who have since left the team show as ``Unknown`` with a
        weight of 1.0.
        """

        team = await self.teams.resolve_team(team_id)
        sprints = await self.get_completed_sprints(team.id)
        members = {m.id: m for m in team.members}

        history: List[SprintHistoryEntry] = []
        for sprint in sprints:
            details: List[AvailabilityDetail] = []
            for availability in sprint.member_availability:
                member = members.get(availability.member_id)
                weight = member.velocity_weight if member is not None else 1.0
                details.append(
                    AvailabilityDetail(
                        member_id=availability.member_id,
                        name=member.name if member is not None else UNKNOWN_MEMBER_NAME,
                        velocity_weight=weight,
                        days_off=availability.days_off,
                        days_available=team.sprint_size_in_days - availability.days_off,
                        weighted_days_available=calculate_member_days_available(
                            availability.days_off, weight, team.sprint_size_in_days
                        )
                    )
                )

            history.append(
                SprintHistoryEntry(
                    id=sprint.id,
                    name=sprint.name,
                    comment=sprint.comment or "",
                    team_id=team.id,
                    team_name=team.name,
                    sprint_size_in_days=team.sprint_size_in_days,
                    member_availability=details,
                    total_days_available=sprint.total_days_available,
                    forecast_velocity=sprint.forecast_velocity,
                    actual_velocity=sprint.actual_velocity,
                    created_at=sprint.created_at,
                    completed_at=sprint.completed_at
                )
            )

        return history

    async def preview_forecast(
        self,
        availability: Sequence[AvailabilityInput],
        team_id: Optional[TeamId] = None
    ) -> ForecastPreview:
        """Capacity and forecast a sprint would get if created now."""

        team = await self.teams.resolve_team(team_id)
        history = await self._forecast_history(team.id)
        return self._build_preview(team, availability, history)

    async def create_sprint(
        self,
        name: str,
        member_availability: Optional[Sequence[AvailabilityInput]] = None,
        comment: Optional[str] = None,
        team_id: Optional[TeamId] = None
    ) -> Sprint:
        """Create the team's next sprint with its capacity and forecast snapshot."""

        team = await self.teams.resolve_team(team_id)
        self._logger.info("Creating sprint '%s' for team %d", name, team.id)

        try:
            if not name or not name.strip():
                raise SprintValidationError("Sprint name is required")

            active = await self._find_active_sprint(team.id)
            if active is not None:
                raise ActiveSprintExistsError(active.id)

            availability = self._complete_availability(team, member_availability or [])
            history = await self._forecast_history(team.id)
            preview = self._build_preview(team, availability, history)

            sprint = Sprint(
                name=name.strip(),
                comment=(comment or "").strip(),
                team_id=team.id,
                total_days_available=preview.total_days_available,
                forecast_velocity=preview.forecast_velocity
            )
            sprint.member_availability = [
                MemberAvailability(member_id=entry.member_id, days_off=entry.days_off)
                for entry in availability
            ]

            self.db.add(sprint)
            await self.db.commit()

        except Exception as e:
            await self.db.rollback()
            self._logger.error("Failed to create sprint: %s", str(e))
            if isinstance(e, SprintServiceError):
                raise
            raise SprintServiceError(f"Sprint creation failed: {str(e)}")

        self._logger.info(
            "Created sprint %d: %.2f days available, forecast %.2f from %d prior sprints",
            sprint.id,
            sprint.total_days_available,
            sprint.forecast_velocity,
            preview.sprints_analyzed
        )
        return await self.get_sprint(sprint.id)

    async def complete_sprint(
        self,
        sprint_id: SprintId,
        actual_velocity: Optional[float]
    ) -> Sprint:
        """Record the actual velocity; a sprint can only be completed once."""

        if actual_velocity is None:
            raise SprintValidationError("actual_velocity is required", sprint_id)
        if actual_velocity < 0:
            raise SprintValidationError("actual_velocity cannot be negative", sprint_id)

        sprint = await self.get_sprint(sprint_id)

        if not sprint.is_active:
            raise SprintAlreadyCompletedError(sprint_id)

        try:
            sprint.actual_velocity = actual_velocity
            sprint.completed_at = datetime.now(timezone.utc)

            await self.db.commit()

        except Exception as e:
            await self.db.rollback()
            self._logger.error("Failed to complete sprint %d: %s", sprint_id, str(e))
            raise SprintServiceError(f"Sprint completion failed: {str(e)}", sprint_id)

        self._logger.info(
            "Completed sprint %d: actual %.2f vs forecast %.2f",
            sprint_id, actual_velocity, sprint.forecast_velocity
        )
        return sprint

    async def get_sprint_metrics(self, sprint_id: SprintId) -> SprintMetrics:
        """Forecast-vs-actual figures for one sprint."""

        sprint = await self.get_sprint(sprint_id)
        team_sprints = await self._team_sprint_records(sprint.team_id)
        record = SprintRecord.model_validate(sprint)

        completed = record.actual_velocity is not None
        delta = calculate_delta(record.forecast_velocity, record.actual_velocity)
        accuracy = calculate_accuracy(record.forecast_velocity, record.actual_velocity)

        return SprintMetrics(
            sprint_id=sprint.id,
            is_completed=completed,
            forecast_velocity=record.forecast_velocity,
            actual_velocity=record.actual_velocity,
            delta=delta,
            delta_display=format_delta(delta),
            delta_direction=classify_delta(delta) if completed else None,
            accuracy=accuracy,
            accuracy_display=format_accuracy(accuracy),
            accuracy_band=classify_accuracy(accuracy) if completed and record.forecast_velocity else None,
            historical_median_velocity_per_day=calculate_historical_median_velocity(
                record, team_sprints
            )
        )

    async def get_summary_stats(self, team_id: Optional[TeamId] = None) -> SummaryStats:
        team = await self.teams.resolve_team(team_id)
        sprints = await self.get_completed_sprints(team.id)
        return calculate_summary_stats([SprintRecord.model_validate(s) for s in sprints])

    # Private methods

    async def _find_active_sprint(self, team_id: TeamId) -> Optional[Sprint]:
        stmt = (
            select(Sprint)
            .where(Sprint.team_id == team_id, Sprint.actual_velocity.is_(None))
            .order_by(desc(Sprint.created_at))
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _forecast_history(self, team_id: TeamId) -> List[SprintRecord]:
        sprints = await self.get_completed_sprints(team_id, limit=self.history_limit)
        return [SprintRecord.model_validate(s) for s in sprints]

    async def _team_sprint_records(self, team_id: TeamId) -> List[SprintRecord]:
        result = await self.db.execute(select(Sprint).where(Sprint.team_id == team_id))
        return [SprintRecord.model_validate(s) for s in result.scalars().all()]

    def _build_preview(
        self,
        team: Team,
        availability: Sequence[AvailabilityInput],
        history: List[SprintRecord]
    ) -> ForecastPreview:
        snapshot = team_snapshot(team)
        entries = [AvailabilityEntry(member_id=a.member_id, days_off=a.days_off) for a in availability]

        total_days = calculate_total_days_available(snapshot, entries, self.capacity_policy)
        velocity_per_day = calculate_median_velocity_per_day(history)

        return ForecastPreview(
            team_id=team.id,
            capacity_policy=self.capacity_policy,
            sprint_size_in_days=team.sprint_size_in_days,
            members=calculate_capacity_breakdown(snapshot, entries),
            total_days_available=total_days,
            median_velocity_per_day=velocity_per_day,
            median_velocity_per_day_display=format_median_velocity_per_day(history),
            forecast_velocity=calculate_forecast_velocity(total_days, history),
            sprints_analyzed=len(history)
        )

    def _complete_availability(
        self,
        team: Team,
        availability: Sequence[AvailabilityInput]
    ) -> List[AvailabilityInput]:
        """Validate entries and add a zero-days-off entry for unlisted members."""

        by_member: Dict[MemberId, AvailabilityInput] = {}
        for entry in availability:
            if entry.member_id in by_member:
                raise SprintValidationError(f"Duplicate availability for member {entry.member_id}")
            by_member[entry.member_id] = entry

        member_ids = {m.id for m in team.members}
        unknown = sorted(set(by_member) - member_ids)
        if unknown:
            raise SprintValidationError(f"Members {unknown} do not belong to team {team.id}")

        for entry in availability:
            if entry.days_off < 0 or entry.days_off > team.sprint_size_in_days:
                raise SprintValidationError(
                    f"Days off for member {entry.member_id} must be between 0 and "
                    f"{team.sprint_size_in_days}"
                )

        return [
            by_member.get(member.id) or AvailabilityInput(member_id=member.id, days_off=0.0)
            for member in team.members
        ]


__all__ = [
    "SprintService",
    "AvailabilityInput",
    "ForecastPreview",
    "AvailabilityDetail",
    "SprintHistoryEntry",
    "SprintMetrics",
    "SprintServiceError",
    "SprintValidationError",
    "SprintNotFoundError",
    "ActiveSprintExistsError",
    "SprintAlreadyCompletedError",
]
