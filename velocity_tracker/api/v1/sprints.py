from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...database import get_db
from ...core.metrics import SummaryStats, as_utc
from ...services.sprint_service import (
    ActiveSprintExistsError,
    AvailabilityInput,
    ForecastPreview,
    SprintAlreadyCompletedError,
    SprintHistoryEntry,
    SprintMetrics,
    SprintNotFoundError,
    SprintService,
    SprintServiceError,
)
from ...services.team_service import TeamNotFoundError, TeamServiceError

router = APIRouter()

class SprintCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    team_id: Optional[int] = None
    member_availability: List[AvailabilityInput] = Field(default_factory=list)
    comment: Optional[str] = ""

class ForecastRequest(BaseModel):
    team_id: Optional[int] = None
    member_availability: List[AvailabilityInput] = Field(default_factory=list)

class SprintCompleteRequest(BaseModel):
    actual_velocity: float = Field(..., ge=0)

class AvailabilityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    member_id: int
    days_off: float

class SprintResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    team_id: int
    comment: str
    member_availability: List[AvailabilityResponse]
    total_days_available: float
    forecast_velocity: float
    actual_velocity: Optional[float]
    created_at: datetime
    completed_at: Optional[datetime]

    @field_validator("created_at", "completed_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None


def _raise_http(error: Exception) -> None:
    if isinstance(error, (SprintNotFoundError, TeamNotFoundError)):
        raise HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (ActiveSprintExistsError, SprintAlreadyCompletedError)):
        raise HTTPException(status_code=409, detail=str(error))
    raise HTTPException(status_code=400, detail=str(error))


@router.get("", response_model=List[SprintResponse])
async def list_sprints(team_id: Optional[int] = None, db: AsyncSession = Depends(get_db)):
    """List all sprints for a team, newest first"""

    try:
        return await SprintService(db).list_sprints(team_id)
    except (SprintServiceError, TeamServiceError) as e:
        _raise_http(e)


# Fixed paths must be declared before /{sprint_id}
@router.get("/current", response_model=SprintResponse)
async def get_current_sprint(team_id: Optional[int] = None, db: AsyncSession = Depends(get_db)):
    """Get the active sprint"""

    try:
        return await SprintService(db).get_current_sprint(team_id)
    except (SprintServiceError, TeamServiceError) as e:
        _raise_http(e)


@router.get("/history", response_model=List[SprintHistoryEntry])
async def get_sprint_history(team_id: Optional[int] = None, db: AsyncSession = Depends(get_db)):
    """Get completed sprints with member details"""

    try:
        return await SprintService(db).get_sprint_history(team_id)
    except (SprintServiceError, TeamServiceError) as e:
        _raise_http(e)


@router.get("/statistics", response_model=SummaryStats)
async def get_statistics(team_id: Optional[int] = None, db: AsyncSession = Depends(get_db)):
    """Get summary statistics over completed sprints"""

    try:
        return await SprintService(db).get_summary_stats(team_id)
    except (SprintServiceError, TeamServiceError) as e:
        _raise_http(e)


@router.post("/forecast", response_model=ForecastPreview)
async def preview_forecast(request: ForecastRequest, db: AsyncSession = Depends(get_db)):
    """Preview capacity and forecast for a new sprint without saving it"""

    try:
        return await SprintService(db).preview_forecast(
            request.member_availability, team_id=request.team_id
        )
    except (SprintServiceError, TeamServiceError) as e:
        _raise_http(e)


@router.get("/{sprint_id}", response_model=SprintResponse)
async def get_sprint(sprint_id: int, db: AsyncSession = Depends(get_db)):
    """Get sprint details"""

    try:
        return await SprintService(db).get_sprint(sprint_id)
    except SprintServiceError as e:
        _raise_http(e)


@router.get("/{sprint_id}/metrics", response_model=SprintMetrics)
async def get_sprint_metrics(sprint_id: int, db: AsyncSession = Depends(get_db)):
    """Get forecast vs actual figures for a sprint"""

    try:
        return await SprintService(db).get_sprint_metrics(sprint_id)
    except SprintServiceError as e:
        _raise_http(e)


@router.post("", response_model=SprintResponse, status_code=201)
async def create_sprint(request: SprintCreateRequest, db: AsyncSession = Depends(get_db)):
    """Create a new sprint; capacity and forecast are computed here"""

    try:
        return await SprintService(db).create_sprint(
            name=request.name,
            member_availability=request.member_availability,
            comment=request.comment,
            team_id=request.team_id
        )
    except (SprintServiceError, TeamServiceError) as e:
        _raise_http(e)


@router.patch("/{sprint_id}/complete", response_model=SprintResponse)
async def complete_sprint(
    sprint_id: int,
    request: SprintCompleteRequest,
    db: AsyncSession = Depends(get_db)
):
    """Mark sprint as complete with its actual velocity"""

    try:
        return await SprintService(db).complete_sprint(sprint_id, request.actual_velocity)
    except SprintServiceError as e:
        _raise_http(e)
