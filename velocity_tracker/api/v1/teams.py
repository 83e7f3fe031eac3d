from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...database import get_db
from ...core.metrics import as_utc
from ...services.team_service import (
    MAX_SPRINT_SIZE,
    MIN_SPRINT_SIZE,
    MemberInput,
    TeamNotFoundError,
    TeamService,
    TeamServiceError,
)

router = APIRouter()

class TeamCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    sprint_size_in_days: int = Field(..., ge=MIN_SPRINT_SIZE, le=MAX_SPRINT_SIZE)
    members: List[MemberInput] = Field(default_factory=list)
    is_default: bool = False

class TeamUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    sprint_size_in_days: Optional[int] = Field(None, ge=MIN_SPRINT_SIZE, le=MAX_SPRINT_SIZE)
    members: Optional[List[MemberInput]] = None
    is_default: Optional[bool] = None

class MemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    velocity_weight: float

class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    sprint_size_in_days: int
    is_default: bool
    members: List[MemberResponse]
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None


def _raise_http(error: TeamServiceError) -> None:
    if isinstance(error, TeamNotFoundError):
        raise HTTPException(status_code=404, detail=str(error))
    raise HTTPException(status_code=400, detail=str(error))


@router.get("", response_model=List[TeamResponse])
async def list_teams(db: AsyncSession = Depends(get_db)):
    """List all teams"""

    return await TeamService(db).list_teams()


@router.get("/default", response_model=TeamResponse)
async def get_default_team(db: AsyncSession = Depends(get_db)):
    """Get the default team"""

    try:
        return await TeamService(db).get_default_team()
    except TeamServiceError as e:
        _raise_http(e)


@router.get("/{team_id}", response_model=TeamResponse)
async def get_team(team_id: int, db: AsyncSession = Depends(get_db)):
    """Get team details"""

    try:
        return await TeamService(db).get_team(team_id)
    except TeamServiceError as e:
        _raise_http(e)


@router.post("", response_model=TeamResponse, status_code=201)
async def create_team(request: TeamCreateRequest, db: AsyncSession = Depends(get_db)):
    """Create a team with its members"""

    try:
        return await TeamService(db).create_team(
            name=request.name,
            sprint_size_in_days=request.sprint_size_in_days,
            members=request.members,
            is_default=request.is_default
        )
    except TeamServiceError as e:
        _raise_http(e)


@router.put("/{team_id}", response_model=TeamResponse)
async def update_team(
    team_id: int,
    request: TeamUpdateRequest,
    db: AsyncSession = Depends(get_db)
):
    """Update team settings and roster"""

    try:
        return await TeamService(db).update_team(
            team_id,
            name=request.name,
            sprint_size_in_days=request.sprint_size_in_days,
            members=request.members,
            is_default=request.is_default
        )
    except TeamServiceError as e:
        _raise_http(e)
