from __future__ import annotations

from typing import Dict, List, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from pydantic import BaseModel, Field

from ..core.metrics import TeamSnapshot
from ..models.team import Team, TeamMember

# Type aliases
TeamId = int
MemberId = int

MIN_SPRINT_SIZE = 1
MAX_SPRINT_SIZE = 30
MAX_VELOCITY_WEIGHT = 2.0


# Pydantic models
class MemberInput(BaseModel):
    id: Optional[MemberId] = None
    name: str = Field(..., min_length=1)
    velocity_weight: float = Field(default=1.0, ge=0, le=MAX_VELOCITY_WEIGHT)


# Custom exceptions
class TeamServiceError(Exception):
    def __init__(self, message: str, team_id: Optional[TeamId] = None) -> None:
        super().__init__(message)
        self.team_id = team_id

class TeamValidationError(TeamServiceError):
    pass

class TeamNotFoundError(TeamServiceError):
    def __init__(self, team_id: Optional[TeamId] = None) -> None:
        if team_id is None:
            super().__init__("No team found. Please create a team first.")
        else:
            super().__init__(f"Team {team_id} not found", team_id)


class TeamService:
    """
    Team configuration: roster, sprint length and the default-team flag.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self._logger = logging.getLogger(__name__)

    async def list_teams(self) -> List[Team]:
        result = await self.db.execute(select(Team).order_by(Team.id))
        return list(result.scalars().all())

    async def get_team(self, team_id: TeamId) -> Team:
        """Get team by ID."""

        result = await self.db.execute(select(Team).where(Team.id == team_id))
        team = result.scalar_one_or_none()

        if team is None:
            raise TeamNotFoundError(team_id)

        return team

    async def get_default_team(self) -> Team:
        """The flagged default team, else the oldest team."""

        stmt = select(Team).order_by(Team.is_default.desc(), Team.id).limit(1)
        result = await self.db.execute(stmt)
        team = result.scalar_one_or_none()

        if team is None:
            raise TeamNotFoundError()

        return team

    async def resolve_team(self, team_id: Optional[TeamId] = None) -> Team:
        if team_id is None:
            return await self.get_default_team()
        return await self.get_team(team_id)

    async def create_team(
        self,
        name: str,
        sprint_size_in_days: int,
        members: Optional[List[MemberInput]] = None,
        is_default: bool = False
    ) -> Team:
        """Create a team with its roster."""

        self._logger.info("Creating team '%s'", name)

        try:
            self._validate_team_fields(name, sprint_size_in_days)

            team = Team(
                name=name.strip(),
                sprint_size_in_days=sprint_size_in_days,
                is_default=is_default
            )
            # assigned even when empty so the collection counts as loaded
            team.members = [
                self._build_member(member, position)
                for position, member in enumerate(members or [])
            ]

            self.db.add(team)
            await self.db.flush()

            if is_default:
                await self._clear_other_defaults(team.id)

            await self.db.commit()

        except Exception as e:
            await self.db.rollback()
            self._logger.error("Failed to create team: %s", str(e))
            if isinstance(e, TeamServiceError):
                raise
            raise TeamServiceError(f"Team creation failed: {str(e)}")

        self._logger.info("Created team %d with %d members", team.id, len(members or []))
        return await self.get_team(team.id)

    async def update_team(
        self,
        team_id: TeamId,
        name: Optional[str] = None,
        sprint_size_in_days: Optional[int] = None,
        members: Optional[List[MemberInput]] = None,
        is_default: Optional[bool] = None
    ) -> Team:
        """Update team settings; ``members`` replaces the roster when given.

        Members carrying an id are edited in place, new ones are appended and
        omitted ones are removed. Past sprints keep their member ids.
        """

        team = await self.get_team(team_id)

        try:
            self._validate_team_fields(
                name if name is not None else team.name,
                sprint_size_in_days if sprint_size_in_days is not None else team.sprint_size_in_days
            )

            if name is not None:
                team.name = name.strip()
            if sprint_size_in_days is not None:
                team.sprint_size_in_days = sprint_size_in_days
            if members is not None:
                self._replace_members(team, members)
            if is_default is not None:
                team.is_default = is_default
                if is_default:
                    await self._clear_other_defaults(team.id)

            await self.db.commit()

        except Exception as e:
            await self.db.rollback()
            self._logger.error("Failed to update team %d: %s", team_id, str(e))
            if isinstance(e, TeamServiceError):
                raise
            raise TeamServiceError(f"Team update failed: {str(e)}", team_id)

        self._logger.info("Updated team %d", team_id)
        return await self.get_team(team_id)

    # Private methods

    def _validate_team_fields(self, name: str, sprint_size_in_days: int) -> None:
        if not name or not name.strip():
            raise TeamValidationError("Team name is required")

        if not MIN_SPRINT_SIZE <= sprint_size_in_days <= MAX_SPRINT_SIZE:
            raise TeamValidationError(
                f"Sprint size must be between {MIN_SPRINT_SIZE} and {MAX_SPRINT_SIZE} days"
            )

    def _build_member(self, member: MemberInput, position: int) -> TeamMember:
        return TeamMember(
            name=member.name.strip(),
            velocity_weight=member.velocity_weight,
            position=position
        )

    def _replace_members(self, team: Team, members: List[MemberInput]) -> None:
        existing: Dict[MemberId, TeamMember] = {m.id: m for m in team.members}
        roster: List[TeamMember] = []

        for position, member in enumerate(members):
            if member.id is None:
                roster.append(self._build_member(member, position))
                continue

            current = existing.get(member.id)
            if current is None:
                raise TeamValidationError(
                    f"Member {member.id} does not belong to team {team.id}", team.id
                )

            current.name = member.name.strip()
            current.velocity_weight = member.velocity_weight
            current.position = position
            roster.append(current)

        team.members = roster

    async def _clear_other_defaults(self, team_id: TeamId) -> None:
        await self.db.execute(
            update(Team).where(Team.id != team_id).values(is_default=False)
        )


def team_snapshot(team: Team) -> TeamSnapshot:
    """Freeze an ORM team into the shape the metrics engine consumes."""
    return TeamSnapshot.model_validate(team)


__all__ = [
    "TeamService",
    "MemberInput",
    "TeamServiceError",
    "TeamValidationError",
    "TeamNotFoundError",
    "team_snapshot",
]
