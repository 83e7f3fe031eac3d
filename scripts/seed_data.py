#!/usr/bin/env python3
"""
Seed Data Script for the Sprint Velocity Tracker

Creates realistic data for development:
- 1 default team with 4 members
- 6 completed sprints, each forecast from the sprints before it
- 1 active sprint

Sprints go through SprintService so every forecast is the one the
application would have produced at the time.

Usage:
    python scripts/seed_data.py              # Add seed data
    python scripts/seed_data.py --clear      # Clear all data first
"""
import asyncio
import sys
import os
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from velocity_tracker.database import async_session, create_tables
from velocity_tracker.models.sprint import Sprint, MemberAvailability
from velocity_tracker.models.team import Team, TeamMember
from velocity_tracker.services.sprint_service import AvailabilityInput, SprintService
from velocity_tracker.services.team_service import MemberInput, TeamService


# ==================== DATA DEFINITIONS ====================

TEAM_DATA = {
    "name": "Platform Team",
    "sprint_size_in_days": 10,
    "members": [
        {"name": "Emma Rodriguez", "velocity_weight": 1.0},
        {"name": "Frank Smith", "velocity_weight": 1.0},
        {"name": "Grace Lee", "velocity_weight": 0.8},
        {"name": "Henry Brown", "velocity_weight": 0.5},
    ]
}

# (name, days off per member in roster order, actual velocity or None)
SPRINTS_DATA = [
    ("Sprint 1", [0, 0, 2, 0], 31),
    ("Sprint 2", [1, 0, 0, 5], 29),
    ("Sprint 3", [0, 3, 0, 0], 36),
    ("Sprint 4", [0, 0, 0, 0], 41),
    ("Sprint 5", [2, 2, 1, 0], 30),
    ("Sprint 6", [0, 0, 0, 3], 38),
    ("Sprint 7", [0, 1, 0, 0], None),
]


# ==================== SEEDING ====================

async def clear_all_data(session: AsyncSession):
    """Delete every row, children first"""
    print("Clearing existing data...")
    for model in (MemberAvailability, Sprint, TeamMember, Team):
        await session.execute(delete(model))
    await session.commit()


async def create_team(session: AsyncSession) -> Team:
    team = await TeamService(session).create_team(
        name=TEAM_DATA["name"],
        sprint_size_in_days=TEAM_DATA["sprint_size_in_days"],
        members=[MemberInput(**member) for member in TEAM_DATA["members"]],
        is_default=True
    )
    print(f"  Team: {team.name} ({len(team.members)} members)")
    return team


async def create_sprints(session: AsyncSession, team: Team):
    service = SprintService(session)

    for name, days_off, actual in SPRINTS_DATA:
        availability = [
            AvailabilityInput(member_id=member.id, days_off=off)
            for member, off in zip(team.members, days_off)
        ]
        sprint = await service.create_sprint(
            name=name,
            member_availability=availability,
            team_id=team.id
        )

        if actual is not None:
            await service.complete_sprint(sprint.id, actual)
            print(f"  {name}: forecast {sprint.forecast_velocity:.1f}, actual {actual}")
        else:
            print(f"  {name}: forecast {sprint.forecast_velocity:.1f} (active)")


async def seed_database(clear_first: bool = False):
    print("=" * 60)
    print("Seeding Sprint Velocity Tracker database")
    print("=" * 60)

    await create_tables()

    async with async_session() as session:
        if clear_first:
            await clear_all_data(session)

        team = await create_team(session)
        await create_sprints(session, team)

    print("\n" + "=" * 60)
    print("Database seeding complete!")
    print(f"  Sprints: {len(SPRINTS_DATA)} ({sum(1 for s in SPRINTS_DATA if s[2] is None)} active)")
    print("=" * 60)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Seed Sprint Velocity Tracker database")
    parser.add_argument("--clear", action="store_true", help="Clear all data before seeding")
    args = parser.parse_args()

    asyncio.run(seed_database(clear_first=args.clear))
