#!/usr/bin/env python3
"""
Initialize database with all tables
"""
import asyncio
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from velocity_tracker.config import settings
from velocity_tracker.database import create_tables
from velocity_tracker.models.base import Base


async def init_database():
    """Create all tables"""
    print(f"Initializing database at {settings.database_url}")

    await create_tables()

    print(f"Created tables: {', '.join([t.name for t in Base.metadata.sorted_tables])}")


if __name__ == "__main__":
    asyncio.run(init_database())
