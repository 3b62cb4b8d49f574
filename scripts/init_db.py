"""Script to initialize the database."""

import asyncio

from sqlalchemy import text

from telecare.database import engine
from telecare.models import metadata


async def init_db() -> None:
    """Create every table (without Alembic) for local development."""
    async with engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("Database initialized: " + ", ".join(sorted(metadata.tables)))


if __name__ == "__main__":
    asyncio.run(init_db())
