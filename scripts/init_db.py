#!/usr/bin/env python3
"""Initialize the database with tables."""

import asyncio

from dropship_ops.db.base import create_schema


async def init_db() -> None:
    """Create all tables."""
    await create_schema()
    print("Database initialized!")


if __name__ == "__main__":
    asyncio.run(init_db())
