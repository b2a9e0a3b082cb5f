"""Database initialization script"""
import asyncio

from boxup.config import settings
from boxup.database import init_db


async def main():
    """Create tables and indexes (idempotent)"""
    print(f"Initializing database: {settings.database_url}")
    await init_db()
    print("Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(main())
