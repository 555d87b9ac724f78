import asyncio
import os

from dotenv import load_dotenv

from picsearch_backend.app.db.session import Database


async def init_models(url: str) -> None:
    """
    Creates all tables defined in the ORM models.
    Safe to run multiple times (CREATE IF NOT EXISTS behavior).
    Production schemas are managed by alembic; this is for local dev.
    """
    db = Database(url, create_tables=True)
    try:
        await db.connect()
    finally:
        await db.dispose()


# Allows:
#   python -m picsearch_backend.app.db.init_db
if __name__ == "__main__":
    load_dotenv()
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL not set in environment (.env)")
    asyncio.run(init_models(database_url))
