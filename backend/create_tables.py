import asyncio

from app.db.session import create_engine_from_settings
from app.repositories.sql import create_schema
# Import all models to ensure they are registered with Base metadata
import app.models  # noqa: F401


async def create_tables():
    print("Creating tables...")
    engine = create_engine_from_settings()
    try:
        await create_schema(engine)
    finally:
        await engine.dispose()
    print("Tables created successfully.")


if __name__ == "__main__":
    asyncio.run(create_tables())
