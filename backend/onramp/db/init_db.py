"""
Database Initialization

Creates the async SQLite engine and session factory, and the orders table.
"""
import logging
from pathlib import Path
from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .models import Base

logger = logging.getLogger(__name__)


def create_engine_and_sessionmaker(database_path: str) -> Tuple[AsyncEngine, async_sessionmaker]:
    """
    Build the async engine and session factory for a SQLite file.

    Returns:
        (engine, session factory)
    """
    db_path = Path(database_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        echo=False,
        connect_args={
            "timeout": 30,  # seconds to wait for a write lock
            "check_same_thread": False
        },
        pool_pre_ping=True,
    )

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    return engine, session_factory


async def initialize_database(engine: AsyncEngine) -> None:
    """
    Create all tables and enable WAL mode.

    Called during FastAPI startup.
    """
    async with engine.connect() as conn:
        await conn.exec_driver_sql("PRAGMA journal_mode=WAL")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info(f"Database initialized at {engine.url.database}")
