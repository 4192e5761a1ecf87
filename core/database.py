"""
Database session management with SQLAlchemy async
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def create_engine(database_url: str = None) -> AsyncEngine:
    """Create the async engine used by the ingestion pipeline"""
    return create_async_engine(
        database_url or settings.DATABASE_URL,
        echo=False,
        poolclass=NullPool,  # One pipeline, one outstanding statement at a time
        future=True
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to the given engine"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )
