import asyncio
import logging
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm import declarative_base
from .config import settings

logger = logging.getLogger(__name__)

SQLALCHEMY_DATABASE_URL = settings.database_url

# Create async engine
engine = create_async_engine(
    SQLALCHEMY_DATABASE_URL,
    echo=settings.sql_echo,
)

# Create async session
AsyncSessionLocal = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

Base = declarative_base()

async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()

async def wait_for_db(bind=None, max_retries=5, retry_interval=5.0):
    """Create the tables, retrying while the database is still coming up."""
    bind = bind if bind is not None else engine
    for i in range(max_retries):
        try:
            async with bind.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            return
        except (OperationalError, OSError) as e:
            if i == max_retries - 1:  # Last retry
                raise
            logger.warning(
                "Database not ready (%s), waiting %s seconds... (Attempt %d/%d)",
                e, retry_interval, i + 1, max_retries,
            )
            await asyncio.sleep(retry_interval)
