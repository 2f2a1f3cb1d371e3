from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

import models
from settings import settings

DATABASE_URL = settings.DATABASE_URL

# Async engine for the order store
engine = create_async_engine(DATABASE_URL)

# Objects stay readable after commit; background tasks keep using them.
AsyncSessionLocal = sessionmaker(
    autoflush=False, bind=engine, class_=AsyncSession, expire_on_commit=False
)

async def init_db():
    """Creates the order store tables if they do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)

async def get_db():
    """
    Dependency that provides one database session per request.
    """
    async with AsyncSessionLocal() as session:
        yield session
