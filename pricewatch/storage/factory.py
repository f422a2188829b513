"""Factory selecting the storage implementation from configuration."""

import os

import structlog

from pricewatch.config import Settings
from pricewatch.db.session import create_engine, create_session_factory, create_tables
from pricewatch.storage.base import Storage
from pricewatch.storage.memory_storage import InMemoryStorage
from pricewatch.storage.sql_storage import SQLStorage

logger = structlog.get_logger(__name__)

MEMORY_URL = "memory://"


async def create_storage(settings: Settings) -> Storage:
    """Create the storage backend named by ``settings.DATABASE_URL``.

    SQL backends get their tables created on first use.

    Args:
        settings: Application settings

    Returns:
        Ready-to-use Storage instance
    """
    url = settings.DATABASE_URL

    if url == MEMORY_URL:
        logger.info("storage_initialized", backend="memory")
        return InMemoryStorage(default_currency=settings.DEFAULT_CURRENCY)

    if url.startswith("sqlite") and ":memory:" not in url:
        # Ensure the directory for the database file exists
        path = url.split(":///", 1)[-1]
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    engine = create_engine(url, echo=settings.DEBUG)
    await create_tables(engine)

    logger.info("storage_initialized", backend=engine.dialect.name)
    return SQLStorage(create_session_factory(engine), engine=engine)
