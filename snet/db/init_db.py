import asyncio
import structlog

from snet.core.config import settings
from snet.core.logging import setup_logging
from snet.db.base import Base
from snet.db.session import engine

logger = structlog.get_logger()


def register_models():
    # Importing the modules registers their tables on Base.metadata
    from snet.models import user, chat, community, moderation, notification  # noqa: F401
    return Base.metadata


async def create_tables(bind=engine):
    metadata = register_models()
    async with bind.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def main():
    setup_logging()
    logger.info("db_init_start", database=settings.DATABASE_URL.split("@")[-1])
    try:
        # Fail fast if the database is unreachable
        async with asyncio.timeout(10):
            await create_tables()
    except TimeoutError:
        logger.error("db_init_timeout", message="Connection to database timed out after 10s.")
        raise
    except Exception as e:
        logger.error("db_init_failed", error=str(e))
        raise
    logger.info("db_init_complete")

if __name__ == "__main__":
    asyncio.run(main())
