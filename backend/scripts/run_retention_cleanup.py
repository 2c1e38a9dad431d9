"""Run the retention cleanup jobs once.

Standalone script for cron / scheduled tasks.

Usage:
    cd backend && python -m scripts.run_retention_cleanup
"""

import logging

logger = logging.getLogger(__name__)


async def main() -> None:
    """CLI entry point: run cleanups against the configured database."""
    import sys

    from sqlalchemy.ext.asyncio import (
        AsyncSession,
        async_sessionmaker,
        create_async_engine,
    )

    from app.core.config import settings
    from app.services.retention_cleanup import run_all_cleanups

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = create_async_engine(settings.database_url, echo=False)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        result = await run_all_cleanups(session)
        await session.commit()

    await engine.dispose()

    logger.info("Final stats: %s", result)
    sys.exit(0)


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
