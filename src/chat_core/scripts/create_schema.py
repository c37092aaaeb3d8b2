"""Create all tables on the configured database (development only)."""
from __future__ import annotations

import asyncio
import logging

from chat_core.infrastructure.db.base import Base
from chat_core.infrastructure.db import models  # noqa: F401
from chat_core.infrastructure.db.session import engine

logger = logging.getLogger(__name__)


async def create_schema() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    logger.info("Created tables: %s", ", ".join(sorted(Base.metadata.tables)))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(create_schema())


if __name__ == "__main__":
    main()
