import asyncio
import logging

from src.database import engine, Base

# Import all models to ensure they are registered in Base.metadata
from src.engineering.models import Isometric, IsometricRevision, Spool, Joint, Material  # noqa: F401
from src.files.models import RevisionFile  # noqa: F401
from src.impacts.models import IsometricImpact  # noqa: F401

logger = logging.getLogger(__name__)


async def init_models(drop: bool = False):
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    asyncio.run(init_models())
