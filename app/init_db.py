import logging

from .database import Base, engine

logger = logging.getLogger(__name__)

async def init_models(bind=None):
    """Create every table that does not exist yet. Production schemas come from alembic."""
    # Importing the package registers every mapper on Base.metadata
    import app.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")
