"""
Backend selection.

The only place that decides which concrete backend is active. Everything
else receives a RepositoryFactory and depends on the contracts alone.
"""
from typing import Optional

from dreamontology.config import Settings, get_settings
from dreamontology.core.logging import get_logger
from dreamontology.repository.interfaces import RepositoryFactory
from dreamontology.repository.memory import MemoryRepositoryFactory

logger = get_logger(__name__)


def build_repository_factory(settings: Optional[Settings] = None) -> RepositoryFactory:
    """
    DATABASE_URL set   -> relational backend (tables created if missing)
    DATABASE_URL unset -> in-memory backend

    With SEED_TEST_DATA the sample catalog is loaded into whichever backend
    was chosen.
    """
    settings = settings or get_settings()

    if settings.uses_database:
        # Imported lazily so the in-memory path never touches a DB driver
        from dreamontology.repository.sql import SqlRepositoryFactory
        factory = SqlRepositoryFactory.from_settings(settings)
    else:
        logger.warning("database_url_not_set", backend="memory")
        factory = MemoryRepositoryFactory()

    logger.info("repository_backend_selected", backend=factory.backend_name)

    if settings.seed_test_data:
        from dreamontology.repository.seed import seed_test_data
        seed_test_data(factory)

    return factory
