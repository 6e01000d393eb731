"""Fragment store factory.

Centralizes creation of concrete ``FragmentStore`` backends so the composition
root doesn't depend on implementation details.
"""

from enum import Enum

import structlog

from ..common.config import SearchConfig
from .base import FragmentStore
from .postgres import PostgresFragmentStore
from .sqlite import SQLiteFragmentStore

logger = structlog.get_logger("fragment_store.factory")


class FragmentStoreType(Enum):
    """Supported fragment store types."""
    SQLITE = "sqlite"
    POSTGRES = "postgres"


def create_fragment_store(config: SearchConfig) -> FragmentStore:
    """Create the fragment store selected by ``ks_store_backend``."""
    store_type = FragmentStoreType(config.ks_store_backend)

    if store_type == FragmentStoreType.SQLITE:
        store: FragmentStore = SQLiteFragmentStore(config.ks_sqlite_path)
    else:
        store = PostgresFragmentStore(
            dsn=config.ks_postgres_dsn,
            pool_size=config.ks_postgres_pool_size,
            command_timeout=config.ks_postgres_command_timeout,
            language=config.ks_fts_language,
        )

    logger.info("Created fragment store", backend=store_type.value)
    return store
