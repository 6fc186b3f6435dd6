from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg.conninfo import make_conninfo
from psycopg_pool import ConnectionPool

from capture.config.settings import Settings
from capture.logging.logger import Log

_pool: ConnectionPool | None = None


def pool_max_size(settings: Settings) -> int:
    """Pool size that lets every ingestion worker hold a connection alongside the poll loop."""
    return max(settings.db_pool_max_size, settings.worker_count + 1)


def init_pool(settings: Settings) -> None:
    """Initialize the global connection pool from settings."""
    global _pool  # noqa: PLW0603
    conninfo = make_conninfo(
        host=settings.db_host,
        port=settings.db_port,
        dbname=settings.db_database,
        user=settings.db_username,
        password=settings.db_password,
        application_name="capture-worker",
    )
    max_size = pool_max_size(settings)
    _pool = ConnectionPool(conninfo, min_size=1, max_size=max_size, open=True)
    Log.debug(f"Connection pool opened for {settings.db_database} (max {max_size})")


def close_pool() -> None:
    """Close the global connection pool."""
    global _pool  # noqa: PLW0603
    if _pool is not None:
        _pool.close()
        _pool = None


@contextmanager
def get_connection() -> Generator[psycopg.Connection[Any], None, None]:
    """Yield a connection from the pool. Caller manages commit/rollback."""
    if _pool is None:
        raise RuntimeError("Connection pool not initialized. Call init_pool() first.")
    with _pool.connection() as conn:
        yield conn
