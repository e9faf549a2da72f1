"""
Remote extraction: run a template query against a tenant's source database.

``SqlAlchemyRemoteSource`` opens a short-lived engine per extraction
(``NullPool``, nothing kept between calls, like a dblink round trip) and
returns plain tuples. ``PacedRemoteSource`` decorates any source with a
:class:`~whspine.core.rate_limit.RateLimiter` so that consecutive
extractions are spaced out no matter which operation issues them.

Example::

    source = PacedRemoteSource(
        SqlAlchemyRemoteSource(),
        MinIntervalLimiter(interval=1.0),
    )
    rows = source.fetch(remote_connection, "SELECT ... WHERE day = '2024-01-15'")
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import URL
from sqlalchemy.pool import NullPool

from whspine.core.errors import RemoteExtractionError
from whspine.core.logging import get_logger
from whspine.core.protocols import RemoteSource
from whspine.core.rate_limit import RateLimiter
from whspine.registry.connections import RemoteConnection

logger = get_logger(__name__)


class SqlAlchemyRemoteSource:
    """Executes extraction queries through SQLAlchemy."""

    def __init__(self, driver: str = "postgresql+psycopg2", connect_timeout: int = 10):
        self.driver = driver
        self.connect_timeout = connect_timeout

    def url_for(self, connection: RemoteConnection) -> URL:
        # the only place the secret is unwrapped
        return URL.create(
            self.driver,
            username=connection.username,
            password=connection.password.get_secret(),
            host=connection.host,
            port=connection.port,
            database=connection.dbname,
        )

    def fetch(self, connection: RemoteConnection, query: str) -> list[tuple[Any, ...]]:
        connect_args: dict[str, Any] = {}
        if self.driver.startswith("postgresql"):
            connect_args["connect_timeout"] = self.connect_timeout

        engine = create_engine(
            self.url_for(connection), poolclass=NullPool, connect_args=connect_args
        )
        try:
            with engine.connect() as conn:
                # text() would treat "::DATE" casts as bind parameters and
                # the driver would treat "%" as a format marker
                result = conn.execution_options(no_parameters=True).exec_driver_sql(query)
                return [tuple(row) for row in result.fetchall()]
        except Exception as e:
            raise RemoteExtractionError(
                f"Extraction failed for tenant {connection.tenant}: {e}", cause=e
            ).with_context(tenant=connection.tenant) from e
        finally:
            engine.dispose()


class PacedRemoteSource:
    """Waits on a limiter before every extraction."""

    def __init__(self, inner: RemoteSource, limiter: RateLimiter):
        self.inner = inner
        self.limiter = limiter

    def fetch(self, connection: RemoteConnection, query: str) -> list[tuple[Any, ...]]:
        wait = self.limiter.get_wait_time()
        if wait > 0:
            logger.debug("remote_extraction_paced", tenant=connection.tenant, wait_seconds=round(wait, 3))
        self.limiter.acquire(block=True)
        return self.inner.fetch(connection, query)


__all__ = ["SqlAlchemyRemoteSource", "PacedRemoteSource"]
