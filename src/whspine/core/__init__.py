"""Warehouse core -- primitives shared by registries, partitions and views.

Architecture::

    Layer 1 -- Type System & Errors
        errors.py          Structured error hierarchy (WarehouseError, ...)
        result.py          Result[T] envelope (Ok / Err / try_result)
        protocols.py       Canonical protocols (Connection, RemoteSource)
        naming.py          Partition / view naming contract

    Layer 2 -- Host Database
        dialect.py         SQL dialect abstraction (SQLite, PostgreSQL)
        sqlite_conn.py     sqlite3 adapter with explicit transactions
        sa_conn.py         SQLAlchemy bridge for PostgreSQL
        connection.py      Host URL parsing and opening (open_host)
        storage.py         WarehouseStore: re-entrant transactions
        schema.py          Operational tables (templates, connections, catalog)

    Layer 3 -- Ambient
        settings.py        pydantic-settings configuration (WH_*)
        logging.py         structlog configuration + LogContext
        secrets.py         Credential references + SecretValue masking
        rate_limit.py      Pacing for remote extractions
"""

from whspine.core.errors import (
    ErrorCategory,
    ErrorContext,
    NotFoundError,
    WarehouseError,
)
from whspine.core.result import Err, Ok, Result
from whspine.core.settings import WarehouseSettings, get_settings
from whspine.core.storage import WarehouseStore

__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "WarehouseError",
    "NotFoundError",
    "Ok",
    "Err",
    "Result",
    "WarehouseSettings",
    "get_settings",
    "WarehouseStore",
]
