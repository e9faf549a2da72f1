"""UTC timestamp helpers.

Catalog and registry rows store timestamps as ISO-8601 text so the same
columns work on SQLite and PostgreSQL.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def to_iso8601(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO-8601 text; naive values are taken as UTC."""
    if not s:
        return None
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt
