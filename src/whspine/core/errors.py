"""
Structured error types for the warehouse.

Every failure the warehouse can report is a ``WarehouseError`` carrying a
category, a retry flag, an ``ErrorContext`` naming the template / tenant /
schema / object involved, and an optional chained cause. Operations never let
these escape: they are caught at the operation boundary and returned inside
an ``Err`` (see :mod:`whspine.core.result`) after being logged.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        WarehouseError                            │
        │        (category, retryable, context, cause)                     │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  NotFoundError          CatalogError          ConfigError        │
        │  (NOT_FOUND)            (CATALOG)             (CONFIG)           │
        │     │                      │                      │              │
        │  TemplateNotFound       PartitionExists       SecretResolution   │
        │  ConnectionNotFound     NoSources                                │
        │                                                                  │
        │  RemoteExtractionError  IndexCreationError    RefreshError       │
        │  (SOURCE, retryable)    (DDL)                 (DDL)              │
        │                                                                  │
        │  PromotionError ──── VerificationError                           │
        │  (PROMOTION)         (count mismatch, forces rollback)           │
        └─────────────────────────────────────────────────────────────────┘

Handling policy:
    - NotFound: fail fast before any side effect.
    - RemoteExtractionError: the single-partition operation fails and leaves
      no partition behind.
    - IndexCreationError: degraded success, the partition stands unindexed.
    - VerificationError: raised inside the promotion transaction so that the
      whole promotion rolls back.

Examples:
    >>> err = TemplateNotFoundError("sales")
    >>> err.category
    <ErrorCategory.NOT_FOUND: 'NOT_FOUND'>
    >>> err.context.template
    'sales'

    >>> err = RemoteExtractionError("connection refused").with_context(tenant="acme-prod")
    >>> err.retryable
    True
    >>> err.to_dict()["context"]
    {'tenant': 'acme-prod'}

Tags:
    error-handling, exception-hierarchy, warehouse, partitions
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories used for routing and reporting."""

    NOT_FOUND = "NOT_FOUND"       # Template, tenant connection, partition
    CONFIG = "CONFIG"             # Settings, secrets, malformed templates
    SOURCE = "SOURCE"             # Remote tenant database
    DATABASE = "DATABASE"         # Host warehouse engine
    DDL = "DDL"                   # Index / refresh / view definition
    CATALOG = "CATALOG"           # Partition registry state
    PROMOTION = "PROMOTION"       # Year merge protocol
    VALIDATION = "VALIDATION"     # Bad arguments
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only the fields relevant to the failing operation are set; ``to_dict()``
    drops the rest so log lines stay short. Never put connection passwords in
    here.

    Attributes:
        template: Template name.
        tenant: Tenant connection id.
        schema: Tenant schema.
        object_name: Partition or view name.
        target_date: Day the operation was working on.
        year: Year being promoted or checked.
        metadata: Additional key-value pairs.
    """

    template: str | None = None
    tenant: str | None = None
    schema: str | None = None
    object_name: str | None = None
    target_date: date | None = None
    year: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["template", "tenant", "schema", "object_name", "target_date", "year"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value.isoformat() if isinstance(value, date) else value
        if self.metadata:
            result.update(self.metadata)
        return result


class WarehouseError(Exception):
    """
    Base exception for all warehouse errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers can
    override either per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> WarehouseError:
        """
        Add context to this error (fluent API).

        Usage:
            raise RefreshError("no unique key").with_context(
                schema="acme", object_name="sales_2024_01_15"
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# LOOKUP ERRORS
# =============================================================================


class NotFoundError(WarehouseError):
    """A named registry entry does not exist."""

    default_category = ErrorCategory.NOT_FOUND


class TemplateNotFoundError(NotFoundError):
    """No template registered under the requested name."""

    def __init__(self, template: str, **kwargs: Any):
        super().__init__(f"Template not found: {template}", **kwargs)
        self.context.template = template


class ConnectionNotFoundError(NotFoundError):
    """No tenant connection registered under the requested id."""

    def __init__(self, tenant: str, **kwargs: Any):
        super().__init__(f"No connection found for tenant: {tenant}", **kwargs)
        self.context.tenant = tenant


# =============================================================================
# CONFIGURATION
# =============================================================================


class ConfigError(WarehouseError):
    """Invalid settings or malformed definitions."""

    default_category = ErrorCategory.CONFIG


class TemplateDefinitionError(ConfigError):
    """A template's column or index definition cannot be parsed."""


class SecretResolutionError(ConfigError):
    """A secret reference could not be resolved by any backend."""


# =============================================================================
# SOURCE / ENGINE
# =============================================================================


class RemoteExtractionError(WarehouseError):
    """The extraction query failed against the tenant's remote database."""

    default_category = ErrorCategory.SOURCE
    default_retryable = True


class DatabaseError(WarehouseError):
    """The host warehouse engine rejected a statement."""

    default_category = ErrorCategory.DATABASE


class IndexCreationError(DatabaseError):
    """An index statement from the template's index plan failed."""

    default_category = ErrorCategory.DDL


class RefreshError(DatabaseError):
    """An in-place refresh of a day partition failed."""

    default_category = ErrorCategory.DDL


# =============================================================================
# CATALOG
# =============================================================================


class CatalogError(WarehouseError):
    """The partition catalog is in a state that forbids the operation."""

    default_category = ErrorCategory.CATALOG


class PartitionExistsError(CatalogError):
    """A partition that must not exist yet already does."""


class NoSourcesError(CatalogError):
    """An aggregate view would have no constituent sources."""


# =============================================================================
# PROMOTION
# =============================================================================


class PromotionError(WarehouseError):
    """
    Year promotion failed and was rolled back.

    ``report`` holds the partial :class:`~whspine.partitions.promotion.PromotionReport`
    (counts gathered before the failure, duration).
    """

    default_category = ErrorCategory.PROMOTION

    def __init__(self, message: str, *, report: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.report = report


class VerificationError(PromotionError):
    """Row count after merging does not match the pre-promotion snapshot."""

    def __init__(self, pre_count: int, post_count: int, **kwargs: Any):
        super().__init__(
            f"Record count mismatch: pre_count={pre_count} post_count={post_count}",
            **kwargs,
        )
        self.pre_count = pre_count
        self.post_count = post_count


# =============================================================================
# HELPERS
# =============================================================================


def wrap_error(
    error: Exception,
    wrapper: type[WarehouseError] = DatabaseError,
    message: str | None = None,
) -> WarehouseError:
    """Return *error* unchanged if it is already a ``WarehouseError``, else wrap it.

    ``ValueError`` (bad identifiers, bad dates) becomes a VALIDATION error
    regardless of *wrapper*.
    """
    if isinstance(error, WarehouseError):
        return error
    if isinstance(error, ValueError):
        return WarehouseError(
            message or str(error), category=ErrorCategory.VALIDATION, cause=error
        )
    return wrapper(message or str(error), cause=error)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "WarehouseError",
    "NotFoundError",
    "TemplateNotFoundError",
    "ConnectionNotFoundError",
    "ConfigError",
    "TemplateDefinitionError",
    "SecretResolutionError",
    "RemoteExtractionError",
    "DatabaseError",
    "IndexCreationError",
    "RefreshError",
    "CatalogError",
    "PartitionExistsError",
    "NoSourcesError",
    "PromotionError",
    "VerificationError",
    "wrap_error",
]
