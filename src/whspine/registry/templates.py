"""
Template registry.

A *template* is a named extraction query plus the column schema and index
plan of the partitions built from it. The query has a ``{TARGET_DATE}``
substitution point; the index plan is a ``;``-separated list of statements
with ``{SCHEMA}`` and ``{VIEW_NAME}`` substitution points.

Manifesto:
    Templates are data, not code. They are registered once (from YAML via
    the CLI, or directly through ``put``) and looked up by name on every
    partition operation. Registries are explicit objects injected into the
    materializer and the promotion engine, never module-level state.

Architecture:
    ::

        TemplateRegistry (Protocol)
          ├── InMemoryTemplateRegistry    ─ dict-backed (tests, embedding)
          └── SqlTemplateRegistry         ─ {ops}.mv_templates on the host

        Template
          ├── columns      ((name, type), ...)   parsed from "id INTEGER, ..."
          ├── render_query(date)                 {TARGET_DATE} → 2024-01-15
          ├── index_statements(dialect, schema, object)
          └── unique_key                         from first CREATE UNIQUE INDEX

        TemplateSpec (pydantic) ── YAML ──► Template

Examples:
    >>> t = Template.from_definitions(
    ...     "sales",
    ...     "SELECT id, amount FROM sales WHERE day = '{TARGET_DATE}'",
    ...     "id INTEGER, amount NUMERIC(10,2)",
    ...     "CREATE UNIQUE INDEX idx_{SCHEMA}_{VIEW_NAME}_id ON {SCHEMA}.{VIEW_NAME} (id);",
    ... )
    >>> t.columns
    (('id', 'INTEGER'), ('amount', 'NUMERIC(10,2)'))
    >>> t.unique_key
    ('id',)

Tags:
    registry, template, yaml, pydantic, partitions
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Literal, Protocol, runtime_checkable

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from whspine.core.dialect import Column, Dialect
from whspine.core.errors import TemplateDefinitionError, TemplateNotFoundError
from whspine.core.naming import validate_identifier
from whspine.core.schema import ops_table
from whspine.core.storage import WarehouseStore
from whspine.core.timestamps import utc_now_iso

DATE_PLACEHOLDER = "{TARGET_DATE}"

_UNIQUE_INDEX_RE = re.compile(
    r"^\s*CREATE\s+UNIQUE\s+INDEX\b[^(]*\(([^)]*)\)", re.IGNORECASE | re.DOTALL
)


# =============================================================================
# PARSING
# =============================================================================


def _split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split on *sep* outside parentheses (``NUMERIC(10,2)`` stays whole)."""
    parts, current, depth = [], [], 0
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == sep and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


def parse_columns(definitions: str) -> tuple[Column, ...]:
    """Parse ``name TYPE, name TYPE`` into ordered ``(name, type)`` pairs."""
    columns: list[Column] = []
    for item in _split_top_level(definitions):
        pieces = item.split(None, 1)
        if len(pieces) != 2:
            raise TemplateDefinitionError(f"Column definition needs a name and a type: {item!r}")
        name, col_type = pieces[0].strip('"'), pieces[1].strip()
        try:
            validate_identifier(name, "column name")
        except ValueError as e:
            raise TemplateDefinitionError(str(e)) from e
        columns.append((name, col_type))

    if not columns:
        raise TemplateDefinitionError("Template declares no columns")
    names = [c[0] for c in columns]
    if len(set(names)) != len(names):
        raise TemplateDefinitionError(f"Duplicate column names: {names}")
    return tuple(columns)


def format_columns(columns: tuple[Column, ...]) -> str:
    return ",\n".join(f"{name} {col_type}" for name, col_type in columns)


def split_statements(script: str) -> list[str]:
    """Split an index plan into individual statements."""
    return [s.strip() for s in script.split(";") if s.strip()]


# =============================================================================
# TEMPLATE
# =============================================================================


@dataclass(frozen=True)
class Template:
    """A registered extraction template."""

    name: str
    query: str
    columns: tuple[Column, ...]
    indexes: str = ""
    description: str = ""
    date_column: str | None = None
    created_at: str | None = field(default=None, compare=False)
    updated_at: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        try:
            validate_identifier(self.name, "template name")
        except ValueError as e:
            raise TemplateDefinitionError(str(e)) from e
        if DATE_PLACEHOLDER not in self.query:
            raise TemplateDefinitionError(
                f"Template {self.name!r} query has no {DATE_PLACEHOLDER} substitution point"
            )
        if self.date_column is not None and self.date_column not in self.column_names:
            raise TemplateDefinitionError(
                f"date_column {self.date_column!r} is not a column of template {self.name!r}"
            )

    @classmethod
    def from_definitions(
        cls,
        name: str,
        query: str,
        column_definitions: str,
        indexes: str = "",
        *,
        description: str = "",
        date_column: str | None = None,
        created_at: str | None = None,
        updated_at: str | None = None,
    ) -> Template:
        return cls(
            name=name,
            query=query,
            columns=parse_columns(column_definitions),
            indexes=indexes or "",
            description=description or "",
            date_column=date_column,
            created_at=created_at,
            updated_at=updated_at,
        )

    @property
    def column_names(self) -> list[str]:
        return [c[0] for c in self.columns]

    @property
    def column_definitions(self) -> str:
        return format_columns(self.columns)

    def render_query(self, target_date: date) -> str:
        """Substitute the ISO date for every ``{TARGET_DATE}``."""
        return self.query.replace(DATE_PLACEHOLDER, target_date.isoformat())

    def index_statements(self, dialect: Dialect, schema: str, object_name: str) -> list[str]:
        """Render the index plan for one partition."""
        qualified = dialect.qualify(schema, object_name)
        statements = []
        for stmt in split_statements(self.indexes):
            stmt = stmt.replace("{SCHEMA}.{VIEW_NAME}", qualified)
            stmt = stmt.replace("{SCHEMA}", schema).replace("{VIEW_NAME}", object_name)
            statements.append(stmt)
        return statements

    @property
    def unique_key(self) -> tuple[str, ...] | None:
        """Columns of the first ``CREATE UNIQUE INDEX`` in the index plan.

        ``None`` if there is no unique index or its key is not a plain list
        of template columns (expression indexes cannot drive a keyed refresh).
        """
        for stmt in split_statements(self.indexes):
            match = _UNIQUE_INDEX_RE.match(stmt)
            if match is None:
                continue
            keys = tuple(k.strip().strip('"') for k in match.group(1).split(","))
            if keys and all(k in self.column_names for k in keys):
                return keys
            return None
        return None

    def unique_index_position(self) -> int | None:
        """Index (within ``split_statements``) of the key-declaring statement."""
        for i, stmt in enumerate(split_statements(self.indexes)):
            if _UNIQUE_INDEX_RE.match(stmt):
                return i
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "query": self.query,
            "columns": [{"name": n, "type": t} for n, t in self.columns],
            "indexes": split_statements(self.indexes),
            "date_column": self.date_column,
            "unique_key": list(self.unique_key) if self.unique_key else None,
        }


# =============================================================================
# REGISTRIES
# =============================================================================


@runtime_checkable
class TemplateRegistry(Protocol):
    """Keyed store of templates."""

    def get(self, name: str) -> Template: ...

    def put(self, template: Template) -> None: ...

    def list(self) -> list[Template]: ...

    def delete(self, name: str) -> bool: ...


class InMemoryTemplateRegistry:
    """Dict-backed registry."""

    def __init__(self, templates: list[Template] | None = None):
        self._templates: dict[str, Template] = {}
        for t in templates or []:
            self.put(t)

    def get(self, name: str) -> Template:
        try:
            return self._templates[name]
        except KeyError:
            raise TemplateNotFoundError(name) from None

    def put(self, template: Template) -> None:
        self._templates[template.name] = template

    def list(self) -> list[Template]:
        return [self._templates[k] for k in sorted(self._templates)]

    def delete(self, name: str) -> bool:
        return self._templates.pop(name, None) is not None


class SqlTemplateRegistry:
    """Registry stored in ``{ops}.mv_templates`` on the host database."""

    _COLUMNS = (
        "template_name, description, query_template, column_definitions, "
        "indexes, date_column, created_at, updated_at"
    )

    def __init__(self, store: WarehouseStore, ops_schema: str = "_wh"):
        self.store = store
        self.table = ops_table(store, ops_schema, "templates")

    def _from_row(self, row: Any) -> Template:
        return Template.from_definitions(
            row[0],
            row[2],
            row[3],
            row[4] or "",
            description=row[1] or "",
            date_column=row[5],
            created_at=row[6],
            updated_at=row[7],
        )

    def get(self, name: str) -> Template:
        row = self.store.fetchone(
            f"SELECT {self._COLUMNS} FROM {self.table} WHERE template_name = ?", (name,)
        )
        if row is None:
            raise TemplateNotFoundError(name)
        return self._from_row(row)

    def put(self, template: Template) -> None:
        now = utc_now_iso()
        with self.store.transaction():
            self.store.execute(
                f"""
                INSERT INTO {self.table} ({self._COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (template_name) DO UPDATE SET
                    description = excluded.description,
                    query_template = excluded.query_template,
                    column_definitions = excluded.column_definitions,
                    indexes = excluded.indexes,
                    date_column = excluded.date_column,
                    updated_at = excluded.updated_at
                """,
                (
                    template.name,
                    template.description,
                    template.query,
                    template.column_definitions,
                    template.indexes,
                    template.date_column,
                    now,
                    now,
                ),
            )

    def list(self) -> list[Template]:
        rows = self.store.fetchall(
            f"SELECT {self._COLUMNS} FROM {self.table} ORDER BY template_name"
        )
        return [self._from_row(r) for r in rows]

    def delete(self, name: str) -> bool:
        with self.store.transaction():
            self.store.execute(f"DELETE FROM {self.table} WHERE template_name = ?", (name,))
            return self.store.conn.rowcount > 0


# =============================================================================
# YAML
# =============================================================================


class TemplateSpec(BaseModel):
    """One template as written in YAML.

    ``columns`` accepts a definition block (``"id INTEGER, name TEXT"``) or
    a list of ``"name TYPE"`` strings; ``indexes`` accepts a ``;``-separated
    block or a list of statements.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Unique template name")
    description: str = Field(default="", description="Human-readable description")
    query: str = Field(..., min_length=1, description="Extraction query with {TARGET_DATE}")
    columns: str | list[str] = Field(..., description="Column definitions")
    indexes: str | list[str] = Field(default="", description="Index plan")
    date_column: str | None = Field(default=None, description="Timestamp column for year filters")

    @field_validator("query")
    @classmethod
    def validate_placeholder(cls, v: str) -> str:
        if DATE_PLACEHOLDER not in v:
            raise ValueError(f"query must contain {DATE_PLACEHOLDER}")
        return v

    def to_template(self) -> Template:
        columns = self.columns if isinstance(self.columns, str) else ", ".join(self.columns)
        indexes = (
            self.indexes
            if isinstance(self.indexes, str)
            else ";\n".join(s.strip().rstrip(";") for s in self.indexes)
        )
        return Template.from_definitions(
            self.name,
            self.query,
            columns,
            indexes,
            description=self.description,
            date_column=self.date_column,
        )


class TemplateFile(BaseModel):
    """A YAML file holding one or more templates.

    Example YAML::

        apiVersion: whspine.io/v1
        kind: Templates
        templates:
          - name: foodlogstats
            query: |
              SELECT id, logged_time FROM foodlog
              WHERE logged_time::DATE = '{TARGET_DATE}'::DATE
            columns: id INTEGER, logged_time TIMESTAMPTZ
            indexes:
              - CREATE UNIQUE INDEX idx_{SCHEMA}_{VIEW_NAME}_id ON {SCHEMA}.{VIEW_NAME} (id)
            date_column: logged_time
    """

    model_config = ConfigDict(extra="forbid")

    apiVersion: Literal["whspine.io/v1"] = Field(default="whspine.io/v1")
    kind: Literal["Templates"] = Field(default="Templates")
    templates: list[TemplateSpec] = Field(..., min_length=1)

    @field_validator("templates")
    @classmethod
    def validate_unique_names(cls, v: list[TemplateSpec]) -> list[TemplateSpec]:
        names = [t.name for t in v]
        if len(names) != len(set(names)):
            duplicates = {n for n in names if names.count(n) > 1}
            raise ValueError(f"Duplicate template names: {duplicates}")
        return v


def parse_templates(yaml_content: str) -> list[Template]:
    """Parse YAML content into templates.

    Raises:
        TemplateDefinitionError: If the YAML is invalid or does not match the schema.
    """
    try:
        data = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise TemplateDefinitionError(f"Invalid YAML: {e}", cause=e) from e

    if isinstance(data, dict) and "templates" not in data:
        data = {"templates": [data]}

    try:
        spec = TemplateFile.model_validate(data)
    except ValidationError as e:
        raise TemplateDefinitionError(f"Invalid template file: {e}", cause=e) from e
    return [t.to_template() for t in spec.templates]


def load_templates(path: str | Path) -> list[Template]:
    """Load and validate templates from a YAML file."""
    content = Path(path).read_text(encoding="utf-8")
    return parse_templates(content)


__all__ = [
    "DATE_PLACEHOLDER",
    "Template",
    "TemplateRegistry",
    "InMemoryTemplateRegistry",
    "SqlTemplateRegistry",
    "TemplateSpec",
    "TemplateFile",
    "parse_columns",
    "split_statements",
    "parse_templates",
    "load_templates",
]
