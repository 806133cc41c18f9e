"""Persistence schema for a resource: main, translations, slugs and revisions tables.

The column lists are plain data (``ColumnPlan``) so they can be inspected
without a database. ``TableDefinition.columns()`` turns them into fresh
SQLAlchemy ``Column`` objects every call, which lets the same definition feed
both a ``MetaData`` table for queries and an Alembic ``op.create_table``.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple
import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from cmskit.core.workflow import BootStage
from cmskit.modules.schema import FieldType, ResourceSchema

log = logging.getLogger(__name__)

_SA_TYPES = {
    FieldType.STRING: lambda: sa.String(length=255),
    FieldType.BOOLEAN: sa.Boolean,
    FieldType.DATETIME: sa.DateTime,
}


@dataclass(frozen=True)
class ColumnPlan:
    """A schema-defined column."""
    name: str
    type: FieldType
    nullable: bool = True
    default: Any = None

    def to_column(self) -> sa.Column:
        kwargs = {"nullable": self.nullable}
        if self.default is not None:
            kwargs["server_default"] = _server_default(self.type, self.default)
        return sa.Column(self.name, _SA_TYPES[self.type](), **kwargs)


def _server_default(field_type: FieldType, value: Any):
    if field_type is FieldType.BOOLEAN:
        return sa.true() if value else sa.false()
    if hasattr(value, "isoformat"):
        return value.isoformat(sep=" ")
    return str(value)


# Framework-managed columns. Each routine takes the singular and plural
# resource names and returns the columns and constraints it owns.

def default_table_fields(singular: str, plural: str) -> List[Any]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("published", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=True),
    ]


def default_translations_table_fields(singular: str, plural: str) -> List[Any]:
    fk = f"{singular}_id"
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("locale", sa.String(length=7), nullable=False, index=True),
        sa.Column("active", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(fk, sa.Integer(), sa.ForeignKey(f"{plural}.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint(fk, "locale", name=f"{singular}_translations_{fk}_locale_unique"),
    ]


def default_slugs_table_fields(singular: str, plural: str) -> List[Any]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("locale", sa.String(length=7), nullable=False, index=True),
        sa.Column("active", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(f"{singular}_id", sa.Integer(), sa.ForeignKey(f"{plural}.id", ondelete="CASCADE"), nullable=False),
    ]


def default_revisions_table_fields(singular: str, plural: str) -> List[Any]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column(f"{singular}_id", sa.Integer(), sa.ForeignKey(f"{plural}.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("payload", sa.Text(), nullable=False),
    ]


@dataclass(frozen=True)
class TableDefinition:
    name: str
    field_columns: Tuple[ColumnPlan, ...]
    defaults: Callable[[str, str], List[Any]]
    singular: str
    plural: str

    def columns(self) -> List[Any]:
        return self.defaults(self.singular, self.plural) + [c.to_column() for c in self.field_columns]

    def to_table(self, metadata: sa.MetaData) -> sa.Table:
        if self.name in metadata.tables:
            return metadata.tables[self.name]
        return sa.Table(self.name, metadata, *self.columns())


@dataclass(frozen=True)
class PersistedSchema:
    main: TableDefinition
    translations: TableDefinition
    slugs: TableDefinition
    revisions: TableDefinition

    @property
    def creation_order(self) -> List[TableDefinition]:
        return [self.main, self.translations, self.slugs, self.revisions]

    @property
    def drop_order(self) -> List[TableDefinition]:
        return [self.revisions, self.translations, self.slugs, self.main]

    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self.creation_order]


def build_persisted_schema(schema: ResourceSchema) -> PersistedSchema:
    singular, plural = schema.singular, schema.table
    main_columns = tuple(
        ColumnPlan(name=f.name, type=f.type, nullable=f.nullable, default=f.default)
        for f in schema.main_fields
    )
    # Translated values are always stored as nullable strings
    translation_columns = tuple(
        ColumnPlan(name=f.name, type=FieldType.STRING)
        for f in schema.translated_fields
    )
    return PersistedSchema(
        main=TableDefinition(plural, main_columns, default_table_fields, singular, plural),
        translations=TableDefinition(schema.translations_table, translation_columns,
                                     default_translations_table_fields, singular, plural),
        slugs=TableDefinition(schema.slugs_table, (), default_slugs_table_fields, singular, plural),
        revisions=TableDefinition(schema.revisions_table, (), default_revisions_table_fields, singular, plural),
    )


def materialize(connection: sa.engine.Connection, persisted: PersistedSchema,
                resource: Optional[str] = None) -> List[str]:
    """Create any of the four tables that do not exist yet.

    Returns the names of the tables created; an empty list means the schema
    was already materialized. Tables are created one by one, so a failure
    part-way leaves the earlier tables in place and a later call picks up the
    rest.
    """
    resource = resource or persisted.main.name
    inspector = sa.inspect(connection)
    missing = [t for t in persisted.creation_order if not inspector.has_table(t.name)]
    if not missing:
        log.info("Schema already materialized, skipping", extra={"resource": resource, "stage": BootStage.MATERIALIZE.value})
        return []

    op = Operations(MigrationContext.configure(connection))
    created = []
    for table in missing:
        op.create_table(table.name, *table.columns())
        created.append(table.name)
        log.info("Created table %s", table.name, extra={"resource": resource, "stage": BootStage.MATERIALIZE.value})
    return created


def rollback(connection: sa.engine.Connection, persisted: PersistedSchema,
             resource: Optional[str] = None) -> List[str]:
    """Drop the four tables, dependants first."""
    resource = resource or persisted.main.name
    inspector = sa.inspect(connection)
    op = Operations(MigrationContext.configure(connection))
    dropped = []
    for table in persisted.drop_order:
        if inspector.has_table(table.name):
            op.drop_table(table.name)
            dropped.append(table.name)
    log.info("Dropped tables %s", ", ".join(dropped) or "-", extra={"resource": resource, "stage": BootStage.ROLLBACK.value})
    return dropped
