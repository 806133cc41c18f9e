"""Tests for the persisted schema: column layout, materialize and rollback."""
import sqlalchemy as sa
from cmskit.db.session import create_db_engine
from cmskit.modules.entity import ColumnPlan, build_persisted_schema, materialize, rollback
from cmskit.modules.schema import FieldType, ResourceSchema


def _names(columns):
    return [c.name for c in columns if isinstance(c, sa.Column)]


def test_default_events_layout():
    """A module with the default title field gets four tables named after the resource."""
    persisted = build_persisted_schema(ResourceSchema.build("events"))

    assert persisted.table_names == ["events", "event_translations", "event_slugs", "event_revisions"]
    assert _names(persisted.main.columns()) == [
        "id", "created_at", "updated_at", "deleted_at", "published", "position", "title",
    ]
    translation_columns = _names(persisted.translations.columns())
    assert translation_columns == [
        "id", "created_at", "updated_at", "deleted_at", "locale", "active", "event_id",
    ], "No schema field is translatable, so the translations table only has framework columns"
    assert "slug" in _names(persisted.slugs.columns())
    assert _names(persisted.revisions.columns()) == [
        "id", "created_at", "updated_at", "event_id", "user_id", "payload",
    ]


def test_translated_fields_move_to_translations_table():
    schema = ResourceSchema.build("events", {
        "title": {"translatable": True},
        "startsAt": {"type": "dateTime", "nullable": False},
    })
    persisted = build_persisted_schema(schema)

    main = {c.name: c for c in persisted.main.columns() if isinstance(c, sa.Column)}
    assert "title" not in main
    assert isinstance(main["startsAt"].type, sa.DateTime)
    assert main["startsAt"].nullable is False

    translations = {c.name: c for c in persisted.translations.columns() if isinstance(c, sa.Column)}
    assert isinstance(translations["title"].type, sa.String)
    assert translations["title"].nullable is True
    fk = next(iter(translations["event_id"].foreign_keys))
    assert fk.target_fullname == "events.id"
    assert fk.ondelete == "CASCADE"
    assert any(isinstance(c, sa.UniqueConstraint) for c in persisted.translations.columns())


def test_columns_are_fresh_each_call():
    persisted = build_persisted_schema(ResourceSchema.build("events"))
    first, second = persisted.main.columns(), persisted.main.columns()
    assert all(a is not b for a, b in zip(first, second))


def test_column_plan_types():
    assert isinstance(ColumnPlan("a", FieldType.STRING).to_column().type, sa.String)
    assert ColumnPlan("a", FieldType.STRING).to_column().type.length == 255
    assert isinstance(ColumnPlan("b", FieldType.BOOLEAN).to_column().type, sa.Boolean)
    assert ColumnPlan("c", FieldType.STRING, default="x").to_column().server_default is not None
    assert ColumnPlan("d", FieldType.DATETIME).to_column().server_default is None


def test_materialize_creates_tables_once():
    """A second materialize finds every table and creates nothing."""
    engine = create_db_engine("sqlite://")
    persisted = build_persisted_schema(ResourceSchema.build("events", {
        "title": {"translatable": True},
        "isFeatured": {"type": "boolean"},
    }))

    with engine.begin() as conn:
        created = materialize(conn, persisted)
    assert created == persisted.table_names
    assert set(persisted.table_names) <= set(sa.inspect(engine).get_table_names())

    with engine.begin() as conn:
        assert materialize(conn, persisted) == []


def test_materialize_picks_up_missing_tables():
    engine = create_db_engine("sqlite://")
    persisted = build_persisted_schema(ResourceSchema.build("events"))
    with engine.begin() as conn:
        materialize(conn, persisted)
        conn.execute(sa.text("DROP TABLE event_revisions"))

    with engine.begin() as conn:
        assert materialize(conn, persisted) == ["event_revisions"]


def test_boolean_field_default_applies_on_insert():
    engine = create_db_engine("sqlite://")
    persisted = build_persisted_schema(ResourceSchema.build("events", {
        "title": {},
        "isFeatured": {"type": "boolean"},
    }))
    with engine.begin() as conn:
        materialize(conn, persisted)
        conn.execute(sa.text("INSERT INTO events (title) VALUES ('Launch')"))
        row = conn.execute(sa.text("SELECT published, isFeatured FROM events")).one()
    assert not row.published
    assert not row.isFeatured


def test_rollback_drops_all_tables():
    engine = create_db_engine("sqlite://")
    persisted = build_persisted_schema(ResourceSchema.build("events"))
    with engine.begin() as conn:
        materialize(conn, persisted)
    with engine.begin() as conn:
        dropped = rollback(conn, persisted)

    assert dropped == ["event_revisions", "event_translations", "event_slugs", "events"]
    assert sa.inspect(engine).get_table_names() == []


def test_to_table_reuses_metadata_entry():
    persisted = build_persisted_schema(ResourceSchema.build("events"))
    metadata = sa.MetaData()
    assert persisted.main.to_table(metadata) is persisted.main.to_table(metadata)
