"""End-to-end tests: boot an anonymous module and drive its admin routes."""
import pytest
import sqlalchemy as sa
from fastapi.testclient import TestClient
from openapi_spec_validator import validate
from cmskit.api.deps import require_admin_user
from cmskit.core.errors import InvalidSchema
from cmskit.modules.module import AnonymousModule

EVENT_FIELDS = {
    "title": {"translatable": True},
    "startsAt": {"type": "dateTime"},
    "isFeatured": {"type": "boolean"},
}


@pytest.fixture
def events(app):
    return (
        AnonymousModule.make("events", app)
        .with_fields(EVENT_FIELDS)
        .with_setup_methods(["enable_reorder", "enable_feature", "enable_bulk_feature", "enable_duplicate"])
        .with_additional_prop("feature_field", "isFeatured")
        .boot()
    )


def _store(client, title="Launch", **extra):
    payload = {"title": title, **extra}
    response = client.post("/admin/events/store", json=payload)
    assert response.status_code == 200, response.text
    return response.json()


def test_boot_creates_tables_routes_and_navigation(app, engine, events):
    tables = set(sa.inspect(engine).get_table_names())
    assert {"events", "event_translations", "event_slugs", "event_revisions"} <= tables

    names = {getattr(r, "name", None) for r in app.router.routes}
    assert "twill.events.index" in names
    assert "twill.events.publish" in names
    assert app.url_path_for("twill.events.index") == "/admin/events/"
    assert app.url_path_for("twill.events.edit", event="3") == "/admin/events/3/edit"

    assert app.state.registry.navigation["events"] == {"title": "Events", "module": True}
    assert app.state.registry.modules["events"] is events
    assert events.get_model_name() == "Event"


def test_boot_twice_is_idempotent(app, events):
    again = AnonymousModule.make("events", app).with_fields(EVENT_FIELDS).boot()
    assert again.schema is events.schema
    names = [getattr(r, "name", None) for r in app.router.routes if getattr(r, "name", "").startswith("twill.events.")]
    assert len(names) == 21
    assert len(names) == len(set(names))


def test_boot_rejects_a_conflicting_redefinition(app, events):
    with pytest.raises(InvalidSchema):
        AnonymousModule.make("events", app).with_fields({"name": {}}).boot()


def test_boot_rejects_unknown_setup_method(app):
    with pytest.raises(InvalidSchema):
        AnonymousModule.make("events", app).with_setup_methods(["enable_everything"]).boot()
    assert "events" not in app.state.registry.schemas


def test_store_and_edit(client, events):
    body = _store(
        client,
        title={"en": "Launch", "fr": "Lancement"},
        startsAt="2026-05-01T10:00:00",
        blocks=[{"type": "text", "content": {"body": "Doors open at ten"}}],
        languages=[{"value": "en", "published": True}, {"value": "fr", "published": False}],
    )
    assert body["message"] == "Event created!"
    assert body["variant"] == "success"
    assert body["redirect"] == f"/admin/events/{body['id']}/edit"

    item = body["item"]
    assert item["title"] == "Launch"
    assert item["translations"] == {"title": {"en": "Launch", "fr": "Lancement"}}
    assert item["languages"] == [{"value": "en", "published": True}, {"value": "fr", "published": False}]
    assert item["startsAt"] == "2026-05-01T10:00:00"
    assert item["published"] is False
    assert item["isFeatured"] is False
    assert [(b["type"], b["position"], b["content"]) for b in item["blocks"]] == [
        ("text", 1, {"body": "Doors open at ten"}),
    ]

    response = client.get(f"/admin/events/{body['id']}/edit")
    assert response.status_code == 200
    edit = response.json()
    assert edit["item"]["title"] == "Launch"
    assert edit["action"] == f"/admin/events/{body['id']}"
    assert [f["name"] for f in edit["form"]] == ["title", "startsAt", "isFeatured"]
    assert len(edit["revisions"]) == 1


def test_create_returns_form(client, events):
    response = client.post("/admin/events/create")
    assert response.status_code == 200
    assert response.json()["action"] == "/admin/events/store"
    assert response.json()["moduleName"] == "events"


def test_update_keeps_other_locales(client, events):
    created = _store(client, title={"en": "Launch", "fr": "Lancement"})
    response = client.put(f"/admin/events/{created['id']}", json={"title": "Launch party"})
    assert response.status_code == 200
    assert response.json()["message"] == "Content saved. All good!"

    item = response.json()["item"]
    assert item["title"] == "Launch party"
    assert item["translations"]["title"] == {"en": "Launch party", "fr": "Lancement"}

    revisions = client.get(f"/admin/events/{created['id']}/edit").json()["revisions"]
    assert len(revisions) == 2


def test_index(client, events):
    _store(client, title="Launch")
    _store(client, title="Closing")

    response = client.get("/admin/events/")
    assert response.status_code == 200
    index = response.json()
    assert index["total"] == 2
    assert index["moduleName"] == "events"
    assert index["tableMainFilters"] == {"all": 2, "published": 0, "draft": 2, "trash": 0}
    assert index["indexOptions"]["reorder"] is True
    assert index["indexOptions"]["feature"] is True
    assert index["tableColumns"][0]["field"] == "title"
    assert all(row["edit"].endswith("/edit") for row in index["tableData"])

    found = client.get("/admin/events/", params={"search": "clos"}).json()
    assert [row["title"] for row in found["tableData"]] == ["Closing"]

    paged = client.get("/admin/events/", params={"per_page": 1, "page": 2}).json()
    assert paged["maxPage"] == 2
    assert len(paged["tableData"]) == 1


def test_publish_and_bulk_publish(client, events):
    first = _store(client)["id"]
    second = _store(client, title="Closing")["id"]

    response = client.put("/admin/events/publish", json={"id": first, "active": False})
    assert response.json()["message"] == "Event published!"
    published = client.get("/admin/events/", params={"status": "published"}).json()
    assert [row["id"] for row in published["tableData"]] == [first]

    response = client.put("/admin/events/publish", json={"id": first, "active": True})
    assert response.json()["message"] == "Event unpublished!"

    response = client.post("/admin/events/bulkPublish", json={"ids": [first, second], "publish": True})
    assert response.json()["count"] == 2
    assert client.get("/admin/events/").json()["tableMainFilters"]["published"] == 2


def test_feature_writes_feature_field(client, events):
    record_id = _store(client)["id"]

    response = client.put("/admin/events/feature", json={"id": record_id, "active": False})
    assert response.status_code == 200
    assert response.json()["message"] == "Event featured!"
    assert client.get(f"/admin/events/{record_id}/edit").json()["item"]["isFeatured"] is True

    response = client.post("/admin/events/bulkFeature", json={"ids": [record_id], "feature": False})
    assert response.json()["count"] == 1
    assert client.get(f"/admin/events/{record_id}/edit").json()["item"]["isFeatured"] is False


def test_reorder_sets_positions(client, events):
    ids = [_store(client, title=t)["id"] for t in ("A", "B", "C")]
    new_order = [ids[2], ids[0], ids[1]]

    response = client.post("/admin/events/reorder", json={"ids": new_order})
    assert response.status_code == 200
    assert response.json()["message"] == "Events order changed!"
    assert [row["id"] for row in client.get("/admin/events/").json()["tableData"]] == new_order


def test_trash_restore_and_force_delete(client, events):
    record_id = _store(client)["id"]
    other_id = _store(client, title="Closing")["id"]

    response = client.delete(f"/admin/events/{record_id}")
    assert response.json()["message"] == "Event moved to trash!"
    assert client.get(f"/admin/events/{record_id}/edit").status_code == 404
    assert client.get("/admin/events/", params={"status": "trash"}).json()["total"] == 1

    response = client.put("/admin/events/forceDelete", json={"id": other_id})
    assert response.status_code == 404, "Only trashed records can be destroyed"

    response = client.put("/admin/events/restore", json={"id": record_id})
    assert response.json()["message"] == "Event restored!"
    assert client.get(f"/admin/events/{record_id}/edit").status_code == 200

    response = client.post("/admin/events/bulkDelete", json={"ids": f"{record_id},{other_id}"})
    assert response.json()["count"] == 2

    response = client.post("/admin/events/bulkRestore", json={"ids": [other_id]})
    assert response.json()["count"] == 1

    response = client.put("/admin/events/forceDelete", json={"id": record_id})
    assert response.json()["message"] == "Event destroyed!"
    assert client.get("/admin/events/", params={"status": "trash"}).json()["total"] == 0

    client.delete(f"/admin/events/{other_id}")
    response = client.post("/admin/events/bulkForceDelete", json={"ids": [other_id]})
    assert response.json()["count"] == 1
    assert client.get("/admin/events/").json()["tableMainFilters"]["all"] == 0


def test_duplicate_copies_translations_and_blocks(client, events):
    source = _store(
        client,
        title={"en": "Launch", "fr": "Lancement"},
        blocks=[{"type": "quote", "content": {"text": "Hello"}}],
    )
    client.put("/admin/events/publish", json={"id": source["id"], "active": False})

    response = client.put(f"/admin/events/duplicate/{source['id']}")
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Event duplicated with success!"
    assert body["id"] != source["id"]

    copy = client.get(f"/admin/events/{body['id']}/edit").json()["item"]
    assert copy["published"] is False
    assert copy["translations"]["title"] == {"en": "Launch", "fr": "Lancement"}
    assert [b["content"] for b in copy["blocks"]] == [{"text": "Hello"}]


def test_preview_does_not_save(client, events):
    record_id = _store(client)["id"]
    response = client.put(f"/admin/events/preview/{record_id}", json={"title": "Draft title"})
    assert response.status_code == 200
    assert response.json()["item"]["title"] == "Draft title"
    assert client.get(f"/admin/events/{record_id}/edit").json()["item"]["title"] == "Launch"


def test_restore_revision(client, events):
    record_id = _store(client, title="Launch")["id"]
    client.put(f"/admin/events/{record_id}", json={"title": "Renamed"})
    revisions = client.get(f"/admin/events/{record_id}/edit").json()["revisions"]
    first_revision = revisions[-1]["id"]

    response = client.get(f"/admin/events/restoreRevision/{record_id}", params={"revisionId": first_revision})
    assert response.status_code == 200
    body = response.json()
    assert body["restoring"] is True
    assert body["item"]["title"] == "Launch"
    assert client.get(f"/admin/events/{record_id}/edit").json()["item"]["title"] == "Renamed"

    assert client.get(f"/admin/events/restoreRevision/{record_id}").status_code == 422
    assert client.get(f"/admin/events/restoreRevision/{record_id}", params={"revisionId": 999}).status_code == 404


def test_browser_and_tags(client, events):
    record_id = _store(client, title="Launch")["id"]

    data = client.get("/admin/events/browser").json()["data"]
    assert data == [{
        "id": record_id,
        "name": "Launch",
        "edit": f"/admin/events/{record_id}/edit",
        "endpointType": "Event",
    }]
    assert client.get("/admin/events/tags").json() == {"results": []}


def test_errors_map_to_http_status(client, events):
    assert client.get("/admin/events/99/edit").status_code == 404
    assert client.get("/admin/events/abc/edit").status_code == 404
    assert client.put("/admin/events/publish", json={"id": 99, "active": False}).status_code == 404
    assert client.post("/admin/events/store", json={"startsAt": "not a date"}).status_code == 422
    assert client.post("/admin/events/bulkDelete", json={"ids": ["x"]}).status_code == 422


def test_disabled_operations_answer_403(app, client):
    AnonymousModule.make("articles", app).with_setup_methods(["disable_create"]).boot()

    assert client.post("/admin/articles/store", json={"title": "Hello"}).status_code == 403
    assert client.put("/admin/articles/feature", json={"id": 1}).status_code == 403, "feature is off by default"
    assert client.put("/admin/articles/duplicate/1").status_code == 403
    index = client.get("/admin/articles/").json()
    assert index["indexOptions"]["create"] is False


def test_feature_without_column_is_rejected(app, client):
    AnonymousModule.make("articles", app).with_setup_methods(["enable_feature"]).boot()
    client.post("/admin/articles/store", json={"title": "Hello"})
    assert client.put("/admin/articles/feature", json={"id": 1}).status_code == 422


def test_route_options_narrow_catalog(app, client):
    AnonymousModule.make("articles", app).with_route_options(only=["publish"]).boot()
    names = {getattr(r, "name", None) for r in app.router.routes}
    assert "twill.articles.publish" in names
    assert "twill.articles.tags" not in names
    assert client.get("/admin/articles/tags").status_code in (404, 405)


def test_routes_require_admin_user(app):
    AnonymousModule.make("events", app).boot()
    app.dependency_overrides.pop(require_admin_user)
    client = TestClient(app)
    response = client.get("/admin/events/")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_bearer_token_is_accepted(app, settings):
    AnonymousModule.make("events", app).boot()
    app.dependency_overrides.pop(require_admin_user)
    app.state.settings = settings.model_copy(update={"admin_api_token": "s3cret"})
    client = TestClient(app)
    assert client.get("/admin/events/", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get("/admin/events/", headers={"Authorization": "Bearer s3cret"}).status_code == 200


def test_rollback_drops_tables(engine, events):
    events.rollback()
    tables = set(sa.inspect(engine).get_table_names())
    assert not tables & {"events", "event_translations", "event_slugs", "event_revisions"}
    assert "blocks" in tables


def test_openapi_document_is_valid(client, events):
    """Bound module routes produce a valid OpenAPI document."""
    AnonymousModule.make("blog.posts", client.app).boot()
    spec = client.get("/openapi.json").json()
    validate(spec)
    assert "/admin/events/{event}/edit" in spec["paths"]
    assert "/admin/blog/posts/{post}" in spec["paths"]


def test_required_fields_are_validated(app, client):
    """Non-nullable fields without a default must be sent on store and never set to null."""
    AnonymousModule.make("notes", app).with_fields({
        "title": {"nullable": False},
        "pinned": {"type": "boolean", "nullable": False},
        "summary": {},
    }).boot()

    assert client.post("/admin/notes/store", json={}).status_code == 422
    assert client.post("/admin/notes/store", json={"title": None}).status_code == 422

    stored = client.post("/admin/notes/store", json={"title": "Groceries"})
    assert stored.status_code == 200, "Fields with a default may be omitted"
    record_id = stored.json()["id"]
    assert stored.json()["item"]["pinned"] is False

    assert client.put(f"/admin/notes/{record_id}", json={"title": None}).status_code == 422
    assert client.put(f"/admin/notes/{record_id}", json={"summary": "Milk"}).status_code == 200
    assert client.get(f"/admin/notes/{record_id}/edit").json()["item"]["title"] == "Groceries"


def test_payload_keys_cannot_be_field_names(app):
    with pytest.raises(InvalidSchema):
        AnonymousModule.make("pages", app).with_fields({"title": {}, "languages": {}}).boot()
    assert "pages" not in app.state.registry.schemas
