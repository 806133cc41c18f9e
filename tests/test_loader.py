"""Tests for booting modules from a YAML modules file."""
import tempfile
from pathlib import Path
import pytest
import yaml
from cmskit.core.errors import InvalidSchema
from cmskit.modules.loader import boot_modules, load_modules_file

MODULES = {
    "modules": {
        "events": {
            "fields": {
                "title": {"translatable": True},
                "startsAt": {"type": "dateTime"},
                "isFeatured": {"type": "boolean"},
            },
            "setup_methods": ["enable_feature"],
            "additional_props": {"feature_field": "isFeatured"},
            "routes": {"except": ["tags", "browser"]},
        },
        "articles": None,
    }
}


def _write(data) -> Path:
    handle = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False, encoding="utf-8")
    with handle:
        yaml.safe_dump(data, handle, sort_keys=False)
    return Path(handle.name)


def test_load_modules_file():
    path = _write(MODULES)
    try:
        modules = load_modules_file(path)
    finally:
        path.unlink()
    assert list(modules) == ["events", "articles"]
    assert modules["articles"] == {}
    assert modules["events"]["routes"] == {"except": ["tags", "browser"]}


@pytest.mark.parametrize("data", [{"modules": ["events"]}, {"modules": {"events": "title"}}, ["events"]])
def test_load_modules_file_rejects_bad_shapes(data):
    path = _write(data)
    try:
        with pytest.raises(InvalidSchema):
            load_modules_file(path)
    finally:
        path.unlink()


def test_boot_modules(app, client):
    path = _write(MODULES)
    try:
        booted = boot_modules(app, load_modules_file(path))
    finally:
        path.unlink()

    assert [m.name_plural for m in booted] == ["events", "articles"]
    events = booted[0]
    assert events.descriptors.model.translated_attributes == ["title"]
    assert "twill.events.tags" not in events.route_table.names()
    assert len(events.route_table) == 19
    assert len(booted[1].route_table) == 21

    record = client.post("/admin/events/store", json={"title": "Launch"}).json()
    response = client.put("/admin/events/feature", json={"id": record["id"]})
    assert response.status_code == 200
    assert response.json()["message"] == "Event featured!"
