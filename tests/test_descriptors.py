"""Tests for the descriptors that configure the generic model, repository and controller."""
from cmskit.modules.descriptors import BLOCKS, REVISIONS, TRANSLATIONS, ModuleOptions, describe
from cmskit.modules.schema import ResourceSchema
from cmskit.modules.utils import module_name_from_controller, pluralize, singularize, to_snake_case
from cmskit.runtime.forms import Form, TableColumns


def _events():
    return ResourceSchema.build("events", {
        "title": {"translatable": True},
        "startsAt": {"type": "dateTime"},
        "isFeatured": {"type": "boolean"},
    })


def test_model_descriptor():
    model = describe(_events()).model
    assert model.name == "Event"
    assert model.table == "events"
    assert model.fillable == ["startsAt", "isFeatured"]
    assert model.translated_attributes == ["title"]
    assert model.dates == ["startsAt"]
    assert model.translation_foreign_key == "event_id"
    assert model.translation_model == "EventTranslation"
    assert model.capabilities == {TRANSLATIONS, BLOCKS}


def test_translation_model_descriptor():
    translation = describe(_events()).translation_model
    assert translation.name == "EventTranslation"
    assert translation.table == "event_translations"
    assert translation.fillable == ["title", "active"]
    assert translation.is_translation_model is True


def test_repository_and_controller_descriptors():
    options = ModuleOptions(setup_methods=("enable_reorder",), additional_props={"feature_field": "isFeatured"})
    descriptors = describe(_events(), options)

    assert descriptors.repository.name == "EventRepository"
    assert descriptors.repository.capabilities == {TRANSLATIONS, BLOCKS, REVISIONS}
    assert descriptors.controller.name == "EventController"
    assert descriptors.controller.module_name == "events"
    assert descriptors.controller.setup_methods == ["enable_reorder"]
    assert descriptors.controller.additional_props == {"feature_field": "isFeatured"}
    assert descriptors.controller.form_fields is None
    assert descriptors.controller.table_columns is None


def test_default_form_and_columns():
    schema = _events()
    form = Form.for_schema(schema)
    assert [(f.name, f.type, f.translated) for f in form.fields] == [
        ("title", "text", True),
        ("startsAt", "date_picker", False),
        ("isFeatured", "checkbox", False),
    ]
    assert form.fields[2].default is False

    columns = TableColumns.for_schema(schema)
    assert columns.columns[0].field == "title", "The title column leads the index table"
    assert columns.columns[0].sortable is True
    assert [c.field for c in columns.columns] == ["title", "startsAt", "isFeatured"]


def test_naming_helpers():
    assert module_name_from_controller("EventController") == "events"
    assert module_name_from_controller("CategoryController") == "categories"
    assert pluralize("box") == "boxes"
    assert singularize("boxes") == "box"
    assert singularize("status") == "status"
    assert to_snake_case("bulkForceDelete") == "bulk_force_delete"
    assert to_snake_case("restoreRevision") == "restore_revision"
