"""Generic admin controller.

One class serves every module: behaviour comes from the module's controller
descriptor (setup methods, form and table overrides, additional props) and
from the repository built for the request.
"""
from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from fastapi import HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.routing import NoMatchFound
from cmskit.core.errors import OperationDisabled, RecordNotFound
from cmskit.modules.utils import to_snake_case
from cmskit.runtime.forms import Form, TableColumns

if TYPE_CHECKING:
    from cmskit.modules.module import AnonymousModule

log = logging.getLogger(__name__)

DEFAULT_INDEX_OPTIONS: Dict[str, bool] = {
    "create": True,
    "edit": True,
    "publish": True,
    "bulkPublish": True,
    "feature": False,
    "bulkFeature": False,
    "restore": True,
    "bulkRestore": True,
    "forceDelete": True,
    "bulkForceDelete": True,
    "delete": True,
    "bulkDelete": True,
    "reorder": False,
    "duplicate": False,
    "permalink": True,
    "editInModal": False,
    "skipCreateModal": False,
}

# Operation -> index option that must be on for it to run.
OPERATION_OPTIONS = {
    "create": "create",
    "store": "create",
    "edit": "edit",
    "update": "edit",
    "destroy": "delete",
    "bulkDelete": "bulkDelete",
    "publish": "publish",
    "bulkPublish": "bulkPublish",
    "feature": "feature",
    "bulkFeature": "bulkFeature",
    "restore": "restore",
    "bulkRestore": "bulkRestore",
    "forceDelete": "forceDelete",
    "bulkForceDelete": "bulkForceDelete",
    "reorder": "reorder",
    "duplicate": "duplicate",
}

ID_OPERATIONS = {"edit", "update", "destroy", "preview", "restoreRevision", "duplicate"}
PAYLOAD_OPERATIONS = {
    "store", "update", "preview", "reorder", "publish", "bulkPublish", "feature", "bulkFeature",
    "restore", "bulkRestore", "forceDelete", "bulkForceDelete", "bulkDelete",
}


def _ids(value: Any) -> List[int]:
    """Bulk payloads send ids as a list or a comma separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [v for v in value.split(",") if v.strip()]
    try:
        return [int(v) for v in value]
    except (TypeError, ValueError):
        raise HTTPException(status_code=422, detail="ids must be integers")


def _id(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=404, detail=f"Invalid id {value!r}")


def respond_with_success(message: str, **extra) -> Dict[str, Any]:
    return {"message": message, "variant": "success", **extra}


class ModuleController:
    feature_field = "featured"
    title_column_key = "title"

    def __init__(self, module: "AnonymousModule", db: Session, request: Optional[Request] = None, user: Any = None):
        self.module = module
        self.descriptor = module.descriptors.controller
        self.module_name = self.descriptor.module_name
        self.request = request
        self.user = user
        self.repository = module.repository(db)
        self.per_page = module.settings.per_page
        self.index_options = dict(DEFAULT_INDEX_OPTIONS)
        for key, value in self.descriptor.additional_props.items():
            setattr(self, key, value)
        self.set_up_controller()

    # Setup methods

    def set_up_controller(self) -> None:
        for method in self.descriptor.setup_methods:
            getattr(self, method)()

    def _set_option(self, option: str, value: bool) -> None:
        self.index_options[option] = value

    def disable_create(self): self._set_option("create", False)
    def disable_edit(self): self._set_option("edit", False)
    def disable_publish(self): self._set_option("publish", False)
    def disable_bulk_publish(self): self._set_option("bulkPublish", False)
    def disable_restore(self): self._set_option("restore", False)
    def disable_bulk_restore(self): self._set_option("bulkRestore", False)
    def disable_force_delete(self): self._set_option("forceDelete", False)
    def disable_bulk_force_delete(self): self._set_option("bulkForceDelete", False)
    def disable_delete(self): self._set_option("delete", False)
    def disable_bulk_delete(self): self._set_option("bulkDelete", False)
    def disable_permalink(self): self._set_option("permalink", False)
    def enable_reorder(self): self._set_option("reorder", True)
    def enable_feature(self): self._set_option("feature", True)
    def enable_bulk_feature(self): self._set_option("bulkFeature", True)
    def enable_duplicate(self): self._set_option("duplicate", True)
    def enable_edit_in_modal(self): self._set_option("editInModal", True)
    def enable_skip_create_modal(self): self._set_option("skipCreateModal", True)

    # Overridable definitions

    def get_form(self, item: Optional[Dict[str, Any]] = None) -> Form:
        if self.descriptor.form_fields is not None:
            return self.descriptor.form_fields
        return Form.for_schema(self.module.schema)

    def get_index_table_columns(self) -> TableColumns:
        if self.descriptor.table_columns is not None:
            return self.descriptor.table_columns
        return TableColumns.for_schema(self.module.schema, self.title_column_key)

    # Dispatch

    def call(self, operation: str, record_id: Any = None, payload: Optional[Dict[str, Any]] = None) -> Any:
        """Run a catalog operation, mapping cmskit errors onto HTTP errors."""
        args: List[Any] = []
        if operation in ID_OPERATIONS:
            args.append(_id(record_id))
        if operation in PAYLOAD_OPERATIONS:
            args.append(payload or {})
        try:
            option = OPERATION_OPTIONS.get(operation)
            if option and not self.index_options.get(option, False):
                raise OperationDisabled(operation)
            return getattr(self, to_snake_case(operation))(*args)
        except RecordNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        except OperationDisabled as e:
            raise HTTPException(status_code=403, detail=str(e))
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
        except IntegrityError as e:
            self.repository.db.rollback()
            log.warning("Rejected write: %s", e.orig, extra={"resource": self.module.name_plural, "stage": "-"})
            raise HTTPException(status_code=422, detail=str(e.orig))

    def _route(self, operation: str, **params) -> Optional[str]:
        if self.request is None:
            return None
        name = f"{self.module.settings.route_name_prefix}.{self.module.schema.slug}.{operation}"
        try:
            return str(self.request.app.url_path_for(name, **params))
        except NoMatchFound:
            return None

    def _edit_url(self, record_id: int) -> Optional[str]:
        return self._route("edit", **{self.module.schema.route_key: str(record_id)})

    def _user_id(self) -> Optional[int]:
        return getattr(self.user, "id", None)

    def _query(self, key: str, default: Any = None) -> Any:
        if self.request is None:
            return default
        return self.request.query_params.get(key, default)

    def _int_query(self, key: str, default: int) -> int:
        try:
            return max(int(self._query(key, default)), 1)
        except (TypeError, ValueError):
            return default

    def _title(self, item: Dict[str, Any]) -> Any:
        return item.get(self.title_column_key, item["id"])

    # CRUD

    def index(self) -> Dict[str, Any]:
        page = self._int_query("page", 1)
        per_page = self._int_query("per_page", self.per_page)
        items, total = self.repository.list(
            status=self._query("status", "all"),
            search=self._query("search"),
            title_column=self.title_column_key,
            sort=self._query("sort"),
            direction=self._query("direction", "asc"),
            by_position=self.index_options["reorder"],
            page=page,
            per_page=per_page,
        )
        for item in items:
            item["edit"] = self._edit_url(item["id"])
        return {
            "tableData": items,
            "tableColumns": self.get_index_table_columns().model_dump()["columns"],
            "tableMainFilters": self.repository.counts(),
            "page": page,
            "maxPage": max((total + per_page - 1) // per_page, 1),
            "total": total,
            "defaultMaxPerPage": per_page,
            "indexOptions": self.index_options,
            "moduleName": self.module_name,
        }

    def create(self) -> Dict[str, Any]:
        return {
            "form": self.get_form().model_dump()["fields"],
            "action": self._route("store"),
            "moduleName": self.module_name,
        }

    def store(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self.repository.model.validate(payload, creating=True)
        item = self.repository.create(data, user_id=self._user_id())
        return respond_with_success(
            f"{self.module.descriptors.model.name} created!",
            id=item["id"],
            item=item,
            redirect=self._edit_url(item["id"]),
        )

    def edit(self, record_id: int) -> Dict[str, Any]:
        item = self.repository.get(record_id)
        return {
            "item": item,
            "form": self.get_form(item).model_dump()["fields"],
            "revisions": self.repository.revision_list(record_id),
            "action": self._route("update", **{self.module.schema.route_key: str(record_id)}),
        }

    def update(self, record_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self.repository.model.validate(payload)
        item = self.repository.update(record_id, data, user_id=self._user_id())
        return respond_with_success("Content saved. All good!", item=item)

    def destroy(self, record_id: int) -> Dict[str, Any]:
        if not self.repository.delete([record_id]):
            raise RecordNotFound(self.repository.table.name, record_id)
        return respond_with_success(f"{self.module.descriptors.model.name} moved to trash!")

    # Catalog operations

    def reorder(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.repository.set_new_order(_ids(payload.get("ids")))
        return respond_with_success(f"{self.module.schema.title} order changed!")

    def publish(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        record_id = _id(payload.get("id"))
        published = not payload.get("active", False)
        if not self.repository.update_basic([record_id], {"published": published}):
            raise RecordNotFound(self.repository.table.name, record_id)
        state = "published" if published else "unpublished"
        return respond_with_success(f"{self.module.descriptors.model.name} {state}!")

    def bulk_publish(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        published = bool(payload.get("publish", True))
        count = self.repository.update_basic(_ids(payload.get("ids")), {"published": published})
        state = "published" if published else "unpublished"
        return respond_with_success(f"Items {state}!", count=count)

    def _feature_column(self) -> str:
        if not self.repository.model.has_column(self.feature_field):
            raise HTTPException(
                status_code=422,
                detail=f"{self.repository.table.name} has no '{self.feature_field}' column to feature",
            )
        return self.feature_field

    def feature(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        column = self._feature_column()
        record_id = _id(payload.get("id"))
        featured = not payload.get("active", False)
        if not self.repository.update_basic([record_id], {column: featured}):
            raise RecordNotFound(self.repository.table.name, record_id)
        state = "featured" if featured else "unfeatured"
        return respond_with_success(f"{self.module.descriptors.model.name} {state}!")

    def bulk_feature(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        column = self._feature_column()
        featured = bool(payload.get("feature", True))
        count = self.repository.update_basic(_ids(payload.get("ids")), {column: featured})
        state = "featured" if featured else "unfeatured"
        return respond_with_success(f"Items {state}!", count=count)

    def browser(self) -> Dict[str, Any]:
        items, _ = self.repository.list(
            status="all",
            search=self._query("search"),
            title_column=self.title_column_key,
            per_page=self._int_query("per_page", self.per_page),
            page=self._int_query("page", 1),
        )
        return {"data": [
            {
                "id": item["id"],
                "name": self._title(item),
                "edit": self._edit_url(item["id"]),
                "endpointType": self.module.descriptors.model.name,
            }
            for item in items
        ]}

    def tags(self) -> Dict[str, Any]:
        # No tagging capability is composed into anonymous modules.
        return {"results": []}

    def preview(self, record_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self.repository.model.validate(payload)
        return {"item": self.repository.preview(record_id, data)}

    def restore(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        record_id = _id(payload.get("id"))
        if not self.repository.restore([record_id]):
            raise RecordNotFound(self.repository.table.name, record_id)
        return respond_with_success(f"{self.module.descriptors.model.name} restored!")

    def bulk_restore(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        count = self.repository.restore(_ids(payload.get("ids")))
        return respond_with_success("Items restored!", count=count)

    def force_delete(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        record_id = _id(payload.get("id"))
        if not self.repository.force_delete([record_id]):
            raise RecordNotFound(self.repository.table.name, record_id)
        return respond_with_success(f"{self.module.descriptors.model.name} destroyed!")

    def bulk_force_delete(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        count = self.repository.force_delete(_ids(payload.get("ids")))
        return respond_with_success("Items destroyed!", count=count)

    def bulk_delete(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        count = self.repository.delete(_ids(payload.get("ids")))
        return respond_with_success("Items moved to trash!", count=count)

    def restore_revision(self, record_id: int) -> Dict[str, Any]:
        revision_id = self._query("revisionId")
        if revision_id is None:
            raise HTTPException(status_code=422, detail="revisionId query parameter is required")
        item = self.repository.revision_state(record_id, _id(revision_id))
        return {
            "item": item,
            "form": self.get_form(item).model_dump()["fields"],
            "restoring": True,
            "revisionId": _id(revision_id),
        }

    def duplicate(self, record_id: int) -> Dict[str, Any]:
        item = self.repository.duplicate(record_id)
        return respond_with_success(
            f"{self.module.descriptors.model.name} duplicated with success!",
            id=item["id"],
            redirect=self._edit_url(item["id"]),
        )
