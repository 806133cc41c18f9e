"""Anonymous modules: admin CRUD for a resource declared as a field list.

    module = (
        AnonymousModule.make("events", app)
        .with_fields({"title": {"translatable": True}, "startsAt": {"type": "dateTime"}})
        .with_setup_methods(["enable_reorder"])
        .boot()
    )

``boot`` registers the schema, builds the descriptors, creates the tables if
they are missing, binds the admin routes and adds a navigation entry. The
model, repository and controller are the generic runtime types configured by
the module's descriptors; no class is created per resource.
"""
import inspect
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Sequence
from fastapi import Body, Depends, FastAPI, Request
from sqlalchemy.orm import Session
from cmskit.api.deps import AdminUser, require_admin_user
from cmskit.core.errors import InvalidSchema
from cmskit.core.workflow import BootStage
from cmskit.db.session import get_db
from cmskit.modules.descriptors import BLOCKS, REVISIONS, TRANSLATIONS, ModuleDescriptors, ModuleOptions
from cmskit.modules.entity import PersistedSchema, materialize, rollback
from cmskit.modules.routes import RouteSpec, RouteTable, bind_routes, build_route_table
from cmskit.modules.schema import ResourceSchema
from cmskit.runtime.controller import ModuleController
from cmskit.runtime.forms import Form, TableColumns
from cmskit.runtime.handlers import BlockHandler, RevisionHandler, TranslationHandler
from cmskit.runtime.model import ModuleModel
from cmskit.runtime.repository import ModuleRepository

log = logging.getLogger(__name__)

BODY_METHODS = {"POST", "PUT"}


class AnonymousModule:
    def __init__(self, name_plural: str, app: FastAPI):
        self.name_plural = name_plural
        self.app = app
        self.fields: Dict[str, Dict[str, Any]] = {"title": {}}
        self.setup_methods: Sequence[str] = ()
        self.form_fields: Optional[Form] = None
        self.table_columns: Optional[TableColumns] = None
        self.additional_props: Dict[str, Any] = {}
        self.route_options: Optional[Dict[str, Any]] = None

        self.schema: Optional[ResourceSchema] = None
        self.descriptors: Optional[ModuleDescriptors] = None
        self.persisted: Optional[PersistedSchema] = None
        self.model: Optional[ModuleModel] = None
        self.route_table: Optional[RouteTable] = None

    @classmethod
    def make(cls, name_plural: str, app: FastAPI) -> "AnonymousModule":
        return cls(name_plural, app)

    # Builders

    def with_fields(self, fields: Mapping[str, Mapping[str, Any]]) -> "AnonymousModule":
        """Field name -> options.

        Options: ``type`` (string|boolean|dateTime, default string),
        ``default`` (None for string/dateTime, False for boolean),
        ``nullable`` (default True), ``translatable`` (default False).
        """
        self.fields = {name: dict(options or {}) for name, options in fields.items()}
        return self

    def with_table_columns(self, table_columns: TableColumns) -> "AnonymousModule":
        self.table_columns = table_columns
        return self

    def with_form_fields(self, form_fields: Form) -> "AnonymousModule":
        self.form_fields = form_fields
        return self

    def with_setup_methods(self, setup_methods: Sequence[str]) -> "AnonymousModule":
        self.setup_methods = list(setup_methods)
        return self

    def with_additional_prop(self, prop: str, value: Any) -> "AnonymousModule":
        self.additional_props[prop] = value
        return self

    def with_route_options(self, only: Optional[Sequence[str]] = None,
                           exclude: Optional[Sequence[str]] = None) -> "AnonymousModule":
        """Narrow the catalog routes with ``only`` or ``exclude``."""
        self.route_options = {}
        if only is not None:
            self.route_options["only"] = list(only)
        if exclude is not None:
            self.route_options["except"] = list(exclude)
        return self

    # Boot

    @property
    def settings(self):
        return self.app.state.settings

    @property
    def registry(self):
        return self.app.state.registry

    def _log(self, message: str, stage: BootStage, *args) -> None:
        log.info(message, *args, extra={"resource": self.name_plural, "stage": stage.value})

    def boot(self) -> "AnonymousModule":
        unknown = [m for m in self.setup_methods if not callable(getattr(ModuleController, m, None))]
        if unknown:
            raise InvalidSchema(f"{self.name_plural}: unknown setup methods {unknown}")

        self.schema = self.registry.register(self.name_plural, self.fields)

        self.descriptors = self.registry.describe(self.schema, ModuleOptions(
            setup_methods=tuple(self.setup_methods),
            form_fields=self.form_fields,
            table_columns=self.table_columns,
            additional_props=dict(self.additional_props),
        ))

        self.persisted = self.registry.persisted_schema(self.schema)
        with self.app.state.engine.begin() as conn:
            created = materialize(conn, self.persisted, resource=self.name_plural)
        self._log("Materialized %d tables", BootStage.MATERIALIZE, len(created))

        self.model = ModuleModel(
            self.schema,
            self.descriptors.model,
            self.descriptors.translation_model,
            self.persisted,
            self.registry.metadata,
        )

        self.route_table = build_route_table(
            self.schema,
            self.settings.admin_app_path,
            self.route_options,
            name_prefix=self.settings.route_name_prefix,
            guard=self.settings.auth_guard,
        )
        bind_routes(self.app.router, self.route_table, self._endpoint, tags=[self.schema.title])
        self.app.openapi_schema = None
        self._log("Bound %d routes", BootStage.BIND_ROUTES, len(self.route_table))

        self.registry.add_navigation(self.schema)
        self.registry.modules[self.name_plural] = self
        self._log("Module booted", BootStage.DONE)
        return self

    def rollback(self) -> None:
        """Drop the module's tables."""
        if self.persisted is None:
            raise RuntimeError(f"{self.name_plural} has not been booted")
        with self.app.state.engine.begin() as conn:
            rollback(conn, self.persisted, resource=self.name_plural)

    # Runtime accessors

    def get_model_name(self) -> str:
        return self.descriptors.model.name

    def repository(self, db: Session) -> ModuleRepository:
        capabilities = self.descriptors.repository.capabilities
        return ModuleRepository(
            self.model,
            db,
            translations=TranslationHandler(self.model, self.settings.locales, self.settings.locale)
            if TRANSLATIONS in capabilities else None,
            blocks=BlockHandler(self.model.name) if BLOCKS in capabilities else None,
            revisions=RevisionHandler(self.model) if REVISIONS in capabilities else None,
            locale=self.settings.locale,
        )

    def controller(self, request: Optional[Request], db: Session, user: Any = None) -> ModuleController:
        return ModuleController(self, db, request=request, user=user)

    def _endpoint(self, route: RouteSpec) -> Callable[..., Any]:
        """Endpoint bound to this module for one route.

        The record key is declared as a path parameter named after the
        resource's singular, so the signature is assembled per route.
        """
        operation, param = route.operation, route.param

        def endpoint(**params):
            request = params["request"]
            controller = self.controller(request, params["db"], user=params["user"])
            record_id = params.get(param) if param else None
            return controller.call(operation, record_id, params.get("payload"))

        keyword = inspect.Parameter.KEYWORD_ONLY
        parameters = [inspect.Parameter("request", keyword, annotation=Request)]
        if param:
            parameters.append(inspect.Parameter(param, keyword, annotation=str))
        if route.method in BODY_METHODS:
            parameters.append(inspect.Parameter(
                "payload", keyword, default=Body(None), annotation=Optional[Dict[str, Any]]
            ))
        parameters.append(inspect.Parameter("db", keyword, default=Depends(get_db), annotation=Session))
        parameters.append(inspect.Parameter(
            "user", keyword, default=Depends(require_admin_user), annotation=AdminUser
        ))
        endpoint.__signature__ = inspect.Signature(parameters)
        endpoint.__name__ = f"{self.schema.route_key}_{operation}"
        return endpoint
