from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
import sqlalchemy as sa
from cmskit.core.errors import InvalidSchema
from cmskit.core.workflow import BootStage
from cmskit.modules.descriptors import ModuleDescriptors, ModuleOptions, describe
from cmskit.modules.entity import PersistedSchema, build_persisted_schema
from cmskit.modules.schema import ResourceSchema

log = logging.getLogger(__name__)

# Framework columns plus payload keys handled outside the field list
RESERVED_FIELDS = {
    "id", "created_at", "updated_at", "deleted_at", "published", "position",
    "blocks", "languages", "translations",
}


@dataclass
class ModuleRegistry:
    """Resource schemas and their descriptors, keyed by plural name.

    Owned by the application (``app.state.registry``). Descriptors are built
    once per resource and reused for the life of the registry.
    """
    schemas: Dict[str, ResourceSchema] = field(default_factory=dict)
    descriptors: Dict[str, ModuleDescriptors] = field(default_factory=dict)
    persisted: Dict[str, PersistedSchema] = field(default_factory=dict)
    navigation: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    modules: Dict[str, Any] = field(default_factory=dict)
    metadata: sa.MetaData = field(default_factory=sa.MetaData)

    def register(self, name_plural: str, fields: Optional[Mapping[str, Mapping[str, Any]]] = None) -> ResourceSchema:
        schema = ResourceSchema.build(name_plural, fields)
        reserved = RESERVED_FIELDS.intersection(schema.fields)
        if reserved:
            raise InvalidSchema(
                f"{name_plural}: field names {sorted(reserved)} are managed by the framework"
            )

        existing = self.schemas.get(name_plural)
        if existing is not None:
            if existing.shape() != schema.shape():
                raise InvalidSchema(f"{name_plural} is already registered with a different field schema")
            log.info("Schema already registered", extra={"resource": name_plural, "stage": BootStage.REGISTER.value})
            return existing

        self.schemas[name_plural] = schema
        log.info("Registered schema with %d fields", len(schema.fields),
                 extra={"resource": name_plural, "stage": BootStage.REGISTER.value})
        return schema

    def get(self, name_plural: str) -> ResourceSchema:
        return self.schemas[name_plural]

    def describe(self, schema: ResourceSchema, options: Optional[ModuleOptions] = None) -> ModuleDescriptors:
        cached = self.descriptors.get(schema.name_plural)
        if cached is not None:
            return cached
        descriptors = describe(schema, options)
        self.descriptors[schema.name_plural] = descriptors
        log.info("Described %s", descriptors.model.name, extra={"resource": schema.name_plural, "stage": BootStage.DESCRIBE.value})
        return descriptors

    def persisted_schema(self, schema: ResourceSchema) -> PersistedSchema:
        if schema.name_plural not in self.persisted:
            self.persisted[schema.name_plural] = build_persisted_schema(schema)
        return self.persisted[schema.name_plural]

    def add_navigation(self, schema: ResourceSchema) -> None:
        self.navigation[schema.name_plural] = {"title": schema.title, "module": True}
        log.info("Added navigation entry", extra={"resource": schema.name_plural, "stage": BootStage.NAVIGATION.value})
