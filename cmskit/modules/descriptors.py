"""Capability bundles read by the generic runtime types."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence
from cmskit.modules.schema import ResourceSchema
from cmskit.modules.utils import module_name_from_controller
from cmskit.runtime.forms import Form, TableColumns

TRANSLATIONS = "translations"
BLOCKS = "blocks"
REVISIONS = "revisions"


@dataclass(frozen=True)
class ModelDescriptor:
    name: str
    table: str
    fillable: List[str]
    translated_attributes: List[str]
    dates: List[str]
    translation_foreign_key: str
    translation_model: str
    capabilities: FrozenSet[str] = frozenset({TRANSLATIONS, BLOCKS})


@dataclass(frozen=True)
class TranslationModelDescriptor:
    name: str
    table: str
    fillable: List[str]
    is_translation_model: bool = True


@dataclass(frozen=True)
class RepositoryDescriptor:
    name: str
    model: ModelDescriptor
    capabilities: FrozenSet[str] = frozenset({TRANSLATIONS, BLOCKS, REVISIONS})


@dataclass(frozen=True)
class ControllerDescriptor:
    name: str
    module_name: str
    setup_methods: List[str] = field(default_factory=list)
    form_fields: Optional[Form] = None
    table_columns: Optional[TableColumns] = None
    additional_props: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ModuleOptions:
    """Caller overrides collected by AnonymousModule before boot."""
    setup_methods: Sequence[str] = ()
    form_fields: Optional[Form] = None
    table_columns: Optional[TableColumns] = None
    additional_props: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ModuleDescriptors:
    model: ModelDescriptor
    translation_model: TranslationModelDescriptor
    repository: RepositoryDescriptor
    controller: ControllerDescriptor


def describe(schema: ResourceSchema, options: Optional[ModuleOptions] = None) -> ModuleDescriptors:
    options = options or ModuleOptions()
    model_name = schema.model_name
    translated = [f.name for f in schema.translated_fields]

    translation_model = TranslationModelDescriptor(
        name=f"{model_name}Translation",
        table=schema.translations_table,
        fillable=translated + ["active"],
    )
    model = ModelDescriptor(
        name=model_name,
        table=schema.table,
        fillable=[f.name for f in schema.main_fields],
        translated_attributes=translated,
        dates=[f.name for f in schema.date_fields],
        translation_foreign_key=schema.foreign_key,
        translation_model=translation_model.name,
    )
    repository = RepositoryDescriptor(name=f"{model_name}Repository", model=model)
    controller_name = f"{model_name}Controller"
    controller = ControllerDescriptor(
        name=controller_name,
        module_name=module_name_from_controller(controller_name),
        setup_methods=list(options.setup_methods),
        form_fields=options.form_fields,
        table_columns=options.table_columns,
        additional_props=dict(options.additional_props),
    )
    return ModuleDescriptors(
        model=model,
        translation_model=translation_model,
        repository=repository,
        controller=controller,
    )
