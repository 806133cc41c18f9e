"""Generic model: one instance per resource, configured by its descriptor."""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Type, Union
import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict, create_model
from cmskit.modules.descriptors import ModelDescriptor, TranslationModelDescriptor
from cmskit.modules.entity import PersistedSchema
from cmskit.modules.schema import ResourceSchema


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BlockPayload(BaseModel):
    type: str
    editor_name: str = "default"
    content: Dict[str, Any] = {}


class LanguagePayload(BaseModel):
    value: str
    published: bool = True


class PayloadBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    published: Optional[bool] = None
    blocks: Optional[List[BlockPayload]] = None
    languages: Optional[List[LanguagePayload]] = None


def build_payload_model(schema: ResourceSchema, creating: bool = False) -> Type[PayloadBase]:
    """Pydantic model accepting the resource's fields.

    Translated fields take either a plain string (stored for the default
    locale) or a ``{locale: value}`` mapping. Non-nullable fields never accept
    null; with ``creating`` they are also required unless they have a default.
    """
    definitions: Dict[str, Any] = {}
    for spec in schema.fields.values():
        if spec.translatable:
            annotation = Union[Dict[str, Optional[str]], str]
        else:
            annotation = spec.type.python_type
        if spec.nullable:
            definitions[spec.name] = (Optional[annotation], None)
        elif creating and spec.default is None:
            definitions[spec.name] = (annotation, ...)
        else:
            definitions[spec.name] = (annotation, None)
    suffix = "CreatePayload" if creating else "Payload"
    return create_model(f"{schema.model_name}{suffix}", __base__=PayloadBase, **definitions)


class ModuleModel:
    def __init__(
        self,
        schema: ResourceSchema,
        descriptor: ModelDescriptor,
        translation_descriptor: TranslationModelDescriptor,
        persisted: PersistedSchema,
        metadata: Optional[sa.MetaData] = None,
    ):
        self.schema = schema
        self.descriptor = descriptor
        self.translation_descriptor = translation_descriptor
        self.metadata = metadata if metadata is not None else sa.MetaData()
        self.table = persisted.main.to_table(self.metadata)
        self.translation_table = persisted.translations.to_table(self.metadata)
        self.slug_table = persisted.slugs.to_table(self.metadata)
        self.revision_table = persisted.revisions.to_table(self.metadata)
        self.payload_model = build_payload_model(schema)
        self.create_payload_model = build_payload_model(schema, creating=True)

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def foreign_key(self) -> str:
        return self.descriptor.translation_foreign_key

    def has_column(self, name: str) -> bool:
        return name in self.table.c

    def validate(self, payload: Optional[Dict[str, Any]], creating: bool = False) -> Dict[str, Any]:
        """Validate a request payload, keeping only the keys that were sent."""
        model = self.create_payload_model if creating else self.payload_model
        data = model.model_validate(payload or {})
        return data.model_dump(exclude_unset=True)

    def split(self, data: Dict[str, Any], default_locale: str) -> Tuple[Dict[str, Any], Dict[str, Dict[str, Any]], Dict[str, bool]]:
        """Split validated data into main-table values, per-locale translated values and locale activity."""
        main = {k: v for k, v in data.items() if k in self.descriptor.fillable}
        if data.get("published") is not None:
            main["published"] = data["published"]

        translated: Dict[str, Dict[str, Any]] = {}
        for attribute in self.descriptor.translated_attributes:
            if attribute not in data:
                continue
            value = data[attribute]
            per_locale = value if isinstance(value, dict) else {default_locale: value}
            for locale, text in per_locale.items():
                translated.setdefault(locale, {})[attribute] = text

        active = {lang["value"]: lang["published"] for lang in data.get("languages") or []}
        return main, translated, active

    def row_to_dict(self, row) -> Dict[str, Any]:
        return dict(row._mapping)
