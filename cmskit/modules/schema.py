"""Resource schema: the field list every synthesizer reads."""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple
from cmskit.core.workflow import BootStage
from cmskit.modules.utils import singularize, slug_to_path, title_case, to_studly_case

log = logging.getLogger(__name__)


class FieldType(str, Enum):
    STRING = "string"
    BOOLEAN = "boolean"
    DATETIME = "dateTime"

    @classmethod
    def parse(cls, value: Optional[str], resource: str = "-") -> "FieldType":
        """Unknown tags fall back to string."""
        if value is None:
            return cls.STRING
        try:
            return cls(value)
        except ValueError:
            log.warning("Unknown field type %r, using string", value,
                        extra={"resource": resource, "stage": BootStage.REGISTER.value})
            return cls.STRING

    @property
    def python_type(self) -> type:
        return {
            FieldType.STRING: str,
            FieldType.BOOLEAN: bool,
            FieldType.DATETIME: datetime,
        }[self]


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: FieldType = FieldType.STRING
    default: Any = None
    nullable: bool = True
    translatable: bool = False

    @classmethod
    def from_options(cls, name: str, options: Optional[Mapping[str, Any]], resource: str = "-") -> "FieldSpec":
        """Build a field from the caller's option map.

        Recognized keys: ``type`` (string|boolean|dateTime, default string),
        ``default`` (None for string/dateTime, False for boolean),
        ``nullable`` (default True) and ``translatable`` (default False).
        """
        options = dict(options or {})
        field_type = FieldType.parse(options.get("type"), resource)
        default = options.get("default")
        if default is None and field_type is FieldType.BOOLEAN:
            default = False
        nullable = options.get("nullable")
        return cls(
            name=name,
            type=field_type,
            default=default,
            nullable=True if nullable is None else bool(nullable),
            translatable=bool(options.get("translatable", False)),
        )

    def as_options(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "default": self.default,
            "nullable": self.nullable,
            "translatable": self.translatable,
        }


@dataclass(frozen=True)
class ResourceSchema:
    """Immutable description of one admin module."""
    name_plural: str
    fields: Mapping[str, FieldSpec] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @classmethod
    def build(cls, name_plural: str, fields: Optional[Mapping[str, Mapping[str, Any]]] = None) -> "ResourceSchema":
        if not name_plural or not name_plural.strip("."):
            raise ValueError("name_plural must not be empty")
        if fields is None:
            fields = {"title": {}}
        specs = {
            name: FieldSpec.from_options(name, options, resource=name_plural)
            for name, options in fields.items()
        }
        return cls(name_plural=name_plural, fields=specs)

    # Name forms

    @property
    def slug(self) -> str:
        return self.name_plural

    @property
    def path_slug(self) -> str:
        return slug_to_path(self.name_plural)

    @property
    def singular(self) -> str:
        return singularize(self.name_plural.split(".")[-1])

    @property
    def route_key(self) -> str:
        """Path parameter name for a record: the singular, made a valid identifier."""
        return re.sub(r'\W', '_', self.singular)

    @property
    def model_name(self) -> str:
        return to_studly_case(self.singular)

    @property
    def title(self) -> str:
        return title_case(self.name_plural)

    @property
    def table(self) -> str:
        return self.name_plural.split(".")[-1]

    @property
    def foreign_key(self) -> str:
        return f"{self.singular}_id"

    @property
    def translations_table(self) -> str:
        return f"{self.singular}_translations"

    @property
    def slugs_table(self) -> str:
        return f"{self.singular}_slugs"

    @property
    def revisions_table(self) -> str:
        return f"{self.singular}_revisions"

    # Field groups

    @property
    def main_fields(self) -> List[FieldSpec]:
        return [f for f in self.fields.values() if not f.translatable]

    @property
    def translated_fields(self) -> List[FieldSpec]:
        return [f for f in self.fields.values() if f.translatable]

    @property
    def date_fields(self) -> List[FieldSpec]:
        return [f for f in self.fields.values() if f.type is FieldType.DATETIME]

    def shape(self) -> Tuple[Tuple[str, Tuple[Tuple[str, Any], ...]], ...]:
        """Hashable view used to compare two registrations."""
        return tuple(
            (name, tuple(sorted(spec.as_options().items())))
            for name, spec in self.fields.items()
        )
