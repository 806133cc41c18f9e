"""Form and index-table definitions returned to the admin UI."""
from __future__ import annotations
from typing import Any, List, Optional
from pydantic import BaseModel
from cmskit.modules.schema import FieldType, ResourceSchema
from cmskit.modules.utils import title_case

_INPUT_TYPES = {
    FieldType.STRING: "text",
    FieldType.BOOLEAN: "checkbox",
    FieldType.DATETIME: "date_picker",
}


class FormField(BaseModel):
    name: str
    type: str = "text"
    label: str
    translated: bool = False
    required: bool = False
    default: Optional[Any] = None


class Form(BaseModel):
    fields: List[FormField] = []

    @classmethod
    def for_schema(cls, schema: ResourceSchema) -> "Form":
        return cls(fields=[
            FormField(
                name=spec.name,
                type=_INPUT_TYPES[spec.type],
                label=title_case(spec.name),
                translated=spec.translatable,
                required=not spec.nullable,
                default=spec.default,
            )
            for spec in schema.fields.values()
        ])


class TableColumn(BaseModel):
    field: str
    title: str
    sortable: bool = False
    visible: bool = True


class TableColumns(BaseModel):
    columns: List[TableColumn] = []

    @classmethod
    def for_schema(cls, schema: ResourceSchema, title_column_key: str = "title") -> "TableColumns":
        columns = []
        if title_column_key in schema.fields:
            columns.append(TableColumn(field=title_column_key, title=title_case(title_column_key), sortable=True))
        for spec in schema.fields.values():
            if spec.name == title_column_key:
                continue
            columns.append(TableColumn(
                field=spec.name,
                title=title_case(spec.name),
                sortable=not spec.translatable,
            ))
        return cls(columns=columns)
