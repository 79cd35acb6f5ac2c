"""Request and response schemas derived from tenant record tables.

Every GRC record type shares the same endpoint set, so its pydantic schemas
are generated from the mapped columns instead of being written out by hand.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, create_model
from sqlalchemy import JSON, Float, Numeric, String, inspect

from grcnexus.models.mixins import SYSTEM_FIELDS


@dataclass(frozen=True)
class RecordSchemas:
    create: type[BaseModel]
    update: type[BaseModel]
    response: type[BaseModel]


def writable_columns(model) -> dict:
    return {
        column.key: column
        for column in inspect(model).columns
        if column.key not in SYSTEM_FIELDS
    }


def column_type(column, *, bounded: bool = True) -> Any:
    """Python type accepted for ``column``; strings carry the column length when ``bounded``."""
    sql_type = column.type
    if isinstance(sql_type, JSON):
        return Union[dict, list]
    if isinstance(sql_type, (Float, Numeric)):
        return float
    if bounded and isinstance(sql_type, String) and sql_type.length:
        return Annotated[str, StringConstraints(max_length=sql_type.length)]
    try:
        return sql_type.python_type
    except NotImplementedError:
        return Any


def _required_text(column) -> Any:
    length = getattr(column.type, "length", None)
    return Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=length)]


def build_record_schemas(
    model,
    *,
    statuses: tuple[str, ...],
    required: tuple[str, ...] = ("name",),
) -> RecordSchemas:
    """Build create/update/response models for one tenant table.

    Create requires every field in ``required``. Update accepts any subset,
    but a field that may not be NULL in the table cannot be sent as null, and
    required text fields cannot be blanked.
    """
    strict = ConfigDict(extra="forbid")
    name = model.__name__
    create_fields: dict[str, Any] = {}
    update_fields: dict[str, Any] = {}

    for key, column in writable_columns(model).items():
        if key in required:
            accepted = _required_text(column) if isinstance(column.type, String) else column_type(column)
        elif key == "status" and statuses:
            accepted = Literal[statuses]
        else:
            accepted = column_type(column)

        if key in required:
            create_fields[key] = (accepted, ...)
        elif column.nullable:
            create_fields[key] = (Optional[accepted], None)
        else:
            # NOT NULL with a column default: omit it, never send null.
            create_fields[key] = (accepted, None)

        update_fields[key] = (Optional[accepted] if column.nullable else accepted, None)

    response_fields = {
        column.key: (Optional[column_type(column, bounded=False)], None)
        for column in inspect(model).columns
    }
    response_fields["id"] = (str, Field(...))

    return RecordSchemas(
        create=create_model(f"{name}Create", __config__=strict, **create_fields),
        update=create_model(f"{name}Update", __config__=strict, **update_fields),
        response=create_model(
            f"{name}Response",
            __config__=ConfigDict(from_attributes=True),
            **response_fields,
        ),
    )
