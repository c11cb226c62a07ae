"""
Turning pydantic validation failures into the API's field → messages map.

    parse_body(PostInput, {"title": ""})
    → ValidationError({"title": ["Title is required"], "content": ["Content is required"]})
"""

from typing import Any, Dict, List, Mapping, Type, TypeVar

import pydantic

from blogapi.exceptions import ValidationError

SchemaT = TypeVar("SchemaT", bound=pydantic.BaseModel)

_VALUE_ERROR_PREFIX = "Value error, "


def parse_body(schema: Type[SchemaT], data: Mapping[str, Any]) -> SchemaT:
    try:
        return schema.model_validate(dict(data))
    except pydantic.ValidationError as exc:
        raise ValidationError(field_errors(exc, getattr(schema, "field_messages", {}))) from exc


def field_errors(exc: pydantic.ValidationError, overrides: Mapping[str, str]) -> Dict[str, List[str]]:
    """
    Group pydantic errors by top-level field.

    Messages raised by our own validators are used as written; pydantic's
    built-in type errors are replaced by the schema's `field_messages` entry
    for that field when there is one.
    """
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        loc = err.get("loc") or ()
        field = str(loc[0]) if loc else "body"
        if err.get("type") == "value_error":
            message = err["msg"].removeprefix(_VALUE_ERROR_PREFIX)
        else:
            message = overrides.get(field, err["msg"])
        messages = errors.setdefault(field, [])
        if message not in messages:
            messages.append(message)
    return errors
