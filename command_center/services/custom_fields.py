from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any

from command_center.errors import InvalidInputError


class FieldKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


_TRUE_STRINGS = {"true", "yes", "1", "on"}
_FALSE_STRINGS = {"false", "no", "0", "off"}


def _invalid(name: str, kind: FieldKind) -> InvalidInputError:
    return InvalidInputError(
        f"Custom field '{name}' must be a {kind.value}",
        errors=[{"loc": ["custom_fields", name], "msg": f"expected {kind.value}"}],
    )


def coerce_value(name: str, kind: FieldKind, value: Any):
    if value is None:
        return None
    if kind is FieldKind.TEXT:
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise _invalid(name, kind)
        return str(value)
    if kind is FieldKind.NUMBER:
        if isinstance(value, bool):
            raise _invalid(name, kind)
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                try:
                    return float(value)
                except ValueError:
                    raise _invalid(name, kind) from None
        raise _invalid(name, kind)
    if kind is FieldKind.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str) and value.strip().lower() in _TRUE_STRINGS | _FALSE_STRINGS:
            return value.strip().lower() in _TRUE_STRINGS
        raise _invalid(name, kind)
    # FieldKind.DATE
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        raw = value.strip()
        try:
            if len(raw) == 10:
                return date.fromisoformat(raw).isoformat()
            return datetime.fromisoformat(raw.replace("Z", "+00:00")).date().isoformat()
        except ValueError:
            raise _invalid(name, kind) from None
    raise _invalid(name, kind)


def validate_custom_fields(values: dict | None, definitions: list[dict] | None) -> dict:
    """Check a task's custom field map.

    With ``definitions`` (the fields of the task's type) every key must be
    declared and is coerced to its declared kind. Without them values are only
    required to be scalars.
    """
    values = dict(values or {})
    if definitions is None:
        for name, value in values.items():
            if value is not None and not isinstance(value, (str, int, float, bool)):
                raise InvalidInputError(
                    f"Custom field '{name}' must be a scalar value",
                    errors=[{"loc": ["custom_fields", name], "msg": "expected scalar"}],
                )
        return {name: value for name, value in values.items() if value is not None}

    declared = {item["name"]: FieldKind(item["kind"]) for item in definitions}
    unknown = sorted(set(values) - set(declared))
    if unknown:
        raise InvalidInputError(
            f"Unknown custom field(s): {', '.join(unknown)}",
            errors=[{"loc": ["custom_fields", name], "msg": "not defined by task type"} for name in unknown],
        )
    clean = {}
    for name, value in values.items():
        coerced = coerce_value(name, declared[name], value)
        if coerced is not None:
            clean[name] = coerced
    return clean
