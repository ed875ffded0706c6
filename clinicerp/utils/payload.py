"""Read request payload fields that may arrive in snake_case or camelCase."""

from __future__ import annotations

from typing import Any, Mapping

from ..errors import ValidationError

_MISSING = object()


def camel_case(name: str) -> str:
    head, *tail = name.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in tail)


def field(data: Mapping[str, Any] | None, name: str, default: Any = None) -> Any:
    if not data:
        return default
    if name in data:
        return data[name]
    camel = camel_case(name)
    if camel in data:
        return data[camel]
    return default


def has_field(data: Mapping[str, Any] | None, name: str) -> bool:
    return field(data, name, _MISSING) is not _MISSING


def int_field(data, name: str, default: int | None = None, *, required: bool = False) -> int | None:
    value = field(data, name)
    if value is None or value == '':
        if required:
            raise ValidationError(f'{name} is required', errors={name: ['required']})
        return default
    if isinstance(value, bool):
        raise ValidationError(f'{name} must be an integer', errors={name: ['invalid']})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer', errors={name: ['invalid']})


def str_field(data, name: str, default: str | None = None, *, required: bool = False) -> str | None:
    value = field(data, name)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f'{name} is required', errors={name: ['required']})
        return default
    return str(value).strip()


def bool_field(data, name: str, default: bool = False) -> bool:
    value = field(data, name)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {'1', 'true', 'yes', 'on'}
    return bool(value)
