"""Helpers for snapshot documents.

A document is the JSON mapping stored in a memory's payload. Besides the
member values it carries type labels: ``"__type__"`` for the document's own
type and ``"<member>__type__"`` sidecars for nested documents and lists, so a
payload can be interpreted without the live schema.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from pydantic import TypeAdapter, ValidationError
from pydantic_core import to_jsonable_python

TYPE_KEY = "__type__"

_DATETIME = TypeAdapter(datetime)
_DATE = TypeAdapter(date)


def sidecar_key(member: str) -> str:
    return f"{member}{TYPE_KEY}"


def scope_key(member: str, scope: str) -> str:
    return f"{member}_{scope}"


def merge_documents(target: dict[str, Any], fragment: dict[str, Any]) -> dict[str, Any]:
    """Merge ``fragment`` into ``target`` without replacing list values.

    Nested mappings are merged recursively. A key that already holds a list
    in ``target`` is left untouched, so capturing one association can never
    truncate another that was captured before it.

    Returns:
        The updated ``target``.
    """
    for key, value in fragment.items():
        current = target.get(key)
        if isinstance(current, list):
            continue
        if isinstance(current, dict) and isinstance(value, dict):
            merge_documents(current, value)
        else:
            target[key] = value
    return target


def is_present(value: Any) -> bool:
    """Truthiness used by question-mark accessors.

    None, False, blank strings and empty collections are absent; anything
    else (including 0) is present.
    """
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict, set)):
        return bool(value)
    return True


def to_json(value: Any) -> Any:
    """Convert a captured value into plain JSON data."""
    if getattr(value, "__memoized__", False):
        return value.raw
    return to_jsonable_python(value)


def _has_suffix(name: str, suffixes: Iterable[str]) -> bool:
    return any(name.endswith(suffix) for suffix in suffixes)


def coerce_scalar(
    name: str,
    value: Any,
    timestamp_suffixes: Iterable[str],
    date_suffixes: Iterable[str],
) -> Any:
    """Parse timestamp and date fields by name suffix.

    Values that do not parse are returned unchanged.
    """
    if not isinstance(value, str):
        return value
    try:
        if _has_suffix(name, timestamp_suffixes):
            return _DATETIME.validate_python(value)
        if _has_suffix(name, date_suffixes):
            return _DATE.validate_python(value)
    except ValidationError:
        return value
    return value


def to_number(value: Any) -> int | Decimal:
    """Numeric coercion for sums. Anything non-numeric counts as 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, Decimal)):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = Decimal(text)
        except InvalidOperation:
            return 0
        return number if number.is_finite() else 0
    return 0
