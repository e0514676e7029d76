"""Read-only views materialized from snapshot documents.

``MemoizedObject`` wraps one document and answers field reads the way the
original entity would (dates parsed, question-mark accessors, empty lists
for uncaptured associations). ``MemoizedCollection`` wraps a captured list
and offers a small, fixed set of query-like operations: scope filtering,
summing and ordering. Neither ever touches the database.
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any, Iterator, Optional

from memoizable.core.config import get_settings
from memoizable.core.memory.documents import (
    TYPE_KEY,
    coerce_scalar,
    is_present,
    scope_key,
    sidecar_key,
    to_number,
)
from memoizable.core.memory.registry import (
    MemoizableDescriptor,
    MemoizableRegistry,
    get_registry,
)


def _coerce(name: str, value: Any) -> Any:
    settings = get_settings()
    return coerce_scalar(
        name, value, settings.timestamp_suffixes, settings.date_suffixes
    )


def _wrap(
    value: Any,
    parent: Optional["MemoizedObject"],
    name: str,
    type_name: Optional[str],
    registry: Optional[MemoizableRegistry],
) -> Any:
    if isinstance(value, (MemoizedObject, MemoizedCollection)):
        return value
    if isinstance(value, dict):
        return MemoizedObject(value, registry=registry)
    if isinstance(value, list):
        return MemoizedCollection(
            value, parent=parent, name=name, type_name=type_name, registry=registry
        )
    return value


class MemoizedObject:
    """Read-only view over one captured document.

    Fields are available as ``obj.get("name")``, ``obj["name"]`` or
    ``obj.name``. Unknown fields read as None.
    """

    __memoized__ = True
    __slots__ = ("_raw", "_registry")

    def __init__(
        self, raw: dict[str, Any], registry: Optional[MemoizableRegistry] = None
    ) -> None:
        object.__setattr__(self, "_raw", raw)
        object.__setattr__(self, "_registry", registry)

    @property
    def raw(self) -> dict[str, Any]:
        return self._raw

    @property
    def type_name(self) -> Optional[str]:
        return self._raw.get(TYPE_KEY)

    @property
    def registry(self) -> MemoizableRegistry:
        return self._registry or get_registry()

    @property
    def descriptor(self) -> Optional[MemoizableDescriptor]:
        return self.registry.lookup(self.type_name)

    def has_attribute(self, name: str) -> bool:
        return name in self._raw

    def get(self, name: str) -> Any:
        """Materialize one field.

        Nested documents and lists are wrapped as views, question-mark
        names answer the presence of the underlying attribute, declared
        plural associations that were not captured read as an empty
        collection, and ``*_at`` / ``*_date`` strings are parsed.
        """
        value = self._raw.get(name)

        if value is not None:
            if isinstance(value, (dict, list, MemoizedObject, MemoizedCollection)):
                return _wrap(
                    value, self, name, self._raw.get(sidecar_key(name)), self._registry
                )
            return _coerce(name, value)

        descriptor = self.descriptor
        if name.endswith("?"):
            attribute = name[:-1]
            if attribute in self._raw or (
                descriptor is not None and descriptor.has_attribute(attribute)
            ):
                return is_present(self._raw.get(attribute))
            return None

        if descriptor is not None and descriptor.is_plural(name):
            return MemoizedCollection(
                [],
                parent=self,
                name=name,
                type_name=descriptor.associations[name].target_type,
                registry=self._registry,
            )
        return None

    def scoped(self, name: str, scope: str) -> "MemoizedCollection":
        """The captured ``<name>_<scope>`` list, or an empty collection."""
        key = scope_key(name, scope)
        return MemoizedCollection(
            self._raw.get(key) or [],
            parent=self,
            name=name,
            type_name=self._raw.get(sidecar_key(key)) or self._raw.get(sidecar_key(name)),
            registry=self._registry,
        )

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is read-only")

    def __contains__(self, name: object) -> bool:
        return name in self._raw

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MemoizedObject):
            return self._raw == other._raw
        if isinstance(other, dict):
            return self._raw == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        display_name = self._raw.get("display_name")
        if display_name is not None:
            return str(display_name)
        return f"{self.type_name or 'Memoized'} #{self._raw.get('id')}"

    def __repr__(self) -> str:
        return f"<MemoizedObject(type={self.type_name}, id={self._raw.get('id')})>"


class MemoizedCollection(Sequence):
    """Read-only view over a captured list.

    Every operation returns a new collection; the underlying data is never
    mutated.
    """

    __memoized__ = True

    def __init__(
        self,
        items: list[Any],
        parent: Optional[MemoizedObject] = None,
        name: str = "",
        type_name: Optional[str] = None,
        registry: Optional[MemoizableRegistry] = None,
    ) -> None:
        self._parent = parent
        self._name = name
        self._type_name = type_name
        self._registry = registry
        self._items = tuple(_wrap(item, parent, name, None, registry) for item in items)

    @property
    def name(self) -> str:
        return self._name

    @property
    def type_name(self) -> Optional[str]:
        return self._type_name

    @property
    def raw(self) -> list[Any]:
        return [getattr(item, "raw", item) for item in self._items]

    @property
    def size(self) -> int:
        return len(self._items)

    def at(self, index: int) -> Any:
        return self._items[index]

    def first(self) -> Any:
        return self._items[0] if self._items else None

    def last(self) -> Any:
        return self._items[-1] if self._items else None

    def ids(self) -> list[Any]:
        return [_element_id(item) for item in self._items]

    def filter_by_scope(self, scope: str) -> "MemoizedCollection":
        """Narrow this collection to the members of a captured scope.

        The scope list stored beside the association on the parent document
        is intersected by id with this collection, so chained filters only
        ever shrink the result.
        """
        if self._parent is None:
            return self._derive([])
        ids = set(self.ids())
        scoped = self._parent.scoped(self._name, scope)
        return self._derive([item for item in scoped if _element_id(item) in ids])

    def sum(self, field: str) -> int | Decimal:
        total: Any = 0
        for item in self._items:
            if isinstance(item, MemoizedObject):
                total += to_number(item.raw.get(field))
        return total

    def order_by(self, field: str, direction: Optional[str] = None) -> "MemoizedCollection":
        """Sort by a field, ascending or descending.

        Accepts ``order_by("id", "desc")`` or ``order_by("id desc")``.
        None values sort last when ascending. Strings left in a timestamp or
        date field could not be parsed and rank with the None values.
        """
        if direction is None and " " in field.strip():
            field, direction = field.split(None, 1)
        direction = (direction or "asc").strip().lower()
        if direction not in ("asc", "desc"):
            raise ValueError(f"Unknown sort direction '{direction}'")

        settings = get_settings()
        temporal = any(
            field.endswith(suffix)
            for suffix in [*settings.timestamp_suffixes, *settings.date_suffixes]
        )

        def sort_key(item: Any) -> tuple[bool, Any]:
            value = item.get(field) if isinstance(item, MemoizedObject) else None
            if temporal and isinstance(value, str):
                value = None
            return (value is None, value)

        ordered = sorted(self._items, key=sort_key, reverse=direction == "desc")
        return self._derive(ordered)

    def _derive(self, items: list[Any]) -> "MemoizedCollection":
        return MemoizedCollection(
            list(items),
            parent=self._parent,
            name=self._name,
            type_name=self._type_name,
            registry=self._registry,
        )

    def __getitem__(self, index: Any) -> Any:
        if isinstance(index, slice):
            return self._derive(list(self._items[index]))
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MemoizedCollection):
            return self.raw == other.raw
        if isinstance(other, (list, tuple)):
            return self.raw == [getattr(item, "raw", item) for item in other]
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"<MemoizedCollection(name={self._name}, type={self._type_name}, "
            f"size={len(self._items)})>"
        )


def _element_id(item: Any) -> Any:
    if isinstance(item, MemoizedObject):
        return item.raw.get("id")
    return item


def materialize(
    document: dict[str, Any] | MemoizedObject,
    field_name: str,
    registry: Optional[MemoizableRegistry] = None,
) -> Any:
    """Read one field of a document as a materialized value."""
    if not isinstance(document, MemoizedObject):
        document = MemoizedObject(document, registry=registry)
    return document.get(field_name)
