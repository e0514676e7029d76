"""Capture of live entities into snapshot documents.

The serializer walks an entity's memoized attributes, declared computed
members and associations, and flattens them into one JSON document. Plural
associations whose element type declares scopes additionally get one
pre-filtered list per scope under ``"<member>_<scope>"``.

Errors raised while evaluating a member propagate to the caller; no
partial document is ever returned.
"""

import inspect
from typing import Any, Optional

from memoizable.core.logging import get_logger
from memoizable.core.memory.documents import (
    TYPE_KEY,
    merge_documents,
    scope_key,
    sidecar_key,
    to_json,
)
from memoizable.core.memory.registry import (
    AssociationInfo,
    MemoizableDescriptor,
    MemoizableRegistry,
    get_registry,
)

logger = get_logger(__name__)


async def _call(value: Any) -> Any:
    if inspect.ismethod(value) or inspect.isfunction(value):
        value = value()
    if inspect.isawaitable(value):
        value = await value
    return value


async def _load(entity: Any, name: str) -> Any:
    """Read an association, awaiting lazy loads when the model supports it."""
    awaitable_attrs = getattr(entity, "awaitable_attrs", None)
    if awaitable_attrs is not None:
        return await getattr(awaitable_attrs, name)
    return getattr(entity, name)


def _overlay_of(entity: Any) -> Any:
    overlay = getattr(entity, "overlay", None)
    return overlay if overlay is not None and overlay.active else None


def _read(entity: Any, name: str) -> Any:
    recall = getattr(entity, "recall", None)
    if recall is not None:
        return recall(name)
    return getattr(entity, name)


class _CapturePass:
    """State for a single top-level capture.

    Each related instance is captured once; an instance met again while it
    is still being captured (a back-reference) is emitted as a summary.
    """

    def __init__(self, registry: MemoizableRegistry) -> None:
        self.registry = registry
        self.captured: dict[int, dict[str, Any]] = {}
        self.path: set[int] = set()

    async def capture(self, entity: Any, include_all: bool) -> dict[str, Any]:
        key = id(entity)
        if key in self.captured:
            return self.captured[key]

        descriptor = self.registry.describe_instance(entity)
        document = self.attributes(entity, descriptor)
        if not include_all or key in self.path:
            return document

        self.path.add(key)
        try:
            for member in descriptor.members:
                fragment = await self.member(entity, descriptor, member)
                merge_documents(document, fragment)
        finally:
            self.path.discard(key)

        self.captured[key] = document
        return document

    def attributes(
        self, entity: Any, descriptor: MemoizableDescriptor
    ) -> dict[str, Any]:
        document = {name: to_json(_read(entity, name)) for name in descriptor.attribute_names}
        document[TYPE_KEY] = descriptor.type_name
        return document

    async def member(
        self, entity: Any, descriptor: MemoizableDescriptor, member: str
    ) -> dict[str, Any]:
        association = descriptor.association(member)
        overlay = _overlay_of(entity)

        if overlay is not None:
            return self.overlaid_member(overlay, member, association)

        if association is None:
            return {member: to_json(await _call(getattr(entity, member)))}

        related = await _load(entity, member)
        if not association.plural:
            nested = await self.capture(related, True) if related is not None else None
            return {member: nested, sidecar_key(member): association.target_type}

        elements = list(related or [])
        fragment: dict[str, Any] = {
            member: [await self.capture(element, True) for element in elements],
            sidecar_key(member): association.target_type,
        }

        target = self.registry.lookup(association.target_type)
        if target is not None:
            for name, scope in target.scopes.items():
                scoped = await _call(scope(elements))
                key = scope_key(member, name)
                fragment[key] = [await self.capture(element, True) for element in scoped]
                fragment[sidecar_key(key)] = association.target_type
        return fragment

    def overlaid_member(
        self, overlay: Any, member: str, association: Optional[AssociationInfo]
    ) -> dict[str, Any]:
        """Re-serialize a member from the overlaid memory."""
        fragment = {member: to_json(overlay.resolve(member))}
        if association is None:
            return fragment

        source = overlay.document.raw if overlay.document is not None else {}
        keys = [sidecar_key(member)]
        target = self.registry.lookup(association.target_type)
        if association.plural and target is not None:
            for name in target.scopes:
                keys.extend([scope_key(member, name), sidecar_key(scope_key(member, name))])
        for key in keys:
            if key in source:
                fragment[key] = source[key]
        fragment.setdefault(sidecar_key(member), association.target_type)
        return fragment


class MemorySerializer:
    """Turns live entities into snapshot documents."""

    def __init__(self, registry: Optional[MemoizableRegistry] = None) -> None:
        self.registry = registry or get_registry()

    async def capture(self, entity: Any, include_all: bool = True) -> dict[str, Any]:
        """Capture an entity into a JSON-ready document.

        Attributes are read through the entity's overlay, so capturing a
        locked entity re-serializes the memory it is showing.

        Args:
            entity: A mapped instance, normally one declared ``@memoizable``.
            include_all: When False, only attributes and the type label are
                captured.

        Returns:
            The captured document.
        """
        type_name = type(entity).__name__
        logger.debug("Capture started", subject_type=type_name, include_all=include_all)
        document = await _CapturePass(self.registry).capture(entity, include_all)
        logger.debug("Capture finished", subject_type=type_name, keys=len(document))
        return document
