"""Memoizable type registry.

Every memoizable model declares which members (computed values and
associations) go into its snapshots, and which named scopes its instances
can be filtered by when they appear in a parent's plural association.

Declarations are collected at class-definition time by the ``@memoizable``
decorator. The registry resolves a declaration into an immutable
``MemoizableDescriptor`` the first time the type is looked up, because the
SQLAlchemy mapper can only report relationships once every related class
has been defined.
"""

import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Mapper

from memoizable.core.config import get_settings
from memoizable.core.logging import get_logger

logger = get_logger(__name__)

Scope = Callable[[list[Any]], Iterable[Any]]


class MemberDeclarationError(ValueError):
    """Raised when a memoizable member declaration is invalid."""


class UnknownMemoizableTypeError(LookupError):
    """Raised when a type name has no memoizable declaration."""


@dataclass(frozen=True)
class AssociationInfo:
    """Association metadata taken from the SQLAlchemy mapper.

    Attributes:
        name: Relationship attribute name.
        target_type: Type label of the related class.
        plural: True for one-to-many / many-to-many relationships.
    """

    name: str
    target_type: str
    plural: bool


@dataclass(frozen=True)
class MemoizableDescriptor:
    """Resolved, immutable description of a memoizable type.

    Attributes:
        type_name: Type label written into documents.
        model: The mapped class.
        attribute_names: Persisted columns memoized implicitly.
        column_names: Every persisted column, including excluded ones.
        members: Explicitly declared members, in declaration order.
        associations: Every relationship on the mapper, by name.
        scopes: Named scopes that filter lists of this type.
        primary_key: Name of the primary key attribute.
    """

    type_name: str
    model: type
    attribute_names: tuple[str, ...]
    column_names: frozenset[str]
    members: tuple[str, ...] = ()
    associations: Mapping[str, AssociationInfo] = field(
        default_factory=lambda: MappingProxyType({})
    )
    scopes: Mapping[str, Scope] = field(default_factory=lambda: MappingProxyType({}))
    primary_key: str = "id"

    def has_attribute(self, name: str) -> bool:
        return name in self.column_names

    def association(self, name: str) -> Optional[AssociationInfo]:
        return self.associations.get(name)

    def is_plural(self, name: str) -> bool:
        association = self.associations.get(name)
        return association is not None and association.plural

    def coerce_identity(self, subject_id: str) -> Any:
        """Convert a stored subject id back to the primary key's Python type."""
        column = inspect(self.model).columns[self.primary_key]
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            return subject_id
        if python_type is str:
            return subject_id
        return python_type(subject_id)


@dataclass
class MemoizableDeclaration:
    """Mutable declaration collected before the descriptor is resolved."""

    model: type
    members: list[str] = field(default_factory=list)
    scopes: dict[str, Scope] = field(default_factory=dict)


class MemoizableRegistry:
    """Registry of memoizable declarations and their resolved descriptors.

    Declarations may be added until the type is first resolved; after that
    the descriptor is frozen and further declarations are rejected.

    Example:
        registry = MemoizableRegistry()
        registry.declare(Borrower, ["contract", "balance"])
        descriptor = registry.describe("Borrower")
    """

    def __init__(self, excluded_attributes: Optional[Iterable[str]] = None) -> None:
        self._declarations: dict[str, MemoizableDeclaration] = {}
        self._descriptors: dict[str, MemoizableDescriptor] = {}
        self._excluded_attributes = (
            frozenset(excluded_attributes) if excluded_attributes is not None else None
        )
        self._lock = threading.RLock()

    @property
    def excluded_attributes(self) -> frozenset[str]:
        if self._excluded_attributes is None:
            return frozenset(get_settings().excluded_attributes)
        return self._excluded_attributes

    def declare(
        self,
        model: type,
        members: Iterable[str] = (),
        scopes: Optional[Mapping[str, Scope]] = None,
    ) -> MemoizableDeclaration:
        """Add members and scopes to a model's declaration.

        Args:
            model: Mapped class being declared.
            members: Member names to memoize. Repeats are ignored.
            scopes: Named scopes over lists of ``model`` instances.

        Returns:
            The (possibly pre-existing) declaration for ``model``.

        Raises:
            MemberDeclarationError: If a member is a persisted column, or the
                type was already resolved.
        """
        type_name = model.__name__
        columns = set(model.__table__.columns.keys())

        with self._lock:
            if type_name in self._descriptors:
                raise MemberDeclarationError(
                    f"{type_name} is already in use and can no longer be declared"
                )

            declaration = self._declarations.get(type_name)
            if declaration is None:
                declaration = MemoizableDeclaration(model=model)
                self._declarations[type_name] = declaration

            for member in members:
                if member in declaration.members:
                    continue
                if member in columns:
                    raise MemberDeclarationError(
                        f"'{member}' is an attribute of {type_name}; "
                        "attributes are memoized implicitly"
                    )
                declaration.members.append(member)

            for name, scope in (scopes or {}).items():
                if not callable(scope):
                    raise MemberDeclarationError(
                        f"Scope '{name}' on {type_name} is not callable"
                    )
                declaration.scopes.setdefault(name, scope)

        logger.debug(
            "Memoizable type declared",
            type_name=type_name,
            members=list(declaration.members),
            scopes=list(declaration.scopes),
        )
        return declaration

    def is_declared(self, model_or_name: type | str) -> bool:
        return self._type_name(model_or_name) in self._declarations

    def lookup(self, model_or_name: type | str | None) -> Optional[MemoizableDescriptor]:
        """Resolve a descriptor, returning None for undeclared types."""
        if model_or_name is None:
            return None
        type_name = self._type_name(model_or_name)
        with self._lock:
            descriptor = self._descriptors.get(type_name)
            if descriptor is not None:
                return descriptor
            declaration = self._declarations.get(type_name)
            if declaration is None:
                return None
            descriptor = self._resolve(declaration)
            self._descriptors[type_name] = descriptor
            return descriptor

    def describe(self, model_or_name: type | str) -> MemoizableDescriptor:
        """Resolve a descriptor.

        Raises:
            UnknownMemoizableTypeError: If the type was never declared.
        """
        descriptor = self.lookup(model_or_name)
        if descriptor is None:
            raise UnknownMemoizableTypeError(
                f"{self._type_name(model_or_name)} is not a memoizable type"
            )
        return descriptor

    def describe_instance(self, instance: Any) -> MemoizableDescriptor:
        """Describe any mapped instance.

        Undeclared mapped classes get an ad-hoc descriptor with attributes
        only, so they can still be captured as part of a parent's
        association.
        """
        descriptor = self.lookup(type(instance))
        if descriptor is not None:
            return descriptor
        return self._resolve(MemoizableDeclaration(model=type(instance)))

    def model_for(self, type_name: str) -> type:
        return self.describe(type_name).model

    def clear(self) -> None:
        """Forget every declaration. Intended for tests."""
        with self._lock:
            self._declarations.clear()
            self._descriptors.clear()

    @staticmethod
    def _type_name(model_or_name: type | str) -> str:
        return model_or_name if isinstance(model_or_name, str) else model_or_name.__name__

    def _resolve(self, declaration: MemoizableDeclaration) -> MemoizableDescriptor:
        model = declaration.model
        mapper: Mapper = inspect(model)

        columns = [attr.key for attr in mapper.column_attrs]
        excluded = self.excluded_attributes
        associations = {
            rel.key: AssociationInfo(
                name=rel.key,
                target_type=rel.mapper.class_.__name__,
                plural=bool(rel.uselist),
            )
            for rel in mapper.relationships
        }

        for member in declaration.members:
            if member not in associations and not hasattr(model, member):
                raise MemberDeclarationError(
                    f"{model.__name__} has no attribute or association '{member}'"
                )

        return MemoizableDescriptor(
            type_name=model.__name__,
            model=model,
            attribute_names=tuple(name for name in columns if name not in excluded),
            column_names=frozenset(columns),
            members=tuple(declaration.members),
            associations=MappingProxyType(associations),
            scopes=MappingProxyType(dict(declaration.scopes)),
            primary_key=mapper.primary_key[0].key,
        )


# Global registry instance
_registry: MemoizableRegistry | None = None


def get_registry() -> MemoizableRegistry:
    """Get the global memoizable registry.

    Returns:
        MemoizableRegistry: Global registry instance.
    """
    global _registry
    if _registry is None:
        _registry = MemoizableRegistry()
    return _registry


def memoizable(
    *members: str,
    scopes: Optional[Mapping[str, Scope]] = None,
    registry: Optional[MemoizableRegistry] = None,
) -> Callable[[type], type]:
    """Class decorator declaring a model's memoized members and scopes.

    Usage:
        @memoizable("contract", "borrower", "monthly_total")
        class Loan(MemoizableMixin, Base):
            ...

        @memoizable(scopes={"rented": lambda cars: [c for c in cars if c.rented]})
        class Car(MemoizableMixin, Base):
            ...
    """

    def decorator(model: type) -> type:
        (registry or get_registry()).declare(model, members, scopes)
        return model

    return decorator
