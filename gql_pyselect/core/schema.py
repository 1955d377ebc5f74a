"""Schema metadata model.

Describes named GraphQL types and their fields in the shape the selection
runtime needs: which fields are scalars, which are associations that take a
child selection, which arguments they declare and what type each argument
has. Types are registered in a ``SchemaRegistry`` keyed by name; a registry
can also hold lazy factories that are resolved on first reference.
"""

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import CircularResolutionError, SchemaDefinitionError

logger = logging.getLogger(__name__)


class SchemaTypeCategory(Enum):
    """Shape categories of a selectable type."""
    OBJECT = "OBJECT"
    EMBEDDED = "EMBEDDED"      # Object value selected like a scalar
    CONNECTION = "CONNECTION"  # Paged connection wrapping edges
    EDGE = "EDGE"              # Connection edge wrapping node + cursor


class SchemaFieldCategory(Enum):
    """Shape categories of a field."""
    ID = "ID"
    SCALAR = "SCALAR"
    REFERENCE = "REFERENCE"
    LIST = "LIST"
    CONNECTION = "CONNECTION"


@dataclass(frozen=True)
class SchemaField:
    """A field of a schema type."""
    name: str
    category: SchemaFieldCategory = SchemaFieldCategory.SCALAR
    # Argument name -> GraphQL type text, e.g. {"id": "ID!"}
    arg_graphql_types: Mapping[str, str] = field(default_factory=dict)
    target_type_name: str | None = None
    connection_type_name: str | None = None
    edge_type_name: str | None = None
    is_undefinable: bool = False

    @property
    def is_plural(self) -> bool:
        return self.category in (SchemaFieldCategory.LIST, SchemaFieldCategory.CONNECTION)

    @property
    def is_association(self) -> bool:
        return self.category == SchemaFieldCategory.REFERENCE or self.is_plural

    @property
    def is_function(self) -> bool:
        """True if selecting the field requires a call rather than plain access."""
        return (
            len(self.arg_graphql_types) != 0
            or self.is_association
            or self.target_type_name is not None
        )

    @property
    def required_arg_names(self) -> list[str]:
        return [name for name, type_text in self.arg_graphql_types.items() if type_text.endswith("!")]


@dataclass(frozen=True)
class FieldDescriptor:
    """Input to ``create_schema_type`` describing one declared field."""
    name: str
    category: SchemaFieldCategory = SchemaFieldCategory.SCALAR
    args: Mapping[str, str] | None = None
    target_type_name: str | None = None
    connection_type_name: str | None = None
    edge_type_name: str | None = None
    undefinable: bool = False


class SchemaType:
    """A named, selectable GraphQL type.

    ``own_fields`` holds the declared fields, ``fields`` the declared fields
    merged with every supertype's fields (computed lazily and cached).
    """

    __slots__ = ("name", "category", "interfaces", "own_fields", "_fields", "_lock", "__weakref__")

    def __init__(
        self,
        name: str,
        category: SchemaTypeCategory,
        interfaces: tuple["SchemaType", ...],
        own_fields: dict[str, SchemaField],
    ):
        self.name = name
        self.category = category
        self.interfaces = interfaces
        self.own_fields = own_fields
        self._fields: dict[str, SchemaField] | None = None
        self._lock = threading.Lock()

    @property
    def fields(self) -> dict[str, SchemaField]:
        if self._fields is None:
            with self._lock:
                if self._fields is None:
                    self._fields = self.own_fields if not self.interfaces else _collect_fields(self)
        return self._fields

    def __repr__(self) -> str:
        return f"SchemaType({self.name!r}, {self.category.value})"


def _collect_fields(schema_type: SchemaType) -> dict[str, SchemaField]:
    """Depth-first union over supertypes, most specific declaration wins."""
    result: dict[str, SchemaField] = {}

    def collect(current: SchemaType):
        for super_type in current.interfaces:
            collect(super_type)
        result.update(current.own_fields)

    collect(schema_type)
    return result


class SchemaRegistry:
    """Registry of schema types keyed by name.

    Populate it at startup; after that it is read-mostly. A factory
    registered with ``register_factory`` is only called when the type is
    first resolved.
    """

    def __init__(self):
        self._types: dict[str, SchemaType] = {}
        self._factories: dict[str, Callable[[], SchemaType]] = {}
        self._resolving: set[str] = set()
        self._lock = threading.RLock()

    def register(self, schema_type: SchemaType) -> SchemaType:
        """Register a type, keeping the richer definition on re-registration."""
        with self._lock:
            existing = self._types.get(schema_type.name)
            if existing is None or len(existing.own_fields) < len(schema_type.own_fields):
                self._types[schema_type.name] = schema_type
            return self._types[schema_type.name]

    def register_factory(self, type_name: str, factory: Callable[[], SchemaType]):
        """Register a lazy factory; the first factory for a name wins."""
        with self._lock:
            self._factories.setdefault(type_name, factory)

    def resolve(self, type_name: str) -> SchemaType | None:
        """Return the registered type, running its pending factory if needed.

        Raises:
            CircularResolutionError: If the factory for ``type_name`` asks for
                ``type_name`` again while it is still running.
        """
        with self._lock:
            registered = self._types.get(type_name)
            if registered is not None:
                return registered

            factory = self._factories.get(type_name)
            if factory is None:
                return None
            if type_name in self._resolving:
                raise CircularResolutionError(
                    f'Circular schema factory resolution detected for "{type_name}"'
                )

            logger.debug("Resolving schema type %s from factory", type_name)
            self._resolving.add(type_name)
            try:
                self.register(factory())
            finally:
                self._resolving.discard(type_name)
            return self._types.get(type_name)

    def require(self, type_name: str) -> SchemaType:
        """Like ``resolve`` but raise if the type is unknown."""
        resolved = self.resolve(type_name)
        if resolved is None:
            raise SchemaDefinitionError(f'Cannot resolve schema type "{type_name}"')
        return resolved

    def names(self) -> list[str]:
        with self._lock:
            return sorted(set(self._types) | set(self._factories))

    def __contains__(self, type_name: str) -> bool:
        with self._lock:
            return type_name in self._types or type_name in self._factories


default_registry = SchemaRegistry()


def create_schema_type(
    name: str,
    category: SchemaTypeCategory | str,
    super_types: Iterable[SchemaType],
    declared_fields: Iterable[str | FieldDescriptor | Mapping[str, Any]],
    *,
    registry: SchemaRegistry | None = None,
) -> SchemaType:
    """Build, validate and register a schema type.

    Args:
        name: The GraphQL type name
        category: Type category (enum member or its name)
        super_types: Direct supertypes (implemented interfaces)
        declared_fields: Field descriptors. A bare string declares a
            non-null scalar without arguments.
        registry: Target registry (defaults to the process-wide one)

    Returns:
        The registered type, which is the richer definition if the name was
        already registered.
    """
    category = SchemaTypeCategory(category)
    super_types = tuple(super_types)

    own_fields: dict[str, SchemaField] = {}
    for desc in declared_fields:
        schema_field = _build_field(desc)
        own_fields[schema_field.name] = schema_field

    _validate_type(name, category, own_fields, super_types)

    schema_type = SchemaType(name, category, super_types, own_fields)
    target = registry if registry is not None else default_registry
    return target.register(schema_type)


def _build_field(desc: str | FieldDescriptor | Mapping[str, Any]) -> SchemaField:
    if isinstance(desc, str):
        return SchemaField(name=desc)
    if isinstance(desc, Mapping):
        desc = FieldDescriptor(**desc)
    return SchemaField(
        name=desc.name,
        category=SchemaFieldCategory(desc.category),
        arg_graphql_types=dict(desc.args or {}),
        target_type_name=desc.target_type_name,
        connection_type_name=desc.connection_type_name,
        edge_type_name=desc.edge_type_name,
        is_undefinable=desc.undefinable,
    )


def _validate_type(
    name: str,
    category: SchemaTypeCategory,
    declared_fields: dict[str, SchemaField],
    super_types: tuple[SchemaType, ...],
):
    if category == SchemaTypeCategory.CONNECTION:
        edges = declared_fields.get("edges")
        if edges is None:
            raise SchemaDefinitionError(f'Type "{name}": CONNECTION must have an "edges" field')
        if edges.category != SchemaFieldCategory.LIST:
            raise SchemaDefinitionError(f'Type "{name}": CONNECTION "edges" must be LIST')
    elif category == SchemaTypeCategory.EDGE:
        node = declared_fields.get("node")
        if node is None:
            raise SchemaDefinitionError(f'Type "{name}": EDGE must have a "node" field')
        if node.category != SchemaFieldCategory.REFERENCE:
            raise SchemaDefinitionError(f'Type "{name}": EDGE "node" must be REFERENCE')
        cursor = declared_fields.get("cursor")
        if cursor is not None and cursor.category != SchemaFieldCategory.SCALAR:
            raise SchemaDefinitionError(f'Type "{name}": EDGE "cursor" must be SCALAR')

    if category in (SchemaTypeCategory.CONNECTION, SchemaTypeCategory.EDGE) and super_types:
        raise SchemaDefinitionError(f'Type "{name}": {category.value} cannot have super types')
