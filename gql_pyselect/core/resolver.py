"""Dynamic field resolver.

``Selection`` is the user-facing wrapper around a ``SelectionNode``. Each
schema type gets a ``FieldDispatch`` table, built once, that maps a field
name to the kind of access it supports:

- plain scalars are attributes: ``post.id.title``
- scalars with arguments are calls: ``author.avatar(size=64)``
- associations take a child selection or a builder callback, optionally
  preceded by arguments: ``query.post({"id": "1"}, lambda p: p.id.title)``

Built-ins available on every selection: ``omit``, ``alias``,
``directive``, ``include``, ``skip`` and ``on``. A schema field whose name
collides with a built-in or a selection member is reached by subscript:
``selection["alias"]``.

Example:
    query = create_selection(registry.require("Query"), metadata, registry=registry)
    selection = query.posts(lambda post: post.id.title.author(lambda a: a.id.name))
    print(selection)
"""

import logging
import threading
import weakref
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .enum_metadata import EnumInputMetadata
from .errors import SchemaDefinitionError, SelectionUsageError, UnknownFieldError
from .field_options import DirectiveArgs, FieldOptions, FieldOptionsValue
from .parameter import ParameterRef
from .schema import SchemaField, SchemaRegistry, SchemaType, default_registry
from .selection import (
    TYPENAME_FIELD,
    FragmentSpread,
    SelectionContext,
    SelectionNode,
    unwrap_node,
)

logger = logging.getLogger(__name__)


class AccessorKind(Enum):
    SCALAR = "scalar"            # attribute access, no arguments
    METHOD = "method"            # scalar with arguments, called
    ASSOCIATION = "association"  # needs a child selection


@dataclass(frozen=True)
class FieldAccessor:
    """Dispatch entry for one field of a schema type."""
    kind: AccessorKind
    field: SchemaField


class FieldDispatch:
    """Field name -> accessor table of one schema type."""

    def __init__(self, schema_type: SchemaType):
        self.schema_type = schema_type
        self.accessors: dict[str, FieldAccessor] = {}
        for name, schema_field in schema_type.fields.items():
            if schema_field.is_association or schema_field.target_type_name is not None:
                kind = AccessorKind.ASSOCIATION
            elif schema_field.is_function:
                kind = AccessorKind.METHOD
            else:
                kind = AccessorKind.SCALAR
            self.accessors[name] = FieldAccessor(kind, schema_field)
        self.accessors.setdefault(TYPENAME_FIELD, FieldAccessor(AccessorKind.SCALAR, SchemaField(TYPENAME_FIELD)))

    def get(self, field_name: str) -> FieldAccessor:
        accessor = self.accessors.get(field_name)
        if accessor is None:
            raise UnknownFieldError(self.schema_type.name, field_name)
        return accessor


_dispatch_cache: "weakref.WeakKeyDictionary[SchemaType, FieldDispatch]" = weakref.WeakKeyDictionary()
_dispatch_lock = threading.Lock()


def dispatch_for(schema_type: SchemaType) -> FieldDispatch:
    """Return the cached dispatch table of a schema type."""
    with _dispatch_lock:
        dispatch = _dispatch_cache.get(schema_type)
        if dispatch is None:
            dispatch = _dispatch_cache[schema_type] = FieldDispatch(schema_type)
        return dispatch


def create_selection(
    schema_type: SchemaType,
    enum_input_metadata: EnumInputMetadata | None = None,
    union_item_types: list[str] | tuple[str, ...] | None = None,
    *,
    registry: SchemaRegistry | None = None,
) -> "Selection":
    """Create an empty root selection of ``schema_type``."""
    context = SelectionContext(
        schema_type=schema_type,
        enum_input_metadata=enum_input_metadata or {},
        union_item_types=tuple(union_item_types) if union_item_types else None,
        registry=registry if registry is not None else default_registry,
    )
    return Selection(SelectionNode(context))


def _auto_parameters(schema_field: SchemaField) -> dict[str, ParameterRef] | None:
    """One ParameterRef per required argument, named after the argument."""
    required = schema_field.required_arg_names
    if not required:
        return None
    return {name: ParameterRef.of(name) for name in required}


class Selection:
    """Chainable, immutable selection of fields of one schema type."""

    __slots__ = ("_node", "_dispatch")

    def __init__(self, node: SelectionNode):
        self._node = node
        self._dispatch = dispatch_for(node.schema_type)

    # -- Node access ------------------------------------------------------

    @property
    def selection_node(self) -> SelectionNode:
        return self._node

    @property
    def schema_type(self) -> SchemaType:
        return self._node.schema_type

    @property
    def field_map(self):
        return self._node.field_map

    @property
    def directive_map(self):
        return self._node.directive_map

    @property
    def variable_type_map(self) -> dict[str, str]:
        return self._node.variable_type_map

    def find_field(self, field_key: str):
        return self._node.find_field(field_key)

    def find_fields_by_name(self, field_name: str):
        return self._node.find_fields_by_name(field_name)

    def find_field_by_name(self, field_name: str):
        return self._node.find_field_by_name(field_name)

    def to_fragment_string(self) -> str:
        return self._node.to_fragment_string()

    def to_json(self) -> str:
        return self._node.to_json()

    def __str__(self) -> str:
        return str(self._node)

    def __repr__(self) -> str:
        return f"Selection({self.schema_type.name!r}, fields={list(self.field_map)!r})"

    # -- Field access -----------------------------------------------------

    def __getattr__(self, name: str):
        if name in Selection.__slots__ or (name.startswith("__") and name != TYPENAME_FIELD):
            raise AttributeError(name)
        return self._resolve(name)

    def __getitem__(self, name: str):
        return self._resolve(name)

    def __dir__(self):
        return sorted(set(super().__dir__()) | set(self._dispatch.accessors))

    def _resolve(self, name: str):
        accessor = self._dispatch.get(name)
        if accessor.kind == AccessorKind.SCALAR:
            return Selection(self._node.add_field(name))
        if accessor.kind == AccessorKind.METHOD:
            return _MethodCall(self, accessor.field)
        return _AssociationCall(self, accessor.field)

    def _with_child_root(self, schema_field: SchemaField) -> "Selection":
        context = self._node.context
        target_name = schema_field.connection_type_name or schema_field.target_type_name
        if target_name is None:
            raise SchemaDefinitionError(f'Field "{schema_field.name}" has no target type')
        target = context.registry.resolve(target_name)
        if target is None:
            raise SchemaDefinitionError(
                f'Cannot resolve schema type "{target_name}" for field '
                f'"{schema_field.name}" on "{self.schema_type.name}"'
            )
        return create_selection(target, context.enum_input_metadata, registry=context.registry)

    # -- Built-ins --------------------------------------------------------

    def omit(self, *field_names: str) -> "Selection":
        """Remove fields (by name or alias)."""
        node = self._node
        for field_name in field_names:
            node = node.remove_field(field_name)
        return Selection(node)

    def alias(self, alias: str) -> "Selection":
        """Present the field selected just before under another name."""
        return self._rebind_last_field("alias", alias=alias)

    def directive(self, directive: str, args: DirectiveArgs = None) -> "Selection":
        """Attach a directive to the preceding field, or to the selection if there is none."""
        if not self._node.last_field:
            return Selection(self._node.add_directive(directive, args))
        return self._rebind_last_field("directive", directive=(directive, args))

    def include(self, condition: bool | ParameterRef) -> "Selection":
        return self.directive("include", {"if": _boolean_condition(condition)})

    def skip(self, condition: bool | ParameterRef) -> "Selection":
        return self.directive("skip", {"if": _boolean_condition(condition)})

    def on(self, child: "Selection | SelectionNode | FragmentSpread", fragment_name: str | None = None) -> "Selection":
        """Embed another selection, as a named fragment when a name is given.

        ``__typename`` is selected first whenever the child's type differs
        from this selection's type, so the returned branch can be told apart.
        """
        if isinstance(child, FragmentSpread):
            fragment_name = child.name
            child = child.selection
        child_node = unwrap_node(child)

        node = self._node
        if child_node.schema_type.name != node.schema_type.name:
            node = node.add_field(TYPENAME_FIELD)
        return Selection(node.add_embedded(child_node, fragment_name))

    def _rebind_last_field(
        self,
        operation: str,
        alias: str | None = None,
        directive: tuple[str, DirectiveArgs] | None = None,
    ) -> "Selection":
        node = self._node
        if not node.last_field:
            raise SelectionUsageError(f"{operation}() requires a preceding field selection")

        previous = node.last_field_options or FieldOptionsValue()
        directives = dict(previous.directives)
        if directive is not None:
            name, args = directive
            if name.startswith("@"):
                raise SelectionUsageError("directive name should not start with '@', it will be prepended automatically")
            directives[name] = dict(args) if args else None
        options = FieldOptionsValue(
            alias=alias if alias is not None else previous.alias,
            directives=directives,
        )
        return Selection(node.rebind_last_field(options))


def _boolean_condition(condition: bool | ParameterRef):
    if isinstance(condition, ParameterRef) and condition.graphql_type_name is None:
        return ParameterRef.of(condition.name, "Boolean!")
    return condition


class _MethodCall:
    """Pending call of a scalar field that declares arguments."""

    __slots__ = ("_selection", "_field")

    def __init__(self, selection: Selection, schema_field: SchemaField):
        self._selection = selection
        self._field = schema_field

    def __call__(self, *args: Any, **kwargs: Any) -> Selection:
        arg_values: dict[str, Any] | None = None
        options: FieldOptionsValue | None = None
        for arg in args:
            if isinstance(arg, FieldOptions):
                options = arg.value
            elif callable(arg):
                options = arg(FieldOptions()).value
            elif isinstance(arg, Mapping):
                arg_values = {**(arg_values or {}), **arg}
            else:
                raise TypeError(f'Unexpected argument for field "{self._field.name}": {arg!r}')
        if kwargs:
            arg_values = {**(arg_values or {}), **kwargs}
        if arg_values is None:
            arg_values = _auto_parameters(self._field)

        node = self._selection._node.add_field(self._field.name, arg_values, None, options)
        return Selection(node)


class _AssociationCall:
    """Pending call of a field that needs a child selection."""

    __slots__ = ("_selection", "_field")

    def __init__(self, selection: Selection, schema_field: SchemaField):
        self._selection = selection
        self._field = schema_field

    def __call__(self, *args: Any, **kwargs: Any) -> Selection:
        arg_values: dict[str, Any] | None = None
        child: SelectionNode | None = None
        builder: Callable[[Selection], Any] | None = None
        for arg in args:
            if isinstance(arg, (Selection, SelectionNode)):
                child = unwrap_node(arg)
            elif callable(arg):
                builder = arg
            elif isinstance(arg, Mapping):
                arg_values = {**(arg_values or {}), **arg}
            else:
                raise TypeError(f'Unexpected argument for field "{self._field.name}": {arg!r}')
        if kwargs:
            arg_values = {**(arg_values or {}), **kwargs}

        if builder is not None:
            child = unwrap_node(builder(self._selection._with_child_root(self._field)))
        if child is None:
            raise SelectionUsageError(f'Field "{self._field.name}" requires a child selection')
        if arg_values is None:
            arg_values = _auto_parameters(self._field)

        node = self._selection._node.add_field(self._field.name, arg_values, child)
        return Selection(node)
