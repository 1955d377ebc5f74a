"""Persistent selection tree.

A ``SelectionNode`` is one operation (add a field, remove a field, embed a
fragment, attach a directive) on top of either a root ``SelectionContext``
or a previous node. Nodes never change after construction, so one node can
be extended in several directions without the branches seeing each other.

The chain is folded lazily, oldest operation first, into ``field_map``:
adds overwrite earlier entries at the same key (alias or name) and move to
the position of the surviving add, removes delete the key, fragment spreads
accumulate their children under the spread text.
"""

import json
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .enum_metadata import EnumInputMetadata
from .errors import SelectionUsageError
from .field_options import DirectiveArgs, FieldOptionsValue
from .schema import SchemaRegistry, SchemaType, default_registry
from .serializer import SerializedResult, serialize

TYPENAME_FIELD = "__typename"
SPREAD_PREFIX = "..."
INLINE_SPREAD_PREFIX = "... on "


@dataclass(frozen=True)
class SelectionContext:
    """Root of a selection chain: the owning type and its metadata."""
    schema_type: SchemaType
    enum_input_metadata: EnumInputMetadata
    # Member type names when the root type is a union
    union_item_types: tuple[str, ...] | None = None
    registry: SchemaRegistry = default_registry


@dataclass(frozen=True)
class FieldSelection:
    """One entry of a folded field map."""
    name: str
    arg_graphql_types: Mapping[str, str] | None = None
    args: Mapping[str, Any] | None = None
    options: FieldOptionsValue | None = None
    plural: bool = False
    child_selections: tuple["SelectionNode", ...] = ()

    @property
    def alias(self) -> str | None:
        return self.options.alias if self.options else None

    @property
    def is_spread(self) -> bool:
        return self.name.startswith(SPREAD_PREFIX)


class SelectionNode:
    """Immutable node of a selection chain."""

    __slots__ = (
        "_prev",
        "_context",
        "_negative",
        "_field",
        "_args",
        "_child",
        "_options",
        "_directive",
        "_directive_args",
        "_field_map",
        "_directive_map",
        "_result",
        "_lock",
    )

    def __init__(
        self,
        parent: "SelectionContext | SelectionNode",
        negative: bool = False,
        field: str = "",
        args: Mapping[str, Any] | None = None,
        child: "SelectionNode | None" = None,
        options: FieldOptionsValue | None = None,
        directive: str | None = None,
        directive_args: DirectiveArgs = None,
    ):
        if isinstance(parent, SelectionNode):
            self._prev = parent
            self._context = parent._context
        else:
            self._prev = None
            self._context = parent
        self._negative = negative
        self._field = field
        self._args = dict(args) if args is not None else None
        self._child = child
        self._options = options
        self._directive = directive
        self._directive_args = dict(directive_args) if directive_args else None
        self._field_map: dict[str, FieldSelection] | None = None
        self._directive_map: dict[str, DirectiveArgs] | None = None
        self._result: SerializedResult | None = None
        self._lock = threading.RLock()

    # -- Context ----------------------------------------------------------

    @property
    def context(self) -> SelectionContext:
        return self._context

    @property
    def schema_type(self) -> SchemaType:
        return self._context.schema_type

    @property
    def enum_input_metadata(self) -> EnumInputMetadata:
        return self._context.enum_input_metadata

    @property
    def union_item_types(self) -> tuple[str, ...] | None:
        return self._context.union_item_types or None

    @property
    def last_field(self) -> str:
        """Name of the field this node adds, or '' if it adds none."""
        if self._negative or self._field.startswith(SPREAD_PREFIX):
            return ""
        return self._field

    @property
    def last_field_key(self) -> str:
        """Key under which this node's field lands in the field map."""
        if not self.last_field:
            return ""
        if self._options is not None and self._options.alias:
            return self._options.alias
        return self._field

    # -- Builders ---------------------------------------------------------

    def add_field(
        self,
        field: str,
        args: Mapping[str, Any] | None = None,
        child: "SelectionNode | None" = None,
        options: FieldOptionsValue | None = None,
    ) -> "SelectionNode":
        return SelectionNode(self, False, field, args, child, options)

    def remove_field(self, field: str) -> "SelectionNode":
        """Remove a field (by name or alias) from the selection.

        Raises:
            SelectionUsageError: If ``field`` is ``__typename``.
        """
        if field == TYPENAME_FIELD:
            raise SelectionUsageError(f"{TYPENAME_FIELD} cannot be removed")
        return SelectionNode(self, True, field)

    def add_embedded(self, child: "SelectionNode", fragment_name: str | None = None) -> "SelectionNode":
        """Embed another selection as a fragment spread.

        A ``fragment_name`` makes it a named fragment. Without one, a child of
        the same type (or a union root) is spread anonymously and any other
        child becomes an inline ``... on Type`` fragment.
        """
        if fragment_name is not None:
            if not fragment_name:
                raise SelectionUsageError("fragment_name cannot be ''")
            if fragment_name.startswith("on "):
                raise SelectionUsageError("fragment_name cannot start with 'on '")
            field = f"{SPREAD_PREFIX} {fragment_name}"
        elif child.schema_type.name == self.schema_type.name or child.union_item_types is not None:
            field = SPREAD_PREFIX
        else:
            field = f"{INLINE_SPREAD_PREFIX}{child.schema_type.name}"
        return SelectionNode(self, False, field, child=child)

    def add_directive(self, directive: str, args: DirectiveArgs = None) -> "SelectionNode":
        if directive.startswith("@"):
            raise SelectionUsageError("directive name should not start with '@', it will be prepended automatically")
        return SelectionNode(self, directive=directive, directive_args=args)

    def _remove_key(self, key: str) -> "SelectionNode":
        # Rebinding a field under new options; skips the __typename guard
        return SelectionNode(self, True, key)

    @property
    def last_field_options(self) -> FieldOptionsValue | None:
        return self._options if self.last_field else None

    def rebind_last_field(self, options: FieldOptionsValue) -> "SelectionNode":
        """Replace the field added by this node with a copy under new options.

        Arguments and child selection are kept; the entry moves to the key
        given by the new alias.
        """
        if not self.last_field:
            raise SelectionUsageError("a preceding field selection is required")
        return self._remove_key(self.last_field_key).add_field(self._field, self._args, self._child, options)

    # -- Folded views -----------------------------------------------------

    @property
    def field_map(self) -> dict[str, FieldSelection]:
        if self._field_map is None:
            with self._lock:
                if self._field_map is None:
                    self._field_map = self._build_field_map()
        return self._field_map

    @property
    def directive_map(self) -> dict[str, DirectiveArgs]:
        if self._directive_map is None:
            with self._lock:
                if self._directive_map is None:
                    self._directive_map = self._build_directive_map()
        return self._directive_map

    @property
    def variable_type_map(self) -> dict[str, str]:
        return self.serialized().variable_type_map

    def _chain(self) -> list["SelectionNode"]:
        nodes = []
        node: SelectionNode | None = self
        while node is not None:
            nodes.append(node)
            node = node._prev
        return nodes

    def _build_field_map(self) -> dict[str, FieldSelection]:
        schema_fields = self.schema_type.fields
        table: dict[str, FieldSelection] = {}
        spread_children: dict[str, list[SelectionNode]] = {}

        for node in reversed(self._chain()):
            if not node._field:
                continue
            if node._negative:
                table.pop(node._field, None)
            elif node._field.startswith(SPREAD_PREFIX):
                key = node._field
                children = spread_children.get(key)
                if children is None or key not in table:
                    children = spread_children[key] = []
                    table[key] = FieldSelection(name=node._field)
                children.append(node._child)
            else:
                key = node.last_field_key
                schema_field = schema_fields.get(node._field)
                table.pop(key, None)
                table[key] = FieldSelection(
                    name=node._field,
                    arg_graphql_types=schema_field.arg_graphql_types if schema_field else None,
                    args=node._args,
                    options=node._options,
                    plural=schema_field.is_plural if schema_field else False,
                    child_selections=(node._child,) if node._child is not None else (),
                )

        for key, children in spread_children.items():
            if key in table:
                table[key] = FieldSelection(name=key, child_selections=tuple(children))
        return table

    def _build_directive_map(self) -> dict[str, DirectiveArgs]:
        directives: dict[str, DirectiveArgs] = {}
        for node in self._chain():
            if node._directive is not None and node._directive not in directives:
                directives[node._directive] = node._directive_args
        return directives

    # -- Lookups ----------------------------------------------------------

    def find_field(self, field_key: str) -> FieldSelection | None:
        """Find a field by key, looking inside fragment spreads as well."""
        found = self.field_map.get(field_key)
        if found is not None:
            return found
        for entry in self.field_map.values():
            if entry.is_spread:
                for child in entry.child_selections:
                    deeper = child.find_field(field_key)
                    if deeper is not None:
                        return deeper
        return None

    def find_fields_by_name(self, field_name: str) -> list[FieldSelection]:
        """Return every field with the declared name, including aliased ones."""
        found: list[FieldSelection] = []
        for entry in self.field_map.values():
            if entry.name == field_name:
                found.append(entry)
            elif entry.is_spread:
                for child in entry.child_selections:
                    found.extend(child.find_fields_by_name(field_name))
        return found

    def find_field_by_name(self, field_name: str) -> FieldSelection | None:
        """Strict lookup: more than one match is an error."""
        found = self.find_fields_by_name(field_name)
        if len(found) > 1:
            raise SelectionUsageError(
                f'Too many fields named "{field_name}" in selection of type "{self.schema_type.name}"'
            )
        return found[0] if found else None

    # -- Serialization ----------------------------------------------------

    def serialized(self) -> SerializedResult:
        if self._result is None:
            with self._lock:
                if self._result is None:
                    self._result = serialize(self)
        return self._result

    def to_fragment_string(self) -> str:
        return self.serialized().fragment_text

    def to_json(self) -> str:
        result = self.serialized()
        return json.dumps({
            "text": result.text,
            "fragmentText": result.fragment_text,
            "variableTypeMap": result.variable_type_map,
        })

    def __str__(self) -> str:
        return self.serialized().text

    def __repr__(self) -> str:
        return f"SelectionNode({self.schema_type.name!r}, fields={list(self.field_map)!r})"


class FragmentSpread:
    """A selection marked for rendering as a named fragment.

    Example:
        post_fields = FragmentSpread("PostFields", post.id.title)
        query.posts(lambda p: p.on(post_fields))
    """

    def __init__(self, name: str, selection: Any):
        self.name = name
        self.selection = selection

    def __repr__(self) -> str:
        return f"FragmentSpread({self.name!r})"


def unwrap_node(selection: Any) -> SelectionNode:
    """Return the ``SelectionNode`` behind a node or a resolver selection."""
    if isinstance(selection, SelectionNode):
        return selection
    node = getattr(selection, "selection_node", None)
    if isinstance(node, SelectionNode):
        return node
    raise TypeError(f"Expected a selection, got {type(selection).__name__}")
