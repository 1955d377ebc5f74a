"""Renders a selection tree to GraphQL request text.

``serialize`` walks the folded field map of a root node and produces the
operation body, the block of named fragments it references, and the types
of every variable it uses. Named fragments are rendered once each, in
rounds, until fragments referenced from fragments are all rendered too.
"""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from numbers import Number
from typing import Any

from pydantic import BaseModel

from .enum_metadata import EnumInputMetadata, EnumInputMetaType, MetaKind, meta_type_of
from .errors import FragmentConflictError, SerializationError, VariableTypeConflictError
from .parameter import ParameterRef, StringValue
from .text_builder import TextBuilder

logger = logging.getLogger(__name__)

_COMPOSITES = (Mapping, list, tuple, set, frozenset, BaseModel)


@dataclass(frozen=True)
class SerializeOptions:
    """Formatting options for rendered request text."""
    indent: str = "  "


@dataclass(frozen=True)
class SerializedResult:
    text: str
    fragment_text: str
    variable_type_map: dict[str, str] = field(default_factory=dict)


def serialize(root: Any, options: SerializeOptions | None = None) -> SerializedResult:
    """Render ``root`` (a ``SelectionNode``) to request text.

    Args:
        root: The root node of the selection tree
        options: Formatting options

    Returns:
        The body text, the fragments text and the variable type map

    Raises:
        VariableTypeConflictError: If one variable is used with two types
        FragmentConflictError: If one fragment name binds two different selections
    """
    options = options or SerializeOptions()
    writer = TextBuilder(options.indent)
    fragment_writer = TextBuilder(options.indent)
    ctx = _SerializeContext(writer)

    if root.directive_map:
        ctx.accept_directives(root.directive_map, leading_space=False)
        writer.text(" ")
    with writer.scope("block", multi_lines=True, suffix="\n"):
        ctx.accept_selection(root)

    ctx.writer = fragment_writer
    rendered: set[str] = set()
    while True:
        pending = [name for name in ctx.fragments if name not in rendered]
        if not pending:
            break
        for name in pending:
            rendered.add(name)
            fragment = ctx.fragments[name]
            fragment_writer.text(f"fragment {name} on {fragment.schema_type.name}")
            ctx.accept_directives(fragment.directive_map)
            fragment_writer.text(" ")
            with fragment_writer.scope("block", multi_lines=True, suffix="\n"):
                ctx.accept_selection(fragment)

    return SerializedResult(
        text=str(writer),
        fragment_text=str(fragment_writer),
        variable_type_map=dict(ctx.variable_type_map),
    )


def is_multi_line(value: Any) -> bool:
    """More than two members, or any member that is itself a composite."""
    members = value.values() if isinstance(value, Mapping) else value
    size = 0
    for member in members:
        if isinstance(member, _COMPOSITES):
            return True
        size += 1
        if size > 2:
            return True
    return False


def _same_selection(left: Any, right: Any) -> bool:
    if left is right:
        return True
    return (
        left.schema_type.name == right.schema_type.name
        and str(left) == str(right)
        and left.to_fragment_string() == right.to_fragment_string()
    )


class _SerializeContext:

    def __init__(self, writer: TextBuilder):
        self.writer = writer
        self.fragments: dict[str, Any] = {}
        self.variable_type_map: dict[str, str] = {}

    def accept_selection(self, node: Any):
        t = self.writer.text
        metadata = node.enum_input_metadata

        for entry in node.field_map.values():
            name = entry.name
            children = entry.child_selections

            if name == "...":
                self._accept_anonymous_spread(children)
                continue

            self.writer.separator()
            if name.startswith("... on "):
                t(name)
                self.accept_directives(_merged_directives(children))
                t(" ")
                with self.writer.scope("block", multi_lines=True):
                    for child in children:
                        self.accept_selection(child)
                continue

            if name.startswith("..."):
                self._register_fragments(name[3:].strip(), children)
                t(name)
                continue

            alias = entry.alias
            if alias and alias != name:
                t(f"{alias}: ")
            t(name)
            if entry.args:
                self.accept_args(entry.args, entry.arg_graphql_types or {}, metadata)
            directives = dict(_merged_directives(children))
            if entry.options is not None:
                directives = {**directives, **entry.options.directives}
            self.accept_directives(directives)
            if children:
                t(" ")
                with self.writer.scope("block", multi_lines=True):
                    for child in children:
                        self.accept_selection(child)

    def _accept_anonymous_spread(self, children):
        for child in children:
            if child.directive_map:
                self.writer.separator()
                self.writer.text("...")
                self.accept_directives(child.directive_map)
                self.writer.text(" ")
                with self.writer.scope("block", multi_lines=True):
                    self.accept_selection(child)
            else:
                self.accept_selection(child)

    def _register_fragments(self, fragment_name: str, children):
        for child in children:
            existing = self.fragments.get(fragment_name)
            if existing is not None and not _same_selection(existing, child):
                raise FragmentConflictError(f"Conflict fragment name {fragment_name}")
            self.fragments.setdefault(fragment_name, child)

    def accept_directives(self, directives: Mapping[str, Any] | None, leading_space: bool = True):
        if not directives:
            return
        for index, (directive, args) in enumerate(directives.items()):
            if leading_space or index:
                self.writer.text(" ")
            self.writer.text(f"@{directive}")
            if args:
                self.accept_args(args, None, None)

    def accept_args(
        self,
        args: Mapping[str, Any],
        arg_graphql_types: Mapping[str, str] | None,
        metadata: EnumInputMetadata | None,
    ):
        t = self.writer.text

        if arg_graphql_types is not None:
            declared = {}
            for arg_name, value in args.items():
                if arg_name in arg_graphql_types:
                    declared[arg_name] = value
                else:
                    logger.warning("Unexpected argument: %s", arg_name)
        else:
            declared = dict(args)
        if not declared:
            return

        with self.writer.scope("arguments", multi_lines=is_multi_line(declared)):
            for arg_name, value in declared.items():
                self.writer.separator()
                type_name = arg_graphql_types.get(arg_name) if arg_graphql_types is not None else None
                t(f"{arg_name}: ")
                self.accept_literal(value, meta_type_of(metadata, type_name), type_name)

    def _bind_variable(self, ref: ParameterRef, declared_type: str | None):
        if declared_type is not None and ref.graphql_type_name and ref.graphql_type_name != declared_type:
            raise VariableTypeConflictError(
                f"Argument '{ref.name}' type conflict: "
                f"'{declared_type}' vs ParameterRef '{ref.graphql_type_name}'"
            )
        type_name = declared_type or ref.graphql_type_name
        if not type_name:
            raise SerializationError(
                f"Variable '{ref.name}' has no declared type, pass ParameterRef.of('{ref.name}', '<Type>')"
            )
        existing = self.variable_type_map.get(ref.name)
        if existing is not None and existing != type_name:
            raise VariableTypeConflictError(
                f"Argument '{ref.name}' type conflict: '{existing}' vs '{type_name}'"
            )
        self.variable_type_map[ref.name] = type_name

    def accept_literal(self, value: Any, meta_type: EnumInputMetaType | None, type_name: str | None = None):
        """Write one literal; ``type_name`` is its declared GraphQL type, if known."""
        t = self.writer.text

        if value is None:
            t("null")
        elif isinstance(value, StringValue):
            t(json.dumps(str(value.value), ensure_ascii=False) if value.quoted else str(value.value))
        elif isinstance(value, ParameterRef):
            self._bind_variable(value, type_name)
            t(f"${value.name}")
        elif isinstance(value, bool):
            t("true" if value else "false")
        elif isinstance(value, Enum):
            t(value.value if isinstance(value.value, str) else value.name)
        elif isinstance(value, Number):
            t(str(value))
        elif isinstance(value, str):
            if meta_type is not None and meta_type.kind == MetaKind.ENUM:
                t(value)
            else:
                t(json.dumps(value, ensure_ascii=False))
        elif isinstance(value, BaseModel):
            self.accept_literal(value.model_dump(by_alias=True, exclude_none=True), meta_type, type_name)
        elif isinstance(value, Mapping):
            field_metas = meta_type.fields if meta_type is not None and meta_type.fields else {}
            with self.writer.scope("block"):
                for key, item in value.items():
                    self.writer.separator(", ")
                    t(f"{key}: ")
                    self.accept_literal(item, field_metas.get(key))
        elif isinstance(value, (list, tuple, set, frozenset)):
            item_type = _list_item_type(type_name)
            with self.writer.scope("array"):
                for item in value:
                    self.writer.separator(", ")
                    self.accept_literal(item, meta_type, item_type)
        else:
            raise SerializationError(f"Unsupported argument value of type {type(value).__name__}")


def _list_item_type(type_name: str | None) -> str | None:
    """``[ID!]!`` -> ``ID!``; ``None`` when the type is unknown or not a list."""
    if not type_name:
        return None
    bare = type_name.rstrip("!")
    if bare.startswith("[") and bare.endswith("]"):
        return bare[1:-1]
    return None


def _merged_directives(children) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for child in children:
        for name, args in child.directive_map.items():
            merged.setdefault(name, args)
    return merged
