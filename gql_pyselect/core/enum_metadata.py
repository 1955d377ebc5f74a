"""Enum / input type metadata.

Argument literals are rendered differently depending on their declared
GraphQL type:

- enum values are written bare: ``status: ACTIVE``
- input objects recurse into their fields: ``input: {name: "foo"}``
- every other string is quoted: ``name: "foo"``

The metadata table built here lets the serializer tell these cases apart.

Example:
    builder = EnumInputMetadataBuilder()
    builder.add("Status")
    builder.add("CreatePostInput", [("title", "String"), ("status", "Status")])
    metadata = builder.build()
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from .errors import SchemaDefinitionError


class MetaKind(Enum):
    ENUM = "ENUM"
    INPUT = "INPUT"


@dataclass(eq=False)
class EnumInputMetaType:
    """Metadata of one enum or input type."""
    kind: MetaKind
    name: str
    # INPUT only: field name -> metadata of the field's enum/input type
    fields: dict[str, "EnumInputMetaType"] | None = field(default=None, repr=False)


EnumInputMetadata = Mapping[str, EnumInputMetaType]


class EnumInputMetadataBuilder:
    """Collects enum and input type declarations into an ``EnumInputMetadata``.

    Input fields are given as ``(field_name, type_name)`` pairs. Only fields
    whose type is itself an enum or input type need to be listed.
    """

    def __init__(self):
        self._type_map: dict[str, list[tuple[str, str]] | None] = {}

    def add(self, name: str, fields: Iterable[tuple[str, str]] | None = None) -> "EnumInputMetadataBuilder":
        """Register a type: no ``fields`` means ENUM, otherwise INPUT."""
        self._type_map[name] = list(fields) if fields is not None else None
        return self

    def build(self) -> dict[str, EnumInputMetaType]:
        result: dict[str, EnumInputMetaType] = {}

        def resolve(name: str) -> EnumInputMetaType:
            existing = result.get(name)
            if existing is not None:
                return existing
            if name not in self._type_map:
                raise SchemaDefinitionError(f"Unknown enum/input type: '{name}'")

            raw_fields = self._type_map[name]
            if raw_fields is None:
                meta = EnumInputMetaType(MetaKind.ENUM, name)
                result[name] = meta
                return meta

            # Register before recursing so self-referencing inputs terminate
            meta = EnumInputMetaType(MetaKind.INPUT, name, {})
            result[name] = meta
            for field_name, type_name in raw_fields:
                meta.fields[field_name] = resolve(type_name)
            return meta

        for name in self._type_map:
            resolve(name)
        return result


def meta_type_of(metadata: EnumInputMetadata | None, graphql_type: str | None) -> EnumInputMetaType | None:
    """Look up the metadata of a GraphQL type text such as ``[Status!]!``."""
    if not metadata or not graphql_type:
        return None
    return metadata.get(graphql_type.replace("[", "").replace("]", "").replace("!", ""))
