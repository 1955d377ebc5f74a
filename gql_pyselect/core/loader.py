"""Schema loader using graphql-core.

Reads GraphQL SDL (a string, a ``GraphQLSchema``, or ``.graphql`` /
``.graphqls`` files) and populates a ``SchemaRegistry`` plus the enum/input
metadata the serializer needs. Types are registered as lazy factories and
only built when first selected.

Classification:
    - CONNECTION: has an ``edges`` field that is a list of objects with a
      ``node`` field
    - EDGE: the element type of a connection's ``edges``
    - EMBEDDED: an object or interface type without an id field; fields of
      that type are selected like scalars but still take a child selection
    - OBJECT: everything else (including unions and the root types)
"""

import logging
import os
from dataclasses import dataclass, field

from graphql import (
    GraphQLEnumType,
    GraphQLField,
    GraphQLInputObjectType,
    GraphQLInterfaceType,
    GraphQLList,
    GraphQLNamedType,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
    GraphQLUnionType,
    build_schema,
    get_named_type,
)

from .enum_metadata import EnumInputMetadata, EnumInputMetadataBuilder
from .errors import SchemaDefinitionError
from .resolver import Selection, create_selection
from .schema import (
    FieldDescriptor,
    SchemaFieldCategory,
    SchemaRegistry,
    SchemaType,
    SchemaTypeCategory,
    create_schema_type,
)

logger = logging.getLogger(__name__)

SCHEMA_EXTENSIONS = (".graphql", ".graphqls")
OPERATION_ROOT_NAMES = ("Query", "Mutation", "Subscription")

CompositeType = GraphQLObjectType | GraphQLInterfaceType | GraphQLUnionType


@dataclass
class LoaderOptions:
    """Configuration for schema classification."""
    # Type name -> name of its id field (default: "id")
    id_field_map: dict[str, str] = field(default_factory=dict)
    # Types to skip entirely
    excluded_types: list[str] = field(default_factory=list)


@dataclass
class _Connection:
    edge_type: GraphQLObjectType | GraphQLInterfaceType
    node_type: CompositeType


@dataclass
class LoadedSchema:
    """Runtime metadata built from one GraphQL schema."""
    schema: GraphQLSchema
    registry: SchemaRegistry
    enum_input_metadata: EnumInputMetadata
    union_item_types: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def selection(self, type_name: str) -> Selection:
        """Return an empty root selection of the named type."""
        return create_selection(
            self.registry.require(type_name),
            self.enum_input_metadata,
            self.union_item_types.get(type_name),
            registry=self.registry,
        )

    def query(self) -> Selection:
        return self.selection("Query")

    def mutation(self) -> Selection:
        return self.selection("Mutation")

    def subscription(self) -> Selection:
        return self.selection("Subscription")


class SchemaLoader:
    """Loads GraphQL schema files into runtime metadata."""

    def __init__(self, schema_path: str, options: LoaderOptions | None = None):
        """Initialize a loader with a path to a schema file or directory."""
        self.schema_path = schema_path
        self.options = options or LoaderOptions()

    def load(self, registry: SchemaRegistry | None = None) -> LoadedSchema:
        sources = []
        for file_path in self._collect_schema_files():
            with open(file_path) as f:
                sources.append(f.read())
        if not sources:
            raise SchemaDefinitionError(f"No schema files found at {self.schema_path}")
        return load_schema("\n".join(sources), self.options, registry=registry)

    def _collect_schema_files(self) -> list[str]:
        """Collect all schema files from path."""
        files = []
        if os.path.isfile(self.schema_path):
            if self.schema_path.endswith(SCHEMA_EXTENSIONS):
                files.append(self.schema_path)
        else:
            for root, _, filenames in os.walk(self.schema_path):
                for filename in filenames:
                    if filename.endswith(SCHEMA_EXTENSIONS):
                        files.append(os.path.join(root, filename))
        return sorted(files)


def load_schema(
    source: str | GraphQLSchema,
    options: LoaderOptions | None = None,
    *,
    registry: SchemaRegistry | None = None,
) -> LoadedSchema:
    """Build runtime metadata for a schema given as SDL text or a ``GraphQLSchema``."""
    options = options or LoaderOptions()
    schema = build_schema(source) if isinstance(source, str) else source
    registry = registry if registry is not None else SchemaRegistry()
    return _SchemaClassifier(schema, options, registry).run()


class _SchemaClassifier:

    def __init__(self, schema: GraphQLSchema, options: LoaderOptions, registry: SchemaRegistry):
        self.schema = schema
        self.options = options
        self.registry = registry
        self.connections: dict[str, _Connection] = {}
        self.edge_types: set[str] = set()
        self.embedded_types: set[str] = set()
        self.id_fields: dict[str, str] = {}

    def run(self) -> LoadedSchema:
        self._validate_id_field_map()
        composite_types: list[CompositeType] = []
        metadata = EnumInputMetadataBuilder()

        for type_name, named_type in self.schema.type_map.items():
            if type_name.startswith("__") or type_name in self.options.excluded_types:
                continue
            if isinstance(named_type, (GraphQLObjectType, GraphQLInterfaceType, GraphQLUnionType)):
                composite_types.append(named_type)
            elif isinstance(named_type, GraphQLEnumType):
                metadata.add(type_name)
            elif isinstance(named_type, GraphQLInputObjectType):
                metadata.add(type_name, self._input_meta_fields(named_type))

        for named_type in composite_types:
            if isinstance(named_type, (GraphQLObjectType, GraphQLInterfaceType)):
                connection = self._parse_connection_type(named_type)
                if connection is not None:
                    self.connections[named_type.name] = connection
                    self.edge_types.add(connection.edge_type.name)

        for named_type in composite_types:
            self._classify_entity(named_type)

        union_item_types = {}
        for named_type in composite_types:
            if isinstance(named_type, GraphQLUnionType):
                union_item_types[named_type.name] = tuple(t.name for t in named_type.types)
            self.registry.register_factory(named_type.name, self._factory(named_type))

        logger.debug("Loaded %d selectable types", len(composite_types))
        return LoadedSchema(
            schema=self.schema,
            registry=self.registry,
            enum_input_metadata=metadata.build(),
            union_item_types=union_item_types,
        )

    def _classify_entity(self, named_type: CompositeType):
        name = named_type.name
        if name in self.connections or name in self.edge_types or name in OPERATION_ROOT_NAMES:
            return
        if not isinstance(named_type, (GraphQLObjectType, GraphQLInterfaceType)):
            return

        id_field_name = self._configured_id_field(named_type) or "id"
        if id_field_name in named_type.fields:
            self.id_fields[name] = id_field_name
        else:
            self.embedded_types.add(name)

    def _validate_id_field_map(self):
        for type_name, field_name in self.options.id_field_map.items():
            named_type = self.schema.type_map.get(type_name)
            if not isinstance(named_type, (GraphQLObjectType, GraphQLInterfaceType)):
                raise SchemaDefinitionError(
                    f"id_field_map contains an illegal key '{type_name}', "
                    "that is neither a graphql object type nor graphql interface type"
                )
            id_field = named_type.fields.get(field_name)
            if id_field is None:
                raise SchemaDefinitionError(
                    f"id_field_map['{type_name}'] is illegal, "
                    f"there is no field named '{field_name}' in the type '{type_name}'"
                )
            if not isinstance(get_named_type(id_field.type), (GraphQLScalarType, GraphQLEnumType)):
                raise SchemaDefinitionError(
                    f"id_field_map['{type_name}'] is illegal, "
                    f"the field '{field_name}' of the type '{type_name}' is not scalar"
                )

    def _configured_id_field(self, named_type: GraphQLObjectType | GraphQLInterfaceType) -> str | None:
        """Configured id field of a type, inherited from its interfaces when not set on the type."""
        configured = self.options.id_field_map.get(named_type.name)
        if configured is not None:
            return configured

        source = None
        pending = list(named_type.interfaces)
        seen = set()
        while pending:
            interface = pending.pop(0)
            if interface.name in seen:
                continue
            seen.add(interface.name)
            pending.extend(interface.interfaces)
            inherited = self.options.id_field_map.get(interface.name)
            if inherited is None:
                continue
            if configured is None:
                configured, source = inherited, interface.name
            elif inherited != configured:
                raise SchemaDefinitionError(
                    f"Conflict id field configuration: {source}.{configured} and {interface.name}.{inherited}"
                )
        return configured

    def _input_meta_fields(self, input_type: GraphQLInputObjectType) -> list[tuple[str, str]]:
        """Input fields whose type is itself an enum or input type."""
        meta_fields = []
        for field_name, input_field in input_type.fields.items():
            field_type = get_named_type(input_field.type)
            if isinstance(field_type, (GraphQLEnumType, GraphQLInputObjectType)) \
                    and field_type.name not in self.options.excluded_types:
                meta_fields.append((field_name, field_type.name))
        return meta_fields

    def _factory(self, named_type: CompositeType):
        def build() -> SchemaType:
            category = self._type_category(named_type)
            super_types = []
            # Connections and edges never carry supertypes
            if category not in (SchemaTypeCategory.CONNECTION, SchemaTypeCategory.EDGE):
                super_types = [
                    self.registry.require(interface.name)
                    for interface in getattr(named_type, "interfaces", ())
                    if interface.name not in self.options.excluded_types
                ]
            fields = getattr(named_type, "fields", {})
            return create_schema_type(
                named_type.name,
                category,
                super_types,
                [self._field_descriptor(named_type, name, f) for name, f in fields.items()],
                registry=self.registry,
            )
        return build

    def _type_category(self, named_type: CompositeType) -> SchemaTypeCategory:
        if named_type.name in self.embedded_types:
            return SchemaTypeCategory.EMBEDDED
        if named_type.name in self.connections:
            return SchemaTypeCategory.CONNECTION
        if named_type.name in self.edge_types:
            return SchemaTypeCategory.EDGE
        return SchemaTypeCategory.OBJECT

    def _field_descriptor(self, owner: CompositeType, field_name: str, graphql_field: GraphQLField) -> FieldDescriptor:
        target = get_named_type(graphql_field.type)
        is_composite = isinstance(target, (GraphQLObjectType, GraphQLInterfaceType, GraphQLUnionType))
        args = {arg_name: str(arg.type) for arg_name, arg in graphql_field.args.items()} or None

        target_type_name = connection_type_name = edge_type_name = None
        connection = self.connections.get(target.name) if is_composite else None
        if connection is not None:
            connection_type_name = target.name
            edge_type_name = connection.edge_type.name
            target_type_name = connection.node_type.name
        elif is_composite:
            target_type_name = target.name

        return FieldDescriptor(
            name=field_name,
            category=self._field_category(owner, field_name, graphql_field),
            args=args,
            target_type_name=target_type_name,
            connection_type_name=connection_type_name,
            edge_type_name=edge_type_name,
            undefinable=not isinstance(graphql_field.type, GraphQLNonNull),
        )

    def _field_category(self, owner: CompositeType, field_name: str, graphql_field: GraphQLField) -> SchemaFieldCategory:
        core_type = _unwrap_non_null(graphql_field.type)
        if owner.name in self.edge_types and field_name == "node":
            return SchemaFieldCategory.REFERENCE
        if isinstance(core_type, GraphQLNamedType):
            if core_type.name in self.embedded_types:
                return SchemaFieldCategory.SCALAR
            if core_type.name in self.connections:
                return SchemaFieldCategory.CONNECTION

        if isinstance(core_type, GraphQLList):
            element_type = _unwrap_non_null(core_type.of_type)
            if isinstance(element_type, (GraphQLObjectType, GraphQLInterfaceType, GraphQLUnionType)):
                return SchemaFieldCategory.LIST
            return SchemaFieldCategory.SCALAR

        if isinstance(core_type, (GraphQLObjectType, GraphQLInterfaceType, GraphQLUnionType)):
            return SchemaFieldCategory.REFERENCE
        if self.id_fields.get(owner.name) == field_name:
            return SchemaFieldCategory.ID
        return SchemaFieldCategory.SCALAR

    @staticmethod
    def _parse_connection_type(named_type: GraphQLObjectType | GraphQLInterfaceType) -> _Connection | None:
        edges = named_type.fields.get("edges")
        if edges is None:
            return None

        list_type = _unwrap_non_null(edges.type)
        if not isinstance(list_type, GraphQLList):
            return None
        edge_type = _unwrap_non_null(list_type.of_type)
        if not isinstance(edge_type, GraphQLObjectType):
            return None
        node = edge_type.fields.get("node")
        if node is None:
            return None

        if not isinstance(edges.type, GraphQLNonNull):
            logger.warning('The type "%s" is connection, its field "edges" must be not-null list', named_type.name)
        if not isinstance(list_type.of_type, GraphQLNonNull):
            logger.warning('The type "%s" is connection, element of its field "edges" must be not-null', named_type.name)
        if not isinstance(node.type, GraphQLNonNull):
            logger.warning('The type "%s" is edge, its field "node" must be non-null', edge_type.name)

        node_type = _unwrap_non_null(node.type)
        if not isinstance(node_type, (GraphQLObjectType, GraphQLInterfaceType, GraphQLUnionType)):
            raise SchemaDefinitionError(
                f'The type "{edge_type.name}" is edge, its field "node" must be object, interface, union '
                "or their non-null wrappers"
            )

        cursor = edge_type.fields.get("cursor")
        if cursor is None:
            logger.warning('The type "%s" is edge, it must define a field named "cursor"', edge_type.name)
        elif get_named_type(cursor.type).name != "String" or isinstance(_unwrap_non_null(cursor.type), GraphQLList):
            raise SchemaDefinitionError(f'The type "{edge_type.name}" is edge, its field "cursor" must be string')

        return _Connection(edge_type=edge_type, node_type=node_type)


def _unwrap_non_null(graphql_type):
    return graphql_type.of_type if isinstance(graphql_type, GraphQLNonNull) else graphql_type
