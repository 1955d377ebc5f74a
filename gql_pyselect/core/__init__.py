"""Core modules for building and executing GraphQL selections."""

from .enum_metadata import (
    EnumInputMetadata,
    EnumInputMetadataBuilder,
    EnumInputMetaType,
    MetaKind,
)
from .errors import (
    CircularResolutionError,
    ExecutorNotConfiguredError,
    FragmentConflictError,
    GqlSelectError,
    GraphQLError,
    SchemaDefinitionError,
    SelectionUsageError,
    SerializationError,
    UnknownFieldError,
    VariableTypeConflictError,
)
from .executor import (
    GraphQLExecutor,
    ResponseEnvelope,
    execute,
    set_graphql_executor,
    set_graphql_subscriber,
    subscribe,
)
from .field_options import FieldOptions, FieldOptionsValue
from .loader import LoadedSchema, LoaderOptions, SchemaLoader, load_schema
from .parameter import ParameterRef, StringValue
from .resolver import Selection, create_selection
from .schema import (
    FieldDescriptor,
    SchemaField,
    SchemaFieldCategory,
    SchemaRegistry,
    SchemaType,
    SchemaTypeCategory,
    create_schema_type,
    default_registry,
)
from .selection import FieldSelection, FragmentSpread, SelectionContext, SelectionNode
from .serializer import SerializedResult, SerializeOptions, serialize
from .text_builder import TextBuilder

__all__ = [
    # Schema metadata
    "FieldDescriptor",
    "SchemaField",
    "SchemaFieldCategory",
    "SchemaRegistry",
    "SchemaType",
    "SchemaTypeCategory",
    "create_schema_type",
    "default_registry",
    # Enum/input metadata
    "EnumInputMetadata",
    "EnumInputMetadataBuilder",
    "EnumInputMetaType",
    "MetaKind",
    # Parameters & options
    "FieldOptions",
    "FieldOptionsValue",
    "ParameterRef",
    "StringValue",
    # Selection tree
    "FieldSelection",
    "FragmentSpread",
    "SelectionContext",
    "SelectionNode",
    # Resolver
    "Selection",
    "create_selection",
    # Serialization
    "SerializedResult",
    "SerializeOptions",
    "TextBuilder",
    "serialize",
    # Loader
    "LoadedSchema",
    "LoaderOptions",
    "SchemaLoader",
    "load_schema",
    # Executor
    "GraphQLExecutor",
    "ResponseEnvelope",
    "execute",
    "set_graphql_executor",
    "set_graphql_subscriber",
    "subscribe",
    # Errors
    "CircularResolutionError",
    "ExecutorNotConfiguredError",
    "FragmentConflictError",
    "GqlSelectError",
    "GraphQLError",
    "SchemaDefinitionError",
    "SelectionUsageError",
    "SerializationError",
    "UnknownFieldError",
    "VariableTypeConflictError",
]
