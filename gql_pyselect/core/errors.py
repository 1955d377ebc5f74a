"""Exception types raised by the selection runtime."""

from typing import Any


class GqlSelectError(Exception):
    """Base class for all gql-pyselect errors."""


class SchemaDefinitionError(GqlSelectError, ValueError):
    """A schema type or enum/input type was declared with an illegal shape."""


class CircularResolutionError(SchemaDefinitionError):
    """A schema type factory re-entered its own resolution."""


class SelectionUsageError(GqlSelectError, ValueError):
    """A selection operation was used in a way that can never be valid."""


class UnknownFieldError(SelectionUsageError, AttributeError):
    """A field name that the schema type does not declare."""

    def __init__(self, type_name: str, field_name: str):
        self.type_name = type_name
        self.field_name = field_name
        super().__init__(f'Unknown field "{field_name}" of type "{type_name}"')


class SerializationError(GqlSelectError, ValueError):
    """A selection could not be rendered to request text."""


class VariableTypeConflictError(SerializationError):
    """One variable name was bound to two different GraphQL types."""


class FragmentConflictError(SerializationError):
    """One fragment name was bound to two different selections."""


class ExecutorNotConfiguredError(GqlSelectError, RuntimeError):
    """Execution was requested without an executor or subscriber."""


class GraphQLError(GqlSelectError):
    """Exception raised for GraphQL errors."""

    def __init__(self, message: str, errors: list[dict[str, Any]]):
        self.message = message
        self.errors = errors
        super().__init__(message)
