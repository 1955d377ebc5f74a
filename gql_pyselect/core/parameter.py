"""Deferred variable references and explicit literal wrappers."""

import re
from dataclasses import dataclass
from typing import Any

from .errors import SelectionUsageError

_NAME_PATTERN = re.compile(r"^[_A-Za-z][_0-9A-Za-z]*$")


@dataclass(frozen=True)
class ParameterRef:
    """Placeholder for a value bound at execution time.

    Rendered as ``$name`` in the request text. The variable's declared type
    is taken from the argument it is passed to, or from
    ``graphql_type_name`` when given (required for directive arguments).
    """
    name: str
    graphql_type_name: str | None = None

    def __post_init__(self):
        if not _NAME_PATTERN.match(self.name):
            raise SelectionUsageError(f"Illegal variable name '{self.name}'")

    @classmethod
    def of(cls, name: str, graphql_type_name: str | None = None) -> "ParameterRef":
        return cls(name, graphql_type_name)

    def __str__(self) -> str:
        return f"${self.name}"


@dataclass(frozen=True)
class StringValue:
    """Literal whose rendering is forced: quoted or written verbatim."""
    value: Any
    quoted: bool = True
