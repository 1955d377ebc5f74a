"""Per-field alias and directive configuration.

``FieldOptions`` is a small immutable chain: every call returns a new
instance pointing back at its predecessor. ``value`` folds the chain into a
``FieldOptionsValue``.

Example:
    options = FieldOptions().alias("headline").directive("include", {"if": True})

    # Scalar fields with arguments accept an options callback
    author.avatar({"size": 64}, lambda o: o.alias("thumbnail"))
"""

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import SelectionUsageError

DirectiveArgs = Mapping[str, Any] | None


@dataclass(frozen=True)
class FieldOptionsValue:
    """Folded options: the presentation alias and the directive set."""
    alias: str | None = None
    directives: Mapping[str, DirectiveArgs] = field(default_factory=dict)


class FieldOptions:
    """Chainable builder for ``FieldOptionsValue``."""

    __slots__ = ("_prev", "_alias", "_directive", "_directive_args", "_value", "_lock")

    def __init__(
        self,
        prev: "FieldOptions | None" = None,
        alias: str | None = None,
        directive: str | None = None,
        directive_args: DirectiveArgs = None,
    ):
        self._prev = prev
        self._alias = alias
        self._directive = directive
        self._directive_args = directive_args
        self._value: FieldOptionsValue | None = None
        self._lock = threading.Lock()

    def alias(self, alias: str) -> "FieldOptions":
        return FieldOptions(self, alias=alias)

    def directive(self, directive: str, args: DirectiveArgs = None) -> "FieldOptions":
        if directive.startswith("@"):
            raise SelectionUsageError("directive name should not start with '@', it will be prepended automatically")
        return FieldOptions(self, directive=directive, directive_args=args)

    @property
    def value(self) -> FieldOptionsValue:
        if self._value is None:
            with self._lock:
                if self._value is None:
                    self._value = self._build_value()
        return self._value

    def _build_value(self) -> FieldOptionsValue:
        alias = None
        directives: dict[str, DirectiveArgs] = {}
        node: FieldOptions | None = self
        while node is not None:
            if node._alias is not None and alias is None:
                alias = node._alias
            if node._directive is not None and node._directive not in directives:
                args = node._directive_args
                directives[node._directive] = dict(args) if args else None
            node = node._prev
        return FieldOptionsValue(alias=alias, directives=directives)
