"""Indented text writer with bracketed scopes.

Scopes are opened with a context manager; ``separator()`` only writes
between siblings that were already emitted, so callers never special-case
the first or last element.

Example:
    writer = TextBuilder()
    with writer.scope("arguments"):
        for name, value in args.items():
            writer.separator()
            writer.text(f"{name}: {value}")
"""

from contextlib import contextmanager
from dataclasses import dataclass

SCOPE_BRACKETS = {
    "block": ("{", "}"),
    "arguments": ("(", ")"),
    "array": ("[", "]"),
}

DEFAULT_SEPARATORS = {
    "arguments": ", ",
    "array": ", ",
}


@dataclass
class _ScopeState:
    type: str
    multi_lines: bool
    separator: str | None
    dirty: bool = False


class TextBuilder:
    """Accumulates text, indenting each line by the current scope depth."""

    def __init__(self, indent: str = "  "):
        self.indent = indent
        self._parts: list[str] = []
        self._at_new_line = False
        self._scopes: list[_ScopeState] = []

    def text(self, value: str) -> "TextBuilder":
        scope = self._scopes[-1] if self._scopes else None
        if value and scope is not None and not scope.dirty:
            if scope.multi_lines:
                self._line_break()
            scope.dirty = True

        lines = value.split("\n")
        for index, line in enumerate(lines):
            if line:
                self._flush_indent()
                self._parts.append(line)
            if index < len(lines) - 1:
                self._line_break()
        return self

    @contextmanager
    def scope(
        self,
        type: str,
        multi_lines: bool = False,
        separator: str | None = None,
        prefix: str | None = None,
        suffix: str | None = None,
    ):
        """Open a bracketed scope of the given type for the ``with`` body."""
        if type not in SCOPE_BRACKETS:
            raise ValueError(f"Unknown scope type: {type}")
        open_bracket, close_bracket = SCOPE_BRACKETS[type]

        if prefix:
            self.text(prefix)
        self.text(open_bracket)
        self._scopes.append(
            _ScopeState(
                type=type,
                multi_lines=multi_lines,
                separator=separator if separator is not None else DEFAULT_SEPARATORS.get(type),
            )
        )
        try:
            yield self
        finally:
            self._scopes.pop()
            if multi_lines and not self._at_new_line:
                self._line_break()
            self.text(close_bracket)
            if suffix:
                self.text(suffix)

    def separator(self, value: str | None = None) -> "TextBuilder":
        """Write a separator if something was already written in this scope."""
        if not self._scopes:
            raise RuntimeError("No existing scope")
        scope = self._scopes[-1]
        if scope.dirty:
            sep = value or scope.separator
            if scope.multi_lines:
                if sep and sep.rstrip():
                    self.text(sep.rstrip())
                self._line_break()
            elif sep:
                self.text(sep)
        return self

    def __str__(self) -> str:
        return "".join(self._parts)

    def _flush_indent(self):
        if self._at_new_line:
            self._parts.append(self.indent * len(self._scopes))
            self._at_new_line = False

    def _line_break(self):
        self._parts.append("\n")
        self._at_new_line = True
