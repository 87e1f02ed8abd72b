"""Project enums."""

from __future__ import annotations

from enum import StrEnum


class _EnumMixin(StrEnum):
    """Shared conversion helpers for user-facing enums."""

    @classmethod
    def from_str(cls, value: str) -> _EnumMixin:
        """Parse enum from string.

        Args:
            value: Raw string value.

        Raises:
            ValueError: If the value is not supported.

        Returns:
            _EnumMixin: Parsed enum value.
        """
        try:
            return cls(value)
        except ValueError as exc:
            supported = ", ".join(member.value for member in cls)
            message = f"Unsupported {cls.__name__} value '{value}'. Expected one of: {supported}"
            raise ValueError(message) from exc

    def to_str(self) -> str:
        """Return string representation.

        Returns:
            str: Enum string value.
        """
        return self.value


class FieldStatus(_EnumMixin):
    """Lifecycle status of one canvas field."""

    EMPTY = "empty"
    EXTRACTING = "extracting"
    FILLED = "filled"
    ERROR = "error"


class VocabularyType(_EnumMixin):
    """Kind of value space attached to a field."""

    CLOSED = "closed"
    SKOS = "skos"
    OPEN = "open"

    @property
    def is_controlled(self) -> bool:
        """Return whether values outside the concept list are rejected."""
        return self in {VocabularyType.CLOSED, VocabularyType.SKOS}


class ValueKind(_EnumMixin):
    """Shape of a decoded JSON value returned by the model."""

    NULL = "null"
    SCALAR = "scalar"
    ARRAY = "array"
    OBJECT = "object"


class ChatRole(_EnumMixin):
    """Chat message author role."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
