"""Custom exceptions for core logic."""

from __future__ import annotations


class SchemaParseError(ValueError):
    """Raised when a schema document is not a valid JSON object."""

    def __init__(self, message: str, *, line: int | None = None, column: int | None = None) -> None:
        super().__init__(message)
        self.line = line
        self.column = column


class InputLimitError(ValueError):
    """Raised when schema or template input exceeds configured bounds."""

    def __init__(self, message: str, *, limit: int, actual: int) -> None:
        super().__init__(message)
        self.limit = limit
        self.actual = actual


class GenerationError(Exception):
    """Raised when a mapping references an unknown transformation kind."""

    def __init__(self, message: str, *, transformation: str, mapping_id: str | None = None) -> None:
        super().__init__(message)
        self.transformation = transformation
        self.mapping_id = mapping_id


class MappingNotFoundError(KeyError):
    """Raised when a mapping id is not present in the working model."""

    def __init__(self, mapping_id: str) -> None:
        super().__init__(mapping_id)
        self.mapping_id = mapping_id

    def __str__(self) -> str:
        return f"Mapping not found: {self.mapping_id}"


class MappingEditError(ValueError):
    """Raised when an edit violates a transformation's editing contract."""
