"""
Shared exception hierarchy for the block compiler.
"""

from __future__ import annotations

from typing import Optional


class BlockCompilerError(Exception):
    """Base class for all compiler related errors."""


class SchemaRegistrationError(BlockCompilerError):
    """Raised when a block schema is registered twice for the same kind."""


class ManifestError(BlockCompilerError):
    """Raised when the API manifest document fails structural checks."""


class UnknownBlockKindError(BlockCompilerError):
    """Raised when a block kind has no schema, lowering or manifest entry."""


class DocumentStructureError(BlockCompilerError):
    """Raised when a workflow document violates the block tree invariants."""


class NestingDepthError(BlockCompilerError):
    """Raised when block or syntax nesting exceeds the configured limit."""


class SourceSyntaxError(BlockCompilerError):
    """Raised when script source text is not valid syntax."""

    def __init__(self, message: str, *, line: Optional[int] = None, column: Optional[int] = None) -> None:
        self.line = line
        self.column = column
        if line is not None:
            message = f"{message} (line {line}, column {column})"
        super().__init__(message)
