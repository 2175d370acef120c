"""
Public entrypoint for converting between block workflow documents and script
source text.
"""

from __future__ import annotations

from block_compiler.compiler.context import CompilerContext, build_context, get_default_context
from block_compiler.compiler.lifting import parse_source
from block_compiler.compiler.lowering import generate_source
from block_compiler.compiler.scope_index import ScopeIndex, build_scope_index
from block_compiler.errors import (
    BlockCompilerError,
    DocumentStructureError,
    ManifestError,
    NestingDepthError,
    SchemaRegistrationError,
    SourceSyntaxError,
    UnknownBlockKindError,
)
from block_compiler.graph.serialization import dump_document, load_document

__all__ = [
    "BlockCompilerError",
    "CompilerContext",
    "DocumentStructureError",
    "ManifestError",
    "NestingDepthError",
    "SchemaRegistrationError",
    "ScopeIndex",
    "SourceSyntaxError",
    "UnknownBlockKindError",
    "build_context",
    "build_scope_index",
    "dump_document",
    "generate_source",
    "get_default_context",
    "load_document",
    "parse_source",
]
