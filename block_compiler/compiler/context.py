"""
Container for shared compiler dependencies (registries, settings).
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from block_compiler.registry.block_registry import BlockRegistry
from block_compiler.registry.manifest import ApiManifest, load_manifest, synthesize_schemas
from block_compiler.schema.catalog import build_static_schemas
from shared.config import BlockCompilerConfig, config
from shared.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CompilerContext:
    block_registry: BlockRegistry
    manifest: ApiManifest
    settings: BlockCompilerConfig


def build_context(manifest: ApiManifest, settings: BlockCompilerConfig | None = None) -> CompilerContext:
    """
    Register the static catalog plus one synthesized schema per manifest entry.
    """

    registry = BlockRegistry()
    for schema in build_static_schemas():
        registry.register(schema)
    for schema in synthesize_schemas(manifest.entries):
        registry.register(schema)
    return CompilerContext(block_registry=registry, manifest=manifest, settings=settings or config)


@lru_cache(maxsize=1)
def get_default_context() -> CompilerContext:
    manifest = load_manifest(config.resolved_manifest_path)
    context = build_context(manifest, config)
    logger.info(
        f"Block registry ready: {len(context.block_registry)} schemas "
        f"({len(manifest)} from the API manifest)"
    )
    return context
