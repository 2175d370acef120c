"""
Type-safe configuration for the block compiler using Pydantic Settings.

This module provides a centralized, type-safe configuration system
that loads from environment variables and .env files.

Usage:
    from shared.config import config

    if depth > config.max_nesting_depth:
        ...
"""
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PACKAGED_MANIFEST = Path(__file__).resolve().parent.parent / "block_compiler" / "data" / "api_manifest.json"


class BlockCompilerConfig(BaseSettings):
    """
    Central configuration for the block compiler.

    All configuration is loaded from environment variables (prefixed with
    ``BLOCK_COMPILER_``) or a .env file.
    """
    model_config = SettingsConfigDict(
        env_prefix="BLOCK_COMPILER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ============================================================================
    # API Manifest
    # ============================================================================

    api_manifest_path: Optional[str] = Field(
        default=None,
        description="Path to an API manifest JSON document. Uses the packaged manifest when unset."
    )

    # ============================================================================
    # Code Generation
    # ============================================================================

    indent_width: int = Field(default=2, ge=1, le=8, description="Spaces per indentation level in generated source")
    emit_comments: bool = Field(default=True, description="Re-emit block comments as // lines above statements")

    # ============================================================================
    # Resource Limits
    # ============================================================================

    max_nesting_depth: int = Field(
        default=100,
        ge=1,
        description="Maximum block/syntax nesting depth accepted by generate, parse and the scope index"
    )

    # ============================================================================
    # Logging
    # ============================================================================

    log_level: str = Field(default="INFO", description="Log level for compiler loggers (DEBUG, INFO, WARNING, ERROR)")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {value!r}")
        return normalized

    # ============================================================================
    # Computed Properties
    # ============================================================================

    @property
    def resolved_manifest_path(self) -> Path:
        """Manifest location, falling back to the copy shipped with the package."""
        if self.api_manifest_path:
            return Path(self.api_manifest_path)
        return _PACKAGED_MANIFEST

    @property
    def indent(self) -> str:
        return " " * self.indent_width

# ============================================================================
# Global Config Instance
# ============================================================================

config = BlockCompilerConfig()
