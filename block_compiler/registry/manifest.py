"""
API manifest loading and block schema synthesis.

The manifest is a declarative list of primitive API calls (``wait``,
``click``, ``vision``, ...). Each entry is turned into one block schema so the
generator and parser can handle every primitive with a single generic code
path instead of a hand-written handler per call.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from block_compiler.errors import ManifestError
from block_compiler.schema.catalog import flow_ports
from block_compiler.schema.jsonschema_adapter import manifest_errors
from block_compiler.schema.models import ApiManifestDocument, ApiManifestEntry, BlockSchema
from shared.logger import get_logger

logger = get_logger(__name__)


class ApiManifest:
    """
    Lookup tables over a validated manifest document.
    """

    def __init__(self, document: ApiManifestDocument) -> None:
        self.document = document
        self._by_kind: Dict[str, ApiManifestEntry] = {}
        self._by_api_name: Dict[str, ApiManifestEntry] = {}
        for entry in document.entries:
            if entry.block_kind in self._by_kind:
                raise ManifestError(f"Duplicate manifest block kind '{entry.block_kind}'")
            if entry.api_name in self._by_api_name:
                raise ManifestError(f"Duplicate manifest api name '{entry.api_name}'")
            self._by_kind[entry.block_kind] = entry
            self._by_api_name[entry.api_name] = entry

    @property
    def entries(self) -> List[ApiManifestEntry]:
        return list(self.document.entries)

    def by_kind(self, block_kind: str) -> Optional[ApiManifestEntry]:
        return self._by_kind.get(block_kind)

    def by_api_name(self, api_name: str) -> Optional[ApiManifestEntry]:
        return self._by_api_name.get(api_name)

    def api_names(self) -> List[str]:
        return list(self._by_api_name)

    def __len__(self) -> int:
        return len(self._by_kind)


def parse_manifest(payload: Any) -> ApiManifest:
    """
    Accepts either a JSON string or a mapping and returns the validated manifest.
    """

    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ManifestError(f"Invalid manifest JSON payload: {exc}") from exc
    elif isinstance(payload, Mapping):
        data = payload
    else:
        raise ManifestError(
            f"Unsupported payload type {type(payload).__name__}; expected str or Mapping"
        )

    problems = manifest_errors(data)
    if problems:
        raise ManifestError("API manifest failed validation:\n" + "\n".join(problems))

    try:
        document = ApiManifestDocument.model_validate(data)
    except PydanticValidationError as exc:
        raise ManifestError(f"API manifest validation failed: {exc}") from exc
    return ApiManifest(document)


def load_manifest(path: Path | str) -> ApiManifest:
    manifest_path = Path(path)
    try:
        raw = manifest_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Unable to read API manifest at {manifest_path}: {exc}") from exc
    manifest = parse_manifest(raw)
    logger.debug(f"Loaded {len(manifest)} manifest entries from {manifest_path}")
    return manifest


def synthesize_schema(entry: ApiManifestEntry) -> BlockSchema:
    """
    Build the block schema for a manifest entry: deep-copied fields and
    outputs, both flow ports, no child slots.
    """

    return BlockSchema(
        kind=entry.block_kind,
        label=entry.label,
        category=entry.category,
        icon=entry.icon,
        description=entry.description,
        fields=[definition.model_copy(deep=True) for definition in entry.fields],
        ports=flow_ports(),
        child_slots=[],
        outputs=[output.model_copy(deep=True) for output in entry.outputs],
    )


def synthesize_schemas(entries: Iterable[ApiManifestEntry]) -> List[BlockSchema]:
    return [synthesize_schema(entry) for entry in entries]
