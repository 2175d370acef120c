"""
Load and dump workflow documents as camelCase JSON.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from pydantic import ValidationError

from block_compiler.errors import DocumentStructureError
from block_compiler.schema.models import WorkflowDocument


def load_document(payload: Any) -> WorkflowDocument:
    """
    Accepts either a JSON string or a mapping compatible with the
    WorkflowDocument definition and returns a validated document.
    """

    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise DocumentStructureError(f"Invalid workflow document JSON: {exc}") from exc
    elif isinstance(payload, Mapping):
        data = payload
    else:
        raise DocumentStructureError(
            f"Unsupported payload type {type(payload).__name__}; expected str or Mapping"
        )

    try:
        return WorkflowDocument.model_validate(data)
    except ValidationError as exc:
        raise DocumentStructureError(f"Workflow document validation failed: {exc}") from exc


def read_document(path: Union[str, Path]) -> WorkflowDocument:
    return load_document(Path(path).read_text(encoding="utf-8"))


def document_payload(document: WorkflowDocument) -> Dict[str, Any]:
    return document.model_dump(mode="json", by_alias=True, exclude_none=True)


def dump_document(document: WorkflowDocument, *, indent: int | None = 2) -> str:
    return json.dumps(document_payload(document), indent=indent, ensure_ascii=False)
