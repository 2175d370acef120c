from __future__ import annotations

import json
from threading import Lock
from typing import Any, Dict, List

from jsonschema import ValidationError
from jsonschema.exceptions import SchemaError
from jsonschema.validators import Draft202012Validator, validator_for

JsonSchema = Dict[str, Any]
ValidatorType = Draft202012Validator

_validator_cache: Dict[str, ValidatorType] = {}
_cache_lock = Lock()


_FIELD_SCHEMA: JsonSchema = {
    "type": "object",
    "required": ["id", "label", "input"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "label": {"type": "string"},
        "description": {"type": "string"},
        "required": {"type": "boolean"},
        "defaultValue": {"type": ["string", "number", "boolean", "null"]},
        "input": {
            "type": "object",
            "required": ["kind"],
            "properties": {
                "kind": {
                    "enum": [
                        "string",
                        "number",
                        "boolean",
                        "enum",
                        "expression",
                        "identifier",
                        "code",
                        "json-schema",
                    ]
                }
            },
        },
        "valueType": {"type": "object"},
    },
}

MANIFEST_DOCUMENT_SCHEMA: JsonSchema = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "block-compiler/api-manifest",
    "type": "object",
    "required": ["version", "generatedAt", "entries"],
    "properties": {
        "version": {"type": "integer", "minimum": 1},
        "generatedAt": {"type": "string"},
        "entries": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["apiName", "blockKind", "label", "category"],
                "properties": {
                    "apiName": {"type": "string", "pattern": "^[A-Za-z_$][A-Za-z0-9_$]*$"},
                    "blockKind": {"type": "string", "minLength": 1},
                    "label": {"type": "string"},
                    "category": {"type": "string"},
                    "icon": {"type": "string"},
                    "description": {"type": "string"},
                    "identifierField": {"type": "string"},
                    "defaultIdentifier": {"type": "string"},
                    "fields": {"type": "array", "items": {"$ref": "#/$defs/field"}},
                    "outputs": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["id", "label"],
                            "properties": {
                                "id": {"type": "string", "minLength": 1},
                                "label": {"type": "string"},
                            },
                        },
                    },
                    "invocation": {
                        "type": "object",
                        "properties": {
                            "style": {"enum": ["positional", "positionalWithOptions", "object"]},
                            "arguments": {"type": "array", "items": {"type": "string"}},
                            "options": {"type": "array", "items": {"type": "string"}},
                        },
                    },
                },
            },
        },
    },
    "$defs": {"field": _FIELD_SCHEMA},
}


def _cache_key(schema: JsonSchema, schema_id: str | None) -> str:
    if schema_id:
        return schema_id
    return json.dumps(schema, sort_keys=True, separators=(",", ":"))


def get_validator(schema: JsonSchema, *, schema_id: str | None = None) -> ValidatorType:
    """
    Compile (and cache) a jsonschema validator for the provided schema.
    """

    key = _cache_key(schema, schema_id)
    with _cache_lock:
        validator = _validator_cache.get(key)
        if validator is None:
            validator_cls = validator_for(schema, default=Draft202012Validator)
            validator = validator_cls(schema)
            _validator_cache[key] = validator
    return validator


def check_schema(schema: JsonSchema) -> None:
    """
    Ensure the provided schema is itself valid JSON Schema.
    """

    validator_cls = validator_for(schema, default=Draft202012Validator)
    validator_cls.check_schema(schema)


def format_validation_error(error: ValidationError, *, prefix: str = "$") -> str:
    """
    Convert a jsonschema.ValidationError into a human-friendly error string.
    """

    path = prefix
    for token in error.absolute_path:
        if isinstance(token, int):
            path += f"[{token}]"
        else:
            path += f".{token}"
    return f"{path}: {error.message}"


def manifest_errors(payload: Any) -> List[str]:
    """
    Return formatted structural errors for an API manifest payload, ordered by path.
    """

    validator = get_validator(MANIFEST_DOCUMENT_SCHEMA, schema_id=MANIFEST_DOCUMENT_SCHEMA["$id"])
    errors = sorted(validator.iter_errors(payload), key=lambda err: list(map(str, err.absolute_path)))
    return [format_validation_error(err) for err in errors]


def json_schema_text_error(text: str) -> str | None:
    """
    Describe why ``text`` is not a usable JSON Schema, or return None when it is.

    Used to sanity-check the raw text of ``json-schema`` fields; the text is
    still emitted verbatim either way.
    """

    try:
        schema = json.loads(text)
    except json.JSONDecodeError as exc:
        return f"not valid JSON: {exc.msg}"
    if not isinstance(schema, (dict, bool)):
        return "a JSON Schema must be an object or a boolean"
    if isinstance(schema, bool):
        return None
    try:
        check_schema(schema)
    except SchemaError as exc:
        return exc.message
    return None


__all__ = [
    "MANIFEST_DOCUMENT_SCHEMA",
    "SchemaError",
    "ValidationError",
    "check_schema",
    "format_validation_error",
    "get_validator",
    "json_schema_text_error",
    "manifest_errors",
]
