"""
Generic translation between manifest-described blocks and primitive calls.

``synthesize_call`` lowers any manifest block (``wait-call``, ``vision-call``,
...) to ``name(args)`` or ``let x = name(args)`` purely from its manifest
entry. ``extract_call_fields`` is the inverse used by lifting: it maps the
arguments of a primitive call back onto field values, or declines when the
manifest cannot represent the call's shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from tree_sitter import Node

from block_compiler.compiler import ast
from block_compiler.compiler.expressions import parse_expression
from block_compiler.compiler.printer import format_number
from block_compiler.compiler.source import (
    ParsedSource,
    boolean_node_value,
    code_children,
    number_node_value,
    parse_number_literal,
    string_literal_value,
)
from block_compiler.schema.jsonschema_adapter import json_schema_text_error
from block_compiler.schema.models import ApiManifestEntry, BlockInstance, FieldDefinition, InvocationStyle
from shared.logger import get_logger

logger = get_logger(__name__)

TextOf = Callable[[Node], str]


class ValueSource(str, Enum):
    user = "user"
    default = "default"
    fallback = "fallback"


@dataclass(frozen=True)
class ResolvedValue:
    value: Any
    source: ValueSource


# Last-resort values for required fields that have no declared default.
FALLBACK_VALUES: Dict[tuple, str] = {
    ("wait-call", "duration"): "1",
    ("press-call", "key"): "return",
    ("click-call", "target"): "[0, 0]",
    ("scroll-call", "origin"): "[0, 0]",
    ("log-call", "message"): '""',
    ("vision-call", "target"): "screenshot().image",
    ("file-reader-call", "paths"): "[]",
}


@dataclass(frozen=True)
class FieldCodec:
    """Overrides value conversion for one field, in both directions."""

    transform: Callable[[Any], Optional[ast.Expression]]
    extract: Callable[[ParsedSource, Node], Optional[Any]]


def _modifier_tokens(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(token).strip() for token in value if str(token).strip()]
    return [token.strip() for token in str(value).split(",") if token.strip()]


def modifiers_to_array(value: Any) -> Optional[ast.Expression]:
    tokens = _modifier_tokens(value)
    if not tokens:
        return None
    return ast.ArrayExpression([ast.StringLiteral(token) for token in tokens])


def array_to_modifiers(parsed: ParsedSource, node: Node) -> Optional[str]:
    if node.type != "array":
        return None
    tokens: List[str] = []
    for element in code_children(node):
        token = string_literal_value(element, parsed.node_text(element))
        if token is None:
            return None
        tokens.append(token)
    return ", ".join(tokens)


FIELD_CODECS: Dict[tuple, FieldCodec] = {
    ("press-call", "modifiers"): FieldCodec(transform=modifiers_to_array, extract=array_to_modifiers),
}

# A literal-typed field (string, enum, json-schema, press modifiers) that holds
# script code instead of a literal value stores it as {"expression": "<code>"}.
EXPRESSION_KEY = "expression"


def expression_reference(text: str) -> Dict[str, str]:
    return {EXPRESSION_KEY: text}


def referenced_expression(value: Any) -> Optional[str]:
    """Code held by an expression reference, or None for plain values."""
    if isinstance(value, Mapping) and set(value) == {EXPRESSION_KEY} and isinstance(value[EXPRESSION_KEY], str):
        return value[EXPRESSION_KEY]
    return None


@dataclass
class SynthesizedCall:
    statement: ast.Statement
    resolutions: Dict[str, ResolvedValue] = field(default_factory=dict)


# -----------------------------
# Value resolution
# -----------------------------
def _is_blank(value: Any) -> bool:
    code = referenced_expression(value)
    if code is not None:
        value = code
    return value is None or (isinstance(value, str) and not value.strip())


def resolve_field(block: BlockInstance, definition: FieldDefinition, entry: ApiManifestEntry) -> Optional[ResolvedValue]:
    """User value, then declared default, then the fallback constant."""
    value = block.data.get(definition.id)
    if not _is_blank(value):
        return ResolvedValue(value, ValueSource.user)
    if definition.default_value is not None:
        return ResolvedValue(definition.default_value, ValueSource.default)
    fallback = FALLBACK_VALUES.get((entry.block_kind, definition.id))
    if fallback is not None:
        return ResolvedValue(fallback, ValueSource.fallback)
    return None


def resolve_fields(block: BlockInstance, entry: ApiManifestEntry) -> Dict[str, ResolvedValue]:
    resolutions: Dict[str, ResolvedValue] = {}
    for definition in entry.fields:
        if definition.id == entry.identifier_field:
            continue
        resolved = resolve_field(block, definition, entry)
        if resolved is not None:
            resolutions[definition.id] = resolved
    return resolutions


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


def value_to_expression(entry: ApiManifestEntry, definition: FieldDefinition, value: Any) -> Optional[ast.Expression]:
    code = referenced_expression(value)
    if code is not None:
        return parse_expression(code)

    codec = FIELD_CODECS.get((entry.block_kind, definition.id))
    if codec is not None:
        return codec.transform(value)

    kind = definition.input_kind
    if kind in ("expression", "code"):
        return parse_expression(_as_text(value))
    if kind in ("string", "enum"):
        return ast.StringLiteral(_as_text(value))
    if kind == "number":
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return ast.NumberLiteral(value)
        number = parse_number_literal(_as_text(value))
        if number is not None:
            return ast.NumberLiteral(number)
        return parse_expression(_as_text(value))
    if kind == "boolean":
        if isinstance(value, bool):
            return ast.BooleanLiteral(value)
        lowered = _as_text(value).strip().lower()
        if lowered in ("true", "false"):
            return ast.BooleanLiteral(lowered == "true")
        return parse_expression(_as_text(value))
    if kind == "json-schema":
        text = _as_text(value)
        problem = json_schema_text_error(text)
        if problem:
            logger.debug(f"{entry.block_kind}.{definition.id} is not a valid JSON Schema ({problem}); emitting it as text")
        return ast.StringLiteral(text)
    # identifier fields never become arguments
    return None


# -----------------------------
# Call shape
# -----------------------------
def _positional_arguments(
    entry: ApiManifestEntry,
    field_ids: Sequence[str],
    expressions: Dict[str, ast.Expression],
) -> List[ast.Expression]:
    arguments: List[ast.Expression] = []
    for index, field_id in enumerate(field_ids):
        expression = expressions.get(field_id)
        if expression is None:
            dropped = [later for later in field_ids[index + 1:] if later in expressions]
            if dropped:
                logger.warning(
                    f"{entry.api_name}: positional argument '{field_id}' has no value; "
                    f"dropping later arguments {', '.join(dropped)}"
                )
            break
        arguments.append(expression)
    return arguments


def _options_object(
    entry: ApiManifestEntry,
    field_ids: Sequence[str],
    expressions: Dict[str, ast.Expression],
    resolutions: Dict[str, ResolvedValue],
) -> Optional[ast.ObjectExpression]:
    properties: List[ast.ObjectProperty] = []
    for field_id in field_ids:
        if field_id == entry.identifier_field or field_id not in expressions:
            continue
        if resolutions[field_id].source is ValueSource.default:
            continue
        properties.append(ast.ObjectProperty(key=field_id, value=expressions[field_id]))
    if not properties:
        return None
    return ast.ObjectExpression(properties)


def binding_name(block: BlockInstance, entry: ApiManifestEntry) -> Optional[str]:
    if not entry.identifier_field:
        return None
    value = block.data.get(entry.identifier_field)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return entry.default_identifier or None


def synthesize_call(block: BlockInstance, entry: ApiManifestEntry) -> SynthesizedCall:
    resolutions = resolve_fields(block, entry)
    expressions: Dict[str, ast.Expression] = {}
    for definition in entry.fields:
        resolved = resolutions.get(definition.id)
        if resolved is None:
            continue
        expression = value_to_expression(entry, definition, resolved.value)
        if expression is not None:
            expressions[definition.id] = expression

    invocation = entry.effective_invocation
    all_ids = [definition.id for definition in entry.fields]
    arguments: List[ast.Expression] = []
    if invocation.style is InvocationStyle.object:
        option_ids = invocation.options if invocation.options is not None else all_ids
        options = _options_object(entry, option_ids, expressions, resolutions)
        if options is not None:
            arguments.append(options)
    else:
        arguments = _positional_arguments(entry, invocation.arguments, expressions)
        if invocation.style is InvocationStyle.positional_with_options:
            option_ids = invocation.options
            if option_ids is None:
                option_ids = [field_id for field_id in all_ids if field_id not in invocation.arguments]
            options = _options_object(entry, option_ids, expressions, resolutions)
            if options is not None:
                arguments.append(options)

    call = ast.CallExpression(ast.Identifier(entry.api_name), arguments)
    name = binding_name(block, entry)
    statement: ast.Statement
    if name:
        statement = ast.VariableDeclaration(name=name, init=call)
    else:
        statement = ast.ExpressionStatement(call)
    return SynthesizedCall(statement=statement, resolutions=resolutions)


# -----------------------------
# Lifting
# -----------------------------
def extract_value(
    entry: ApiManifestEntry,
    definition: FieldDefinition,
    parsed: ParsedSource,
    node: Node,
    text_of: TextOf,
) -> Optional[Any]:
    """
    Field value for an argument node, or None when the field cannot hold it.

    Literal-typed fields keep non-literal arguments as expression references.
    """
    codec = FIELD_CODECS.get((entry.block_kind, definition.id))
    if codec is not None:
        value = codec.extract(parsed, node)
        return value if value is not None else expression_reference(text_of(node))

    kind = definition.input_kind
    if kind in ("string", "enum", "json-schema"):
        literal = string_literal_value(node, parsed.node_text(node))
        return literal if literal is not None else expression_reference(text_of(node))
    if kind == "number":
        number = number_node_value(node, parsed.node_text(node))
        return number if number is not None else text_of(node)
    if kind == "boolean":
        flag = boolean_node_value(node)
        return flag if flag is not None else text_of(node)
    if kind in ("expression", "code"):
        return text_of(node)
    return None


def _property_key(parsed: ParsedSource, node: Node) -> Optional[str]:
    if node.type in ("property_identifier", "identifier"):
        return parsed.node_text(node)
    if node.type == "string":
        return string_literal_value(node, parsed.node_text(node))
    return None


def extract_call_fields(
    entry: ApiManifestEntry,
    parsed: ParsedSource,
    arguments: Node,
    text_of: TextOf,
) -> Optional[Dict[str, Any]]:
    """
    Map the arguments of a primitive call onto field values.

    Returns None when the call has a shape the manifest entry cannot express:
    spread arguments, too many arguments, unknown option keys or a value the
    target field cannot hold.
    """

    if arguments.type != "arguments":
        return None
    nodes = code_children(arguments)
    if any(node.type == "spread_element" for node in nodes):
        return None

    invocation = entry.effective_invocation
    all_ids = [definition.id for definition in entry.fields]
    if invocation.style is InvocationStyle.object:
        positional_ids: List[str] = []
        option_ids: Optional[List[str]] = invocation.options if invocation.options is not None else all_ids
    else:
        positional_ids = list(invocation.arguments)
        option_ids = None
        if invocation.style is InvocationStyle.positional_with_options:
            option_ids = invocation.options
            if option_ids is None:
                option_ids = [field_id for field_id in all_ids if field_id not in positional_ids]

    allowed = len(positional_ids) + (1 if option_ids is not None else 0)
    if len(nodes) > allowed:
        return None

    data: Dict[str, Any] = {}
    for field_id, node in zip(positional_ids, nodes):
        definition = entry.field(field_id)
        value = extract_value(entry, definition, parsed, node, text_of) if definition else None
        if value is None:
            return None
        data[field_id] = value

    if len(nodes) > len(positional_ids):
        options = nodes[len(positional_ids)]
        if options.type != "object" or option_ids is None:
            return None
        for member in code_children(options):
            if member.type == "pair":
                key_node = member.child_by_field_name("key")
                value_node = member.child_by_field_name("value")
                key = _property_key(parsed, key_node) if key_node is not None else None
            elif member.type == "shorthand_property_identifier":
                key = parsed.node_text(member)
                value_node = member
            else:
                return None
            if key is None or value_node is None or key not in option_ids or key == entry.identifier_field:
                return None
            definition = entry.field(key)
            value = extract_value(entry, definition, parsed, value_node, text_of) if definition else None
            if value is None:
                return None
            data[key] = value
    return data
