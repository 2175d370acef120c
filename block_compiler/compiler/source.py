"""
Tree-sitter helpers shared by expression parsing and lifting.

Script text is parsed with the JavaScript grammar from
``tree_sitter_language_pack``. Parsers are not thread-safe, so one parser is
kept per thread.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Set, Tuple, Union

from tree_sitter import Node, Parser, Tree
from tree_sitter_language_pack import get_language

from block_compiler.compiler.ast import (
    BINARY_PRECEDENCE,
    PREC_ASSIGNMENT,
    PREC_CALL,
    PREC_CONDITIONAL,
    PREC_MEMBER,
    PREC_NEW,
    PREC_POSTFIX,
    PREC_PRIMARY,
    PREC_SEQUENCE,
    PREC_UNARY,
)
from block_compiler.errors import SourceSyntaxError
from block_compiler.schema.models import SourceLocation, SourcePosition

LANGUAGE_NAME = "javascript"

_local = threading.local()

_FIXED_PRECEDENCE = {
    "sequence_expression": PREC_SEQUENCE,
    "assignment_expression": PREC_ASSIGNMENT,
    "augmented_assignment_expression": PREC_ASSIGNMENT,
    "arrow_function": PREC_ASSIGNMENT,
    "yield_expression": PREC_ASSIGNMENT,
    "ternary_expression": PREC_CONDITIONAL,
    "unary_expression": PREC_UNARY,
    "await_expression": PREC_UNARY,
    "call_expression": PREC_CALL,
    "member_expression": PREC_MEMBER,
    "subscript_expression": PREC_MEMBER,
}

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}
_ESCAPE = re.compile(
    r"\\(?:u\{(?P<code_point>[0-9a-fA-F]+)\}|u(?P<unicode>[0-9a-fA-F]{4})|x(?P<hex>[0-9a-fA-F]{2})|(?P<newline>\r\n|\n|\r)|(?P<char>.))",
    re.DOTALL,
)
_NUMBER_PREFIXES = {"0x": 16, "0o": 8, "0b": 2}


def get_parser() -> Parser:
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = Parser()
        parser.language = get_language(LANGUAGE_NAME)
        _local.parser = parser
    return parser


@dataclass
class ParsedSource:
    """A parsed script plus the byte/character bookkeeping for locations."""

    text: str
    data: bytes
    tree: Tree
    lines: List[bytes] = field(default_factory=list)

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def node_text(self, node: Node) -> str:
        return self.data[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    def column(self, point: Tuple[int, int]) -> int:
        """Character column for a tree-sitter (row, byte column) point."""
        row, byte_column = point
        if row >= len(self.lines):
            return byte_column
        return len(self.lines[row][:byte_column].decode("utf-8", errors="ignore"))

    def position(self, point: Tuple[int, int]) -> SourcePosition:
        return SourcePosition(line=point[0] + 1, column=self.column(point))

    def location(self, node: Node) -> SourceLocation:
        return SourceLocation(start=self.position(node.start_point), end=self.position(node.end_point))

    def syntax_error(self) -> Optional[SourceSyntaxError]:
        if not self.root.has_error:
            return None
        node = first_error_node(self.root)
        if node is None:
            return SourceSyntaxError("Invalid syntax")
        position = self.position(node.start_point)
        if node.is_missing:
            message = f"Missing '{node.type}'"
        else:
            snippet = self.node_text(node).strip().split("\n")[0][:40]
            message = f"Unexpected '{snippet}'" if snippet else "Unexpected end of input"
        return SourceSyntaxError(message, line=position.line, column=position.column)


def parse_text(text: str) -> ParsedSource:
    data = text.encode("utf-8")
    tree = get_parser().parse(data)
    return ParsedSource(text=text, data=data, tree=tree, lines=data.split(b"\n"))


def parse_program(text: str) -> ParsedSource:
    """Parse a full script, raising SourceSyntaxError for invalid syntax."""
    parsed = parse_text(text)
    error = parsed.syntax_error()
    if error is not None:
        raise error
    return parsed


def first_error_node(root: Node) -> Optional[Node]:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        for child in reversed(node.children):
            if child.has_error or child.is_missing:
                stack.append(child)
    return None


# -----------------------------
# Node helpers
# -----------------------------
def is_comment(node: Node) -> bool:
    return node.type == "comment"


def code_children(node: Node) -> List[Node]:
    """Named children that are not comments."""
    return [child for child in node.named_children if not is_comment(child)]


def operator_text(node: Node) -> Optional[str]:
    operator = node.child_by_field_name("operator")
    return operator.type if operator is not None else None


def is_async(node: Node) -> bool:
    return any(child.type == "async" for child in node.children)


def expression_precedence(node: Node) -> int:
    node_type = node.type
    if node_type == "binary_expression":
        return BINARY_PRECEDENCE.get(operator_text(node) or "", PREC_CONDITIONAL)
    if node_type == "update_expression":
        first = node.children[0] if node.children else None
        return PREC_UNARY if first is not None and first.type in ("++", "--") else PREC_POSTFIX
    if node_type == "new_expression":
        return PREC_CALL if node.child_by_field_name("arguments") is not None else PREC_NEW
    return _FIXED_PRECEDENCE.get(node_type, PREC_PRIMARY)


def top_level_operator(node: Node) -> Optional[str]:
    if node.type == "binary_expression":
        return operator_text(node)
    return None


_LITERAL_TYPES = frozenset({"string", "template_string", "regex"})


def literal_continuation_rows(node: Node, origin_row: Optional[int] = None) -> FrozenSet[int]:
    """
    Rows, counted from ``origin_row`` (default: the node's first row), that
    begin inside a string, template or regex literal below ``node``.

    Leading whitespace on those rows is part of the literal's value.
    """

    origin = node.start_point[0] if origin_row is None else origin_row
    rows: Set[int] = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type in _LITERAL_TYPES:
            rows.update(range(current.start_point[0] + 1, current.end_point[0] + 1))
            continue
        stack.extend(current.children)
    return frozenset(row - origin for row in rows if row >= origin)


def verbatim_rows(text: str) -> FrozenSet[int]:
    """Lines of a standalone snippet whose leading whitespace belongs to a literal."""
    if "\n" not in text:
        return frozenset()
    return literal_continuation_rows(parse_text(text).root, origin_row=0)


def rebase_continuation_lines(text: str, base_column: int, keep_rows: FrozenSet[int] = frozenset()) -> str:
    """
    Strip up to ``base_column`` leading whitespace from every line but the
    first, leaving the lines listed in ``keep_rows`` untouched.
    """
    if base_column <= 0 or "\n" not in text:
        return text
    lines = text.split("\n")
    rebased = [lines[0]]
    for row, line in enumerate(lines[1:], start=1):
        if row in keep_rows:
            rebased.append(line)
            continue
        indent = len(line) - len(line.lstrip(" \t"))
        rebased.append(line[min(indent, base_column):])
    return "\n".join(rebased)


# -----------------------------
# Literals
# -----------------------------
def _unescape(match: "re.Match[str]") -> str:
    if match.group("code_point") is not None:
        return chr(int(match.group("code_point"), 16))
    if match.group("unicode") is not None:
        return chr(int(match.group("unicode"), 16))
    if match.group("hex") is not None:
        return chr(int(match.group("hex"), 16))
    if match.group("newline") is not None:
        return ""
    char = match.group("char")
    return _SIMPLE_ESCAPES.get(char, char)


def decode_js_string(body: str) -> str:
    """Decode the escapes of a string literal body (delimiters removed)."""
    decoded = _ESCAPE.sub(_unescape, body)
    try:
        # Re-join surrogate pairs produced by \uD83D\uDE00 style escapes.
        return decoded.encode("utf-16", "surrogatepass").decode("utf-16")
    except UnicodeDecodeError:
        return decoded


def string_literal_value(node: Node, text: str) -> Optional[str]:
    """
    Value of a string literal or a template literal without substitutions.

    ``text`` is the node's source text. Returns None for any other node.
    """
    if node.type == "string":
        return decode_js_string(text[1:-1])
    if node.type == "template_string":
        if any(child.type == "template_substitution" for child in node.named_children):
            return None
        return decode_js_string(text[1:-1])
    return None


def parse_number_literal(text: str) -> Optional[Union[int, float]]:
    """Numeric value of a number literal, or None for BigInt and unparsable text."""
    cleaned = text.replace("_", "").strip()
    if not cleaned or cleaned.endswith("n"):
        return None
    negative = cleaned.startswith("-")
    if negative:
        cleaned = cleaned[1:].strip()
    if not re.match(r"\.?\d", cleaned):
        return None
    try:
        base = _NUMBER_PREFIXES.get(cleaned[:2].lower())
        if base is not None:
            value: Union[int, float] = int(cleaned[2:], base)
        elif re.fullmatch(r"0[0-7]+", cleaned):
            value = int(cleaned, 8)
        elif re.fullmatch(r"\d+", cleaned):
            value = int(cleaned)
        else:
            value = float(cleaned)
            if value.is_integer() and abs(value) < 2**53:
                value = int(value)
    except ValueError:
        return None
    return -value if negative else value


def number_node_value(node: Node, text: str) -> Optional[Union[int, float]]:
    """Value of ``42`` or ``-42`` style nodes."""
    if node.type == "number":
        return parse_number_literal(text)
    if node.type == "unary_expression" and operator_text(node) == "-":
        argument = node.child_by_field_name("argument")
        if argument is not None and argument.type == "number":
            return parse_number_literal(text)
    return None


def boolean_node_value(node: Node) -> Optional[bool]:
    if node.type == "true":
        return True
    if node.type == "false":
        return False
    return None
