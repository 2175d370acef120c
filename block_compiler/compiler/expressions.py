"""
Turn user-entered text into script AST expressions.

Each conversion is an ordered chain of attempts. An attempt returns an
expression or ``None``; the first non-``None`` result wins and the last
attempt always succeeds, so malformed user text never raises.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from tree_sitter import Node

from block_compiler.compiler import ast
from block_compiler.compiler.source import (
    ParsedSource,
    code_children,
    expression_precedence,
    literal_continuation_rows,
    parse_text,
    top_level_operator,
)
from shared.logger import get_logger

logger = get_logger(__name__)

ExpressionAttempt = Callable[[str], Optional[ast.Expression]]

_DECLARATION_TYPES = ("lexical_declaration", "variable_declaration")


def source_expression(parsed: ParsedSource, node: Node) -> ast.SourceExpression:
    return ast.SourceExpression(
        text=parsed.node_text(node),
        precedence=expression_precedence(node),
        operator=top_level_operator(node),
        verbatim_rows=literal_continuation_rows(node),
    )


def _single_statement(parsed: ParsedSource) -> Optional[Node]:
    if parsed.root.has_error:
        return None
    statements = code_children(parsed.root)
    if len(statements) != 1:
        return None
    return statements[0]


def _statement_expression(statement: Node) -> Optional[Node]:
    if statement.type != "expression_statement":
        return None
    children = code_children(statement)
    return children[0] if len(children) == 1 else None


def parse_as_expression(text: str) -> Optional[ast.Expression]:
    """Parse the text as exactly one expression."""
    parsed = parse_text(f"({text}\n);")
    statement = _single_statement(parsed)
    if statement is None:
        return None
    wrapper = _statement_expression(statement)
    if wrapper is None or wrapper.type != "parenthesized_expression":
        return None
    inner = code_children(wrapper)
    if len(inner) != 1:
        return None
    return source_expression(parsed, inner[0])


def parse_as_statement(text: str) -> Optional[ast.Expression]:
    """Extract the expression of an expression statement or a declaration initializer."""
    parsed = parse_text(text)
    if parsed.root.has_error:
        return None
    statements = code_children(parsed.root)
    if not statements:
        return None
    first = statements[0]
    expression = _statement_expression(first)
    if expression is not None:
        return source_expression(parsed, expression)
    if first.type in _DECLARATION_TYPES:
        declarators = [child for child in code_children(first) if child.type == "variable_declarator"]
        value = declarators[0].child_by_field_name("value") if declarators else None
        if value is not None:
            return source_expression(parsed, value)
    return None


def as_string_literal(text: str) -> ast.Expression:
    logger.debug(f"Falling back to a string literal for {text!r}")
    return ast.StringLiteral(text)


EXPRESSION_CHAIN: Sequence[ExpressionAttempt] = (parse_as_expression, parse_as_statement, as_string_literal)


def run_chain(text: str, attempts: Sequence[ExpressionAttempt]) -> ast.Expression:
    for attempt in attempts:
        expression = attempt(text)
        if expression is not None:
            return expression
    # Every chain ends with an attempt that always succeeds.
    raise AssertionError("expression chain exhausted")


def parse_expression(text: str) -> ast.Expression:
    if not text.strip():
        return ast.Identifier("undefined")
    return run_chain(text, EXPRESSION_CHAIN)


def parse_optional_expression(text: str) -> Optional[ast.Expression]:
    if not text.strip():
        return None
    return parse_expression(text)


def parse_argument_list(text: str) -> List[ast.Expression]:
    """
    Split ``a, b, ...rest`` into argument expressions; text that does not read
    as an argument list becomes a single expression.
    """

    if not text.strip():
        return []
    parsed = parse_text(f"f({text}\n);")
    statement = _single_statement(parsed)
    call = _statement_expression(statement) if statement is not None else None
    if call is not None and call.type == "call_expression":
        arguments = call.child_by_field_name("arguments")
        if arguments is not None and arguments.type == "arguments":
            return [source_expression(parsed, node) for node in code_children(arguments)]
    return [parse_expression(text)]


def parse_for_initializer(text: str) -> Optional[ast.Expression]:
    """A ``let``/``var`` declaration (printed verbatim) or an expression."""
    if not text.strip():
        return None
    parsed = parse_text(text)
    statement = _single_statement(parsed)
    if statement is not None and statement.type in _DECLARATION_TYPES:
        declaration = parsed.node_text(statement).rstrip().rstrip(";").rstrip()
        return ast.SourceExpression(text=declaration, verbatim_rows=literal_continuation_rows(statement))
    return parse_expression(text)


def _pattern_names(parsed: ParsedSource, node: Node) -> List[str]:
    if node.type in ("identifier", "shorthand_property_identifier_pattern"):
        return [parsed.node_text(node)]
    if node.type == "pair_pattern":
        value = node.child_by_field_name("value")
        return _pattern_names(parsed, value) if value is not None else []
    if node.type in ("assignment_pattern", "object_assignment_pattern"):
        left = node.child_by_field_name("left")
        return _pattern_names(parsed, left) if left is not None else []
    if node.type in ("object_pattern", "array_pattern", "rest_pattern"):
        return [name for child in code_children(node) for name in _pattern_names(parsed, child)]
    return []


def lexical_declaration_names(text: str) -> List[str]:
    """Names bound by a ``let``/``const`` declaration, including destructured ones."""
    if not text.strip():
        return []
    parsed = parse_text(text)
    statement = _single_statement(parsed)
    if statement is None or statement.type != "lexical_declaration":
        return []
    names: List[str] = []
    for declarator in code_children(statement):
        if declarator.type != "variable_declarator":
            continue
        target = declarator.child_by_field_name("name")
        if target is not None:
            names.extend(_pattern_names(parsed, target))
    return names


def parse_parameter_names(text: str) -> List[str]:
    return [token.strip() for token in text.split(",") if token.strip()]
