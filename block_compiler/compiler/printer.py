"""
Pretty printer for the script AST.

Every node prints to unindented text; enclosing blocks indent each line of
their children. Parentheses are inserted only where operator precedence
requires them.
"""

from __future__ import annotations

import json
import math
import re
from typing import AbstractSet, List, Optional, Sequence

from block_compiler.compiler import ast
from block_compiler.compiler.ast import (
    BINARY_PRECEDENCE,
    PREC_ASSIGNMENT,
    PREC_CALL,
    PREC_MEMBER,
    PREC_POSTFIX,
    PREC_PRIMARY,
    PREC_UNARY,
)

_IDENTIFIER_NAME = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_DIGITS_ONLY = re.compile(r"^\d+$")
# Expression statements that would otherwise be read as a declaration or block.
_AMBIGUOUS_STATEMENT_START = re.compile(r"^(\{|function\b|class\b|let\s*\[|async\s+function\b)")
_MIXED_LOGICAL = {"||", "&&"}
# Marks printed lines whose leading whitespace belongs to a string literal;
# block indentation skips them and the marker is removed from the final text.
_VERBATIM = "\x00"


def _mark_verbatim(text: str, rows: AbstractSet[int]) -> str:
    if not rows:
        return text
    lines = text.split("\n")
    return "\n".join(f"{_VERBATIM}{line}" if row in rows else line for row, line in enumerate(lines))


def _unmark(text: str) -> str:
    return text.replace(_VERBATIM, "")


def format_number(value: float | int) -> str:
    if isinstance(value, bool):
        raise TypeError("booleans are not numeric literals")
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def format_string(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def format_property_key(key: str) -> str:
    return key if _IDENTIFIER_NAME.match(key) else format_string(key)


def precedence_of(node: ast.Expression) -> int:
    if isinstance(node, ast.SourceExpression):
        return node.precedence
    if isinstance(node, ast.NumberLiteral):
        return PREC_UNARY if format_number(node.value).startswith("-") else PREC_PRIMARY
    if isinstance(node, ast.BinaryExpression):
        return BINARY_PRECEDENCE[node.operator]
    if isinstance(node, (ast.AssignmentExpression, ast.ArrowFunction)):
        return PREC_ASSIGNMENT
    if isinstance(node, ast.CallExpression):
        return PREC_CALL
    if isinstance(node, ast.MemberExpression):
        return PREC_MEMBER
    return PREC_PRIMARY


def operator_of(node: ast.Expression) -> Optional[str]:
    if isinstance(node, ast.BinaryExpression):
        return node.operator
    if isinstance(node, ast.SourceExpression):
        return node.operator
    return None


class ScriptPrinter:
    def __init__(self, indent: str = "  ") -> None:
        self.indent = indent

    # -----------------------------
    # Entry points
    # -----------------------------
    def program(self, statements: Sequence[ast.Statement]) -> str:
        body = _unmark(self._join(statements))
        return f"{body}\n" if body else ""

    def statement(self, node: ast.Statement) -> str:
        return _unmark(self._statement(node))

    def expression(self, node: ast.Expression) -> str:
        return _unmark(self._expression(node))

    def _statement(self, node: ast.Statement) -> str:
        return getattr(self, f"_stmt_{type(node).__name__}")(node)

    def _expression(self, node: ast.Expression) -> str:
        return getattr(self, f"_expr_{type(node).__name__}")(node)

    # -----------------------------
    # Helpers
    # -----------------------------
    def _join(self, statements: Sequence[ast.Statement]) -> str:
        texts = [self._statement(node) for node in statements]
        return "\n".join(text for text in texts if text)

    def _indent(self, text: str) -> str:
        return "\n".join(
            f"{self.indent}{line}" if line.strip() and not line.startswith(_VERBATIM) else line
            for line in text.split("\n")
        )

    def block(self, statements: Sequence[ast.Statement]) -> str:
        body = self._join(statements)
        if not body:
            return "{}"
        return "{\n" + self._indent(body) + "\n}"

    def _wrap(self, node: ast.Expression, minimum: int) -> str:
        text = self._expression(node)
        if precedence_of(node) < minimum:
            return f"({text})"
        return text

    def _operand(self, node: ast.Expression, minimum: int, parent_operator: str) -> str:
        child_operator = operator_of(node)
        mixes_nullish = (parent_operator == "??" and child_operator in _MIXED_LOGICAL) or (
            child_operator == "??" and parent_operator in _MIXED_LOGICAL
        )
        text = self._expression(node)
        if mixes_nullish or precedence_of(node) < minimum:
            return f"({text})"
        return text

    def _object_operand(self, node: ast.Expression) -> str:
        text = self._expression(node)
        bare_integer = isinstance(node, ast.NumberLiteral) and _DIGITS_ONLY.match(text)
        bare_integer = bare_integer or (isinstance(node, ast.SourceExpression) and _DIGITS_ONLY.match(text))
        if bare_integer or precedence_of(node) < PREC_CALL:
            return f"({text})"
        return text

    def _arguments(self, nodes: Sequence[ast.Expression]) -> str:
        return ", ".join(self._wrap(node, PREC_ASSIGNMENT) for node in nodes)

    # -----------------------------
    # Expressions
    # -----------------------------
    def _expr_Identifier(self, node: ast.Identifier) -> str:
        return node.name

    def _expr_StringLiteral(self, node: ast.StringLiteral) -> str:
        return format_string(node.value)

    def _expr_NumberLiteral(self, node: ast.NumberLiteral) -> str:
        return format_number(node.value)

    def _expr_BooleanLiteral(self, node: ast.BooleanLiteral) -> str:
        return "true" if node.value else "false"

    def _expr_ArrayExpression(self, node: ast.ArrayExpression) -> str:
        return f"[{self._arguments(node.elements)}]"

    def _expr_ObjectExpression(self, node: ast.ObjectExpression) -> str:
        if not node.properties:
            return "{}"
        members = ", ".join(
            f"{format_property_key(prop.key)}: {self._wrap(prop.value, PREC_ASSIGNMENT)}" for prop in node.properties
        )
        return f"{{ {members} }}"

    def _expr_MemberExpression(self, node: ast.MemberExpression) -> str:
        return f"{self._object_operand(node.object)}.{node.property}"

    def _expr_CallExpression(self, node: ast.CallExpression) -> str:
        return f"{self._wrap(node.callee, PREC_CALL)}({self._arguments(node.arguments)})"

    def _expr_ArrowFunction(self, node: ast.ArrowFunction) -> str:
        return f"({', '.join(node.params)}) => {self.block(node.body)}"

    def _expr_AssignmentExpression(self, node: ast.AssignmentExpression) -> str:
        target = self._wrap(node.target, PREC_CALL)
        return f"{target} {node.operator} {self._wrap(node.value, PREC_ASSIGNMENT)}"

    def _expr_BinaryExpression(self, node: ast.BinaryExpression) -> str:
        operator = node.operator
        precedence = BINARY_PRECEDENCE[operator]
        if operator == "**":
            # Right-associative, and a unary left operand is a syntax error.
            left_minimum, right_minimum = PREC_POSTFIX, precedence
        else:
            left_minimum, right_minimum = precedence, precedence + 1
            if node.associative_chain and operator_of(node.right) == operator:
                right_minimum = precedence
        left = self._operand(node.left, left_minimum, operator)
        right = self._operand(node.right, right_minimum, operator)
        return f"{left} {operator} {right}"

    def _expr_SourceExpression(self, node: ast.SourceExpression) -> str:
        return _mark_verbatim(node.text, node.verbatim_rows)

    # -----------------------------
    # Statements
    # -----------------------------
    def _stmt_ExpressionStatement(self, node: ast.ExpressionStatement) -> str:
        text = self._expression(node.expression)
        if _AMBIGUOUS_STATEMENT_START.match(text):
            text = f"({text})"
        return f"{text};"

    def _stmt_VariableDeclaration(self, node: ast.VariableDeclaration) -> str:
        if node.init is None:
            return f"{node.keyword} {node.name};"
        return f"{node.keyword} {node.name} = {self._wrap(node.init, PREC_ASSIGNMENT)};"

    def _stmt_FunctionDeclaration(self, node: ast.FunctionDeclaration) -> str:
        return f"function {node.name}({', '.join(node.params)}) {self.block(node.body)}"

    def _stmt_ReturnStatement(self, node: ast.ReturnStatement) -> str:
        if node.argument is None:
            return "return;"
        return f"return {self._expression(node.argument)};"

    def _stmt_ThrowStatement(self, node: ast.ThrowStatement) -> str:
        return f"throw {self._expression(node.argument)};"

    def _stmt_BreakStatement(self, node: ast.BreakStatement) -> str:
        return "break;"

    def _stmt_ContinueStatement(self, node: ast.ContinueStatement) -> str:
        return "continue;"

    def _stmt_IfStatement(self, node: ast.IfStatement) -> str:
        text = f"if ({self._expression(node.test)}) {self.block(node.consequent)}"
        if isinstance(node.alternate, ast.IfStatement):
            return f"{text} else {self._stmt_IfStatement(node.alternate)}"
        if node.alternate:
            return f"{text} else {self.block(node.alternate)}"
        return text

    def _stmt_WhileStatement(self, node: ast.WhileStatement) -> str:
        return f"while ({self._expression(node.test)}) {self.block(node.body)}"

    def _stmt_ForStatement(self, node: ast.ForStatement) -> str:
        init = self._expression(node.init) if node.init is not None else ""
        test = f" {self._expression(node.test)}" if node.test is not None else ""
        update = f" {self._expression(node.update)}" if node.update is not None else ""
        return f"for ({init};{test};{update}) {self.block(node.body)}"

    def _stmt_SwitchStatement(self, node: ast.SwitchStatement) -> str:
        head = f"switch ({self._expression(node.discriminant)})"
        if not node.cases:
            return f"{head} {{}}"
        cases: List[str] = []
        for case in node.cases:
            label = "default:" if case.test is None else f"case {self._expression(case.test)}:"
            body = self._join(case.body)
            cases.append(f"{label}\n{self._indent(body)}" if body else label)
        return f"{head} {{\n" + self._indent("\n".join(cases)) + "\n}"

    def _stmt_TryStatement(self, node: ast.TryStatement) -> str:
        text = f"try {self.block(node.block)}"
        if node.handler is not None:
            param = f" ({node.handler.param})" if node.handler.param else ""
            text += f" catch{param} {self.block(node.handler.body)}"
        finalizer = node.finalizer
        if finalizer is None and node.handler is None:
            finalizer = []
        if finalizer is not None:
            text += f" finally {self.block(finalizer)}"
        return text

    def _stmt_SourceStatement(self, node: ast.SourceStatement) -> str:
        return _mark_verbatim(node.text, node.verbatim_rows)

    def _stmt_Commented(self, node: ast.Commented) -> str:
        lines: List[str] = []
        for comment in node.comments:
            for line in comment.split("\n"):
                lines.append(f"// {line}" if line else "//")
        statement = self._statement(node.statement)
        if statement:
            lines.append(statement)
        return "\n".join(lines)
