"""
Minimal script AST produced by lowering and consumed by the printer.

Nodes the compiler builds itself (calls, declarations, control flow) are
modelled structurally. Text typed by the user is carried as
``SourceExpression``/``SourceStatement`` after it has been checked by the
tree-sitter grammar, together with the precedence the printer needs to decide
on parentheses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Union

# Operator precedence, higher binds tighter.
PREC_SEQUENCE = 1
PREC_ASSIGNMENT = 2
PREC_CONDITIONAL = 3
PREC_UNARY = 15
PREC_POSTFIX = 16
PREC_NEW = 16
PREC_CALL = 17
PREC_MEMBER = 18
PREC_PRIMARY = 20

BINARY_PRECEDENCE = {
    "??": 4,
    "||": 4,
    "&&": 5,
    "|": 6,
    "^": 7,
    "&": 8,
    "==": 9,
    "!=": 9,
    "===": 9,
    "!==": 9,
    "<": 10,
    ">": 10,
    "<=": 10,
    ">=": 10,
    "instanceof": 10,
    "in": 10,
    "<<": 11,
    ">>": 11,
    ">>>": 11,
    "+": 12,
    "-": 12,
    "*": 13,
    "/": 13,
    "%": 13,
    "**": 14,
}


# -----------------------------
# Expressions
# -----------------------------
@dataclass
class Identifier:
    name: str


@dataclass
class StringLiteral:
    value: str


@dataclass
class NumberLiteral:
    value: Union[int, float]


@dataclass
class BooleanLiteral:
    value: bool


@dataclass
class ArrayExpression:
    elements: List["Expression"] = field(default_factory=list)


@dataclass
class ObjectProperty:
    key: str
    value: "Expression"


@dataclass
class ObjectExpression:
    properties: List[ObjectProperty] = field(default_factory=list)


@dataclass
class MemberExpression:
    object: "Expression"
    property: str


@dataclass
class CallExpression:
    callee: "Expression"
    arguments: List["Expression"] = field(default_factory=list)


@dataclass
class ArrowFunction:
    params: List[str]
    body: List["Statement"] = field(default_factory=list)


@dataclass
class AssignmentExpression:
    operator: str
    target: "Expression"
    value: "Expression"


@dataclass
class BinaryExpression:
    operator: str
    left: "Expression"
    right: "Expression"
    # Right operand continues a left-associative chain (``x + a + b``).
    associative_chain: bool = False


@dataclass
class SourceExpression:
    text: str
    precedence: int = PREC_PRIMARY
    # Top-level binary operator of ``text``, if any.
    operator: Optional[str] = None
    # Lines of ``text`` that start inside a string literal and keep their indentation.
    verbatim_rows: FrozenSet[int] = frozenset()


Expression = Union[
    Identifier,
    StringLiteral,
    NumberLiteral,
    BooleanLiteral,
    ArrayExpression,
    ObjectExpression,
    MemberExpression,
    CallExpression,
    ArrowFunction,
    AssignmentExpression,
    BinaryExpression,
    SourceExpression,
]


# -----------------------------
# Statements
# -----------------------------
@dataclass
class ExpressionStatement:
    expression: Expression


@dataclass
class VariableDeclaration:
    name: str
    init: Optional[Expression] = None
    keyword: str = "let"


@dataclass
class FunctionDeclaration:
    name: str
    params: List[str]
    body: List["Statement"] = field(default_factory=list)


@dataclass
class ReturnStatement:
    argument: Optional[Expression] = None


@dataclass
class ThrowStatement:
    argument: Expression


@dataclass
class BreakStatement:
    pass


@dataclass
class ContinueStatement:
    pass


@dataclass
class IfStatement:
    test: Expression
    consequent: List["Statement"] = field(default_factory=list)
    # A nested IfStatement prints as ``else if``.
    alternate: Union[List["Statement"], "IfStatement", None] = None


@dataclass
class WhileStatement:
    test: Expression
    body: List["Statement"] = field(default_factory=list)


@dataclass
class ForStatement:
    # ``init`` is printed verbatim so it may hold a ``let`` declaration.
    init: Optional[Expression] = None
    test: Optional[Expression] = None
    update: Optional[Expression] = None
    body: List["Statement"] = field(default_factory=list)


@dataclass
class SwitchCase:
    test: Optional[Expression]
    body: List["Statement"] = field(default_factory=list)


@dataclass
class SwitchStatement:
    discriminant: Expression
    cases: List[SwitchCase] = field(default_factory=list)


@dataclass
class CatchClause:
    param: Optional[str]
    body: List["Statement"] = field(default_factory=list)


@dataclass
class TryStatement:
    block: List["Statement"] = field(default_factory=list)
    handler: Optional[CatchClause] = None
    finalizer: Optional[List["Statement"]] = None


@dataclass
class SourceStatement:
    text: str
    verbatim_rows: FrozenSet[int] = frozenset()


@dataclass
class Commented:
    statement: "Statement"
    comments: List[str] = field(default_factory=list)


Statement = Union[
    ExpressionStatement,
    VariableDeclaration,
    FunctionDeclaration,
    ReturnStatement,
    ThrowStatement,
    BreakStatement,
    ContinueStatement,
    IfStatement,
    WhileStatement,
    ForStatement,
    SwitchStatement,
    TryStatement,
    SourceStatement,
    Commented,
]
