"""
Lower a workflow document into script source text.

Handlers are registered per block kind with ``@lowers``. Kinds without a
handler are looked up in the API manifest and lowered by the generic call
synthesizer.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from block_compiler.compiler import ast
from block_compiler.compiler.call_synthesis import synthesize_call
from block_compiler.compiler.context import CompilerContext, get_default_context
from block_compiler.compiler.expressions import (
    parse_argument_list,
    parse_expression,
    parse_for_initializer,
    parse_optional_expression,
    parse_parameter_names,
)
from block_compiler.compiler.printer import ScriptPrinter
from block_compiler.compiler.source import verbatim_rows
from block_compiler.errors import DocumentStructureError, NestingDepthError, UnknownBlockKindError
from block_compiler.schema.models import BlockInstance, WorkflowDocument
from shared.logger import get_logger

logger = get_logger(__name__)

LoweringHandler = Callable[["Lowering", BlockInstance], List[ast.Statement]]

_LOWERINGS: Dict[str, LoweringHandler] = {}

UPDATE_OPERATORS = {
    "add": "+",
    "subtract": "-",
    "multiply": "*",
    "divide": "/",
    "modulo": "%",
}


def lowers(*kinds: str) -> Callable[[LoweringHandler], LoweringHandler]:
    def decorator(handler: LoweringHandler) -> LoweringHandler:
        for kind in kinds:
            _LOWERINGS[kind] = handler
        return handler

    return decorator


def registered_lowerings() -> List[str]:
    return list(_LOWERINGS)


def _truthy(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _name(block: BlockInstance, field_id: str, placeholder: str) -> str:
    return block.text(field_id).strip() or placeholder


class Lowering:
    def __init__(self, document: WorkflowDocument, context: CompilerContext) -> None:
        self.document = document
        self.context = context
        self.max_depth = context.settings.max_nesting_depth
        self.emit_comments = context.settings.emit_comments
        self._depth = 0

    def run(self) -> List[ast.Statement]:
        root = self.document.get(self.document.root)
        if root is None:
            raise DocumentStructureError(f"Document root '{self.document.root}' is missing")
        return self.slot(root, "body")

    @contextmanager
    def nested(self, block: BlockInstance) -> Iterator[None]:
        self._depth += 1
        try:
            if self._depth > self.max_depth:
                raise NestingDepthError(
                    f"Block '{block.id}' is nested deeper than {self.max_depth} levels"
                )
            yield
        finally:
            self._depth -= 1

    def children(self, block: BlockInstance, slot_id: str) -> List[BlockInstance]:
        blocks: List[BlockInstance] = []
        for child_id in block.slot(slot_id):
            child = self.document.get(child_id)
            if child is None:
                raise DocumentStructureError(
                    f"Block '{block.id}' slot '{slot_id}' references missing block '{child_id}'"
                )
            blocks.append(child)
        return blocks

    def slot(self, block: BlockInstance, slot_id: str) -> List[ast.Statement]:
        statements: List[ast.Statement] = []
        for child in self.children(block, slot_id):
            statements.extend(self.lower(child))
        return statements

    def lower(self, block: BlockInstance) -> List[ast.Statement]:
        with self.nested(block):
            handler = _LOWERINGS.get(block.kind)
            if handler is not None:
                statements = handler(self, block)
            else:
                entry = self.context.manifest.by_kind(block.kind)
                if entry is None:
                    raise UnknownBlockKindError(f"No lowering for block kind '{block.kind}' (block '{block.id}')")
                statements = [synthesize_call(block, entry).statement]
        return self._with_comments(block, statements)

    def _with_comments(self, block: BlockInstance, statements: List[ast.Statement]) -> List[ast.Statement]:
        comments = block.metadata.comments
        if not (self.emit_comments and comments):
            return statements
        if not statements:
            return [ast.Commented(ast.SourceStatement(""), list(comments))]
        return [ast.Commented(statements[0], list(comments))] + statements[1:]


# -----------------------------
# Variables
# -----------------------------
@lowers("variable-declaration")
def _lower_variable_declaration(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    name = _name(block, "identifier", "result")
    return [ast.VariableDeclaration(name=name, init=parse_optional_expression(block.text("initializer")))]


@lowers("variable-update")
def _lower_variable_update(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    target = ast.Identifier(_name(block, "identifier", "result"))
    value = parse_expression(block.text("value"))
    operator = UPDATE_OPERATORS.get(block.text("operation"))
    if operator is None:
        assignment = ast.AssignmentExpression("=", target, value)
    elif block.text("operatorStyle") == "compound":
        assignment = ast.AssignmentExpression(f"{operator}=", target, value)
    else:
        combined = ast.BinaryExpression(operator, ast.Identifier(target.name), value, associative_chain=operator == "+")
        assignment = ast.AssignmentExpression("=", target, combined)
    return [ast.ExpressionStatement(assignment)]


@lowers("array-push")
def _lower_array_push(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    array = _name(block, "array", "items")
    call = ast.CallExpression(
        ast.MemberExpression(ast.Identifier(array), "push"),
        [parse_expression(block.text("value"))],
    )
    if _truthy(block.data.get("storeResult")):
        return [ast.ExpressionStatement(ast.AssignmentExpression("=", ast.Identifier(array), call))]
    return [ast.ExpressionStatement(call)]


@lowers("array-map", "array-filter", "array-for-each")
def _lower_array_comprehension(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    method = {"array-map": "map", "array-filter": "filter", "array-for-each": "forEach"}[block.kind]
    params = [_name(block, "item", "item")]
    index = block.text("index").strip()
    if index:
        params.append(index)
    callback = ast.ArrowFunction(params=params, body=lowering.slot(block, "body"))
    call = ast.CallExpression(ast.MemberExpression(parse_expression(block.text("array")), method), [callback])
    result = block.text("identifier").strip() if block.kind != "array-for-each" else ""
    if result:
        return [ast.VariableDeclaration(name=result, init=call)]
    return [ast.ExpressionStatement(call)]


# -----------------------------
# Functions
# -----------------------------
@lowers("function-declaration")
def _lower_function_declaration(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    return [
        ast.FunctionDeclaration(
            name=_name(block, "identifier", "anonymous"),
            params=parse_parameter_names(block.text("parameters")),
            body=lowering.slot(block, "body"),
        )
    ]


@lowers("function-call")
def _lower_function_call(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    call = ast.CallExpression(
        ast.Identifier(_name(block, "functionName", "call")),
        parse_argument_list(block.text("arguments")),
    )
    assign_to = block.text("assignTo").strip()
    if assign_to:
        return [ast.VariableDeclaration(name=assign_to, init=call)]
    return [ast.ExpressionStatement(call)]


@lowers("expression-statement")
def _lower_expression_statement(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    return [ast.ExpressionStatement(parse_expression(block.text("code")))]


@lowers("return-statement")
def _lower_return(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    return [ast.ReturnStatement(parse_optional_expression(block.text("argument")))]


# -----------------------------
# Control flow
# -----------------------------
@lowers("if-statement")
def _lower_if(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    test = parse_expression(block.text("test") or "false")
    consequent = lowering.slot(block, "consequent")
    alternate_blocks = lowering.children(block, "alternate")
    alternate: ast.IfStatement | List[ast.Statement] | None = None
    if alternate_blocks:
        statements: List[ast.Statement] = []
        for child in alternate_blocks:
            statements.extend(lowering.lower(child))
        if len(alternate_blocks) == 1 and len(statements) == 1 and isinstance(statements[0], ast.IfStatement):
            alternate = statements[0]
        else:
            alternate = statements or None
    return [ast.IfStatement(test=test, consequent=consequent, alternate=alternate)]


@lowers("while-statement")
def _lower_while(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    test = parse_expression(block.text("test") or "false")
    return [ast.WhileStatement(test=test, body=lowering.slot(block, "body"))]


@lowers("for-statement")
def _lower_for(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    return [
        ast.ForStatement(
            init=parse_for_initializer(block.text("initializer")),
            test=parse_optional_expression(block.text("test")),
            update=parse_optional_expression(block.text("update")),
            body=lowering.slot(block, "body"),
        )
    ]


@lowers("break-statement")
def _lower_break(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    return [ast.BreakStatement()]


@lowers("continue-statement")
def _lower_continue(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    return [ast.ContinueStatement()]


@lowers("throw-statement")
def _lower_throw(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    return [ast.ThrowStatement(parse_expression(block.text("argument")))]


@lowers("switch-statement")
def _lower_switch(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    cases: List[ast.SwitchCase] = []
    for case_block in lowering.children(block, "cases"):
        if case_block.kind != "switch-case":
            raise DocumentStructureError(
                f"Switch '{block.id}' holds a '{case_block.kind}' block in its cases slot"
            )
        with lowering.nested(case_block):
            test_code = case_block.text("test")
            is_default = _truthy(case_block.data.get("isDefault")) or not test_code.strip()
            test: Optional[ast.Expression] = None if is_default else parse_expression(test_code)
            cases.append(ast.SwitchCase(test=test, body=lowering.slot(case_block, "body")))
    return [ast.SwitchStatement(discriminant=parse_expression(block.text("discriminant")), cases=cases)]


@lowers("try-statement")
def _lower_try(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    handler: Optional[ast.CatchClause] = None
    catch_ids = block.slot("catch")
    if catch_ids:
        catch_block = lowering.document.get(catch_ids[0])
        if catch_block is None:
            raise DocumentStructureError(f"Try '{block.id}' references missing catch block '{catch_ids[0]}'")
        with lowering.nested(catch_block):
            param = catch_block.text("param").strip() or None
            handler = ast.CatchClause(param=param, body=lowering.slot(catch_block, "body"))
    finalizer = lowering.slot(block, "finally")
    return [
        ast.TryStatement(
            block=lowering.slot(block, "try"),
            handler=handler,
            finalizer=finalizer or None,
        )
    ]


@lowers("raw-statement")
def _lower_raw(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    code = block.text("code").strip()
    if not code:
        return []
    return [ast.SourceStatement(code, verbatim_rows=verbatim_rows(code))]


@lowers("program", "switch-case", "catch-clause")
def _lower_misplaced(lowering: Lowering, block: BlockInstance) -> List[ast.Statement]:
    raise DocumentStructureError(f"'{block.kind}' block '{block.id}' cannot appear in a statement slot")


def generate_source(document: WorkflowDocument, context: CompilerContext | None = None) -> str:
    """Generate script source text for ``document``."""

    context = context or get_default_context()
    statements = Lowering(document, context).run()
    return ScriptPrinter(context.settings.indent).program(statements)
