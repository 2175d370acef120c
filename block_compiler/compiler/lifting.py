"""
Lift script source text into a workflow document.

Every top-level statement becomes one block appended to the program's body;
nested statement lists recurse into the owning block's slots. Recognition
tries, in order: manifest primitives, generic and array-method calls,
assignments, structural statements. Anything left over is preserved verbatim
as a ``raw-statement``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional
from uuid import uuid4

from tree_sitter import Node

from block_compiler.compiler.call_synthesis import extract_call_fields
from block_compiler.compiler.context import CompilerContext, get_default_context
from block_compiler.compiler.source import (
    ParsedSource,
    code_children,
    is_async,
    is_comment,
    literal_continuation_rows,
    operator_text,
    parse_program,
    rebase_continuation_lines,
)
from block_compiler.errors import DocumentStructureError, NestingDepthError
from block_compiler.schema.models import BlockInstance, BlockMetadata, DocumentMetadata, WorkflowDocument
from shared.logger import get_logger

logger = get_logger(__name__)

BINARY_UPDATE_OPERATIONS = {
    "+": "add",
    "-": "subtract",
    "*": "multiply",
    "/": "divide",
    "%": "modulo",
}
COMPOUND_UPDATE_OPERATIONS = {f"{operator}=": operation for operator, operation in BINARY_UPDATE_OPERATIONS.items()}
COMPREHENSION_METHODS = {"map": "array-map", "filter": "array-filter"}


def new_block_id() -> str:
    return uuid4().hex


def comment_text(raw: str) -> str:
    """Comment body without its ``//`` or ``/* */`` markers."""
    if raw.startswith("//"):
        return raw[2:].strip()
    body = raw[3:-2] if raw.startswith("/**") else raw[2:-2]
    lines = [line.strip() for line in body.split("\n")]
    lines = [line[1:].strip() if line.startswith("*") else line for line in lines]
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines)


class Lifting:
    def __init__(self, parsed: ParsedSource, context: CompilerContext) -> None:
        self.parsed = parsed
        self.context = context
        self.registry = context.block_registry
        self.manifest = context.manifest
        self.max_depth = context.settings.max_nesting_depth
        self.blocks: Dict[str, BlockInstance] = {}
        self._depth = 0
        self._base_column = 0
        self._handlers: Dict[str, Callable[[Node], BlockInstance]] = {
            "expression_statement": self._lift_expression_statement,
            "lexical_declaration": self._lift_lexical_declaration,
            "function_declaration": self._lift_function_declaration,
            "if_statement": self._lift_if,
            "while_statement": self._lift_while,
            "for_statement": self._lift_for,
            "break_statement": self._lift_jump,
            "continue_statement": self._lift_jump,
            "return_statement": self._lift_return,
            "throw_statement": self._lift_throw,
            "switch_statement": self._lift_switch,
            "try_statement": self._lift_try,
        }

    # -----------------------------
    # Plumbing
    # -----------------------------
    def run(self, *, name: Optional[str] = None, source_path: Optional[str] = None) -> WorkflowDocument:
        root = self._new_block("program", {}, self.parsed.root)
        root.metadata.source_location = None
        root.children["body"] = self.statement_list(self.parsed.root.named_children)
        metadata = DocumentMetadata(source_path=source_path)
        if name:
            metadata.name = name
        return WorkflowDocument(id=new_block_id(), root=root.id, blocks=self.blocks, metadata=metadata)

    @contextmanager
    def _nested(self, node: Node) -> Iterator[None]:
        self._depth += 1
        previous_base = self._base_column
        self._base_column = self.parsed.column(node.start_point)
        try:
            if self._depth > self.max_depth:
                line = node.start_point[0] + 1
                raise NestingDepthError(f"Statements nested deeper than {self.max_depth} levels at line {line}")
            yield
        finally:
            self._depth -= 1
            self._base_column = previous_base

    def _text(self, node: Node) -> str:
        return rebase_continuation_lines(
            self.parsed.node_text(node), self._base_column, literal_continuation_rows(node)
        )

    def _new_block(self, kind: str, data: Dict[str, Any], node: Node) -> BlockInstance:
        schema = self.registry.require(kind)
        block = BlockInstance(
            id=new_block_id(),
            kind=kind,
            data={key: value for key, value in data.items() if value is not None},
            children={slot_id: [] for slot_id in schema.slot_ids},
            metadata=BlockMetadata(source_location=self.parsed.location(node)),
        )
        self.blocks[block.id] = block
        return block

    def statement_list(self, nodes: List[Node]) -> List[str]:
        ids: List[str] = []
        pending: List[str] = []
        previous: Optional[tuple] = None
        for node in nodes:
            if is_comment(node):
                text = comment_text(self.parsed.node_text(node))
                if previous is not None and node.start_point[0] == previous[1].end_point[0]:
                    # Trailing comment on the previous statement's last line.
                    block = previous[0]
                    block.metadata.comments = (block.metadata.comments or []) + [text]
                else:
                    pending.append(text)
                continue
            block = self.lift_statement(node)
            if pending:
                block.metadata.comments = (block.metadata.comments or []) + pending
                pending = []
            ids.append(block.id)
            previous = (block, node)
        if pending:
            logger.debug(f"Dropping {len(pending)} comment(s) with no following statement")
        return ids

    def body_list(self, node: Optional[Node]) -> List[str]:
        if node is None:
            return []
        if node.type == "statement_block":
            return self.statement_list(node.named_children)
        return [self.lift_statement(node).id]

    def lift_statement(self, node: Node) -> BlockInstance:
        with self._nested(node):
            handler = self._handlers.get(node.type)
            block = handler(node) if handler is not None else None
            if block is None:
                block = self.raw(node)
        return block

    def raw(self, node: Node) -> BlockInstance:
        logger.debug(f"Keeping '{node.type}' at line {node.start_point[0] + 1} as a raw statement")
        return self._new_block("raw-statement", {"code": self._text(node)}, node)

    @staticmethod
    def _inner(node: Optional[Node]) -> Optional[Node]:
        """Expression inside a ``parenthesized_expression``."""
        if node is None:
            return None
        if node.type == "parenthesized_expression":
            children = code_children(node)
            return children[0] if len(children) == 1 else None
        return node

    # -----------------------------
    # Calls
    # -----------------------------
    def _lift_primitive(self, call: Node, statement: Node, binding: Optional[str]) -> Optional[BlockInstance]:
        callee = call.child_by_field_name("function")
        if callee is None or callee.type != "identifier":
            return None
        entry = self.manifest.by_api_name(self.parsed.node_text(callee))
        if entry is None:
            return None
        if binding is not None and not entry.identifier_field:
            logger.debug(f"'{entry.api_name}' cannot be bound to a variable; lifting as a plain call")
            return None
        arguments = call.child_by_field_name("arguments")
        data = extract_call_fields(entry, self.parsed, arguments, self._text) if arguments is not None else None
        if data is None:
            logger.debug(f"'{entry.api_name}' call at line {call.start_point[0] + 1} does not match its manifest shape")
            return None
        if binding is not None:
            data[entry.identifier_field] = binding
        return self._new_block(entry.block_kind, data, statement)

    def _argument_text(self, arguments: Node) -> str:
        text = self._text(arguments).strip()
        if text.startswith("(") and text.endswith(")"):
            text = text[1:-1]
        return text.strip()

    def _lift_function_call(self, call: Node, statement: Node, binding: Optional[str]) -> Optional[BlockInstance]:
        callee = call.child_by_field_name("function")
        arguments = call.child_by_field_name("arguments")
        if callee is None or callee.type != "identifier" or arguments is None or arguments.type != "arguments":
            return None
        data = {
            "functionName": self.parsed.node_text(callee),
            "arguments": self._argument_text(arguments) or None,
            "assignTo": binding,
        }
        return self._new_block("function-call", data, statement)

    def _method_call(self, call: Node, method_names: tuple) -> Optional[tuple]:
        """(object node, method, argument nodes) for ``<object>.<method>(...)``."""
        if call.type != "call_expression":
            return None
        callee = call.child_by_field_name("function")
        arguments = call.child_by_field_name("arguments")
        if callee is None or callee.type != "member_expression" or arguments is None or arguments.type != "arguments":
            return None
        if any(child.type == "optional_chain" for child in callee.children):
            return None
        target = callee.child_by_field_name("object")
        prop = callee.child_by_field_name("property")
        if target is None or prop is None:
            return None
        method = self.parsed.node_text(prop)
        if method not in method_names:
            return None
        return target, method, code_children(arguments)

    def _push_call(self, call: Node) -> Optional[tuple]:
        matched = self._method_call(call, ("push",))
        if matched is None:
            return None
        target, _, arguments = matched
        if target.type != "identifier" or len(arguments) != 1 or arguments[0].type == "spread_element":
            return None
        return self.parsed.node_text(target), arguments[0]

    def _callback(self, arguments: List[Node]) -> Optional[tuple]:
        """(params, body) for a single non-async block-bodied arrow callback."""
        if len(arguments) != 1 or arguments[0].type != "arrow_function":
            return None
        arrow = arguments[0]
        if is_async(arrow):
            return None
        body = arrow.child_by_field_name("body")
        if body is None or body.type != "statement_block":
            return None
        single = arrow.child_by_field_name("parameter")
        if single is not None:
            params = [single]
        else:
            formal = arrow.child_by_field_name("parameters")
            params = code_children(formal) if formal is not None else []
        if not 1 <= len(params) <= 2 or any(param.type != "identifier" for param in params):
            return None
        return [self.parsed.node_text(param) for param in params], body

    def _lift_comprehension(self, call: Node, statement: Node, binding: Optional[str]) -> Optional[BlockInstance]:
        methods = tuple(COMPREHENSION_METHODS) if binding is not None else ("forEach",)
        matched = self._method_call(call, methods)
        if matched is None:
            return None
        target, method, arguments = matched
        callback = self._callback(arguments)
        if callback is None:
            return None
        params, body = callback
        kind = COMPREHENSION_METHODS.get(method, "array-for-each")
        data = {
            "identifier": binding,
            "array": self._text(target),
            "item": params[0],
            "index": params[1] if len(params) > 1 else None,
        }
        block = self._new_block(kind, data, statement)
        block.children["body"] = self.statement_list(body.named_children)
        return block

    # -----------------------------
    # Expression statements
    # -----------------------------
    def _lift_expression_statement(self, node: Node) -> Optional[BlockInstance]:
        children = code_children(node)
        if len(children) != 1:
            return None
        expression = children[0]

        if expression.type == "call_expression":
            block = (
                self._lift_primitive(expression, node, None)
                or self._lift_function_call(expression, node, None)
                or self._lift_array_push(expression, node)
                or self._lift_comprehension(expression, node, None)
            )
            if block is not None:
                return block
        elif expression.type == "assignment_expression":
            return self._lift_assignment(expression, node)
        elif expression.type == "augmented_assignment_expression":
            return self._lift_compound_assignment(expression, node)

        return self._new_block("expression-statement", {"code": self._text(expression)}, node)

    def _lift_array_push(self, call: Node, statement: Node, store_result: bool = False) -> Optional[BlockInstance]:
        push = self._push_call(call)
        if push is None:
            return None
        array, value = push
        data = {"array": array, "value": self._text(value), "storeResult": True if store_result else None}
        return self._new_block("array-push", data, statement)

    def _lift_assignment(self, expression: Node, statement: Node) -> Optional[BlockInstance]:
        left = expression.child_by_field_name("left")
        right = expression.child_by_field_name("right")
        if left is None or right is None or left.type != "identifier":
            return None
        name = self.parsed.node_text(left)

        if right.type == "call_expression":
            push = self._push_call(right)
            if push is not None and push[0] == name:
                return self._lift_array_push(right, statement, store_result=True)

        update = self._binary_update(name, right)
        if update is not None:
            operation, value = update
            return self._new_block(
                "variable-update",
                {"identifier": name, "operation": operation, "value": value},
                statement,
            )
        return self._new_block(
            "variable-update",
            {"identifier": name, "operation": "assign", "value": self._text(right)},
            statement,
        )

    def _binary_update(self, name: str, right: Node) -> Optional[tuple]:
        """(operation, value text) for ``name = name <op> value``."""
        if right.type != "binary_expression":
            return None
        operator = operator_text(right)
        operation = BINARY_UPDATE_OPERATIONS.get(operator or "")
        if operation is None:
            return None
        innermost = right
        if operator == "+":
            # Walk the left spine of ``x + a + b`` down to ``x + a``.
            while True:
                left = innermost.child_by_field_name("left")
                if left is None or left.type != "binary_expression" or operator_text(left) != "+":
                    break
                innermost = left
        left = innermost.child_by_field_name("left")
        value = innermost.child_by_field_name("right")
        if left is None or value is None or left.type != "identifier" or self.parsed.node_text(left) != name:
            return None
        text = self.parsed.data[value.start_byte:right.end_byte].decode("utf-8", errors="replace")
        keep = literal_continuation_rows(right, origin_row=value.start_point[0])
        return operation, rebase_continuation_lines(text, self._base_column, keep)

    def _lift_compound_assignment(self, expression: Node, statement: Node) -> Optional[BlockInstance]:
        left = expression.child_by_field_name("left")
        right = expression.child_by_field_name("right")
        operation = COMPOUND_UPDATE_OPERATIONS.get(operator_text(expression) or "")
        if left is None or right is None or left.type != "identifier" or operation is None:
            return None
        data = {
            "identifier": self.parsed.node_text(left),
            "operation": operation,
            "value": self._text(right),
            "operatorStyle": "compound",
        }
        return self._new_block("variable-update", data, statement)

    # -----------------------------
    # Declarations
    # -----------------------------
    def _lift_lexical_declaration(self, node: Node) -> Optional[BlockInstance]:
        if not node.children or node.children[0].type != "let":
            return None
        declarators = [child for child in code_children(node) if child.type == "variable_declarator"]
        if len(declarators) != 1:
            return None
        name_node = declarators[0].child_by_field_name("name")
        value = declarators[0].child_by_field_name("value")
        if name_node is None or name_node.type != "identifier":
            return None
        name = self.parsed.node_text(name_node)

        if value is not None and value.type == "call_expression":
            block = (
                self._lift_primitive(value, node, name)
                or self._lift_function_call(value, node, name)
                or self._lift_comprehension(value, node, name)
            )
            if block is not None:
                return block

        data = {"identifier": name, "initializer": self._text(value) if value is not None else None}
        return self._new_block("variable-declaration", data, node)

    def _lift_function_declaration(self, node: Node) -> Optional[BlockInstance]:
        if is_async(node):
            return None
        name = node.child_by_field_name("name")
        parameters = node.child_by_field_name("parameters")
        body = node.child_by_field_name("body")
        if name is None or body is None:
            return None
        params = code_children(parameters) if parameters is not None else []
        if any(param.type != "identifier" for param in params):
            return None
        data = {
            "identifier": self.parsed.node_text(name),
            "parameters": ", ".join(self.parsed.node_text(param) for param in params) or None,
        }
        block = self._new_block("function-declaration", data, node)
        block.children["body"] = self.body_list(body)
        return block

    # -----------------------------
    # Control flow
    # -----------------------------
    def _lift_if(self, node: Node) -> Optional[BlockInstance]:
        test = self._inner(node.child_by_field_name("condition"))
        if test is None:
            return None
        block = self._new_block("if-statement", {"test": self._text(test)}, node)
        block.children["consequent"] = self.body_list(node.child_by_field_name("consequence"))
        alternative = node.child_by_field_name("alternative")
        if alternative is not None:
            branch = code_children(alternative)
            block.children["alternate"] = self.body_list(branch[0]) if branch else []
        return block

    def _lift_while(self, node: Node) -> Optional[BlockInstance]:
        test = self._inner(node.child_by_field_name("condition"))
        if test is None:
            return None
        block = self._new_block("while-statement", {"test": self._text(test)}, node)
        block.children["body"] = self.body_list(node.child_by_field_name("body"))
        return block

    def _clause_text(self, node: Optional[Node]) -> Optional[str]:
        if node is None:
            return None
        text = self._text(node).strip()
        while text.endswith(";"):
            text = text[:-1].rstrip()
        return text or None

    def _lift_for(self, node: Node) -> Optional[BlockInstance]:
        data = {
            "initializer": self._clause_text(node.child_by_field_name("initializer")),
            "test": self._clause_text(node.child_by_field_name("condition")),
            "update": self._clause_text(node.child_by_field_name("increment")),
        }
        block = self._new_block("for-statement", data, node)
        block.children["body"] = self.body_list(node.child_by_field_name("body"))
        return block

    def _lift_jump(self, node: Node) -> Optional[BlockInstance]:
        if code_children(node):
            # labelled break/continue
            return None
        kind = "break-statement" if node.type == "break_statement" else "continue-statement"
        return self._new_block(kind, {}, node)

    def _lift_return(self, node: Node) -> Optional[BlockInstance]:
        children = code_children(node)
        argument = self._text(children[0]) if children else None
        return self._new_block("return-statement", {"argument": argument}, node)

    def _lift_throw(self, node: Node) -> Optional[BlockInstance]:
        children = code_children(node)
        if len(children) != 1:
            return None
        return self._new_block("throw-statement", {"argument": self._text(children[0])}, node)

    def _lift_switch(self, node: Node) -> Optional[BlockInstance]:
        discriminant = self._inner(node.child_by_field_name("value"))
        body = node.child_by_field_name("body")
        if discriminant is None or body is None:
            return None
        block = self._new_block("switch-statement", {"discriminant": self._text(discriminant)}, node)
        cases: List[str] = []
        for case in body.named_children:
            if is_comment(case):
                logger.debug(f"Dropping comment between switch cases at line {case.start_point[0] + 1}")
                continue
            with self._nested(case):
                cases.append(self._lift_case(case).id)
        block.children["cases"] = cases
        return block

    def _lift_case(self, case: Node) -> BlockInstance:
        value = case.child_by_field_name("value")
        if case.type == "switch_default" or value is None:
            block = self._new_block("switch-case", {"isDefault": True}, case)
            statements = case.named_children
        else:
            block = self._new_block("switch-case", {"test": self._text(value)}, case)
            statements = [child for child in case.named_children if child.start_byte >= value.end_byte]
        block.children["body"] = self.statement_list(statements)
        return block

    def _lift_try(self, node: Node) -> Optional[BlockInstance]:
        body = node.child_by_field_name("body")
        if body is None:
            raise DocumentStructureError(f"try statement at line {node.start_point[0] + 1} has no body")
        block = self._new_block("try-statement", {}, node)
        block.children["try"] = self.body_list(body)

        handler = node.child_by_field_name("handler")
        if handler is not None:
            with self._nested(handler):
                handler_body = handler.child_by_field_name("body")
                if handler_body is None:
                    raise DocumentStructureError(
                        f"catch clause at line {handler.start_point[0] + 1} has no body"
                    )
                parameter = handler.child_by_field_name("parameter")
                catch = self._new_block(
                    "catch-clause",
                    {"param": self.parsed.node_text(parameter) if parameter is not None else None},
                    handler,
                )
                catch.children["body"] = self.body_list(handler_body)
            block.children["catch"] = [catch.id]

        finalizer = node.child_by_field_name("finalizer")
        if finalizer is not None:
            block.children["finally"] = self.body_list(finalizer.child_by_field_name("body"))
        return block


def parse_source(
    text: str,
    *,
    name: Optional[str] = None,
    source_path: Optional[str] = None,
    context: CompilerContext | None = None,
) -> WorkflowDocument:
    """Parse script source text into a new workflow document."""

    context = context or get_default_context()
    parsed = parse_program(text.replace("\r\n", "\n"))
    return Lifting(parsed, context).run(name=name, source_path=source_path)
