"""
Static catalog of the structural block kinds.

API-call kinds are not listed here; they are synthesized from the API
manifest when the registry is built.
"""

from __future__ import annotations

from typing import List

from block_compiler.schema.models import (
    BlockCategory,
    BlockSchema,
    BooleanInput,
    ChildSlotDefinition,
    CodeInput,
    EnumInput,
    EnumOption,
    ExpressionInput,
    FieldDefinition,
    IdentifierInput,
    PortDefinition,
    PortDirection,
    PortKind,
)

FLOW_IN = PortDefinition(
    id="flow-in",
    label="In",
    direction=PortDirection.input,
    port_kind=PortKind.flow,
    multiplicity="single",
)
FLOW_OUT = PortDefinition(
    id="flow-out",
    label="Out",
    direction=PortDirection.output,
    port_kind=PortKind.flow,
    multiplicity="single",
)

UPDATE_OPERATIONS = ("assign", "add", "subtract", "multiply", "divide", "modulo")


def flow_ports() -> List[PortDefinition]:
    return [FLOW_IN.model_copy(), FLOW_OUT.model_copy()]


def _code(field_id: str, label: str, *, required: bool = False, placeholder: str | None = None, description: str | None = None) -> FieldDefinition:
    return FieldDefinition(
        id=field_id,
        label=label,
        description=description,
        required=required,
        input=CodeInput(language="script", placeholder=placeholder),
    )


def _identifier(field_id: str, label: str, *, required: bool = False, scope: str = "variable", default: str | None = None) -> FieldDefinition:
    return FieldDefinition(
        id=field_id,
        label=label,
        required=required,
        default_value=default,
        input=IdentifierInput(scope=scope, allow_creation=True),
    )


def _slot(slot_id: str, label: str, allowed: List[str] | None = None) -> ChildSlotDefinition:
    return ChildSlotDefinition(id=slot_id, label=label, allowed_kinds=allowed)


def _comprehension(kind: str, label: str, method: str, *, binds_result: bool) -> BlockSchema:
    fields: List[FieldDefinition] = []
    if binds_result:
        fields.append(_identifier("identifier", "Store As"))
    fields.extend(
        [
            FieldDefinition(
                id="array",
                label="Array",
                required=True,
                input=ExpressionInput(expression_kind="any"),
            ),
            _identifier("item", "Item Name", default="item"),
            _identifier("index", "Index Name"),
        ]
    )
    return BlockSchema(
        kind=kind,
        label=label,
        category=BlockCategory.variables,
        description=f"Runs the body once per array element via .{method}().",
        fields=fields,
        ports=flow_ports(),
        child_slots=[_slot("body", "Body")],
    )


def build_static_schemas() -> List[BlockSchema]:
    """Return fresh copies of every static block schema."""

    return [
        BlockSchema(
            kind="program",
            label="Program",
            category=BlockCategory.program,
            ports=[FLOW_OUT.model_copy()],
            child_slots=[_slot("body", "Body")],
        ),
        BlockSchema(
            kind="expression-statement",
            label="Expression",
            category=BlockCategory.expressions,
            fields=[
                _code(
                    "code",
                    "Expression",
                    placeholder="callSomething()",
                    description="Expression evaluated for its side effects.",
                )
            ],
            ports=flow_ports(),
        ),
        BlockSchema(
            kind="variable-declaration",
            label="Variable",
            category=BlockCategory.variables,
            fields=[
                _identifier("identifier", "Name", required=True),
                _code("initializer", "Initializer", required=True, placeholder="value"),
            ],
            ports=flow_ports(),
        ),
        BlockSchema(
            kind="variable-update",
            label="Update Variable",
            category=BlockCategory.variables,
            fields=[
                _identifier("identifier", "Variable", required=True),
                FieldDefinition(
                    id="operation",
                    label="Operation",
                    required=True,
                    default_value="assign",
                    input=EnumInput(
                        options=[EnumOption(label=op.title(), value=op) for op in UPDATE_OPERATIONS]
                    ),
                ),
                _code("value", "Value", required=True, placeholder="1"),
                FieldDefinition(
                    id="operatorStyle",
                    label="Operator Style",
                    default_value="binary",
                    input=EnumInput(
                        options=[
                            EnumOption(label="x = x + y", value="binary"),
                            EnumOption(label="x += y", value="compound"),
                        ]
                    ),
                ),
            ],
            ports=flow_ports(),
        ),
        BlockSchema(
            kind="array-push",
            label="Append To Array",
            category=BlockCategory.variables,
            fields=[
                _identifier("array", "Array", required=True),
                _code("value", "Value", required=True, placeholder="item"),
                FieldDefinition(
                    id="storeResult",
                    label="Store Result In Array Variable",
                    default_value=False,
                    input=BooleanInput(),
                ),
            ],
            ports=flow_ports(),
        ),
        _comprehension("array-map", "Map Array", "map", binds_result=True),
        _comprehension("array-filter", "Filter Array", "filter", binds_result=True),
        _comprehension("array-for-each", "For Each Item", "forEach", binds_result=False),
        BlockSchema(
            kind="function-declaration",
            label="Function",
            category=BlockCategory.functions,
            fields=[
                _identifier("identifier", "Name", required=True, scope="function"),
                _code("parameters", "Parameters", placeholder="arg1, arg2", description="Comma-separated parameter names"),
            ],
            ports=flow_ports(),
            child_slots=[_slot("body", "Body")],
        ),
        BlockSchema(
            kind="function-call",
            label="Call Function",
            category=BlockCategory.functions,
            fields=[
                _identifier("functionName", "Function", required=True, scope="function"),
                _code("arguments", "Arguments", placeholder="a, b"),
                _identifier("assignTo", "Store As"),
            ],
            ports=flow_ports(),
        ),
        BlockSchema(
            kind="return-statement",
            label="Return",
            category=BlockCategory.control,
            fields=[_code("argument", "Value", placeholder="result")],
            ports=[FLOW_IN.model_copy()],
        ),
        BlockSchema(
            kind="if-statement",
            label="If",
            category=BlockCategory.control,
            fields=[_code("test", "Condition", required=True, placeholder="condition")],
            ports=flow_ports(),
            child_slots=[_slot("consequent", "Then"), _slot("alternate", "Else")],
        ),
        BlockSchema(
            kind="while-statement",
            label="While",
            category=BlockCategory.control,
            fields=[_code("test", "Condition", required=True, placeholder="i < 10")],
            ports=flow_ports(),
            child_slots=[_slot("body", "Body")],
        ),
        BlockSchema(
            kind="for-statement",
            label="For",
            category=BlockCategory.control,
            fields=[
                _code("initializer", "Initializer", placeholder="let i = 0"),
                _code("test", "Condition", placeholder="i < items.length"),
                _code("update", "Update", placeholder="i = i + 1"),
            ],
            ports=flow_ports(),
            child_slots=[_slot("body", "Body")],
        ),
        BlockSchema(
            kind="break-statement",
            label="Break",
            category=BlockCategory.control,
            ports=[FLOW_IN.model_copy()],
        ),
        BlockSchema(
            kind="continue-statement",
            label="Continue",
            category=BlockCategory.control,
            ports=[FLOW_IN.model_copy()],
        ),
        BlockSchema(
            kind="throw-statement",
            label="Throw",
            category=BlockCategory.control,
            fields=[_code("argument", "Expression", required=True, placeholder="error")],
            ports=[FLOW_IN.model_copy()],
        ),
        BlockSchema(
            kind="switch-case",
            label="Case",
            category=BlockCategory.control,
            fields=[
                FieldDefinition(
                    id="isDefault",
                    label="Default Case",
                    default_value=False,
                    input=BooleanInput(),
                ),
                _code("test", "Match Expression", placeholder="value"),
            ],
            child_slots=[_slot("body", "Body")],
        ),
        BlockSchema(
            kind="switch-statement",
            label="Switch",
            category=BlockCategory.control,
            fields=[_code("discriminant", "Expression", required=True, placeholder="value")],
            ports=flow_ports(),
            child_slots=[_slot("cases", "Cases", allowed=["switch-case"])],
        ),
        BlockSchema(
            kind="catch-clause",
            label="Catch",
            category=BlockCategory.control,
            fields=[_identifier("param", "Identifier")],
            child_slots=[_slot("body", "Body")],
        ),
        BlockSchema(
            kind="try-statement",
            label="Try",
            category=BlockCategory.control,
            ports=flow_ports(),
            child_slots=[
                _slot("try", "Try"),
                _slot("catch", "Catch", allowed=["catch-clause"]),
                _slot("finally", "Finally"),
            ],
        ),
        BlockSchema(
            kind="raw-statement",
            label="Raw Statement",
            category=BlockCategory.raw,
            description="Preserves constructs that do not yet have a dedicated block type.",
            fields=[_code("code", "Code", required=True)],
            ports=flow_ports(),
        ),
    ]
