"""
Pydantic models describing block schemas, block instances, workflow documents
and the API manifest.

Every model serializes with camelCase aliases so documents written by the
editor load unchanged and documents written here load in the editor.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# -----------------------------
# JSON-ish values
# -----------------------------
FieldPrimitiveValue = Union[str, int, float, bool, None]
ValueType = Dict[str, Any]  # {"kind": "string"} / {"kind": "array", "of": {...}} ...


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class StrictModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        validate_assignment=True,
        alias_generator=to_camel,
    )


class FrozenModel(StrictModel):
    """Schema and manifest definitions, shared through the registry and never mutated."""

    model_config = ConfigDict(frozen=True)


class BlockCategory(str, Enum):
    program = "program"
    structure = "structure"
    control = "control"
    variables = "variables"
    functions = "functions"
    expressions = "expressions"
    io = "io"
    ai = "ai"
    automation = "automation"
    utility = "utility"
    raw = "raw"


# -----------------------------
# Field input configurations (tagged on `kind`)
# -----------------------------
class EnumOption(FrozenModel):
    label: str
    value: str


class StringInput(FrozenModel):
    kind: Literal["string"] = "string"
    multiline: Optional[bool] = None
    placeholder: Optional[str] = None


class NumberInput(FrozenModel):
    kind: Literal["number"] = "number"
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None


class BooleanInput(FrozenModel):
    kind: Literal["boolean"] = "boolean"


class EnumInput(FrozenModel):
    kind: Literal["enum"] = "enum"
    options: List[EnumOption] = Field(default_factory=list)


class ExpressionInput(FrozenModel):
    kind: Literal["expression"] = "expression"
    expression_kind: Optional[Literal["any", "identifier", "call", "literal"]] = None


class IdentifierInput(FrozenModel):
    kind: Literal["identifier"] = "identifier"
    scope: Optional[Literal["any", "variable", "function"]] = None
    allow_creation: Optional[bool] = None


class CodeInput(FrozenModel):
    kind: Literal["code"] = "code"
    language: Optional[Literal["script", "json", "text"]] = None
    placeholder: Optional[str] = None


class JsonSchemaInput(FrozenModel):
    kind: Literal["json-schema"] = "json-schema"


FieldInput = Annotated[
    Union[
        StringInput,
        NumberInput,
        BooleanInput,
        EnumInput,
        ExpressionInput,
        IdentifierInput,
        CodeInput,
        JsonSchemaInput,
    ],
    Field(discriminator="kind"),
]


class FieldDefinition(FrozenModel):
    id: str = Field(min_length=1)
    label: str
    description: Optional[str] = None
    required: Optional[bool] = None
    default_value: FieldPrimitiveValue = None
    input: FieldInput
    value_type: Optional[ValueType] = None

    @property
    def input_kind(self) -> str:
        return self.input.kind


class OutputDefinition(FrozenModel):
    id: str = Field(min_length=1)
    label: str
    description: Optional[str] = None
    value_type: Optional[ValueType] = None


class PortDirection(str, Enum):
    input = "input"
    output = "output"


class PortKind(str, Enum):
    flow = "flow"
    value = "value"


class PortDefinition(FrozenModel):
    id: str
    label: str
    direction: PortDirection
    port_kind: PortKind
    accepts: Optional[List[str]] = None
    provides: Optional[List[str]] = None
    multiplicity: Optional[Literal["single", "many"]] = None


class ChildSlotDefinition(FrozenModel):
    id: str = Field(min_length=1)
    label: str
    description: Optional[str] = None
    allowed_kinds: Optional[List[str]] = None


class BlockSchema(FrozenModel):
    kind: str = Field(min_length=1)
    label: str
    category: BlockCategory
    icon: Optional[str] = None
    description: Optional[str] = None
    fields: List[FieldDefinition] = Field(default_factory=list)
    ports: List[PortDefinition] = Field(default_factory=list)
    child_slots: List[ChildSlotDefinition] = Field(default_factory=list)
    outputs: List[OutputDefinition] = Field(default_factory=list)

    def field(self, field_id: str) -> Optional[FieldDefinition]:
        for definition in self.fields:
            if definition.id == field_id:
                return definition
        return None

    @property
    def slot_ids(self) -> List[str]:
        return [slot.id for slot in self.child_slots]


# -----------------------------
# Block instances & documents
# -----------------------------
class SourcePosition(StrictModel):
    line: int
    column: int


class SourceLocation(StrictModel):
    start: SourcePosition
    end: SourcePosition


class BlockMetadata(StrictModel):
    source_location: Optional[SourceLocation] = None
    comments: Optional[List[str]] = None


class BlockInstance(StrictModel):
    id: str = Field(min_length=1)
    kind: str = Field(min_length=1)
    data: Dict[str, Any] = Field(default_factory=dict)
    children: Dict[str, List[str]] = Field(default_factory=dict)
    metadata: BlockMetadata = Field(default_factory=BlockMetadata)

    def slot(self, slot_id: str) -> List[str]:
        return self.children.get(slot_id, [])

    def text(self, field_id: str) -> str:
        """String value of a field, or "" when missing or not a string."""
        value = self.data.get(field_id)
        return value if isinstance(value, str) else ""


class DocumentMetadata(StrictModel):
    name: str = "Untitled Workflow"
    description: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)
    source_path: Optional[str] = None


class WorkflowDocument(StrictModel):
    id: str = Field(min_length=1)
    root: str = Field(min_length=1)
    blocks: Dict[str, BlockInstance] = Field(default_factory=dict)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    version: int = 1

    def get(self, block_id: str) -> Optional[BlockInstance]:
        return self.blocks.get(block_id)

    def touch(self) -> None:
        self.metadata.updated_at = utc_now_iso()


# -----------------------------
# API manifest
# -----------------------------
class InvocationStyle(str, Enum):
    positional = "positional"
    positional_with_options = "positionalWithOptions"
    object = "object"


class ApiInvocation(FrozenModel):
    style: InvocationStyle = InvocationStyle.object
    arguments: List[str] = Field(default_factory=list)
    options: Optional[List[str]] = None


class ApiManifestEntry(FrozenModel):
    api_name: str = Field(min_length=1)
    block_kind: str = Field(min_length=1)
    label: str
    category: BlockCategory
    icon: Optional[str] = None
    description: Optional[str] = None
    identifier_field: Optional[str] = None
    default_identifier: Optional[str] = None
    fields: List[FieldDefinition] = Field(default_factory=list)
    outputs: List[OutputDefinition] = Field(default_factory=list)
    invocation: Optional[ApiInvocation] = None

    @model_validator(mode="after")
    def _check_field_references(self) -> "ApiManifestEntry":
        known = {definition.id for definition in self.fields}
        referenced: List[str] = []
        if self.identifier_field:
            referenced.append(self.identifier_field)
        if self.invocation is not None:
            referenced.extend(self.invocation.arguments)
            referenced.extend(self.invocation.options or [])
        missing = [field_id for field_id in referenced if field_id not in known]
        if missing:
            raise ValueError(
                f"manifest entry '{self.api_name}' references undeclared fields: {', '.join(missing)}"
            )
        return self

    @property
    def effective_invocation(self) -> ApiInvocation:
        return self.invocation or ApiInvocation(style=InvocationStyle.object)

    def field(self, field_id: str) -> Optional[FieldDefinition]:
        for definition in self.fields:
            if definition.id == field_id:
                return definition
        return None


class ApiManifestDocument(FrozenModel):
    version: int
    generated_at: str
    entries: List[ApiManifestEntry] = Field(default_factory=list)
