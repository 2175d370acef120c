"""
Identifier scope index used for editor autocomplete.

A single depth-first walk over the document records, for every block, the
identifiers visible where that block starts, plus a suggestion entry for
every identifier a block introduces (with ``name.output`` expressions for
the schema's declared outputs).
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional, Set

from pydantic import Field

from block_compiler.compiler.context import CompilerContext, get_default_context
from block_compiler.compiler.expressions import lexical_declaration_names, parse_parameter_names
from block_compiler.errors import NestingDepthError
from block_compiler.schema.models import BlockInstance, StrictModel, ValueType, WorkflowDocument
from shared.logger import get_logger

logger = get_logger(__name__)

STATIC_BINDING_FIELDS = {
    "variable-declaration": "identifier",
    "function-declaration": "identifier",
    "function-call": "assignTo",
    "array-map": "identifier",
    "array-filter": "identifier",
}
COMPREHENSION_KINDS = ("array-map", "array-filter", "array-for-each")

_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


class IdentifierOutputSuggestion(StrictModel):
    id: str
    label: str
    description: Optional[str] = None
    expression: str
    value_type: Optional[ValueType] = None


class IdentifierSuggestion(StrictModel):
    name: str
    source_kind: str
    source_label: Optional[str] = None
    outputs: List[IdentifierOutputSuggestion] = Field(default_factory=list)


class ScopeIndex:
    def __init__(self, scopes: Dict[str, List[str]], suggestions: Dict[str, IdentifierSuggestion]) -> None:
        self._scopes = scopes
        self._suggestions = suggestions

    def visible_at(self, block_id: str) -> List[str]:
        return list(self._scopes.get(block_id, []))

    def all_identifiers(self) -> List[str]:
        return sorted(self._suggestions)

    def suggestions(self) -> List[IdentifierSuggestion]:
        return [self._suggestions[name] for name in sorted(self._suggestions)]

    def suggestions_for(self, block_id: str) -> List[IdentifierSuggestion]:
        result: List[IdentifierSuggestion] = []
        for name in self._scopes.get(block_id, []):
            suggestion = self._suggestions.get(name)
            result.append(suggestion or IdentifierSuggestion(name=name, source_kind="unknown"))
        return result


class _ScopeBuilder:
    def __init__(self, document: WorkflowDocument, context: CompilerContext) -> None:
        self.document = document
        self.registry = context.block_registry
        self.manifest = context.manifest
        self.max_depth = context.settings.max_nesting_depth
        self.scopes: Dict[str, List[str]] = {}
        self.suggestions: Dict[str, IdentifierSuggestion] = {}
        self._visited: Set[str] = set()
        self._depth = 0

    def binding(self, block: BlockInstance) -> Optional[str]:
        field_id = STATIC_BINDING_FIELDS.get(block.kind)
        default: Optional[str] = None
        if field_id is None:
            entry = self.manifest.by_kind(block.kind)
            if entry is None or not entry.identifier_field:
                return None
            field_id, default = entry.identifier_field, entry.default_identifier
        name = block.text(field_id).strip() or default
        return name or None

    def local_bindings(self, block: BlockInstance) -> List[str]:
        if block.kind == "function-declaration":
            return parse_parameter_names(block.text("parameters"))
        if block.kind == "catch-clause":
            param = block.text("param").strip()
            return [param] if _IDENTIFIER.match(param) else []
        if block.kind in COMPREHENSION_KINDS:
            names = [block.text("item").strip() or "item"]
            index = block.text("index").strip()
            return names + [index] if index else names
        if block.kind == "for-statement":
            return lexical_declaration_names(block.text("initializer"))
        return []

    def register(self, block: BlockInstance, name: str, *, local: bool = False) -> None:
        # Parameter-like names never replace a real binding and carry no outputs.
        if local and name in self.suggestions:
            return
        schema = self.registry.get(block.kind)
        outputs = [
            IdentifierOutputSuggestion(
                id=output.id,
                label=output.label or output.id,
                description=output.description,
                expression=f"{name}.{output.id}",
                value_type=output.value_type,
            )
            for output in (schema.outputs if schema and not local else [])
        ]
        self.suggestions[name] = IdentifierSuggestion(
            name=name,
            source_kind=block.kind,
            source_label=schema.label if schema else block.kind,
            outputs=outputs,
        )

    def visit(self, block_id: str, incoming: List[str]) -> List[str]:
        """Record the scope at ``block_id``; return names it makes visible to later siblings."""
        block = self.document.get(block_id)
        if block is None or block_id in self._visited:
            return []
        self._visited.add(block_id)
        self.scopes[block_id] = list(incoming)

        self._depth += 1
        try:
            if self._depth > self.max_depth:
                raise NestingDepthError(f"Block '{block_id}' is nested deeper than {self.max_depth} levels")
            return self._visit_children(block, incoming)
        finally:
            self._depth -= 1

    def _visit_children(self, block: BlockInstance, incoming: List[str]) -> List[str]:
        defined: List[str] = []
        inner = list(incoming)
        binding = self.binding(block)
        if binding and binding not in incoming:
            defined.append(binding)
            inner.append(binding)
            self.register(block, binding)

        schema = self.registry.get(block.kind)
        if schema is None:
            return defined

        for name in self.local_bindings(block):
            if name not in inner:
                inner.append(name)
                self.register(block, name, local=True)

        for slot in schema.child_slots:
            slot_scope = list(inner)
            for child_id in block.slot(slot.id):
                for name in self.visit(child_id, slot_scope):
                    if name not in slot_scope:
                        slot_scope.append(name)
                    if name not in incoming and name not in defined:
                        defined.append(name)
        return defined


def build_scope_index(document: WorkflowDocument, context: CompilerContext | None = None) -> ScopeIndex:
    context = context or get_default_context()
    builder = _ScopeBuilder(document, context)
    builder.visit(document.root, [])
    logger.debug(f"Scope index built for {len(builder.scopes)} blocks, {len(builder.suggestions)} identifiers")
    return ScopeIndex(builder.scopes, builder.suggestions)
