"""
Editing operations over the block graph of a workflow document.

Documents own their blocks in ``document.blocks``; slots only hold ids. All
operations mutate the document in place, keep the tree invariants (one
parent per block, no cycles) and bump ``metadata.updated_at``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set
from uuid import uuid4

from block_compiler.compiler.context import CompilerContext, get_default_context
from block_compiler.errors import DocumentStructureError
from block_compiler.schema.models import BlockInstance, BlockMetadata, DocumentMetadata, WorkflowDocument
from shared.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BlockLocation:
    parent_id: str
    slot_id: str
    index: int


def _context(context: CompilerContext | None) -> CompilerContext:
    return context or get_default_context()


def create_block_instance(
    kind: str,
    data: Optional[Mapping[str, Any]] = None,
    *,
    context: CompilerContext | None = None,
) -> BlockInstance:
    """
    New detached block with one empty list per declared slot.

    Schema defaults are deliberately not copied into ``data``.
    """

    schema = _context(context).block_registry.require(kind)
    return BlockInstance(
        id=uuid4().hex,
        kind=kind,
        data=dict(data or {}),
        children={slot_id: [] for slot_id in schema.slot_ids},
        metadata=BlockMetadata(),
    )


def create_document(name: str = "Untitled Workflow", *, context: CompilerContext | None = None) -> WorkflowDocument:
    program = create_block_instance("program", context=context)
    return WorkflowDocument(
        id=uuid4().hex,
        root=program.id,
        blocks={program.id: program},
        metadata=DocumentMetadata(name=name),
    )


def _require_block(document: WorkflowDocument, block_id: str) -> BlockInstance:
    block = document.get(block_id)
    if block is None:
        raise DocumentStructureError(f"Block not found: {block_id}")
    return block


def _slot(document: WorkflowDocument, parent_id: str, slot_id: str, context: CompilerContext | None) -> List[str]:
    parent = document.get(parent_id)
    if parent is None:
        raise DocumentStructureError(f"Parent block not found: {parent_id}")
    if slot_id not in parent.children:
        schema = _context(context).block_registry.get(parent.kind)
        if schema is None or slot_id not in schema.slot_ids:
            raise DocumentStructureError(f"Slot '{slot_id}' not found on block {parent_id}")
        parent.children[slot_id] = []
    return parent.children[slot_id]


def find_block_location(document: WorkflowDocument, block_id: str) -> Optional[BlockLocation]:
    for parent_id, block in document.blocks.items():
        for slot_id, child_ids in block.children.items():
            if block_id in child_ids:
                return BlockLocation(parent_id=parent_id, slot_id=slot_id, index=child_ids.index(block_id))
    return None


def descendant_ids(document: WorkflowDocument, block_id: str) -> List[str]:
    """All blocks below ``block_id`` in program order (the block itself excluded)."""
    collected: List[str] = []
    stack = [block_id]
    seen: Set[str] = {block_id}
    while stack:
        block = document.get(stack.pop())
        if block is None:
            continue
        children = [child for ids in block.children.values() for child in ids if child not in seen]
        seen.update(children)
        collected.extend(children)
        stack.extend(reversed(children))
    return collected


def insert_block(
    document: WorkflowDocument,
    parent_id: str,
    slot_id: str,
    block: BlockInstance,
    index: Optional[int] = None,
    *,
    context: CompilerContext | None = None,
) -> None:
    if block.id in document.blocks:
        raise DocumentStructureError(f"Block {block.id} already belongs to the document")
    slot = _slot(document, parent_id, slot_id, context)
    insertion_index = len(slot) if index is None else index
    if insertion_index < 0 or insertion_index > len(slot):
        raise DocumentStructureError(f"Invalid insertion index {insertion_index} for slot size {len(slot)}")
    slot.insert(insertion_index, block.id)
    document.blocks[block.id] = block
    document.touch()


def detach_block(document: WorkflowDocument, block_id: str) -> Optional[BlockLocation]:
    """Remove the block from its slot but keep it in ``document.blocks``."""
    location = find_block_location(document, block_id)
    if location is None:
        return None
    del document.blocks[location.parent_id].children[location.slot_id][location.index]
    document.touch()
    return location


def attach_block(
    document: WorkflowDocument,
    block_id: str,
    parent_id: str,
    slot_id: str,
    index: Optional[int] = None,
    *,
    context: CompilerContext | None = None,
) -> None:
    _require_block(document, block_id)
    if block_id == document.root:
        raise DocumentStructureError("The root block cannot be attached to a slot")
    if find_block_location(document, block_id) is not None:
        raise DocumentStructureError(f"Block {block_id} is already attached; detach it first")
    if parent_id == block_id or parent_id in descendant_ids(document, block_id):
        raise DocumentStructureError(f"Attaching {block_id} under {parent_id} would create a cycle")
    slot = _slot(document, parent_id, slot_id, context)
    insertion_index = len(slot) if index is None else min(max(index, 0), len(slot))
    slot.insert(insertion_index, block_id)
    document.touch()


def move_block(
    document: WorkflowDocument,
    block_id: str,
    parent_id: str,
    slot_id: str,
    index: int,
    *,
    context: CompilerContext | None = None,
) -> None:
    current = find_block_location(document, block_id)
    if current is None:
        return
    if parent_id == block_id or parent_id in descendant_ids(document, block_id):
        raise DocumentStructureError(f"Moving {block_id} under {parent_id} would create a cycle")
    target_index = index
    if current.parent_id == parent_id and current.slot_id == slot_id and index > current.index:
        # Removing the block shifts later siblings one position left.
        target_index = max(current.index, index - 1)
    detach_block(document, block_id)
    attach_block(document, block_id, parent_id, slot_id, target_index, context=context)


def update_block_data(document: WorkflowDocument, block_id: str, updates: Mapping[str, Any]) -> BlockInstance:
    """Merge ``updates`` into the block's data; a ``None`` value clears that field."""
    block = _require_block(document, block_id)
    for field_id, value in updates.items():
        if value is None:
            block.data.pop(field_id, None)
        else:
            block.data[field_id] = value
    document.touch()
    return block


def remove_block(document: WorkflowDocument, block_id: str) -> List[str]:
    """Delete a block and all of its descendants; returns the removed ids."""
    if block_id == document.root:
        raise DocumentStructureError("Cannot remove root block")
    _require_block(document, block_id)
    detach_block(document, block_id)
    removed = [block_id] + descendant_ids(document, block_id)
    for removed_id in removed:
        document.blocks.pop(removed_id, None)
    document.touch()
    return removed


def reorder_child(document: WorkflowDocument, parent_id: str, slot_id: str, from_index: int, to_index: int) -> None:
    slot = _slot(document, parent_id, slot_id, None)
    if from_index < 0 or from_index >= len(slot):
        raise DocumentStructureError(f"Invalid from_index {from_index} for slot length {len(slot)}")
    bounded = max(0, min(to_index, len(slot) - 1))
    moved = slot.pop(from_index)
    slot.insert(bounded, moved)
    document.touch()


def duplicate_block(document: WorkflowDocument, block_id: str) -> BlockInstance:
    """Deep-copy a block subtree with fresh ids and insert it right after the original."""
    if block_id == document.root:
        raise DocumentStructureError("Cannot duplicate root block")
    location = find_block_location(document, block_id)
    if location is None:
        raise DocumentStructureError(f"Block {block_id} is not attached to the document")

    fresh_ids: Dict[str, str] = {old: uuid4().hex for old in [block_id] + descendant_ids(document, block_id)}
    for old_id, new_id in fresh_ids.items():
        original = _require_block(document, old_id)
        copy = original.model_copy(deep=True)
        copy.id = new_id
        copy.children = {
            slot_id: [fresh_ids[child] for child in child_ids] for slot_id, child_ids in original.children.items()
        }
        document.blocks[new_id] = copy

    slot = document.blocks[location.parent_id].children[location.slot_id]
    slot.insert(location.index + 1, fresh_ids[block_id])
    document.touch()
    return document.blocks[fresh_ids[block_id]]


def iter_blocks(document: WorkflowDocument, *, context: CompilerContext | None = None) -> Iterator[BlockInstance]:
    """Yield attached blocks in program order: parent first, slots in schema order."""
    registry = _context(context).block_registry
    stack = [document.root]
    seen: Set[str] = set()
    while stack:
        block_id = stack.pop()
        block = document.get(block_id)
        if block is None or block_id in seen:
            continue
        seen.add(block_id)
        yield block
        schema = registry.get(block.kind)
        slot_ids = schema.slot_ids if schema else list(block.children)
        extra = [slot_id for slot_id in block.children if slot_id not in slot_ids]
        ordered = [child for slot_id in slot_ids + extra for child in block.slot(slot_id)]
        stack.extend(reversed(ordered))


def validate_document(document: WorkflowDocument, *, context: CompilerContext | None = None) -> None:
    """
    Check the tree invariants, raising DocumentStructureError on the first violation.

    Blocks unreachable from the root are tolerated but logged.
    """

    registry = _context(context).block_registry
    root = document.get(document.root)
    if root is None:
        raise DocumentStructureError(f"Document root '{document.root}' is missing")
    if root.kind != "program":
        raise DocumentStructureError(f"Document root must be a 'program' block, got '{root.kind}'")

    owners: Dict[str, str] = {}
    for block_id, block in document.blocks.items():
        if block.id != block_id:
            raise DocumentStructureError(f"Block stored under '{block_id}' has id '{block.id}'")
        schema = registry.get(block.kind)
        if schema is None:
            # Unknown kinds are reported by generation; structure still has to hold.
            logger.warning(f"Block {block_id} has unregistered kind '{block.kind}'")
        for slot_id, child_ids in block.children.items():
            if schema is not None and slot_id not in schema.slot_ids:
                raise DocumentStructureError(f"Block {block_id} ({block.kind}) has undeclared slot '{slot_id}'")
            for child_id in child_ids:
                if child_id not in document.blocks:
                    raise DocumentStructureError(f"Block {block_id} slot '{slot_id}' references missing block '{child_id}'")
                if child_id == document.root:
                    raise DocumentStructureError(f"Root block is referenced from block {block_id}")
                if child_id in owners:
                    raise DocumentStructureError(
                        f"Block {child_id} appears in more than one slot ({owners[child_id]} and {block_id})"
                    )
                owners[child_id] = block_id

    # With single ownership and an unowned root, any cycle is unreachable from the root.
    reachable = {document.root} | set(descendant_ids(document, document.root))
    for block_id in document.blocks:
        if block_id in reachable:
            continue
        ancestor = owners.get(block_id)
        trail: Set[str] = {block_id}
        while ancestor is not None and ancestor not in trail:
            trail.add(ancestor)
            ancestor = owners.get(ancestor)
        if ancestor is not None:
            raise DocumentStructureError(f"Block {block_id} is part of a cycle")
        logger.warning(f"Block {block_id} ({document.blocks[block_id].kind}) is not reachable from the root")
