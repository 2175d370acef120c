from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from block_compiler.compiler.context import CompilerContext, get_default_context
from block_compiler.graph.document import create_block_instance, create_document, insert_block
from block_compiler.schema.models import BlockInstance, WorkflowDocument


@pytest.fixture(scope="session")
def context() -> CompilerContext:
    return get_default_context()


class DocumentBuilder:
    """Small helper for assembling documents block by block in tests."""

    def __init__(self, context: CompilerContext) -> None:
        self.context = context
        self.document: WorkflowDocument = create_document("Test Workflow", context=context)

    @property
    def root(self) -> str:
        return self.document.root

    def add(
        self,
        kind: str,
        data: Optional[Dict[str, Any]] = None,
        *,
        parent: Optional[str] = None,
        slot: str = "body",
        comments: Optional[List[str]] = None,
    ) -> BlockInstance:
        block = create_block_instance(kind, data, context=self.context)
        if comments:
            block.metadata.comments = comments
        insert_block(self.document, parent or self.root, slot, block, context=self.context)
        return block


@pytest.fixture
def builder(context: CompilerContext) -> DocumentBuilder:
    return DocumentBuilder(context)
