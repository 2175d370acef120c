"""
In-memory registry of block schemas keyed by block kind.

Every component that needs to know which fields or child slots a block kind
declares (generator, parser, scope index, graph operations) reads it from
here. The registry is populated once and only read afterwards.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from block_compiler.errors import SchemaRegistrationError, UnknownBlockKindError
from block_compiler.schema.models import BlockSchema


class BlockRegistry:
    """
    Stores block schemas in registration order.
    """

    def __init__(self, initial: Iterable[BlockSchema] | None = None) -> None:
        self._schemas: Dict[str, BlockSchema] = {}
        for schema in initial or ():
            self.register(schema)

    def register(self, schema: BlockSchema) -> None:
        if schema.kind in self._schemas:
            raise SchemaRegistrationError(f"Block schema '{schema.kind}' is already registered")
        self._schemas[schema.kind] = schema

    def get(self, kind: str) -> Optional[BlockSchema]:
        return self._schemas.get(kind)

    def require(self, kind: str) -> BlockSchema:
        try:
            return self._schemas[kind]
        except KeyError as exc:
            raise UnknownBlockKindError(f"Block kind '{kind}' is not registered") from exc

    def list(self) -> List[BlockSchema]:
        return list(self._schemas.values())

    def __contains__(self, kind: object) -> bool:
        return kind in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)
