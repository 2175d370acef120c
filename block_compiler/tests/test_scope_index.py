from __future__ import annotations

from typing import Dict

import pytest

from block_compiler.compiler.context import build_context
from block_compiler.compiler.lifting import parse_source
from block_compiler.compiler.scope_index import build_scope_index
from block_compiler.errors import NestingDepthError
from block_compiler.schema.models import WorkflowDocument
from shared.config import BlockCompilerConfig

SOURCE = (
    "let a = 1;\n"
    "function f(x) {\n"
    "  let b = a;\n"
    "  log(b);\n"
    "}\n"
    "let shot = screenshot();\n"
    "log(shot);\n"
)


def _ids_by_line(document: WorkflowDocument) -> Dict[int, str]:
    return {
        block.metadata.source_location.start.line: block.id
        for block in document.blocks.values()
        if block.metadata.source_location is not None
    }


def test_bindings_are_visible_to_later_blocks_only(context) -> None:
    document = parse_source(SOURCE, context=context)
    ids = _ids_by_line(document)
    index = build_scope_index(document, context)

    assert index.visible_at(ids[1]) == []
    assert index.visible_at(ids[2]) == ["a"]
    assert index.visible_at(ids[3]) == ["a", "f", "x"]
    assert index.visible_at(ids[4]) == ["a", "f", "x", "b"]
    assert index.visible_at(ids[6]) == ["a", "f", "b"]
    assert index.visible_at(ids[7]) == ["a", "f", "b", "shot"]
    assert index.visible_at("unknown-block") == []


def test_all_identifiers_sorted(context) -> None:
    index = build_scope_index(parse_source(SOURCE, context=context), context)

    assert index.all_identifiers() == ["a", "b", "f", "shot", "x"]


def test_manifest_binding_suggests_outputs(context) -> None:
    document = parse_source(SOURCE, context=context)
    ids = _ids_by_line(document)
    index = build_scope_index(document, context)

    shot = next(item for item in index.suggestions_for(ids[7]) if item.name == "shot")
    assert shot.source_kind == "screenshot-call"
    assert shot.source_label == "Screenshot"
    assert [output.expression for output in shot.outputs] == ["shot.image", "shot.width", "shot.height"]


def test_parameters_have_no_outputs(context) -> None:
    index = build_scope_index(parse_source(SOURCE, context=context), context)
    parameter = next(item for item in index.suggestions() if item.name == "x")

    assert parameter.source_kind == "function-declaration"
    assert parameter.outputs == []


def test_default_identifier_counts_as_binding(builder) -> None:
    builder.add("vision-call", {"target": "img", "prompt": "Find it"})
    after = builder.add("log-call", {"message": "visionResult.text"})
    index = build_scope_index(builder.document, builder.context)

    assert index.visible_at(after.id) == ["visionResult"]


def test_sibling_branches_do_not_share_bindings(builder) -> None:
    branch = builder.add("if-statement", {"test": "ok"})
    builder.add("variable-declaration", {"identifier": "yes", "initializer": "1"}, parent=branch.id, slot="consequent")
    other = builder.add("break-statement", parent=branch.id, slot="alternate")
    after = builder.add("break-statement")
    index = build_scope_index(builder.document, builder.context)

    assert index.visible_at(other.id) == []
    assert index.visible_at(after.id) == ["yes"]


def test_comprehension_and_catch_locals_stay_inside(builder) -> None:
    each = builder.add("array-for-each", {"array": "rows", "item": "row", "index": "i"})
    inside = builder.add("break-statement", parent=each.id)
    attempt = builder.add("try-statement")
    catch = builder.add("catch-clause", {"param": "err"}, parent=attempt.id, slot="catch")
    handler = builder.add("break-statement", parent=catch.id)
    after = builder.add("break-statement")
    index = build_scope_index(builder.document, builder.context)

    assert index.visible_at(inside.id) == ["row", "i"]
    assert index.visible_at(handler.id) == ["err"]
    assert index.visible_at(after.id) == []


def test_unknown_names_in_suggestions_for(builder) -> None:
    block = builder.add("break-statement")
    index = build_scope_index(builder.document, builder.context)
    index._scopes[block.id] = ["mystery"]

    (suggestion,) = index.suggestions_for(block.id)
    assert suggestion.source_kind == "unknown"


def test_depth_limit(builder) -> None:
    context = build_context(builder.context.manifest, BlockCompilerConfig(max_nesting_depth=2))
    parent = builder.root
    for _ in range(3):
        parent = builder.add("while-statement", {"test": "true"}, parent=parent).id

    with pytest.raises(NestingDepthError):
        build_scope_index(builder.document, context)


def test_for_initializer_binds_every_declared_name(builder) -> None:
    loop = builder.add("for-statement", {"initializer": "let i = 0, j = 10", "test": "i < j"})
    inside = builder.add("break-statement", parent=loop.id)
    pairs = builder.add("for-statement", {"initializer": "const { x, y: [first, ...rest] } = point"})
    destructured = builder.add("break-statement", parent=pairs.id)
    after = builder.add("break-statement")
    index = build_scope_index(builder.document, builder.context)

    assert index.visible_at(inside.id) == ["i", "j"]
    assert index.visible_at(destructured.id) == ["x", "first", "rest"]
    assert index.visible_at(after.id) == []
