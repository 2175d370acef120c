from __future__ import annotations

import pytest

from block_compiler.compiler.context import build_context
from block_compiler.compiler.lowering import generate_source, registered_lowerings
from block_compiler.errors import DocumentStructureError, NestingDepthError, UnknownBlockKindError
from block_compiler.schema.models import BlockInstance
from shared.config import BlockCompilerConfig


def test_empty_program_generates_empty_text(builder) -> None:
    assert generate_source(builder.document, builder.context) == ""


def test_variables_and_updates(builder) -> None:
    builder.add("variable-declaration", {"identifier": "count", "initializer": "0"})
    builder.add("variable-update", {"identifier": "count", "operation": "add", "value": "1", "operatorStyle": "compound"})
    builder.add("variable-update", {"identifier": "count", "operation": "add", "value": "1"})
    builder.add("variable-update", {"identifier": "count", "operation": "multiply", "value": "a + b"})
    builder.add("variable-update", {"identifier": "label", "value": '"done"'})

    assert generate_source(builder.document, builder.context) == (
        "let count = 0;\n"
        "count += 1;\n"
        "count = count + 1;\n"
        "count = count * (a + b);\n"
        'label = "done";\n'
    )


def test_placeholders_for_missing_names(builder) -> None:
    builder.add("variable-declaration", {})
    builder.add("function-call", {})
    builder.add("array-push", {"value": "1"})

    assert generate_source(builder.document, builder.context) == (
        "let result;\n"
        "call();\n"
        "items.push(1);\n"
    )


def test_array_blocks(builder) -> None:
    builder.add("array-push", {"array": "names", "value": "name", "storeResult": True})
    mapped = builder.add("array-map", {"identifier": "lengths", "array": "names", "item": "name"})
    builder.add("return-statement", {"argument": "name.length"}, parent=mapped.id)
    each = builder.add("array-for-each", {"array": "names", "item": "name", "index": "i"})
    builder.add("log-call", {"message": "i"}, parent=each.id)

    assert generate_source(builder.document, builder.context) == (
        "names = names.push(name);\n"
        "let lengths = names.map((name) => {\n"
        "  return name.length;\n"
        "});\n"
        "names.forEach((name, i) => {\n"
        "  log(i);\n"
        "});\n"
    )


def test_function_declaration_and_call(builder) -> None:
    function = builder.add("function-declaration", {"identifier": "add", "parameters": "a, b"})
    builder.add("return-statement", {"argument": "a + b"}, parent=function.id)
    builder.add("function-call", {"functionName": "add", "arguments": "1, 2", "assignTo": "sum"})

    assert generate_source(builder.document, builder.context) == (
        "function add(a, b) {\n"
        "  return a + b;\n"
        "}\n"
        "let sum = add(1, 2);\n"
    )


def test_single_nested_if_collapses_to_else_if(builder) -> None:
    outer = builder.add("if-statement", {"test": "a"})
    builder.add("wait-call", {"duration": 1}, parent=outer.id, slot="consequent")
    inner = builder.add("if-statement", {"test": "b"}, parent=outer.id, slot="alternate")
    builder.add("wait-call", {"duration": 2}, parent=inner.id, slot="consequent")
    builder.add("break-statement", parent=inner.id, slot="alternate")

    assert generate_source(builder.document, builder.context) == (
        "if (a) {\n"
        "  wait(1);\n"
        "} else if (b) {\n"
        "  wait(2);\n"
        "} else {\n"
        "  break;\n"
        "}\n"
    )


def test_nested_if_next_to_other_blocks_keeps_braces(builder) -> None:
    outer = builder.add("if-statement", {"test": "a"})
    builder.add("if-statement", {"test": "b"}, parent=outer.id, slot="alternate")
    builder.add("continue-statement", parent=outer.id, slot="alternate")

    assert generate_source(builder.document, builder.context) == (
        "if (a) {} else {\n"
        "  if (b) {}\n"
        "  continue;\n"
        "}\n"
    )


def test_missing_condition_defaults_to_false(builder) -> None:
    builder.add("while-statement", {})

    assert generate_source(builder.document, builder.context) == "while (false) {}\n"


def test_for_switch_and_try(builder) -> None:
    loop = builder.add("for-statement", {"initializer": "let i = 0", "test": "i < 3", "update": "i++"})
    builder.add("log-call", {"message": "i"}, parent=loop.id)

    switch = builder.add("switch-statement", {"discriminant": "mode"})
    case = builder.add("switch-case", {"test": '"fast"'}, parent=switch.id, slot="cases")
    builder.add("break-statement", parent=case.id)
    builder.add("switch-case", {"isDefault": True}, parent=switch.id, slot="cases")

    attempt = builder.add("try-statement")
    builder.add("throw-statement", {"argument": "new Error(\"boom\")"}, parent=attempt.id, slot="try")
    catch = builder.add("catch-clause", {"param": "err"}, parent=attempt.id, slot="catch")
    builder.add("log-call", {"message": "err.message"}, parent=catch.id)
    builder.add("raw-statement", {"code": "cleanup();"}, parent=attempt.id, slot="finally")

    assert generate_source(builder.document, builder.context) == (
        "for (let i = 0; i < 3; i++) {\n"
        "  log(i);\n"
        "}\n"
        "switch (mode) {\n"
        '  case "fast":\n'
        "    break;\n"
        "  default:\n"
        "}\n"
        "try {\n"
        '  throw new Error("boom");\n'
        "} catch (err) {\n"
        "  log(err.message);\n"
        "} finally {\n"
        "  cleanup();\n"
        "}\n"
    )


def test_comments_are_emitted_above_statement(builder) -> None:
    builder.add("wait-call", {"duration": 1}, comments=["let the page settle"])
    builder.add("raw-statement", {"code": ""}, comments=["kept"])

    assert generate_source(builder.document, builder.context) == (
        "// let the page settle\n"
        "wait(1);\n"
        "// kept\n"
    )


def test_comments_can_be_disabled(builder) -> None:
    context = build_context(builder.context.manifest, BlockCompilerConfig(emit_comments=False))
    builder.add("wait-call", {"duration": 1}, comments=["hidden"])

    assert generate_source(builder.document, context) == "wait(1);\n"


def test_unknown_kind_raises(builder) -> None:
    block = BlockInstance(id="mystery", kind="mystery-call")
    builder.document.blocks[block.id] = block
    builder.document.blocks[builder.root].children["body"].append(block.id)

    with pytest.raises(UnknownBlockKindError):
        generate_source(builder.document, builder.context)


def test_dangling_child_id_raises(builder) -> None:
    builder.document.blocks[builder.root].children["body"].append("ghost")

    with pytest.raises(DocumentStructureError):
        generate_source(builder.document, builder.context)


def test_missing_catch_block_raises(builder) -> None:
    attempt = builder.add("try-statement")
    builder.add("break-statement", parent=attempt.id, slot="try")
    attempt.children["catch"] = ["ghost"]

    with pytest.raises(DocumentStructureError):
        generate_source(builder.document, builder.context)


def test_nested_template_literal_lines_keep_their_indentation(builder) -> None:
    loop = builder.add("while-statement", {"test": "go"})
    builder.add("variable-declaration", {"identifier": "s", "initializer": "`a\nb`"}, parent=loop.id)
    builder.add("raw-statement", {"code": "const t = `c\n  d`;"}, parent=loop.id)

    assert generate_source(builder.document, builder.context) == (
        "while (go) {\n"
        "  let s = `a\n"
        "b`;\n"
        "  const t = `c\n"
        "  d`;\n"
        "}\n"
    )


def test_case_outside_switch_raises(builder) -> None:
    builder.add("switch-case", {"test": "1"})

    with pytest.raises(DocumentStructureError):
        generate_source(builder.document, builder.context)


def test_nesting_limit(builder) -> None:
    context = build_context(builder.context.manifest, BlockCompilerConfig(max_nesting_depth=3))
    parent = builder.root
    for _ in range(4):
        parent = builder.add("while-statement", {"test": "true"}, parent=parent).id

    with pytest.raises(NestingDepthError):
        generate_source(builder.document, context)


def test_every_static_kind_has_a_lowering(context) -> None:
    lowerings = set(registered_lowerings())
    manifest_kinds = {entry.block_kind for entry in context.manifest.entries}

    for schema in context.block_registry.list():
        assert schema.kind in lowerings or schema.kind in manifest_kinds
