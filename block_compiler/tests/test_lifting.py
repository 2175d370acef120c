from __future__ import annotations

from typing import List

import pytest

from block_compiler.compiler.context import build_context
from block_compiler.compiler.lifting import comment_text, parse_source
from block_compiler.errors import NestingDepthError, SourceSyntaxError
from block_compiler.schema.models import BlockInstance, WorkflowDocument
from shared.config import BlockCompilerConfig


def _body(document: WorkflowDocument, block: BlockInstance | None = None, slot: str = "body") -> List[BlockInstance]:
    owner = block or document.blocks[document.root]
    return [document.blocks[child_id] for child_id in owner.slot(slot)]


def _single(source: str, context) -> BlockInstance:
    document = parse_source(source, context=context)
    blocks = _body(document)
    assert len(blocks) == 1
    return blocks[0]


def test_document_metadata(context) -> None:
    document = parse_source("wait(1);\n", name="Demo", source_path="demo.js", context=context)

    assert document.metadata.name == "Demo"
    assert document.metadata.source_path == "demo.js"
    assert document.blocks[document.root].kind == "program"
    assert document.blocks[document.root].metadata.source_location is None


def test_primitive_call_becomes_manifest_block(context) -> None:
    block = _single("wait(2);", context)

    assert block.kind == "wait-call"
    assert block.data == {"duration": 2}
    assert block.metadata.source_location.start.line == 1
    assert block.metadata.source_location.start.column == 0
    assert block.metadata.source_location.end.column == 8


def test_bound_primitive_sets_identifier_field(context) -> None:
    block = _single('let answer = ai("Summarize", { format: "json" });', context)

    assert block.kind == "ai-call"
    assert block.data == {"prompt": "Summarize", "format": "json", "identifier": "answer"}


def test_press_modifiers_are_joined(context) -> None:
    block = _single('press("c", ["command", "shift"]);', context)

    assert block.data == {"key": "c", "modifiers": "command, shift"}


def test_primitive_with_unsupported_shape_is_generic_call(context) -> None:
    spread = _single("wait(...delays);", context)
    extra = _single("openUrl(a, b);", context)

    assert spread.kind == "function-call"
    assert spread.data == {"functionName": "wait", "arguments": "...delays"}
    assert extra.kind == "function-call"


def test_non_literal_arguments_keep_the_primitive_kind(context) -> None:
    typed = _single("type(message);", context)
    keys = _single("press(k, mods);", context)
    scrolled = _single("scroll([0, 0], dir);", context)
    looked = _single("let v = vision(img, question);", context)
    asked = _single('let r = ai("p", { schema: { type: "object" } });', context)

    assert typed.kind == "type-call"
    assert typed.data == {"text": {"expression": "message"}}
    assert keys.kind == "press-call"
    assert keys.data == {"key": {"expression": "k"}, "modifiers": {"expression": "mods"}}
    assert scrolled.kind == "scroll-call"
    assert scrolled.data == {"origin": "[0, 0]", "direction": {"expression": "dir"}}
    assert looked.kind == "vision-call"
    assert looked.data == {"identifier": "v", "target": "img", "prompt": {"expression": "question"}}
    assert asked.kind == "ai-call"
    assert asked.data == {"identifier": "r", "prompt": "p", "schema": {"expression": '{ type: "object" }'}}


def test_unbindable_primitive_is_generic_call(context) -> None:
    block = _single("let pause = wait(1);", context)

    assert block.kind == "function-call"
    assert block.data == {"functionName": "wait", "arguments": "1", "assignTo": "pause"}


def test_compound_and_binary_updates(context) -> None:
    document = parse_source("count += 1;\ncount = count + 1;\ntotal = total + a + b;\nx = y * 2;\n", context=context)
    compound, binary, chained, assigned = _body(document)

    assert compound.data == {"identifier": "count", "operation": "add", "value": "1", "operatorStyle": "compound"}
    assert binary.data == {"identifier": "count", "operation": "add", "value": "1"}
    assert chained.data == {"identifier": "total", "operation": "add", "value": "a + b"}
    assert assigned.data == {"identifier": "x", "operation": "assign", "value": "y * 2"}


def test_array_push_and_comprehensions(context) -> None:
    source = (
        "names.push(name);\n"
        "names = names.push(name);\n"
        "let upper = names.map((name, i) => {\n"
        "  return name.toUpperCase();\n"
        "});\n"
        "names.forEach(name => {\n"
        "  log(name);\n"
        "});\n"
    )
    document = parse_source(source, context=context)
    push, stored, mapped, each = _body(document)

    assert push.kind == "array-push" and push.data == {"array": "names", "value": "name"}
    assert stored.data == {"array": "names", "value": "name", "storeResult": True}
    assert mapped.kind == "array-map"
    assert mapped.data == {"identifier": "upper", "array": "names", "item": "name", "index": "i"}
    assert [child.kind for child in _body(document, mapped)] == ["return-statement"]
    assert each.kind == "array-for-each"
    assert [child.kind for child in _body(document, each)] == ["log-call"]


def test_multiple_declarators_stay_raw(context) -> None:
    block = _single("let x = 5, y = 6;", context)

    assert block.kind == "raw-statement"
    assert block.data == {"code": "let x = 5, y = 6;"}


def test_const_and_async_functions_stay_raw(context) -> None:
    document = parse_source("const limit = 3;\nasync function go() {}\n", context=context)

    assert [block.kind for block in _body(document)] == ["raw-statement", "raw-statement"]


def test_control_flow_structure(context) -> None:
    source = (
        "function check(value) {\n"
        "  if (value > 1) {\n"
        "    return true;\n"
        "  } else if (value < 0) {\n"
        "    throw new Error(\"negative\");\n"
        "  }\n"
        "  while (busy) wait(1);\n"
        "  return false;\n"
        "}\n"
    )
    document = parse_source(source, context=context)
    (function,) = _body(document)
    branch, loop, final = _body(document, function)
    (nested_if,) = _body(document, branch, "alternate")

    assert function.data == {"identifier": "check", "parameters": "value"}
    assert branch.data == {"test": "value > 1"}
    assert nested_if.kind == "if-statement"
    assert [child.kind for child in _body(document, nested_if, "consequent")] == ["throw-statement"]
    assert loop.data == {"test": "busy"}
    assert [child.kind for child in _body(document, loop)] == ["wait-call"]
    assert final.data == {"argument": "false"}


def test_for_switch_try(context) -> None:
    source = (
        "for (let i = 0; i < 3; i++) {\n"
        "  continue;\n"
        "}\n"
        "switch (mode) {\n"
        "  case \"fast\":\n"
        "    wait(1);\n"
        "    break;\n"
        "  default:\n"
        "    wait(2);\n"
        "}\n"
        "try {\n"
        "  risky();\n"
        "} catch (err) {\n"
        "  log(err);\n"
        "} finally {\n"
        "  done();\n"
        "}\n"
    )
    document = parse_source(source, context=context)
    loop, switch, attempt = _body(document)

    assert loop.data == {"initializer": "let i = 0", "test": "i < 3", "update": "i++"}
    fast, fallback = _body(document, switch, "cases")
    assert fast.data == {"test": '"fast"'}
    assert [child.kind for child in _body(document, fast)] == ["wait-call", "break-statement"]
    assert fallback.data == {"isDefault": True}
    (catch,) = _body(document, attempt, "catch")
    assert catch.kind == "catch-clause" and catch.data == {"param": "err"}
    assert [child.kind for child in _body(document, attempt, "finally")] == ["function-call"]


def test_comments_attach_to_statements(context) -> None:
    source = (
        "// open the app\n"
        "/* and wait\n"
        " * for it */\n"
        "wait(1); // settle\n"
        "wait(2);\n"
        "// trailing\n"
    )
    document = parse_source(source, context=context)
    first, second = _body(document)

    assert first.metadata.comments == ["open the app", "and wait\nfor it", "settle"]
    assert second.metadata.comments is None


def test_comment_text() -> None:
    assert comment_text("//  hello ") == "hello"
    assert comment_text("/** doc */") == "doc"


def test_nested_raw_text_is_rebased(context) -> None:
    source = "if (ok) {\n  const point = {\n    x: 1,\n  };\n}\n"
    document = parse_source(source, context=context)
    (branch,) = _body(document)
    (raw,) = _body(document, branch, "consequent")

    assert raw.data["code"] == "const point = {\n  x: 1,\n};"


def test_template_literal_lines_are_not_rebased(context) -> None:
    source = "while (x) {\n  const s = `a\n    b`;\n  let t = `c\n  d`;\n}\n"
    document = parse_source(source, context=context)
    (loop,) = _body(document)
    raw, declaration = _body(document, loop)

    assert raw.data["code"] == "const s = `a\n    b`;"
    assert declaration.data["initializer"] == "`c\n  d`"


def test_invalid_source_raises_with_position(context) -> None:
    with pytest.raises(SourceSyntaxError) as excinfo:
        parse_source("let = ;", context=context)

    assert excinfo.value.line == 1


def test_nesting_limit(context) -> None:
    shallow = build_context(context.manifest, BlockCompilerConfig(max_nesting_depth=2))

    with pytest.raises(NestingDepthError):
        parse_source("if (a) {\n  if (b) {\n    wait(1);\n  }\n}\n", context=shallow)
