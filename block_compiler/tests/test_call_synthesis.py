from __future__ import annotations

from block_compiler.compiler.call_synthesis import ValueSource, resolve_fields, synthesize_call
from block_compiler.compiler.printer import ScriptPrinter
from block_compiler.graph.document import create_block_instance


def _emit(context, kind: str, data: dict) -> str:
    block = create_block_instance(kind, data, context=context)
    entry = context.manifest.by_kind(kind)
    return ScriptPrinter().statement(synthesize_call(block, entry).statement)


def test_positional_number_argument(context) -> None:
    assert _emit(context, "wait-call", {"duration": 2}) == "wait(2);"
    assert _emit(context, "wait-call", {"duration": "0.5"}) == "wait(0.5);"


def test_required_field_without_default_uses_fallback(context) -> None:
    block = create_block_instance("wait-call", {}, context=context)
    resolutions = resolve_fields(block, context.manifest.by_kind("wait-call"))

    assert resolutions["duration"].source is ValueSource.fallback
    assert _emit(context, "wait-call", {}) == "wait(1);"
    assert _emit(context, "press-call", {}) == 'press("return");'


def test_non_numeric_number_field_is_emitted_as_expression(context) -> None:
    assert _emit(context, "wait-call", {"duration": "delay * 2"}) == "wait(delay * 2);"


def test_press_modifiers_become_string_array(context) -> None:
    emitted = _emit(context, "press-call", {"key": "c", "modifiers": "command, shift"})

    assert emitted == 'press("c", ["command", "shift"]);'


def test_positional_arguments_stop_at_first_missing_value(context) -> None:
    # screenshot's only argument has no default, so the call is emitted bare
    assert _emit(context, "screenshot-call", {}) == "screenshot();"
    assert _emit(context, "screenshot-call", {"assignTo": "shot"}) == "let shot = screenshot();"


def test_positional_defaults_are_still_emitted(context) -> None:
    emitted = _emit(context, "open-call", {"appName": "Google Chrome"})

    assert emitted == 'open("Google Chrome", true, 5);'


def test_default_identifier_binds_result(context) -> None:
    emitted = _emit(context, "ai-call", {"prompt": "Summarize the page"})

    assert emitted == 'let result = ai("Summarize the page");'


def test_default_sourced_options_are_omitted(context) -> None:
    defaulted = _emit(context, "vision-call", {"target": "shot.image", "prompt": "Find the button"})
    explicit = _emit(
        context,
        "vision-call",
        {"identifier": "found", "target": "shot.image", "prompt": "Find the button", "format": "text"},
    )

    assert defaulted == 'let visionResult = vision(shot.image, "Find the button");'
    assert explicit == 'let found = vision(shot.image, "Find the button", { format: "text" });'


def test_json_schema_field_is_emitted_as_string(context) -> None:
    emitted = _emit(
        context,
        "ai-call",
        {"prompt": "List items", "format": "json", "schema": '{"type": "array"}'},
    )

    assert emitted == 'let result = ai("List items", { format: "json", schema: "{\\"type\\": \\"array\\"}" });'


def test_object_invocation_skips_identifier_field(context) -> None:
    emitted = _emit(context, "locator-call", {"instruction": "Save button", "waitTime": 2})

    assert emitted == 'let node = locator({ instruction: "Save button", waitTime: 2 });'


def test_string_fields_are_quoted_verbatim(context) -> None:
    assert _emit(context, "type-call", {"text": 'say "hi"\n'}) == 'type("say \\"hi\\"\\n");'


def test_expression_reference_is_emitted_as_code(context) -> None:
    typed = _emit(context, "type-call", {"text": {"expression": "message"}})
    schema = _emit(context, "ai-call", {"prompt": "p", "schema": {"expression": '{ type: "object" }'}})
    keys = _emit(context, "press-call", {"key": {"expression": "k"}, "modifiers": {"expression": "mods"}})

    assert typed == "type(message);"
    assert schema == 'let result = ai("p", { schema: { type: "object" } });'
    assert keys == "press(k, mods);"


def test_blank_expression_reference_counts_as_missing(context) -> None:
    emitted = _emit(context, "press-call", {"key": {"expression": "  "}})

    assert emitted == 'press("return");'
