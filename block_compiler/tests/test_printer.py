from __future__ import annotations

import pytest

from block_compiler.compiler import ast
from block_compiler.compiler.expressions import (
    parse_argument_list,
    parse_expression,
    parse_for_initializer,
    parse_parameter_names,
)
from block_compiler.compiler.printer import ScriptPrinter, format_number

printer = ScriptPrinter("  ")


def test_format_number() -> None:
    assert format_number(3.0) == "3"
    assert format_number(0.25) == "0.25"
    assert format_number(float("nan")) == "NaN"
    assert format_number(float("-inf")) == "-Infinity"
    with pytest.raises(TypeError):
        format_number(True)


def test_parse_expression_keeps_valid_text() -> None:
    expression = parse_expression("a +  b")

    assert isinstance(expression, ast.SourceExpression)
    assert expression.text == "a +  b"
    assert expression.operator == "+"


def test_parse_expression_reads_declaration_initializer() -> None:
    expression = parse_expression("let y = items.length")

    assert printer.expression(expression) == "items.length"


def test_parse_expression_falls_back_to_string_literal() -> None:
    expression = parse_expression("hello world")

    assert expression == ast.StringLiteral("hello world")
    assert printer.expression(expression) == '"hello world"'


def test_parse_expression_blank_is_undefined() -> None:
    assert parse_expression("   ") == ast.Identifier("undefined")


def test_parse_argument_list_splits_arguments() -> None:
    arguments = parse_argument_list("a, b + 1, ...rest")

    assert [printer.expression(argument) for argument in arguments] == ["a", "b + 1", "...rest"]
    assert parse_argument_list("") == []


def test_parse_for_initializer_keeps_declaration() -> None:
    initializer = parse_for_initializer("let i = 0;")

    assert printer.expression(initializer) == "let i = 0"
    assert parse_for_initializer("") is None


def test_parse_parameter_names() -> None:
    assert parse_parameter_names(" a, b ,, c") == ["a", "b", "c"]


def test_member_object_is_parenthesized_when_needed() -> None:
    sum_member = ast.MemberExpression(parse_expression("a + b"), "length")
    number_member = ast.MemberExpression(ast.NumberLiteral(1), "toString")

    assert printer.expression(sum_member) == "(a + b).length"
    assert printer.expression(number_member) == "(1).toString"


def test_binary_operands_respect_precedence() -> None:
    left_sum = ast.BinaryExpression("*", parse_expression("a + b"), ast.Identifier("c"))
    right_difference = ast.BinaryExpression("-", ast.Identifier("x"), parse_expression("y - z"))
    chained_sum = ast.BinaryExpression("+", ast.Identifier("x"), parse_expression("y + z"), associative_chain=True)

    assert printer.expression(left_sum) == "(a + b) * c"
    assert printer.expression(right_difference) == "x - (y - z)"
    assert printer.expression(chained_sum) == "x + y + z"


def test_nullish_is_never_mixed_with_logical_operators() -> None:
    mixed = ast.BinaryExpression("??", parse_expression("a || b"), ast.Identifier("c"))

    assert printer.expression(mixed) == "(a || b) ?? c"


def test_object_statement_is_wrapped() -> None:
    statement = ast.ExpressionStatement(parse_expression("{ a: 1 }"))

    assert printer.statement(statement) == "({ a: 1 });"


def test_nested_blocks_are_indented() -> None:
    program = [
        ast.FunctionDeclaration(
            name="greet",
            params=["name"],
            body=[
                ast.IfStatement(
                    test=ast.Identifier("name"),
                    consequent=[ast.ReturnStatement(ast.Identifier("name"))],
                    alternate=ast.IfStatement(test=ast.Identifier("fallback"), consequent=[ast.BreakStatement()]),
                )
            ],
        )
    ]

    assert printer.program(program) == (
        "function greet(name) {\n"
        "  if (name) {\n"
        "    return name;\n"
        "  } else if (fallback) {\n"
        "    break;\n"
        "  }\n"
        "}\n"
    )


def test_switch_and_try_layout() -> None:
    switch = ast.SwitchStatement(
        discriminant=ast.Identifier("mode"),
        cases=[
            ast.SwitchCase(test=ast.StringLiteral("a"), body=[ast.BreakStatement()]),
            ast.SwitchCase(test=None),
        ],
    )
    bare_try = ast.TryStatement(block=[ast.ContinueStatement()])
    caught = ast.TryStatement(block=[], handler=ast.CatchClause(param=None, body=[]))

    assert printer.statement(switch) == 'switch (mode) {\n  case "a":\n    break;\n  default:\n}'
    assert printer.statement(bare_try) == "try {\n  continue;\n} finally {}"
    assert printer.statement(caught) == "try {} catch {}"


def test_comments_precede_statement() -> None:
    statement = ast.Commented(ast.BreakStatement(), ["first", "", "second"])

    assert printer.statement(statement) == "// first\n//\n// second\nbreak;"


def test_empty_program_prints_nothing() -> None:
    assert printer.program([]) == ""
