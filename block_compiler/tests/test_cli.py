from __future__ import annotations

import json

from click.testing import CliRunner

from cli.main import cli


def test_parse_then_generate(tmp_path) -> None:
    script = tmp_path / "flow.js"
    script.write_text("// settle\nwait(2);\nlet shot = screenshot();\n", encoding="utf-8")
    document_path = tmp_path / "flow.json"
    output_path = tmp_path / "out.js"
    runner = CliRunner()

    parsed = runner.invoke(cli, ["parse", str(script), "-o", str(document_path), "--name", "Flow"])
    assert parsed.exit_code == 0, parsed.output
    payload = json.loads(document_path.read_text(encoding="utf-8"))
    assert payload["metadata"]["name"] == "Flow"
    assert payload["metadata"]["sourcePath"] == str(script)

    generated = runner.invoke(cli, ["generate", str(document_path), "-o", str(output_path)])
    assert generated.exit_code == 0, generated.output
    assert output_path.read_text(encoding="utf-8") == "// settle\nwait(2);\nlet shot = screenshot();\n"


def test_scope_json(tmp_path) -> None:
    script = tmp_path / "flow.js"
    script.write_text("let shot = screenshot();\n", encoding="utf-8")
    document_path = tmp_path / "flow.json"
    runner = CliRunner()
    runner.invoke(cli, ["parse", str(script), "-o", str(document_path)])

    result = runner.invoke(cli, ["scope", str(document_path), "--format", "json"])

    assert result.exit_code == 0, result.output
    (suggestion,) = json.loads(result.stdout)
    assert suggestion["name"] == "shot"
    assert suggestion["sourceKind"] == "screenshot-call"


def test_parse_reports_syntax_errors(tmp_path) -> None:
    script = tmp_path / "broken.js"
    script.write_text("let = ;\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["parse", str(script)])

    assert result.exit_code == 1


def test_schemas_lists_manifest_kinds() -> None:
    result = CliRunner().invoke(cli, ["schemas", "--category", "io"], env={"COLUMNS": "200"})

    assert result.exit_code == 0, result.output
    assert "screenshot-call" in result.output


def test_config_json_lists_settings() -> None:
    result = CliRunner().invoke(cli, ["config", "--format", "json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert {"indent_width", "max_nesting_depth", "log_level", "resolved_manifest_path"} <= set(payload)
