#!/usr/bin/env python3
"""
CLI for the block compiler.

Usage:
    block-compiler generate workflow.json          # Print generated script source
    block-compiler parse script.js -o workflow.json
    block-compiler scope workflow.json --block <id>
"""
import json
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

# Load .env before importing compiler modules so settings pick it up
load_dotenv()

console = Console()
err_console = Console(stderr=True)

# Global verbose flag
VERBOSE = False


def _fail(exc: Exception) -> None:
    if VERBOSE:
        err_console.print_exception()
    err_console.print(f"[bold red]Error:[/bold red] {exc}")
    sys.exit(1)


def _write_output(text: str, output: Optional[str]) -> None:
    if output:
        Path(output).write_text(text, encoding="utf-8")
        err_console.print(f"[green]✓[/green] Wrote {output}")
    else:
        click.echo(text, nl=False)


@click.group()
@click.version_option(version="0.1.0", prog_name="block-compiler")
@click.option('--verbose', '-v', is_flag=True, help='Show full error tracebacks for debugging')
def cli(verbose: bool):
    """
    Block Compiler - convert between block workflow documents and script source.

    \b
    Commands:
      generate  - Generate script source from a workflow document
      parse     - Parse script source into a workflow document
      scope     - Show identifiers visible in a workflow document
      schemas   - List registered block schemas
      config    - Show current configuration
    """
    global VERBOSE
    VERBOSE = verbose


@cli.command()
@click.argument('document', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write source to this file instead of stdout')
def generate(document: str, output: Optional[str]):
    """
    Generate script source from a workflow document (JSON).

    \b
    Example:
      block-compiler generate workflow.json -o workflow.js
    """
    from block_compiler import BlockCompilerError, generate_source
    from block_compiler.graph.serialization import read_document

    try:
        source = generate_source(read_document(document))
    except BlockCompilerError as exc:
        _fail(exc)
    _write_output(source, output)


@cli.command()
@click.argument('script', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write the document to this file instead of stdout')
@click.option('--name', '-n', default=None, help='Document name (defaults to the script file name)')
def parse(script: str, output: Optional[str], name: Optional[str]):
    """
    Parse script source into a workflow document (JSON).

    \b
    Example:
      block-compiler parse workflow.js -o workflow.json --name "Daily report"
    """
    from block_compiler import BlockCompilerError, parse_source
    from block_compiler.graph.serialization import dump_document

    path = Path(script)
    try:
        document = parse_source(
            path.read_text(encoding="utf-8"),
            name=name or path.stem,
            source_path=str(path),
        )
    except BlockCompilerError as exc:
        _fail(exc)
    _write_output(dump_document(document) + "\n", output)


@cli.command()
@click.argument('document', type=click.Path(exists=True, dir_okay=False))
@click.option('--block', '-b', 'block_id', default=None, help='Only show identifiers visible at this block')
@click.option('--format', '-f', 'fmt', type=click.Choice(['json', 'table']), default='table', help='Output format')
def scope(document: str, block_id: Optional[str], fmt: str):
    """
    Show the identifiers a workflow document defines.

    With --block, lists only the identifiers visible where that block starts.
    """
    from block_compiler import BlockCompilerError, build_scope_index
    from block_compiler.graph.serialization import read_document

    try:
        workflow = read_document(document)
        index = build_scope_index(workflow)
    except BlockCompilerError as exc:
        _fail(exc)

    if block_id is not None and workflow.get(block_id) is None:
        _fail(click.BadParameter(f"Block not found: {block_id}"))
    suggestions = index.suggestions_for(block_id) if block_id else index.suggestions()

    if fmt == 'json':
        payload = [item.model_dump(mode="json", by_alias=True, exclude_none=True) for item in suggestions]
        click.echo(json.dumps(payload, indent=2))
        return

    title = f"Identifiers visible at {block_id}" if block_id else "Identifiers"
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Name", style="cyan")
    table.add_column("Source", style="dim")
    table.add_column("Outputs")
    for item in suggestions:
        outputs = ", ".join(output.expression for output in item.outputs) or "[dim]-[/dim]"
        table.add_row(item.name, item.source_label or item.source_kind, outputs)
    console.print(table)


@cli.command()
@click.option('--category', '-c', default=None, help='Only list schemas in this category')
def schemas(category: Optional[str]):
    """
    List the registered block schemas (static catalog plus API manifest).
    """
    from block_compiler.compiler.context import get_default_context

    context = get_default_context()
    table = Table(title="Block Schemas", box=box.ROUNDED)
    table.add_column("Kind", style="cyan")
    table.add_column("Label")
    table.add_column("Category", style="dim")
    table.add_column("Fields")
    table.add_column("Slots")
    table.add_column("API", style="green")

    for schema in context.block_registry.list():
        if category and schema.category.value != category:
            continue
        entry = context.manifest.by_kind(schema.kind)
        table.add_row(
            schema.kind,
            schema.label,
            schema.category.value,
            ", ".join(field.id for field in schema.fields),
            ", ".join(schema.slot_ids),
            entry.api_name if entry else "",
        )
    console.print(table)


@cli.command()
@click.option('--format', '-f', 'fmt', type=click.Choice(['json', 'table']), default='table', help='Output format')
def config(fmt: str):
    """
    Show current configuration.

    Displays configuration values loaded from environment variables and .env file.
    """
    from shared.config import config as compiler_config

    settings = [
        ("api_manifest_path", "BLOCK_COMPILER_API_MANIFEST_PATH"),
        ("indent_width", "BLOCK_COMPILER_INDENT_WIDTH"),
        ("emit_comments", "BLOCK_COMPILER_EMIT_COMMENTS"),
        ("max_nesting_depth", "BLOCK_COMPILER_MAX_NESTING_DEPTH"),
        ("log_level", "BLOCK_COMPILER_LOG_LEVEL"),
    ]

    if fmt == 'json':
        output = {attr: getattr(compiler_config, attr, None) for attr, _ in settings}
        output["resolved_manifest_path"] = str(compiler_config.resolved_manifest_path)
        click.echo(json.dumps(output, indent=2, default=str))
        return

    console.print(Panel.fit("[bold cyan]Block Compiler Configuration[/bold cyan]", border_style="cyan"))
    table = Table(box=box.ROUNDED)
    table.add_column("Setting", style="cyan")
    table.add_column("Env Variable", style="dim")
    table.add_column("Value")
    for attr, env_var in settings:
        value = getattr(compiler_config, attr, None)
        table.add_row(attr, env_var, "[dim]not set[/dim]" if value is None else str(value))
    table.add_row("resolved_manifest_path", "", str(compiler_config.resolved_manifest_path))
    console.print(table)


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
