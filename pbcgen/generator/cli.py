"""Command-line interface and protoc plugin entry point."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click
from google.protobuf.compiler import plugin_pb2
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pbcgen.generator.config import COMPILER_VERSION, MIN_HEADER_VERSION, GeneratorConfig
from pbcgen.generator.errors import GenerationError
from pbcgen.generator.fields import render_flags
from pbcgen.generator.files import FileGenerator, generate
from pbcgen.generator.request import process_request, schema_set_from_request
from pbcgen.generator.types import SchemaSet

if TYPE_CHECKING:
    from pbcgen.generator.messages import MessageGenerator

_LOG = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    # stdout may carry a CodeGeneratorResponse, so logs always go to stderr.
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_schema(input_file: str, request: bool) -> SchemaSet:
    if request:
        with open(input_file, "rb") as f:
            req = plugin_pb2.CodeGeneratorRequest.FromString(f.read())
        return schema_set_from_request(req)
    with open(input_file, encoding="utf-8") as f:
        return SchemaSet.from_json(f.read())


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log each generation step")
def cli(verbose: bool) -> None:
    """protobuf-c code generator."""
    _configure_logging(verbose)


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Schema bundle (JSON) or request")
@click.option("--output", "-o", "output_dir", default=".", help="Output directory")
@click.option(
    "--request",
    "is_request",
    is_flag=True,
    default=False,
    help="Input is a serialized CodeGeneratorRequest instead of JSON",
)
@click.option("--min-header-version", type=int, default=MIN_HEADER_VERSION, show_default=True)
@click.option("--compiler-version", type=int, default=COMPILER_VERSION, show_default=True)
def gen(
    input_file: str,
    output_dir: str,
    is_request: bool,
    min_header_version: int,
    compiler_version: int,
) -> None:
    """Generate .pb-c.h and .pb-c.c files from a resolved schema."""
    config = GeneratorConfig(min_header_version=min_header_version, compiler_version=compiler_version)

    try:
        outputs = generate(_load_schema(input_file, is_request), config)
    except GenerationError as err:
        click.echo(f"Error: {err}", err=True)
        sys.exit(1)

    # Only written once every file generated cleanly.
    for name, content in outputs.items():
        path = Path(output_dir) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        _LOG.info("Wrote %s", path)


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Schema bundle (JSON) or request")
@click.option("--request", "is_request", is_flag=True, default=False, help="Input is a CodeGeneratorRequest")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(input_file: str, is_request: bool, output_json: bool) -> None:
    """Display struct layouts and descriptor tables."""
    try:
        schema = _load_schema(input_file, is_request)
        generators = [FileGenerator(f, schema) for f in schema.target_files()]
    except GenerationError as err:
        click.echo(f"Error: {err}", err=True)
        sys.exit(1)

    messages = [m for g in generators for m in _walk(g.message_generators)]
    if output_json:
        _output_json(messages)
    else:
        _output_plain(messages)


def _walk(generators: list[MessageGenerator]):
    for gen in generators:
        yield gen
        yield from _walk(gen.nested_generators)


def _output_json(messages: list[MessageGenerator]) -> None:
    data: dict = {}
    for msg in messages:
        data[msg.message.full_name] = {
            "struct": msg.classname,
            "layout": [
                {"name": m.name, "type": m.c_type, "role": m.role.value} for m in msg.layout()
            ],
            "fields": [
                {
                    "name": e.name,
                    "number": e.number,
                    "label": e.label,
                    "type": e.type,
                    "quantifier_offset": e.quantifier_offset,
                    "value_offset": e.value_offset,
                    "default_value": e.default_value,
                    "flags": render_flags(e.flags),
                }
                for e in msg.descriptor_entries()
            ],
        }
    print(json.dumps(data, indent=2))


def _output_plain(messages: list[MessageGenerator]) -> None:
    console = Console()

    for msg in messages:
        console.print(f"[bold cyan]{msg.message.full_name}[/bold cyan] [dim]({msg.classname})[/dim]")

        layout_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
        layout_table.add_column("Member", style="white")
        layout_table.add_column("C type", style="yellow")
        layout_table.add_column("Role", style="dim")
        for member in msg.layout():
            layout_table.add_row(member.name, member.c_type, member.role.value)
        console.print(layout_table)

        field_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
        field_table.add_column("#", style="green", justify="right")
        field_table.add_column("Field", style="white")
        field_table.add_column("Label", style="dim")
        field_table.add_column("Type", style="yellow")
        field_table.add_column("Quantifier", style="dim")
        field_table.add_column("Flags", style="magenta")
        for entry in msg.descriptor_entries():
            field_table.add_row(
                str(entry.number),
                entry.name or "",
                entry.label,
                entry.type,
                entry.quantifier_offset or "-",
                render_flags(entry.flags),
            )
        console.print(field_table)
        console.print()


@click.command()
@click.option("--verbose", is_flag=True, default=False)
@click.option("--min-header-version", type=int, default=MIN_HEADER_VERSION)
@click.option("--compiler-version", type=int, default=COMPILER_VERSION)
def _plugin_parameters(verbose: bool, min_header_version: int, compiler_version: int) -> None:
    """Options accepted through ``--c_opt``."""


def parse_plugin_parameter(parameter: str) -> tuple[bool, GeneratorConfig]:
    """Parse the comma separated parameter protoc passes to the plugin.

    ``verbose,min-header-version=1003000`` is read as
    ``--verbose --min-header-version=1003000``.
    """
    args = [f"--{item.strip()}" for item in parameter.split(",") if item.strip()]
    ctx = _plugin_parameters.make_context("protoc-gen-c", args)
    params = ctx.params
    config = GeneratorConfig(
        min_header_version=params["min_header_version"],
        compiler_version=params["compiler_version"],
    )
    return params["verbose"], config


def plugin() -> int:
    """protoc plugin entry point.

    Reads a CodeGeneratorRequest from stdin and writes a
    CodeGeneratorResponse to stdout.
    """
    request = plugin_pb2.CodeGeneratorRequest.FromString(sys.stdin.buffer.read())

    try:
        verbose, config = parse_plugin_parameter(request.parameter)
    except click.ClickException as err:
        response = plugin_pb2.CodeGeneratorResponse(error=f"invalid parameter: {err.format_message()}")
    else:
        _configure_logging(verbose)
        response = process_request(request, config)

    sys.stdout.buffer.write(response.SerializeToString())
    return 0


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
