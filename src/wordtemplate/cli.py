"""Word template engine - CLI entry point."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError

from wordtemplate.config import settings
from wordtemplate.conversion.service import Normalizer
from wordtemplate.conversion.utils import convert_bytes
from wordtemplate.docx_package.loader import load_template_file
from wordtemplate.docx_package.source import SourceDetector, check_template_markers
from wordtemplate.exceptions import AppError
from wordtemplate.render import TemplateEngine
from wordtemplate.schemas import RenderOptions


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _read_json(path: Path, label: str):
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        click.echo(f"Error reading {label} {path}: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """Fill ${...} placeholders, loops and conditions in .docx templates."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)


@cli.command()
@click.argument("template", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("data_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--operations", "operations_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="JSON file with operations (tablePageBreaking, repeatTableHeader, computed, conditionalBlocks)")
@click.option("--normalize/--no-normalize", default=None,
              help="Re-save non-Word templates through soffice first (default: from settings)")
@click.option("--pdf", is_flag=True, help="Convert the rendered document to PDF")
@click.pass_context
def render(ctx: click.Context, template: Path, data_json: Path, output: Path,
           operations_path: Optional[Path] = None, normalize: Optional[bool] = None, pdf: bool = False):
    """Render TEMPLATE with the data in DATA_JSON and write OUTPUT."""
    verbose = ctx.obj.get("verbose", False)
    data = _read_json(data_json, "data")
    if not isinstance(data, dict):
        click.echo("Error: data JSON must be an object", err=True)
        sys.exit(1)

    operations = _read_json(operations_path, "operations") if operations_path else None
    try:
        options = RenderOptions(data=data, operations=operations)
    except ValidationError as e:
        click.echo(f"Error: invalid operations: {e}", err=True)
        sys.exit(1)

    engine = TemplateEngine(normalizer=Normalizer(enabled=normalize))
    try:
        prepared = engine.prepare(template.read_bytes(), template.name)
        if verbose:
            click.echo(f"  Source: {prepared.detection.source} ({prepared.detection.confidence})")
            click.echo(f"  Normalization: {prepared.normalization.reason}")

        result = engine.render(prepared.package, options.data, options.operations)
        content = result.content
        if pdf:
            content = convert_bytes(content, "pdf", output.name)
    except AppError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(content)

    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)
    click.echo(f"✓ Rendered {template.name} → {output.name} ({len(result.warnings)} warnings)")


@cli.command()
@click.argument("template", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def detect(template: Path):
    """Print which application produced TEMPLATE, as JSON."""
    try:
        package = load_template_file(template)
    except AppError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    result = SourceDetector().detect(package)
    click.echo(json.dumps(result.to_dict(), indent=2))


@cli.command()
@click.argument("template", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(template: Path):
    """Check TEMPLATE for unbalanced blocks and split placeholders."""
    try:
        package = load_template_file(template)
    except AppError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    valid, issues = TemplateEngine().validate_template(package)
    for issue in issues:
        click.echo(f"  - {issue}")
    # Split markers are merged at render time, so they do not fail validation.
    for note in check_template_markers(package):
        click.echo(f"  Note: {note}")

    if not valid:
        click.echo(f"✗ {template.name}: {len(issues)} issue(s)")
        sys.exit(1)
    click.echo(f"✓ {template.name} is valid")


if __name__ == "__main__":
    cli()
