"""Command line entry point for capturing commitments from files or text."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import click

from commitments.backend import get_backend
from commitments.config import Config, load_config
from commitments.handoff import pipe_to_store
from commitments.identity import load_identity
from commitments.models import MediaType, PipelineResult, RawDocument, SourceCategory
from commitments.output import append_capture_log, write_capture_markdown
from commitments.pipeline import capture_document, run_text_pipeline

_log = logging.getLogger(__name__)

SOURCE_CHOICES = [s.value for s in SourceCategory]


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _parse_reference(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        reference = datetime.fromisoformat(value)
    except ValueError as e:
        raise click.BadParameter(f"Not an ISO date/time: {value}", param_hint="--reference") from e
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    return reference


def _report(
    result: PipelineResult,
    config: Config,
    input_name: str,
    output_dir: str | None,
    push: bool,
    as_json: bool,
) -> None:
    output_dir = output_dir or config.output_dir
    append_capture_log(output_dir, input_name, result)

    if not result.completed:
        # Nothing was captured, so no report is written.
        if as_json:
            click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        click.echo(f"Text extraction failed: {result.error.message}", err=True)
        sys.exit(1)

    markdown_path = write_capture_markdown(result, output_dir, input_name)
    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
    else:
        click.echo(f"Captured {len(result.commitments)} commitment(s) from {input_name}")
        for commitment in result.commitments:
            due = f" (due {commitment.due_date})" if commitment.due_date else ""
            click.echo(f"  - {commitment.title}{due}")
        click.echo(f"Report: {markdown_path}")

    if push:
        status = pipe_to_store(result)
        click.echo(f"Store: {status['status']}")


@click.group()
def main() -> None:
    """Capture personal commitments from transcripts, emails and documents."""


@main.command("file")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--type", "media_type", default=None, help="Declared MIME type (default: from suffix).")
@click.option("--source", type=click.Choice(SOURCE_CHOICES), default="other", show_default=True)
@click.option("--reference", default=None, help="ISO instant relative dates resolve against.")
@click.option("--output-dir", default=None, help="Where to write reports (default: OUTPUT_DIR).")
@click.option("--push", is_flag=True, help="Send the note and tasks to the configured store.")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON.")
@click.option("--verbose", is_flag=True, help="Debug logging.")
def capture_file(
    path: Path,
    media_type: str | None,
    source: str,
    reference: str | None,
    output_dir: str | None,
    push: bool,
    as_json: bool,
    verbose: bool,
) -> None:
    """Capture commitments from a document file."""
    config = load_config()
    _setup_logging(verbose or config.verbose)

    size = path.stat().st_size
    if size > config.max_upload_bytes:
        raise click.BadParameter(
            f"File too large: {size / (1024 * 1024):.2f}MB, "
            f"maximum is {config.max_upload_bytes / (1024 * 1024):.0f}MB.",
            param_hint="PATH",
        )

    if media_type is None:
        guessed = MediaType.from_filename(path.name)
        media_type = guessed.value if guessed else "application/octet-stream"

    result = asyncio.run(
        capture_document(
            RawDocument(data=path.read_bytes(), media_type=media_type, source=source),
            load_identity(config),
            _parse_reference(reference),
            backend=get_backend(config),
            config=config,
        )
    )
    _report(result, config, path.name, output_dir, push, as_json)


@main.command("text")
@click.argument("text", required=False)
@click.option("--source", type=click.Choice(SOURCE_CHOICES), default="other", show_default=True)
@click.option("--reference", default=None, help="ISO instant relative dates resolve against.")
@click.option("--output-dir", default=None, help="Where to write reports (default: OUTPUT_DIR).")
@click.option("--push", is_flag=True, help="Send the note and tasks to the configured store.")
@click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON.")
@click.option("--verbose", is_flag=True, help="Debug logging.")
def capture_text(
    text: str | None,
    source: str,
    reference: str | None,
    output_dir: str | None,
    push: bool,
    as_json: bool,
    verbose: bool,
) -> None:
    """Capture commitments from TEXT, or from stdin when TEXT is omitted or '-'."""
    config = load_config()
    _setup_logging(verbose or config.verbose)

    if text is None or text == "-":
        text = click.get_text_stream("stdin").read()

    result = asyncio.run(
        run_text_pipeline(
            text,
            source,
            load_identity(config),
            _parse_reference(reference),
            backend=get_backend(config),
            config=config,
        )
    )
    _report(result, config, "text", output_dir, push, as_json)


if __name__ == "__main__":
    main()
