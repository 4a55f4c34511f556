"""CLI entry point for chatlog-viewer."""

import logging

import click
import uvicorn

from .detect import detect_format
from .export import session_to_json, session_to_markdown
from .parsers import InvalidFormatError, available_formats, parse_log


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(verbose: bool):
    """Parse and view Copilot chat logs (text transcripts, JSON exports, chat replays)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--port", default=8080, help="Port to serve on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str):
    """Start the web API."""
    click.echo(f"Starting chatlog-viewer on http://{host}:{port}")
    uvicorn.run("chatlog_viewer.server:app", host=host, port=port, reload=False)


@main.command()
@click.argument("file", type=click.File("r", encoding="utf-8"))
def detect(file):
    """Print the detected format of a log file."""
    click.echo(detect_format(file.read()))


@main.command()
@click.argument("file", type=click.File("r", encoding="utf-8"))
@click.option(
    "--output", "output_format",
    type=click.Choice(["json", "md"]), default="json", show_default=True,
    help="Output format.",
)
@click.option(
    "--format", "log_format",
    type=click.Choice(["auto", *available_formats()]), default="auto", show_default=True,
    help="Input format; detected from the content when auto.",
)
def parse(file, output_format: str, log_format: str):
    """Parse a log file and print the session."""
    content = file.read()
    resolved = detect_format(content) if log_format == "auto" else log_format

    try:
        session = parse_log(content, resolved)
    except InvalidFormatError as e:
        raise click.UsageError(f"{file.name}: {e}")

    if output_format == "md":
        click.echo(session_to_markdown(session, title=file.name, log_format=resolved))
    else:
        click.echo(session_to_json(session))
