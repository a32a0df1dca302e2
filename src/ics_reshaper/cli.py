from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from ics_reshaper.config import ConfigError, Settings, list_settings, load_settings
from ics_reshaper.generator import EmptyInputError, generate_ics
from ics_reshaper.models import GenerationResult, ProcessOptions
from ics_reshaper.timeutil import parse_anchor

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="icsr",
    help="Repair, re-anchor and expand iCalendar event text.",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Inspect ICSR_* settings.")
app.add_typer(config_app, name="config")


def _load_settings() -> Settings:
    try:
        return load_settings()
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _read_input(input_path: str) -> str:
    if input_path == "-":
        return typer.get_text_stream("stdin").read()

    path = Path(input_path).expanduser()
    if not path.is_file():
        raise typer.BadParameter(f"Input file not found: {input_path}")
    return path.read_text(encoding="utf-8")


def _resolve_filename(result: GenerationResult, override: str | None) -> str:
    if override is None:
        return result.filename
    base = override.strip()
    if base.lower().endswith(".ics"):
        base = base[:-4]
    if not base:
        raise typer.BadParameter("--filename must not be empty.")
    return f"{base}.ics"


@app.callback()
def root(
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (default: ICSR_LOG_LEVEL)."),
) -> None:
    """ICS reshaper CLI entrypoint."""
    level_name = (log_level or _load_settings().log_level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise typer.BadParameter(f"Invalid --log-level: {log_level}.")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


@app.command()
def convert(
    input_path: str = typer.Argument("-", metavar="INPUT", help="ICS text file, or '-' for stdin."),
    start_date: str | None = typer.Option(
        None, "--start-date", help="New earliest start in YYYY-MM-DDTHH:MM (floating local time)."
    ),
    weekly: bool = typer.Option(False, "--weekly/--no-weekly", help="Expand events into a weekly series."),
    count: int | None = typer.Option(
        None, "--count", help="Number of weekly occurrences (default: ICSR_DEFAULT_WEEKLY_COUNT)."
    ),
    output: Path | None = typer.Option(None, "--output", help="Write the calendar to this file."),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", help="Write the calendar into this directory under the derived filename."
    ),
    filename: str | None = typer.Option(None, "--filename", help="Override the derived filename."),
    show_diagnostics: bool = typer.Option(False, "--show-diagnostics", help="List fields that were skipped."),
) -> None:
    """Normalize ICS text, optionally re-anchor it and expand it weekly."""
    settings = _load_settings()
    if output is not None and output_dir is not None:
        raise typer.BadParameter("Use either --output or --output-dir, not both.")

    anchor = None
    if start_date is not None:
        try:
            anchor = parse_anchor(start_date)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc

    if count is not None and not weekly:
        logger.warning("ics_count_ignored count=%s reason=weekly_disabled", count)
    weekly_count = count if count is not None else settings.default_weekly_count
    options = ProcessOptions(
        start_date=anchor,
        is_weekly=weekly,
        weekly_count=weekly_count if weekly else None,
    )

    text = _read_input(input_path)
    try:
        result = generate_ics(
            text,
            options,
            prodid=settings.prodid,
            filename_max_length=settings.filename_max_length,
        )
    except EmptyInputError as exc:
        print(f"[red]Conversion failed:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    target_name = _resolve_filename(result, filename)
    target: Path | None = None
    if output is not None:
        target = output
    elif output_dir is not None:
        target = output_dir / target_name

    if target is None:
        typer.echo(result.ics_content)
    else:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(result.ics_content, encoding="utf-8", newline="")
        print(f"[green]Calendar ready:[/green] {escape(result.summary)}")
        print(f"Saved: {escape(str(target))}")
        print(
            f"blocks={result.block_count} occurrences={result.occurrence_count} "
            f"filename={target_name}"
        )

    if show_diagnostics:
        if not result.diagnostics:
            typer.echo("Skipped fields: none", err=True)
        for item in result.diagnostics:
            typer.echo(
                f"Skipped: block={item.block_index} field={item.field} "
                f"reason={item.reason} value={item.raw_value or '-'}",
                err=True,
            )


@config_app.command("show")
def config_show() -> None:
    """Print effective settings as key=value, sorted by key."""
    for key, value in list_settings(_load_settings()):
        typer.echo(f"{key}={value}")
