from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

import orjson
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from adapters.filesystem.json_utils import write_layout_result
from app.config import AppSettings, load_settings
from app.engine_wiring import build_event_source, build_layout_engine
from domain.models import VIEW_TYPES, LayoutResult

app = typer.Typer(no_args_is_help=True)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command("layout")
def layout(
    events_file: Path = typer.Argument(..., help="JSON file with event records."),
    width: float = typer.Option(1280.0, help="Viewport width in pixels."),
    view: str = typer.Option("", help="View type: day-grid or month-pill."),
    days: int = typer.Option(1, min=1, max=42, help="Number of days in the period."),
    period_start: str = typer.Option("", help="ISO datetime of the period start."),
    config: Path | None = typer.Option(None, help="YAML settings file."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw layout result."),
    output: Path | None = typer.Option(None, help="Write the layout result to a JSON file."),
) -> None:
    settings = _load_settings(config)
    engine = build_layout_engine(settings)
    records = _load_records(events_file)
    view_type = view or settings.layout.default_view
    if view_type not in VIEW_TYPES:
        console.print(f"[red]Unknown view type:[/] {view_type}")
        raise typer.Exit(code=1)
    result = engine.layout(
        records,
        viewport_width=width,
        view_type=view_type,  # type: ignore[arg-type]
        period_start=_parse_period_start(period_start),
        days=days,
    )
    if output is not None:
        written = write_layout_result(output, result)
        console.print(f"[green]Layout written to[/] {output} ({written} bytes)")
        return
    if as_json:
        console.print_json(orjson.dumps(result.to_dict()).decode("utf-8"))
        return
    _print_layout(result)


@app.command("metrics")
def metrics(
    events_file: Path = typer.Argument(..., help="JSON file with event records."),
    config: Path | None = typer.Option(None, help="YAML settings file."),
) -> None:
    settings = _load_settings(config)
    engine = build_layout_engine(settings)
    records = _load_records(events_file)
    summary = engine.metrics(records)
    table = Table(title="Overlap metrics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for key, value in summary.to_dict().items():
        table.add_row(key, f"{value:.2f}" if isinstance(value, float) else str(value))
    console.print(table)
    for conflict in engine.conflicts(records):
        color = {"low": "yellow", "medium": "dark_orange", "high": "red"}[conflict.severity]
        console.print(
            f"[{color}]{conflict.severity}[/] {conflict.description}: "
            f"{', '.join(conflict.event_ids)}"
        )


@app.command("breakpoint")
def breakpoint_command(
    width: float = typer.Argument(..., help="Viewport width in pixels."),
    config: Path | None = typer.Option(None, help="YAML settings file."),
) -> None:
    settings = _load_settings(config)
    engine = build_layout_engine(settings)
    resolved = engine.watcher.resolver.resolve(width)
    params = engine.view_parameters(resolved)
    console.print(f"[green]{resolved.name}[/] for width {width:g}")
    table = Table()
    table.add_column("Parameter")
    table.add_column("Value", justify="right")
    for key, value in params.to_dict().items():
        table.add_row(key, str(value))
    table.add_row("compact_mode", str(resolved.parameters.compact_mode))
    console.print(table)


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8080, help="Bind port."),
    config: Path | None = typer.Option(None, help="YAML settings file."),
) -> None:
    import uvicorn

    from app.web_main import create_app

    uvicorn.run(create_app(_load_settings(config)), host=host, port=port)


def _load_settings(config: Path | None) -> AppSettings:
    try:
        return load_settings(config)
    except FileNotFoundError as exc:
        console.print(f"[red]{exc}[/]")
        raise typer.Exit(code=1) from exc


def _load_records(events_file: Path) -> list[Any]:
    source = build_event_source()
    try:
        return list(source.load_records(events_file))
    except FileNotFoundError as exc:
        console.print(f"[red]File not found:[/] {events_file}")
        raise typer.Exit(code=1) from exc
    except (orjson.JSONDecodeError, ValueError) as exc:
        console.print(f"[red]Invalid events file:[/] {exc}")
        raise typer.Exit(code=1) from exc


def _parse_period_start(raw: str) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid ISO datetime: {raw}") from exc


def _print_layout(result: LayoutResult) -> None:
    console.print(
        f"[bold]{result.view_type}[/] at [green]{result.breakpoint}[/] "
        f"(version {result.layout_version}, slot {result.parameters.slot_height:g}px)"
    )
    if result.view_type == "month-pill":
        table = Table("Day", "Lane", "Event", "Top", "Height")
        for pill in result.pills:
            table.add_row(
                str(pill.geometry.day_index),
                str(pill.geometry.lane),
                pill.event.title or pill.event.event_id,
                f"{pill.geometry.top:g}",
                f"{pill.geometry.height:g}",
            )
        console.print(table)
        for summary in result.day_summaries:
            if summary.overflow_count:
                console.print(f"day {summary.day_index}: +{summary.overflow_count} more")
    else:
        table = Table("Day", "Event", "Top", "Height", "Left %", "Width %", "Col", "Overflow")
        for placement in result.placements:
            geometry = placement.geometry
            table.add_row(
                str(geometry.day_index),
                placement.event.title or placement.event.event_id,
                f"{geometry.top:g}",
                f"{geometry.height:g}",
                f"{geometry.left:.2f}",
                f"{geometry.width:.2f}",
                f"{geometry.column + 1}/{geometry.column_count}",
                "yes" if geometry.overflow else "",
            )
        console.print(table)
        for indicator in result.overflow:
            console.print(
                f"day {indicator.day_index} cluster {indicator.cluster_index}: "
                f"+{indicator.hidden_count} more"
            )
        for pill in result.all_day:
            label = pill.event.title or pill.event.event_id
            console.print(f"all-day lane {pill.geometry.lane}: {label}")
    for warning in result.warnings:
        name = warning.event_id or f"#{warning.order}"
        console.print(f"[yellow]Skipped[/] {name}: {warning.reason}")


if __name__ == "__main__":
    app()
