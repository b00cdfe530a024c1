"""CLI interface for the backlinks link graph."""

import csv
import io
import json
import logging
from enum import StrEnum
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from backlinks.config import BacklinksConfig, load_config, merge_cli_overrides
from backlinks.errors import BacklinksError, ItemNotFoundError
from backlinks.links.graph import LinkGraph
from backlinks.links.models import SuggestionDirection
from backlinks.site.models import Item
from backlinks.site.store import SiteStore

app = typer.Typer(
    name="backlinks",
    help="Track internal links between site items and suggest new ones.",
)
backlog_app = typer.Typer(help="Work on the backlog of unscanned items.")
app.add_typer(backlog_app, name="backlog")

console = Console()

_COLUMNS = ("ID", "Type", "Status", "Title", "Date")


class OutputFormat(StrEnum):
    """How listing commands render their items."""

    TABLE = "table"
    CSV = "csv"
    JSON = "json"
    COUNT = "count"


FormatOption = Annotated[
    OutputFormat,
    typer.Option("--format", help="Render output as table, csv, json or count."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from backlinks import __version__

        console.print(f"backlinks {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .backlinks.toml file."),
    ] = None,
    site_dir: Annotated[
        Optional[Path],
        typer.Option("--site-dir", help="Directory holding the site data file."),
    ] = None,
    base_url: Annotated[
        Optional[str],
        typer.Option("--base-url", help="Site root URL used to resolve links."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Show log output."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Backlinks - internal link graph and link suggestions."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )
    try:
        config = merge_cli_overrides(
            load_config(config_path), site_dir=site_dir, base_url=base_url
        )
    except BacklinksError as exc:
        _fail(exc)
    ctx.obj = config


def _fail(message: object) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(str(message))}")
    raise typer.Exit(1)


def _open(ctx: typer.Context) -> tuple[LinkGraph, SiteStore]:
    config: BacklinksConfig = ctx.obj
    return LinkGraph.open(config)


def _eligible_item(graph: LinkGraph, item_id: int) -> Item:
    try:
        item = graph.get_item(item_id)
    except ItemNotFoundError:
        item = None
    if item is None or not graph.scope.accepts(item):
        _fail(f"No such eligible item: {item_id}")
    return item


def _rows(items: list[Item], extra: dict[str, list[object]] | None = None) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for index, item in enumerate(items):
        row: dict[str, object] = {
            "ID": item.id,
            "Type": item.type,
            "Status": item.status,
            "Title": item.title,
            "Date": item.published_at.strftime("%Y-%m-%d"),
        }
        for label, values in (extra or {}).items():
            row[label] = values[index]
        rows.append(row)
    return rows


def _item_table(items: list[Item], extra: dict[str, list[object]] | None = None) -> Table:
    table = Table()
    for column in _COLUMNS:
        table.add_column(column)
    for label in extra or {}:
        table.add_column(label, justify="right")
    for row in _rows(items, extra):
        table.add_row(*(escape(str(value)) for value in row.values()))
    return table


def _render(
    items: list[Item],
    extra: dict[str, list[object]] | None,
    output_format: OutputFormat,
) -> None:
    """Print items as plain csv, json or a count, without rich markup."""
    if output_format == OutputFormat.COUNT:
        typer.echo(len(items))
        return
    rows = _rows(items, extra)
    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps(rows, indent=2))
        return
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=[*_COLUMNS, *(extra or {})], lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)
    typer.echo(buffer.getvalue(), nl=False)


def _display_items(
    header: str,
    items: list[Item],
    extra: dict[str, list[object]] | None = None,
    output_format: OutputFormat = OutputFormat.TABLE,
) -> None:
    if output_format != OutputFormat.TABLE:
        _render(items, extra, output_format)
        return
    if not items:
        console.print(f"[yellow]{header} - NONE[/yellow]")
        return
    console.print(header)
    console.print(_item_table(items, extra))


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Show the effective tracking configuration."""
    graph, _store = _open(ctx)
    console.print(f"Site directory: {graph.config.site.directory}")
    console.print(f"Item types: {','.join(graph.scope.post_types)}")
    console.print(f"Item statuses: {','.join(graph.scope.post_statuses)}")


@app.command()
def rescan(
    ctx: typer.Context,
    ids: Annotated[
        Optional[list[int]],
        typer.Argument(help="Rescan only these item ids."),
    ] = None,
    output_format: FormatOption = OutputFormat.TABLE,
) -> None:
    """Scan items for outgoing links (all tracked items by default)."""
    try:
        graph, store = _open(ctx)
        items = [_eligible_item(graph, i) for i in ids] if ids else graph.eligible_items()

        scanned: list[Item] = []
        outgoing: list[object] = []
        for item in items:
            result = graph.scan(item)
            scanned.append(item)
            outgoing.append(len(result.targets))
        store.save()
    except BacklinksError as exc:
        _fail(exc)

    _display_items(
        f"Scanned {len(scanned)} item(s)", scanned, {"Outgoing links": outgoing}, output_format
    )


@app.command()
def status(
    ctx: typer.Context,
    max_count: Annotated[
        Optional[int],
        typer.Option("--max", help="Only show items with at most this many backlinks."),
    ] = None,
    output_format: FormatOption = OutputFormat.TABLE,
) -> None:
    """Show tracked items grouped by backlink count."""
    graph, _store = _open(ctx)
    pools = graph.status_pools(max_count)

    if output_format != OutputFormat.TABLE:
        rows = [row for pool in pools.values() for row in pool]
        _render(
            [row.item for row in rows],
            {"Incoming": [row.incoming for row in rows], "Outgoing": [row.outgoing for row in rows]},
            output_format,
        )
        return

    for count, rows in pools.items():
        console.print(f"Found {len(rows)} item(s) with {count} backlink(s)")
        console.print(
            _item_table(
                [row.item for row in rows],
                {
                    "Incoming": [row.incoming for row in rows],
                    "Outgoing": [row.outgoing for row in rows],
                },
            )
        )


@app.command()
def show(
    ctx: typer.Context,
    item_id: Annotated[int, typer.Argument(help="Item to show links for.")],
    output_format: FormatOption = OutputFormat.TABLE,
) -> None:
    """Show incoming and outgoing links of an item."""
    graph, _store = _open(ctx)
    item = _eligible_item(graph, item_id)
    outgoing = graph.get_outgoing_edges(item)
    incoming = graph.get_incoming_edges(item)

    if output_format != OutputFormat.TABLE:
        directions: list[object] = ["outgoing"] * len(outgoing) + ["incoming"] * len(incoming)
        _render(outgoing + incoming, {"Direction": directions}, output_format)
        return

    _display_items("This item", [item])
    _display_items(f"Found {len(outgoing)} outgoing link(s).", outgoing)
    _display_items(f"Found {len(incoming)} incoming link(s).", incoming)


@app.command()
def suggest(
    ctx: typer.Context,
    item_id: Annotated[int, typer.Argument(help="Item to suggest links for.")],
    outgoing: Annotated[
        bool,
        typer.Option("--outgoing", help="Suggest outgoing links instead of incoming ones."),
    ] = False,
) -> None:
    """Suggest items to link with, ranked by shared taxonomy terms."""
    graph, _store = _open(ctx)
    item = _eligible_item(graph, item_id)
    direction = SuggestionDirection.OUTGOING if outgoing else SuggestionDirection.INCOMING

    suggestions = graph.suggestions_for_item(item, direction)
    _display_items(
        f"{direction.value.capitalize()} link suggestions",
        [s.item for s in suggestions],
        {"Shared terms": [s.score for s in suggestions]},
    )


@app.command()
def unscanned(
    ctx: typer.Context,
    output_format: FormatOption = OutputFormat.TABLE,
) -> None:
    """List tracked items that have never been scanned."""
    graph, _store = _open(ctx)
    _display_items("Unscanned items", graph.unregistered_items(), output_format=output_format)


@app.command()
def unscan(
    ctx: typer.Context,
    ids: Annotated[list[int], typer.Argument(help="Items to de-register.")],
) -> None:
    """Clear outgoing links of items and return them to the backlog."""
    try:
        graph, store = _open(ctx)
        for item_id in ids:
            item = _eligible_item(graph, item_id)
            graph.deregister(item)
            console.print(f"Item {item.id}: {escape(item.title)} is de-registered")
        store.save()
    except BacklinksError as exc:
        _fail(exc)


@backlog_app.command()
def tick(ctx: typer.Context) -> None:
    """Schedule a backlog drain if unscanned items exist."""
    try:
        graph, _store = _open(ctx)
        notice = graph.backlog_notice()
        if notice is None:
            console.print("[green]No backlog.[/green]")
            return
        console.print(f"[yellow]{notice}[/yellow]")
        scheduled = graph.tick_backlog()
    except BacklinksError as exc:
        _fail(exc)

    if scheduled:
        console.print(f"Drain scheduled in {graph.config.backlog.delay_seconds}s.")
    else:
        console.print("A drain is already scheduled or running.")


@backlog_app.command()
def run(ctx: typer.Context) -> None:
    """Run the backlog drain if its scheduled time has come."""
    try:
        graph, store = _open(ctx)
        reports = graph.run_due_tasks()
        if reports:
            store.save()
    except BacklinksError as exc:
        _fail(exc)

    if not reports:
        console.print("Nothing due.")
        return
    for report in reports:
        _print_report(report.scanned, report.failed, report.remaining)


@backlog_app.command()
def drain(ctx: typer.Context) -> None:
    """Drain one batch of the backlog right now."""
    try:
        graph, store = _open(ctx)
        report = graph.drain_backlog()
        store.save()
    except BacklinksError as exc:
        _fail(exc)

    _print_report(report.scanned, report.failed, report.remaining)


def _print_report(scanned: list[int], failed: dict[int, str], remaining: int) -> None:
    console.print(f"[green]Scanned {len(scanned)} item(s)[/green], {remaining} remaining")
    for item_id, error in failed.items():
        console.print(f"[red]Item {item_id} failed:[/red] {escape(error)}")
