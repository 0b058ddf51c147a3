#!/usr/bin/env python3
"""
CLI for the house price views

Commands:
    ingest           - Store and index records from a JSON / JSON-lines file
    rebuild-indexes  - Recompute view entries from the record store
    index-stats      - Entry counts and overall price stats per view
    report           - Print the postcode view model as JSON

Usage:
    python cli.py ingest data/sales.jsonl
    python cli.py rebuild-indexes --view bytime
    python cli.py index-stats
    python cli.py report "ct20 1lf"
"""

import click
import sys
import json


def get_app():
    """Create the Flask app (database access needs its context)."""
    from app import create_app
    return create_app()


def _read_records(file_path):
    with open(file_path, encoding="utf-8") as fh:
        text = fh.read()
    stripped = text.lstrip()
    if stripped.startswith("["):
        return json.loads(stripped)
    return [json.loads(line) for line in text.splitlines() if line.strip()]


@click.group()
@click.version_option(version="1.0.0", prog_name="houseprices-cli")
def cli():
    """House price views CLI - ingest records, maintain and inspect views."""
    pass


@cli.command("ingest")
@click.argument("file_path", type=click.Path(exists=True))
def ingest(file_path):
    """
    Store and index already-parsed records.

    FILE_PATH: JSON array or JSON-lines file of record objects
    """
    try:
        records = _read_records(file_path)
    except (OSError, ValueError) as e:
        click.secho(f"Error: could not read {file_path}: {e}", fg="red")
        sys.exit(1)

    app = get_app()
    with app.app_context():
        from services.ingest import ingest_records

        service = app.extensions['postcode_service']
        result = ingest_records(records, trend_cache=service.national_cache)

    click.echo(f"Inserted:   {result.inserted}")
    click.echo(f"Duplicates: {result.duplicates}")
    click.echo(click.style("Rejected:   ", fg="white") +
               click.style(str(result.rejected), fg="red" if result.rejected else "green"))
    click.echo(f"Index entries written: {result.index_entries}")


@cli.command("rebuild-indexes")
@click.option("--view", "views", multiple=True,
              type=click.Choice(["bypostcode", "bytime", "bypcdandtime"]),
              help="View to rebuild (repeatable, default: all)")
def rebuild_indexes_command(views):
    """Drop and recompute view entries from the record store."""
    app = get_app()
    with app.app_context():
        from services.index_builder import rebuild_indexes

        counts = rebuild_indexes(list(views) or None)
        app.extensions['postcode_service'].national_cache.invalidate()

    click.secho("REBUILT VIEWS", fg="cyan", bold=True)
    for name, count in counts.items():
        click.echo(f"  {name:<14} {count:>10,} entries")


@cli.command("index-stats")
def index_stats():
    """Entry counts and rereduced price stats for every view."""
    app = get_app()
    with app.app_context():
        from constants import ALL_VIEWS
        from services.view_query import query_view, total_stats

        summaries = {}
        for name in ALL_VIEWS:
            summaries[name] = total_stats(query_view(name, group_level=1))

    for name, stats in summaries.items():
        if stats is None:
            click.echo(f"  {name:<14} (empty)")
            continue
        click.echo(f"  {name:<14} count={stats.count:,} mean={stats.mean:,.0f} "
                   f"min={stats.min:,} max={stats.max:,}")


@cli.command("report")
@click.argument("postcode")
def report(postcode):
    """Print the view model for POSTCODE as JSON."""
    from utils.postcode import PostcodeValidationError, canonicalize_postcode

    try:
        canonical = canonicalize_postcode(postcode)
    except PostcodeValidationError as e:
        click.secho(f"Error: {e}", fg="red")
        sys.exit(1)

    app = get_app()
    with app.app_context():
        from services.postcode_service import PostcodeQueryError

        try:
            result = app.extensions['postcode_service'].build_report(canonical)
        except PostcodeQueryError as e:
            click.secho(f"Error: {e}", fg="red")
            sys.exit(1)

    click.echo(json.dumps(result.model_dump(by_alias=True, mode="json"), indent=2))


if __name__ == "__main__":
    cli()
