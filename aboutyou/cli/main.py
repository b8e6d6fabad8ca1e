import asyncio
import json
import shutil
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
from pydantic import ValidationError

from aboutyou.core.config import AppConfig, load_config
from aboutyou.core.logging_config import setup_logging
from aboutyou.core.observability import ObservabilityLogger
from aboutyou.orchestrator.runner import ScanRunner, ScanSummary
from aboutyou.storage.graph import GraphStore, GraphStoreError
from aboutyou.storage.queries import GraphQueryService


def _config(ctx: click.Context, overrides: Optional[Dict[str, Any]] = None) -> AppConfig:
    """Load configuration for a command and set up logging from it."""
    try:
        config = load_config(ctx.obj.get("config_path"), cli_overrides=overrides)
    except FileNotFoundError as e:
        raise click.ClickException(str(e))
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration:\n{e}")

    setup_logging(config.log_level, verbose=ctx.obj.get("verbose", False))
    return config


@click.group()
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Config file (defaults to ~/.aboutyou/config.yaml)",
)
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """aboutyou CLI.

    Scan your files into a personal knowledge graph and serve it over MCP.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


# ---- scan command ----


async def _run_scan(config: AppConfig, dry_run: bool) -> ScanSummary:
    audit = ObservabilityLogger(config.storage.logs_db)
    if dry_run:
        return await ScanRunner(config, None, logger=audit).scan(dry_run=True)

    store = GraphStore(config.neo4j)
    await store.connect()
    try:
        return await ScanRunner(config, store, logger=audit).scan()
    finally:
        await store.close()


@cli.command("scan")
@click.argument("directories", nargs=-1)
@click.option("--dry-run", is_flag=True, help="Only list the directories that would be scanned")
@click.pass_context
def scan(ctx: click.Context, directories: Tuple[str, ...], dry_run: bool) -> None:
    """Let the agent explore DIRECTORIES (default: configured ones) and update the graph."""
    overrides = {"scan": {"directories": list(directories)}} if directories else None
    config = _config(ctx, overrides)

    try:
        summary = asyncio.run(_run_scan(config, dry_run))
    except GraphStoreError as e:
        raise click.ClickException(f"Neo4j unavailable: {e}")

    if not summary.directories:
        raise click.ClickException("No valid directories to scan")

    if dry_run:
        click.echo("Would scan these directories:")
        for directory in summary.directories:
            click.echo(f"  {directory}")
        return

    click.echo("\nScan complete!")
    click.echo(f"  Entities:      {summary.total_entities}")
    click.echo(f"  Relationships: {summary.total_relationships}")
    click.echo(f"  Memories:      {summary.total_memories}")

    for report in summary.partial:
        click.echo(f"  Partial: {report.directory} ({report.cause})")
    for report in summary.failed:
        click.echo(f"  Failed:  {report.directory} ({report.cause})")
    for report in summary.reports:
        if report.index_error:
            click.echo(f"  Not indexed: {report.directory} ({report.index_error})")


# ---- status command ----


async def _graph_stats(config: AppConfig) -> Dict[str, Any]:
    store = GraphStore(config.neo4j)
    try:
        await store.connect()
        return await GraphQueryService(store).get_stats()
    finally:
        await store.close()


@cli.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show graph contents and the last scan."""
    config = _config(ctx)

    click.echo("\n=== About You - Status ===\n")

    audit = ObservabilityLogger(config.storage.logs_db) if config.storage.logs_db.exists() else None
    last_session = audit.get_last_session() if audit else None
    if last_session is None:
        click.echo("Last scan:      never")
    else:
        summary = audit.get_session_summary(last_session)
        totals = summary["totals"] or {}
        click.echo(f"Last scan:      {summary['completed_at']} ({last_session})")
        click.echo(f"  Directories:  {totals.get('directories', 0)}")
        click.echo(f"  Entities:     {totals.get('entities', 0)}")
        click.echo(f"  Memories:     {totals.get('memories', 0)}")
        click.echo(f"  Errors:       {summary['error_count']}")

    try:
        stats = asyncio.run(_graph_stats(config))
    except GraphStoreError:
        click.echo("\nGraph DB: not available")
        return

    click.echo("\nGraph DB:")
    for label, count in stats["labels"].items():
        click.echo(f"  {label}: {count}")
    click.echo(f"  Total relationships: {stats['relationships']}")


# ---- reset command ----


async def _clear_graph(config: AppConfig) -> None:
    store = GraphStore(config.neo4j)
    try:
        await store.connect()
        await store.clear_all()
    finally:
        await store.close()


@cli.command("reset")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def reset(ctx: click.Context, yes: bool) -> None:
    """Delete ALL stored data (graph and local state)."""
    config = _config(ctx)

    if not yes and not click.confirm("This will delete ALL stored data (graph and scan logs). Continue?"):
        click.echo("Aborted")
        return

    try:
        asyncio.run(_clear_graph(config))
        click.echo("Cleared Neo4j graph")
    except GraphStoreError as e:
        click.echo(f"Could not clear Neo4j: {e}", err=True)

    data_dir = config.storage.data_dir
    if data_dir.exists():
        shutil.rmtree(data_dir)
        click.echo(f"Removed {data_dir}")

    click.echo("Reset complete")


# ---- serve command ----


@cli.command("serve")
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the MCP server on stdio."""
    from aboutyou.mcp.server import run_server

    config = _config(ctx)
    asyncio.run(run_server(config))


# ---- log command ----


@cli.command("log")
@click.option("--session", default=None, help="Session ID (defaults to the last completed scan)")
@click.pass_context
def log_summary(ctx: click.Context, session: Optional[str]) -> None:
    """Print the audit summary of a scan as JSON."""
    config = _config(ctx)
    if not config.storage.logs_db.exists():
        raise click.ClickException("No scans logged yet")

    logger = ObservabilityLogger(config.storage.logs_db)
    session = session or logger.get_last_session()
    if session is None:
        raise click.ClickException("No completed scans logged yet")
    click.echo(json.dumps(logger.get_session_summary(session), indent=2))


if __name__ == "__main__":
    cli()
