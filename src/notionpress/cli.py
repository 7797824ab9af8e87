"""``notionpress`` command line.

Connection settings come from options or the environment
(``NOTION_TOKEN``, ``WP_BASE_URL``, ``WP_USERNAME``, ``WP_APP_PASSWORD``,
``NOTIONPRESS_DATABASE_URL``).
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any

import click

from notionpress.client import SyncClient
from notionpress.config import NotionpressConfig
from notionpress.errors import NotionpressError
from notionpress.models import SyncStatus
from notionpress.observability import set_level


def _client(ctx: click.Context) -> SyncClient:
    """Build the client on first use so ``--help`` never touches the network."""
    state = ctx.ensure_object(dict)
    client = state.get("client")
    if client is None:
        try:
            config = NotionpressConfig.from_env(**state.get("overrides", {}))
        except ValueError as exc:
            raise click.UsageError(str(exc)) from exc
        client = SyncClient(config)
        ctx.call_on_close(client.close)
        state["client"] = client
    return client


def _handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except NotionpressError as exc:
            raise click.ClickException(f"[{exc.code}] {exc.message}") from exc

    return wrapper


@click.group()
@click.option("--notion-token", envvar="NOTION_TOKEN", help="Notion integration token")
@click.option("--wp-url", envvar="WP_BASE_URL", help="WordPress site URL")
@click.option("--wp-user", envvar="WP_USERNAME", help="WordPress user name")
@click.option("--wp-password", envvar="WP_APP_PASSWORD", help="WordPress application password")
@click.option("--database-url", envvar="NOTIONPRESS_DATABASE_URL", help="SQLAlchemy URL of the mapping store")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug output")
@click.pass_context
def cli(ctx, notion_token, wp_url, wp_user, wp_password, database_url, verbose):
    """Mirror Notion pages into WordPress posts."""
    state = ctx.ensure_object(dict)
    state["overrides"] = {
        "token": notion_token,
        "wp_base_url": wp_url,
        "wp_username": wp_user,
        "wp_app_password": wp_password,
        "database_url": database_url,
    }
    if verbose:
        set_level("DEBUG")


@cli.command(name="pages")
@click.option("--mark-stale", is_flag=True, default=False, help="Flag changed pages as needs_update")
@click.pass_context
@_handle_errors
def pages(ctx, mark_stale):
    """List the pages the integration can see."""
    listed = _client(ctx).list_pages(mark_stale=mark_stale)
    if not listed:
        click.echo("No pages found.")
        return
    for page in listed:
        marker = "*" if page.needs_sync else " "
        modified = page.modified_at.isoformat() if page.modified_at else "-"
        click.echo(f"{marker} {page.id}  {modified}  {page.title}")
    click.echo(f"{len(listed)} page(s); * = needs sync")


@cli.command(name="sync")
@click.argument("page_id")
@click.option("--force", is_flag=True, default=False, help="Sync even if the page is unchanged")
@click.pass_context
@_handle_errors
def sync(ctx, page_id, force):
    """Sync one page."""
    result = _client(ctx).sync_one(page_id, force=force)
    for warning in result.warnings:
        click.echo(f"warning: [{warning.code}] {warning.message}", err=True)
    if not result.success:
        click.echo(f"{result.outcome.value}: {result.error}", err=True)
        ctx.exit(1)
    verb = "created" if result.created else result.outcome.value
    click.echo(f"{result.source_id} -> post {result.target_id} ({verb})")


@cli.command(name="batch")
@click.argument("page_ids", nargs=-1, required=True)
@click.option("--force", is_flag=True, default=False, help="Sync even unchanged pages")
@click.option("--chunk-size", type=click.INT, default=None, help="Pages per chunk")
@click.option("--poll-interval", type=click.FLOAT, default=1.0, show_default=True)
@click.pass_context
@_handle_errors
def batch(ctx, page_ids, force, chunk_size, poll_interval):
    """Sync several pages in the background and follow progress."""
    client = _client(ctx)
    batch_id = client.start_batch(list(page_ids), force=force, chunk_size=chunk_size)
    click.echo(f"Started {batch_id}")
    try:
        while True:
            progress = client.progress(batch_id)
            click.echo(
                f"{progress.status.value}: {progress.processed}/{progress.total} "
                f"({progress.completed} ok, {progress.failed} failed)"
            )
            if progress.status.is_terminal:
                break
            time.sleep(poll_interval)
    except KeyboardInterrupt:
        client.cancel(batch_id)
        progress = client.wait(batch_id)
        click.echo(f"{progress.status.value}: {progress.processed}/{progress.total}")

    for source_id, result in progress.results.items():
        if not result.success:
            click.echo(f"failed {source_id}: {result.error}", err=True)
    if progress.failed:
        ctx.exit(1)


@cli.command(name="status")
@click.option(
    "--status", "status_filter",
    type=click.Choice([s.value for s in SyncStatus]),
    default=None,
    help="Only show mappings in this state",
)
@click.option("--page", type=click.INT, default=1, show_default=True)
@click.option("--page-size", type=click.INT, default=50, show_default=True)
@click.pass_context
@_handle_errors
def status(ctx, status_filter, page, page_size):
    """Show the mapping table."""
    client = _client(ctx)
    selected = SyncStatus(status_filter) if status_filter else None
    try:
        rows = client.mappings(status=selected, page=page, page_size=page_size)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    for row in rows:
        target = row.target_id or "-"
        line = f"{row.source_id}  {row.status.value:<13} post {target:<8} {row.source_title}"
        if row.last_error:
            line += f"  ({row.last_error})"
        click.echo(line)
    counts = client.status_counts()
    click.echo(", ".join(f"{s.value}={n}" for s, n in counts.items()))


@cli.command(name="unmap")
@click.argument("page_id")
@click.pass_context
@_handle_errors
def unmap(ctx, page_id):
    """Forget the post mapped to a page.  The post is not deleted."""
    if _client(ctx).unmap(page_id):
        click.echo(f"Unmapped {page_id}")
    else:
        click.echo(f"No mapping for {page_id}", err=True)
        ctx.exit(1)


def main() -> None:
    cli()
