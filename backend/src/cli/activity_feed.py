"""Terminal client for the live product activity feed."""

import time

import typer
from rich.console import Console
from rich.live import Live

from backend.src.core.config import settings
from backend.src.core.logging import setup_console_logging
from backend.src.core.realtime import ProductLogStream
from backend.src.services.activity_feed import ActivityFeed, render_feed

console = Console()


def watch(
    limit: int = typer.Option(
        settings.ACTIVITY_FEED_LIMIT, "--limit", "-l", min=1, help="Maximum number of entries to show"
    ),
    path: str = typer.Option(
        settings.PRODUCT_LOG_PATH, "--path", "-p", help="Realtime Database path of the event stream"
    ),
    refresh: float = typer.Option(
        1.0, "--refresh", "-r", min=0.1, help="Seconds between screen refreshes"
    ),
) -> None:
    """Show the most recent product activity until interrupted."""
    if not settings.firebase_configured:
        console.print("[red]❌ Firebase credentials are not configured[/red]")
        raise typer.Exit(code=1)

    setup_console_logging(console)
    feed = ActivityFeed(ProductLogStream(path), limit=limit)
    feed.start()

    console.print("[dim]Press Ctrl+C to stop[/dim]")
    try:
        with Live(render_feed(feed), console=console, refresh_per_second=4) as live:
            while True:
                time.sleep(refresh)
                live.update(render_feed(feed))
    except KeyboardInterrupt:
        console.print("\n[yellow]Feed stopped by user[/yellow]")
    finally:
        feed.close()

