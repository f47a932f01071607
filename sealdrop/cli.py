"""
SealDrop CLI Tool

Command-line interface for running the server and storing or retrieving
encrypted payloads.

Usage:
    sealdrop serve           - Start the API server
    sealdrop put FILE        - Store a payload (use - for stdin)
    sealdrop get ID          - Fetch a payload
    sealdrop usage           - Show this address's quota usage
    sealdrop purge           - Delete expired entries from the database
"""
import asyncio
import os
import sys

import click
import httpx
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sealdrop import __version__

# Load environment variables
load_dotenv()

console = Console(stderr=True)

API_BASE = os.getenv("SEALDROP_API_URL", "http://localhost:3000")


def _error_message(response: httpx.Response) -> str:
    """Extract the error body the API returns, falling back to the status."""
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    return f"{data.get('error', response.status_code)}: {data.get('detail') or ''}".rstrip(": ")


def _request(method: str, path: str, **kwargs) -> dict:
    """Call the API and exit with a readable error on failure."""
    try:
        response = httpx.request(method, f"{API_BASE}{path}", timeout=30.0, **kwargs)
    except httpx.HTTPError as e:
        console.print(f"[red]✗ Could not reach {API_BASE}: {e}[/red]")
        sys.exit(1)

    if response.is_error:
        console.print(f"[red]✗ {_error_message(response)}[/red]")
        sys.exit(1)

    return response.json()


@click.group()
@click.version_option(version=__version__, prog_name="SealDrop")
def main():
    """
    SealDrop - ephemeral storage for client-encrypted payloads.
    """
    pass


@main.command()
@click.option("--host", default=None, help="Bind address (default: HOST setting)")
@click.option("--port", default=None, type=int, help="Port (default: PORT setting)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """
    Start the SealDrop API server.

    Example:
        sealdrop serve --port 3000
    """
    import uvicorn

    from sealdrop.config import get_settings

    settings = get_settings()
    host = host or settings.HOST
    port = port or settings.PORT

    console.print(Panel(
        f"[bold green]Starting SealDrop v{__version__}[/bold green]\n\n"
        f"API: [cyan]http://{host}:{port}/api/v1/entries[/cyan]\n\n"
        f"[dim]Press Ctrl+C to stop[/dim]",
        border_style="green"
    ))

    uvicorn.run("sealdrop.main:app", host=host, port=port, reload=reload)


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
def put(source):
    """
    Store an already-encrypted payload read from SOURCE.

    Example:
        sealdrop put secret.enc
        openssl enc -aes-256-cbc -a -in notes.txt | sealdrop put -
    """
    payload = source.read()
    data = _request("POST", "/api/v1/entries", json={"payload": payload})

    console.print(f"[green]✓[/green] Stored {data['sizeBytes']} bytes")
    click.echo(data["id"])


@main.command()
@click.argument("entry_id")
@click.option("-o", "--output", type=click.File("w", encoding="utf-8"), default=None,
              help="Write the payload to a file instead of stdout")
def get(entry_id: str, output):
    """
    Fetch a stored payload by ID.

    Example:
        sealdrop get 9f3b1c2d4e5f60718293a4b5 -o secret.enc
    """
    data = _request("GET", f"/api/v1/entries/{entry_id}")

    if output is not None:
        output.write(data["payload"])
        console.print(f"[green]✓[/green] Written to {output.name}")
    else:
        click.echo(data["payload"], nl=False)


@main.command()
def usage():
    """
    Show how much of the quota window this address has used.

    Example:
        sealdrop usage
    """
    data = _request("GET", "/api/v1/usage")

    table = Table(title="Quota usage", show_header=True, header_style="bold cyan")
    table.add_column("Entries", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Bytes", justify="right")
    table.add_column("Window", justify="right")
    table.add_row(
        str(data["count"]),
        str(data["maxCount"]),
        str(data["totalBytes"]),
        f"{data['windowSeconds'] // 60} min",
    )

    Console().print(table)


async def _purge() -> int:
    from sealdrop.config import get_settings
    from sealdrop.database import close_db, get_session_factory, init_db
    from sealdrop.storage import BlobStore

    settings = get_settings()
    try:
        await init_db()
        store = BlobStore(get_session_factory(), settings.storage_config())
        return await store.purge_expired()
    finally:
        await close_db()


@main.command()
def purge():
    """
    Delete expired entries directly from DATABASE_URL.

    Safe to run from cron; expired entries are already unreadable, this
    only reclaims their space.

    Example:
        sealdrop purge
    """
    from sqlalchemy.exc import SQLAlchemyError

    from sealdrop.errors import StorageUnavailable

    try:
        deleted = asyncio.run(_purge())
    except (StorageUnavailable, SQLAlchemyError, OSError) as e:
        console.print(f"[red]✗ Purge failed: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓[/green] Purged {deleted} expired entries")


if __name__ == "__main__":
    main()
