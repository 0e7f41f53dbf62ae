"""
CLI for the Walrus SDK.

Commands:
    walrus upload FILE - Upload a file through the publisher
    walrus download BLOB_ID - Download a blob through the aggregator
    walrus metadata BLOB_ID - Show blob response headers
    walrus config - Show current configuration
    walrus version - Print version
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any, Awaitable, Callable, Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from walrus_sdk import __version__
from walrus_sdk.client import WalrusClient, write_bytes_atomically
from walrus_sdk.config import Settings, clear_settings_cache, get_settings
from walrus_sdk.exceptions import ConfigurationError, WalrusError
from walrus_sdk.logging import setup_logging
from walrus_sdk.retry import retrying
from walrus_sdk.types import UploadResult

T = TypeVar("T")

app = typer.Typer(
    name="walrus",
    help="Walrus - upload and download blobs on Walrus decentralized storage",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

RetriesOption = Annotated[
    int,
    typer.Option("--retries", help="Total attempts for transient failures (1 = no retry)", min=1),
]


def _load_settings() -> Settings:
    """Load settings, converting validation failures to ConfigurationError."""
    clear_settings_cache()
    try:
        return get_settings()
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            "Configuration is invalid or incomplete",
            context="settings",
            extra={"fields": missing},
        ) from e


async def _call_with_retries(
    attempts: int,
    operation: Callable[[WalrusClient], Awaitable[T]],
    settings: Settings,
) -> T:
    async with WalrusClient.from_settings(settings) as client:
        async for attempt in retrying(attempts=attempts):
            with attempt:
                return await operation(client)
    raise RuntimeError("retry loop exited without a result")


def _run(attempts: int, operation: Callable[[WalrusClient], Awaitable[T]]) -> T:
    """Load settings, run one client operation and map SDK errors to exit 1."""
    try:
        settings = _load_settings()
    except ConfigurationError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        error_console.print("Run 'walrus config' to see what's missing.")
        raise typer.Exit(1) from e

    setup_logging(log_level=settings.LOG_LEVEL)

    try:
        return asyncio.run(_call_with_retries(attempts, operation, settings))
    except WalrusError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except FileNotFoundError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


@app.command()
def upload(
    file: Annotated[Path, typer.Argument(help="File to upload")],
    epochs: Annotated[
        Optional[int],
        typer.Option("--epochs", "-e", help="Number of storage epochs"),
    ] = None,
    deletable: Annotated[
        Optional[bool],
        typer.Option("--deletable/--permanent", help="Store as deletable or permanent"),
    ] = None,
    send_object_to: Annotated[
        Optional[str],
        typer.Option("--send-object-to", help="Address to receive the blob object"),
    ] = None,
    stream: Annotated[
        bool,
        typer.Option("--stream", "-s", help="Stream the file instead of reading it into memory"),
    ] = False,
    retries: RetriesOption = 1,
) -> None:
    """Upload a file and print the resulting blob ID."""

    async def operation(client: WalrusClient) -> dict[str, Any]:
        put = client.put_blob_streaming if stream else client.put_blob_from_file
        return await put(
            file,
            epochs=epochs,
            deletable=deletable,
            send_object_to=send_object_to,
        )

    response = _run(retries, operation)
    result = UploadResult.from_response(response)

    if result.blob_id:
        console.print(
            Panel(
                f"[bold]Blob ID:[/bold] {result.blob_id}\n"
                f"[bold]Newly created:[/bold] {result.newly_created}",
                title="Upload complete",
                border_style="green",
            )
        )
    else:
        console.print("[yellow]Upload succeeded but no blobId was returned:[/yellow]")
        console.print_json(json.dumps(response))


@app.command()
def download(
    blob_id: Annotated[str, typer.Argument(help="Blob ID (or object ID with --object-id)")],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Destination file (default: ./<blob_id>)"),
    ] = None,
    object_id: Annotated[
        bool,
        typer.Option("--object-id", help="Treat the identifier as a Sui object ID"),
    ] = False,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Bypass the local blob cache"),
    ] = False,
    retries: RetriesOption = 1,
) -> None:
    """Download a blob to a file."""
    destination = output if output is not None else Path(blob_id)

    async def operation(client: WalrusClient) -> int:
        if object_id or no_cache:
            data = await client.download(blob_id, use_cache=False)
            await write_bytes_atomically(destination, data)
            return len(data)
        await client.get_blob_as_file(blob_id, destination)
        return destination.stat().st_size

    size = _run(retries, operation)
    console.print(f"[green]Saved[/green] {size} bytes to {destination}")


@app.command()
def metadata(
    blob_id: Annotated[str, typer.Argument(help="Blob ID")],
    retries: RetriesOption = 1,
) -> None:
    """Show the aggregator's response headers for a blob."""

    async def operation(client: WalrusClient) -> dict[str, str]:
        return await client.get_blob_metadata(blob_id)

    headers = _run(retries, operation)

    table = Table(title=f"Metadata for {blob_id}", show_header=True)
    table.add_column("Header", style="cyan")
    table.add_column("Value")
    for name, value in sorted(headers.items()):
        table.add_row(name, value)
    console.print(table)


@app.command()
def config() -> None:
    """Show current configuration with the JWT redacted."""
    try:
        settings = _load_settings()
    except ConfigurationError as e:
        error_console.print("[red]Configuration is invalid or incomplete.[/red]")
        error_console.print(f"Problem fields: {', '.join(e.extra.get('fields', []))}")
        error_console.print()
        error_console.print("Required environment variables:")
        error_console.print("  - WALRUS_PUBLISHER_URL")
        error_console.print("  - WALRUS_AGGREGATOR_URL")
        error_console.print()
        error_console.print("Create a .env file or set environment variables.")
        raise typer.Exit(1) from e

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in settings.redacted_display().items():
        table.add_row(key, "[dim]not set[/dim]" if value is None else str(value))
    console.print(table)


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"walrus-sdk version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
