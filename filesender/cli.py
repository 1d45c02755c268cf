#!/usr/bin/env python3
"""
File Share Client CLI

Command-line interface for connecting to a file sharing host.

Usage:
    filesender connect               # Stay connected, receive shared files
    filesender files                 # Print the host's file list
    filesender download FILE_ID      # Download one file and exit
    filesender init-config           # Write an example config.json
"""

import asyncio
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional

import click
from rich.console import Console
from rich.table import Table
from rich.progress import (
    Progress, SpinnerColumn, TextColumn, BarColumn, DownloadColumn, TaskID,
)
from rich.panel import Panel
from rich.logging import RichHandler

from .client import FileShareClient
from .config import EXAMPLE_CONFIG, Config, load_config
from .errors import FileSenderError
from .protocol.messages import AuthAccepted, AuthDenied, FileDescriptor, FileShareRequest
from .transfer.receiver import FileReceiveHandle, ReceiveOptions, ReceivePhase
from .transport import WebSocketTransport

console = Console()


def setup_logging(verbose: bool = False, level: str = 'INFO'):
    """Configure logging with rich output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


def build_client(config: Config) -> FileShareClient:
    """Create a client and its transport from configuration."""
    client = FileShareClient(
        name=config.client_name,
        client_version=config.client_version,
        legacy_class_names=config.legacy_class_names,
        write_queue_size=config.write_queue_size,
        stall_timeout=config.stall_timeout,
    )
    WebSocketTransport(
        config.server_url,
        client,
        open_timeout=config.open_timeout,
        max_message_size=config.max_message_size,
    )
    return client


def login_panel(message: AuthAccepted) -> Panel:
    info = message.server_info
    return Panel.fit(
        f"[bold green]Logged In[/bold green]\n\n"
        f"Server: [cyan]{info.server_name}[/cyan] [dim]{info.server_version}[/dim]\n"
        f"Client: [yellow]{message.client_name}[/yellow]\n"
        f"Client ID: [yellow]{message.received_client_id}[/yellow]",
        title="Session"
    )


def denied_message(message: AuthDenied) -> str:
    return f"[red]✗ Login denied ({message.code}): {message.message}[/red]"


def catalog_table(files: Mapping[int, FileDescriptor]) -> Table:
    table = Table(title="Available Files")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Size", justify="right", style="yellow")
    table.add_column("Chunks", justify="right")

    for file_id, f in sorted(files.items()):
        table.add_row(str(file_id), f.file_name, format_size(f.file_size), str(f.chunk_count))

    return table


class ProgressReporter:
    """Shows one rich progress bar per transfer."""

    def __init__(self, progress: Progress):
        self.progress = progress
        self._tasks: Dict[int, TaskID] = {}

    def options(self, destination: Path) -> ReceiveOptions:
        return ReceiveOptions(
            destination=destination,
            on_start=self.started,
            on_progress=self.advanced,
            on_completed=self.completed,
            on_failed=self.failed,
        )

    def started(self, handle: FileReceiveHandle):
        self._tasks[handle.handle_id] = self.progress.add_task(
            handle.file_name, total=handle.file_size
        )

    def advanced(self, handle: FileReceiveHandle):
        task = self._tasks.get(handle.handle_id)
        if task is not None:
            self.progress.update(task, completed=handle.bytes_received)

    def completed(self, handle: FileReceiveHandle):
        task = self._tasks.pop(handle.handle_id, None)
        if task is not None:
            self.progress.update(task, completed=handle.file_size)
        console.print(f"[green]✓ Downloaded to: {handle.path}[/green]")

    def failed(self, handle: FileReceiveHandle, error: Exception):
        task = self._tasks.pop(handle.handle_id, None)
        if task is not None:
            self.progress.remove_task(task)
        console.print(f"[red]✗ {error}[/red]")


def transfer_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        console=console,
    )


async def run_session(client: FileShareClient):
    """Run the client's transport until the connection closes."""
    await client.transport.run()


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(path_type=Path),
              help='JSON config file')
@click.option('--server', help='Host URL (ws://host:port)')
@click.option('--name', help='Client display name')
@click.option('--download-dir', type=click.Path(path_type=Path), help='Where to save files')
@click.pass_context
def cli(ctx, verbose, config_path, server, name, download_dir):
    """File Share Client - receive files from a sharing host."""
    config = load_config(config_path)
    if server:
        config.server_url = server
    if name:
        config.client_name = name
    if download_dir:
        config.download_dir = download_dir

    setup_logging(verbose, config.log_level)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.option('--auto-accept/--deny-all', default=None,
              help='Accept or deny incoming share requests')
@click.option('--api/--no-api', 'with_api', default=False, help='Run the local REST API')
@click.option('--api-port', type=int, help='REST API port')
@click.pass_context
def connect(ctx, auto_accept, with_api, api_port):
    """Stay connected and receive shared files."""
    config: Config = ctx.obj['config']
    if auto_accept is None:
        auto_accept = config.auto_accept
    if api_port:
        config.api_port = api_port

    async def run():
        client = build_client(config)

        with transfer_progress() as progress:
            reporter = ProgressReporter(progress)

            def on_login(message: AuthAccepted):
                console.print(login_panel(message))
                client.request_file_list_update()

            def review(request: FileShareRequest):
                if auto_accept:
                    client.respond_to_share_request(
                        request, True, reporter.options(config.download_dir)
                    )
                else:
                    console.print(f"[yellow]Denied {request.file_name}[/yellow]")
                    client.respond_to_share_request(request, False)

            client.on_login(on_login)
            client.on_login_failed(lambda m: console.print(denied_message(m)))
            client.on_file_list_update(lambda files: console.print(catalog_table(files)))
            client.on_share_request(review)

            tasks = [asyncio.create_task(run_session(client))]
            if with_api:
                from .api import run_api_server
                console.print(f"\n[dim]REST API available at "
                              f"http://{config.api_host}:{config.api_port}[/dim]\n")
                tasks.append(asyncio.create_task(
                    run_api_server(client, host=config.api_host, port=config.api_port)
                ))

            try:
                done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
                for task in pending:
                    task.cancel()
                for task in done:
                    task.result()
            finally:
                client.close()

    _run_or_exit(run())


@cli.command('files')
@click.pass_context
def list_files(ctx):
    """Print the host's file list."""
    config: Config = ctx.obj['config']

    async def run() -> bool:
        client = build_client(config)
        received = {}

        def on_update(files):
            received['files'] = files
            client.close()

        client.on_login(lambda m: client.request_file_list_update())
        client.on_login_failed(lambda m: console.print(denied_message(m)))
        client.on_file_list_update(on_update)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Fetching file list...", total=None)
            await run_session(client)

        if 'files' not in received:
            return False
        if not received['files']:
            console.print("[yellow]No files available[/yellow]")
        else:
            console.print(catalog_table(received['files']))
        return True

    if not _run_or_exit(run()):
        ctx.exit(1)


@cli.command()
@click.argument('file_id', type=int)
@click.pass_context
def download(ctx, file_id):
    """Download one file from the host."""
    config: Config = ctx.obj['config']

    async def run() -> bool:
        client = build_client(config)
        result: Dict[str, Optional[FileReceiveHandle]] = {'handle': None}

        with transfer_progress() as progress:
            reporter = ProgressReporter(progress)

            def finished(handle: FileReceiveHandle, error: Optional[Exception] = None):
                if error is None:
                    reporter.completed(handle)
                else:
                    reporter.failed(handle, error)
                client.close()

            def review(request: FileShareRequest):
                wanted = request.file_id in (None, file_id) and result['handle'] is None
                if not wanted:
                    client.respond_to_share_request(request, False)
                    return
                options = reporter.options(config.download_dir)
                options.on_completed = finished
                options.on_failed = finished
                result['handle'] = client.respond_to_share_request(request, True, options)

            def on_login(message: AuthAccepted):
                console.print(login_panel(message))
                client.download_file(file_id)

            client.on_login(on_login)
            client.on_login_failed(lambda m: console.print(denied_message(m)))
            client.on_share_request(review)

            await run_session(client)

        handle = result['handle']
        if handle is None:
            console.print(f"\n[red]✗ Host never sent file {file_id}[/red]")
            return False
        return handle.phase is ReceivePhase.COMPLETED

    if not _run_or_exit(run()):
        ctx.exit(1)


@cli.command('init-config')
@click.argument('path', type=click.Path(path_type=Path), default=Path('config.json'))
@click.option('--force', is_flag=True, help='Overwrite an existing file')
def init_config(path, force):
    """Write an example config file."""
    if path.exists() and not force:
        console.print(f"[red]✗ {path} already exists (use --force)[/red]")
        raise SystemExit(1)
    path.write_text(EXAMPLE_CONFIG.lstrip())
    console.print(f"[green]✓ Wrote {path}[/green]")


def _run_or_exit(coro):
    """Run a command coroutine, turning protocol failures into exit code 1."""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise SystemExit(130)
    except FileSenderError as e:
        console.print(f"\n[red]✗ {e}[/red]")
        raise SystemExit(1)


def format_size(bytes_count: int) -> str:
    """Format bytes as human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024
    return f"{bytes_count:.1f} PB"


if __name__ == '__main__':
    cli()
