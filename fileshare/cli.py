#!/usr/bin/env python3
"""
File Share CLI

Command-line interface for the file server and client.

Usage:
    fileshare serve                      # Start the server
    fileshare ls HOST                    # List files on a server
    fileshare get HOST NAME              # Download a file
    fileshare put HOST PATH              # Upload a file
    fileshare hash-password              # Make a salted credential record
    fileshare init-config config.json    # Write an example config file
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, DownloadColumn
from rich.panel import Panel
from rich.logging import RichHandler

from .config import EXAMPLE_CONFIG, Config, load_config
from .client import FileClient
from .errors import FileShareError
from .server import FileServer
from .storage.credentials import hash_password

console = Console()


def setup_logging(level: str = 'INFO', verbose: bool = False):
    """Configure logging with rich output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False, path_type=Path),
              default=None, help='JSON config file')
@click.pass_context
def cli(ctx, verbose, config_path):
    """File Share - authenticated TCP file listing, upload and download."""
    try:
        config = load_config(config_path)
    except FileShareError as e:
        raise click.ClickException(str(e))
    setup_logging(config.log_level, verbose)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.option('--host', default=None, help='Listen address')
@click.option('--port', type=int, default=None, help='Listen port')
@click.option('--root', type=click.Path(file_okay=False, path_type=Path), default=None,
              help='Listing root')
@click.option('--upload-root', type=click.Path(file_okay=False, path_type=Path), default=None,
              help='Upload root')
@click.option('--users', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Credential file')
@click.option('--max-sessions', type=int, default=None,
              help='Concurrent sessions (1 = one at a time)')
@click.pass_context
def serve(ctx, host, port, root, upload_root, users, max_sessions):
    """Start the file server."""
    config: Config = ctx.obj['config']
    if host is not None:
        config.host = host
    if port is not None:
        config.port = port
    if root is not None:
        config.root_dir = root
    if upload_root is not None:
        config.upload_dir = upload_root
    if users is not None:
        config.users_file = users
    if max_sessions is not None:
        config.max_sessions = max_sessions

    async def run():
        server = FileServer(config)

        try:
            await server.start()

            host, port = server.address
            console.print(Panel.fit(
                f"[bold green]File Server Started[/bold green]\n\n"
                f"Address: [yellow]{host}:{port}[/yellow]\n"
                f"Listing Root: [blue]{config.root_dir}[/blue]\n"
                f"Upload Root: [blue]{config.upload_dir}[/blue]\n"
                f"Credentials: [blue]{config.users_file}[/blue]\n"
                f"Max Sessions: [yellow]{config.max_sessions}[/yellow]",
                title="Server Info"
            ))
            console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

            await server.serve_forever()
        finally:
            await server.stop()
            console.print("[green]Server stopped[/green]")

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")
    except (FileShareError, ValueError, OSError) as e:
        raise click.ClickException(str(e))


def client_options(func):
    """Connection and login options shared by the client commands."""
    func = click.option('--password', prompt=True, hide_input=True,
                        envvar='FILESHARE_PASSWORD', help='Password')(func)
    func = click.option('--user', '-u', prompt=True, envvar='FILESHARE_USER',
                        help='User name')(func)
    func = click.option('--port', '-p', type=int, default=None, help='Server port')(func)
    func = click.argument('host')(func)
    return func


async def open_client(config: Config, host: str, port: Optional[int],
                      user: str, password: str) -> FileClient:
    client = await FileClient.connect(
        host, port or config.port,
        transform_key=config.transform_key,
        max_frame_length=config.max_frame_length,
    )
    await client.login(user, password)
    return client


def run_client(coro):
    """Run a client coroutine, turning protocol failures into exit code 1."""
    try:
        asyncio.run(coro)
    except FileShareError as e:
        console.print(f"[red]✗ {e}[/red]")
        sys.exit(1)


def transfer_progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        console=console,
    )


@cli.command('ls')
@client_options
@click.pass_context
def list_files(ctx, host, port, user, password):
    """List files on a server."""
    config = ctx.obj['config']

    async def run():
        client = await open_client(config, host, port, user, password)
        async with client:
            names = await client.list_files()
            await client.quit()

        if not names:
            console.print("[yellow]No files on server[/yellow]")
            return

        table = Table(title=f"Files on {host}")
        table.add_column("Name", style="cyan")
        for name in names:
            table.add_row(name)
        console.print(table)

    run_client(run())


@cli.command()
@client_options
@click.argument('name')
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path),
              help='Output path')
@click.pass_context
def get(ctx, host, port, user, password, name, output):
    """Download a file from a server."""
    config = ctx.obj['config']
    output_path = output or Path(name)

    async def run():
        client = await open_client(config, host, port, user, password)
        async with client:
            with transfer_progress() as progress:
                task = progress.add_task(f"Downloading {name}", total=None)

                def update_progress(d):
                    progress.update(task, total=d.total_size, completed=d.bytes_moved)

                result = await client.download(name, output_path, update_progress)
                progress.update(task, total=result.total_size, completed=result.total_size)
            await client.quit()

        console.print(f"\n[green]✓ Downloaded {format_size(result.total_size)} to: {output_path}[/green]")

    run_client(run())


@cli.command()
@client_options
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--name', '-n', default=None, help='Remote name (default: file name)')
@click.pass_context
def put(ctx, host, port, user, password, file_path, name):
    """Upload a file to a server."""
    config = ctx.obj['config']

    async def run():
        client = await open_client(config, host, port, user, password)
        async with client:
            with transfer_progress() as progress:
                task = progress.add_task(f"Uploading {file_path.name}", total=None)

                def update_progress(d):
                    progress.update(task, total=d.total_size, completed=d.bytes_moved)

                result = await client.upload(file_path, name, update_progress)
                progress.update(task, total=result.total_size, completed=result.total_size)
            await client.quit()

        console.print(f"\n[green]✓ Uploaded {format_size(result.total_size)} as: {name or file_path.name}[/green]")

    run_client(run())


@cli.command('hash-password')
@click.option('--user', '-u', prompt=True, help='User name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True,
              help='Password')
def hash_password_cmd(user, password):
    """Print a salted credential record for the users file."""
    click.echo(f"{user}:{hash_password(password)}")


@cli.command('init-config')
@click.argument('path', required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option('--force', is_flag=True, help='Overwrite an existing file')
def init_config(path, force):
    """Write an example JSON config file (stdout when no PATH)."""
    if path is None:
        click.echo(EXAMPLE_CONFIG.strip())
        return
    if path.exists() and not force:
        raise click.ClickException(f"{path} already exists (use --force to overwrite)")
    path.write_text(EXAMPLE_CONFIG.lstrip())
    console.print(f"[green]✓ Wrote example config to: {path}[/green]")


def format_size(bytes_count: int) -> str:
    """Format bytes as human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024
    return f"{bytes_count:.1f} PB"


if __name__ == '__main__':
    cli()
