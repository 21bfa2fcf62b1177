"""CLI: bulk-sender upload|preview|send"""

import json
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from bulk_sender.editor import translate_html
from bulk_sender.errors import BulkSenderError

console = Console()


def _load_config() -> dict:
    from bulk_sender.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from bulk_sender.cli.main import _save_config
    _save_config(cfg)


def _get_client(**kwargs):
    from bulk_sender.cli.main import _get_client
    return _get_client(**kwargs)


def _run(coro):
    from bulk_sender.cli.main import _run
    return _run(coro)


def _read_message(message: Optional[str], html_file: Optional[Path]) -> str:
    if html_file is not None:
        return html_file.read_text()
    if message is None:
        raise click.UsageError("Provide MESSAGE or --html-file.")
    return message


@click.command("upload")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--timeout", default=30.0, type=float, show_default=True, help="Seconds to wait for authentication")
def upload(csv_file: Path, timeout: float):
    """Upload a contacts CSV."""

    async def _upload():
        client = _get_client()
        try:
            await client.connect()
            with console.status("Checking session..."):
                await client.wait_authenticated(timeout)
            with console.status("Uploading contacts..."):
                return await client.upload_contacts(str(csv_file))
        finally:
            await client.close()

    try:
        contacts = _run(_upload())
    except TimeoutError:
        console.print("[red]Session is not authenticated. Run `bulk-sender login`.[/red]")
        raise SystemExit(1)
    except BulkSenderError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    cfg = _load_config()
    _save_config({**cfg, "contacts": contacts})
    console.print(f"[green]Uploaded {len(contacts)} contacts[/green]")


@click.command("preview")
@click.argument("message", required=False)
@click.option("--html-file", default=None, type=click.Path(exists=True, dir_okay=False, path_type=Path))
def preview(message: Optional[str], html_file: Optional[Path]):
    """Print MESSAGE (editor HTML) as it will be sent."""
    click.echo(translate_html(_read_message(message, html_file)))


@click.command("send")
@click.argument("message", required=False)
@click.option("--html-file", default=None, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--timeout", default=30.0, type=float, show_default=True, help="Seconds to wait for authentication")
@click.option("--json-output", "--json", is_flag=True)
def send(message: Optional[str], html_file: Optional[Path], timeout: float, json_output: bool):
    """Send MESSAGE (editor HTML) to the uploaded contacts."""
    html = _read_message(message, html_file)
    contacts = _load_config().get("contacts", [])
    if not contacts:
        console.print("[red]No contacts uploaded! Run `bulk-sender upload` first.[/red]")
        raise SystemExit(1)

    async def _send():
        client = _get_client()
        try:
            await client.connect()
            with console.status("Checking session..."):
                await client.wait_authenticated(timeout)
            with console.status(f"Sending to {len(contacts)} contacts..."):
                return await client.send(html, contacts)
        finally:
            await client.close()

    try:
        result = _run(_send())
    except TimeoutError:
        console.print("[red]Session is not authenticated. Run `bulk-sender login`.[/red]")
        raise SystemExit(1)
    except BulkSenderError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    if json_output:
        click.echo(json.dumps(result.model_dump()))
    else:
        console.print(f"[green]Messages sent to {result.count} contacts![/green]")
