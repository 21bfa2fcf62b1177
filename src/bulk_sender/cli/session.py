"""CLI: bulk-sender login|status|whoami|logout"""

import base64
import binascii
import json
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

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


def write_qr(payload: str, path: Path) -> Path:
    """Write a QR payload to disk. Data URLs are decoded to the image bytes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    header, sep, body = payload.partition(",")
    if sep and header.startswith("data:") and header.endswith(";base64"):
        try:
            path.write_bytes(base64.b64decode(body))
            return path
        except (binascii.Error, ValueError):
            pass
    path = path.with_suffix(".txt")
    path.write_text(payload)
    return path


@click.command("login")
@click.option("--base-url", default=None, help="Messaging backend base URL")
@click.option("--timeout", default=300.0, type=float, show_default=True, help="Seconds to wait for the scan")
@click.option("--qr-file", default=None, type=click.Path(dir_okay=False, path_type=Path), help="Where to save the QR image")
def login(base_url: Optional[str], timeout: float, qr_file: Optional[Path]):
    """Link the messaging account by scanning a QR code."""
    from bulk_sender.cli.main import CONFIG_DIR

    cfg = _load_config()
    if base_url:
        cfg["base_url"] = base_url
        _save_config(cfg)
    qr_path = qr_file or CONFIG_DIR / "qr.png"

    def on_qr(_handle, payload: str) -> None:
        written = write_qr(payload, qr_path)
        console.print(f"[yellow]Scan this QR code with WhatsApp:[/yellow] {written}")

    def on_error(_handle, err: BulkSenderError) -> None:
        console.print(f"[red]{err}[/red]")

    async def _login() -> bool:
        client = _get_client(on_qr=on_qr, on_error=on_error)
        try:
            await client.connect()
            with console.status("Initializing WhatsApp..."):
                await client.wait_authenticated(timeout)
        except TimeoutError:
            return False
        finally:
            await client.close()
        return True

    if not _run(_login()):
        console.print(f"[red]Not authenticated after {timeout:.0f}s.[/red]")
        raise SystemExit(1)
    console.print("[green]WhatsApp connected successfully![/green]")


@click.command("status")
@click.option("--json-output", "--json", is_flag=True)
def status(json_output: bool):
    """Query the session's authentication status once."""

    async def _status():
        client = _get_client()
        try:
            return client.user_id, await client.sessions.get_status(client.user_id)
        finally:
            await client.close()

    try:
        user_id, result = _run(_status())
    except BulkSenderError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    if json_output:
        click.echo(json.dumps({"user_id": user_id, **result.model_dump()}))
    elif result.authenticated:
        console.print(f"[green]Connected[/green] ({user_id})")
    elif result.qr:
        console.print(f"[yellow]Waiting for QR scan[/yellow] ({user_id}). Run `bulk-sender login`.")
    else:
        console.print(f"[yellow]Initializing[/yellow] ({user_id})")


@click.command("whoami")
def whoami():
    """Show the saved identity and backend."""
    from bulk_sender.client import USER_ID_FILE
    from bulk_sender.transport.http import DEFAULT_BASE_URL

    try:
        user_id = USER_ID_FILE.read_text().strip() or "none"
    except FileNotFoundError:
        user_id = "none"
    cfg = _load_config()
    console.print(f"User ID: {user_id}")
    console.print(f"Backend: {cfg.get('base_url', DEFAULT_BASE_URL)}")
    console.print(f"Contacts: {len(cfg.get('contacts', []))}")


@click.command("logout")
def logout():
    """Forget the saved identity and contacts."""
    from bulk_sender.client import USER_ID_FILE

    cfg = _load_config()
    cfg.pop("contacts", None)
    _save_config(cfg)
    USER_ID_FILE.unlink(missing_ok=True)
    console.print("[green]Logged out.[/green]")
