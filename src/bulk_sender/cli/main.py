"""
bulk-sender CLI — `bulk-sender` command.

Commands:
  bulk-sender login            Link the account by scanning a QR code
  bulk-sender status           One-shot authentication status
  bulk-sender whoami           Show the saved identity and backend
  bulk-sender logout           Forget identity and contacts
  bulk-sender upload <csv>     Upload a contact list
  bulk-sender preview <html>   Show the formatted message
  bulk-sender send <html>      Send to the uploaded contacts
"""

import asyncio
import json
import logging
from pathlib import Path

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install bulk-sender[cli]")

from bulk_sender.client import AsyncBulkSender
from bulk_sender.transport.http import DEFAULT_BASE_URL

console = Console()
CONFIG_DIR = Path.home() / ".bulk_sender"
CONFIG_FILE = CONFIG_DIR / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _get_client(**kwargs) -> AsyncBulkSender:
    cfg = _load_config()
    return AsyncBulkSender(base_url=cfg.get("base_url", DEFAULT_BASE_URL), **kwargs)


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
def main(verbose: bool):
    """bulk-sender CLI — send one formatted message to many contacts."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


# Register subcommands from separate modules
from bulk_sender.cli.session import login, logout, status, whoami
from bulk_sender.cli.messages import preview, send, upload

main.add_command(login)
main.add_command(status)
main.add_command(whoami)
main.add_command(logout)
main.add_command(upload)
main.add_command(preview)
main.add_command(send)


if __name__ == "__main__":
    main()
