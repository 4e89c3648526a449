"""CLI: taskstream config show|set|clear"""

from typing import Optional

import click
from rich.console import Console

console = Console()


def _load_config() -> dict:
    from taskstream.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from taskstream.cli.main import _save_config
    _save_config(cfg)


@click.group()
def config():
    """Saved client settings."""


@config.command("show")
def config_show():
    """Show saved settings (token masked)."""
    cfg = _load_config()
    if not cfg:
        console.print("[yellow]No saved settings.[/yellow]")
        return
    for key, value in cfg.items():
        if key == "access_token" and value:
            value = f"{value[:4]}…"
        console.print(f"{key}: {value}")


@config.command("set")
@click.option("--base-url", default=None, help="Task server base URL")
@click.option("--token", "access_token", default=None, help="Bearer token sent with every request")
@click.option("--user", default=None, help="User label sent with task requests")
def config_set(base_url: Optional[str], access_token: Optional[str], user: Optional[str]):
    """Update saved settings."""
    cfg = _load_config()
    updates = {"base_url": base_url, "access_token": access_token, "user": user}
    cfg.update({k: v for k, v in updates.items() if v is not None})
    _save_config(cfg)
    console.print("[green]Settings saved.[/green]")


@config.command("clear")
def config_clear():
    """Remove all saved settings."""
    _save_config({})
    console.print("[green]Settings cleared.[/green]")
