"""
taskstream CLI — `taskstream` command.

Commands:
  taskstream config <cmd>          Show/set/clear saved settings
  taskstream run <query>           Stream a task and print the answer
  taskstream history <task-id>     Show a task transcript
  taskstream watch <task-id>       Poll an in-progress task until it finishes
  taskstream queue                 Optimization queue status
  taskstream conversations <cmd>   Conversation management
  taskstream tasks <cmd>           Task management
"""

import asyncio
import json
import logging
import os
from pathlib import Path

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install taskstream[cli]")

from taskstream.client import AsyncTaskStream
from taskstream.transport.http import DEFAULT_BASE_URL

console = Console()
CONFIG_FILE = Path.home() / ".taskstream" / "config.json"
ENV_BASE_URL = "TASKSTREAM_BASE_URL"
ENV_ACCESS_TOKEN = "TASKSTREAM_ACCESS_TOKEN"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _resolve_settings() -> dict:
    """Saved config with environment overrides."""
    cfg = _load_config()
    return {
        "base_url": os.environ.get(ENV_BASE_URL) or cfg.get("base_url") or DEFAULT_BASE_URL,
        "access_token": os.environ.get(ENV_ACCESS_TOKEN) or cfg.get("access_token"),
        "user": cfg.get("user"),
    }


def _get_client() -> AsyncTaskStream:
    return AsyncTaskStream(**_resolve_settings())


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Log stream and lifecycle activity")
def main(verbose: bool):
    """taskstream CLI — run long tasks and follow their streamed results."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


# Register subcommands from separate modules
from taskstream.cli.config import config
from taskstream.cli.run import run_cmd, history_cmd, watch_cmd
from taskstream.cli.conversations import conversations
from taskstream.cli.tasks import tasks, queue_cmd

main.add_command(config)
main.add_command(run_cmd)
main.add_command(history_cmd)
main.add_command(watch_cmd)
main.add_command(queue_cmd)
main.add_command(conversations)
main.add_command(tasks)


if __name__ == "__main__":
    main()
