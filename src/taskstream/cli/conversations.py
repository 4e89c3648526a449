"""CLI: taskstream conversations create|show|delete"""

import json

import click
from rich.console import Console

from taskstream.errors import LifecycleError

console = Console()


def _get_client():
    from taskstream.cli.main import _get_client
    return _get_client()


def _run(coro):
    from taskstream.cli.main import _run
    return _run(coro)


@click.group()
def conversations():
    """Conversation management."""


@conversations.command("create")
@click.argument("title", required=False, default="New conversation")
def conversations_create(title):
    """Create a new conversation."""

    async def _create():
        client = _get_client()
        try:
            with console.status("Creating conversation..."):
                conversation_id = await client.require_conversation(title)
        except LifecycleError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(1)
        finally:
            await client.close()
        console.print(f"[green]Conversation created: {conversation_id}[/green]")

    _run(_create())


@conversations.command("show")
@click.argument("conversation_id")
def conversations_show(conversation_id):
    """Show a conversation and its tasks."""

    async def _show():
        client = _get_client()
        try:
            details = await client.conversations.get(conversation_id)
        finally:
            await client.close()
        click.echo(json.dumps(details, indent=2, ensure_ascii=False))

    _run(_show())


@conversations.command("delete")
@click.argument("conversation_id")
def conversations_delete(conversation_id):
    """Delete a conversation."""

    async def _delete():
        client = _get_client()
        try:
            with console.status("Deleting..."):
                await client.conversations.delete(conversation_id)
        finally:
            await client.close()
        console.print(f"[green]Conversation {conversation_id} deleted.[/green]")

    _run(_delete())
