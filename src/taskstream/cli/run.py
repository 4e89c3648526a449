"""CLI: taskstream run, taskstream history, taskstream watch"""

import json
from typing import Optional

import click
import httpx
from rich.console import Console
from rich.table import Table

from taskstream.classifier import classify
from taskstream.errors import TaskStreamError
from taskstream.models.message import Category, Message
from taskstream.models.task import TaskType
from taskstream.optimization import extract_parameters, parse_log

console = Console()
LOG_STYLES = {"START": "cyan", "ITERATION": "blue", "END": "green", "RESULT": "green", "ERROR": "red"}


def _get_client():
    from taskstream.cli.main import _get_client
    return _get_client()


def _run(coro):
    from taskstream.cli.main import _run
    return _run(coro)


def _message_json(message: Message) -> dict:
    data = message.model_dump(mode="json", by_alias=True)
    data["category"] = classify(message).value
    return data


def _print_answer(message: Optional[Message]) -> None:
    if message is None:
        console.print("[yellow]No answer.[/yellow]")
        return
    category = classify(message)
    style = "red" if message.metadata.get("error") else "green"
    console.print(f"[{style}]Agent ({category.value}):[/{style}] {message.content}")
    if category is Category.OPTIMIZE:
        _print_optimization(message.content)
    for image in message.images:
        console.print(f"[dim]image: {image.alt_text or ''} {image.url}[/dim]")
    files = {k: v for k, v in message.metadata.items() if k.endswith("_file")}
    for key, value in files.items():
        console.print(f"[dim]{key}: {value}[/dim]")
    if message.suggested_follow_ups:
        console.print("[cyan]Suggested follow-ups:[/cyan]")
        for question in message.suggested_follow_ups:
            console.print(f"  - {question}")


def _print_optimization(content: str) -> None:
    """Parameter ranges and the optimization log outline of an answer."""
    params = extract_parameters(content)
    if params:
        table = Table(title="Optimizable parameters")
        table.add_column("Name", style="bold")
        table.add_column("Min")
        table.add_column("Max")
        table.add_column("Initial")
        for param in params:
            table.add_row(param.name, f"{param.min:g}", f"{param.max:g}", f"{param.initial_value:g}")
        console.print(table)
    blocks = [block for block in parse_log(content) if block.type != "INFO"]
    for block in blocks:
        style = LOG_STYLES.get(block.type, "dim")
        title = f" {block.title}" if block.title else ""
        console.print(f"[{style}]{block.type}{title}[/{style}]")


@click.command("run")
@click.argument("query")
@click.option("-t", "--type", "task_type", default=TaskType.GEOMETRY.value,
              type=click.Choice([t.value for t in TaskType]))
@click.option("--file-url", default=None, help="Previously uploaded input file")
@click.option("-c", "--conversation", "conversation_id", default=None, help="Continue an existing conversation")
@click.option("--json-output", "--json", is_flag=True)
def run_cmd(query: str, task_type: str, file_url: Optional[str], conversation_id: Optional[str], json_output: bool):
    """Stream a task and print the final answer."""

    async def _stream():
        client = _get_client()
        if conversation_id:
            client.context.activate_conversation(conversation_id)
        try:
            with console.status("Streaming task..."):
                message = await client.run_task_and_wait(
                    query, TaskType(task_type), file_url=file_url,
                    on_error=lambda e: console.print(f"[red]Stream failed: {e}[/red]"),
                )
            if json_output:
                click.echo(json.dumps({
                    "conversation_id": client.context.conversation_id,
                    "task_id": client.context.task_id,
                    "status": client.task_status().value,
                    "message": _message_json(message) if message else None,
                }))
                return
            console.print(f"[dim]Conversation: {client.context.conversation_id}  Task: {client.context.task_id}[/dim]")
            _print_answer(message)
        finally:
            await client.close()

    _run(_stream())


async def _load_or_exit(client, task_id: str) -> bool:
    try:
        return await client.load_task(task_id)
    except (TaskStreamError, httpx.HTTPError) as e:
        console.print(f"[red]Could not load task {task_id}: {e}[/red]")
        raise SystemExit(1)


@click.command("history")
@click.argument("task_id")
@click.option("--json-output", "--json", is_flag=True)
def history_cmd(task_id: str, json_output: bool):
    """Show the transcript of a task."""

    async def _history():
        client = _get_client()
        try:
            await _load_or_exit(client, task_id)
            client.stop_polling(task_id)
            if json_output:
                click.echo(json.dumps([_message_json(m) for m in client.messages], indent=2))
                return
            table = Table(title=f"Task {task_id} ({client.task_status().value})")
            table.add_column("Role", style="bold")
            table.add_column("Category")
            table.add_column("Status")
            table.add_column("Content")
            for message in client.messages:
                table.add_row(
                    message.role.value,
                    classify(message).value,
                    message.status or "",
                    message.content[:80],
                )
            console.print(table)
        finally:
            await client.close()

    _run(_history())


@click.command("watch")
@click.argument("task_id")
def watch_cmd(task_id: str):
    """Poll an in-progress task until it finishes."""

    async def _watch():
        client = _get_client()
        try:
            polling = await _load_or_exit(client, task_id)
            if polling:
                with console.status(f"Task {task_id} in progress..."):
                    await client.wait_for_task(task_id)
            _print_answer(client.transcript.last_agent)
        finally:
            await client.close()

    _run(_watch())
