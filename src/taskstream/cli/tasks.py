"""CLI: taskstream tasks delete, taskstream queue"""

import click
from rich.console import Console

console = Console()


def _get_client():
    from taskstream.cli.main import _get_client
    return _get_client()


def _run(coro):
    from taskstream.cli.main import _run
    return _run(coro)


@click.group()
def tasks():
    """Task management."""


@tasks.command("delete")
@click.argument("task_id")
@click.option("--history-only", is_flag=True, help="Keep the task, delete only its messages")
def tasks_delete(task_id, history_only):
    """Delete a task and its messages."""

    async def _delete():
        client = _get_client()
        try:
            with console.status("Deleting..."):
                if history_only:
                    await client.tasks.delete_history(task_id)
                else:
                    await client.tasks.delete(task_id)
        finally:
            await client.close()
        what = "History of task" if history_only else "Task"
        console.print(f"[green]{what} {task_id} deleted.[/green]")

    _run(_delete())


@click.command("queue")
def queue_cmd():
    """Show the optimization queue."""

    async def _queue():
        client = _get_client()
        try:
            status = await client.tasks.queue_length()
        finally:
            await client.close()
        if not status.busy:
            console.print("[green]Queue is empty.[/green]")
        else:
            console.print(f"Waiting: [bold]{status.length}[/bold]  Running: [bold]{status.running}[/bold]")

    _run(_queue())
