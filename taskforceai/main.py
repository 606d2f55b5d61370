"""Command-line entry point for the TaskForceAI client.

This module provides the ``taskforceai`` command, including:
- Command-line argument parsing
- Task submission with polling or streaming
- One-shot status lookups and waiting on existing tasks
- Rich rendering of task status
"""

import argparse
import asyncio
import sys

import structlog
from rich.console import Console
from rich.table import Table
from rich.text import Text

from taskforceai.api.client import TaskForceAI
from taskforceai.api.models import TaskSubmissionOptions
from taskforceai.core.config import (
    DEFAULT_MAX_POLL_ATTEMPTS,
    DEFAULT_POLL_INTERVAL,
    ClientOptions,
    PollingOptions,
)
from taskforceai.core.errors import ClientError, DecodeError, StreamDisconnectedError
from taskforceai.core.logging import setup_logging
from taskforceai.tasks.status import TaskState, TaskStatus

logger = structlog.get_logger(__name__)

# Rich console instance (respects NO_COLOR environment variable)
console = Console(highlight=False)

STATE_COLORS = {
    TaskState.PENDING: "yellow",
    TaskState.RUNNING: "cyan",
    TaskState.COMPLETED: "green",
    TaskState.FAILED: "red",
    TaskState.CANCELLED: "magenta",
    TaskState.UNKNOWN: "dim",
}

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="taskforceai",
        description="TaskForceAI CLI - submit tasks and follow their status",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use mock mode: deterministic responses, no network",
    )
    parser.add_argument(
        "--base-url",
        help="Service base URL (default: $TASKFORCEAI_BASE_URL or the public endpoint)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Per-request timeout in seconds",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug events to stderr",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    run_parser = subparsers.add_parser("run", help="Submit a prompt and wait for the result")
    run_parser.add_argument("prompt", help="Natural-language task request")
    run_parser.add_argument(
        "--stream",
        action="store_true",
        help="Follow status events over a stream instead of polling",
    )
    run_parser.add_argument("--model", help="Model identifier for the task")
    _add_polling_arguments(run_parser)

    status_parser = subparsers.add_parser("status", help="Show the current status of a task")
    status_parser.add_argument("task_id", help="Task ID")

    wait_parser = subparsers.add_parser("wait", help="Poll an existing task until it finishes")
    wait_parser.add_argument("task_id", help="Task ID")
    _add_polling_arguments(wait_parser)

    return parser.parse_args(argv)


def _add_polling_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL,
        help=f"Seconds between status checks (default: {DEFAULT_POLL_INTERVAL})",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=DEFAULT_MAX_POLL_ATTEMPTS,
        help=f"Maximum status checks before giving up (default: {DEFAULT_MAX_POLL_ATTEMPTS})",
    )


def build_client(args: argparse.Namespace) -> TaskForceAI:
    """Create a client from the environment plus command-line overrides."""
    options = ClientOptions.from_environment(
        base_url=args.base_url,
        timeout=args.timeout,
        mock_mode=True if args.mock else None,
    )
    return TaskForceAI(options)


def render_status(status: TaskStatus) -> None:
    """Print a status as a table, followed by the result or error text."""
    color = STATE_COLORS.get(status.state, "white")

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("field", style="dim")
    table.add_column("value")
    table.add_row("Task", status.task_id)
    table.add_row("State", Text(status.raw_state, style=f"bold {color}"))
    if status.updated_at is not None:
        table.add_row("Updated", status.updated_at.isoformat())
    for warning in status.warnings or []:
        table.add_row("Warning", Text(warning, style="yellow"))
    console.print(table)

    if status.result is not None:
        console.print()
        console.print(Text(status.result))
    if status.error is not None:
        console.print()
        console.print(Text(status.error, style="red"))


def exit_code_for(status: TaskStatus) -> int:
    return EXIT_OK if status.state is TaskState.COMPLETED else EXIT_FAILURE


async def _stream_run(client: TaskForceAI, prompt: str, options: TaskSubmissionOptions) -> int:
    stream = await client.run_task_stream(prompt, options)
    final: TaskStatus | None = None

    async with stream:
        async for item in stream:
            if isinstance(item, TaskStatus):
                final = item
                color = STATE_COLORS.get(item.state, "white")
                console.print(Text.assemble(("● ", color), f"{item.task_id}: ", (item.raw_state, color)))
            elif isinstance(item, DecodeError):
                console.print("[yellow]Skipped malformed event:[/yellow]", Text(str(item)))
            elif isinstance(item, StreamDisconnectedError):
                console.print(Text(str(item), style="red"))
                return EXIT_FAILURE

    if final is None:
        return EXIT_FAILURE
    render_status(final)
    return exit_code_for(final)


async def run_command(args: argparse.Namespace) -> int:
    """Execute the selected subcommand and return the process exit code."""
    async with build_client(args) as client:
        if args.command == "status":
            status = await client.get_task_status(args.task_id)
            render_status(status)
            return EXIT_OK

        polling = PollingOptions(interval=args.interval, max_attempts=args.max_attempts)

        if args.command == "wait":
            status = await client.wait_for_completion(args.task_id, polling)
            render_status(status)
            return exit_code_for(status)

        options = TaskSubmissionOptions(model_id=args.model)
        if args.stream:
            return await _stream_run(client, args.prompt, options)

        with console.status("[cyan]Waiting for task...[/cyan]"):
            status = await client.run_task(args.prompt, options, polling)
        render_status(status)
        return exit_code_for(status)


def cli_main(argv: list[str] | None = None) -> int:
    """Run the CLI and return an exit code instead of exiting."""
    try:
        args = parse_args(argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else EXIT_USAGE

    setup_logging(verbose=args.verbose)

    try:
        return asyncio.run(run_command(args))
    except ClientError as e:
        logger.debug("cli_command_failed", command=args.command, error=str(e))
        console.print("[red]Error:[/red]", Text(str(e)))
        return EXIT_FAILURE
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        return EXIT_FAILURE


def run_cli() -> None:
    """Console script entry point."""
    sys.exit(cli_main())


if __name__ == "__main__":
    run_cli()
