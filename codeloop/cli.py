"""CLI entry point for CodeLoop."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from codeloop import __version__
from codeloop.agent import EventType, Session, SessionEvent
from codeloop.config import (
    CONFIG_FILE,
    get_settings,
    load_project_config,
    load_settings,
    save_project_config,
)
from codeloop.errors import CodeLoopError
from codeloop.models import format_payload, get_client_from_settings
from codeloop.tools import PermissionRequest, default_tool_registry
from codeloop.utils.logging import setup_logging

app = typer.Typer(
    name="codeloop",
    help="CodeLoop - let a language model work on your project with tools",
    add_completion=True,
    no_args_is_help=False,
)

console = Console()

EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit"}

# Longest tool output shown in full
MAX_RESULT_PREVIEW = 2000


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]CodeLoop[/bold] version {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    project: Path = typer.Option(
        Path("."),
        "--project",
        "-p",
        help="Project directory tools operate in",
    ),
    read_only: bool = typer.Option(
        False,
        "--read-only",
        help="Only offer tools that never modify anything",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """CodeLoop - an agent loop for coding tasks.

    Without a command, starts an interactive session.
    """
    setup_logging(verbose=verbose)

    if config:
        load_settings(config_path=config, force_reload=True)

    ctx.obj = {
        "project": project.expanduser().resolve(),
        "read_only": read_only,
        "verbose": verbose,
    }

    # If a subcommand is being invoked, don't enter interactive mode
    if ctx.invoked_subcommand is not None:
        return

    asyncio.run(start_interactive(**ctx.obj))


def _print_permission(request: PermissionRequest) -> None:
    """Show an advisory permission notice for a tool call."""
    if request.approved:
        console.print(f"[dim]  {request.tool_name} is approved for this project[/dim]")
        return
    console.print(
        Panel(
            request.format_for_display(),
            title="Tool call (not pre-approved)",
            border_style="yellow",
        )
    )


def build_session(project: Path, read_only: bool = False) -> Session:
    """Create a session for a project from the current settings.

    Raises:
        typer.Exit: If no API key is configured.
    """
    settings = get_settings()

    if not settings.has_api_key:
        console.print(
            Panel(
                "[yellow]No API key configured![/yellow]\n\n"
                "Set OPENAI_API_KEY (or CODELOOP_API_KEY),\n"
                f"or configure api_key in {CONFIG_FILE}",
                title="Configuration Required",
                border_style="yellow",
            )
        )
        raise typer.Exit(1)

    registry = default_tool_registry(str(project), settings.shell.to_tool_options())
    tool_names = None
    if read_only or settings.agent.read_only:
        tool_names = [tool.name for tool in registry.get_read_only_tools()]

    project_config = load_project_config(project)
    return Session(
        get_client_from_settings(settings),
        registry,
        config=settings.to_session_config(project, project_config),
        tool_names=tool_names,
        permission_observer=_print_permission,
    )


def _render_event(event: SessionEvent, streamed_text: list[str]) -> None:
    """Print one session event."""
    if event.type == EventType.RESPONSE_CHUNK and event.content:
        streamed_text.append(event.content)
        console.print(event.content, end="", markup=False, highlight=False)

    elif event.type == EventType.TOOL_CALL and event.tool_call:
        if streamed_text:
            console.print()
            streamed_text.clear()
        args = ", ".join(f"{k}={v!r}" for k, v in event.tool_call.input.items())
        console.print(f"[cyan]⚙ {event.tool_call.tool_name}[/cyan]([dim]{args}[/dim])")

    elif event.type == EventType.TOOL_RESULT and event.tool_result:
        result = event.tool_result
        text = format_payload(result.payload)
        if len(text) > MAX_RESULT_PREVIEW:
            text = text[:MAX_RESULT_PREVIEW] + "\n..."
        console.print(
            Panel(
                text,
                title=result.tool_name,
                border_style="red" if result.failed else "green",
            )
        )

    elif event.type == EventType.ERROR:
        console.print(f"\n[red]{event.error}[/red]")

    elif event.type == EventType.TURN_COMPLETE:
        if streamed_text:
            console.print()
            streamed_text.clear()
        if event.usage and event.usage.total_tokens:
            console.print(
                f"[dim]{event.usage.total_tokens} tokens"
                f" (${event.usage.cost:.4f})[/dim]"
            )


async def run_turn(session: Session, prompt: str) -> None:
    """Run one user turn, rendering events as they arrive."""
    streamed_text: list[str] = []
    async for event in session.run(prompt):
        _render_event(event, streamed_text)


async def start_interactive(
    project: Path,
    read_only: bool = False,
    verbose: bool = False,
) -> None:
    """Start the interactive chat loop."""
    session = build_session(project, read_only)

    console.print(
        Panel(
            f"Project: {project}\n"
            f"Model: {session.model_client.name}\n"
            f"Tools: {', '.join(session.tool_names)}\n\n"
            "[dim]Type 'exit' to quit.[/dim]",
            title=f"CodeLoop {__version__}",
            border_style="blue",
        )
    )

    while True:
        try:
            prompt = await asyncio.to_thread(console.input, "[bold green]> [/bold green]")
        except (EOFError, KeyboardInterrupt):
            console.print()
            break

        prompt = prompt.strip()
        if not prompt:
            continue
        if prompt.lower() in EXIT_COMMANDS:
            break

        try:
            await run_turn(session, prompt)
        except CodeLoopError as e:
            console.print(f"\n[red]Error: {e}[/red]")
            if verbose:
                console.print_exception()


@app.command()
def ask(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="What to ask the model"),
) -> None:
    """Run a single turn and exit."""
    session = build_session(ctx.obj["project"], ctx.obj["read_only"])
    try:
        asyncio.run(run_turn(session, prompt))
    except CodeLoopError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def tools(ctx: typer.Context) -> None:
    """List the available tools."""
    project_path = ctx.obj["project"]
    registry = default_tool_registry(str(project_path))
    approved = load_project_config(project_path).approved_tools

    table = Table(title="Tools")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Access")
    table.add_column("Approved", justify="center")
    table.add_column("Description")

    for tool in registry.get_all_tools():
        if ctx.obj["read_only"] and not tool.is_read_only():
            continue
        table.add_row(
            tool.name,
            "read-only" if tool.is_read_only() else "[yellow]read-write[/yellow]",
            "✓" if tool.name in approved or "*" in approved else "",
            tool.description,
        )

    console.print(table)


@app.command()
def approve(
    ctx: typer.Context,
    tool_names: list[str] = typer.Argument(..., help="Tools to approve for this project"),
) -> None:
    """Add tools to the project's approved-tool list."""
    project_path = ctx.obj["project"]
    known = default_tool_registry(str(project_path)).list_tools()

    unknown = [name for name in tool_names if name not in known and name != "*"]
    if unknown:
        console.print(f"[red]Unknown tool(s): {', '.join(unknown)}[/red]")
        raise typer.Exit(1)

    project_config = load_project_config(project_path)
    for name in tool_names:
        if name not in project_config.approved_tools:
            project_config.approved_tools.append(name)

    path = save_project_config(project_path, project_config)
    console.print(f"[green]Approved: {', '.join(project_config.approved_tools)}[/green]")
    console.print(f"[dim]Saved to {path}[/dim]")


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = get_settings()

    console.print(Panel("[bold]Current Configuration[/bold]", border_style="blue"))

    console.print(f"\n[bold]Provider:[/bold] {settings.provider}")
    console.print(f"  API key:  {'✓ Set' if settings.has_api_key else '✗ Not set'}")
    console.print(f"  Base URL: {settings.base_url or 'default'}")

    console.print("\n[bold]Model:[/bold]")
    console.print(f"  Model ID:    {settings.model.model_id}")
    console.print(f"  Max tokens:  {settings.model.max_tokens}")
    console.print(f"  Temperature: {settings.model.temperature}")

    console.print("\n[bold]Agent:[/bold]")
    console.print(f"  Max tool iterations: {settings.agent.max_tool_iterations}")
    console.print(f"  Streaming:           {settings.agent.stream}")
    console.print(f"  Read-only:           {settings.agent.read_only}")

    console.print("\n[bold]Shell:[/bold]")
    console.print(f"  Default timeout: {settings.shell.default_timeout}s")
    console.print(f"  Max timeout:     {settings.shell.max_timeout}s")


if __name__ == "__main__":
    app()
