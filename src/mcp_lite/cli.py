"""Entry-point for the mcp-lite command line."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mcp_lite.app import McpLiteApp
from mcp_lite.batch import BatchOptions, BatchProcessor, create_sink, load_questions
from mcp_lite.chat import ChatOptions, ToolExecutionEvent
from mcp_lite.exceptions import McpLiteError

app = typer.Typer(help="Chat with an LLM that can call tools on MCP servers.")
console = Console()
CONFIG_OPTION = typer.Option(
    None, "--config", "-c", help="Path to the YAML or JSON configuration file."
)


def create_app(config_path: Optional[str]) -> McpLiteApp:
    return McpLiteApp(config_path=config_path)


def _print_event(event: ToolExecutionEvent) -> None:
    if event.type == "tool_error":
        console.print(f"[red]  {escape(event.message)}[/red]")
    elif event.type == "tool_start":
        console.print(f"[cyan]  {escape(event.message)}[/cyan]")
    else:
        console.print(f"[dim]{escape(event.message)}[/dim]")


def _pick(value, default):
    return default if value is None else value


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except (McpLiteError, OSError) as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc


@app.command()
def servers(config: Optional[str] = CONFIG_OPTION) -> None:
    """Connect to the configured servers and list their tools and resources."""

    async def _servers() -> None:
        mcp_app = create_app(config)
        async with mcp_app.run() as running:
            table = Table(title="MCP servers")
            table.add_column("Server", style="bold")
            table.add_column("Status")
            table.add_column("Tools")
            table.add_column("Resources")

            for name in running.hub.get_server_names():
                conn = running.hub.get_server(name)
                table.add_row(
                    name,
                    "[green]connected[/green]" if conn.connected else "[red]down[/red]",
                    ", ".join(tool.name for tool in conn.tools) or "-",
                    ", ".join(resource.uri for resource in conn.resources) or "-",
                )
            for name, error in running.connection_errors.items():
                table.add_row(name, f"[red]failed: {escape(str(error))}[/red]", "-", "-")

            console.print(table)

    _run(_servers())


@app.command()
def ask(
    question: str = typer.Argument(..., help="The question to send."),
    config: Optional[str] = CONFIG_OPTION,
    temperature: Optional[float] = typer.Option(
        None, help="Sampling temperature. Defaults to llm.temperature from the config."
    ),
    max_tokens: Optional[int] = typer.Option(
        None, min=1, help="Maximum tokens per LLM response. Defaults to llm.max_tokens."
    ),
    max_turns: int = typer.Option(10, min=1, help="Maximum LLM calls for this question."),
    auto_tools: bool = typer.Option(
        True, "--auto-tools/--no-auto-tools", help="Execute requested tool calls automatically."
    ),
) -> None:
    """Ask one question and print the answer."""

    async def _ask() -> None:
        mcp_app = create_app(config)
        async with mcp_app.run() as running:
            llm_settings = running.settings.llm
            engine = running.create_engine()
            response = await engine.chat(
                question,
                ChatOptions(
                    temperature=_pick(temperature, llm_settings.temperature),
                    max_tokens=_pick(max_tokens, llm_settings.max_tokens),
                    max_turns=max_turns,
                    auto_execute_tools=auto_tools,
                    observer=_print_event,
                ),
            )

        console.print(response.content, markup=False)
        if response.pending_tool_calls:
            console.print("[yellow]Tool calls requested:[/yellow]")
            for call in response.pending_tool_calls:
                console.print(f"  {call.name}: {call.arguments}", markup=False)
        if response.max_turns_reached:
            console.print(f"[yellow]Reached maximum turns ({max_turns})[/yellow]")

    _run(_ask())


@app.command()
def batch(
    input_path: Path = typer.Argument(..., help="CSV or JSON file with questions."),
    output_path: Path = typer.Argument(..., help="Where to write the results."),
    config: Optional[str] = CONFIG_OPTION,
    concurrency: int = typer.Option(1, min=1, help="Questions processed at once."),
    output_format: str = typer.Option("csv", "--format", help="Output format: csv or json."),
    stop_on_error: bool = typer.Option(False, help="Stop after the first failed question."),
    include_context: bool = typer.Option(
        True, "--context/--no-context", help="Include context columns in CSV output."
    ),
    max_turns: int = typer.Option(10, min=1, help="Maximum LLM calls per question."),
    temperature: Optional[float] = typer.Option(
        None, help="Sampling temperature. Defaults to llm.temperature from the config."
    ),
    max_tokens: Optional[int] = typer.Option(
        None, min=1, help="Maximum tokens per LLM response. Defaults to llm.max_tokens."
    ),
) -> None:
    """Answer every question in a file and save the results."""

    if output_format not in ("csv", "json"):
        console.print(f"[bold red]Error:[/bold red] Unsupported format: {output_format}")
        raise typer.Exit(code=1)

    async def _batch() -> None:
        questions = load_questions(input_path)
        console.print(f"[green]Loaded {len(questions)} questions[/green]")

        mcp_app = create_app(config)
        async with mcp_app.run() as running:
            llm_settings = running.settings.llm
            options = BatchOptions(
                max_concurrency=concurrency,
                temperature=_pick(temperature, llm_settings.temperature),
                max_tokens=_pick(max_tokens, llm_settings.max_tokens),
                max_turns=max_turns,
                continue_on_error=not stop_on_error,
                output_format=output_format,
                include_context=include_context,
            )
            processor = BatchProcessor(running.create_engine)
            report = await processor.process(
                questions,
                options,
                sink=create_sink(output_path, output_format, include_context=include_context),
            )

        console.print("[bold green]Batch processing completed![/bold green]")
        console.print(f"  Success: {report.metadata.success_count}")
        if report.metadata.error_count:
            console.print(f"[red]  Errors: {report.metadata.error_count}[/red]")
        console.print(f"  Results saved to: {output_path}")

    _run(_batch())


if __name__ == "__main__":  # pragma: no cover
    app()
