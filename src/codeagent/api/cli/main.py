"""codeagent CLI entry point."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from codeagent.api.cli.output_formatter import EventConsole, OutputFormat
from codeagent.api.cli.settings import AgentSettings
from codeagent.application.factory import SessionFactory
from codeagent.core.domain.errors import CodeAgentError, ProviderError
from codeagent.core.domain.events import ErrorEvent
from codeagent.infrastructure.logging import TranscriptLog, configure_logging

DEFAULT_SETTINGS_FILE = Path("codeagent.yaml")

app = typer.Typer(
    name="codeagent",
    help="codeagent - plan and execute coding tasks with an LLM",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


async def _stream(
    factory: SessionFactory,
    settings: AgentSettings,
    prompt: str,
    output: EventConsole,
    transcript: Optional[TranscriptLog],
) -> bool:
    """Render every event; returns True when an error event was seen."""
    saw_error = False
    events = factory.create_session(
        prompt,
        settings.working_directory,
        provider=settings.provider,
        model=settings.model,
        api_key=settings.api_key,
        max_steps=settings.max_steps,
        triage=settings.triage,
        transcript=transcript,
    )
    async for event in events:
        saw_error = saw_error or isinstance(event, ErrorEvent)
        output.render(event)
    return saw_error


@app.command()
def run(
    prompt: str = typer.Argument(..., help="What the agent should do"),
    working_directory: Optional[str] = typer.Option(None, "--cwd", "-C", help="Working directory for the tools"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="anthropic, openai or together"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model alias or id"),
    max_steps: Optional[int] = typer.Option(None, "--max-steps", help="Model round ceiling"),
    triage: Optional[str] = typer.Option(None, "--triage", help="model or heuristic"),
    config: Path = typer.Option(DEFAULT_SETTINGS_FILE, "--config", "-c", help="Settings YAML file"),
    llm_config: Optional[str] = typer.Option(None, "--llm-config", help="LLM service YAML file"),
    transcript_path: Optional[str] = typer.Option(None, "--transcript", help="Write raw Harmony transcripts here"),
    json_output: bool = typer.Option(False, "--json", help="Print events as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Run one request: triage, plan, execute and summarize.

    Examples:
        # Fix something small in the current directory
        codeagent run "fix the typo in README.md"

        # Use the responses endpoint with a step ceiling
        codeagent run "add a --version flag" --provider openai --max-steps 30
    """
    try:
        settings = AgentSettings.load_from_file(
            config,
            working_directory=working_directory,
            provider=provider,
            model=model,
            max_steps=max_steps,
            triage=triage,
            llm_config_path=llm_config,
            transcript_path=transcript_path,
            log_level="DEBUG" if verbose else None,
        )
    except ValueError as e:
        console.print(f"[bold red]Invalid settings:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=2)
    configure_logging(settings.log_level)

    output = EventConsole(
        console=console,
        output_format=OutputFormat.JSON if json_output else OutputFormat.RICH,
    )
    factory = SessionFactory(settings.llm_config_path)
    transcript = TranscriptLog(settings.transcript_path) if settings.transcript_path else None

    try:
        if transcript is not None:
            transcript.open()
        saw_error = asyncio.run(_stream(factory, settings, prompt, output, transcript))
    except ProviderError:
        # Already rendered from its error event
        raise typer.Exit(code=1)
    except (CodeAgentError, FileNotFoundError, ValueError) as e:
        output.print_error(str(e))
        raise typer.Exit(code=1)
    finally:
        if transcript is not None:
            transcript.close()

    if saw_error:
        raise typer.Exit(code=1)


@app.command()
def version():
    """Show codeagent version."""
    from codeagent import __version__

    console.print(f"[bold blue]codeagent[/bold blue] version [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
