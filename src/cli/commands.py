"""CLI commands using Typer."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from src.automation.controller import (
    AutofillController,
    AutofillError,
    AutofillState,
    ExtractionStrategy,
    VerificationSummary,
)
from src.automation.models import CandidateProfile, FillStatus, JobContext
from src.automation.template_cache import TemplateCache, derive_cache_key
from src.config import settings
from src.integrations.claude.client import ClaudeNotConfiguredError
from src.integrations.langfuse.tracing import init_langfuse, shutdown_langfuse

app = typer.Typer(
    name="formfill",
    help="AI-powered ATS application form autofill",
    add_completion=False,
)
cache_app = typer.Typer(help="Inspect and manage the form template cache")
app.add_typer(cache_app, name="cache")

console = Console()

STATUS_STYLES = {
    FillStatus.FILLED: "[green]filled[/green]",
    FillStatus.NOT_FOUND: "[yellow]not found[/yellow]",
    FillStatus.ERROR: "[red]error[/red]",
}


@app.callback()
def configure(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def read_file(path: Path) -> str:
    """Read file content with encoding handling."""
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return path.read_text(encoding="latin-1")


def load_profile(path: Path, resume_path: Path | None = None) -> CandidateProfile:
    """Load a candidate profile from JSON, optionally attaching resume text."""
    if not path.exists():
        raise typer.BadParameter(f"Profile file not found: {path}")

    try:
        profile = CandidateProfile.model_validate_json(read_file(path))
    except ValidationError as e:
        raise typer.BadParameter(f"Invalid profile {path}: {e}") from e

    if resume_path is not None:
        if not resume_path.exists():
            raise typer.BadParameter(f"Resume file not found: {resume_path}")
        profile.resume_text = read_file(resume_path)

    return profile


def text_or_file(value: str | None) -> str | None:
    """Treat a value as a file path if one exists, else as literal text."""
    if not value:
        return value
    path = Path(value)
    if path.exists():
        return read_file(path)
    return value


def render_summary(summary: VerificationSummary) -> None:
    """Print the result of one fill pass."""
    table = Table(title=f"Attempt {summary.attempt_number + 1}", show_lines=False)
    table.add_column("Field")
    table.add_column("Selector", style="dim")
    table.add_column("Status")

    for result in summary.field_results:
        table.add_row(result.label or "-", result.selector, STATUS_STYLES[result.status])
    for answer in summary.skipped_fields:
        table.add_row(answer.label or "-", answer.selector, f"[dim]skipped[/dim] {answer.note or ''}")

    console.print(table)

    color = "green" if summary.all_filled else "yellow"
    source = "cached template" if summary.used_cache else "fresh analysis"
    console.print(
        f"[{color}]{summary.message}[/{color}] "
        f"[dim]({summary.filled_count}/{summary.total_fields} filled, {source})[/dim]"
    )


@app.command()
def autofill(
    url: Annotated[str, typer.Argument(help="URL of the application form")],
    profile_path: Annotated[
        Path, typer.Option("--profile", "-p", help="Candidate profile JSON file")
    ],
    resume_path: Annotated[
        Path | None, typer.Option("--resume", "-r", help="Resume text/markdown file")
    ] = None,
    job_description: Annotated[
        str | None, typer.Option("--job", "-j", help="Job description text or file path")
    ] = None,
    cover_letter: Annotated[
        str | None, typer.Option("--cover", help="Cover letter text or file path")
    ] = None,
    strategy: Annotated[
        ExtractionStrategy,
        typer.Option("--strategy", "-s", help="Field extraction on cache miss: html or dom"),
    ] = ExtractionStrategy.HTML_ANALYSIS,
    headed: Annotated[
        bool, typer.Option("--headed/--headless", help="Show the browser window")
    ] = True,
    api_key: Annotated[
        str | None, typer.Option("--api-key", envvar="ANTHROPIC_API_KEY", help="Claude API key")
    ] = None,
):
    """
    Fill an application form, then accept or retry with feedback.

    Example:
        formfill autofill "https://boards.greenhouse.io/acme/jobs/123" --profile ./me.json
    """
    from src.agents.form_analyzer import ClaudeFormAnalyzer
    from src.browser_service.adapters.playwright_adapter import PlaywrightAdapter
    from src.browser_service.models import LaunchOptions, NavigateRequest

    try:
        analyzer = ClaudeFormAnalyzer(claude_api_key=api_key)
    except ClaudeNotConfiguredError as e:
        console.print(f"[red]Claude is not configured:[/red] {e}")
        raise typer.Exit(1)

    profile = load_profile(profile_path, resume_path)
    job_context = JobContext(
        job_description=text_or_file(job_description) or "",
        cover_letter=text_or_file(cover_letter),
    )

    console.print(
        Panel(
            f"[bold]Autofill:[/bold] {url}\n"
            f"[dim]Candidate:[/dim] {profile.full_name}\n"
            f"[dim]Cache key:[/dim] {derive_cache_key(url) or 'not cacheable'}\n"
            f"[dim]Strategy:[/dim] {strategy.value}",
            title="Form Autofill",
        )
    )

    async def run_session() -> None:
        adapter = PlaywrightAdapter()
        await adapter.initialize(LaunchOptions.from_settings(settings, headless=not headed))
        try:
            nav = await adapter.navigate(NavigateRequest(url=url))
            if not nav.success:
                console.print(f"[red]Navigation failed:[/red] {nav.error}")
                raise typer.Exit(1)

            controller = AutofillController(
                adapter=adapter,
                analyzer=analyzer,
                cache=TemplateCache.from_settings(),
                profile=profile,
                job_context=job_context,
                strategy=strategy,
            )

            console.print("[dim]Analyzing form...[/dim]")
            summary = await controller.start()

            while True:
                render_summary(summary)

                choices = ["accept", "retry", "quit"] if summary.can_retry else ["accept", "quit"]
                if controller.state == AutofillState.EXHAUSTED:
                    console.print("[yellow]Retry limit reached.[/yellow]")

                action = Prompt.ask("Review the page, then", choices=choices, default="accept")
                if action == "accept":
                    await controller.accept()
                    console.print("[green]Accepted.[/green] Submit the form in the browser.")
                    Prompt.ask("Press Enter to close the browser", default="")
                    return
                if action == "quit":
                    console.print("[dim]Session abandoned.[/dim]")
                    return

                feedback = Prompt.ask("What went wrong? (optional)", default="")
                console.print("[dim]Re-analyzing form...[/dim]")
                summary = await controller.retry(feedback)
        finally:
            await adapter.close()

    init_langfuse()
    try:
        asyncio.run(run_session())
    except AutofillError as e:
        console.print(f"\n[red]Autofill failed:[/red] {e}")
        raise typer.Exit(1)
    finally:
        shutdown_langfuse()


# ============================================================================
# Template cache commands
# ============================================================================


@cache_app.command("list")
def cache_list():
    """List cached form templates."""
    cache = TemplateCache.from_settings()
    templates = asyncio.run(cache.list_templates())

    if not templates:
        console.print("[dim]Template cache is empty.[/dim]")
        return

    table = Table(title="Form templates")
    table.add_column("Key")
    table.add_column("Fields", justify="right")
    table.add_column("Failures", justify="right")
    table.add_column("Created")
    table.add_column("Expires")
    for template in templates:
        table.add_row(
            template.key,
            str(len(template.fields)),
            f"{template.fail_count}/{cache.max_fail_count}",
            template.created_at.strftime("%Y-%m-%d %H:%M"),
            (template.created_at + cache.ttl).strftime("%Y-%m-%d"),
        )
    console.print(table)


@cache_app.command("key")
def cache_key(url: Annotated[str, typer.Argument(help="Page URL")]):
    """Show the cache key a URL maps to."""
    key = derive_cache_key(url)
    if key is None:
        console.print("[yellow]Not a supported ATS platform, pages will not be cached.[/yellow]")
        raise typer.Exit(1)
    console.print(key)


@cache_app.command("invalidate")
def cache_invalidate(key: Annotated[str, typer.Argument(help="Cache key")]):
    """Remove one cached template."""
    cache = TemplateCache.from_settings()
    if not asyncio.run(cache.invalidate(key)):
        console.print(f"[yellow]No template for {key}[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]Removed[/green] {key}")


@cache_app.command("clear")
def cache_clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
):
    """Remove every cached template."""
    if not yes:
        typer.confirm("Remove all cached form templates?", abort=True)
    asyncio.run(TemplateCache.from_settings().clear())
    console.print("[green]Template cache cleared.[/green]")


@app.command()
def info():
    """Show configuration information."""
    console.print(Panel("[bold]Configuration[/bold]", title="Form Autofill"))
    console.print(f"  Environment: {settings.app_env.value}")
    console.print(f"  Debug: {settings.debug}")
    console.print(f"  Template cache: {settings.template_cache_path}")
    console.print(
        f"  Template TTL: {settings.template_cache_ttl_days} days, "
        f"evict after {settings.template_cache_max_fail_count} failures"
    )
    console.print(f"  Max retries: {settings.max_autofill_attempts}")
    console.print(
        f"  Langfuse: {'[green]Configured[/green]' if settings.langfuse_configured else '[yellow]Not configured[/yellow]'}"
    )

    if settings.bedrock_enabled:
        console.print(f"  [green]AWS Bedrock: Enabled[/green] ({settings.bedrock_region})")
        console.print(f"  Model: {settings.bedrock_model_id}")
    elif settings.anthropic_api_key:
        console.print("  [green]Claude API: Configured[/green]")
    else:
        console.print("  [yellow]Claude: Not configured (enable Bedrock or set API key)[/yellow]")


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
