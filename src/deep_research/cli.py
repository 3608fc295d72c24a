"""
Deep Research CLI - Command-line interface for recursive research.

Commands:
- init: Write a research.toml configuration file
- research: Run a research session
- models: Show the configured model and search providers (optionally verify the key)
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import ResearchConfig, create_default_config, load_config
from .errors import AgentAuthenticationError, ValidationError
from .utils.logging import setup_logging

app = typer.Typer(
    name="deep-research",
    help="Recursive, budget-bounded research with source reliability scoring",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()


@app.command()
def init(
    path: Path = typer.Option(Path.cwd(), "--path", "-p", help="Project directory"),
    provider: str = typer.Option("anthropic", "--provider", help="Model provider: anthropic or openrouter"),
    model: str = typer.Option("claude-sonnet-4-20250514", "--model", "-m", help="Model identifier"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing research.toml"),
) -> None:
    """
    Write a default research.toml.

    Example:
        deep-research init
        deep-research init --provider openrouter --model anthropic/claude-sonnet-4
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
        config_path = path / "research.toml"

        if config_path.exists() and not force:
            console.print(
                f"[yellow]Warning:[/yellow] {config_path} already exists. "
                "Use --force to overwrite."
            )
            raise typer.Exit(1)

        create_default_config(config_path, provider=provider, model=model)

        console.print(Panel.fit(
            f"[green]✓[/green] Wrote configuration: {config_path}\n\n"
            "[dim]Next steps:[/dim]\n"
            "1. Set API keys in environment (ANTHROPIC_API_KEY, TAVILY_API_KEY, etc.)\n"
            "2. Edit research.toml to configure search providers and cache\n"
            '3. Run a session: deep-research research "your question"',
            title="Project Initialized",
            border_style="green",
        ))

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def research(
    query: str = typer.Argument(..., help="Research question"),
    depth: int = typer.Option(2, "--depth", "-d", help="Levels to expand (1-5)"),
    breadth: int = typer.Option(3, "--breadth", "-b", help="Queries per level (1-5)"),
    budget: Optional[int] = typer.Option(None, "--budget", help="Soft cap on model tokens"),
    preferences: Optional[str] = typer.Option(
        None, "--preferences", "-p", help='Source preferences, e.g. "avoid SEO listicles"'
    ),
    config: Path = typer.Option(Path("research.toml"), "--config", "-c", help="Config file path"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write results to this file"),
    format: str = typer.Option("markdown", "--format", "-f", help="Format: markdown or json"),
    log_level: str = typer.Option("WARNING", "--log-level", "-l", help="Log level"),
) -> None:
    """
    Run a research session.

    Each level plans up to BREADTH queries, searches them concurrently,
    scores every new source and merges what it learned before going deeper.

    Example:
        deep-research research "state of solid-state batteries" -d 3 -b 4
        deep-research research "rust async runtimes" --budget 50000 -o out.json -f json
    """
    setup_logging(level=log_level)

    if format not in ("markdown", "json"):
        console.print(f"[red]Error:[/red] Unsupported format: {format}")
        raise typer.Exit(1)

    try:
        asyncio.run(
            _run_research(config, query, depth, breadth, budget, preferences, output, format)
        )
    except ValidationError as e:
        console.print(f"[red]Invalid request:[/red] {e}")
        raise typer.Exit(2)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(0)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


async def _run_research(
    config_path: Path,
    query: str,
    depth: int,
    breadth: int,
    budget_cap: Optional[int],
    preferences: Optional[str],
    output: Optional[Path],
    format: str,
) -> None:
    """Run one session with a progress display."""
    from .builder import build_cache, build_orchestrator
    from .export import (
        export_to_json,
        export_to_markdown,
        render_markdown,
        to_research_sources,
    )
    from .orchestrator.core import ResearchProgress

    cfg = load_config(config_path)
    cache = build_cache(cfg.cache)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total} queries"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Planning...", total=None)

        async def on_progress(p: ResearchProgress) -> None:
            level = p.total_depth - p.current_depth + 1
            description = f"Level {min(level, p.total_depth)}/{p.total_depth}"
            if p.current_query:
                description += f" | {p.current_query[:60]}"
            progress.update(
                task,
                description=description,
                completed=p.completed_queries,
                total=p.total_queries or None,
            )

        try:
            orchestrator = build_orchestrator(cfg, cache=cache, progress_callback=on_progress)
            result = await orchestrator.conduct_research(
                query,
                depth=depth,
                breadth=breadth,
                budget_cap=budget_cap,
                preferences=preferences,
            )
        finally:
            if cache is not None and hasattr(cache, "close"):
                await cache.close()

    stats = result.stats
    reliability = (
        f"{result.average_reliability:.0%}" if result.reliability_defined else "n/a"
    )
    budget = result.budget_summary
    tokens = f"{budget.total}" if budget.cap is None else f"{budget.total}/{budget.cap}"

    console.print(
        f"[green]✓[/green] {len(result.visited_urls)} sources | "
        f"{len(result.learnings)} learnings | reliability {reliability} | "
        f"{tokens} tokens | {stats.queries_failed} failed queries | "
        f"stopped: {stats.stop_reason.value if stats.stop_reason else 'n/a'}"
    )

    if format == "json":
        payload = to_research_sources(
            result,
            depth=depth,
            breadth=breadth,
            budget_cap=budget_cap,
            preferences=preferences,
            model_name=f"{cfg.model.provider}:{cfg.model.model}",
        )
        if output:
            export_to_json(payload, output)
            console.print(f"[green]✓[/green] Exported to {output}")
        else:
            console.print_json(data=payload)
    else:
        if output:
            export_to_markdown(result, output)
            console.print(f"[green]✓[/green] Exported to {output}")
        else:
            console.print(render_markdown(result), markup=False)


@app.command()
def models(
    config: Path = typer.Option(Path("research.toml"), "--config", "-c", help="Config file path"),
    verify: bool = typer.Option(False, "--verify", help="Send a minimal request to check the model API key"),
) -> None:
    """
    Show the configured model and search providers.

    Example:
        deep-research models
        deep-research models --verify
    """
    try:
        cfg = load_config(config)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    _print_models(cfg)

    if not verify:
        return

    try:
        asyncio.run(_verify_model(cfg))
    except AgentAuthenticationError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] {cfg.model.provider} credentials verified")


async def _verify_model(cfg: ResearchConfig) -> None:
    from .builder import build_model_adapter

    adapter = build_model_adapter(cfg)
    await adapter.verify()


def _print_models(cfg: ResearchConfig) -> None:
    import os

    model_table = Table(title="Model")
    model_table.add_column("Provider")
    model_table.add_column("Model")
    model_table.add_column("API key")
    model_table.add_row(
        cfg.model.provider,
        cfg.model.model,
        _key_status(cfg.model.api_key_env, os.environ.get(cfg.model.api_key_env)),
    )
    console.print(model_table)

    search_table = Table(title="Search providers (fallback order)")
    search_table.add_column("Name")
    search_table.add_column("Priority", justify="right")
    search_table.add_column("Endpoint")
    search_table.add_column("API key")
    for provider in cfg.search.ordered_providers():
        key_env = provider.api_key_env
        search_table.add_row(
            provider.name,
            str(provider.priority),
            provider.base_url or "default",
            _key_status(key_env, os.environ.get(key_env) if key_env else None),
        )
    console.print(search_table)


def _key_status(env_name: Optional[str], value: Optional[str]) -> str:
    if env_name is None:
        return "[dim]not required[/dim]"
    if value:
        return f"[green]✓[/green] {env_name}"
    return f"[red]✗[/red] {env_name} not set"


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
