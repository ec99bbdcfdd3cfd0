"""
Main CLI application for the Cookie Harvester.

Provides the command-line interface for:
- Crawling a website and recording its cookies
- Summarising a saved result file
- Managing configuration
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cookie_harvester import __version__
from cookie_harvester.config import (
    Settings,
    apply_overrides,
    get_default_config_path,
    load_config,
)
from cookie_harvester.core.exceptions import CookieHarvesterError
from cookie_harvester.utils.logging import get_logger, setup_logging

# Initialize Typer app
app = typer.Typer(
    name="cookie-harvester",
    help="Cookie Harvester - Crawl a website and record the cookies each page sets",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
logger = get_logger(__name__)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(
            f"[bold blue]Cookie Harvester[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """
    Cookie Harvester - Crawl a website and record cookie-setting behaviour.

    Use 'cookie-harvester --help' for command list.
    """


@app.command()
def crawl(
    url: Optional[str] = typer.Argument(
        None,
        help="URL to start crawling from (defaults to START_URL)",
    ),
    max_pages: Optional[int] = typer.Option(
        None,
        "--max-pages",
        "-m",
        help="Maximum pages to visit",
        min=1,
    ),
    wait_ms: Optional[int] = typer.Option(
        None,
        "--wait-ms",
        help="Milliseconds to wait after each interaction click",
        min=0,
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        "-j",
        help="Maximum visits in flight",
        min=1,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Result JSON path",
    ),
    headless: Optional[bool] = typer.Option(
        None,
        "--headless/--no-headless",
        help="Run browser in headless mode",
    ),
    same_domain: Optional[bool] = typer.Option(
        None,
        "--same-domain/--any-domain",
        help="Restrict traversal to the seed hostname and its subdomains",
    ),
    interact: Optional[bool] = typer.Option(
        None,
        "--interact/--no-interact",
        help="Click interactive elements and record cookies set afterwards",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose logging",
    ),
) -> None:
    """
    Crawl a website and save the cookies observed on each page.

    Example:
        cookie-harvester crawl https://example.com --max-pages 20
    """
    try:
        settings = apply_overrides(
            load_config(config_file or get_default_config_path()),
            {
                "crawler": {
                    "start_url": url,
                    "max_pages": max_pages,
                    "wait_after_click_ms": wait_ms,
                    "max_concurrency": concurrency,
                    "same_domain_only": same_domain,
                    "interact": interact,
                },
                "browser": {"headless": headless},
                "output": {"path": output},
            },
        )
    except CookieHarvesterError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    setup_logging(settings.logging, level="DEBUG" if verbose else None)

    if not settings.crawler.start_url:
        console.print(
            "[red]Error:[/red] no start URL given (pass URL or set START_URL)")
        raise typer.Exit(1)

    try:
        asyncio.run(_crawl_async(settings, show_metrics=verbose))
    except KeyboardInterrupt:
        console.print("\n[yellow]Crawl cancelled by user[/yellow]")
        raise typer.Exit(1)
    except CookieHarvesterError as e:
        console.print(f"[red]Error:[/red] {e}")
        logger.error(f"Crawler fatal error: {e}")
        raise typer.Exit(1)


async def _crawl_async(settings: Settings, show_metrics: bool = False) -> None:
    """Run the crawl, write the result and print a summary."""
    from cookie_harvester.crawler import CrawlOrchestrator
    from cookie_harvester.output import write_result

    crawler_settings = settings.crawler

    console.print(Panel(
        f"[bold]Crawling:[/bold] {crawler_settings.start_url}\n"
        f"[dim]Max pages: {crawler_settings.max_pages} | "
        f"Concurrency: {crawler_settings.max_concurrency} | "
        f"Same domain: {crawler_settings.same_domain_only} | "
        f"Interact: {crawler_settings.interact}[/dim]",
        title="Cookie Harvester",
        border_style="blue",
    ))

    orchestrator = CrawlOrchestrator(crawler_settings, settings.browser)

    with console.status("[cyan]Crawling..."):
        result = await orchestrator.crawl()

    path = write_result(result, settings.output.path, indent=settings.output.indent)

    console.print()
    console.print(Panel(
        f"[green]✓ Crawl complete![/green]\n\n"
        f"Pages visited: [bold]{len(result.visited)}[/bold]\n"
        f"Failed: [bold]{result.pages_failed}[/bold] | "
        f"Out of scope: [bold]{result.pages_out_of_scope}[/bold]\n"
        f"Cookie events: [bold]{len(result.cookie_log)}[/bold] "
        f"({result.cookies_recorded} cookies)\n"
        f"Duration: [bold]{result.duration_seconds:.1f}s[/bold]\n"
        f"Results: [dim]{path}[/dim]",
        title="Summary",
        border_style="green",
    ))

    if show_metrics:
        console.print(orchestrator.metrics.summary(), markup=False, highlight=False)


@app.command()
def report(
    path: Path = typer.Argument(
        ...,
        help="Result JSON written by 'crawl'",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """
    Summarise a saved crawl result.

    Example:
        cookie-harvester report results/cookies.json
    """
    from cookie_harvester.output import load_result

    try:
        document = load_result(path)
    except CookieHarvesterError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    visited = document.get("visited", [])
    cookie_log = document.get("cookieLog", [])

    console.print(Panel(
        f"[bold]Started:[/bold] {document.get('startedAt', 'N/A')}\n"
        f"[bold]Pages visited:[/bold] {len(visited)}\n"
        f"[bold]Cookie events:[/bold] {len(cookie_log)}",
        title=str(path),
        border_style="blue",
    ))

    if not cookie_log:
        console.print("[yellow]No cookies recorded[/yellow]")
        return

    table = Table(show_header=True)
    table.add_column("Step", style="dim")
    table.add_column("URL", style="cyan")
    table.add_column("Cookie")
    table.add_column("Domain", style="dim")

    for event in cookie_log:
        for cookie in event.get("cookies", []):
            table.add_row(
                event.get("step", ""),
                event.get("url", ""),
                cookie.get("name", ""),
                cookie.get("domain", ""),
            )

    console.print(table)


@app.command()
def config(
    show: bool = typer.Option(
        False,
        "--show",
        "-s",
        help="Print the effective configuration",
    ),
    init: bool = typer.Option(
        False,
        "--init",
        help="Write a config file populated with the defaults",
    ),
    section: Optional[str] = typer.Option(
        None,
        "--section",
        help="Limit --show to one section (crawler, browser, output, logging)",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Where --init writes the file (default: ./config.yaml)",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file to load for --show",
    ),
) -> None:
    """
    Inspect or bootstrap the configuration.

    --show reflects the YAML file and environment variables exactly as a
    crawl would see them.

    Examples:
        cookie-harvester config --show --section crawler
        cookie-harvester config --init --output ./my-config.yaml
    """
    if init:
        _init_config(output or Path("config.yaml"))
    elif show:
        _show_config(config_file, section)
    else:
        console.print(
            "Nothing to do: pass --show to print the configuration or --init to write one")


def _show_config(config_file: Optional[Path], section: Optional[str]) -> None:
    try:
        settings = load_config(config_file or get_default_config_path())
    except CookieHarvesterError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    sections = settings.model_dump(mode="json")
    if section is not None:
        if section not in sections:
            console.print(
                f"[red]Unknown section:[/red] {section} "
                f"(choose from {', '.join(sections)})")
            raise typer.Exit(1)
        sections = {section: sections[section]}

    for name, values in sections.items():
        table = Table(title=name, title_justify="left", show_header=False)
        table.add_column("Setting", style="cyan")
        table.add_column("Value")
        for key, value in values.items():
            table.add_row(key, "[dim]unset[/dim]" if value is None else str(value))
        console.print(table)


def _init_config(output_path: Path) -> None:
    import yaml

    if output_path.exists() and not typer.confirm(f"File {output_path} exists. Overwrite?"):
        raise typer.Exit(0)

    body = yaml.safe_dump(
        Settings().model_dump(mode="json"),
        default_flow_style=False,
        sort_keys=False,
    )
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        "# Cookie Harvester configuration.\n"
        "# Environment variables (COOKIE_HARVESTER__<SECTION>__<KEY>) override these values.\n"
        + body,
        encoding="utf-8",
    )

    console.print(f"[green]✓[/green] Wrote default configuration to {output_path}")


if __name__ == "__main__":
    app()
