"""Typer CLI: ``aiscan scan``, ``aiscan validate`` and ``aiscan serve``."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console

from aiscan.config import load_config
from aiscan.schemas.config import ScannerConfig
from aiscan.schemas.progress import ProgressEvent

logger = logging.getLogger(__name__)

# Load .env file from the working directory (if it exists)
load_dotenv()

app = typer.Typer(
    name="aiscan",
    help="AI Opportunity Scanner: analyse a business website for AI adoption opportunities.",
    no_args_is_help=True,
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every HTTP request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load(config: Path | None) -> ScannerConfig:
    try:
        return load_config(config)
    except Exception as exc:
        console.print(f"[red]Config validation failed:[/] {exc}")
        raise typer.Exit(code=1)


def _make_client(dry_run: bool):
    if dry_run:
        from aiscan.shared.llm_client import DryRunClient
        return DryRunClient()
    from aiscan.shared.llm_client import LLMClient
    return LLMClient()


@app.command()
def validate(
    config: Path = typer.Option(..., "--config", "-c", help="Path to scanner-config.yml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Validate a configuration file without running a scan."""
    _setup_logging(verbose)
    cfg = _load(config)

    console.print("[green]Config is valid![/]\n")
    console.print(f"  Max pages:          {cfg.max_pages}")
    console.print(f"  Max opportunities:  {cfg.max_opportunities}")
    console.print(f"  Sitemap paths:      {', '.join(cfg.fetch.sitemap_paths)}")
    console.print(f"  Page timeout:       {cfg.fetch.page_timeout}s")
    console.print(
        f"  Models:             {cfg.models.discovery_model} / "
        f"{cfg.models.analysis_model} / {cfg.models.synthesis_model}"
    )
    console.print(
        f"  Rate limit:         {cfg.rate_limit.max_requests} per "
        f"{cfg.rate_limit.window_seconds:g}s"
    )


@app.command()
def scan(
    url: str = typer.Argument(..., help="Website to analyse, e.g. https://example.com"),
    max_pages: int = typer.Option(None, "--max-pages", "-n", help="Maximum pages to discover."),
    config: Path = typer.Option(None, "--config", "-c", help="Path to scanner-config.yml"),
    json_output: bool = typer.Option(False, "--json", help="Print raw NDJSON progress events."),
    output: Path = typer.Option(None, "--output", "-o", help="Write a Markdown report to this file."),
    email: str = typer.Option(None, "--email", help="Email the finished report to this address."),
    name: str = typer.Option(None, "--name", help="Recipient name for the emailed report."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use canned model replies (no API calls)."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Scan a website and report its AI opportunities."""
    _setup_logging(verbose)
    cfg = _load(config)

    if dry_run and not json_output:
        console.print("[yellow]DRY-RUN mode: no model API calls will be made.[/]\n")

    terminal = asyncio.run(
        _run_scan(cfg, url, max_pages, json_output=json_output, dry_run=dry_run)
    )

    if terminal.stage == "error":
        if not json_output:
            console.print(f"[red]Scan failed:[/] {terminal.detail}")
        raise typer.Exit(code=1)

    result = terminal.data
    if not json_output:
        from aiscan.shared.progress import print_result
        print_result(result)

    if output:
        from aiscan.output.markdown import render_markdown_report
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(render_markdown_report(result))
        if not json_output:
            console.print(f"[green]Markdown report written to:[/] {output}")

    if email:
        from aiscan.delivery.sender import ReportSender
        sender = ReportSender.from_env(cfg.delivery)
        outcome = asyncio.run(sender.send_scan_report(result, email, name))
        if not outcome.success:
            if json_output:
                logger.error("Report delivery failed: %s", outcome.error)
            else:
                console.print(f"[red]{outcome.error}[/]")
            raise typer.Exit(code=1)
        if not json_output:
            console.print(f"[green]{outcome.message}[/]")


async def _run_scan(
    cfg: ScannerConfig,
    url: str,
    max_pages: int | None,
    *,
    json_output: bool,
    dry_run: bool,
) -> ProgressEvent:
    from aiscan.orchestrator.scanner import Scanner, run_scan

    scanner = Scanner(_make_client(dry_run), cfg)

    if json_output:
        from aiscan.orchestrator.wire import encode_event
        return await run_scan(
            scanner, url, max_pages,
            on_event=lambda e: typer.echo(encode_event(e), nl=False),
        )

    from aiscan.shared.progress import ScanProgressDisplay
    with ScanProgressDisplay(url) as display:
        return await run_scan(scanner, url, max_pages, on_event=display.update)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", "-p", help="Port to listen on."),
    config: Path = typer.Option(None, "--config", "-c", help="Path to scanner-config.yml"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use canned model replies (no API calls)."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Run the streaming HTTP scan endpoint."""
    import uvicorn

    from aiscan.server import create_app

    _setup_logging(verbose)
    cfg = _load(config)
    if dry_run:
        console.print("[yellow]DRY-RUN mode: no model API calls will be made.[/]")
    console.print(f"[bold]Serving on[/] http://{host}:{port}")
    uvicorn.run(create_app(cfg, _make_client(dry_run)), host=host, port=port)
