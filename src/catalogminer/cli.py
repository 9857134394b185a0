"""Command-line interface for CatalogMiner."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from catalogminer import __version__
from catalogminer.config.config import Config, find_config_file
from catalogminer.crawler.http_client import HttpClient
from catalogminer.exceptions import CatalogMinerError, StartPageFetchError
from catalogminer.extractor.classifier import StructuralClassifier, detect_platform
from catalogminer.extractor.lexicon import Lexicon
from catalogminer.observability.logging import configure_logging
from catalogminer.observability.metrics import export_prometheus
from catalogminer.observability.observer import LoggingObserver, RecordingObserver
from catalogminer.pipeline import CatalogPipeline, PipelineResult
from catalogminer.protocols import PageSample

# Records go to stdout; everything human-facing goes to stderr
console = Console(stderr=True)
logger = structlog.get_logger(__name__)


def load_config(config_path: Optional[Path], log_level: Optional[str]) -> Config:
    path = config_path or find_config_file()
    config = Config.from_yaml(path) if path else Config()
    if log_level:
        config.monitoring.log_level = log_level
    return config


class _TeeObserver:
    """Forwards events to the logging observer and keeps them for ``--trace``."""

    def __init__(self, *observers: Any) -> None:
        self.observers = observers

    def record(self, stage: str, payload: Dict[str, Any]) -> None:
        for observer in self.observers:
            observer.record(stage, payload)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, path_type=Path), help="Configuration file path")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level (overrides the configuration file)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], log_level: Optional[str]) -> None:
    """CatalogMiner - product records from arbitrary shop catalog pages."""
    ctx.ensure_object(dict)
    config = load_config(config_path, log_level)
    configure_logging(config.monitoring)
    ctx.obj["config"] = config


def _summary_table(result: PipelineResult) -> Table:
    table = Table(title="Scrape Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Page type", f"{result.verdict.page_type.value} ({result.verdict.confidence:.2f})")
    table.add_row("Platform", result.platform or "-")
    table.add_row("Adapters", ", ".join(result.adapters) or "-")
    table.add_row("Pages visited", str(result.pages_visited))
    table.add_row("Records", str(len(result.records)))
    if result.enrichment is not None:
        report = result.enrichment
        table.add_row("Enriched / failed / skipped", f"{report.enriched} / {report.failed} / {report.skipped}")
    with_sku = sum(1 for record in result.records if record.sku)
    table.add_row("Records with SKU", str(with_sku))
    return table


def _trace_table(recorder: RecordingObserver) -> Table:
    table = Table(title="Pipeline Trace")
    table.add_column("#", style="dim")
    table.add_column("Stage", style="cyan")
    table.add_column("Payload")
    for index, (stage, payload) in enumerate(recorder.events, start=1):
        table.add_row(str(index), stage, json.dumps(payload, ensure_ascii=False, default=str))
    return table


@cli.command()
@click.argument("url")
@click.option("--limit", default=50, show_default=True, type=click.IntRange(min=1), help="Maximum number of products")
@click.option(
    "--speed",
    "speed_preset",
    default="normal",
    show_default=True,
    type=click.Choice(["normal", "fast"]),
    help="Politeness preset for detail-page enrichment",
)
@click.option("--no-details", is_flag=True, help="Skip detail-page enrichment")
@click.option("--max-pages", default=None, type=click.IntRange(min=1), help="Maximum listing pages to walk")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write JSON records to a file")
@click.option("--trace", is_flag=True, help="Print the pipeline's diagnostic events")
@click.option(
    "--metrics-out",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write Prometheus metrics in text format after the run",
)
@click.pass_context
def scrape(
    ctx: click.Context,
    url: str,
    limit: int,
    speed_preset: str,
    no_details: bool,
    max_pages: Optional[int],
    output: Optional[Path],
    trace: bool,
    metrics_out: Optional[Path],
) -> None:
    """Scrape product records starting at URL."""
    config: Config = ctx.obj["config"]
    recorder = RecordingObserver()
    observer = _TeeObserver(LoggingObserver(config.monitoring.metrics_enabled), recorder)
    pipeline = CatalogPipeline(config, observer=observer)

    try:
        result = asyncio.run(
            pipeline.run(
                url,
                limit=limit,
                speed_preset=speed_preset,  # type: ignore[arg-type]
                enable_detail_enrichment=not no_details,
                max_pages=max_pages,
            )
        )
    except StartPageFetchError as e:
        console.print(f"[red]Could not fetch start page: {e}[/red]")
        sys.exit(2)

    records: List[Dict[str, str]] = result.to_dicts()
    payload = json.dumps(records, ensure_ascii=False, indent=2)
    if output:
        output.write_text(payload + "\n", encoding="utf-8")
        console.print(f"[green]Wrote {len(records)} records to {output}[/green]")
    else:
        click.echo(payload)

    console.print(_summary_table(result))
    if trace:
        console.print(_trace_table(recorder))
    if metrics_out:
        metrics_out.write_text(export_prometheus(), encoding="utf-8")


@cli.command()
@click.argument("url")
@click.pass_context
def classify(ctx: click.Context, url: str) -> None:
    """Classify the page at URL and detect its shop platform."""
    config: Config = ctx.obj["config"]

    async def run_classification() -> PageSample:
        async with HttpClient(config) as client:
            fetched = await client.fetch_with_retry(url)
        return PageSample.create(fetched.final_url or url, fetched.markup)

    try:
        page = asyncio.run(run_classification())
    except CatalogMinerError as e:
        console.print(f"[red]Could not fetch page: {e}[/red]")
        sys.exit(2)

    verdict = StructuralClassifier(config.classifier, Lexicon(config.lexicon)).classify(page)
    platform = detect_platform(page.markup, page.url)
    output = {
        "url": page.url,
        "page_type": verdict.page_type.value,
        "confidence": verdict.confidence,
        "root_selector": verdict.root_selector,
        "signals": verdict.signals,
        "platform": platform.platform,
        "platform_confidence": platform.confidence,
        "platform_signals": platform.signals,
    }
    click.echo(json.dumps(output, ensure_ascii=False, indent=2))
    console.print(
        Panel.fit(
            f"[bold]{verdict.page_type.value}[/bold] ({verdict.confidence:.2f})\n"
            f"Platform: {platform.platform or '-'}",
            title="Classification",
            border_style="green",
        )
    )


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
