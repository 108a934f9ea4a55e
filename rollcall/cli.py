"""Rollcall CLI: fetch, bulk-scrape, decode and classify results.

Usage:
    rollcall fetch 21bcs042                     # Fetch one student's record
    rollcall bulk 21bcs001 21bcs002             # Scrape the given roll numbers
    rollcall bulk --batch 21 --output out.jsonl # Scrape a whole batch
    rollcall bulk --batch 21 --strategy pooled --workers 4 --delay 0.5
    rollcall decode saved_page.html             # Decode a saved result page
    rollcall classify 21dec017                  # Show programme and paths
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import Any

import click

from rollcall.common.data_models import ScrapeOutcome
from rollcall.common.exceptions import ResultFetchError, TransientException
from rollcall.common.param_models import BatchRange, ResultSiteConfig
from rollcall.common.request_manager import AsyncRequestManager
from rollcall.common.result_decoder import decode_result_html
from rollcall.common.roll_numbers import (
    batch_year,
    classify_department,
    classify_programme,
    generate_roll_numbers,
    resolve_result_paths,
)
from rollcall.driver.async_driver import BoundedConcurrencyStrategy
from rollcall.driver.callbacks import (
    combine_callbacks,
    count_outcomes,
    save_to_jsonl_path,
)
from rollcall.driver.fetcher import ResultFetcher
from rollcall.driver.sequential_driver import SequentialRetryStrategy
from rollcall.driver.strategy import BulkScrapeStrategy, OutcomeCallback

logger = logging.getLogger(__name__)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
@click.option(
    "--base-url",
    default=None,
    help="Result site base URL (scheme and host).",
)
@click.option(
    "--http-timeout",
    type=float,
    default=None,
    help="Per-request HTTP timeout in seconds.",
)
@click.version_option(package_name="rollcall")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    base_url: str | None,
    http_timeout: float | None,
) -> None:
    """Rollcall: scrape student results from the result site."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, Any] = {}
    if base_url:
        overrides["base_url"] = base_url.rstrip("/")
    if http_timeout is not None:
        overrides["timeout"] = http_timeout
    ctx.obj = ResultSiteConfig(**overrides)


@cli.command()
@click.argument("roll_number")
@click.pass_obj
def fetch(config: ResultSiteConfig, roll_number: str) -> None:
    """Fetch and print one student's record as JSON."""

    async def _go() -> str:
        async with AsyncRequestManager(config) as manager:
            record = await ResultFetcher(manager).fetch(roll_number)
        return record.model_dump_json(indent=2)

    try:
        output = asyncio.run(_go())
    except (ResultFetchError, TransientException) as e:
        raise click.ClickException(f"{type(e).__name__}: {e}") from e
    click.echo(output)


@cli.command()
@click.argument("roll_numbers", nargs=-1)
@click.option(
    "--batch",
    "batch_code",
    type=click.IntRange(0, 99),
    default=None,
    help="Two-digit batch code to enumerate (e.g. 21).",
)
@click.option(
    "--code",
    "programme_codes",
    multiple=True,
    help="Programme code to enumerate with --batch (repeatable, e.g. bcs).",
)
@click.option(
    "--max-serial",
    type=click.IntRange(1, 999),
    default=150,
    show_default=True,
    help="Highest serial per programme code with --batch.",
)
@click.option(
    "--strategy",
    "strategy_name",
    type=click.Choice(["sequential", "pooled"]),
    default="sequential",
    show_default=True,
    help="Bulk strategy to use.",
)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Number of concurrent workers (pooled).",
)
@click.option(
    "--delay",
    type=click.FloatRange(min=0),
    default=1.0,
    show_default=True,
    help="Minimum seconds between fetch starts (pooled).",
)
@click.option(
    "--retries",
    type=click.IntRange(min=0),
    default=5,
    show_default=True,
    help="Retries after the first attempt (sequential).",
)
@click.option(
    "--timeout",
    "fetch_timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Overall timeout per roll number, in seconds.",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False),
    default=None,
    help="Append outcomes to this JSONL file as they complete.",
)
@click.pass_obj
def bulk(
    config: ResultSiteConfig,
    roll_numbers: tuple[str, ...],
    batch_code: int | None,
    programme_codes: tuple[str, ...],
    max_serial: int,
    strategy_name: str,
    workers: int,
    delay: float,
    retries: int,
    fetch_timeout: float | None,
    output: str | None,
) -> None:
    """Scrape many roll numbers and print a summary.

    ROLL_NUMBERS are scraped in the given order; with --batch, the batch's
    generated roll numbers follow them. Ctrl-C stops the run and keeps the
    outcomes collected so far.

    \b
    Examples:
        rollcall bulk 21bcs001 21bcs002
        rollcall bulk --batch 21 --code bcs --max-serial 80 --output out.jsonl
        rollcall bulk --batch 21 --strategy pooled --workers 4 --delay 0.5
    """
    rolls = list(roll_numbers)
    if batch_code is not None:
        batch = BatchRange(
            batch_code=batch_code,
            programme_codes=list(programme_codes) or None,
            max_serial=max_serial,
        )
        rolls.extend(generate_roll_numbers(batch))
    if not rolls:
        raise click.UsageError("Give roll numbers or --batch")

    counts: dict[str, int] = {}
    callbacks: list[OutcomeCallback] = [count_outcomes(counts)]
    if output:
        callbacks.append(save_to_jsonl_path(output))
        click.echo(f"Output: {output}")
    on_outcome = combine_callbacks(*callbacks)

    click.echo(f"Strategy: {strategy_name}")
    click.echo(f"Roll numbers: {len(rolls)}")

    async def _go() -> list[ScrapeOutcome]:
        stop_event = asyncio.Event()
        async with AsyncRequestManager(config) as manager:
            fetcher = ResultFetcher(manager)
            strategy: BulkScrapeStrategy
            if strategy_name == "pooled":
                strategy = BoundedConcurrencyStrategy(
                    fetcher,
                    num_workers=workers,
                    pacing_interval=delay,
                    fetch_timeout=fetch_timeout,
                    on_outcome=on_outcome,
                )
            else:
                strategy = SequentialRetryStrategy(
                    fetcher,
                    max_retries=retries,
                    fetch_timeout=fetch_timeout,
                    on_outcome=on_outcome,
                )
            previous = _install_stop_handlers(stop_event)
            try:
                return await strategy.run(rolls, stop_event)
            finally:
                _restore_handlers(previous)

    outcomes = asyncio.run(_go())

    click.echo(f"Processed: {len(outcomes)}/{len(rolls)}")
    for kind, count in sorted(counts.items()):
        click.echo(f"  {kind}: {count}")


def _install_stop_handlers(stop_event: asyncio.Event) -> dict[int, Any]:
    """Make SIGINT/SIGTERM set stop_event; return the previous handlers."""
    loop = asyncio.get_running_loop()

    def handle_signal(signum: int, frame: Any) -> None:
        sig_name = signal.Signals(signum).name
        logger.info(f"Received {sig_name}, stopping after current fetches...")
        loop.call_soon_threadsafe(stop_event.set)

    previous: dict[int, Any] = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.getsignal(signum)
        signal.signal(signum, handle_signal)
    return previous


def _restore_handlers(previous: dict[int, Any]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


@cli.command()
@click.argument(
    "html_file", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
def decode(html_file: Path) -> None:
    """Decode a saved result page and print the record as JSON."""
    try:
        record = decode_result_html(html_file.read_bytes(), str(html_file))
    except ResultFetchError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}") from e
    click.echo(record.model_dump_json(indent=2))


@cli.command()
@click.argument("roll_number")
@click.pass_obj
def classify(config: ResultSiteConfig, roll_number: str) -> None:
    """Show what a roll number encodes and which pages would be queried."""
    info = {
        "roll_number": roll_number,
        "batch": batch_year(roll_number),
        "programme": classify_programme(roll_number),
        "department": classify_department(roll_number),
        "result_paths": resolve_result_paths(roll_number, config),
    }
    click.echo(json.dumps(info, indent=2))


def main() -> None:
    """Entry point for the ``rollcall`` console script."""
    cli()
