"""Common interface of the bulk scrape strategies.

Two strategies implement BulkScrapeStrategy and callers pick one
deliberately:

- SequentialRetryStrategy: one roll number at a time, jittered backoff
  before every attempt, bounded retries.
- BoundedConcurrencyStrategy: a worker pool behind one shared pacing
  limiter, no retries.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol

from rollcall.common.data_models import ScrapeOutcome, StudentRecord
from rollcall.common.exceptions import RequestTimeoutException
from rollcall.driver.fetcher import ResultFetcher

OutcomeCallback = Callable[[ScrapeOutcome], Awaitable[None]]


class BulkScrapeStrategy(Protocol):
    """Runs many single roll number fetches and collects their outcomes."""

    async def run(
        self,
        roll_numbers: Sequence[str],
        stop_event: asyncio.Event | None = None,
    ) -> list[ScrapeOutcome]:
        """Scrape every roll number, or as many as possible before a stop.

        Args:
            roll_numbers: Roll numbers to scrape.
            stop_event: When set, no new fetches start and the outcomes
                gathered so far are returned.

        Returns:
            One outcome per processed roll number.
        """
        ...


async def fetch_with_timeout(
    fetcher: ResultFetcher, roll_number: str, timeout: float | None
) -> StudentRecord:
    """Run fetcher.fetch() bounded by an overall timeout.

    The timeout covers every path of the roll number, including token
    fetches.

    Raises:
        RequestTimeoutException: If the whole fetch takes longer than
            ``timeout`` seconds.
    """
    if timeout is None:
        return await fetcher.fetch(roll_number)
    try:
        return await asyncio.wait_for(fetcher.fetch(roll_number), timeout)
    except TimeoutError as e:
        raise RequestTimeoutException(
            url=f"roll number {roll_number}", timeout_seconds=timeout
        ) from e
