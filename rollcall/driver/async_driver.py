"""Bounded-concurrency bulk scrape.

BoundedConcurrencyStrategy runs ``num_workers`` worker tasks fed from a
bounded queue by one feeder task, while the calling coroutine collects
outcomes as they complete.

Pacing is global: one pyrate_limiter Limiter with a single
``Rate(1, pacing_interval)`` is shared by every worker, so the whole pool
starts at most one fetch per interval. Adding workers raises concurrency
(useful when the site is slow to answer) but never raises the request
rate.

There is no retry loop. Every error becomes that roll number's final
outcome; callers wanting retries resubmit the failed roll numbers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from pyrate_limiter import InMemoryBucket, Limiter, Rate

from rollcall.common.data_models import ScrapeOutcome
from rollcall.common.exceptions import ResultFetchError, TransientException
from rollcall.driver.fetcher import ResultFetcher
from rollcall.driver.strategy import OutcomeCallback, fetch_with_timeout

logger = logging.getLogger(__name__)


class BoundedConcurrencyStrategy:
    """Worker-pool bulk strategy with shared pacing and cancellation.

    Example usage::

        strategy = BoundedConcurrencyStrategy(
            fetcher, num_workers=4, pacing_interval=0.5, fetch_timeout=60
        )
        stop_event = asyncio.Event()
        outcomes = await strategy.run(roll_numbers, stop_event)
    """

    def __init__(
        self,
        fetcher: ResultFetcher,
        num_workers: int = 1,
        pacing_interval: float | None = None,
        fetch_timeout: float | None = None,
        on_outcome: OutcomeCallback | None = None,
    ) -> None:
        """Initialize the strategy.

        Args:
            fetcher: Fetcher shared by every worker.
            num_workers: Number of concurrent workers.
            pacing_interval: Minimum seconds between fetch starts across the
                whole pool. None or 0 disables pacing.
            fetch_timeout: Optional overall timeout per roll number, in
                seconds. A timeout is recorded as that roll number's outcome.
            on_outcome: Optional async callback invoked with each outcome as
                it is collected.
        """
        if num_workers < 1:
            raise ValueError("num_workers must be >= 1")
        self.fetcher = fetcher
        self.num_workers = num_workers
        self.pacing_interval = pacing_interval
        self.fetch_timeout = fetch_timeout
        self.on_outcome = on_outcome

        self.limiter: Limiter | None = None
        if pacing_interval:
            interval_ms = max(1, int(pacing_interval * 1000))
            self.limiter = Limiter(InMemoryBucket([Rate(1, interval_ms)]))

    async def run(
        self,
        roll_numbers: Sequence[str],
        stop_event: asyncio.Event | None = None,
    ) -> list[ScrapeOutcome]:
        """Scrape roll numbers with the worker pool.

        Returns:
            Outcomes in completion order. Without a stop, exactly one per
            input roll number. After a stop, the outcomes collected so far.
        """
        total = len(roll_numbers)
        collected: list[ScrapeOutcome] = []
        stop_event = stop_event or asyncio.Event()
        logger.info(
            f"Scraping in bulk: {total} roll numbers, "
            f"{self.num_workers} workers"
        )

        if stop_event.is_set() or total == 0:
            return collected

        roll_queue: asyncio.Queue[str | None] = asyncio.Queue(
            maxsize=self.num_workers
        )
        result_queue: asyncio.Queue[ScrapeOutcome] = asyncio.Queue(
            maxsize=self.num_workers
        )

        feeder = asyncio.create_task(
            self._feeder(roll_numbers, roll_queue, stop_event)
        )
        workers = [
            asyncio.create_task(
                self._worker(i, roll_queue, result_queue, stop_event)
            )
            for i in range(self.num_workers)
        ]
        stop_wait = asyncio.create_task(stop_event.wait())

        try:
            while len(collected) < total and not stop_event.is_set():
                get_result = asyncio.create_task(result_queue.get())
                done, _pending = await asyncio.wait(
                    {get_result, stop_wait},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if get_result not in done:
                    get_result.cancel()
                    break

                outcome = get_result.result()
                collected.append(outcome)
                logger.info(
                    f"Progress: {len(collected)}/{total} "
                    f"({len(collected) / total * 100:.1f}%)"
                )
                if self.on_outcome:
                    await self.on_outcome(outcome)

            if len(collected) < total:
                logger.info(
                    f"Stop requested; returning {len(collected)}/{total} outcomes"
                )
            else:
                logger.info(
                    f"Scraping completed: {len(collected)} outcomes collected"
                )
        finally:
            # Workers may be mid-fetch; in-flight fetches are abandoned.
            tasks = [feeder, *workers, stop_wait]
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        return collected

    async def _feeder(
        self,
        roll_numbers: Sequence[str],
        roll_queue: asyncio.Queue[str | None],
        stop_event: asyncio.Event,
    ) -> None:
        """Push roll numbers, then one end-of-work sentinel per worker."""
        for roll_number in roll_numbers:
            if stop_event.is_set():
                return
            await roll_queue.put(roll_number)
        for _ in range(self.num_workers):
            await roll_queue.put(None)

    async def _worker(
        self,
        worker_id: int,
        roll_queue: asyncio.Queue[str | None],
        result_queue: asyncio.Queue[ScrapeOutcome],
        stop_event: asyncio.Event,
    ) -> None:
        """Worker coroutine that scrapes roll numbers from the queue.

        Args:
            worker_id: Identifier for this worker (for debugging).
        """
        while not stop_event.is_set():
            roll_number = await roll_queue.get()
            if roll_number is None:
                break

            # Each fetch waits for its own pacing tick.
            if self.limiter:
                await self.limiter.try_acquire_async(name="fetch", weight=1)
            if stop_event.is_set():
                break

            logger.debug(f"Worker {worker_id} fetching {roll_number}")
            outcome = await self._scrape_one(roll_number)
            await result_queue.put(outcome)

    async def _scrape_one(self, roll_number: str) -> ScrapeOutcome:
        try:
            record = await fetch_with_timeout(
                self.fetcher, roll_number, self.fetch_timeout
            )
        except (ResultFetchError, TransientException) as e:
            logger.info(
                f"Error for roll number {roll_number}: {type(e).__name__}"
            )
            return ScrapeOutcome.failure(roll_number, e)
        except Exception as e:
            # Unexpected failures still produce an outcome so the collector
            # never waits on a roll number that will not arrive.
            logger.exception(f"Unexpected error for roll number {roll_number}")
            return ScrapeOutcome.failure(roll_number, e)
        return ScrapeOutcome.success(roll_number, record)
