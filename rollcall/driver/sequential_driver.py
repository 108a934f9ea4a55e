"""Sequential bulk scrape with jittered backoff and bounded retries.

Roll numbers are processed one at a time, in input order. Before every
attempt the strategy sleeps ``attempt + 1 + randint(0, 1)`` seconds, so the
first try waits one or two seconds and each retry waits a little longer.

A roll number ends in one of three ways:

- success: the record is collected.
- RollNumberNotFound (or UnknownProgramme): a terminal outcome, never
  retried.
- anything else, ``max_retries`` times in a row after the first attempt:
  a ``RetriesExhausted`` outcome carrying the last error.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Sequence

from rollcall.common.data_models import ScrapeOutcome
from rollcall.common.exceptions import (
    ResultFetchError,
    RollNumberNotFound,
    TransientException,
    UnknownProgramme,
)
from rollcall.driver.fetcher import ResultFetcher
from rollcall.driver.strategy import OutcomeCallback, fetch_with_timeout

logger = logging.getLogger(__name__)

RETRIES_EXHAUSTED = "RetriesExhausted"


class SequentialRetryStrategy:
    """Single-task bulk strategy with retries.

    Example usage::

        strategy = SequentialRetryStrategy(fetcher, max_retries=5)
        outcomes = await strategy.run(["21bcs001", "21bcs002"])
    """

    # Errors that no amount of retrying will change.
    terminal_errors: tuple[type[Exception], ...] = (
        RollNumberNotFound,
        UnknownProgramme,
    )

    def __init__(
        self,
        fetcher: ResultFetcher,
        max_retries: int = 5,
        fetch_timeout: float | None = None,
        on_outcome: OutcomeCallback | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the strategy.

        Args:
            fetcher: Fetcher used for every attempt.
            max_retries: Retries allowed after the first attempt.
            fetch_timeout: Optional overall timeout per attempt, in seconds.
            on_outcome: Optional async callback invoked with each outcome as
                soon as it's final.
            sleep: Coroutine used for backoff sleeps. Tests pass a fake.
            rng: Random source for the backoff jitter.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.fetcher = fetcher
        self.max_retries = max_retries
        self.fetch_timeout = fetch_timeout
        self.on_outcome = on_outcome
        self.sleep = sleep
        self.rng = rng or random.Random()

    def backoff_seconds(self, attempt: int) -> int:
        """Seconds to wait before zero-based ``attempt``."""
        return attempt + 1 + self.rng.randint(0, 1)

    async def run(
        self,
        roll_numbers: Sequence[str],
        stop_event: asyncio.Event | None = None,
    ) -> list[ScrapeOutcome]:
        """Scrape roll numbers one by one.

        Returns:
            Outcomes in input order. Shorter than the input only if
            stop_event was set.
        """
        total = len(roll_numbers)
        outcomes: list[ScrapeOutcome] = []
        logger.info(f"Total roll numbers to process: {total}")

        for roll_number in roll_numbers:
            outcome = await self._scrape_one(roll_number, stop_event)
            if outcome is None:
                logger.info(
                    f"Stop requested; returning {len(outcomes)}/{total} outcomes"
                )
                break
            outcomes.append(outcome)

            if outcome.ok:
                status = "Success"
            elif outcome.error_kind == RETRIES_EXHAUSTED:
                status = "Gave up"
            else:
                status = f"Skipping ({outcome.error_kind})"
            logger.info(
                f"{status} for roll number {roll_number}; "
                f"Done: {len(outcomes)}/{total}"
            )
            if self.on_outcome:
                await self.on_outcome(outcome)

        return outcomes

    async def _scrape_one(
        self, roll_number: str, stop_event: asyncio.Event | None
    ) -> ScrapeOutcome | None:
        """Run the retry loop for one roll number.

        Returns:
            The final outcome, or None if stop_event was set first.
        """
        last_error: Exception | None = None
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            if stop_event and stop_event.is_set():
                return None

            delay = self.backoff_seconds(attempt)
            logger.debug(f"Next fetch after {delay} seconds")
            await self.sleep(delay)

            try:
                record = await fetch_with_timeout(
                    self.fetcher, roll_number, self.fetch_timeout
                )
            except self.terminal_errors as e:
                return ScrapeOutcome.failure(
                    roll_number, e, attempts=attempt + 1
                )
            except (ResultFetchError, TransientException) as e:
                last_error = e
                logger.info(
                    f"Error for roll number {roll_number} "
                    f"({type(e).__name__}), will retry: "
                    f"{attempt + 1 < attempts}"
                )
                continue

            return ScrapeOutcome.success(
                roll_number, record, attempts=attempt + 1
            )

        return ScrapeOutcome.failure(
            roll_number,
            f"Gave up after {attempts} attempts: {last_error}",
            error_kind=RETRIES_EXHAUSTED,
            attempts=attempts,
        )
