"""Callback functions for the strategies' on_outcome parameter.

Each factory returns an async callback that the bulk strategies await once
per final ScrapeOutcome, as soon as it's known. This lets a long bulk run
persist or report progress without waiting for the full result list.

Example::

    from rollcall.driver.callbacks import save_to_jsonl_file
    from rollcall.driver.sequential_driver import SequentialRetryStrategy

    with open("output.jsonl", "w") as f:
        strategy = SequentialRetryStrategy(
            fetcher, on_outcome=save_to_jsonl_file(f)
        )
        outcomes = await strategy.run(roll_numbers)
"""

import json
from pathlib import Path
from typing import TextIO

from rollcall.common.data_models import ScrapeOutcome
from rollcall.driver.strategy import OutcomeCallback


def _write_line(file_handle: TextIO, outcome: ScrapeOutcome) -> None:
    json.dump(outcome.model_dump(mode="json"), file_handle)
    file_handle.write("\n")
    file_handle.flush()  # Ensure each outcome survives an interrupted run


def save_to_jsonl_file(file_handle: TextIO) -> OutcomeCallback:
    """Create a callback that writes each outcome to a JSONL file.

    Args:
        file_handle: An open file handle to write JSON lines to.
            The caller is responsible for opening and closing the file.

    Returns:
        A callback that can be passed as on_outcome.
    """

    async def callback(outcome: ScrapeOutcome) -> None:
        _write_line(file_handle, outcome)

    return callback


def save_to_jsonl_path(file_path: Path | str) -> OutcomeCallback:
    """Create a callback that appends each outcome to a JSONL file.

    Warning:
        This opens the file in append mode ("a") on first use, so reruns
        add to an existing file.

    Args:
        file_path: Path to the JSONL file to append to.

    Returns:
        A callback that can be passed as on_outcome.
    """
    path = Path(file_path)

    async def callback(outcome: ScrapeOutcome) -> None:
        with path.open("a") as file_handle:
            _write_line(file_handle, outcome)

    return callback


def print_outcome(prefix: str = "") -> OutcomeCallback:
    """Create a callback that prints a one-line summary of each outcome.

    Example::

        strategy = BoundedConcurrencyStrategy(fetcher, on_outcome=print_outcome())
        # Prints: 21bcs042 ok CGPI 8.91
        #         21bcs043 RollNumberNotFound
    """

    async def callback(outcome: ScrapeOutcome) -> None:
        if outcome.record is not None:
            print(f"{prefix}{outcome.roll_number} ok CGPI {outcome.record.cgpi}")
        else:
            print(f"{prefix}{outcome.roll_number} {outcome.error_kind}")

    return callback


def count_outcomes(counter: dict[str, int] | None = None) -> OutcomeCallback:
    """Create a callback that tallies outcomes.

    The counts are stored in a mutable dict so they can be read after the
    run: "ok" for records, otherwise the outcome's error_kind.

    Example::

        counts: dict[str, int] = {}
        strategy = SequentialRetryStrategy(fetcher, on_outcome=count_outcomes(counts))
        await strategy.run(roll_numbers)
        print(counts)  # {"ok": 40, "RollNumberNotFound": 3}
    """
    if counter is None:
        counter = {}

    async def callback(outcome: ScrapeOutcome) -> None:
        key = "ok" if outcome.ok else (outcome.error_kind or "error")
        counter[key] = counter.get(key, 0) + 1

    return callback


def combine_callbacks(*callbacks: OutcomeCallback) -> OutcomeCallback:
    """Combine multiple callbacks into a single callback.

    Callbacks run in the given order for each outcome.
    """

    async def callback(outcome: ScrapeOutcome) -> None:
        for cb in callbacks:
            await cb(outcome)

    return callback
