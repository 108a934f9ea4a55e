"""Test utilities shared across the test modules.

This module provides reusable helpers for exercising the fetcher and the
bulk strategies without depending on network timing.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import parse_qs

import httpx

from rollcall.common.data_models import ScrapeOutcome, StudentRecord
from tests.mock_server import (
    STUDENTS,
    generate_form_html,
    generate_not_found_html,
    generate_student_html,
)

logger = logging.getLogger(__name__)


def collect_outcomes_async() -> tuple[
    Callable[[ScrapeOutcome], Awaitable[None]], list[ScrapeOutcome]
]:
    """Create an async on_outcome callback that collects outcomes in a list.

    Returns:
        A tuple of (async_callback_function, outcomes_list).

    Example:
        callback, outcomes = collect_outcomes_async()
        strategy = SequentialRetryStrategy(fetcher, on_outcome=callback)
        await strategy.run(["21bcs001"])
        assert len(outcomes) == 1
    """
    outcomes: list[ScrapeOutcome] = []

    async def callback(outcome: ScrapeOutcome) -> None:
        outcomes.append(outcome)

    return callback, outcomes


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


def make_record(roll_number: str, cgpi: float = 8.0) -> StudentRecord:
    """Build a minimal decoded record."""
    return StudentRecord(
        roll_number=roll_number,
        programme="B.Tech",
        batch=2021,
        cgpi=cgpi,
    )


class ScriptedFetcher:
    """Fake fetcher answering from a per-roll-number script.

    Each script entry is a list of results consumed one per call; an entry
    is either a StudentRecord to return or an exception to raise. The last
    entry repeats once the list is used up. Roll numbers without a script
    succeed with make_record().

    Attributes:
        calls: Roll numbers in the order fetch() was called.
        started_at: Event-loop time at which each fetch started.
    """

    def __init__(
        self,
        script: dict[str, list[Any]] | None = None,
        delay: float = 0.0,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.script = script or {}
        self.delay = delay
        self.delays = delays or {}
        self.calls: list[str] = []
        self.started_at: list[float] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, roll_number: str) -> StudentRecord:
        self.calls.append(roll_number)
        self.started_at.append(asyncio.get_running_loop().time())
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(roll_number, self.delay)
            if delay:
                await asyncio.sleep(delay)
            entries = self.script.get(roll_number)
            if not entries:
                return make_record(roll_number)
            entry = entries.pop(0) if len(entries) > 1 else entries[0]
            if isinstance(entry, BaseException):
                raise entry
            return entry
        finally:
            self.in_flight -= 1


def undecodable_site_transport(
    undecodable_pages: set[str],
) -> httpx.MockTransport:
    """Create an in-process result site whose POSTs can return corrupt bodies.

    GETs serve the token form. A POST to a page named in
    undecodable_pages (``"result.asp"`` or ``"result_dd.asp"``) answers
    with a gzip Content-Encoding over a body that isn't gzip, which httpx
    fails to decode. Other POSTs answer like the mock result site.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, text=generate_form_html())

        page = request.url.path.rsplit("/", 1)[-1]
        if page in undecodable_pages:
            return httpx.Response(
                200,
                headers={"Content-Encoding": "gzip"},
                content=b"not gzip at all",
            )

        form = parse_qs(request.content.decode())
        roll_number = form.get("RollNumber", [""])[0].lower()
        masters = page == "result_dd.asp"
        student = STUDENTS.get(roll_number)
        if student is None or (masters and not student.masters_semesters):
            return httpx.Response(200, text=generate_not_found_html())
        return httpx.Response(
            200, text=generate_student_html(student, masters=masters)
        )

    return httpx.MockTransport(handler)
