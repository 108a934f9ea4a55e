"""Single roll number fetcher.

ResultFetcher resolves the result paths for a roll number, fetches and
decodes each, and merges extended (dual-degree masters) semesters into the
primary record.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from rollcall.common.data_models import StudentRecord
from rollcall.common.exceptions import (
    ResultFetchError,
    TransientException,
    UnknownProgramme,
)
from rollcall.common.request_manager import AsyncRequestManager
from rollcall.common.result_decoder import decode_result_html
from rollcall.common.roll_numbers import resolve_result_paths

logger = logging.getLogger(__name__)

PathResolver = Callable[[str], list[str]]


class ResultFetcher:
    """Fetches and decodes one student's record.

    Example::

        async with AsyncRequestManager(config) as manager:
            fetcher = ResultFetcher(manager)
            record = await fetcher.fetch("21dec017")
    """

    def __init__(
        self,
        request_manager: AsyncRequestManager,
        path_resolver: PathResolver | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            request_manager: Request manager used for every HTTP call. Its
                token cache is shared by every fetch.
            path_resolver: Maps a roll number to its ordered result URLs.
                Defaults to resolve_result_paths() with the request
                manager's site config.
        """
        self.request_manager = request_manager
        self.path_resolver = path_resolver or (
            lambda roll_number: resolve_result_paths(
                roll_number, request_manager.config
            )
        )

    async def fetch_path(self, roll_number: str, path: str) -> StudentRecord:
        """Fetch and decode the result page of one path."""
        logger.info(f"Fetching result for roll number {roll_number} from {path}")
        response = await self.request_manager.fetch_result_page(
            roll_number, path
        )
        return decode_result_html(response.content, response.url)

    async def fetch(self, roll_number: str) -> StudentRecord:
        """Fetch a roll number's full record.

        The primary path's errors propagate unchanged, including
        RollNumberNotFound. Extended path failures are logged and skipped;
        the primary record is still returned.

        Raises:
            UnknownProgramme: If no result path exists for the roll number.
            ResultFetchError: If the primary page can't be decoded.
            TransientException: If the primary request fails.
        """
        paths = self.path_resolver(roll_number)
        if not paths:
            raise UnknownProgramme(roll_number)

        primary_path, *extended_paths = paths
        record = await self.fetch_path(roll_number, primary_path)
        if record.roll_number.lower() != roll_number.strip().lower():
            logger.warning(
                f"Requested {roll_number} but page shows {record.roll_number}",
                extra={"request_url": primary_path},
            )

        for path in extended_paths:
            try:
                extended = await self.fetch_path(roll_number, path)
            except (ResultFetchError, TransientException) as e:
                logger.warning(
                    f"Skipping extended result for {roll_number}: {e}",
                    extra={"request_url": path, "error_kind": type(e).__name__},
                )
                continue
            record.merge_extended(extended)

        return record
