"""Shared fixtures: the mock result site and request plumbing."""

import asyncio
import socket
import threading
import time
from collections.abc import AsyncGenerator, Generator
from contextlib import closing

import pytest
from aiohttp import web

from rollcall.common.param_models import ResultSiteConfig
from rollcall.common.request_manager import AsyncRequestManager
from rollcall.common.token_cache import TokenCache
from rollcall.driver.fetcher import ResultFetcher
from tests.mock_server import (
    STUDENTS,
    create_app,
    generate_student_html,
)


@pytest.fixture
def student_html() -> str:
    """A two-semester result page for 21bcs001."""
    return generate_student_html(STUDENTS["21bcs001"])


# =============================================================================
# aiohttp test server fixtures
# =============================================================================


def find_free_port() -> int:
    """Find a free port on localhost.

    Returns:
        An available port number.
    """
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


class AioHttpTestServer:
    """Wrapper to run aiohttp server in a background thread."""

    def __init__(self, app: web.Application, port: int) -> None:
        self.app = app
        self.port = port
        self.host = "127.0.0.1"
        self._loop: asyncio.AbstractEventLoop | None = None
        self._runner: web.AppRunner | None = None
        self._thread: threading.Thread | None = None

    @property
    def url(self) -> str:
        """Get the base URL of the server."""
        return f"http://{self.host}:{self.port}"

    def start(self) -> None:
        """Start the server in a background thread."""
        self._thread = threading.Thread(target=self._run_server, daemon=True)
        self._thread.start()
        # Give the server time to start
        time.sleep(0.1)

    def _run_server(self) -> None:
        """Run the server in an asyncio event loop."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        async def start() -> None:
            self._runner = web.AppRunner(self.app)
            await self._runner.setup()
            site = web.TCPSite(self._runner, self.host, self.port)
            await site.start()

        self._loop.run_until_complete(start())
        self._loop.run_forever()

    def stop(self) -> None:
        """Stop the server and clean up resources."""
        if self._loop and self._runner:
            runner = self._runner
            future = asyncio.run_coroutine_threadsafe(
                runner.cleanup(), self._loop
            )
            try:
                future.result(timeout=2.0)
            except Exception:
                pass  # Best effort cleanup

        if self._loop:
            self._loop.call_soon_threadsafe(self._loop.stop)

        if self._thread:
            self._thread.join(timeout=2.0)


@pytest.fixture
def result_server() -> Generator[AioHttpTestServer, None, None]:
    """Create and start an aiohttp server running the mock result site.

    Yields:
        AioHttpTestServer instance with the mock site running.
    """
    app = create_app()
    port = find_free_port()
    server = AioHttpTestServer(app, port)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def server_url(result_server: AioHttpTestServer) -> str:
    """Get the base URL of the test server (e.g. "http://127.0.0.1:8080")."""
    return result_server.url


@pytest.fixture
def site_config(server_url: str) -> ResultSiteConfig:
    """Site configuration pointing at the mock server."""
    return ResultSiteConfig(base_url=server_url, timeout=5.0)


@pytest.fixture
def token_cache() -> TokenCache:
    """A fresh token cache, so tests don't share tokens."""
    return TokenCache()


@pytest.fixture
async def request_manager(
    site_config: ResultSiteConfig, token_cache: TokenCache
) -> AsyncGenerator[AsyncRequestManager, None]:
    """Request manager against the mock server, closed after the test."""
    async with AsyncRequestManager(site_config, token_cache) as manager:
        yield manager


@pytest.fixture
def fetcher(request_manager: AsyncRequestManager) -> ResultFetcher:
    return ResultFetcher(request_manager)
