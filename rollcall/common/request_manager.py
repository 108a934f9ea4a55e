"""Request manager for the result site.

This module provides AsyncRequestManager, which encapsulates the HTTP
client, token acquisition and request resolution.

The request manager is responsible for:

- Maintaining the HTTP client (httpx.AsyncClient) and its cookie jar
- Fetching form pages and caching their anti-forgery tokens
- Submitting the result form for a roll number
- Converting HTTP responses and failures to Response objects and
  TransientException subclasses

This separation lets the fetcher and the bulk strategies focus on
scheduling and decoding while HTTP concerns live here.
"""

from __future__ import annotations

import logging
import ssl
from typing import Any

import httpx

from rollcall.common.exceptions import (
    HTMLResponseAssumptionException,
    RequestTimeoutException,
    RequestTransportException,
)
from rollcall.common.param_models import ResultSiteConfig
from rollcall.common.token_cache import (
    CSRF_FIELD,
    DEFAULT_TOKEN_CACHE,
    VERIFICATION_FIELD,
    FormTokens,
    TokenCache,
    extract_form_tokens,
)
from rollcall.data_types import HttpMethod, HTTPRequestParams, Response

logger = logging.getLogger(__name__)

SUBMIT_FIELD = "B1"
SUBMIT_VALUE = "Submit"

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "DNT": "1",
}


class AsyncRequestManager:
    """Manages HTTP requests against the result site.

    Example::

        async with AsyncRequestManager(config) as manager:
            response = await manager.fetch_result_page("21bcs042", url)
    """

    def __init__(
        self,
        config: ResultSiteConfig | None = None,
        token_cache: TokenCache | None = None,
        ssl_context: ssl.SSLContext | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the request manager.

        Args:
            config: Result site configuration. Defaults to the live site.
            token_cache: Token store. Defaults to the process-wide cache.
            ssl_context: Optional SSL context for HTTPS connections.
            transport: Optional httpx transport, replacing the network.
        """
        self.config = config or ResultSiteConfig()
        self.token_cache = (
            token_cache if token_cache is not None else DEFAULT_TOKEN_CACHE
        )
        self.timeout = self.config.timeout

        client_kwargs: dict[str, Any] = {
            "timeout": self.timeout,
            "follow_redirects": True,
            "headers": {"User-Agent": self.config.user_agent},
        }
        if ssl_context:
            client_kwargs["verify"] = ssl_context
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**client_kwargs)

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._client.aclose()

    async def __aenter__(self) -> AsyncRequestManager:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit - closes the client."""
        await self.close()

    async def resolve_request(self, params: HTTPRequestParams) -> Response:
        """Perform an HTTP request and return the Response.

        Raises:
            HTMLResponseAssumptionException: If server returns 5xx status code.
            RequestTimeoutException: If the request times out.
            RequestTransportException: If the connection fails or the
                response can't be read.
        """
        try:
            http_response = await self._client.request(
                method=params.method.value,
                url=params.url,
                headers=params.headers or None,
                data=params.data,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutException(
                url=params.url, timeout_seconds=self.timeout
            ) from e
        except httpx.RequestError as e:
            # Connection failures, undecodable bodies and redirect loops.
            raise RequestTransportException(
                url=params.url, reason=str(e) or type(e).__name__
            ) from e

        # Check for server errors (5xx status codes)
        if http_response.status_code >= 500:
            raise HTMLResponseAssumptionException(
                status_code=http_response.status_code,
                expected_codes=[200],
                url=params.url,
            )

        return Response(
            status_code=http_response.status_code,
            content=http_response.content,
            url=str(http_response.url),
        )

    async def get_form(self, path: str) -> Response:
        """GET a form page."""
        return await self.resolve_request(
            HTTPRequestParams(method=HttpMethod.GET, url=path)
        )

    async def submit_form(self, path: str, fields: dict[str, str]) -> Response:
        """POST form fields, url-encoded, with the site's expected headers."""
        return await self.resolve_request(
            HTTPRequestParams(
                method=HttpMethod.POST,
                url=path,
                data=fields,
                headers=dict(FORM_HEADERS),
            )
        )

    async def get_tokens(self, path: str) -> FormTokens:
        """Return the form tokens for a path, fetching them on first use.

        Raises:
            TokenNotFound: If the form page lacks either hidden field.
        """
        cached = self.token_cache.lookup(path)
        if cached is not None:
            return cached

        logger.info(f"Fetching form tokens from {path}")
        response = await self.get_form(path)
        tokens = extract_form_tokens(response.content, response.url)
        return self.token_cache.store(path, tokens)

    async def fetch_result_page(self, roll_number: str, path: str) -> Response:
        """Submit the result form for one roll number on one path."""
        tokens = await self.get_tokens(path)
        return await self.submit_form(
            path,
            {
                "RollNumber": roll_number,
                CSRF_FIELD: tokens.csrf_token,
                VERIFICATION_FIELD: tokens.verification_token,
                SUBMIT_FIELD: SUBMIT_VALUE,
            },
        )
