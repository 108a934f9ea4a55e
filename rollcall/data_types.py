"""Request and response types shared by the request manager and drivers.

The request manager turns an HTTPRequestParams into an HTTP call and wraps
the answer in a Response. Drivers and the decoder only ever see Response,
never the underlying httpx objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class HttpMethod(Enum):
    """HTTP methods used against the result site."""

    GET = "GET"
    POST = "POST"


@dataclass(frozen=True)
class HTTPRequestParams:
    """Parameters for an HTTP request.

    :param method: HTTP method for the request: ``GET`` or ``POST``.
    :param url: Absolute URL for the request.
    :param data: (optional) Dictionary of form fields, sent
        ``application/x-www-form-urlencoded``.
    :param headers: (optional) Dictionary of HTTP Headers to send with the
        request, on top of the client defaults.
    """

    method: HttpMethod
    url: str
    data: dict[str, str] | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class Response:
    """HTTP response from fetching a page.

    Attributes:
        status_code: HTTP status code (200, 404, etc.).
        content: Raw response bytes.
        url: Final URL after any redirects. Decode errors report this URL.
    """

    status_code: int
    content: bytes
    url: str
