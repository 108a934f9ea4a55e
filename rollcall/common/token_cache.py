"""Anti-forgery token cache.

The result form embeds two hidden fields, ``CSRFToken`` and
``RequestVerificationToken``, that must be echoed back in the POST. They
are the same for every roll number on a given form path, so they are
fetched once per path and kept for the life of the process.

There is no expiry and no invalidation. A token that goes stale
server-side is never refreshed automatically; clear() exists for tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rollcall.common.checked_html import parse_html
from rollcall.common.exceptions import TokenNotFound

logger = logging.getLogger(__name__)

CSRF_FIELD = "CSRFToken"
VERIFICATION_FIELD = "RequestVerificationToken"


@dataclass(frozen=True)
class FormTokens:
    """The hidden-field pair echoed back with every result form POST."""

    csrf_token: str
    verification_token: str


class TokenCache:
    """Populate-once mapping from form path to FormTokens.

    Lookups and stores are plain dict operations, so concurrent workers on
    one event loop can share a cache. If two workers race to populate the
    same path, the first store wins and both tokens are equivalent anyway.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, FormTokens] = {}

    def lookup(self, path: str) -> FormTokens | None:
        return self._tokens.get(path)

    def store(self, path: str, tokens: FormTokens) -> FormTokens:
        """Store tokens for a path unless already present.

        Returns:
            The tokens now cached for the path.
        """
        cached = self._tokens.setdefault(path, tokens)
        if cached is tokens:
            logger.debug(f"Cached form tokens for {path}")
        return cached

    def clear(self) -> None:
        self._tokens.clear()

    def __contains__(self, path: object) -> bool:
        return path in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)


# Process-wide default, used when a request manager isn't given its own.
DEFAULT_TOKEN_CACHE = TokenCache()


def extract_form_tokens(html: str | bytes, request_url: str = "") -> FormTokens:
    """Read the two hidden token fields from a form page.

    Raises:
        TokenNotFound: If either field (or its value attribute) is missing.
        UnknownParsingError: If the page isn't parseable HTML.
    """
    tree = parse_html(html, request_url)
    values: dict[str, str] = {}
    for field_name in (CSRF_FIELD, VERIFICATION_FIELD):
        found = tree.checked_css(f"[name={field_name}]", field_name, 0)
        value = found[0].get("value") if found else None
        if value is None:
            raise TokenNotFound(field_name, request_url)
        values[field_name] = value
    return FormTokens(
        csrf_token=values[CSRF_FIELD],
        verification_token=values[VERIFICATION_FIELD],
    )
