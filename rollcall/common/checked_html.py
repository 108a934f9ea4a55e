"""Checked HTML element wrapper for safe XPath/CSS querying.

This module provides CheckedHtmlElement, a wrapper around
lxml.html.HtmlElement that validates selector results against expected
counts. The result page has no semantic markup, so the decoder leans on
these counts (number of tables, rows, cells) to notice layout changes.
"""

from __future__ import annotations

import lxml.html
from lxml.etree import ParserError
from lxml.html import HtmlElement

from rollcall.common.exceptions import (
    InvalidHtmlStructure,
    UnknownParsingError,
)


def parse_html(html: str | bytes, request_url: str = "") -> CheckedHtmlElement:
    """Parse a response body into a CheckedHtmlElement.

    Raises:
        UnknownParsingError: If the body is empty or isn't parseable HTML.
    """
    if not html.strip():
        raise UnknownParsingError("empty document", request_url)
    try:
        root = lxml.html.document_fromstring(html)
    except (ParserError, ValueError) as e:
        raise UnknownParsingError(str(e), request_url) from e
    return CheckedHtmlElement(root, request_url)


class CheckedHtmlElement:
    """Wrapper around HtmlElement with validated selectors.

    checked_xpath() and checked_css() validate the number of results
    against expected min/max counts and raise InvalidHtmlStructure when the
    document doesn't match.
    """

    def __init__(self, element: HtmlElement, request_url: str = "") -> None:
        """Initialize the checked element wrapper.

        Args:
            element: The lxml HtmlElement to wrap.
            request_url: Optional URL for error context.
        """
        self._element = element
        self._request_url = request_url

    def _check_count(
        self,
        description: str,
        actual_count: int,
        min_count: int,
        max_count: int | None,
    ) -> None:
        if actual_count < min_count or (
            max_count is not None and actual_count > max_count
        ):
            if max_count is None:
                expected_str = f"at least {min_count}"
            elif min_count == max_count:
                expected_str = f"exactly {min_count}"
            else:
                expected_str = f"between {min_count} and {max_count}"
            raise InvalidHtmlStructure(
                f"expected {expected_str} {description}, "
                f"found {actual_count}",
                request_url=self._request_url,
                context={
                    "description": description,
                    "expected_min": min_count,
                    "expected_max": max_count
                    if max_count is not None
                    else "unlimited",
                    "actual_count": actual_count,
                },
            )

    def checked_xpath(
        self,
        xpath: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[CheckedHtmlElement]:
        """Execute XPath query with count validation.

        Args:
            xpath: XPath expression to execute.
            description: Human-readable description of what's being selected.
            min_count: Minimum number of results expected (default: 1).
            max_count: Maximum number of results expected (None = unlimited).

        Returns:
            List of matching elements. Text and attribute results are
            skipped.

        Raises:
            InvalidHtmlStructure: If count doesn't match expectations.

        Example::

            tree = parse_html(body)
            tables = tree.checked_xpath("//table", "result tables", 3)
        """
        results = self._element.xpath(xpath)

        wrapped: list[CheckedHtmlElement] = [
            CheckedHtmlElement(r, self._request_url)
            for r in results
            if isinstance(r, HtmlElement)
        ]
        self._check_count(description, len(wrapped), min_count, max_count)
        return wrapped

    def checked_css(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[CheckedHtmlElement]:
        """Execute CSS selector query with count validation.

        Args:
            selector: CSS selector expression.
            description: Human-readable description of what's being selected.
            min_count: Minimum number of elements expected (default: 1).
            max_count: Maximum number of elements expected (None = unlimited).

        Returns:
            List of matching CheckedHtmlElements.

        Raises:
            InvalidHtmlStructure: If count doesn't match expectations.
        """
        results = self._element.cssselect(selector)
        self._check_count(description, len(results), min_count, max_count)
        return [CheckedHtmlElement(r, self._request_url) for r in results]

    def text(self) -> str:
        """Return the element's full text content, whitespace-trimmed."""
        return self._element.text_content().strip()

    def __getattr__(self, name: str):
        """Delegate all other attributes to the wrapped element."""
        return getattr(self._element, name)
