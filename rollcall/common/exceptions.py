"""Exception types for result fetching errors.

This module defines the exception hierarchy used by the decoder, the
fetcher and the bulk strategies.

There are two families:

- ResultFetchError and its subclasses are classified failures. The site
  answered, but the answer can't be turned into a StudentRecord. Retrying
  the same request will usually give the same answer.
- TransientException and its subclasses are network-level failures that
  might resolve on retry.
"""

from typing import Any


class ResultFetchError(Exception):
    """Base class for classified result fetching failures.

    The decoder relies on a rigid, index-addressed table layout. When the
    document (or the roll number) doesn't fit that layout, it raises a
    subclass of this exception with enough context to diagnose the issue.
    """

    def __init__(
        self,
        message: str,
        request_url: str = "",
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the failure.
            request_url: The URL of the request that triggered this error.
            context: Optional dict of additional context (counts, fields, etc).
        """
        self.message = message
        self.request_url = request_url
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with context.

        Returns:
            Formatted error message string.
        """
        parts = [self.message]
        if self.request_url:
            parts.append(f"URL: {self.request_url}")

        if self.context:
            parts.append("Context:")
            for key, value in self.context.items():
                parts.append(f"  {key}: {value}")

        return "\n".join(parts)


class RollNumberNotFound(ResultFetchError):
    """Raised when the site reports that the roll number doesn't exist.

    This is a normal terminal outcome for a roll number, not a fault. Bulk
    strategies never retry it.
    """

    def __init__(self, request_url: str = "") -> None:
        super().__init__("Roll number doesn't exist", request_url)


class InvalidHtmlStructure(ResultFetchError):
    """Raised when the result page's table layout doesn't match expectations.

    Attributes:
        reason: What didn't match.
        table_count: Number of tables found in the document, when known.
    """

    def __init__(
        self,
        reason: str,
        table_count: int | None = None,
        request_url: str = "",
        context: dict[str, Any] | None = None,
    ) -> None:
        self.reason = reason
        self.table_count = table_count
        context = dict(context or {})
        if table_count is not None:
            context["table_count"] = table_count
        super().__init__(
            f"Html received is invalid: {reason}", request_url, context
        )


class UnknownParsingError(ResultFetchError):
    """Raised when the response body can't be parsed as HTML at all."""

    def __init__(self, reason: str, request_url: str = "") -> None:
        super().__init__(f"Unknown parsing error: {reason}", request_url)


class UnknownProgramme(ResultFetchError):
    """Raised when a roll number's programme code isn't recognized.

    Attributes:
        roll_number: The roll number that couldn't be classified.
    """

    def __init__(self, roll_number: str, request_url: str = "") -> None:
        self.roll_number = roll_number
        super().__init__(
            f"Unknown programme for roll number {roll_number!r}",
            request_url,
            {"roll_number": roll_number},
        )


class TokenNotFound(ResultFetchError):
    """Raised when a required hidden form field is missing from the form page.

    Attributes:
        field_name: Name of the missing form field.
    """

    def __init__(self, field_name: str, request_url: str = "") -> None:
        self.field_name = field_name
        super().__init__(
            f"{field_name} not found",
            request_url,
            {"field_name": field_name},
        )


# =============================================================================
# Transient Exceptions
# =============================================================================


class TransientException(Exception):
    """Base class for transient errors that might resolve on retry.

    Transient exceptions represent temporary failures like network issues,
    server errors (5xx), or timeouts. The sequential strategy retries them;
    the pooled strategy records them as the roll number's final outcome.
    """

    pass


class HTMLResponseAssumptionException(TransientException):
    """Raised when HTTP response has unexpected status code.

    Attributes:
        status_code: The actual HTTP status code received.
        expected_codes: List of status codes that were expected.
        url: The URL that returned the unexpected status.
        message: Human-readable error message.
    """

    def __init__(
        self,
        status_code: int,
        expected_codes: list[int],
        url: str,
    ) -> None:
        self.status_code = status_code
        self.expected_codes = expected_codes
        self.url = url

        expected_str = ", ".join(str(code) for code in expected_codes)
        self.message = (
            f"HTTP {status_code} from {url} (expected one of: {expected_str})"
        )
        super().__init__(self.message)


class RequestTimeoutException(TransientException):
    """Raised when a request times out.

    Attributes:
        url: The URL that timed out.
        timeout_seconds: The timeout duration in seconds.
        message: Human-readable error message.
    """

    def __init__(self, url: str, timeout_seconds: float | None) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.message = f"Request to {url} timed out after {timeout_seconds}s"
        super().__init__(self.message)


class RequestTransportException(TransientException):
    """Raised when the connection fails before a response is received.

    Attributes:
        url: The URL being requested.
        reason: Description of the underlying transport failure.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        self.message = f"Request to {url} failed: {reason}"
        super().__init__(self.message)
