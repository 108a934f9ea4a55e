"""Shared configuration models.

These Pydantic BaseModel subclasses describe the result site and the
roll-number space. Defaults match the live site; tests and the CLI
override ``base_url`` to point at a local server.

Example::

    from rollcall.common.param_models import ResultSiteConfig

    config = ResultSiteConfig(base_url="http://127.0.0.1:8080")
"""

from pydantic import BaseModel, Field


class ResultSiteConfig(BaseModel):
    """Where and how to reach the result site.

    Attributes:
        base_url: Scheme and host of the result site, without trailing slash.
        result_path: Path template of the primary result form. ``{scheme}``
            is replaced with the two-digit batch code of the roll number.
        extended_result_path: Path template of the dual-degree (masters)
            continuation form.
        timeout: Per-request HTTP timeout in seconds.
        user_agent: User-Agent header sent with every request.
    """

    base_url: str = "http://results.nith.ac.in"
    result_path: str = "/scheme{scheme}/studentresult/result.asp"
    extended_result_path: str = "/scheme{scheme}/studentresult/result_dd.asp"
    timeout: float = Field(default=30.0, gt=0)
    user_agent: str = "Mozilla/5.0 (X11; Linux x86_64) rollcall"


class BatchRange(BaseModel):
    """Roll-number space of one batch.

    Attributes:
        batch_code: Two-digit enrollment year code (``21`` for 2021).
        programme_codes: Three-letter programme/department codes to enumerate.
        max_serial: Highest serial number to generate per code (inclusive).
    """

    batch_code: int = Field(ge=0, le=99)
    programme_codes: list[str] | None = None
    max_serial: int = Field(default=150, ge=1, le=999)
