"""Roll-number classification, path resolution and generation.

A roll number like ``21bcs042`` is read positionally:

- ``21``: two-digit enrollment year (batch 2021), also the result scheme.
- ``b``: programme letter (``b`` bachelor, ``d`` dual degree).
- ``cs``: department code.
- ``042``: serial within the department.
"""

from __future__ import annotations

from collections.abc import Iterator

from rollcall.common.param_models import BatchRange, ResultSiteConfig

UNKNOWN = "Unknown"

DUAL_DEGREE = "Dual Degree"

DEPARTMENTS: dict[str, str] = {
    "ar": "Architecture",
    "ce": "Civil Engineering",
    "ch": "Chemical Engineering",
    "cs": "Computer Science and Engineering",
    "ec": "Electronics and Communication Engineering",
    "ee": "Electrical Engineering",
    "ma": "Mathematics and Scientific Computing",
    "me": "Mechanical Engineering",
    "ms": "Materials Science and Engineering",
    "ph": "Engineering Physics",
}

DEFAULT_PROGRAMME_CODES: tuple[str, ...] = (
    "bar",
    "bce",
    "bch",
    "bcs",
    "bec",
    "bee",
    "bma",
    "bme",
    "bms",
    "bph",
    "dcs",
    "dec",
)


def _programme_code(roll_number: str) -> str:
    return roll_number.strip().lower()[2:5]


def batch_year(roll_number: str) -> int:
    """Return the enrollment year encoded in the first two characters.

    Returns 0 when the prefix isn't numeric.
    """
    prefix = roll_number.strip()[0:2]
    if len(prefix) != 2 or not prefix.isdigit():
        return 0
    return 2000 + int(prefix)


def classify_department(roll_number: str) -> str:
    return DEPARTMENTS.get(_programme_code(roll_number)[1:], UNKNOWN)


def classify_programme(roll_number: str) -> str:
    """Return the programme name for a roll number, or ``"Unknown"``."""
    code = _programme_code(roll_number)
    if len(code) != 3 or code[1:] not in DEPARTMENTS:
        return UNKNOWN
    match code[0]:
        case "b":
            return "B.Arch" if code[1:] == "ar" else "B.Tech"
        case "d":
            return DUAL_DEGREE
        case _:
            return UNKNOWN


def resolve_result_paths(
    roll_number: str,
    config: ResultSiteConfig | None = None,
    include_extended: bool = True,
) -> list[str]:
    """Return the result form URLs to query for a roll number.

    The first URL is the primary result page. Dual-degree students also get
    the extended (masters) page when ``include_extended`` is set.

    Returns:
        Ordered list of absolute URLs. Empty when the roll number has no
        usable batch code or programme.
    """
    config = config or ResultSiteConfig()
    if batch_year(roll_number) == 0:
        return []
    programme = classify_programme(roll_number)
    if programme == UNKNOWN:
        return []

    scheme = roll_number.strip()[0:2]
    base = config.base_url.rstrip("/")
    paths = [base + config.result_path.format(scheme=scheme)]
    if include_extended and programme == DUAL_DEGREE:
        paths.append(base + config.extended_result_path.format(scheme=scheme))
    return paths


def generate_roll_numbers(batch: BatchRange) -> Iterator[str]:
    """Enumerate every candidate roll number of a batch.

    Yields ``{batch}{code}{serial:03d}`` for each programme code in order,
    serials from 1 to ``max_serial``.
    """
    codes = batch.programme_codes or list(DEFAULT_PROGRAMME_CODES)
    for code in codes:
        for serial in range(1, batch.max_serial + 1):
            yield f"{batch.batch_code:02d}{code.lower()}{serial:03d}"
