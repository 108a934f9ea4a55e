"""Positional decoder for result pages.

The result site renders one student's history as a flat run of tables with
no ids, classes or header cells worth trusting. Everything is addressed by
position:

- table 0: banner ("last updated" title). Ignored.
- table 1: identity row. Roll number, name, father's name.
- tables 2 .. n-2: one pair per semester. Subjects table, then summary.
- table n-1: trailer. Ignored.

classify_tables() turns a table count into a list of TableSlot values up
front, and decode_result_html() dispatches on each slot's role.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum

from typing_extensions import assert_never

from rollcall.common.checked_html import CheckedHtmlElement, parse_html
from rollcall.common.data_models import (
    SemesterResult,
    StudentRecord,
    SubjectResult,
)
from rollcall.common.exceptions import (
    InvalidHtmlStructure,
    RollNumberNotFound,
    UnknownProgramme,
)
from rollcall.common.roll_numbers import (
    UNKNOWN,
    batch_year,
    classify_department,
    classify_programme,
)

logger = logging.getLogger(__name__)

ROLL_NOT_FOUND_MARKER = "kindly check the roll number"

IDENTITY_LABELS = ("ROLL NUMBER", "STUDENT NAME", "FATHER NAME")

# Header rows at the top of each subjects table.
SUBJECT_HEADER_ROWS = 2

_HEADINGS_XPATH = (
    "//*[self::h1 or self::h2 or self::h3 or self::h4 or self::h5 or self::h6]"
)

_WHITESPACE = re.compile(r"\s+")


class TableRole(Enum):
    """What a table at a given position holds."""

    BANNER = "banner"
    IDENTITY = "identity"
    SUBJECTS = "subjects"
    SUMMARY = "summary"
    TRAILER = "trailer"


@dataclass(frozen=True)
class TableSlot:
    """A table's role and, for semester tables, its zero-based term index."""

    role: TableRole
    term: int | None = None


def classify_tables(table_count: int, request_url: str = "") -> list[TableSlot]:
    """Assign a role to each table position.

    A valid page has ``3 + 2T`` tables for ``T >= 1`` semesters.

    Raises:
        InvalidHtmlStructure: If the count can't be split into banner,
            identity, semester pairs and trailer.
    """
    if table_count < 3:
        raise InvalidHtmlStructure(
            "too few tables", table_count, request_url
        )
    terms = (table_count - 3) // 2
    if terms >= table_count:
        raise InvalidHtmlStructure(
            "term count exceeds table count", table_count, request_url
        )
    if (table_count - 3) % 2:
        raise InvalidHtmlStructure(
            "unpaired semester table", table_count, request_url
        )
    if terms == 0:
        raise InvalidHtmlStructure(
            "no semester tables", table_count, request_url
        )

    slots = [TableSlot(TableRole.BANNER), TableSlot(TableRole.IDENTITY)]
    for k in range(2 * terms):
        role = TableRole.SUBJECTS if k % 2 == 0 else TableRole.SUMMARY
        slots.append(TableSlot(role, k // 2))
    slots.append(TableSlot(TableRole.TRAILER))
    return slots


def is_roll_number_not_found(tree: CheckedHtmlElement) -> bool:
    """Check for the site's "Kindly Check the Roll Number" heading."""
    for heading in tree.checked_xpath(_HEADINGS_XPATH, "headings", 0):
        text = _WHITESPACE.sub(" ", heading.text()).lower()
        if ROLL_NOT_FOUND_MARKER in text:
            return True
    return False


def _parse_int(text: str, field: str, term: int, request_url: str) -> int:
    cleaned = text.strip()
    try:
        return int(cleaned)
    except ValueError:
        pass
    try:
        value = float(cleaned)
        if value.is_integer():
            return int(value)
    except ValueError:
        pass
    _warn_unparseable(cleaned, field, term, request_url)
    return 0


def _parse_float(text: str, field: str, term: int, request_url: str) -> float:
    cleaned = text.strip()
    try:
        value = float(cleaned)
    except ValueError:
        value = math.nan
    if not math.isfinite(value):
        # float() accepts "nan" and "inf", which JSON can't carry.
        _warn_unparseable(cleaned, field, term, request_url)
        return 0.0
    return value


def _warn_unparseable(
    text: str, field: str, term: int, request_url: str
) -> None:
    logger.warning(
        f"Could not parse {field} from {text!r} in semester {term + 1}, using 0",
        extra={
            "field": field,
            "raw_text": text,
            "semester": term + 1,
            "request_url": request_url,
        },
    )


def _decode_identity(table: CheckedHtmlElement, record: StudentRecord) -> None:
    cells = table.checked_xpath(".//td", "identity cells", 0)
    values: list[str] = []
    for cell in cells[:3]:
        text = cell.text_content()
        for label in IDENTITY_LABELS:
            text = text.replace(label, "")
        values.append(text.strip())
    values.extend([""] * (3 - len(values)))
    record.roll_number, record.name, record.fathers_name = values


def _decode_subjects(
    table: CheckedHtmlElement, term: int, request_url: str
) -> list[SubjectResult]:
    rows = table.checked_xpath(".//tr", "subject rows", SUBJECT_HEADER_ROWS)
    subjects: list[SubjectResult] = []
    for row in rows[SUBJECT_HEADER_ROWS:]:
        cells = [c.text() for c in row.checked_xpath("./td", "subject cells", 0)]
        cells.extend([""] * (6 - len(cells)))
        subjects.append(
            SubjectResult.from_cells(
                subject_name=cells[1],
                subject_code=cells[2],
                credit=_parse_int(cells[3], "credit", term, request_url),
                grade=cells[4],
                points=_parse_int(cells[5], "points", term, request_url),
            )
        )
    return subjects


def _summary_value(text: str) -> str:
    """Return the value of a ``LABEL = value`` cell."""
    return text[text.find("=") + 1 :].strip()


def _decode_summary(
    table: CheckedHtmlElement, semester: SemesterResult, request_url: str
) -> None:
    term = int(semester.semester_number) - 1
    cells = table.checked_xpath(".//tr//td", "summary cells", 0)
    for index, cell in enumerate(cells):
        value = _summary_value(cell.text_content())
        match index:
            case 1:
                semester.sgpi = _parse_float(value, "sgpi", term, request_url)
            case 2:
                semester.sgpi_total = _parse_int(
                    value, "sgpi_total", term, request_url
                )
            case 3:
                semester.cgpi = _parse_float(value, "cgpi", term, request_url)
            case 4:
                semester.cgpi_total = _parse_int(
                    value, "cgpi_total", term, request_url
                )
            case _:
                pass


def decode_result_html(
    html: str | bytes, request_url: str = ""
) -> StudentRecord:
    """Decode a result page into a StudentRecord.

    Args:
        html: Raw response body of the result form POST.
        request_url: URL the page came from, for error context.

    Returns:
        The decoded record. ``cgpi`` is the last semester's CGPI.

    Raises:
        UnknownParsingError: If the body isn't parseable HTML.
        RollNumberNotFound: If the page says the roll number doesn't exist.
            This is checked before any table validation.
        InvalidHtmlStructure: If the table layout doesn't match.
        UnknownProgramme: If the decoded roll number's programme is unknown.
    """
    tree = parse_html(html, request_url)

    if is_roll_number_not_found(tree):
        raise RollNumberNotFound(request_url)

    tables = tree.checked_xpath("//table", "result tables", 0)
    slots = classify_tables(len(tables), request_url)

    record = StudentRecord(roll_number="")
    semesters: dict[int, SemesterResult] = {}

    for table, slot in zip(tables, slots, strict=True):
        match slot.role:
            case TableRole.BANNER | TableRole.TRAILER:
                continue
            case TableRole.IDENTITY:
                _decode_identity(table, record)
            case TableRole.SUBJECTS:
                assert slot.term is not None
                semesters[slot.term] = SemesterResult(
                    semester_number=str(slot.term + 1),
                    subject_results=_decode_subjects(
                        table, slot.term, request_url
                    ),
                )
            case TableRole.SUMMARY:
                assert slot.term is not None
                _decode_summary(table, semesters[slot.term], request_url)
            case _:
                assert_never(slot.role)

    record.semester_results = [semesters[t] for t in sorted(semesters)]
    if not record.semester_results:
        raise InvalidHtmlStructure(
            "no semesters decoded", len(tables), request_url
        )

    record.cgpi = record.semester_results[-1].cgpi
    record.programme = classify_programme(record.roll_number)
    if record.programme == UNKNOWN:
        raise UnknownProgramme(record.roll_number, request_url)
    record.branch = classify_department(record.roll_number)
    record.batch = batch_year(record.roll_number)

    logger.debug(
        f"Decoded {record.roll_number} with "
        f"{len(record.semester_results)} semesters",
        extra={"request_url": request_url},
    )
    return record
