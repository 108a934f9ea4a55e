"""Mock result site.

This module defines the student data used across the tests and an aiohttp
app that serves it the way the real result site does: a form page per
scheme carrying two hidden anti-forgery fields, and a form POST that
answers with a flat run of positional tables.

Special roll numbers exercise failure paths:

- ``21bcs500``: the primary path always answers HTTP 500.
- ``21bcs503``: answers HTTP 500 for its first FLAKY_FAILURES POSTs, then
  the real page.
- ``21bcs900``: answers after SLOW_SECONDS.
- ``21bcs404``: an odd number of tables (unpaired semester table).
- any roll number not in STUDENTS: the "Kindly Check the Roll Number" page.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass, field

from aiohttp import web

CSRF_TOKEN = "csrf-5f2a9c"
VERIFICATION_TOKEN = "verify-81d07e"

FLAKY_FAILURES = 2
SLOW_SECONDS = 2.0


@dataclass
class MockSubject:
    """One subject row."""

    name: str
    code: str
    credit: int
    grade: str
    points: int


@dataclass
class MockSemester:
    """One semester's subject table and summary table."""

    subjects: list[MockSubject]
    sgpi: float
    sgpi_total: int
    cgpi: float
    cgpi_total: int


@dataclass
class MockStudent:
    """A student on the result site."""

    roll_number: str
    name: str
    fathers_name: str
    semesters: list[MockSemester]
    # Dual-degree continuation, served from result_dd.asp.
    masters_semesters: list[MockSemester] = field(default_factory=list)


FIRST_SEMESTER = MockSemester(
    subjects=[
        MockSubject("Engineering Mathematics-I", "MA-111", 4, "AA", 40),
        MockSubject("Basic Electronics", "EC-111", 3, "AB", 27),
        MockSubject("Workshop Practice", "ME-112", 0, "S", 0),
    ],
    sgpi=9.57,
    sgpi_total=67,
    cgpi=9.57,
    cgpi_total=67,
)

SECOND_SEMESTER = MockSemester(
    subjects=[
        MockSubject("Data Structures", "CS-121", 4, "BB", 32),
        MockSubject("Discrete Mathematics", "CS-122", 3, "AB", 27),
    ],
    sgpi=8.43,
    sgpi_total=59,
    cgpi=9.0,
    cgpi_total=126,
)

MASTERS_SEMESTER = MockSemester(
    subjects=[MockSubject("Advanced Algorithms", "CS-611", 4, "AA", 40)],
    sgpi=10.0,
    sgpi_total=40,
    cgpi=9.5,
    cgpi_total=40,
)

STUDENTS: dict[str, MockStudent] = {
    student.roll_number: student
    for student in [
        MockStudent(
            "21bcs001",
            "Asha Verma",
            "Rakesh Verma",
            [FIRST_SEMESTER, SECOND_SEMESTER],
        ),
        MockStudent(
            "21bcs002",
            "Kabir Singh",
            "Harpal Singh",
            [FIRST_SEMESTER],
        ),
        MockStudent(
            "21dec017",
            "Meera Nair",
            "Suresh Nair",
            [FIRST_SEMESTER, SECOND_SEMESTER],
            masters_semesters=[MASTERS_SEMESTER, MASTERS_SEMESTER],
        ),
        MockStudent(
            "21bcs503",
            "Ishaan Rao",
            "Prakash Rao",
            [FIRST_SEMESTER],
        ),
        MockStudent(
            "21bcs900",
            "Tara Bose",
            "Anil Bose",
            [FIRST_SEMESTER],
        ),
    ]
}

SERVER_ERROR_ROLL = "21bcs500"
FLAKY_ROLL = "21bcs503"
SLOW_ROLL = "21bcs900"
BROKEN_LAYOUT_ROLL = "21bcs404"


def generate_form_html(
    csrf_token: str | None = CSRF_TOKEN,
    verification_token: str | None = VERIFICATION_TOKEN,
) -> str:
    """Generate the result form page with its hidden token fields."""
    hidden = ""
    if csrf_token is not None:
        hidden += (
            f'<input type="hidden" name="CSRFToken" value="{csrf_token}">'
        )
    if verification_token is not None:
        hidden += (
            '<input type="hidden" name="RequestVerificationToken" '
            f'value="{verification_token}">'
        )
    return f"""<!DOCTYPE html>
<html>
<head><title>Student Result</title></head>
<body>
<form method="post">
  {hidden}
  <input type="text" name="RollNumber">
  <input type="submit" name="B1" value="Submit">
</form>
</body>
</html>"""


def _subjects_table(semester: MockSemester, number: int) -> str:
    rows = [
        f'<tr><td colspan="6">Semester : {number}</td></tr>',
        "<tr><td>Sr. No.</td><td>Subject</td><td>Sub Code</td>"
        "<td>Sub Credit</td><td>Grade</td><td>Sub GP</td></tr>",
    ]
    for index, subject in enumerate(semester.subjects, start=1):
        rows.append(
            f"<tr><td>{index}</td><td>{subject.name}</td>"
            f"<td>{subject.code}</td><td>{subject.credit}</td>"
            f"<td>{subject.grade}</td><td>{subject.points}</td></tr>"
        )
    return "<table>" + "".join(rows) + "</table>"


def _summary_table(semester: MockSemester) -> str:
    return (
        "<table><tr>"
        "<td>SEMESTER SUMMARY</td>"
        f"<td>SGPI = {semester.sgpi}</td>"
        f"<td>TOTAL = {semester.sgpi_total}</td>"
        f"<td>CGPI = {semester.cgpi}</td>"
        f"<td>TOTAL = {semester.cgpi_total}</td>"
        "</tr></table>"
    )


def generate_result_html(
    roll_number: str,
    name: str,
    fathers_name: str,
    semesters: list[MockSemester],
) -> str:
    """Generate a result page in the site's positional table layout."""
    tables = [
        "<table><tr><td>Result last updated on 01-07-2024</td></tr></table>",
        "<table><tr>"
        f"<td>ROLL NUMBER {roll_number.upper()}</td>"
        f"<td>STUDENT NAME {name}</td>"
        f"<td>FATHER NAME {fathers_name}</td>"
        "</tr></table>",
    ]
    for number, semester in enumerate(semesters, start=1):
        tables.append(_subjects_table(semester, number))
        tables.append(_summary_table(semester))
    tables.append(
        "<table><tr><td>Result is provisional. Errors and omissions "
        "excepted.</td></tr></table>"
    )
    return (
        "<!DOCTYPE html><html><head><title>Result</title></head><body>"
        + "\n".join(tables)
        + "</body></html>"
    )


def generate_student_html(student: MockStudent, masters: bool = False) -> str:
    return generate_result_html(
        student.roll_number,
        student.name,
        student.fathers_name,
        student.masters_semesters if masters else student.semesters,
    )


def generate_not_found_html() -> str:
    return (
        "<!DOCTYPE html><html><body>"
        "<h2>  Kindly Check the Roll Number  </h2>"
        "</body></html>"
    )


form_gets_key = web.AppKey("form_gets", Counter)
posts_key = web.AppKey("posts", list)
post_counts_key = web.AppKey("post_counts", Counter)


async def handle_form(request: web.Request) -> web.Response:
    """Serve the result form page and count the GET per path."""
    request.app[form_gets_key][request.path] += 1
    return web.Response(text=generate_form_html(), content_type="text/html")


async def handle_result(request: web.Request) -> web.Response:
    """Answer a result form POST."""
    form = await request.post()
    roll_number = str(form.get("RollNumber", "")).lower()
    masters = request.path.endswith("result_dd.asp")

    request.app[posts_key].append(
        {
            "path": request.path,
            "form": dict(form),
            "headers": request.headers.copy(),
        }
    )
    request.app[post_counts_key][roll_number] += 1

    if (
        form.get("CSRFToken") != CSRF_TOKEN
        or form.get("RequestVerificationToken") != VERIFICATION_TOKEN
    ):
        return web.Response(
            status=403, text="<html><body>Forbidden</body></html>"
        )

    if roll_number == SERVER_ERROR_ROLL:
        return web.Response(status=500, text="Internal Server Error")
    if (
        roll_number == FLAKY_ROLL
        and request.app[post_counts_key][roll_number] <= FLAKY_FAILURES
    ):
        return web.Response(status=500, text="Internal Server Error")
    if roll_number == SLOW_ROLL:
        await asyncio.sleep(SLOW_SECONDS)
    if roll_number == BROKEN_LAYOUT_ROLL:
        # Banner, identity, one subjects table and trailer: no summary.
        html = generate_result_html(
            roll_number, "Broken", "Layout", [FIRST_SEMESTER]
        )
        html = html.replace(_summary_table(FIRST_SEMESTER), "", 1)
        return web.Response(text=html, content_type="text/html")

    student = STUDENTS.get(roll_number)
    if student is None or (masters and not student.masters_semesters):
        return web.Response(
            text=generate_not_found_html(), content_type="text/html"
        )
    return web.Response(
        text=generate_student_html(student, masters=masters),
        content_type="text/html",
    )


def create_app() -> web.Application:
    """Create the aiohttp application serving the mock result site."""
    app = web.Application()
    app[form_gets_key] = Counter()
    app[posts_key] = []
    app[post_counts_key] = Counter()
    for page in ("result.asp", "result_dd.asp"):
        route = "/scheme{scheme}/studentresult/" + page
        app.router.add_get(route, handle_form)
        app.router.add_post(route, handle_result)
    return app
