"""
Exam timetable extraction.

Two stages mirror the portal's form flow: the plan/metadata pages expose plan
numbers and the academic session through radio and hidden inputs, and the
detail page lists one exam per row. Exam types are encoded as a suffix on the
course code ("*" restricted open book, "+"/"#" open book), but only once the
portal has published its legend for the semester.
"""

import logging
import re
from typing import NamedTuple, Optional

from bs4 import BeautifulSoup, Tag

from .parse_helpers import Record, clean_text, make_soup

OPEN_BOOK = "Open Book"
CLOSED_BOOK = "Closed Book"
RESTRICTED_OPEN_BOOK = "Restricted Open Book"

# course code suffix -> exam type
SUFFIX_EXAM_TYPES = {
    "*": RESTRICTED_OPEN_BOOK,
    "+": OPEN_BOOK,
    "#": OPEN_BOOK,
}

HEADER_LABELS = {"DATE", "COURSE CODE", "COURSE", "TIME", "DAY", "VENUE"}
RELEVANT_HEADER_TOKENS = ("course", "date", "time", "venue")

ACADEMIC_SESSION_RE = re.compile(r"Semester (\d+) Academic Year (\d{4})-(\d{4})")


class PageContext(NamedTuple):
    acadsem: str
    student_type: str
    has_legend: bool


# ======================================================
# Metadata stage
# ======================================================


def _input_value(soup: BeautifulSoup, *names: str) -> str:
    """Value of the first named input that carries a non-empty value."""
    for name in names:
        element = soup.find("input", attrs={"name": name})
        if element is not None:
            value = clean_text(element.get("value", ""))
            if value:
                return value
    return ""


def _plan_label(radio: Tag, value: str) -> str:
    parent_text = clean_text(radio.parent.get_text()) if radio.parent else ""
    if parent_text:
        return parent_text

    label = radio.find_next_sibling("label")
    if label is not None and clean_text(label.get_text()):
        return clean_text(label.get_text())

    return f"Plan {value}"


def _academic_session(soup: BeautifulSoup) -> str:
    hidden = _input_value(soup, "academic_session")
    if hidden:
        return hidden

    select = soup.find("select", attrs={"name": "academic_session"})
    if select is None:
        return ""

    selected = select.find("option", selected=True)
    if selected is not None and clean_text(selected.get_text()):
        return clean_text(selected.get_text())

    first = select.find("option")
    return clean_text(first.get_text()) if first is not None else ""


def parse_academic_session(session: str) -> Optional[tuple[str, str]]:
    """Return (exam_year, semester) from "Semester 1 Academic Year 2025-2026".

    The year is the later calendar year of the range.
    """
    match = ACADEMIC_SESSION_RE.search(session or "")
    if not match:
        return None
    return match.group(3), match.group(1)


def parse_exam_metadata(html: str) -> list[Record]:
    """Extract exam plans from a plan-selection page, or one plan's session details.

    Args:
        html (str): Response of the plan selection or query page

    Returns:
        list[Record]: Either [{"plan_no", "label"}, ...] when plan radios are present,
                      or [{"plan_no", "academic_session", "exam_year", "semester"}]
                      for a single plan page, or [] when nothing is recognized
    """
    soup = make_soup(html)

    radios = soup.select('input[name="p_plan_no"][type="radio"]')
    if radios:
        plans = []
        for radio in radios:
            value = clean_text(radio.get("value", ""))
            plans.append({"plan_no": value, "label": _plan_label(radio, value)})
        logging.info(f"Found {len(plans)} available exam plans")
        return plans

    plan_no = _input_value(soup, "p_plan_no", "r_plan_no")
    academic_session = _academic_session(soup)
    exam_year = _input_value(soup, "p_exam_yr", "r_exam_yr")
    semester = _input_value(soup, "p_semester", "r_semester")

    if not exam_year or not semester:
        parsed = parse_academic_session(academic_session)
        if parsed:
            exam_year, semester = parsed

    if academic_session and exam_year and semester:
        logging.info(f"Parsed exam metadata: plan {plan_no}, session {academic_session}")
        return [
            {
                "plan_no": plan_no,
                "academic_session": academic_session,
                "exam_year": exam_year,
                "semester": semester,
            }
        ]

    logging.info("No exam plan metadata found on page")
    return []


# ======================================================
# Detail stage
# ======================================================


def has_exam_type_legend(soup: BeautifulSoup) -> bool:
    """True when the page publishes the open/restricted book legend."""
    body = soup.body if soup.body is not None else soup
    text = body.get_text()
    return (
        OPEN_BOOK in text
        and RESTRICTED_OPEN_BOOK in text
        and ("*" in text or "+" in text)
    )


def _header_tokens(table: Tag) -> list[str]:
    first_row = table.find("tr")
    if first_row is None:
        return []
    return [cell.get_text().strip().lower() for cell in first_row.find_all(["th", "td"])]


def _map_by_header(cells: list[str], headers: list[str]) -> Record:
    mapped = {}
    for idx, cell in enumerate(cells):
        header = headers[idx] if idx < len(headers) else ""

        if ("course" in header and "title" not in header) or "code" in header or "subject" in header:
            mapped["course_code"] = cell
        elif "date" in header:
            mapped["exam_date"] = cell
        elif "time" in header:
            mapped["exam_time"] = cell
        elif "duration" in header:
            mapped["exam_duration"] = cell
        elif "venue" in header or "hall" in header or "location" in header:
            mapped["venue"] = cell
        elif "seat" in header:
            mapped["seat_no"] = cell
    return mapped


def _map_by_position(cells: list[str]) -> Record:
    def at(idx: int) -> str:
        return cells[idx] if idx < len(cells) else ""

    # cells[1] is the day of week
    return {
        "exam_date": at(0),
        "exam_time": at(2),
        "course_code": at(3),
        "course_title": at(4),
        "exam_duration": at(5),
        "venue": at(6),
    }


def infer_exam_type(course_code: str, has_legend: bool) -> tuple[str, Optional[str]]:
    """Strip the type suffix from a course code and infer the exam type.

    Args:
        course_code (str): Code as printed, e.g. "AB1234*"
        has_legend (bool): Whether the page publishes the type legend

    Returns:
        tuple[str, Optional[str]]: (code without suffix, exam type or None)
    """
    suffix = course_code[-1:]
    if suffix in SUFFIX_EXAM_TYPES:
        stripped = course_code[:-1]
        return stripped, SUFFIX_EXAM_TYPES[suffix] if has_legend else None

    return course_code, CLOSED_BOOK if has_legend else None


def exam_type_from_text(row_text: str) -> str:
    text = row_text.lower()
    if "restricted" in text:
        return RESTRICTED_OPEN_BOOK
    if "open book" in text or "openbook" in text:
        return OPEN_BOOK
    if "closed book" in text or "closedbook" in text:
        return CLOSED_BOOK
    return CLOSED_BOOK


def _none_if_blank(value: Optional[str]) -> Optional[str]:
    return value if value else None


def parse_exam_row(row: Tag, headers: list[str], context: PageContext) -> Optional[Record]:
    """Parse one detail row; header-like or short rows yield None."""
    cells = [cell.get_text().strip() for cell in row.find_all("td")]
    if len(cells) < 3:
        return None

    if cells[0].upper() in HEADER_LABELS:
        return None

    fields = _map_by_header(cells, headers)
    if len(cells) >= 5:
        fields.update(_map_by_position(cells))

    course_code = fields.get("course_code", "")
    exam_type = None
    if course_code:
        course_code, exam_type = infer_exam_type(course_code, context.has_legend)

    if exam_type is None and context.has_legend:
        exam_type = exam_type_from_text(row.get_text())

    if len(course_code) <= 2:
        return None

    return {
        "course_code": course_code.upper(),
        "course_title": _none_if_blank(fields.get("course_title")),
        "acadsem": context.acadsem,
        "exam_date": _none_if_blank(fields.get("exam_date")),
        "exam_time": _none_if_blank(fields.get("exam_time")),
        "exam_duration": _none_if_blank(fields.get("exam_duration")),
        "venue": _none_if_blank(fields.get("venue")),
        "seat_no": _none_if_blank(fields.get("seat_no")),
        "student_type": context.student_type,
        "exam_type": exam_type,
    }


def parse_exam_details(html: str, acadsem: str, student_type: str = "UE") -> list[Record]:
    """Extract exam records from the exam timetable detail page.

    Args:
        html (str): Detail page HTML
        acadsem (str): Canonical semester id attached to every record
        student_type (str): "UE" for undergraduates, "" or "GR" for graduates

    Returns:
        list[Record]: One dict per exam row, exam_type None when no legend is published
    """
    soup = make_soup(html)
    context = PageContext(
        acadsem=acadsem,
        student_type=student_type,
        has_legend=has_exam_type_legend(soup),
    )

    if not context.has_legend:
        logging.info("Exam type legend not found on page, exam types will be left blank")

    exams = []
    for table in soup.find_all("table"):
        headers = _header_tokens(table)
        if not any(token in header for header in headers for token in RELEVANT_HEADER_TOKENS):
            continue

        for row in table.find_all("tr")[1:]:
            exam = parse_exam_row(row, headers, context)
            if exam is not None:
                exams.append(exam)

    logging.info(f"Parsed {len(exams)} exam records ({acadsem})")
    return exams
