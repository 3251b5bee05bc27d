"""
Class schedule extraction.

The schedule page interleaves two kinds of tables: a small "course header"
table (code, title, AU) followed by a bordered session table whose header row
reads INDEX / TYPE / GROUP / DAY / TIME / VENUE / REMARK. Only the first row of
each registration index carries the index number; the following rows of the
same index leave that cell blank.
"""

import logging
import re
from functools import reduce
from typing import NamedTuple, Optional

from bs4 import Tag

from .parse_helpers import Record, cell_text, clean_text, make_soup

_COURSE_CODE_RE = re.compile(r"^[A-Za-z0-9]+$")

SECTION_FIELDS = ("index", "type", "group", "day", "time", "venue", "remark")


class ScheduleState(NamedTuple):
    pending: Optional[Record]
    courses: tuple[Record, ...]


def is_session_table(table: Tag) -> bool:
    """A session table has both INDEX and TYPE among its <th> cells."""
    headers = {clean_text(th.get_text()).upper() for th in table.find_all("th")}
    return "INDEX" in headers and "TYPE" in headers


def course_header(table: Tag) -> Optional[tuple[str, str]]:
    """Return (course_code, title) if the table's first row looks like a course header."""
    first_row = table.find("tr")
    if first_row is None:
        return None

    cells = first_row.find_all("td")
    if len(cells) < 2:
        return None

    code = cell_text(cells, 0)
    title = cell_text(cells, 1)
    if code and title and _COURSE_CODE_RE.match(code):
        return code, title
    return None


def parse_session_rows(table: Tag) -> list[Record]:
    """Parse the session rows of one course, carrying the index over blank cells.

    Args:
        table (Tag): A session table (header row first)

    Returns:
        list[Record]: One dict per row with the SECTION_FIELDS keys. Rows seen
                      before any index resolve to an empty index.
    """
    sections = []
    current_index = ""

    for row in table.find_all("tr")[1:]:
        cells = row.find_all("td")
        if not cells:
            continue

        index_text = cell_text(cells, 0)
        if index_text:
            current_index = index_text

        section = {field: cell_text(cells, i) for i, field in enumerate(SECTION_FIELDS)}
        section["index"] = current_index
        sections.append(section)

    return sections


def _step(acadsem: str, state: ScheduleState, table: Tag) -> ScheduleState:
    if is_session_table(table):
        if state.pending is None:
            logging.debug("Session table without a preceding course header, skipping")
            return state

        sections = [s for s in parse_session_rows(table) if s["index"]]
        course = {**state.pending, "sections": sections}
        return ScheduleState(pending=None, courses=state.courses + (course,))

    header = course_header(table)
    if header is None:
        return state

    if state.pending is not None:
        logging.debug(
            f"Course {state.pending['course_code']} has no session table, replaced by {header[0]}"
        )

    code, _title = header
    return state._replace(pending={"course_code": code, "acadsem": acadsem, "sections": []})


def parse_schedule(html: str, acadsem: str) -> list[Record]:
    """Extract every course and its class sessions from a schedule page.

    Args:
        html (str): Schedule search result page
        acadsem (str): Canonical semester id attached to every record

    Returns:
        list[Record]: [{"course_code", "acadsem", "sections": [...]}] in page order
    """
    soup = make_soup(html)
    initial = ScheduleState(pending=None, courses=())

    final = reduce(lambda state, table: _step(acadsem, state, table), soup.find_all("table"), initial)

    logging.info(f"Parsed schedules for {len(final.courses)} courses ({acadsem})")
    return list(final.courses)
