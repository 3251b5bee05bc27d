import logging
import re
from typing import Any, Optional

from .parse_helpers import Record, cell_text, make_soup

ALERT_RE = re.compile(r"""alert\s*\(\s*["']([^"']*)["']\s*\)""")

VACANCY_COLUMNS = ("index", "vacancy", "waitlist", "type", "group", "day", "time", "venue")

_BLANK_NUMBERS = {"", "&nbsp;", "-", "N/A"}
_LEADING_INT_RE = re.compile(r"^[+-]?\d+")


def parse_number(text: Any) -> int:
    """Parse a vacancy/waitlist cell into an int; anything unparseable is 0.

    Args:
        text (Any): Cell text, possibly blank, "&nbsp;", "-" or "N/A"

    Returns:
        int: The leading integer of the text, or 0
    """
    if not isinstance(text, str):
        return 0

    trimmed = text.strip()
    if trimmed in _BLANK_NUMBERS:
        return 0

    match = _LEADING_INT_RE.match(trimmed)
    return int(match.group(0)) if match else 0


def find_alert(html: str) -> Optional[str]:
    """Return the message of a scripted alert("...") on the page, if any."""
    match = ALERT_RE.search(html or "")
    if not match:
        return None
    return match.group(1).strip()


def parse_vacancy_html(html: str, course_code: str) -> Record:
    """Parse the vacancy service response for one course.

    The service reports outages (e.g. outside opening hours) as a JavaScript
    alert instead of markup, so that check runs before any table parsing.

    Args:
        html (str): Vacancy service response
        course_code (str): Course code, used for logging only

    Returns:
        Record: {"indexes": [...], "error": None} or {"indexes": [], "error": message}
    """
    error = find_alert(html)
    if error is not None:
        logging.warning(f"Vacancy service returned error for {course_code}: {error}")
        return {"indexes": [], "error": error}

    soup = make_soup(html)
    table = soup.find("table", attrs={"border": True})
    if table is None:
        logging.warning(f"No vacancy table found for course {course_code}")
        return {"indexes": [], "error": None}

    indexes = []
    current = None

    for row in table.find_all("tr")[1:]:
        cells = row.find_all("td")
        if len(cells) < len(VACANCY_COLUMNS):
            continue

        values = {column: cell_text(cells, i) for i, column in enumerate(VACANCY_COLUMNS)}

        if values["index"] and values["index"] != "&nbsp;":
            current = {
                "index": values["index"],
                "vacancy": parse_number(values["vacancy"]),
                "waitlist": parse_number(values["waitlist"]),
                "classes": [],
            }
            indexes.append(current)

        if current is not None and values["type"]:
            current["classes"].append(
                {field: values[field] for field in ("type", "group", "day", "time", "venue")}
            )

    logging.info(f"Parsed {len(indexes)} indexes for course {course_code}")
    return {"indexes": indexes, "error": None}


def format_index_display(index_info: Record) -> str:
    """Render one index group as indented text."""
    lines = [
        f"Index {index_info.get('index', 'Unknown')}",
        f"  Vacancies: {index_info.get('vacancy', 0)} | Waitlist: {index_info.get('waitlist', 0)}",
        "  Classes:",
    ]
    for cls in index_info.get("classes") or []:
        lines.append(
            f"    • {cls.get('type', '')} ({cls.get('group', '')}) - "
            f"{cls.get('day', '')} {cls.get('time', '')} @ {cls.get('venue', '')}"
        )
    return "\n".join(lines)


def format_course_display(course_code: str, indexes: Optional[list[Record]]) -> str:
    """Render every index of a course, or a not-found line when there are none."""
    if not indexes:
        return f"No indexes found for course {course_code}"

    lines = [f"Course: {course_code}", ""]
    for index_info in indexes:
        lines.append(format_index_display(index_info))
        lines.append("")
    return "\n".join(lines)
