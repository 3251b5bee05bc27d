"""
Course content extraction.

The content page is one long table. A course starts with a row of
(code, title, AU, department) and is followed by label rows such as
"Prerequisite:" or "Mutually exclusive with:", unlabeled continuation rows,
single-cell banners ("Not offered as Unrestricted Elective") and colspan
description paragraphs. Rows are folded one at a time into a ContentState.
"""

import enum
import logging
import re
from typing import Callable, NamedTuple, Optional

from bs4 import Tag

from .parse_helpers import Record, cell_text, clean_text, make_soup, merged_value


class Label(enum.Enum):
    NONE = ""
    PREREQUISITE = "prerequisite"
    MUTUAL = "mutual"
    NA_PROG = "na_prog"
    NA_ALL = "na_all"
    NA_BDE_UE = "na_bde_ue"
    GRADE = "grade"
    DESCRIPTION = "description"


PREREQ_RE = re.compile(r"^\s*pre[-\s]?requisites?:?", re.IGNORECASE)
MUTUAL_RE = re.compile(r"^\s*mutually?\s*exclusives?:?", re.IGNORECASE)
NA_PROG_RE = re.compile(r"^\s*not\s+available\s+to\s+programme", re.IGNORECASE)
NA_ALL_RE = re.compile(r"^\s*not\s+available\s+to\s+all\s+programme\s+with", re.IGNORECASE)
NA_BDE_UE_RE = re.compile(r"^\s*not\s+available\s+as\s+BDE/UE\s+to\s+programme", re.IGNORECASE)
GRADE_RE = re.compile(r"^\s*grade\s+type", re.IGNORECASE)
DESCRIPTION_RE = re.compile(r"^\s*description[:\s]*$", re.IGNORECASE)
UNRESTRICTED_RE = re.compile(r"^\s*not\s+offered\s+as\s+unrestricted\s+elective", re.IGNORECASE)
BDE_RE = re.compile(
    r"^\s*not\s+offered\s+as\s+broadening\s+and\s+deepening\s+elective", re.IGNORECASE
)

# label pattern -> (record field, label); first match wins
LABEL_FIELDS: tuple[tuple[re.Pattern, str, Label], ...] = (
    (PREREQ_RE, "prerequisites", Label.PREREQUISITE),
    (MUTUAL_RE, "mutual_exclusions", Label.MUTUAL),
    (NA_PROG_RE, "not_available_to_programme", Label.NA_PROG),
    (NA_ALL_RE, "not_available_to_all_programme_with", Label.NA_ALL),
    (NA_BDE_UE_RE, "not_available_as_bde_ue_to_programme", Label.NA_BDE_UE),
    (GRADE_RE, "grade_type", Label.GRADE),
    (DESCRIPTION_RE, "description", Label.DESCRIPTION),
)

FIELD_FOR_LABEL = {label: field for _, field, label in LABEL_FIELDS}

# first cells that can never start a course
NON_COURSE_PATTERNS = tuple(pattern for pattern, _, _ in LABEL_FIELDS) + (UNRESTRICTED_RE, BDE_RE)

# banners and labels that must not leak into a colspan description
COLSPAN_EXCLUDED = (UNRESTRICTED_RE, BDE_RE, PREREQ_RE, MUTUAL_RE)

TEXT_FIELDS = (
    "description",
    "prerequisites",
    "mutual_exclusions",
    "not_available_to_programme",
    "not_available_to_all_programme_with",
    "not_available_as_bde_ue_to_programme",
    "grade_type",
)

_LEADING_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)")


class Row(NamedTuple):
    cells: list[Tag]
    first: str
    text: str
    value: str


class ContentState(NamedTuple):
    done: tuple[Record, ...]
    current: Optional[Record]
    last_label: Label


def parse_au(text: str) -> Optional[float]:
    """Parse an AU cell ("3.0", "3.0 AU", "0.0") into a float; blank or junk is None."""
    cleaned = clean_text(text).replace("AU", "").strip()
    match = _LEADING_NUMBER_RE.match(cleaned)
    if not match:
        return None
    return float(match.group(0))


def _matches_any(text: str, patterns) -> bool:
    return any(pattern.match(text) for pattern in patterns)


def _label_for(text: str) -> Optional[tuple[str, Label]]:
    for pattern, field, label in LABEL_FIELDS:
        if pattern.match(text):
            return field, label
    return None


def _append(existing: str, value: str) -> str:
    return f"{existing} {value}" if existing else value


def new_course(code: str, title: str, au: Optional[float], department: str, acadsem: str) -> Record:
    return {
        "course_code": code,
        "acadsem": acadsem,
        "title": title,
        "au": au,
        "department_code": department,
        "description": "",
        "prerequisites": "",
        "mutual_exclusions": "",
        "not_available_to_programme": "",
        "not_available_to_all_programme_with": "",
        "not_available_as_bde_ue_to_programme": "",
        "is_unrestricted_elective": True,
        "is_broadening_deepening_elective": True,
        "grade_type": "",
    }


def _flush(state: ContentState) -> tuple[Record, ...]:
    if state.current is None:
        return state.done
    return state.done + (state.current,)


def _update(state: ContentState, **changes) -> ContentState:
    return state._replace(current={**state.current, **changes})


# ----------------------------------------------------------------------
# Row predicates and handlers, evaluated top to bottom
# ----------------------------------------------------------------------


def _is_header(state: ContentState, row: Row) -> bool:
    return len(row.cells) >= 3 and row.first.upper() == "COURSE CODE"


def _reset(state: ContentState, row: Row, acadsem: str) -> ContentState:
    return ContentState(done=_flush(state), current=None, last_label=Label.NONE)


def _is_new_course(state: ContentState, row: Row) -> bool:
    return len(row.cells) >= 3 and bool(row.first) and not _matches_any(row.first, NON_COURSE_PATTERNS)


def _start_course(state: ContentState, row: Row, acadsem: str) -> ContentState:
    code = row.first
    title = cell_text(row.cells, 1)
    if not (code and title):
        return state._replace(last_label=Label.NONE)

    course = new_course(
        code=code,
        title=title,
        au=parse_au(cell_text(row.cells, 2)),
        department=cell_text(row.cells, 3),
        acadsem=acadsem,
    )
    return ContentState(done=_flush(state), current=course, last_label=Label.NONE)


def _no_course(state: ContentState, row: Row) -> bool:
    return state.current is None


def _ignore(state: ContentState, row: Row, acadsem: str) -> ContentState:
    return state


def _is_unrestricted_banner(state: ContentState, row: Row) -> bool:
    return bool(UNRESTRICTED_RE.match(row.text))


def _clear_unrestricted(state: ContentState, row: Row, acadsem: str) -> ContentState:
    return _update(state, is_unrestricted_elective=False)


def _is_bde_banner(state: ContentState, row: Row) -> bool:
    return bool(BDE_RE.match(row.text))


def _clear_bde(state: ContentState, row: Row, acadsem: str) -> ContentState:
    return _update(state, is_broadening_deepening_elective=False)


def _is_labeled(state: ContentState, row: Row) -> bool:
    return _label_for(row.first) is not None


def _assign_label(state: ContentState, row: Row, acadsem: str) -> ContentState:
    field, label = _label_for(row.first)
    return _update(state, **{field: row.value})._replace(last_label=label)


def _is_continuation(state: ContentState, row: Row) -> bool:
    return not row.first and bool(row.value) and state.last_label is not Label.NONE


def _continue_label(state: ContentState, row: Row, acadsem: str) -> ContentState:
    field = FIELD_FOR_LABEL[state.last_label]
    return _update(state, **{field: _append(state.current[field], row.value)})


def _colspan_cells(row: Row) -> list[Tag]:
    return [cell for cell in row.cells if cell.has_attr("colspan")]


def _has_colspan(state: ContentState, row: Row) -> bool:
    return bool(_colspan_cells(row))


def _append_colspan(state: ContentState, row: Row, acadsem: str) -> ContentState:
    text = clean_text(" ".join(cell.get_text(" ") for cell in _colspan_cells(row)))
    if not text or _matches_any(text, COLSPAN_EXCLUDED):
        return state
    return _update(state, description=_append(state.current["description"], text))


RowRule = tuple[Callable[[ContentState, Row], bool], Callable[[ContentState, Row, str], ContentState]]

ROW_RULES: tuple[RowRule, ...] = (
    (_is_header, _reset),
    (_is_new_course, _start_course),
    (_no_course, _ignore),
    (_is_unrestricted_banner, _clear_unrestricted),
    (_is_bde_banner, _clear_bde),
    (_is_labeled, _assign_label),
    (_is_continuation, _continue_label),
    (_has_colspan, _append_colspan),
)


def read_row(tr: Tag) -> Optional[Row]:
    cells = tr.find_all("td")
    if not cells:
        return None
    return Row(
        cells=cells,
        first=cell_text(cells, 0),
        text=clean_text(tr.get_text(" ")),
        value=merged_value(cells),
    )


def step(state: ContentState, row: Row, acadsem: str) -> ContentState:
    """Apply the first matching rule to the row."""
    for predicate, handler in ROW_RULES:
        if predicate(state, row):
            return handler(state, row, acadsem)
    return state


def parse_course_table(table: Tag, acadsem: str) -> list[Record]:
    """Fold the rows of one table into course records."""
    state = ContentState(done=(), current=None, last_label=Label.NONE)

    for tr in table.find_all("tr"):
        row = read_row(tr)
        if row is None:
            continue
        state = step(state, row, acadsem)

    return list(_flush(state))


def _trim(course: Record) -> Record:
    return {**course, **{field: course[field].strip() for field in TEXT_FIELDS}}


def parse_content(html: str, acadsem: str) -> list[Record]:
    """Extract course content records from a content search result page.

    Args:
        html (str): Course content page HTML
        acadsem (str): Canonical semester id attached to every record

    Returns:
        list[Record]: One dict per course, free-text fields trimmed
    """
    soup = make_soup(html)
    courses: list[Record] = []

    for table in soup.find_all("table"):
        courses.extend(parse_course_table(table, acadsem))

    logging.info(f"Parsed {len(courses)} course content records ({acadsem})")
    return [_trim(course) for course in courses]
