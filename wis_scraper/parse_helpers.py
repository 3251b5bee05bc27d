import re
from typing import Any, Optional, Union

from bs4 import BeautifulSoup, Tag

_WHITESPACE_RE = re.compile(r"\s+")

Record = dict[str, Any]


def make_soup(markup: Union[str, BeautifulSoup]) -> BeautifulSoup:
    """Return a soup for raw HTML, or pass an existing soup through."""
    if isinstance(markup, BeautifulSoup):
        return markup
    return BeautifulSoup(markup or "", "html.parser")


def clean_text(text: Optional[str]) -> str:
    """Collapse runs of whitespace (including &nbsp;) into single spaces and trim."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text.replace("\xa0", " ")).strip()


def safe_extract_text(element: Optional[Tag], selector: Optional[str] = None) -> str:
    """Safely extract whitespace-normalized text from a BeautifulSoup element.

    Args:
        element (Optional[Tag]): Element to read, may be None
        selector (Optional[str]): Optional tag name to descend into first

    Returns:
        str: Normalized text content, or "" when the element is missing
    """
    if element is None or not isinstance(element, Tag):
        return ""

    if selector:
        found = element.find(selector)
        if not found:
            return ""
        element = found

    return clean_text(element.get_text())


def cell_text(cells: list[Tag], idx: int) -> str:
    """Normalized text of cells[idx], or "" when the row is shorter."""
    if idx >= len(cells):
        return ""
    return safe_extract_text(cells[idx])


def merged_value(cells: list[Tag]) -> str:
    """Value of a label row: column 1, joined with column 2 when it is non-empty."""
    first = cell_text(cells, 1)
    second = cell_text(cells, 2)
    if second:
        return f"{first} {second}".strip()
    return first
