from typing import Union

from bs4 import BeautifulSoup

from .parse_helpers import Record, clean_text, make_soup


def select_options(markup: Union[str, BeautifulSoup], name: str) -> list[Record]:
    """Extract the value/label pairs of a <select> field.

    Options with an empty value (placeholders such as "Select...") are skipped.

    Args:
        markup (Union[str, BeautifulSoup]): Form page HTML or an already parsed soup
        name (str): The select's name attribute

    Returns:
        list[Record]: [{"value": ..., "label": ...}] in document order
    """
    soup = make_soup(markup)
    options = []

    for option in soup.select(f'select[name="{name}"] option'):
        value = clean_text(option.get("value", ""))
        if not value:
            continue
        options.append({"value": value, "label": clean_text(option.get_text())})

    return options


def radio_options(markup: Union[str, BeautifulSoup], name: str) -> list[Record]:
    """Extract radio inputs as {value, label, checked}; the label is the parent's text."""
    soup = make_soup(markup)
    options = []

    for radio in soup.select(f'input[name="{name}"][type="radio"]'):
        parent = radio.parent
        options.append(
            {
                "value": clean_text(radio.get("value", "")),
                "label": clean_text(parent.get_text()) if parent else "",
                "checked": radio.has_attr("checked"),
            }
        )

    return options


def parse_schedule_options(html: str) -> dict[str, list[Record]]:
    """Options of the class schedule search form."""
    soup = make_soup(html)
    return {
        "acadsem": select_options(soup, "acadsem"),
        "course_years": select_options(soup, "r_course_yr"),
        "search_types": radio_options(soup, "r_search_type"),
    }


def parse_content_options(html: str) -> dict[str, list[Record]]:
    """Options of the course content search form."""
    soup = make_soup(html)
    return {
        "acadsem": select_options(soup, "acadsem"),
        "course_years": select_options(soup, "r_course_yr"),
    }
