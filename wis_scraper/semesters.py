import re
from typing import Iterable

# canonical "2025_2"; the schedule portal also uses "2025;2", some labels "2025 2"
_ACADSEM_RE = re.compile(r"^(\d{4})[_;](\w)$")
_ACADSEM_SPACED_RE = re.compile(r"^(\d{4})\s+(\w)$")


def to_standard_acadsem(year: str, semester: str) -> str:
    """Build the canonical semester identifier, e.g. ("2025", "2") -> "2025_2"."""
    return f"{year}_{semester}"


def to_schedule_sem(acadsem: str) -> str:
    """Convert a canonical identifier to the schedule portal format ("2025;2")."""
    return acadsem.replace("_", ";", 1)


def to_content_sem(acadsem: str) -> str:
    """The content portal already uses the canonical format."""
    return acadsem


def split_acadsem(acadsem: str) -> tuple[str, str]:
    """Split a canonical identifier into (year, semester), tolerating missing parts."""
    parts = str(acadsem).split("_", 1)
    year = parts[0] if parts else ""
    semester = parts[1] if len(parts) > 1 else ""
    return year, semester


def parse_acadsem(raw: str) -> dict[str, str]:
    """Parse any of the portal's semester encodings into year and semester.

    Accepts "2025_2", "2025;2" and "2025 2". Special terms use a letter
    instead of a digit ("2025_S"). Unknown formats fall back to the first
    four characters as year and the last character as semester.

    Args:
        raw (str): Semester value as found in a form option

    Returns:
        dict[str, str]: {"year": ..., "semester": ...}
    """
    value = (raw or "").strip()

    match = _ACADSEM_RE.match(value) or _ACADSEM_SPACED_RE.match(value)
    if match:
        return {"year": match.group(1), "semester": match.group(2)}

    return {"year": value[:4], "semester": value[-1:]}


def latest_years(years: Iterable[str], count: int = 2) -> list[str]:
    """Return the `count` most recent distinct numeric years, newest first."""
    numeric = set()
    for year in years:
        try:
            numeric.add(int(year))
        except (TypeError, ValueError):
            continue

    return [str(year) for year in sorted(numeric, reverse=True)[:count]]
