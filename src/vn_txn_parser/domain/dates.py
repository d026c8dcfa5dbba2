import re
from datetime import date, timedelta
from typing import NamedTuple

_EXPLICIT_DATE = re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})(?:/(\d{2}|\d{4}))?(?!\d)")
_DAYS_AGO = re.compile(r"(?<!\d)(\d{1,3})\s*ngày\s+trước", re.IGNORECASE)

_RELATIVE_PHRASES: tuple[tuple[str, int], ...] = (
    ("hôm nay", 0),
    ("hôm qua", 1),
    ("hôm kia", 2),
    ("tuần trước", 7),
)


class DateMatch(NamedTuple):
    value: date
    start: int
    end: int


def extract_date(text: str, today: date) -> DateMatch | None:
    """Find the first date expression in NFC-normalized ``text``."""
    for match in _EXPLICIT_DATE.finditer(text):
        day, month = int(match.group(1)), int(match.group(2))
        year_text = match.group(3)
        year = today.year
        if year_text:
            year = int(year_text) + (2000 if len(year_text) == 2 else 0)
        try:
            return DateMatch(date(year, month, day), match.start(), match.end())
        except ValueError:
            continue

    match = _DAYS_AGO.search(text)
    if match:
        return DateMatch(today - timedelta(days=int(match.group(1))), match.start(), match.end())

    lowered = text.lower()
    for phrase, days_back in _RELATIVE_PHRASES:
        position = lowered.find(phrase)
        if position >= 0:
            return DateMatch(today - timedelta(days=days_back), position, position + len(phrase))
    return None
