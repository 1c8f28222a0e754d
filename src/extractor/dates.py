# src/extractor/dates.py
import re
from datetime import date, datetime
from typing import Optional

MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# "3 June 2021", "03 June 2021"
HUMAN_DATE_PATTERN = r"(\d{1,2})\s+(" + "|".join(MONTHS) + r")\s+(\d{4})"
HUMAN_DATE_RE = re.compile(HUMAN_DATE_PATTERN)


def parse_human_date(text: str) -> Optional[date]:
    """Finds the first 'D Month YYYY' date in text and returns it, or None."""
    if not text:
        return None
    match = HUMAN_DATE_RE.search(text)
    if not match:
        return None
    day, month, year = match.groups()
    try:
        return datetime.strptime(f"{day} {month} {year}", "%d %B %Y").date()
    except ValueError:
        return None


def parse_iso_date(text: str) -> Optional[date]:
    """Parses 'YYYY-MM-DD' (optionally followed by a time part)."""
    if not text:
        return None
    try:
        return date.fromisoformat(text.strip()[:10])
    except ValueError:
        return None
