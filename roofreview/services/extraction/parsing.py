"""Value parsers and page-selection helpers shared by the extraction phases."""

import math
import re
from datetime import date
from typing import Any, Iterable, List, Optional, Pattern

from roofreview.models.pages import PageText

# Keyword filter for pages that mention any of the estimate totals
TOTALS_KEYWORD_RE = re.compile(
    r"RCV|ACV|Net\s*Claim|Price\s*List|Date\s*Est|Completed", re.IGNORECASE
)

_ISO_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})")
_US_DATE_RE = re.compile(r"^\s*(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})\s*$")


def parse_money(value: Any) -> Optional[float]:
    """Parse a money amount given as a number or as text like ``$12,345.67``.

    Returns None for anything that is not a finite number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = re.sub(r"[,\s$]", "", str(value))
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def parse_iso_date(value: Any) -> Optional[str]:
    """Convert ``MM/DD/YY[YY]`` (``/`` or ``-``) or ISO input to ``YYYY-MM-DD``.

    Two-digit years are read as 20YY. Impossible calendar dates give None.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None

    iso = _ISO_DATE_RE.match(text)
    if iso:
        year, month, day = (int(part) for part in iso.groups())
    else:
        us = _US_DATE_RE.match(text)
        if not us:
            return None
        month_text, day_text, year_text = us.groups()
        if len(year_text) == 3:
            return None
        month, day, year = int(month_text), int(day_text), int(year_text)
        if len(year_text) == 2:
            year += 2000

    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def select_pages(
    pages: Iterable[PageText],
    primary: Pattern,
    secondary: Optional[Pattern] = None,
    max_pages: int = 5,
    fallback_pages: int = 3,
) -> List[PageText]:
    """Pick the pages worth sending to the model.

    Pages matching ``primary`` win; otherwise pages matching ``secondary``;
    otherwise the first ``fallback_pages`` pages. At most ``max_pages``
    matching pages are returned.
    """
    pages = list(pages)
    matched = [page for page in pages if primary.search(page.raw_text or "")]
    if not matched and secondary is not None:
        matched = [page for page in pages if secondary.search(page.raw_text or "")]
    if matched:
        return matched[:max_pages]
    return pages[:fallback_pages]
