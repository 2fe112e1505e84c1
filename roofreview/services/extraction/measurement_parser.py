"""Deterministic roof measurement parser.

Reads roof geometry from the concatenated page text of a job. Each field is
tried with its roof-report form first (``Ridges = 45``) and then with a
looser estimate form (``Ridge 45 LF``, ``Ridge length: 45 ft``).
"""

import re
from typing import List, Optional, Pattern, Sequence

from roofreview.models.extraction import RoofMeasurements
from roofreview.models.pages import PageText, sort_pages
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

NUM = r"([0-9][0-9,]*(?:\.[0-9]+)?)"
UNIT = r"(?:\s*(?:LF|ft|feet)\b)?"

# A standalone "Hips" label, not the tail of the combined "Ridges/Hips" label
NOT_COMBINED = r"(?<!/)(?<!/\s)"


def _patterns(*sources: str) -> List[Pattern]:
    return [re.compile(source, re.IGNORECASE) for source in sources]


LENGTH_PATTERNS = {
    "ridge_length": _patterns(
        r"\bRidges?\s*\$?\s*=\s*" + NUM,
        r"\bridges?\s*(?:length)?\s*[:=]?\s*" + NUM + UNIT,
    ),
    "hip_length": _patterns(
        NOT_COMBINED + r"\bHips?\s*\$?\s*=\s*" + NUM,
        NOT_COMBINED + r"\bhips?\s*(?:length)?\s*[:=]?\s*" + NUM + UNIT,
    ),
    "eave_length": _patterns(
        r"\bEaves?(?:/Starter)?'?\s*\$?\s*=\s*" + NUM,
        r"\beaves?\s*(?:length)?\s*[:=]?\s*" + NUM + UNIT,
    ),
    "rake_length": _patterns(
        r"\bRakes?\s*\$?\s*=\s*" + NUM,
        r"\brakes?\s*(?:length)?\s*[:=]?\s*" + NUM + UNIT,
    ),
    "valley_length": _patterns(
        r"\bValleys?\s*\$?\s*=\s*" + NUM,
        r"\bvalleys?\s*(?:length)?\s*[:=]?\s*" + NUM + UNIT,
    ),
    "squares": _patterns(
        r"Squares\s*\*\s*\|?\s*" + NUM,
        r"Number\s*of\s*Squares\s*\|?\s*[:=]?\s*" + NUM,
        r"\bSquares\s*[:=]\s*" + NUM,
    ),
}

PITCH_PATTERNS = _patterns(
    r"Predominant\s+Pitch\s*\$?\s*=\s*(\d+\s*/\s*\d+)",
    r"predominant\s+pitch\s+is\s+(\d+\s*/\s*\d+)",
    # Bare "6/12"; the lookarounds keep dates such as 11/12/2022 out
    r"(?<![\d/])(\d{1,2}\s*/\s*12)(?![\d/])",
)

STORIES_PATTERNS = _patterns(
    r"Number\s+of\s+Stories\s*(?:<=?|[:=])?\s*(\d+)",
    r"\bstories?\s*[:=]?\s*(\d+)",
)


def _to_number(raw: str) -> Optional[float]:
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None


def _first_number(text: str, patterns: Sequence[Pattern]) -> Optional[float]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            value = _to_number(match.group(1))
            if value is not None:
                return value
    return None


def _first_group(text: str, patterns: Sequence[Pattern]) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def parse_roof_measurements(pages: Sequence[PageText]) -> RoofMeasurements:
    """Parse roof measurements from all pages. Derived totals are left unset."""
    text = "\n".join(page.raw_text or "" for page in sort_pages(pages))

    values = {field: _first_number(text, patterns) for field, patterns in LENGTH_PATTERNS.items()}

    pitch = _first_group(text, PITCH_PATTERNS)
    stories = _first_group(text, STORIES_PATTERNS)

    measurements = RoofMeasurements(
        **values,
        pitch=re.sub(r"\s+", "", pitch) if pitch is not None else None,
        stories=int(stories) if stories is not None else None,
    )
    LOGGER.debug(
        "Parsed roof measurements",
        extra={"found": sorted(k for k, v in measurements.model_dump().items() if v is not None)},
    )
    return measurements


def with_derived_totals(measurements: RoofMeasurements) -> RoofMeasurements:
    """Copy with ridge+hip and eave+rake totals, each only when both parts exist."""
    update = {}
    if measurements.ridge_length is not None and measurements.hip_length is not None:
        update["total_ridge_hip"] = measurements.ridge_length + measurements.hip_length
    if measurements.eave_length is not None and measurements.rake_length is not None:
        update["drip_edge_total"] = measurements.eave_length + measurements.rake_length
    return measurements.model_copy(update=update)
