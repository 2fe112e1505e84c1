import re
from typing import Sequence

from roofreview.models.extraction import RoofMaterialDetection
from roofreview.models.pages import PageText, sort_pages

# Ordered (keyword, label) table; the first keyword found wins
MATERIAL_KEYWORDS = (
    ("laminated - comp. shingle", "Composition Shingles"),
    ("laminated - comp", "Composition Shingles"),
    ("composition shingle", "Composition Shingles"),
    ("asphalt shingle", "Asphalt Shingles"),
    ("architectural shingle", "Architectural Shingles"),
    ("3-tab shingle", "3-Tab Shingles"),
    ("metal roof", "Metal"),
    ("standing seam", "Metal"),
    ("tile roof", "Tile"),
    ("cedar shake", "Cedar Shake"),
)

DETECTION_CONFIDENCE = 0.8

_PAGE_MARKER_RE = re.compile(r"\[page\s+(\d+)\]")


def detect_roof_material(pages: Sequence[PageText]) -> RoofMaterialDetection:
    """Guess the roof covering from keywords in the estimate text."""
    text = "\n".join(
        f"\n[Page {page.page_number}]\n{page.raw_text or ''}" for page in sort_pages(pages)
    ).lower()

    for keyword, label in MATERIAL_KEYWORDS:
        index = text.find(keyword)
        if index == -1:
            continue
        markers = _PAGE_MARKER_RE.findall(text[:index])
        return RoofMaterialDetection(
            material=label,
            confidence=DETECTION_CONFIDENCE,
            source_pages=[int(markers[-1])] if markers else None,
        )

    return RoofMaterialDetection(confidence=0.0)
