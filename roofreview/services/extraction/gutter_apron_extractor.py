"""Gutter apron (eave flashing) line-item extraction."""

import re
from typing import Optional, Sequence

from roofreview.core.unified_llm import UnifiedLLMClient
from roofreview.models.extraction import ExtractorResult, LineItemCategory
from roofreview.models.pages import PageText
from roofreview.services.extraction.line_item_extractor import BaseLineItemExtractor


class GutterApronExtractor(BaseLineItemExtractor):
    """Extracts gutter apron items; drip edge, gutter guards and valley
    or step flashing are excluded."""

    CATEGORY = LineItemCategory.GUTTER_APRON
    PRIMARY_PATTERN = re.compile(
        r"(gutter\s*apron|gutter\s*flashing|eave\s*flashing|apron\s*flashing|"
        r"counter\s*flashing\s*[\-–—]?\s*apron|counter\s*flashing[^\n]{0,40}?apron|"
        r"apron[^\n]{0,40}?counter\s*flashing|RFG\s*GUTTER\s*APRON)",
        re.IGNORECASE,
    )
    SECONDARY_PATTERN = re.compile(
        r"(\beave\s*(metal|trim|apron|flashing)\b|starter\s*metal|eaves?\s*apron|apron\b)",
        re.IGNORECASE,
    )
    PROMPT_HINT = (
        "Extract ONLY actual gutter apron LINE ITEMS from insurance estimates with quantities "
        'and prices. Do NOT extract measurement labels like "Eaves Flashing" from roof reports. '
        "Look for items with codes, descriptions, quantities, and unit prices. Exclude drip edge "
        "(rakes), gutter guards, or valley/step flashing."
    )
    EDGE_PROTECTION = True


async def extract_gutter_apron_items(
    pages: Sequence[PageText],
    llm_client: Optional[UnifiedLLMClient] = None,
) -> ExtractorResult:
    return await GutterApronExtractor(llm_client).extract(pages)
