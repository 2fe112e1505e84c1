"""Drip edge line-item extraction.

Drip edge runs along the rakes; eave metal belongs to the gutter apron
extractor. Only priced estimate lines are kept.
"""

import re
from typing import Optional, Sequence

from roofreview.core.unified_llm import UnifiedLLMClient
from roofreview.models.extraction import ExtractorResult, LineItemCategory
from roofreview.models.pages import PageText
from roofreview.services.extraction.line_item_extractor import BaseLineItemExtractor


class DripEdgeExtractor(BaseLineItemExtractor):

    CATEGORY = LineItemCategory.DRIP_EDGE
    PRIMARY_PATTERN = re.compile(
        r"(\bdrip[\s\-]*edge\b|RFG[\s\-]*DRIP|drip[\s\-]*metal|eave[\s\-]*drip|"
        r"drip[\s\-]*cap|D\.E\.|\bDE\b)",
        re.IGNORECASE,
    )
    SECONDARY_PATTERN = re.compile(
        r"(metal[\s\-]*edge|rake[\s\-]*edge|eave[\s\-]*edge|aluminum[\s\-]*drip|"
        r"steel[\s\-]*drip|edge[\s\-]*metal|edge[\s\-]*flashing)",
        re.IGNORECASE,
    )
    PROMPT_HINT = (
        "Extract ONLY actual drip edge LINE ITEMS from insurance estimates with codes, "
        "descriptions, quantities and prices. Do NOT extract measurement labels from roof "
        'reports. Look for "drip edge", "drip-edge", "D.E.", "drip metal", etc. Each item '
        "MUST be from an estimate with actual pricing, NOT just a measurement label."
    )
    EDGE_PROTECTION = True


async def extract_drip_edge_items(
    pages: Sequence[PageText],
    llm_client: Optional[UnifiedLLMClient] = None,
) -> ExtractorResult:
    return await DripEdgeExtractor(llm_client).extract(pages)
