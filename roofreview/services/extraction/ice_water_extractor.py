"""Ice and water barrier line-item extraction."""

import re
from typing import Optional, Sequence

from roofreview.core.unified_llm import UnifiedLLMClient
from roofreview.models.extraction import ExtractorResult, LineItemCategory
from roofreview.models.pages import PageText
from roofreview.services.extraction.line_item_extractor import BaseLineItemExtractor


class IceWaterExtractor(BaseLineItemExtractor):
    """Extracts self-adhered ice and water membrane items (reported in SF)."""

    CATEGORY = LineItemCategory.ICE_WATER
    PRIMARY_PATTERN = re.compile(
        r"(ice\s*&?\s*water|ice\s*and\s*water|ice\s*-?\s*and\s*-?\s*water\s*shield|"
        r"ice\s*&\s*water\s*shield|RFG\s*IWS|IWS\b|I&W|ice\s*&?\s*water\s*barrier)",
        re.IGNORECASE,
    )
    SECONDARY_PATTERN = re.compile(
        r"(self\s*-?\s*adher(?:ed|ing)|self\s*-?\s*sealing|underlayment\s*(membrane)?|"
        r"waterproof(?:ing)?\s*membrane)",
        re.IGNORECASE,
    )
    PROMPT_HINT = (
        "Identify ice & water barrier/shield (self-adhered membrane). Report SF and page "
        "evidence. Exclude felt/roofing paper and synthetic underlayment."
    )


async def extract_ice_water_items(
    pages: Sequence[PageText],
    llm_client: Optional[UnifiedLLMClient] = None,
) -> ExtractorResult:
    return await IceWaterExtractor(llm_client).extract(pages)
