"""Starter strip line-item extraction."""

import re
from typing import Optional, Sequence

from roofreview.core.unified_llm import UnifiedLLMClient
from roofreview.models.extraction import ExtractorResult, LineItemCategory
from roofreview.models.pages import PageText
from roofreview.services.extraction.line_item_extractor import BaseLineItemExtractor


class StarterExtractor(BaseLineItemExtractor):
    """Extracts starter course items (universal vs cut-from-3tab)."""

    CATEGORY = LineItemCategory.STARTER
    PRIMARY_PATTERN = re.compile(
        r"(starter\s*(row|course)?|universal\s*starter|peel\s*and\s*stick|STRTR|"
        r"RFG\s*STARTER|included\s*in\s*waste|Options\s*:)",
        re.IGNORECASE,
    )
    PROMPT_HINT = "Detect universal vs cut-from-3tab; include evidence pages."


async def extract_starter_items(
    pages: Sequence[PageText],
    llm_client: Optional[UnifiedLLMClient] = None,
) -> ExtractorResult:
    return await StarterExtractor(llm_client).extract(pages)
