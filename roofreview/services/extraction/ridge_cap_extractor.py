"""Ridge and hip cap line-item extraction."""

import re
from typing import Optional, Sequence

from roofreview.core.unified_llm import UnifiedLLMClient
from roofreview.models.extraction import ExtractorResult, LineItemCategory
from roofreview.models.pages import PageText
from roofreview.services.extraction.line_item_extractor import BaseLineItemExtractor


class RidgeCapExtractor(BaseLineItemExtractor):
    """Extracts hip/ridge cap items and grades their cap quality."""

    CATEGORY = LineItemCategory.RIDGE_CAP
    PRIMARY_PATTERN = re.compile(
        r"(\bridge\s*cap\b|\bhip\s*cap\b|ridge\s*/\s*hip|hip\s*/\s*ridge|RFG\s*RIDG[A-Z]*)",
        re.IGNORECASE,
    )
    SECONDARY_PATTERN = re.compile(r"(\bridge\b.*\bcap\b|\bcap\b.*\bridge\b)", re.IGNORECASE)
    PROMPT_HINT = (
        'For each ridge/hip cap item, include ridgeCapQuality as one of "purpose-built", '
        '"high-profile", or "cut-from-3tab". CRITICAL: Include the EXACT page number(s) in '
        'sourcePages[] where each item appears. If "13. Hip / Ridge cap" appears after '
        '"Page: 7" footer but before "Page: 8" footer, it belongs to page 8.'
    )


async def extract_ridge_cap_items(
    pages: Sequence[PageText],
    llm_client: Optional[UnifiedLLMClient] = None,
) -> ExtractorResult:
    return await RidgeCapExtractor(llm_client).extract(pages)
