"""Document-grounded verification of the extracted totals.

One model call compares the normalizer's five totals with the source text
and reports per-field confidence plus proposed corrections. Corrections are
reported only; nothing is overwritten. Best-effort: any failure yields an
empty result marked as failed.
"""

import json
from typing import Optional, Sequence

from roofreview.core.unified_llm import UnifiedLLMClient
from roofreview.models.extraction import NormalizedTotals, PhaseStatus, VerificationResult
from roofreview.models.pages import PageText, format_page_block, sort_pages
from roofreview.prompts.extraction_prompts import VERIFICATION_PROMPT
from roofreview.services.extraction.parsing import TOTALS_KEYWORD_RE
from roofreview.utils.json_parser import parse_json_safely
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

MAX_SOURCE_PAGES = 3
PAGE_CHAR_LIMIT = 3000


def build_verification_prompt(totals: NormalizedTotals, pages: Sequence[PageText]) -> str:
    chosen = [p for p in sort_pages(pages) if TOTALS_KEYWORD_RE.search(p.raw_text or "")]
    source = "\n".join(format_page_block(p, PAGE_CHAR_LIMIT) for p in chosen[:MAX_SOURCE_PAGES])
    return VERIFICATION_PROMPT.format(
        extracted=json.dumps(totals.extracted_subset()),
        pages=source,
    )


async def verify_extraction(
    totals: NormalizedTotals,
    pages: Sequence[PageText],
    llm_client: Optional[UnifiedLLMClient] = None,
) -> VerificationResult:
    """Cross-check ``totals`` against the source pages."""
    if llm_client is None:
        return VerificationResult(status=PhaseStatus.SKIPPED)

    try:
        response = await llm_client.generate_content(
            contents=build_verification_prompt(totals, pages),
            generation_config={"temperature": 0.0, "max_output_tokens": 400},
        )
        parsed = parse_json_safely(response, salvage=False)
        if isinstance(parsed, list):
            parsed = {"verifications": parsed}
        if not isinstance(parsed, dict):
            raise ValueError(f"Unparseable verification response: {(response or '')[:200]}")

        result = VerificationResult.model_validate(
            {
                "verifications": parsed.get("verifications") or [],
                "corrections": parsed.get("corrections") or {},
            }
        )
    except Exception as e:
        LOGGER.error("Verification pass failed", exc_info=True)
        return VerificationResult(status=PhaseStatus.FAILED, error=str(e))

    result.status = PhaseStatus.COMPLETED
    LOGGER.info(
        "Verification pass finished",
        extra={
            "verified_fields": len(result.verifications),
            "corrections": sorted(result.corrections),
        },
    )
    return result
