"""Estimate totals normalizer.

Pulls the five headline totals (RCV, ACV, net claim, price list and the
estimate completion date) out of page text with anchored regexes and, only
when something is still missing and a model client is available, asks the
model for the gaps. Deterministic matches are never overwritten.
"""

import re
from typing import Any, List, Optional, Sequence

from roofreview.core.unified_llm import UnifiedLLMClient
from roofreview.models.extraction import NormalizedTotals, PhaseStatus, TotalsSource
from roofreview.models.pages import PageText, format_page_block, sort_pages
from roofreview.prompts.extraction_prompts import TOTALS_FALLBACK_PROMPT
from roofreview.services.extraction.parsing import (
    TOTALS_KEYWORD_RE,
    parse_iso_date,
    parse_money,
)
from roofreview.utils.json_parser import parse_json_safely
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Optional "$", thousands separators and cents. The separator branch comes
# first and needs at least one group so "1000" is not cut to "100". Label and
# value must share a line, so column headers never read the next row.
MONEY_PATTERN = (
    r"(?:\$[ \t]*)?([0-9]{1,3}(?:,[0-9]{3})+(?:\.[0-9]{2})?|[0-9]+(?:\.[0-9]{2})?)"
)

TOTALS_PATTERNS = {
    "rcv": re.compile(
        r"(?:Replacement\s*Cost\s*Value|Replacement\s*Cost|RCV)[ \t]*[:\-]?[ \t]*" + MONEY_PATTERN,
        re.IGNORECASE,
    ),
    "acv": re.compile(
        r"(?:Actual\s*Cash\s*Value|Actual\s*Cash|ACV)[ \t]*[:\-]?[ \t]*" + MONEY_PATTERN,
        re.IGNORECASE,
    ),
    "net_claim": re.compile(
        r"(?:Net\s*Claim(?:\s*Amount)?|Total\s*Net\s*Claim)[ \t]*[:\-]?[ \t]*" + MONEY_PATTERN,
        re.IGNORECASE,
    ),
    "price_list": re.compile(
        r"Price\s*List[ \t]*[:\-]?[ \t]*([A-Za-z0-9\-_. ]{3,})",
        re.IGNORECASE,
    ),
    "estimate_completed_at": re.compile(
        r"Date\s*(?:Est\.?\s*Completed|Completed|of\s*Completion)[ \t]*[:\-]?[ \t]*"
        r"([0-9]{1,2}[/\-][0-9]{1,2}[/\-][0-9]{2,4})",
        re.IGNORECASE,
    ),
}

# Payload key for each attribute, as used in sources and the fallback prompt
PAYLOAD_KEYS = {
    "rcv": "rcv",
    "acv": "acv",
    "net_claim": "netClaim",
    "price_list": "priceList",
    "estimate_completed_at": "estimateCompletedAt",
}

MONEY_FIELDS = ("rcv", "acv", "net_claim")


def _convert(field: str, raw: Any) -> Optional[Any]:
    if field in MONEY_FIELDS:
        return parse_money(raw)
    if field == "price_list":
        return str(raw).strip() or None
    return parse_iso_date(raw)


class EstimateNormalizer:
    """Deterministic-first extraction of estimate totals."""

    def __init__(
        self,
        llm_client: Optional[UnifiedLLMClient] = None,
        page_char_limit: int = 4000,
        fallback_page_count: int = 2,
    ):
        self.llm_client = llm_client
        self.page_char_limit = page_char_limit
        self.fallback_page_count = fallback_page_count

    async def normalize(self, pages: Sequence[PageText]) -> NormalizedTotals:
        """Extract totals from ``pages``; never raises for model failures."""
        ordered = sort_pages(pages)
        totals = self.extract_deterministic(ordered)

        if not totals.missing_fields():
            totals.llm_status = PhaseStatus.SKIPPED
            return totals

        if self.llm_client is None:
            totals.llm_status = PhaseStatus.SKIPPED
            return totals

        try:
            await self._fill_with_llm(totals, ordered)
            totals.llm_status = PhaseStatus.COMPLETED
        except Exception as e:
            LOGGER.error(
                "Totals fallback failed; keeping deterministic values",
                exc_info=True,
                extra={"missing": totals.missing_fields()},
            )
            totals.llm_status = PhaseStatus.FAILED
            totals.llm_error = str(e)

        return totals

    def extract_deterministic(self, pages: Sequence[PageText]) -> NormalizedTotals:
        """First match per field wins, scanning pages in ascending order."""
        totals = NormalizedTotals()

        for page in pages:
            text = page.raw_text or ""
            for field, pattern in TOTALS_PATTERNS.items():
                if getattr(totals, field) is not None:
                    continue
                match = pattern.search(text)
                if not match:
                    continue
                value = _convert(field, match.group(1))
                if value is None:
                    continue
                setattr(totals, field, value)
                totals.sources.append(
                    TotalsSource(
                        field=PAYLOAD_KEYS[field],
                        page_number=page.page_number,
                        matched_text=match.group(0),
                    )
                )

        totals.recompute_confidence()
        LOGGER.debug(
            "Deterministic totals pass finished",
            extra={"found": totals.found_count(), "pages": len(pages)},
        )
        return totals

    def _build_prompt(self, pages: Sequence[PageText]) -> str:
        keyword_pages = [p for p in pages if TOTALS_KEYWORD_RE.search(p.raw_text or "")]
        chosen = keyword_pages or list(pages[: self.fallback_page_count])
        blocks = "\n".join(format_page_block(p, self.page_char_limit) for p in chosen)
        return TOTALS_FALLBACK_PROMPT.format(pages=blocks)

    async def _fill_with_llm(self, totals: NormalizedTotals, pages: Sequence[PageText]) -> None:
        response = await self.llm_client.generate_content(
            contents=self._build_prompt(pages),
            generation_config={"temperature": 0.0, "max_output_tokens": 300},
        )
        parsed = parse_json_safely(response, salvage=False)
        if not isinstance(parsed, dict):
            raise ValueError(f"Totals fallback returned no JSON object: {(response or '')[:200]}")

        filled: List[str] = []
        for field in totals.missing_fields():
            raw = parsed.get(PAYLOAD_KEYS[field])
            if raw is None:
                continue
            value = _convert(field, raw)
            if value is not None:
                setattr(totals, field, value)
                filled.append(PAYLOAD_KEYS[field])

        totals.used_llm = True
        totals.recompute_confidence()
        LOGGER.info(
            "Totals fallback filled missing fields",
            extra={"filled": filled, "confidence": totals.confidence},
        )


async def normalize_estimate_totals(
    pages: Sequence[PageText],
    llm_client: Optional[UnifiedLLMClient] = None,
) -> NormalizedTotals:
    """Functional entrypoint for :class:`EstimateNormalizer`."""
    return await EstimateNormalizer(llm_client=llm_client).normalize(pages)
