"""Base class for the category line-item extractors.

Each extractor narrows the job's pages to a handful that mention its
category, sends them to the model in one call and validates the returned
items. Model and parse failures are reported on the result, never raised.
"""

import re
from abc import ABC
from typing import Any, Dict, List, Optional, Pattern, Sequence

from pydantic import ValidationError as PydanticValidationError

from roofreview.core.unified_llm import UnifiedLLMClient
from roofreview.models.extraction import (
    ExtractorResult,
    LineItem,
    LineItemCategory,
    PhaseStatus,
)
from roofreview.models.pages import PageText, format_page_block, sort_pages
from roofreview.prompts.extraction_prompts import EDGE_PROTECTION_RULES, LINE_ITEM_PROMPT
from roofreview.services.extraction.parsing import select_pages
from roofreview.utils.json_parser import parse_json_safely
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)

ESTIMATE_PAGE_RE = re.compile(r"\bQUANTITY\b|\bUNIT\s*PRICE\b|\bRCV\b|\bACV\b", re.IGNORECASE)


class BaseLineItemExtractor(ABC):
    """Shared page selection, prompting and validation for one category.

    Subclasses set:
        CATEGORY: the line-item category this extractor owns
        PRIMARY_PATTERN: keyword regex that marks a page as relevant
        SECONDARY_PATTERN: optional looser regex tried when nothing matches
        PROMPT_HINT: category-specific instruction appended to the prompt
        EDGE_PROTECTION: keep only priced items from estimate pages
    """

    CATEGORY: LineItemCategory
    PRIMARY_PATTERN: Pattern
    SECONDARY_PATTERN: Optional[Pattern] = None
    PROMPT_HINT: str = ""
    EDGE_PROTECTION: bool = False

    max_pages = 5
    fallback_pages = 3
    page_char_limit = 4000
    max_output_tokens = 500

    def __init__(self, llm_client: Optional[UnifiedLLMClient] = None):
        self.llm_client = llm_client

    def select_pages(self, pages: Sequence[PageText]) -> List[PageText]:
        return select_pages(
            sort_pages(pages),
            self.PRIMARY_PATTERN,
            self.SECONDARY_PATTERN,
            max_pages=self.max_pages,
            fallback_pages=self.fallback_pages,
        )

    def get_extraction_prompt(self) -> str:
        category = self.CATEGORY.value
        return LINE_ITEM_PROMPT.format(
            category=category,
            ridge_cap_field=", ridgeCapQuality" if self.CATEGORY == LineItemCategory.RIDGE_CAP else "",
            edge_rules=EDGE_PROTECTION_RULES if self.EDGE_PROTECTION else "",
            hint=self.PROMPT_HINT,
        )

    async def extract(self, pages: Sequence[PageText]) -> ExtractorResult:
        """Extract this category's line items from ``pages``."""
        category = self.CATEGORY

        if self.llm_client is None:
            return ExtractorResult(category=category, status=PhaseStatus.SKIPPED)

        relevant = self.select_pages(pages)
        LOGGER.info(
            f"Extracting {category.value} line items",
            extra={"pages": [p.page_number for p in relevant]},
        )

        try:
            response = await self.llm_client.generate_content(
                contents=self._build_contents(relevant),
                generation_config={
                    "temperature": 0.0,
                    "max_output_tokens": self.max_output_tokens,
                },
            )
            raw_items = self._parse_response(response)
        except Exception as e:
            LOGGER.error(
                f"{category.value} extraction failed",
                exc_info=True,
                extra={"category": category.value},
            )
            return ExtractorResult(category=category, status=PhaseStatus.FAILED, error=str(e))

        items = self._validate_items(raw_items)
        if self.EDGE_PROTECTION:
            items = self._filter_edge_protection(items, relevant)

        LOGGER.info(
            f"{category.value} extraction found {len(items)} items",
            extra={"category": category.value, "count": len(items)},
        )
        return ExtractorResult(category=category, items=items, status=PhaseStatus.COMPLETED)

    def _build_contents(self, pages: Sequence[PageText]) -> str:
        blocks = "\n".join(format_page_block(p, self.page_char_limit) for p in pages)
        return f"{self.get_extraction_prompt()}\n\n{blocks}"

    def _parse_response(self, response: str) -> List[Dict[str, Any]]:
        """Accept a bare array, ``{"items": [...]}`` or a single item object."""
        parsed = parse_json_safely(response)
        if parsed is None:
            raise ValueError(f"Unparseable {self.CATEGORY.value} response: {(response or '')[:200]}")

        if isinstance(parsed, list):
            return parsed
        if isinstance(parsed, dict):
            if isinstance(parsed.get("items"), list):
                return parsed["items"]
            if "description" in parsed:
                return [parsed]
        raise ValueError(f"Unexpected {self.CATEGORY.value} response shape: {type(parsed).__name__}")

    def _validate_items(self, raw_items: List[Any]) -> List[LineItem]:
        items: List[LineItem] = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                LOGGER.warning(f"Dropping non-object {self.CATEGORY.value} item")
                continue
            try:
                items.append(LineItem.model_validate({**raw, "category": self.CATEGORY}))
            except PydanticValidationError as e:
                LOGGER.warning(
                    f"Dropping invalid {self.CATEGORY.value} item",
                    extra={"errors": e.error_count(), "item": str(raw)[:200]},
                )
        return items

    def _filter_edge_protection(
        self, items: List[LineItem], pages: Sequence[PageText]
    ) -> List[LineItem]:
        """Keep only billed lines: quantity, a price and estimate-page evidence."""
        estimate_pages = {p.page_number for p in pages if ESTIMATE_PAGE_RE.search(p.raw_text or "")}

        def is_billed_line(item: LineItem) -> bool:
            has_quantity = item.quantity is not None and item.quantity.value > 0
            has_price = (item.unit_price or 0) > 0 or (item.total_price or 0) > 0
            if not item.source_pages:
                return False
            from_estimate = not estimate_pages or all(n in estimate_pages for n in item.source_pages)
            return has_quantity and has_price and from_estimate

        kept = [item for item in items if is_billed_line(item)]
        removed = len(items) - len(kept)
        if removed:
            LOGGER.warning(
                f"Filtered out {removed} non-line-items for {self.CATEGORY.value}",
                extra={"category": self.CATEGORY.value, "removed": removed},
            )
        return kept
