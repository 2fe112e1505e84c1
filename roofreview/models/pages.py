"""Page-text index: OCR output for one job, one entry per page."""

from typing import Iterable, List

from pydantic import ConfigDict, Field

from roofreview.models.base import CamelModel


class PageText(CamelModel):
    """Raw OCR text of a single page. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(..., ge=1)
    raw_text: str = ""


def sort_pages(pages: Iterable[PageText]) -> List[PageText]:
    """Return pages ordered by page number."""
    return sorted(pages, key=lambda page: page.page_number)


def format_page_block(page: PageText, limit: int) -> str:
    """Label a page for prompt context, truncating its text to ``limit`` chars."""
    return f"--- Page {page.page_number} ---\n{(page.raw_text or '')[:limit]}"
