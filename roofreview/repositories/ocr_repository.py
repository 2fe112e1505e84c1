from typing import Any, Dict, List

from roofreview.core.base_llm_client import BaseLLMClient
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class OCRRepository(BaseLLMClient):
    """Mistral OCR API access.

    Inherits from BaseLLMClient for auth, retries and error mapping.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str,
        timeout: int = 120,
        max_retries: int = 3,
        retry_delay: int = 2,
    ):
        super().__init__(
            api_key=api_key,
            base_url=api_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay
        )

    @staticmethod
    def build_document(document_url: str, is_image: bool = False) -> Dict[str, Any]:
        if is_image:
            return {"type": "image_url", "image_url": document_url}
        return {"type": "document_url", "document_url": document_url}

    async def call_mistral_ocr_api(self, document: Dict[str, Any], model: str) -> List[str]:
        """Run OCR on one document and return the text of each page, in order.

        Args:
            document: Mistral document descriptor (URL or base64 data URI)
            model: OCR model name

        Returns:
            List[str]: One entry per page; empty pages yield ""
        """
        payload = {
            "model": model,
            "document": document,
            "include_image_base64": False,
        }

        result = await self.call_api(endpoint="", method="POST", payload=payload)

        page_texts = []
        for idx, page in enumerate(result.get("pages", [])):
            text = page.get("markdown") or page.get("text") or ""
            if not text:
                self.logger.warning(
                    f"Page {idx + 1} has no text or markdown content",
                    extra={"page_index": idx}
                )
            page_texts.append(text)

        self.logger.debug(
            "Mistral OCR API call successful",
            extra={"pages_processed": len(page_texts), "model": model},
        )
        return page_texts
