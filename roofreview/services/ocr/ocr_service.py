"""OCR collaborator: turns uploaded files into the job's page-text index."""

import asyncio
import base64
import mimetypes
from pathlib import Path
from typing import List, Sequence

from roofreview.core.config import OCRSettings
from roofreview.core.exceptions import AppError, InvalidDocumentError, OCRExtractionError
from roofreview.models.pages import PageText
from roofreview.repositories.ocr_repository import OCRRepository
from roofreview.utils.logging import get_logger

LOGGER = get_logger(__name__)


class OCRService:
    """Mistral OCR over local files and remote URLs.

    Pages from several files are numbered consecutively in file order.
    """

    def __init__(self, repository: OCRRepository, model: str = "mistral-ocr-latest"):
        self.repository = repository
        self.model = model

    @classmethod
    def from_settings(cls, ocr_settings: OCRSettings) -> "OCRService":
        repository = OCRRepository(
            api_key=ocr_settings.mistral_api_key,
            api_url=ocr_settings.mistral_api_url,
            timeout=ocr_settings.timeout,
            max_retries=ocr_settings.max_retries,
            retry_delay=ocr_settings.retry_delay,
        )
        return cls(repository=repository, model=ocr_settings.mistral_model)

    async def extract_pages(self, file_paths: Sequence[str]) -> List[PageText]:
        """OCR every file and return one PageText per page.

        Raises:
            InvalidDocumentError: If a local file is missing or unreadable
            OCRExtractionError: If the OCR API fails
        """
        pages: List[PageText] = []
        for file_path in file_paths:
            texts = await self._extract_file(file_path)
            offset = len(pages)
            pages.extend(
                PageText(page_number=offset + idx + 1, raw_text=text)
                for idx, text in enumerate(texts)
            )

        LOGGER.info(
            "OCR extraction completed",
            extra={"files": len(file_paths), "pages": len(pages)},
        )
        return pages

    async def _extract_file(self, file_path: str) -> List[str]:
        document = await self._build_document(file_path)
        try:
            return await self.repository.call_mistral_ocr_api(document, self.model)
        except AppError as e:
            LOGGER.error(
                "OCR extraction failed",
                exc_info=True,
                extra={"file_path": file_path, "error": str(e)},
            )
            raise OCRExtractionError(f"Failed to extract text from {file_path}: {e}", original_error=e) from e

    async def _build_document(self, file_path: str) -> dict:
        if file_path.startswith(("http://", "https://")):
            return self.repository.build_document(file_path)

        path = Path(file_path)
        if not path.is_file():
            raise InvalidDocumentError(f"Document not found: {file_path}")

        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise InvalidDocumentError(f"Failed to read document {file_path}: {e}", original_error=e) from e

        mime_type = mimetypes.guess_type(path.name)[0] or "application/pdf"
        data_uri = f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"
        return self.repository.build_document(data_uri, is_image=mime_type.startswith("image/"))
