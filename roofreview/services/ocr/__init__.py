"""OCR services for document text extraction."""

from roofreview.services.ocr.ocr_service import OCRService

__all__ = ["OCRService"]
