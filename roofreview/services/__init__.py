"""Application services: OCR, extraction phases, job store and progress."""
