"""Custom exception hierarchy."""


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class DatabaseError(AppError):
    """Raised when a database operation fails."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class PipelineError(AppError):
    """Base exception for extraction pipeline errors."""
    pass


class OCRExtractionError(PipelineError):
    """OCR phase failed to produce page text."""
    pass


class InvalidDocumentError(PipelineError):
    """Source document is missing or unreadable."""
    pass


class JobNotFoundError(AppError):
    """Raised when a job is not found."""
    pass


class RunAlreadyActiveError(PipelineError):
    """Raised when a job already has a queued or running extraction."""
    pass
