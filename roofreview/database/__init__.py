"""SQLAlchemy models for jobs, documents, page text and extractions."""
