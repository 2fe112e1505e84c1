"""SQLAlchemy models for all database tables."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from roofreview.core.database import Base


class JobStatus(str, Enum):
    """Lifecycle of a roofing job."""
    UPLOADED = "UPLOADED"
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    TEXT_EXTRACTED = "TEXT_EXTRACTED"
    ANALYSIS_READY = "ANALYSIS_READY"
    FAILED = "FAILED"


class Job(Base):
    """Roofing claim job with the summary fields mirrored from extraction."""

    __tablename__ = "jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=JobStatus.UPLOADED.value
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    customer_name: Mapped[str | None] = mapped_column(String, nullable=True)
    claim_number: Mapped[str | None] = mapped_column(String, nullable=True)

    roof_squares: Mapped[float | None] = mapped_column(Float, nullable=True)
    eave_length: Mapped[float | None] = mapped_column(Float, nullable=True)
    rake_length: Mapped[float | None] = mapped_column(Float, nullable=True)
    valley_length: Mapped[float | None] = mapped_column(Float, nullable=True)
    ridge_hip_length: Mapped[float | None] = mapped_column(Float, nullable=True)
    roof_slope: Mapped[str | None] = mapped_column(String, nullable=True)
    roof_stories: Mapped[int | None] = mapped_column(Integer, nullable=True)
    roof_material: Mapped[str | None] = mapped_column(String, nullable=True)
    original_estimate: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=datetime.utcnow
    )

    # Relationships
    documents: Mapped[list["JobDocument"]] = relationship(
        "JobDocument", back_populates="job", cascade="all, delete-orphan"
    )
    pages: Mapped[list["DocumentPage"]] = relationship(
        "DocumentPage", back_populates="job", cascade="all, delete-orphan"
    )
    extractions: Mapped[list["Extraction"]] = relationship(
        "Extraction", back_populates="job", cascade="all, delete-orphan"
    )


class JobDocument(Base):
    """Uploaded estimate or report file attached to a job."""

    __tablename__ = "job_documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    file_path: Mapped[str] = mapped_column(String, nullable=False)
    file_name: Mapped[str | None] = mapped_column(String, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    job: Mapped["Job"] = relationship("Job", back_populates="documents")


class DocumentPage(Base):
    """OCR text of one page, numbered across all documents of the job."""

    __tablename__ = "document_pages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("job_documents.id", ondelete="SET NULL"), nullable=True
    )
    page_number: Mapped[int] = mapped_column(Integer, nullable=False)
    raw_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    extracted_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    job: Mapped["Job"] = relationship("Job", back_populates="pages")

    __table_args__ = (
        UniqueConstraint("job_id", "page_number", name="uq_document_page_job_page"),
    )


class Extraction(Base):
    """Per-job extraction record; the v2 payload lives under the ``v2`` key."""

    __tablename__ = "extractions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    job_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    extracted_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    extracted_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )

    job: Mapped["Job"] = relationship("Job", back_populates="extractions")
