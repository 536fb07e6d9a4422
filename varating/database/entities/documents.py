"""
Document ORM Models
===================

Uploaded medical records and everything the OCR pipeline derives from them.

Tables
------
- ``documents``: one row per stored file, unique on ``(user_id, file_url)``
- ``document_chunks``: page-scoped text chunks fed to the condition extractor
- ``medical_entities``: key/value pairs read from form fields
- ``textract_jobs``: asynchronous Textract analysis jobs, keyed by AWS job id

Status vocabulary
~~~~~~~~~~~~~~~~~
- ``processing_status`` / ``textract_status`` / ``rag_status``:
  ``pending`` | ``processing`` | ``completed`` | ``failed``
- ``textract_jobs.status``: ``PROCESSING`` | ``SUCCEEDED`` | ``FAILED``
"""

from varating.database.config.connection_engine import declarativeBase
from varating.database.helpers.columns import JSONDocument, utcnow
from sqlalchemy.dialects.postgresql import UUID as pgUUID
from sqlalchemy import TEXT, Boolean, DateTime, Float, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from uuid import UUID
from datetime import datetime
from typing import Optional
import uuid


class Document(declarativeBase):
    """
    ORM model for the `documents` table.

    Attributes
    ----------
    id : UUID
        Primary key.
    user_id : UUID
        Owner of the file.
    file_name : str
        Basename of the stored object.
    document_name : str
        File name without its extension, shown in the UI.
    file_url : str | None
        Public-style S3 URL of the object.
    processing_status : str
        Overall pipeline status.
    textract_status : str
        OCR stage status.
    rag_status : str | None
        Condition-extraction stage status.
    total_chunks, total_pages : int | None
        Filled in once OCR completes.
    textract_form_fields : dict | None
        Form key/value pairs found by Textract.
    """

    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("user_id", "file_url", name="uq_documents_user_file_url"),)

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    """Primary key."""

    user_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, index=True)
    """Owner (auth user id)."""

    file_name: Mapped[str] = mapped_column(TEXT, nullable=False)
    document_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    file_url: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    document_type: Mapped[str] = mapped_column(TEXT, nullable=False, default="medical_record")

    upload_status: Mapped[str] = mapped_column(TEXT, nullable=False, default="uploaded")
    processing_status: Mapped[str] = mapped_column(TEXT, nullable=False, default="pending")
    textract_status: Mapped[str] = mapped_column(TEXT, nullable=False, default="pending")
    rag_status: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    """Last pipeline failure, if any."""

    textract_job_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    total_chunks: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    total_pages: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    textract_form_fields: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)
    textract_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    has_signatures: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    signature_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __init__(
        self,
        user_id: UUID,
        file_name: str,
        file_url: Optional[str] = None,
        document_name: Optional[str] = None,
        processing_status: str = "pending",
        textract_status: str = "pending",
        document_type: str = "medical_record",
        id: Optional[UUID] = None,
    ):
        self.id = id or uuid.uuid4()
        self.user_id = user_id
        self.file_name = file_name
        self.file_url = file_url
        self.document_name = document_name
        self.document_type = document_type
        self.upload_status = "uploaded"
        self.processing_status = processing_status
        self.textract_status = textract_status
        self.has_signatures = False
        self.signature_count = 0
        self.uploaded_at = utcnow()
        self.updated_at = self.uploaded_at

    def __str__(self) -> str:
        return f"Document: id:{self.id}, user_id: {self.user_id}, file_name: {self.file_name}"


class DocumentChunk(declarativeBase):
    """ORM model for the `document_chunks` table."""

    __tablename__ = "document_chunks"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, index=True)
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    page_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    content: Mapped[str] = mapped_column(TEXT, nullable=False)
    content_type: Mapped[str] = mapped_column(TEXT, nullable=False, default="text")
    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    char_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    confidence_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    """Average OCR confidence of the document, scaled to 0..1."""
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class MedicalEntity(declarativeBase):
    """ORM model for the `medical_entities` table."""

    __tablename__ = "medical_entities"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(TEXT, nullable=False)
    entity_value: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    confidence_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    bounding_box: Mapped[Optional[dict]] = mapped_column(JSONDocument, nullable=True)
    page_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class TextractJob(declarativeBase):
    """
    ORM model for the `textract_jobs` table.

    ``raw_output`` keeps at most the first 1000 blocks of a finished job.
    """

    __tablename__ = "textract_jobs"

    id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id: Mapped[UUID] = mapped_column(pgUUID(as_uuid=True), nullable=False, index=True)
    aws_job_id: Mapped[str] = mapped_column(TEXT, nullable=False, unique=True)
    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="PROCESSING")
    error_message: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    raw_output: Mapped[Optional[list]] = mapped_column(JSONDocument, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __init__(self, document_id: UUID, aws_job_id: str, status: str = "PROCESSING"):
        self.id = uuid.uuid4()
        self.document_id = document_id
        self.aws_job_id = aws_job_id
        self.status = status
        self.started_at = utcnow()
