"""Pydantic models for documents, extracted commitments and pipeline results."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from pathlib import PurePath

from pydantic import BaseModel, Field, field_validator


class MediaType(str, Enum):
    """Declared content types the decoder knows how to turn into text."""

    PDF = "application/pdf"
    DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    JPEG = "image/jpeg"
    PNG = "image/png"
    HEIC = "image/heic"
    PLAIN_TEXT = "text/plain"
    MARKDOWN = "text/markdown"

    @classmethod
    def from_mime(cls, value: str | None) -> MediaType | None:
        """Resolve a declared MIME string, or None when it is not supported."""
        if not value:
            return None
        mime = value.split(";", 1)[0].strip().lower()
        mime = _MIME_ALIASES.get(mime, mime)
        try:
            return cls(mime)
        except ValueError:
            return None

    @classmethod
    def from_filename(cls, name: str) -> MediaType | None:
        return _SUFFIX_TYPES.get(PurePath(name).suffix.lower())


_MIME_ALIASES = {
    "image/jpg": "image/jpeg",
}

_SUFFIX_TYPES = {
    ".pdf": MediaType.PDF,
    ".docx": MediaType.DOCX,
    ".jpg": MediaType.JPEG,
    ".jpeg": MediaType.JPEG,
    ".png": MediaType.PNG,
    ".heic": MediaType.HEIC,
    ".txt": MediaType.PLAIN_TEXT,
    ".md": MediaType.MARKDOWN,
    ".markdown": MediaType.MARKDOWN,
}


class SourceCategory(str, Enum):
    """Where the captured text came from."""

    MEETING = "meeting"
    EMAIL = "email"
    MESSAGE = "message"
    NOTE = "note"
    OTHER = "other"


class TaskStatus(str, Enum):
    OPEN = "open"


class RawDocument(BaseModel):
    """An uploaded payload as declared by the caller."""

    data: bytes
    media_type: str
    source: SourceCategory = SourceCategory.OTHER


class CandidateCommitment(BaseModel):
    """A commitment as proposed by the model, before date resolution."""

    title: str = Field(description="A concise, actionable title for the task")
    description: str | None = Field(
        default=None, description="Optional detail, only when it adds context"
    )
    due_date_raw: str | None = Field(
        default=None,
        description=(
            'The due date in its original natural language form (e.g. "tomorrow", '
            '"next Friday", "2025-12-15"), or null if no date is mentioned'
        ),
    )


class ExtractionResult(BaseModel):
    """The response schema of the extraction call."""

    tasks: list[CandidateCommitment] = Field(
        default_factory=list, description="Tasks extracted from the text"
    )


class ResolvedCommitment(BaseModel):
    """A commitment ready to be stored as a task row."""

    title: str
    description: str | None = None
    due_date: str | None = Field(default=None, description="YYYY-MM-DD")
    status: TaskStatus = TaskStatus.OPEN

    @field_validator("due_date")
    @classmethod
    def _check_due_date(cls, value: str | None) -> str | None:
        if value is None:
            return None
        # Raises ValueError for anything that is not a real calendar date.
        return date.fromisoformat(value).isoformat()


class DecodeErrorKind(str, Enum):
    UNSUPPORTED_TYPE = "unsupported_type"
    INSUFFICIENT_CONTENT = "insufficient_content"
    EMPTY_DOCUMENT = "empty_document"
    OCR_FAILED = "ocr_failed"
    UNREADABLE = "unreadable"


class DecodeFailure(BaseModel):
    kind: DecodeErrorKind
    message: str


class DecodeResult(BaseModel):
    """Outcome of decoding: either trimmed text or a failure, never both."""

    text: str | None = None
    failure: DecodeFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None and bool(self.text)


class PipelineStatus(str, Enum):
    COMPLETED = "completed"
    DECODE_FAILED = "decode_failed"


class PipelineResult(BaseModel):
    """What one pipeline run hands to the persistence layer."""

    status: PipelineStatus
    source: SourceCategory = SourceCategory.OTHER
    text: str | None = None
    commitments: list[ResolvedCommitment] = Field(default_factory=list)
    error: DecodeFailure | None = None
    reference: datetime | None = None

    @property
    def completed(self) -> bool:
        return self.status == PipelineStatus.COMPLETED
