"""Tests for the capture pipeline."""

import asyncio
import json
from datetime import datetime, timezone

import openai
import pytest

from commitments.config import Config
from commitments.identity import IdentityContext
from commitments.models import (
    CandidateCommitment,
    DecodeErrorKind,
    PipelineStatus,
    RawDocument,
    SourceCategory,
    TaskStatus,
)
from commitments.pipeline import (
    capture_document,
    resolve_commitments,
    run_pipeline,
    run_text_pipeline,
)

# Monday
REFERENCE = datetime(2025, 6, 2, 9, 0, tzinfo=timezone.utc)

INVOICE_TEXT = (
    "I'll send the invoice to Dana by next Friday, "
    "and Dana will review the contract by Monday"
)


class FakeBackend:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    async def generate(self, system_prompt, user_prompt):
        self.calls.append((system_prompt, user_prompt))
        if self.error:
            raise self.error
        return self.response

    async def transcribe_image(self, image, prompt, max_tokens=4096):
        raise AssertionError("no images in these tests")


def tasks_json(*tasks):
    return json.dumps({"tasks": list(tasks)})


def capture(data, media_type="text/plain", backend=None, source="meeting", config=None):
    return asyncio.run(
        run_pipeline(
            data,
            media_type,
            source,
            IdentityContext(owner="Alex"),
            REFERENCE,
            backend=backend or FakeBackend(tasks_json()),
            config=config or Config(),
        )
    )


class TestEndToEnd:
    """Decode, extract, resolve and emit."""

    def test_invoice_example(self):
        backend = FakeBackend(
            tasks_json(
                {
                    "title": "Send the invoice to Dana",
                    "description": None,
                    "due_date_raw": "next Friday",
                }
            )
        )

        result = capture(INVOICE_TEXT.encode(), backend=backend)

        assert result.status == PipelineStatus.COMPLETED
        assert result.text == INVOICE_TEXT
        assert result.source == SourceCategory.MEETING
        assert len(result.commitments) == 1
        commitment = result.commitments[0]
        assert "send the invoice to dana" in commitment.title.lower()
        assert commitment.due_date == "2025-06-13"
        assert commitment.status == TaskStatus.OPEN
        assert not any("contract" in c.title.lower() for c in result.commitments)

        _, prompt = backend.calls[0]
        assert "Alex" in prompt
        assert INVOICE_TEXT in prompt

    def test_reference_recorded(self):
        result = capture(b"Nothing to do here.")
        assert result.reference == REFERENCE

    def test_default_reference_is_now(self):
        result = asyncio.run(
            run_pipeline(
                b"Nothing to do here.",
                "text/plain",
                "note",
                IdentityContext(),
                backend=FakeBackend(tasks_json()),
                config=Config(),
            )
        )
        assert result.reference is not None
        assert result.reference.tzinfo is not None

    def test_no_commitments(self):
        result = capture(b"Dana will review the contract by Monday.")

        assert result.status == PipelineStatus.COMPLETED
        assert result.commitments == []
        assert result.text == "Dana will review the contract by Monday."


class TestPartialFailure:
    """Extraction and date problems never lose the text."""

    def test_extraction_failure_still_completes(self):
        backend = FakeBackend(error=openai.OpenAIError("service unavailable"))

        result = capture(INVOICE_TEXT.encode(), backend=backend)

        assert result.status == PipelineStatus.COMPLETED
        assert result.text == INVOICE_TEXT
        assert result.commitments == []
        assert result.error is None

    def test_unparseable_date_keeps_commitment(self):
        backend = FakeBackend(
            tasks_json({"title": "Fix the printer", "due_date_raw": "when things calm down"})
        )

        result = capture(b"I'll fix the printer when things calm down.", backend=backend)

        assert [c.title for c in result.commitments] == ["Fix the printer"]
        assert result.commitments[0].due_date is None

    def test_out_of_range_date_kept_by_default(self):
        backend = FakeBackend(tasks_json({"title": "Renew passport", "due_date_raw": "2040-03-01"}))
        result = capture(b"I'll renew my passport by 2040-03-01.", backend=backend)
        assert result.commitments[0].due_date == "2040-03-01"

    def test_out_of_range_date_rejected_when_configured(self):
        backend = FakeBackend(tasks_json({"title": "Renew passport", "due_date_raw": "2040-03-01"}))
        result = capture(
            b"I'll renew my passport by 2040-03-01.",
            backend=backend,
            config=Config(reject_out_of_range_dates=True),
        )
        assert result.commitments[0].due_date is None


class TestDecodeFailure:
    """Decode failures end the run with nothing to persist."""

    def test_unsupported_type(self):
        backend = FakeBackend(tasks_json({"title": "Should not happen"}))

        result = capture(b"PK\x03\x04", "application/zip", backend=backend)

        assert result.status == PipelineStatus.DECODE_FAILED
        assert result.text is None
        assert result.commitments == []
        assert result.error.kind == DecodeErrorKind.UNSUPPORTED_TYPE
        assert backend.calls == []

    def test_empty_input(self):
        result = capture(b"")

        assert result.status == PipelineStatus.DECODE_FAILED
        assert result.error.kind == DecodeErrorKind.EMPTY_DOCUMENT
        assert result.text is None

    def test_invalid_source(self):
        with pytest.raises(ValueError):
            capture(b"text", source="podcast")


class TestTextPipeline:
    """Directly submitted text."""

    def test_text_is_trimmed_and_processed(self):
        backend = FakeBackend(tasks_json({"title": "Water the plants", "due_date_raw": "tomorrow"}))

        result = asyncio.run(
            run_text_pipeline(
                "  I'll water the plants tomorrow.  ",
                SourceCategory.MESSAGE,
                IdentityContext(owner="Alex"),
                REFERENCE,
                backend=backend,
                config=Config(),
            )
        )

        assert result.status == PipelineStatus.COMPLETED
        assert result.text == "I'll water the plants tomorrow."
        assert result.commitments[0].due_date == "2025-06-03"
        assert result.source == SourceCategory.MESSAGE

    def test_blank_text_fails(self):
        backend = FakeBackend(tasks_json())

        result = asyncio.run(
            run_text_pipeline(
                "   ",
                "other",
                IdentityContext(),
                REFERENCE,
                backend=backend,
                config=Config(),
            )
        )

        assert result.status == PipelineStatus.DECODE_FAILED
        assert result.error.kind == DecodeErrorKind.EMPTY_DOCUMENT
        assert backend.calls == []


class TestResolveCommitments:
    """Date resolution over candidate lists."""

    def test_carries_fields_forward(self):
        resolved = resolve_commitments(
            [
                CandidateCommitment(title="A", description="ctx", due_date_raw="2025-12-15"),
                CandidateCommitment(title="B"),
            ],
            REFERENCE,
        )

        assert [(r.title, r.description, r.due_date) for r in resolved] == [
            ("A", "ctx", "2025-12-15"),
            ("B", None, None),
        ]
        assert all(r.status == TaskStatus.OPEN for r in resolved)


class TestCaptureDocument:
    """Raw document entry point."""

    def test_document_fields_are_used(self):
        backend = FakeBackend(tasks_json({"title": "Book flights"}))
        document = RawDocument(data=b"I'll book flights.", media_type="text/markdown", source="note")

        result = asyncio.run(
            capture_document(
                document,
                IdentityContext(owner="Alex"),
                REFERENCE,
                backend=backend,
                config=Config(),
            )
        )

        assert result.source == SourceCategory.NOTE
        assert result.text == "I'll book flights."
        assert [c.title for c in result.commitments] == ["Book flights"]
