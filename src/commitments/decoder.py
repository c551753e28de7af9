"""Decoder for uploaded documents.

Turns raw bytes plus a declared media type into plain text. Dispatch is an
explicit table over MediaType; each backend either returns text or raises
DecodeError, and decode() converts every failure into a DecodeResult so
callers never see an exception:

- PDF and Word documents go through docling (OCR disabled, so a scanned PDF
  yields almost no text and is rejected as insufficient content)
- Images are downscaled with Pillow and transcribed by a vision model
- Plain text and markdown are decoded as UTF-8
"""

from __future__ import annotations

import asyncio
import logging
from io import BytesIO
from typing import Awaitable, Callable

from PIL import Image, ImageOps
from pillow_heif import register_heif_opener

from commitments.backend import GatewayBackend
from commitments.config import Config
from commitments.models import DecodeErrorKind, DecodeFailure, DecodeResult, MediaType

logger = logging.getLogger(__name__)

register_heif_opener()


class DecodeError(Exception):
    """A backend could not produce usable text."""

    def __init__(self, kind: DecodeErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


def _build_converter():
    """Create a docling converter for PDF and DOCX text extraction."""
    from docling.datamodel.base_models import InputFormat
    from docling.datamodel.pipeline_options import PdfPipelineOptions
    from docling.document_converter import DocumentConverter, PdfFormatOption

    pipeline_options = PdfPipelineOptions(
        do_ocr=False,
        do_table_structure=False,
    )
    return DocumentConverter(
        allowed_formats=[InputFormat.PDF, InputFormat.DOCX],
        format_options={InputFormat.PDF: PdfFormatOption(pipeline_options=pipeline_options)},
    )


def convert_document(data: bytes, filename: str) -> str:
    """Convert an in-memory PDF or DOCX with docling and return its plain text."""
    from docling.datamodel.base_models import DocumentStream

    converter = _build_converter()
    result = converter.convert(DocumentStream(name=filename, stream=BytesIO(data)))
    return result.document.export_to_text()


def prepare_image(data: bytes, max_width: int = 2000, quality: int = 90) -> bytes:
    """Downscale an image to at most max_width pixels wide and re-encode as JPEG."""
    with Image.open(BytesIO(data)) as opened:
        image = ImageOps.exif_transpose(opened)
        if image.width > max_width:
            height = max(1, round(image.height * max_width / image.width))
            image = image.resize((max_width, height), Image.Resampling.LANCZOS)
        if image.mode != "RGB":
            image = image.convert("RGB")
        buffer = BytesIO()
        image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


async def _convert(data: bytes, filename: str, config: Config) -> str:
    return await asyncio.wait_for(
        asyncio.to_thread(convert_document, data, filename),
        timeout=config.decode_timeout,
    )


async def decode_pdf(data: bytes, *, backend: GatewayBackend | None, config: Config) -> str:
    try:
        text = await _convert(data, "upload.pdf", config)
    except asyncio.TimeoutError as e:
        raise DecodeError(
            DecodeErrorKind.UNREADABLE,
            f"Timed out reading PDF after {config.decode_timeout:g} seconds.",
        ) from e
    except Exception as e:
        logger.warning("Error parsing PDF: %s", e)
        raise DecodeError(
            DecodeErrorKind.UNREADABLE,
            "Could not read PDF. The file may be corrupted or password-protected.",
        ) from e

    text = text.strip()
    if len(text) < config.min_pdf_chars:
        raise DecodeError(
            DecodeErrorKind.INSUFFICIENT_CONTENT,
            "PDF appears to be scanned or contains minimal text. "
            "Try uploading as image for better OCR.",
        )
    return text


async def decode_docx(data: bytes, *, backend: GatewayBackend | None, config: Config) -> str:
    try:
        text = await _convert(data, "upload.docx", config)
    except asyncio.TimeoutError as e:
        raise DecodeError(
            DecodeErrorKind.UNREADABLE,
            f"Timed out reading Word document after {config.decode_timeout:g} seconds.",
        ) from e
    except Exception as e:
        logger.warning("Error parsing DOCX: %s", e)
        raise DecodeError(
            DecodeErrorKind.UNREADABLE,
            "Could not read Word document. Try converting to PDF or plain text.",
        ) from e

    text = text.strip()
    if not text:
        raise DecodeError(
            DecodeErrorKind.EMPTY_DOCUMENT,
            "No text found in Word document. The file may be empty or corrupted.",
        )
    return text


async def decode_image(data: bytes, *, backend: GatewayBackend | None, config: Config) -> str:
    if backend is None:
        raise DecodeError(DecodeErrorKind.OCR_FAILED, "No inference backend configured for OCR.")

    try:
        prepared = await asyncio.wait_for(
            asyncio.to_thread(prepare_image, data, config.max_image_width, config.image_quality),
            timeout=config.decode_timeout,
        )
        text = await asyncio.wait_for(
            backend.transcribe_image(prepared, config.ocr_prompt, config.ocr_max_tokens),
            timeout=config.llm_timeout,
        )
    except Exception as e:
        logger.warning("Error parsing image with OCR: %s", e)
        raise DecodeError(
            DecodeErrorKind.OCR_FAILED,
            "Image OCR failed. Please paste text manually or try a different image.",
        ) from e

    text = (text or "").strip()
    if not text:
        raise DecodeError(
            DecodeErrorKind.OCR_FAILED,
            "Could not extract text from image. Please paste text manually or try a clearer image.",
        )
    return text


async def decode_text(data: bytes, *, backend: GatewayBackend | None, config: Config) -> str:
    try:
        text = data.decode("utf-8-sig").strip()
    except UnicodeDecodeError as e:
        raise DecodeError(
            DecodeErrorKind.UNREADABLE,
            "Could not read text file. File may be corrupted or use unsupported encoding.",
        ) from e

    if not text:
        raise DecodeError(DecodeErrorKind.EMPTY_DOCUMENT, "Text file is empty.")
    return text


Decoder = Callable[..., Awaitable[str]]

DECODERS: dict[MediaType, Decoder] = {
    MediaType.PDF: decode_pdf,
    MediaType.DOCX: decode_docx,
    MediaType.JPEG: decode_image,
    MediaType.PNG: decode_image,
    MediaType.HEIC: decode_image,
    MediaType.PLAIN_TEXT: decode_text,
    MediaType.MARKDOWN: decode_text,
}


def _failure(kind: DecodeErrorKind, message: str) -> DecodeResult:
    return DecodeResult(failure=DecodeFailure(kind=kind, message=message))


async def decode(
    data: bytes,
    media_type: str | MediaType,
    *,
    backend: GatewayBackend | None = None,
    config: Config | None = None,
) -> DecodeResult:
    """Decode a document into trimmed, non-empty text.

    Args:
        data: Raw document bytes
        media_type: Declared MIME type (or MediaType)
        backend: Inference backend, needed for image OCR only
        config: Limits and prompts; defaults to Config()

    Returns:
        DecodeResult holding either the text or a DecodeFailure.
    """
    config = config or Config()
    resolved = media_type if isinstance(media_type, MediaType) else MediaType.from_mime(media_type)
    if resolved is None:
        logger.warning("Unsupported file type: %s", media_type)
        return _failure(DecodeErrorKind.UNSUPPORTED_TYPE, f"Unsupported file type: {media_type}")

    handler = DECODERS[resolved]
    try:
        text = await handler(data, backend=backend, config=config)
    except DecodeError as e:
        logger.warning("Decoding %s failed (%s): %s", resolved.value, e.kind.value, e.message)
        return _failure(e.kind, e.message)
    except Exception as e:
        logger.exception("Unexpected error decoding %s", resolved.value)
        return _failure(DecodeErrorKind.UNREADABLE, str(e) or "Unknown parsing error")

    text = (text or "").strip()
    if not text:
        return _failure(DecodeErrorKind.EMPTY_DOCUMENT, "No text could be extracted from the document.")
    return DecodeResult(text=text)
