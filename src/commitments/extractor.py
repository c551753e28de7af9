"""LLM extraction of the owner's commitments from normalized text."""

import asyncio
import json
import logging
import re
from difflib import SequenceMatcher

import openai

from commitments.backend import GatewayBackend
from commitments.config import Config
from commitments.identity import IdentityContext
from commitments.models import CandidateCommitment, ExtractionResult

logger = logging.getLogger(__name__)

# --- Post-extraction cleanup ---

_FILLER_PATTERNS = [
    re.compile(r"^no (particular|specific|explicit|clear|stated|given|due)\b", re.I),
    re.compile(r"^not (specified|mentioned|stated|discussed|provided|given|applicable)\b", re.I),
    re.compile(r"^none (provided|given|stated|mentioned|specified)\b", re.I),
    re.compile(r"^(no|none|null|n/?a|tbd|tba|unknown|unspecified|no date)$", re.I),
    re.compile(r"^(no additional|no further) (context|details?)\b", re.I),
]


def _clean_filler(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    for pattern in _FILLER_PATTERNS:
        if pattern.search(value):
            return None
    return value


def _clean_description(description: str | None, title: str) -> str | None:
    description = _clean_filler(description)
    if description is None:
        return None
    similarity = SequenceMatcher(None, description.lower(), title.lower()).ratio()
    if similarity >= 0.8:
        return None
    return description


def cleanup_commitments(candidates: list[CandidateCommitment]) -> list[CandidateCommitment]:
    """Post-extraction cleanup: drop blank titles, strip filler and redundant text."""
    cleaned = []
    for candidate in candidates:
        title = candidate.title.strip()
        if not title:
            continue
        cleaned.append(
            CandidateCommitment(
                title=title,
                description=_clean_description(candidate.description, title),
                due_date_raw=_clean_filler(candidate.due_date_raw),
            )
        )
    return cleaned


# --- Prompting ---


def build_identity_section(identity: IdentityContext) -> str:
    """Describe how the owner may be referred to in the text."""
    if identity.aliases:
        lines = ["**User Identity:**", f"{identity.owner} may be referred to as:"]
        lines.extend(f"- {alias}" for alias in identity.aliases)
        lines.append(f'- "I" or "I\'ll" when spoken by {identity.owner} in a transcript')
        return "\n".join(lines)
    if identity.is_named:
        return (
            "**User Identity:**\n"
            f'{identity.owner} may be referred to as "I" or "I\'ll" in first-person transcripts'
        )
    return (
        "**User Identity:**\n"
        'The user may be referred to as "I" or "I\'ll" in first-person transcripts'
    )


def build_prompts(config: Config, text: str, identity: IdentityContext) -> tuple[str, str]:
    """Render the system and extraction prompts for one piece of text."""
    schema = json.dumps(ExtractionResult.model_json_schema())
    values = {
        "owner": identity.owner,
        "identity": build_identity_section(identity),
        "schema": schema,
        "text": text,
    }
    return config.system_prompt.format(**values), config.extraction_prompt.format(**values)


def extract_json_block(text: str) -> str:
    """Extract JSON from LLM response, handling various formats.

    Handles:
    - ```json ... ``` code blocks
    - ``` ... ``` code blocks
    - Raw JSON without code blocks

    Args:
        text: Response text potentially containing JSON

    Returns:
        Extracted JSON string

    Raises:
        json.JSONDecodeError: If extracted text is invalid JSON
    """
    text = text.strip()

    # Try ```json ... ``` code block
    if "```json" in text:
        start = text.find("```json") + len("```json")
        end = text.find("```", start)
        if end != -1:
            json_str = text[start:end].strip()
            json.loads(json_str)  # Validate
            return json_str

    # Try ``` ... ``` code block
    if "```" in text:
        start = text.find("```") + len("```")
        end = text.find("```", start)
        if end != -1:
            json_str = text[start:end].strip()
            json.loads(json_str)  # Validate
            return json_str

    # Try raw JSON
    json_str = text
    json.loads(json_str)  # Validate
    return json_str


def chunk_text(text: str, max_size: int, overlap: int) -> list[str]:
    """Split text into overlapping chunks.

    Prefers paragraph boundaries (double newlines) for chunk breaks.

    Args:
        text: Text to chunk
        max_size: Target size in characters (approximate)
        overlap: Character overlap between adjacent chunks

    Returns:
        List of text chunks
    """
    if len(text) <= max_size:
        return [text]

    chunks = []
    start = 0

    while start < len(text):
        end = min(start + max_size, len(text))

        # Not at the end: look for a paragraph break in the last quarter
        if end < len(text):
            search_start = max(start, end - max_size // 4)
            para_break = text.rfind("\n\n", search_start, end)

            if para_break != -1 and para_break > start:
                end = para_break + 2

        chunks.append(text[start:end])

        if end >= len(text):
            break

        # Ensure forward progress even with small chunks
        new_start = end - overlap
        if new_start <= start:
            new_start = end
        start = new_start

    return chunks if chunks else [text]


def merge_commitments(
    results: list[list[CandidateCommitment]], threshold: float = 0.8
) -> list[CandidateCommitment]:
    """Merge per-chunk candidates, dropping near-duplicate titles.

    The first occurrence wins, except that a later duplicate fills in a due
    date or description the kept one is missing.
    """
    kept: list[CandidateCommitment] = []
    for candidate in (c for result in results for c in result):
        title = candidate.title.lower()
        duplicate = None
        for existing in kept:
            if SequenceMatcher(None, title, existing.title.lower()).ratio() >= threshold:
                duplicate = existing
                break

        if duplicate is None:
            kept.append(candidate)
            continue

        if duplicate.due_date_raw is None and candidate.due_date_raw:
            duplicate.due_date_raw = candidate.due_date_raw
        if duplicate.description is None and candidate.description:
            duplicate.description = candidate.description

    return kept


# --- Extraction ---


async def extract_structured(
    backend: GatewayBackend,
    config: Config,
    text: str,
    identity: IdentityContext,
) -> list[CandidateCommitment]:
    """Extract candidate commitments from one chunk of text.

    Retries up to config.max_retries times on malformed responses.
    Returns an empty list on final failure.
    """
    system_prompt, user_prompt = build_prompts(config, text, identity)
    attempts = max(1, config.max_retries)

    for attempt in range(attempts):
        response = await asyncio.wait_for(
            backend.generate(system_prompt, user_prompt),
            timeout=config.llm_timeout,
        )

        try:
            json_str = extract_json_block(response or "")
            result = ExtractionResult.model_validate(json.loads(json_str))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Extraction attempt {attempt + 1} failed: {e}")
            continue

        if config.verbose:
            logger.info(f"Extraction successful on attempt {attempt + 1}")
        return result.tasks

    logger.error(f"Extraction failed after {attempts} attempts")
    return []


async def extract_commitments(
    backend: GatewayBackend,
    config: Config,
    text: str,
    identity: IdentityContext,
) -> list[CandidateCommitment]:
    """Extract the owner's commitments, chunking long text and merging results.

    Never raises: inference failures and timeouts are logged and produce an
    empty list so the source text can still be kept.
    """
    if not text or not text.strip():
        return []

    chunks = chunk_text(text, config.max_chunk_size, config.chunk_overlap)
    results = []
    try:
        for i, chunk in enumerate(chunks):
            if len(chunks) > 1:
                logger.debug(f"Processing chunk {i + 1}/{len(chunks)}")
            results.append(await extract_structured(backend, config, chunk, identity))
    except asyncio.TimeoutError:
        logger.warning(f"Extraction timed out after {config.llm_timeout:g}s")
        return []
    except openai.OpenAIError as e:
        logger.warning(f"Error extracting tasks: {e}")
        return []
    except Exception:
        logger.exception("Unexpected error extracting tasks")
        return []

    merged = results[0] if len(results) == 1 else merge_commitments(results)
    return cleanup_commitments(merged)
