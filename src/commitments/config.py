"""Configuration management for commitment capture."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


# Built-in defaults
DEFAULT_SYSTEM_PROMPT = """You are a personal task extraction assistant for {owner}.
Your job is to extract ONLY the tasks and commitments that {owner} personally agrees to do.
Do NOT extract tasks for other people. Be literal; do not invent commitments that were not
stated, and keep each task attributed to the person who actually committed to it."""

DEFAULT_EXTRACTION_PROMPT = """{identity}

**What to extract:**
- Tasks where {owner} explicitly commits to doing something
- Look for phrases like: "I will", "I'll", "Let me", "I can", "I'll handle", "I'll take care of", "I need to"
- Action items explicitly assigned to {owner}
- Follow-up items {owner} agrees to do

**What NOT to extract:**
- Tasks assigned to other people
- General team goals or discussions unless {owner} specifically commits
- Questions or suggestions that aren't commitments
- Tasks where {owner} is just mentioned but doesn't commit

**Task Details:**
- Provide a concise, actionable title from {owner}'s perspective (e.g., "Send report to Sarah", not "Sarah needs report")
- Add a description only if there's additional context worth capturing, otherwise null
- Extract due dates in their original format (e.g., "tomorrow", "next Friday", "15th December", "2025-12-15")
- If no due date is mentioned, set due_date_raw to null

**If the text contains no commitments from {owner}, return {{"tasks": []}}.**

Respond with ONLY a valid JSON object matching this schema:
{schema}

Text to analyse:
{text}"""

DEFAULT_OCR_PROMPT = (
    "Extract all text from this image. Preserve the original formatting and structure "
    "as much as possible. If the image contains handwritten text, transcribe it "
    "accurately. Return only the extracted text without any additional commentary."
)


def _resolve_prompt(env_var_name: str, default: str) -> str:
    """
    Resolve a prompt value from environment variable.

    If env var is set to a file path that exists, read its contents.
    Otherwise use the string value directly.
    If unset, use the provided default.
    """
    value = os.getenv(env_var_name)
    if value is None:
        return default

    # Check if it's a file path that exists
    path = Path(value).expanduser()
    if path.exists() and path.is_file():
        return path.read_text()

    # Otherwise use the string value directly
    return value


def _parse_bool(value: str | None) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return False
    return value.lower() in ("true", "1", "yes", "on")


def _parse_list(value: str | None) -> tuple[str, ...]:
    """Parse a comma separated environment variable, dropping blanks."""
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass
class Config:
    """Configuration for commitment capture."""

    gateway_model: str = "gpt-4o-mini"
    gateway_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    vision_model: str = "gpt-4o-mini"
    owner_name: str = "the user"
    owner_aliases: tuple[str, ...] = field(default_factory=tuple)
    identity_path: str = ""
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    extraction_prompt: str = DEFAULT_EXTRACTION_PROMPT
    ocr_prompt: str = DEFAULT_OCR_PROMPT
    output_dir: str = "./output/"
    max_chunk_size: int = 12000
    chunk_overlap: int = 200
    max_retries: int = 3
    llm_timeout: float = 60.0
    decode_timeout: float = 120.0
    min_pdf_chars: int = 50
    max_image_width: int = 2000
    image_quality: int = 90
    ocr_max_tokens: int = 4096
    max_upload_bytes: int = 200 * 1024 * 1024
    date_window_past_years: int = 1
    date_window_future_years: int = 10
    reject_out_of_range_dates: bool = False
    verbose: bool = False


def load_config() -> Config:
    """
    Load configuration from environment variables and .env file.

    Returns:
        Config instance with all settings loaded.
    """
    # Load environment variables from .env file
    load_dotenv()

    # Read all config values with defaults
    config = Config(
        gateway_model=os.getenv("GATEWAY_MODEL", "gpt-4o-mini"),
        gateway_url=os.getenv("GATEWAY_URL", "https://api.openai.com/v1"),
        api_key=os.getenv("OPENAI_API_KEY", ""),
        vision_model=os.getenv("VISION_MODEL", "gpt-4o-mini"),
        owner_name=os.getenv("USER_NAME") or "the user",
        owner_aliases=_parse_list(os.getenv("USER_IDENTIFIERS")),
        identity_path=os.getenv("IDENTITY_PATH", ""),
        output_dir=os.getenv("OUTPUT_DIR", "./output/"),
        max_chunk_size=int(os.getenv("MAX_CHUNK_SIZE", "12000")),
        chunk_overlap=int(os.getenv("CHUNK_OVERLAP", "200")),
        max_retries=int(os.getenv("MAX_RETRIES", "3")),
        llm_timeout=float(os.getenv("LLM_TIMEOUT", "60")),
        decode_timeout=float(os.getenv("DECODE_TIMEOUT", "120")),
        min_pdf_chars=int(os.getenv("MIN_PDF_CHARS", "50")),
        max_image_width=int(os.getenv("MAX_IMAGE_WIDTH", "2000")),
        image_quality=int(os.getenv("IMAGE_QUALITY", "90")),
        ocr_max_tokens=int(os.getenv("OCR_MAX_TOKENS", "4096")),
        max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(200 * 1024 * 1024))),
        date_window_past_years=int(os.getenv("DATE_WINDOW_PAST_YEARS", "1")),
        date_window_future_years=int(os.getenv("DATE_WINDOW_FUTURE_YEARS", "10")),
        reject_out_of_range_dates=_parse_bool(os.getenv("REJECT_OUT_OF_RANGE_DATES")),
        verbose=_parse_bool(os.getenv("VERBOSE")),
    )

    # Resolve prompts (file path vs inline string)
    config.system_prompt = _resolve_prompt("SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT)
    config.extraction_prompt = _resolve_prompt("EXTRACTION_PROMPT", DEFAULT_EXTRACTION_PROMPT)
    config.ocr_prompt = _resolve_prompt("OCR_PROMPT", DEFAULT_OCR_PROMPT)

    return config
