"""Inference backend shared by extraction and image OCR."""

import base64
import logging

import openai

from commitments.config import Config

logger = logging.getLogger(__name__)


class GatewayBackend:
    """LLM backend for any OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        api_key: str = "",
        vision_model: str | None = None,
        timeout: float = 60.0,
    ):
        # Retries are disabled so the caller's timeout is a hard bound.
        self.client = openai.AsyncOpenAI(
            base_url=base_url,
            api_key=api_key or "not-needed",
            timeout=timeout,
            max_retries=0,
        )
        self.model = model
        self.vision_model = vision_model or model

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Generate a JSON response for a structured extraction request.

        Args:
            system_prompt: System context/instructions
            user_prompt: User query, including the response schema

        Returns:
            Generated text response
        """
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            response_format={"type": "json_object"},
            temperature=0.1,
        )
        return response.choices[0].message.content or ""

    async def transcribe_image(self, image: bytes, prompt: str, max_tokens: int = 4096) -> str:
        """Ask a vision model to transcribe the text in a JPEG image.

        Returns:
            The transcription, stripped; empty when the model returned nothing.
        """
        encoded = base64.b64encode(image).decode("ascii")
        response = await self.client.chat.completions.create(
            model=self.vision_model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:image/jpeg;base64,{encoded}"},
                        },
                    ],
                }
            ],
            max_tokens=max_tokens,
        )
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()


def get_backend(config: Config) -> GatewayBackend:
    """Build the inference backend from configuration."""
    backend = GatewayBackend(
        model=config.gateway_model,
        base_url=config.gateway_url,
        api_key=config.api_key,
        vision_model=config.vision_model,
        timeout=config.llm_timeout,
    )
    logger.debug(f"Using gateway {config.gateway_model} via {config.gateway_url}")
    return backend
