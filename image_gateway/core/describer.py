"""Vision description client.

Routes only depend on :class:`VisionDescriber`, so tests can hand
``create_app`` a stub instead of the OpenAI-backed implementation.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import openai

from image_gateway.core.config import Config
from image_gateway.core.errors import CollaboratorFailureError
from image_gateway.core.models import DescriptionRequest, PromptVariant

SYSTEM_PROMPT = "You are a helpful assistant. Always answer in {language}."

PROMPTS = {
    PromptVariant.DEFAULT: "What is in this image?",
    PromptVariant.ALT: (
        "Give a short description of this image to use as its alt text: "
        "a single sentence of at least 4 and at most 12 words."
    ),
}

# Canned texts served by the deprecated route, keyed by its ``type`` field.
DEPRECATED_DESCRIPTIONS = {
    "alt": (
        "This is a detailed description of the image, including elements such as "
        "colors, composition, and the main objects in the image."
    ),
    "short": "A short description of the main content of the image.",
}
DEPRECATED_DEFAULT_DESCRIPTION = "Default description for the image."


def build_prompt(variant: PromptVariant) -> str:
    return PROMPTS[variant]


def canned_description(description_type: Optional[str]) -> str:
    return DEPRECATED_DESCRIPTIONS.get(description_type or "", DEPRECATED_DEFAULT_DESCRIPTION)


class VisionDescriber(ABC):
    """Turns an image data URI into model-written text."""

    @abstractmethod
    async def describe(self, request: DescriptionRequest) -> str:
        """Describe the image.

        Raises:
            CollaboratorFailureError: the model could not be reached or
                returned nothing usable.
        """
        ...

    async def close(self) -> None:
        return None


class OpenAIVisionDescriber(VisionDescriber):
    """Chat-completions backed describer."""

    def __init__(self, config: Config):
        self.config = config
        self._client: Optional[openai.AsyncOpenAI] = None

    def _get_client(self) -> openai.AsyncOpenAI:
        """Create the client on first use so the service starts without a key."""
        if self._client is None:
            if not self.config.openai_api_key:
                raise CollaboratorFailureError("OPENAI_API_KEY is not configured")
            self._client = openai.AsyncOpenAI(
                api_key=self.config.openai_api_key,
                base_url=self.config.openai_base_url,
                timeout=self.config.describe_timeout_seconds,
                max_retries=0,
            )
        return self._client

    def build_messages(self, request: DescriptionRequest) -> list[dict[str, Any]]:
        return [
            {
                "role": "system",
                "content": SYSTEM_PROMPT.format(language=self.config.describe_language),
            },
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": build_prompt(request.prompt_variant)},
                    {"type": "image_url", "image_url": {"url": request.image_data_uri}},
                ],
            },
        ]

    async def describe(self, request: DescriptionRequest) -> str:
        client = self._get_client()
        timeout_seconds = self.config.describe_timeout_seconds
        start_time = time.time()
        logging.info(
            f"Requesting {request.prompt_variant.value} description from {self.config.openai_model}"
        )

        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=self.config.openai_model,
                    messages=self.build_messages(request),
                ),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logging.error(f"Vision model timed out after {timeout_seconds} seconds")
            raise CollaboratorFailureError(
                f"Vision model timed out after {timeout_seconds} seconds"
            ) from e
        except openai.OpenAIError as e:
            logging.error(f"Vision model call failed: {type(e).__name__}: {str(e)}")
            raise CollaboratorFailureError(f"Vision model call failed: {str(e)}") from e

        if not response.choices or not response.choices[0].message.content:
            raise CollaboratorFailureError("Vision model returned an empty response")

        elapsed_time = time.time() - start_time
        logging.info(f"Description received in {elapsed_time:.2f}s")
        return response.choices[0].message.content

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
