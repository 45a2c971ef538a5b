"""
LLM provider abstractions.

Every model-backed stage of the funnel talks to an ``LLMProvider``: a
single async ``complete`` call that takes a system prompt and a user
message and returns the raw text of the reply.  Parsing and validation
live in :mod:`jobfunnel.llm.client`, retries in :mod:`jobfunnel.retry`.

Concrete providers are offered for OpenAI and Gemini (Google Generative
AI).  SDKs are imported lazily so that only the selected provider's
package needs to be installed.  A missing key is a configuration error
raised at construction time.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

from ..config import require_env
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = "gpt-4.1-mini"
DEFAULT_GEMINI_MODEL = "gemini-1.5-pro"
DEFAULT_TEMPERATURE = 0.2


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    name = "abstract"

    @abstractmethod
    async def complete(self, system: str, user: str) -> str:
        """Send one prompt and return the model's text reply.

        Args:
            system: Instructions for the model.
            user: The user message, usually a JSON payload.

        Returns:
            The raw reply text.  Callers expect JSON but must not assume
            it is well formed.
        """
        raise NotImplementedError


class OpenAIProvider(LLMProvider):
    """Provider that uses the OpenAI chat completions API in JSON mode."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> None:
        try:
            import openai  # type: ignore
        except ImportError as exc:
            raise RuntimeError(
                "openai package is required for OpenAIProvider. Install it via pip."
            ) from exc
        self.api_key = api_key or require_env("OPENAI_API_KEY")
        self.model = model or os.getenv("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL
        self.temperature = temperature
        self.client = openai.AsyncOpenAI(api_key=self.api_key)

    async def complete(self, system: str, user: str) -> str:
        logger.debug("Sending prompt to OpenAI (%s): %s", self.model, user[:200])
        response = await self.client.chat.completions.create(
            model=self.model,
            temperature=self.temperature,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )
        return response.choices[0].message.content or ""


class GeminiProvider(LLMProvider):
    """Provider that uses Google Generative AI (Gemini) via google-generativeai."""

    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> None:
        try:
            import google.generativeai as genai  # type: ignore
        except ImportError as exc:
            raise RuntimeError(
                "google-generativeai package is required for GeminiProvider. Install it via pip."
            ) from exc
        self.genai = genai
        self.api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        if not self.api_key:
            raise ConfigurationError("Missing required env var: GEMINI_API_KEY (or GOOGLE_API_KEY)")
        self.model_name = model or os.getenv("GEMINI_MODEL") or os.getenv("GOOGLE_MODEL") or DEFAULT_GEMINI_MODEL
        self.temperature = temperature
        self.genai.configure(api_key=self.api_key)
        try:
            self.model = self.genai.GenerativeModel(self.model_name)
        except Exception as exc:
            raise ConfigurationError(f"Failed to load Gemini model {self.model_name}: {exc}") from exc

    async def complete(self, system: str, user: str) -> str:
        logger.debug("Sending prompt to Gemini (%s): %s", self.model_name, user[:200])
        response = await self.model.generate_content_async(
            f"{system}\n\n{user}",
            generation_config={
                "temperature": self.temperature,
                "response_mime_type": "application/json",
            },
        )
        return response.text or ""


def get_default_provider(
    name: Optional[str] = None,
    model: Optional[str] = None,
    temperature: float = DEFAULT_TEMPERATURE,
) -> LLMProvider:
    """Return an LLMProvider based on configuration and API keys.

    The resolution order is:

    1. ``name`` if given, else the ``LLM_PROVIDER`` environment variable
       (``"openai"`` or ``"gemini"``).  The named provider must
       initialise; failures propagate.
    2. If ``OPENAI_API_KEY`` is present, :class:`OpenAIProvider`.
    3. If ``GEMINI_API_KEY`` or ``GOOGLE_API_KEY`` is present,
       :class:`GeminiProvider`.

    Raises:
        ConfigurationError: when no provider can be selected.
    """
    preferred = (name or os.getenv("LLM_PROVIDER") or "").strip().lower()
    if preferred == "openai":
        return OpenAIProvider(model=model, temperature=temperature)
    if preferred == "gemini":
        return GeminiProvider(model=model, temperature=temperature)
    if preferred:
        raise ConfigurationError(f"Unknown LLM provider '{preferred}'")
    if os.getenv("OPENAI_API_KEY"):
        return OpenAIProvider(model=model, temperature=temperature)
    if os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"):
        return GeminiProvider(model=model, temperature=temperature)
    raise ConfigurationError("No LLM API key found; set OPENAI_API_KEY or GEMINI_API_KEY")
