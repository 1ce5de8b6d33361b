"""
LLM Client for the crypto analysis pipeline.

Talks to any OpenAI-compatible chat completions endpoint (LM Studio, vLLM,
OpenRouter, OpenAI). Every call is bounded by a timeout and is not retried.
"""
from typing import Optional

import httpx
import openai
from openai import AsyncOpenAI

from crypto_advisor.config.settings import settings
from crypto_advisor.exceptions import ModelOutputUnparseable, UpstreamUnavailable
from crypto_advisor.utils.logging import get_logger
from crypto_advisor.utils.performance import time_function

logger = get_logger(__name__)


class LLMClient:
    """
    A client for interacting with a chat-completions language model.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        default_model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initializes the LLMClient.

        Args:
            api_key: The API key. Defaults to LLM_API_KEY, or a placeholder for
                local servers that do not check it.
            base_url: The endpoint base URL. Defaults to LLM_BASE_URL.
            default_model: Model used when a call names none.
            timeout_seconds: Per-call timeout.
            client: A pre-built AsyncOpenAI client (used by tests).
        """
        self.base_url = base_url or settings.llm.BASE_URL
        self.default_model = default_model or settings.llm.DEFAULT_MODEL
        self.timeout_seconds = timeout_seconds or settings.llm.TIMEOUT_SECONDS

        if client is not None:
            self.client = client
            return

        self.api_key = api_key or settings.llm.API_KEY
        if not self.api_key:
            logger.warning("LLM_API_KEY not set, sending placeholder key", base_url=self.base_url)
            self.api_key = settings.llm.PLACEHOLDER_API_KEY

        http_client = httpx.AsyncClient(
            limits=httpx.Limits(
                max_keepalive_connections=10,
                max_connections=20,
                keepalive_expiry=30.0,
            ),
            timeout=httpx.Timeout(self.timeout_seconds),
        )

        self.client = AsyncOpenAI(
            base_url=self.base_url,
            api_key=self.api_key,
            http_client=http_client,
            timeout=self.timeout_seconds,
            max_retries=0,
        )

    @time_function(operation_name="llm_generate")
    async def generate(
        self,
        prompt: str,
        system_prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Generates a response from the configured language model.

        Args:
            prompt: The user-level prompt for the LLM.
            system_prompt: The system-level prompt for the LLM.
            model: The model to use. If None, uses the configured default.
            temperature: Optional sampling temperature.

        Returns:
            The textual response from the language model.

        Raises:
            UpstreamUnavailable: If the endpoint fails, times out or errors.
            ModelOutputUnparseable: If the completion carries no text.
        """
        model = model or self.default_model
        request = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
        }
        if temperature is not None:
            request["temperature"] = temperature

        try:
            chat_completion = await self.client.chat.completions.create(**request)
        except openai.APIError as e:
            logger.error("LLM request failed", model=model, error=str(e))
            raise UpstreamUnavailable(f"Language model request failed: {e}") from e

        if not chat_completion.choices:
            raise ModelOutputUnparseable("Language model returned no choices")
        content = chat_completion.choices[0].message.content
        if not content:
            raise ModelOutputUnparseable("Language model returned an empty completion")

        logger.debug("LLM raw response", model=model, content=content)
        return content

    async def ping(self) -> bool:
        """Lists models as a cheap liveness probe; no tokens are generated."""
        try:
            await self.client.models.list()
        except openai.APIError as e:
            raise UpstreamUnavailable(f"Language model endpoint unavailable: {e}") from e
        return True

    async def close(self) -> None:
        await self.client.close()
