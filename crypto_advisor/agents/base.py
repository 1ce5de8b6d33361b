"""
Defines the base class for the language-model engines.

This module provides the abstract `BaseAgent` class that the sentiment and
recommendation engines inherit from. It holds the shared dependencies (LLM
client, per-engine cache) and the single place where prompts are sent to the
model.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from crypto_advisor.config.settings import settings
from crypto_advisor.data.cache import CacheManager
from crypto_advisor.exceptions import ModelOutputUnparseable
from crypto_advisor.llm.client import LLMClient
from crypto_advisor.llm.extraction import ExtractionStrategy, parse_json_object
from crypto_advisor.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class AgentConfig:
    """
    Configuration for a language-model engine.

    Attributes:
        name: The unique name of the engine, used in logs.
        model_name: The model to use; None selects the client default.
        temperature: Optional sampling temperature.
        cache_ttl_seconds: Lifetime of the engine's cached results.
    """
    name: str
    model_name: Optional[str] = None
    temperature: Optional[float] = settings.llm.TEMPERATURE
    cache_ttl_seconds: float = 900.0


class BaseAgent(ABC):
    """
    Abstract base class for the engines that consult the language model.
    """

    # Ordered JSON extraction strategies applied to raw model output
    extraction_strategies: Sequence[ExtractionStrategy] = ()

    def __init__(
        self,
        config: AgentConfig,
        llm_client: LLMClient,
        cache: Optional[CacheManager] = None,
    ):
        """
        Initializes the BaseAgent.

        Args:
            config: The configuration object for the engine.
            llm_client: Client for the chat-completions endpoint.
            cache: The engine's own cache; one is created from the config if omitted.
        """
        self.config = config
        self.llm_client = llm_client
        self.cache = cache if cache is not None else CacheManager(
            ttl_seconds=config.cache_ttl_seconds,
            max_entries=settings.analysis.CACHE_MAX_ENTRIES,
            name=config.name,
        )

    @abstractmethod
    def get_system_prompt(self) -> str:
        """
        Returns the system prompt demanding JSON-only output.
        """
        pass

    async def make_llm_call(self, user_prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Makes a call to the language model with a given user prompt.

        Args:
            user_prompt: The user-level prompt or query for the LLM.
            system_prompt: An optional system prompt to override the default.

        Returns:
            The textual response from the language model.
        """
        effective_system_prompt = system_prompt if system_prompt is not None else self.get_system_prompt()
        return await self.llm_client.generate(
            prompt=user_prompt,
            system_prompt=effective_system_prompt,
            model=self.config.model_name,
            temperature=self.config.temperature,
        )

    def parse_response(self, response: str) -> Dict[str, Any]:
        """
        Extracts and decodes the JSON object in a model response.

        Raises:
            ModelOutputUnparseable: If no JSON object can be recovered.
        """
        try:
            return parse_json_object(response, self.extraction_strategies)
        except ModelOutputUnparseable:
            logger.error("Could not parse model output", agent=self.config.name, response=response)
            raise
