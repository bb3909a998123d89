"""Generation oracle adapter."""
from typing import Dict, List
import httpx
import structlog

from docchat import config
from docchat.errors import GenerationFailed
from docchat.llm_client import OllamaClient

logger = structlog.get_logger()


class OllamaGenerator:
    """Chat completion backed by an Ollama chat model."""

    def __init__(self, client: OllamaClient, model: str = None):
        self.client = client
        self.model = model or config.CHAT_MODEL

    async def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: float = None,
        max_tokens: int = None,
    ) -> Dict[str, str]:
        """Generate a reply to a conversation.

        Args:
            messages: Ordered messages with 'role' and 'content'
            temperature: Sampling temperature in [0, 1] (default from config)
            max_tokens: Maximum tokens to generate (default from config)

        Returns:
            Dict with the reply under 'content'

        Raises:
            ValueError: If temperature is outside [0, 1]
            GenerationFailed: If the model call fails or returns nothing
        """
        temperature = config.CHAT_TEMPERATURE if temperature is None else temperature
        max_tokens = max_tokens or config.CHAT_MAX_TOKENS

        if not 0.0 <= temperature <= 1.0:
            raise ValueError(f"Temperature must be in [0, 1], got {temperature}")

        try:
            response = await self.client.chat(
                messages,
                model=self.model,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except httpx.HTTPError as e:
            raise GenerationFailed(f"Chat model request failed: {e}") from e

        content = response.get("message", {}).get("content", "")
        if not content:
            logger.error("empty_generation_response", model=self.model)
            raise GenerationFailed("Empty response from chat model")

        return {"content": content}
