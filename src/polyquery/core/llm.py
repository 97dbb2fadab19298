"""LLM client used as the opaque text-generation step.

The query executor only needs raw text back from the model; structured
output is recovered afterwards by the descriptor parser, since small local
models frequently wrap or truncate their JSON.
"""

from functools import lru_cache
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from polyquery.core.config import get_settings


class LLMClient:
    """Thin text-in, text-out wrapper around a LangChain chat model.

    Attributes:
        model: The underlying LangChain chat model.
        model_name: Name of the model being used.

    Example:
        ```python
        from polyquery.core.llm import get_llm_client

        client = get_llm_client()
        text = await client.ainvoke("Return {} as JSON")
        ```
    """

    def __init__(
        self,
        model: BaseChatModel | None = None,
        model_name: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 2048,
    ) -> None:
        """Initialize the LLM client.

        Args:
            model: Optional pre-configured LangChain model.
            model_name: Model name (e.g., 'gpt-4o-mini', 'llama3.2').
            temperature: Sampling temperature (0-2).
            max_tokens: Maximum tokens in response.
        """
        settings = get_settings()

        if model is not None:
            self.model = model
            self.model_name = model_name or "custom"
        else:
            self.model_name = model_name or settings.OPENAI_MODEL
            self.model = ChatOpenAI(
                model=self.model_name,
                temperature=temperature,
                max_completion_tokens=max_tokens,
                api_key=settings.OPENAI_API_KEY,
                base_url=settings.OPENAI_BASE_URL,
                timeout=settings.OPENAI_TIMEOUT,
            )

    @staticmethod
    def _messages(prompt: str, system_prompt: str | None) -> list[dict[str, str]]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def ainvoke(
        self,
        prompt: str,
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Invoke the LLM asynchronously and return text response.

        Args:
            prompt: User prompt/question.
            system_prompt: Optional system prompt for context.
            **kwargs: Additional arguments passed to the model.

        Returns:
            str: The model's text response.
        """
        response = await self.model.ainvoke(self._messages(prompt, system_prompt), **kwargs)
        return str(response.content)


@lru_cache
def get_llm_client() -> LLMClient:
    """Get cached LLM client instance configured from settings."""
    settings = get_settings()
    return LLMClient(
        model_name=settings.OPENAI_MODEL,
        temperature=settings.OPENAI_TEMPERATURE,
        max_tokens=settings.OPENAI_MAX_TOKENS,
    )
