"""
LLM clients for venue classification.

Provides a unified chat interface using LangChain (categorization) and a
web-search-enabled client on the OpenAI Responses API (court counts).
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from openai import OpenAI

logger = logging.getLogger(__name__)


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients."""

    @abstractmethod
    def invoke(self, prompt: str, **kwargs) -> str:
        """Invoke the LLM with a prompt and return raw text response."""
        pass

    @abstractmethod
    def invoke_with_context(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        """Invoke the LLM with system and user prompts and return raw text."""
        pass


class LangChainLLMClient(BaseLLMClient):
    """
    Chat client using LangChain's OpenAI integration.

    The underlying model is created lazily on first use.
    """

    def __init__(
        self,
        model_name: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 500,
        timeout: int = 30,
    ):
        """
        Initialize the LangChain LLM client.

        Args:
            model_name: Model identifier (e.g., "gpt-4o-mini")
            api_key: API key (defaults to OPENAI_API_KEY env var)
            temperature: Temperature for generation (0.0-1.0)
            max_tokens: Maximum tokens in response
            timeout: Request timeout in seconds
        """
        self.model_name = model_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")

        self._llm = None

    def _get_llm(self):
        """Lazy initialization of LLM."""
        if self._llm is not None:
            return self._llm

        if not self.api_key:
            logger.warning("No API key found for OpenAI")
            return None

        self._llm = ChatOpenAI(
            model=self.model_name,
            api_key=self.api_key,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        return self._llm

    @property
    def is_available(self) -> bool:
        """Check if LLM is available."""
        return self._get_llm() is not None

    def invoke(self, prompt: str, **kwargs) -> str:
        llm = self._get_llm()
        if not llm:
            raise RuntimeError("LLM not available - check API key")

        response = llm.invoke([HumanMessage(content=prompt)])
        return response.content

    def invoke_with_context(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        """
        Invoke LLM with system and user prompts.

        Args:
            system_prompt: System/context prompt
            user_prompt: User query

        Returns:
            Raw text response
        """
        llm = self._get_llm()
        if not llm:
            raise RuntimeError("LLM not available - check API key")

        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt),
        ]
        response = llm.invoke(messages)
        return response.content


class OpenAIWebSearchClient(BaseLLMClient):
    """
    Client for the OpenAI Responses API with the web search tool enabled.

    The model browses the web on its own; the caller only supplies the
    question and receives the final text answer.
    """

    def __init__(
        self,
        model_name: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        temperature: float = 0.2,
        timeout: int = 60,
    ):
        self.model_name = model_name
        self.temperature = temperature
        self.timeout = timeout
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self._client: Optional[OpenAI] = None

    def _get_client(self) -> Optional[OpenAI]:
        if self._client is None and self.api_key:
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    @property
    def is_available(self) -> bool:
        return self._get_client() is not None

    def invoke(self, prompt: str, **kwargs) -> str:
        client = self._get_client()
        if client is None:
            raise RuntimeError("OpenAI client not available - check API key")

        response = client.responses.create(
            model=self.model_name,
            tools=[{"type": "web_search"}],
            input=prompt,
            temperature=self.temperature,
        )
        return self.extract_text(response)

    def invoke_with_context(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        client = self._get_client()
        if client is None:
            raise RuntimeError("OpenAI client not available - check API key")

        response = client.responses.create(
            model=self.model_name,
            tools=[{"type": "web_search"}],
            instructions=system_prompt,
            input=user_prompt,
            temperature=self.temperature,
        )
        return self.extract_text(response)

    @staticmethod
    def extract_text(response) -> str:
        """Concatenate the text parts of a Responses API result."""
        text = getattr(response, "output_text", None)
        if isinstance(text, str) and text:
            return text

        parts = []
        for item in getattr(response, "output", None) or []:
            for content in getattr(item, "content", None) or []:
                value = getattr(content, "text", None)
                if isinstance(value, str):
                    parts.append(value)
        return "\n".join(parts)


def create_llm_client(
    model_name: str = "gpt-4o-mini",
    api_key: Optional[str] = None,
    temperature: float = 0.3,
    max_tokens: int = 500,
    timeout: int = 30,
) -> Optional[LangChainLLMClient]:
    """
    Factory function to create a chat client.

    Returns:
        LLM client instance, or None when no API key is configured
    """
    client = LangChainLLMClient(
        model_name=model_name,
        api_key=api_key,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=timeout,
    )
    if client.is_available:
        return client

    logger.info("LLM unavailable, AI categorization disabled")
    return None
