"""LLM clients used by the AI categorizer and the court-count analyzer."""

from .llm_client import (
    BaseLLMClient,
    LangChainLLMClient,
    OpenAIWebSearchClient,
    create_llm_client,
)

__all__ = [
    "BaseLLMClient",
    "LangChainLLMClient",
    "OpenAIWebSearchClient",
    "create_llm_client",
]
