"""LLM provider abstraction."""

from chatgraph.llm.litellm import LiteLLMProvider
from chatgraph.llm.provider import LLMProvider, LLMResponse, TranscriptionResponse

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LiteLLMProvider",
    "TranscriptionResponse",
]
