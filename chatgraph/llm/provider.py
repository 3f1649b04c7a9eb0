"""LLM Provider abstraction for pluggable LLM backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class LLMResponse:
    """Response from an LLM call."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str = ""
    raw_response: Any = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class TranscriptionResponse:
    """Response from a speech-to-text call."""

    text: str
    model: str
    language: str | None = None
    raw_response: Any = None


class LLMProvider(ABC):
    """
    Abstract LLM provider - plug in any LLM backend.

    Implementations should handle:
    - API authentication
    - Request/response formatting
    - Token counting
    """

    @abstractmethod
    async def acomplete(
        self,
        messages: list[dict[str, Any]],
        system: str = "",
        max_tokens: int = 1024,
        temperature: float | None = None,
        json_mode: bool = False,
        model: str | None = None,
    ) -> LLMResponse:
        """
        Generate a completion from the LLM.

        Args:
            messages: Conversation [{role: "user"|"assistant", content: str | list}].
                List content carries multimodal parts (text, image_url).
            system: System prompt
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature, provider default when None
            json_mode: If True, request a JSON object as output
            model: Override the provider's default model for this call

        Returns:
            LLMResponse with content and token usage
        """

    async def atranscribe(
        self,
        audio: bytes,
        filename: str = "audio.ogg",
        language: str | None = None,
        model: str | None = None,
    ) -> TranscriptionResponse:
        """Transcribe audio. Providers without speech support leave this unimplemented."""
        raise NotImplementedError(f"{type(self).__name__} does not support transcription")
