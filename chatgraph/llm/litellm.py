"""LiteLLM-backed provider: one interface for OpenAI, Anthropic, Gemini, local models, ..."""

import logging
from typing import Any

import litellm

from chatgraph.config import LLMConfig
from chatgraph.llm.provider import LLMProvider, LLMResponse, TranscriptionResponse

logger = logging.getLogger(__name__)


class LiteLLMProvider(LLMProvider):
    """
    Example:
        llm = LiteLLMProvider(model="gpt-4o-mini")
        response = await llm.acomplete(
            [{"role": "user", "content": "Hi"}], system="Be brief.", max_tokens=50
        )
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        api_base: str | None = None,
        transcription_model: str = "whisper-1",
    ):
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.transcription_model = transcription_model

    @classmethod
    def from_config(cls, config: LLMConfig | None = None) -> "LiteLLMProvider":
        config = config or LLMConfig.from_file()
        return cls(
            model=config.model,
            api_key=config.api_key,
            api_base=config.api_base,
            transcription_model=config.transcription_model,
        )

    def _credentials(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        return kwargs

    async def acomplete(
        self,
        messages: list[dict[str, Any]],
        system: str = "",
        max_tokens: int = 1024,
        temperature: float | None = None,
        json_mode: bool = False,
        model: str | None = None,
    ) -> LLMResponse:
        full_messages = [{"role": "system", "content": system}, *messages] if system else messages
        kwargs: dict[str, Any] = {
            "model": model or self.model,
            "messages": full_messages,
            "max_tokens": max_tokens,
            **self._credentials(),
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await litellm.acompletion(**kwargs)

        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        result = LLMResponse(
            content=choice.message.content or "",
            model=getattr(response, "model", None) or kwargs["model"],
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            stop_reason=choice.finish_reason or "",
            raw_response=response,
        )
        logger.debug(
            f"LLM call finished ({result.total_tokens} tokens)",
            extra={"model": result.model, "tokens_used": result.total_tokens},
        )
        return result

    async def atranscribe(
        self,
        audio: bytes,
        filename: str = "audio.ogg",
        language: str | None = None,
        model: str | None = None,
    ) -> TranscriptionResponse:
        kwargs: dict[str, Any] = {
            "model": model or self.transcription_model,
            "file": (filename, audio),
            "response_format": "verbose_json",
            **self._credentials(),
        }
        if language:
            kwargs["language"] = language

        response = await litellm.atranscription(**kwargs)
        return TranscriptionResponse(
            text=getattr(response, "text", "") or "",
            model=kwargs["model"],
            language=getattr(response, "language", None),
            raw_response=response,
        )
