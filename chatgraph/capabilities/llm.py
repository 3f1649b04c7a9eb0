"""
LLM-backed capability adapters.

Each adapter owns its prompt and output parsing; the LLMProvider owns the
transport. Output that cannot be parsed raises MalformedOutputError so the
calling node can degrade.
"""

import base64
import json
import logging
import re
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from chatgraph.capabilities.base import (
    LanguageAnalysis,
    LanguageUnderstanding,
    MalformedOutputError,
    RankedCandidate,
    Ranking,
    RankingResult,
    Transcript,
    Transcription,
    VisionAnalysis,
    VisionResult,
)
from chatgraph.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

NLP_SYSTEM_PROMPT = "You are a sales assistant. Extract intent and entities from user messages."

RANKING_SYSTEM_PROMPT = (
    "Rank products by relevance to user's requirements. Consider: budget match, "
    "area availability, model preference, specifications, user intent."
)

VISION_SYSTEM_PROMPT = """You are a product identification expert. Analyze product images and extract:
- Product name
- Category
- Brand (if visible)
- Condition (new, used, etc.)
- Estimated price range
- Any visible text
- Key features visible in image

Return JSON with keys: product_name, category, brand, condition, price_range, text, features."""

# Whisper expects ISO-639-1 codes; workflows use language names
LANGUAGE_CODES = {
    "english": "en",
    "malay": "ms",
    "chinese": "zh",
    "tamil": "ta",
    "indonesian": "id",
}

DOWNLOAD_TIMEOUT = 30.0


def parse_json_object(content: str) -> dict[str, Any]:
    """Parse an LLM reply that should be a single JSON object (code fences tolerated)."""
    text = re.sub(r"^```(?:json)?\s*", "", content.strip(), flags=re.MULTILINE)
    text = re.sub(r"\s*```$", "", text, flags=re.MULTILINE)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedOutputError(f"LLM output is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedOutputError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _format_price(product: dict[str, Any]) -> str:
    price = product.get("price")
    if isinstance(price, int | float):
        price = f"{price:,.0f}" if float(price).is_integer() else f"{price:,}"
    return f"{product.get('currency') or 'MYR'} {price if price is not None else 'N/A'}"


def describe_products(products: list[dict[str, Any]]) -> str:
    """Numbered one-line-per-product listing used in ranking prompts."""
    lines = []
    for position, product in enumerate(products, start=1):
        features = product.get("features") or {}
        parts = [_format_price(product)]
        if features.get("engineSize"):
            parts.append(f"{features['engineSize']}cc")
        kind = features.get("type") or product.get("subcategory")
        if kind:
            parts.append(str(kind))
        if features.get("locations"):
            parts.append(f"Available in: {', '.join(map(str, features['locations']))}")
        model = f" {features['model']}" if features.get("model") else ""
        identity = f" [id: {product['id']}]" if product.get("id") is not None else ""
        lines.append(f"{position}. {product.get('name', 'Unnamed')}{model}{identity} - {', '.join(parts)}")
    return "\n".join(lines)


async def download(url: str, client: httpx.AsyncClient | None = None) -> tuple[bytes, str | None]:
    """Fetch media bytes and the reported content type."""
    if client is None:
        async with httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True) as owned:
            response = await owned.get(url)
    else:
        response = await client.get(url)
    response.raise_for_status()
    return response.content, response.headers.get("content-type")


class LLMLanguageUnderstanding(LanguageUnderstanding):
    def __init__(
        self,
        llm: LLMProvider,
        model: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 150,
    ):
        self.llm = llm
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def extract(
        self,
        message: str,
        *,
        history: list[dict[str, str]] | None = None,
        instructions: str | None = None,
    ) -> LanguageAnalysis:
        prompt = (
            f'Extract intent and entities from this message: "{message}"\n\n'
            "Return JSON with: intent, entities (object), confidence (0-1), "
            "requires_product_search (boolean), requires_agent_escalation (boolean)"
        )
        turns = [
            {"role": turn["role"], "content": turn["content"]}
            for turn in history or []
            if turn.get("role") in ("user", "assistant") and turn.get("content")
        ]
        response = await self.llm.acomplete(
            [*turns, {"role": "user", "content": prompt}],
            system=instructions or NLP_SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            json_mode=True,
            model=self.model,
        )
        content = parse_json_object(response.content)
        entities = content.get("entities")

        return LanguageAnalysis(
            intent=content.get("intent") or "general_question",
            entities=entities if isinstance(entities, dict) else {},
            confidence=_as_float(content.get("confidence"), 0.5),
            requires_product_search=bool(content.get("requires_product_search")),
            requires_agent_escalation=bool(content.get("requires_agent_escalation")),
            tokens_used=response.total_tokens,
        )


class LLMRanking(Ranking):
    def __init__(
        self,
        llm: LLMProvider,
        model: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 400,
    ):
        self.llm = llm
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def rank(
        self,
        query: str,
        candidates: list[dict[str, Any]],
        entities: dict[str, Any],
        *,
        instructions: str | None = None,
    ) -> RankingResult:
        prompt = (
            f'User query: "{query}"\n'
            f"User requirements: Budget: {entities.get('budget') or 'Not specified'}, "
            f"Area: {entities.get('area') or 'Not specified'}, "
            f"Model: {entities.get('model') or 'Not specified'}\n\n"
            f"Available products:\n{describe_products(candidates)}\n\n"
            "Rank products by relevance. Return JSON with: products (array with "
            "index (1-based), id or name, relevance_score (0-1), reasoning), "
            "overall_reasoning, confidence."
        )
        response = await self.llm.acomplete(
            [{"role": "user", "content": prompt}],
            system=instructions or RANKING_SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            json_mode=True,
            model=self.model,
        )
        content = parse_json_object(response.content)

        items = content.get("products")
        if not isinstance(items, list):
            raise MalformedOutputError("Ranking output has no 'products' list")
        try:
            ranked = [
                RankedCandidate.model_validate({k: v for k, v in item.items() if v is not None})
                for item in items
                if isinstance(item, dict)
            ]
        except ValidationError as e:
            raise MalformedOutputError(f"Ranking entries are malformed: {e}") from e

        return RankingResult(
            ranked=ranked,
            reasoning=content.get("overall_reasoning") or content.get("reasoning") or "",
            confidence=_as_float(content.get("confidence"), 0.7),
            tokens_used=response.total_tokens,
        )


class LLMVisionAnalysis(VisionAnalysis):
    """Identifies the product in an image with a multimodal chat model."""

    STRING_FIELDS = ("product_name", "category", "brand", "price_range", "text")

    def __init__(
        self,
        llm: LLMProvider,
        model: str | None = "gpt-4o",
        max_tokens: int = 300,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.llm = llm
        self.model = model
        self.max_tokens = max_tokens
        self.http_client = http_client

    async def analyze(self, media_url: str) -> VisionResult:
        image, content_type = await download(media_url, self.http_client)
        encoded = base64.b64encode(image).decode("ascii")
        data_url = f"data:{content_type or 'image/jpeg'};base64,{encoded}"

        response = await self.llm.acomplete(
            [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": "Analyze this product image and extract all relevant information.",
                        },
                        {"type": "image_url", "image_url": {"url": data_url}},
                    ],
                }
            ],
            system=VISION_SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            json_mode=True,
            model=self.model,
        )
        content = parse_json_object(response.content)
        for key in self.STRING_FIELDS:
            value = content.get(key)
            if value is not None and not isinstance(value, str):
                content[key] = json.dumps(value) if isinstance(value, dict | list) else str(value)
        content.pop("tokens_used", None)
        return VisionResult(**content, tokens_used=response.total_tokens)


class LLMTranscription(Transcription):
    def __init__(
        self,
        llm: LLMProvider,
        model: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.llm = llm
        self.model = model
        self.http_client = http_client

    async def transcribe(self, media_url: str, language_hint: str | None = None) -> Transcript:
        audio, _ = await download(media_url, self.http_client)
        filename = PurePosixPath(urlparse(media_url).path).name or "audio.ogg"
        if "." not in filename:
            filename = f"{filename}.ogg"

        language = None
        if language_hint:
            hint = language_hint.lower()
            language = LANGUAGE_CODES.get(hint, hint if len(hint) == 2 else None)

        logger.debug(f"Transcribing {filename} ({len(audio)} bytes, language={language})")
        response = await self.llm.atranscribe(
            audio, filename=filename, language=language, model=self.model
        )
        return Transcript(text=response.text, language=response.language)
