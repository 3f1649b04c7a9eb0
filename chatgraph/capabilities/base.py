"""Capability adapter contracts.

The engine calls out to providers (language understanding, ranking, data
lookup, vision, speech, escalation, templates) through these narrow,
single-method interfaces. Implementations live outside the engine; a node
handler that calls one is responsible for turning any failure into a
degraded StepResult.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CapabilityError(RuntimeError):
    """A capability provider failed to produce a result."""


class MalformedOutputError(CapabilityError):
    """A provider answered, but its output could not be parsed or has the wrong shape."""


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class LanguageAnalysis(BaseModel):
    """Intent and entities extracted from one user message."""

    intent: str = "general_question"
    entities: dict[str, Any] = Field(default_factory=dict)
    confidence: float = 0.5
    requires_product_search: bool = False
    requires_agent_escalation: bool = False
    tokens_used: int = 0

    model_config = ConfigDict(extra="allow")


class RankedCandidate(BaseModel):
    """One ranking verdict. Refers back to a candidate by id, name or 1-based index."""

    id: Any = None
    name: str | None = None
    index: int | None = None
    relevance_score: float = 0.5
    reasoning: str = "Relevant product"

    model_config = ConfigDict(extra="allow")


class RankingResult(BaseModel):
    ranked: list[RankedCandidate] = Field(default_factory=list)
    reasoning: str = ""
    confidence: float = 0.7
    tokens_used: int = 0


class VisionResult(BaseModel):
    """Product attributes read from an image."""

    product_name: str | None = None
    category: str | None = None
    brand: str | None = None
    price_range: str | None = None
    text: str | None = None
    tokens_used: int = 0

    model_config = ConfigDict(extra="allow")


class Transcript(BaseModel):
    text: str
    language: str | None = None


class Recommendation(BaseModel):
    products: list[dict[str, Any]] = Field(default_factory=list)
    reasoning: str = ""
    confidence: float = 0.0
    fallback_products: list[dict[str, Any]] = Field(default_factory=list)
    tokens_used: int = 0


# ---------------------------------------------------------------------------
# Adapter interfaces
# ---------------------------------------------------------------------------


class LanguageUnderstanding(ABC):
    @abstractmethod
    async def extract(
        self,
        message: str,
        *,
        history: list[dict[str, str]] | None = None,
        instructions: str | None = None,
    ) -> LanguageAnalysis:
        """Extract intent, entities and routing flags from a message."""


class Ranking(ABC):
    @abstractmethod
    async def rank(
        self,
        query: str,
        candidates: list[dict[str, Any]],
        entities: dict[str, Any],
        *,
        instructions: str | None = None,
    ) -> RankingResult:
        """Rank candidates by relevance. May raise MalformedOutputError."""


class DataStore(ABC):
    @abstractmethod
    async def search(self, query: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Return candidate records matching a free-text query and filters."""

    @abstractmethod
    async def find_one(self, filters: dict[str, Any]) -> dict[str, Any] | None:
        """Return the first record matching the filters, or None."""

    @abstractmethod
    async def log(self, record: dict[str, Any]) -> bool:
        """Persist a record; returns an acknowledgement."""


class Transcription(ABC):
    @abstractmethod
    async def transcribe(self, media_url: str, language_hint: str | None = None) -> Transcript:
        """Transcribe an audio message."""


class VisionAnalysis(ABC):
    @abstractmethod
    async def analyze(self, media_url: str) -> VisionResult:
        """Identify the product shown in an image."""


class Recommender(ABC):
    @abstractmethod
    async def recommend(
        self, query: str, preferences: dict[str, Any] | None = None
    ) -> Recommendation:
        """Search and rank in one step, returning only relevant products."""


class EscalationNotifier(ABC):
    @abstractmethod
    async def notify(self, request: dict[str, Any]) -> None:
        """Hand the conversation to a human agent."""


class TemplateStore(ABC):
    @abstractmethod
    def get(self, key: str, language: str) -> str | None:
        """Return the template text for `language`, falling back to the default language."""


@dataclass
class Capabilities:
    """The adapters available to node handlers. Any of them may be absent."""

    language: LanguageUnderstanding | None = None
    ranking: Ranking | None = None
    data_store: DataStore | None = None
    transcription: Transcription | None = None
    vision: VisionAnalysis | None = None
    recommender: Recommender | None = None
    escalation: EscalationNotifier | None = None
