"""Capability adapter contracts and the implementations shipped with chatgraph."""

from chatgraph.capabilities.base import (
    Capabilities,
    CapabilityError,
    DataStore,
    EscalationNotifier,
    LanguageAnalysis,
    LanguageUnderstanding,
    MalformedOutputError,
    RankedCandidate,
    Ranking,
    RankingResult,
    Recommendation,
    Recommender,
    TemplateStore,
    Transcript,
    Transcription,
    VisionAnalysis,
    VisionResult,
)
from chatgraph.capabilities.llm import (
    LLMLanguageUnderstanding,
    LLMRanking,
    LLMTranscription,
    LLMVisionAnalysis,
)
from chatgraph.capabilities.memory_store import InMemoryProductStore
from chatgraph.capabilities.recommender import ProductRecommender

__all__ = [
    "Capabilities",
    "CapabilityError",
    "DataStore",
    "EscalationNotifier",
    "InMemoryProductStore",
    "LLMLanguageUnderstanding",
    "LLMRanking",
    "LLMTranscription",
    "LLMVisionAnalysis",
    "LanguageAnalysis",
    "LanguageUnderstanding",
    "MalformedOutputError",
    "ProductRecommender",
    "RankedCandidate",
    "Ranking",
    "RankingResult",
    "Recommendation",
    "Recommender",
    "TemplateStore",
    "Transcript",
    "Transcription",
    "VisionAnalysis",
    "VisionResult",
]
