"""Shared fixtures: fake capability adapters and a small sales workflow."""

from typing import Any

import pytest

from chatgraph.capabilities import (
    Capabilities,
    InMemoryProductStore,
    LanguageAnalysis,
    LanguageUnderstanding,
    RankedCandidate,
    Ranking,
    RankingResult,
    Transcript,
    Transcription,
    VisionAnalysis,
    VisionResult,
)
from chatgraph.config import EngineConfig
from chatgraph.graph.workflow import Workflow
from chatgraph.llm.provider import LLMProvider, LLMResponse, TranscriptionResponse
from chatgraph.observability import clear_trace_context


# ---- Fake adapters ----
class FakeLanguage(LanguageUnderstanding):
    """Returns a fixed analysis, or raises `error` when set."""

    def __init__(self, intent="greeting", entities=None, confidence=0.9, tokens=40, error=None):
        self.analysis = LanguageAnalysis(
            intent=intent,
            entities=entities or {},
            confidence=confidence,
            tokens_used=tokens,
        )
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def extract(self, message, *, history=None, instructions=None):
        self.calls.append({"message": message, "history": history, "instructions": instructions})
        if self.error is not None:
            raise self.error
        return self.analysis


class FakeRanking(Ranking):
    """Ranks candidates in reverse order, or raises `error` when set."""

    def __init__(self, error=None, tokens=25):
        self.error = error
        self.tokens = tokens
        self.calls = 0

    async def rank(self, query, candidates, entities, *, instructions=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        ranked = [
            RankedCandidate(id=product.get("id"), relevance_score=0.6 + 0.1 * i, reasoning="fits")
            for i, product in enumerate(candidates)
        ]
        return RankingResult(ranked=ranked, reasoning="by fit", confidence=0.8, tokens_used=self.tokens)


class FakeTranscription(Transcription):
    def __init__(self, text="do you have scooters", language="english", error=None):
        self.text = text
        self.language = language
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    async def transcribe(self, media_url, language_hint=None):
        self.calls.append((media_url, language_hint))
        if self.error is not None:
            raise self.error
        return Transcript(text=self.text, language=self.language)


class FakeVision(VisionAnalysis):
    def __init__(self, result=None, error=None):
        self.result = result or VisionResult(
            product_name="Y15ZR", brand="Yamaha", category="kapcai", tokens_used=60
        )
        self.error = error
        self.calls: list[str] = []

    async def analyze(self, media_url):
        self.calls.append(media_url)
        if self.error is not None:
            raise self.error
        return self.result


class FakeLLM(LLMProvider):
    """Replays canned completions and records every request."""

    def __init__(self, replies=None, transcript="hello there", language="english"):
        self.replies = list(replies or [])
        self.transcript = transcript
        self.language = language
        self.requests: list[dict[str, Any]] = []

    async def acomplete(
        self, messages, system="", max_tokens=1024, temperature=None, json_mode=False, model=None
    ):
        self.requests.append(
            {
                "messages": messages,
                "system": system,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "json_mode": json_mode,
                "model": model,
            }
        )
        content = self.replies.pop(0) if self.replies else "{}"
        return LLMResponse(content=content, model=model or "fake", input_tokens=30, output_tokens=12)

    async def atranscribe(self, audio, filename="audio.ogg", language=None, model=None):
        self.requests.append({"audio": audio, "filename": filename, "language": language})
        return TranscriptionResponse(text=self.transcript, model="fake", language=self.language)


# ---- Catalog ----
PRODUCTS = [
    {
        "id": "p1",
        "name": "Yamaha Ego S 125",
        "brand": "Yamaha",
        "category": "Motorcycle",
        "subcategory": "Scooter",
        "description": "Popular 125cc scooter",
        "price": 5200,
        "tags": ["scooter", "yamaha", "125cc"],
        "features": {"model": "Ego S 125", "type": "scooter", "locations": ["Puchong", "PJ"]},
        "in_stock": True,
        "active": True,
        "popularity": 90,
    },
    {
        "id": "p2",
        "name": "Yamaha Y15ZR",
        "brand": "Yamaha",
        "category": "Motorcycle",
        "subcategory": "Kapcai",
        "description": "Sporty 150cc kapcai",
        "price": 8500,
        "tags": ["kapcai", "yamaha", "150cc"],
        "features": {"model": "Y15ZR", "type": "kapcai", "locations": ["Shah Alam", "KL"]},
        "in_stock": True,
        "active": True,
        "popularity": 120,
    },
    {
        "id": "p3",
        "name": "Honda RS150R",
        "brand": "Honda",
        "category": "Motorcycle",
        "subcategory": "Kapcai",
        "description": "Reliable 150cc kapcai",
        "price": 7800,
        "tags": ["kapcai", "honda", "150cc"],
        "features": {"model": "RS150R", "type": "kapcai", "locations": ["PJ", "KL"]},
        "in_stock": True,
        "active": True,
        "popularity": 80,
    },
    {
        "id": "p4",
        "name": "Honda Wave Alpha",
        "brand": "Honda",
        "category": "Motorcycle",
        "subcategory": "Kapcai",
        "description": "Discontinued commuter",
        "price": 4300,
        "tags": ["kapcai", "honda"],
        "features": {"type": "kapcai"},
        "in_stock": False,
        "active": True,
        "popularity": 200,
    },
]

ORDERS = [{"order_id": "ORD-1", "status": "processing"}]


# ---- Workflow ----
SALES_WORKFLOW = {
    "workflow": {
        "id": "test_sales",
        "name": "Test Sales",
        "nodes": [
            {"id": "start", "type": "trigger", "config": {"next": "message_classifier"}},
            {
                "id": "message_classifier",
                "type": "classifier",
                "config": {
                    "classify": [
                        {"type": "text", "next": "nlp_processor"},
                        {"type": "voice", "next": "voice_transcriber"},
                        {"type": "image", "next": "image_analyzer"},
                    ],
                    "fallback": "nlp_processor",
                },
            },
            {"id": "voice_transcriber", "type": "speech", "config": {"next": "nlp_processor"}},
            {"id": "image_analyzer", "type": "vision", "config": {"next": "visual_search"}},
            {
                "id": "visual_search",
                "type": "database",
                "config": {
                    "operation": "visual_search",
                    "next_found": "product_ranker",
                    "next_not_found": "no_results_handler",
                },
            },
            {"id": "nlp_processor", "name": "NLP", "type": "nlp", "config": {"next": "intent_router"}},
            {
                "id": "intent_router",
                "type": "router",
                "config": {
                    "routes": [
                        {"intent": "greeting", "next": "greeting_handler"},
                        {"intent": "product_inquiry", "next": "product_search"},
                        {"intent": "agent_request", "next": "agent_escalation"},
                    ],
                    "fallback": "clarification_handler",
                },
            },
            {
                "id": "product_search",
                "type": "database",
                "config": {
                    "operation": "semantic_search",
                    "next_found": "product_ranker",
                    "next_not_found": "no_results_handler",
                },
            },
            {"id": "product_ranker", "type": "ml", "config": {"top_n": 3, "next": "product_formatter"}},
            {
                "id": "product_formatter",
                "type": "formatter",
                "config": {"template": "product_list", "next": "response_optimizer"},
            },
            {"id": "response_optimizer", "type": "optimizer", "config": {"next": "response_sender"}},
            {
                "id": "greeting_handler",
                "type": "handler",
                "config": {"template": "greeting", "next": "response_sender"},
            },
            {
                "id": "clarification_handler",
                "type": "handler",
                "config": {"template": "clarification", "next": "response_sender"},
            },
            {
                "id": "no_results_handler",
                "type": "handler",
                "config": {"template": "no_results", "next": "response_sender"},
            },
            {"id": "agent_escalation", "type": "escalation", "config": {}},
            {"id": "response_sender", "type": "action", "config": {"next": "end"}},
            {"id": "end", "type": "end"},
        ],
        "templates": {
            "greeting": {"english": "Hello! How can I help?", "malay": "Hai! Boleh saya bantu?"},
            "product_list": {"english": "Here you go:\n\n{products}"},
            "clarification": {"english": "Could you tell me more?"},
            "no_results": {"english": "Nothing matched, sorry."},
            "agent_transfer": {"english": "Connecting you to an agent."},
        },
    }
}


@pytest.fixture(autouse=True)
def _reset_trace_context():
    clear_trace_context()
    yield
    clear_trace_context()


@pytest.fixture
def settings():
    return EngineConfig(
        max_iterations=100,
        max_node_visits=3,
        default_language="english",
    )


@pytest.fixture
def workflow():
    return Workflow.load(SALES_WORKFLOW)


@pytest.fixture
def store():
    return InMemoryProductStore(products=[dict(p) for p in PRODUCTS], orders=list(ORDERS))


@pytest.fixture
def capabilities(store):
    return Capabilities(
        language=FakeLanguage(),
        ranking=FakeRanking(),
        data_store=store,
        transcription=FakeTranscription(),
        vision=FakeVision(),
    )
