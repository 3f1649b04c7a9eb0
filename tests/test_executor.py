"""
Tests for WorkflowExecutor run paths.

Covers the happy paths through the sample sales workflow, degraded adapters,
handler faults and their recovery route, the safety guard and concurrent
runs on one executor.
"""

import asyncio

import pytest
from conftest import FakeLanguage, FakeRanking, FakeTranscription, FakeVision

from chatgraph.capabilities import Capabilities, LanguageAnalysis, LanguageUnderstanding
from chatgraph.config import EngineConfig
from chatgraph.graph.executor import RunStatus, WorkflowExecutor
from chatgraph.graph.extractor import APOLOGY
from chatgraph.graph.node import StepResult
from chatgraph.graph.workflow import Workflow
from chatgraph.nodes import NodeHandler
from chatgraph.observability import get_trace_context


# ---- Fake handlers ----
class ExplodingHandler(NodeHandler):
    kind = "explode"

    def __init__(self, message="kaboom"):
        self.message = message

    async def execute(self, ctx):
        raise RuntimeError(self.message)


class ContextProbe(NodeHandler):
    kind = "probe"

    def __init__(self):
        self.seen = []

    async def execute(self, ctx):
        self.seen.append(get_trace_context())
        return StepResult(response="probed")


class KeywordLanguage(LanguageUnderstanding):
    """Greets on 'hi', searches otherwise. Yields so concurrent runs interleave."""

    async def extract(self, message, *, history=None, instructions=None):
        await asyncio.sleep(0)
        if message.startswith("hi"):
            return LanguageAnalysis(intent="greeting", confidence=0.9, tokens_used=10)
        return LanguageAnalysis(
            intent="product_inquiry", entities={"brand": "Honda"}, confidence=0.9, tokens_used=20
        )


def make_executor(workflow, capabilities, settings, **kwargs):
    return WorkflowExecutor(workflow, capabilities=capabilities, settings=settings, **kwargs)


# ---- Happy paths ----
@pytest.mark.asyncio
async def test_greeting_run(workflow, capabilities, settings):
    executor = make_executor(workflow, capabilities, settings)

    result = await executor.execute("hello", metadata={"message_type": "text"})

    assert result.status == RunStatus.COMPLETED
    assert result.completed and result.is_clean
    assert result.final_response == "Hello! How can I help?"
    assert result.path == [
        "start",
        "message_classifier",
        "nlp_processor",
        "intent_router",
        "greeting_handler",
        "response_sender",
    ]
    assert result.tokens_used == 40
    assert result.errors == []
    assert result.response_time_ms >= 0
    assert result.run_id


@pytest.mark.asyncio
async def test_greeting_in_requested_language(workflow, capabilities, settings):
    executor = make_executor(workflow, capabilities, settings)

    result = await executor.execute("hai", metadata={"message_type": "text", "language": "malay"})

    assert result.final_response == "Hai! Boleh saya bantu?"


@pytest.mark.asyncio
async def test_product_inquiry_run(workflow, capabilities, settings):
    capabilities.language = FakeLanguage(intent="product_inquiry", entities={"brand": "Yamaha"})
    executor = make_executor(workflow, capabilities, settings)

    result = await executor.execute("yamaha scooter", metadata={"message_type": "text"})

    assert result.path[-5:] == [
        "product_search",
        "product_ranker",
        "product_formatter",
        "response_optimizer",
        "response_sender",
    ]
    assert result.final_response.startswith("Here you go:\n\n1. *")
    assert "Yamaha Y15ZR" in result.final_response
    assert "Honda" not in result.final_response
    assert result.tokens_used == 40 + 25


@pytest.mark.asyncio
async def test_product_not_found_run(workflow, capabilities, settings):
    capabilities.language = FakeLanguage(intent="product_inquiry")
    executor = make_executor(workflow, capabilities, settings)

    result = await executor.execute("helicopter", metadata={"message_type": "text"})

    assert "no_results_handler" in result.path
    assert result.final_response == "Nothing matched, sorry."


@pytest.mark.asyncio
async def test_ranking_failure_still_answers(workflow, capabilities, settings):
    capabilities.language = FakeLanguage(intent="product_inquiry")
    capabilities.ranking = FakeRanking(error=ValueError("not json"))
    executor = make_executor(workflow, capabilities, settings)

    result = await executor.execute("yamaha", metadata={"message_type": "text"})

    assert result.completed
    assert result.errors == []
    assert result.final_response.startswith("Here you go:")


@pytest.mark.asyncio
async def test_trace_matches_results(workflow, capabilities, settings):
    executor = make_executor(workflow, capabilities, settings)

    result = await executor.execute("hello")

    assert [step.node_id for step in result.trace] == result.path
    assert sum(step.tokens_used for step in result.trace) == result.tokens_used
    assert result.trace[-1].has_response


# ---- Degraded adapters ----
@pytest.mark.asyncio
async def test_nlp_failure_continues_to_router(workflow, capabilities, settings):
    capabilities.language = FakeLanguage(error=RuntimeError("LLM down"))
    executor = make_executor(workflow, capabilities, settings)

    result = await executor.execute("hello", metadata={"message_type": "text"})

    assert result.status == RunStatus.COMPLETED
    assert "intent_router" in result.path
    assert "clarification_handler" in result.path
    assert "agent_escalation" not in result.path
    assert result.errors == ["Error in node nlp_processor (NLP): LLM down"]
    assert result.final_response == "Could you tell me more?"


@pytest.mark.asyncio
async def test_voice_message_is_transcribed_before_nlp(workflow, capabilities, settings):
    language = FakeLanguage(intent="greeting")
    capabilities.language = language
    executor = make_executor(workflow, capabilities, settings)

    result = await executor.execute(
        "",
        metadata={"message_type": "voice", "voice_url": "https://cdn.example/note.ogg"},
    )

    assert result.path[:4] == ["start", "message_classifier", "voice_transcriber", "nlp_processor"]
    assert language.calls[0]["message"] == "do you have scooters"
    assert result.history[-2] == {"role": "user", "content": ""}


@pytest.mark.asyncio
async def test_voice_failure_degrades(workflow, capabilities, settings):
    capabilities.transcription = FakeTranscription(error=OSError("download failed"))
    executor = make_executor(workflow, capabilities, settings)

    result = await executor.execute(
        "", metadata={"message_type": "voice", "voice_url": "https://cdn.example/note.ogg"}
    )

    assert result.completed
    assert result.errors[0] == "Error in node voice_transcriber (voice_transcriber): download failed"
    # NLP has no message to read and degrades to a clarification
    assert result.final_response == "Could you tell me more?"


@pytest.mark.asyncio
async def test_image_message_searches_by_analysis(workflow, capabilities, settings):
    vision = FakeVision()
    capabilities.vision = vision
    executor = make_executor(workflow, capabilities, settings)

    result = await executor.execute(
        "", metadata={"message_type": "image", "image_url": "https://cdn.example/bike.jpg"}
    )

    assert result.path[2:5] == ["image_analyzer", "visual_search", "product_ranker"]
    assert "Yamaha Y15ZR" in result.final_response
    assert result.tokens_used == 60 + 25


# ---- Handler faults ----
@pytest.mark.asyncio
async def test_handler_fault_escalates(workflow, capabilities, settings):
    capabilities.language = FakeLanguage(intent="product_inquiry")
    executor = make_executor(workflow, capabilities, settings)
    executor.register_handler("database", ExplodingHandler("db driver crashed"))

    result = await executor.execute("yamaha")

    assert result.path[-3:] == ["product_search", "agent_escalation", "response_sender"]
    assert result.errors == ["Error in node product_search (product_search): db driver crashed"]
    assert result.final_response == "Connecting you to an agent."
    assert result.status == RunStatus.COMPLETED


@pytest.mark.asyncio
async def test_failing_response_node_ends_run(workflow, capabilities, settings):
    executor = make_executor(workflow, capabilities, settings)
    executor.register_handler("action", ExplodingHandler())

    result = await executor.execute("hello")

    assert result.path[-1] == "response_sender"
    assert result.status == RunStatus.COMPLETED
    # The greeting written before the failure is still the reply
    assert result.final_response == "Hello! How can I help?"


@pytest.mark.asyncio
async def test_escalation_happens_once(settings):
    workflow = Workflow.load(
        {
            "nodes": [
                {"id": "start", "type": "trigger", "config": {"next": "boom"}},
                {"id": "boom", "type": "explode"},
                {"id": "agent_escalation", "type": "escalation", "config": {"next": "boom_again"}},
                {"id": "boom_again", "type": "explode"},
                {"id": "response_sender", "type": "action"},
            ],
            "templates": {"agent_transfer": "Transferring you."},
        }
    )
    executor = WorkflowExecutor(workflow, settings=settings, handlers={"explode": ExplodingHandler()})

    result = await executor.execute("hi")

    assert result.path == ["start", "boom", "agent_escalation", "boom_again", "response_sender"]
    assert len(result.errors) == 2
    assert result.final_response == "Transferring you."


@pytest.mark.asyncio
async def test_fault_without_recovery_nodes_terminates(settings):
    workflow = Workflow.load(
        {
            "nodes": [
                {"id": "start", "type": "trigger", "config": {"next": "boom"}},
                {"id": "boom", "type": "explode"},
            ]
        }
    )
    executor = WorkflowExecutor(workflow, settings=settings, handlers={"explode": ExplodingHandler()})

    result = await executor.execute("hi")

    assert result.path == ["start", "boom"]
    assert result.final_response == (
        "I encountered an error: Error in node boom (boom): kaboom. "
        "Please try again or contact support."
    )


# ---- Safety guard ----
@pytest.mark.asyncio
async def test_two_node_cycle_is_cut(settings):
    workflow = Workflow.load(
        {
            "nodes": [
                {"id": "start", "type": "trigger", "config": {"next": "a"}},
                {"id": "a", "type": "handler", "config": {"next": "b"}},
                {"id": "b", "type": "handler", "config": {"next": "a"}},
            ]
        }
    )
    executor = WorkflowExecutor(workflow, settings=settings)

    result = await executor.execute("hi")

    assert result.status == RunStatus.GUARD_TRIPPED
    assert result.path == ["start", "a", "b", "a", "b", "a", "b"]
    assert result.errors == ["Infinite loop detected at node a (already visited 3 times)"]
    assert result.final_response.startswith("I encountered an error: Infinite loop detected")


@pytest.mark.asyncio
async def test_iteration_ceiling(workflow, capabilities):
    settings = EngineConfig(max_iterations=3, max_node_visits=3, default_language="english")
    executor = make_executor(workflow, capabilities, settings)

    result = await executor.execute("hello")

    assert result.status == RunStatus.GUARD_TRIPPED
    assert len(result.path) == 3
    assert result.errors == ["Workflow loop detected after 4 iterations"]


# ---- Malformed graphs ----
@pytest.mark.asyncio
async def test_missing_start_node(settings):
    workflow = Workflow.load({"nodes": [{"id": "intro", "type": "trigger"}]})

    result = await WorkflowExecutor(workflow, settings=settings).execute("hi")

    assert result.status == RunStatus.MALFORMED_START
    assert result.path == []
    assert result.final_response == (
        "I encountered an error: Start node 'start' not found. Please try again or contact support."
    )


@pytest.mark.asyncio
async def test_unknown_kind_passes_data_through(settings):
    workflow = Workflow.load(
        {
            "nodes": [
                {"id": "start", "type": "trigger", "config": {"next": "mystery"}},
                {"id": "mystery", "type": "teleport", "config": {"next": "reply"}},
                {"id": "reply", "type": "action"},
            ]
        }
    )

    result = await WorkflowExecutor(workflow, settings=settings).execute("hi")

    assert result.path == ["start", "mystery", "reply"]
    assert result.trace[1].has_data
    assert result.trace[1].tokens_used == 0
    assert result.final_response == APOLOGY


@pytest.mark.asyncio
async def test_dangling_reference_falls_back(settings):
    workflow = Workflow.load(
        {
            "nodes": [
                {"id": "start", "type": "trigger", "config": {"next": "ghost", "fallback": "reply"}},
                {"id": "reply", "type": "handler", "config": {"template": "bye"}},
            ],
            "templates": {"bye": "Goodbye"},
        }
    )

    result = await WorkflowExecutor(workflow, settings=settings).execute("hi")

    assert result.path == ["start", "reply"]
    assert result.final_response == "Goodbye"
    assert result.completed


@pytest.mark.asyncio
async def test_dangling_reference_without_fallback_ends_at_terminal(settings):
    workflow = Workflow.load(
        {"nodes": [{"id": "start", "type": "trigger", "config": {"next": "ghost"}}]}
    )

    result = await WorkflowExecutor(workflow, settings=settings).execute("hi")

    assert result.status == RunStatus.COMPLETED
    assert result.path == ["start"]
    assert result.errors == []
    assert result.final_response == APOLOGY


# ---- Conversation history ----
@pytest.mark.asyncio
async def test_history_is_passed_and_extended(workflow, capabilities, settings):
    language = FakeLanguage()
    capabilities.language = language
    executor = make_executor(workflow, capabilities, settings)
    history = [{"role": "user", "content": "earlier"}, {"role": "assistant", "content": "reply"}]

    result = await executor.execute("hello", history=history)

    assert language.calls[0]["history"] == history
    assert result.history == [
        *history,
        {"role": "user", "content": "hello"},
        {"role": "assistant", "content": "Hello! How can I help?"},
    ]
    assert len(history) == 2


# ---- Trace context and concurrency ----
@pytest.mark.asyncio
async def test_trace_context_during_run(settings):
    probe = ContextProbe()
    workflow = Workflow.load(
        {"id": "probe_flow", "nodes": [{"id": "start", "type": "probe"}]}
    )
    executor = WorkflowExecutor(workflow, settings=settings, handlers={"probe": probe})

    result = await executor.execute("hi")

    assert probe.seen[0]["run_id"] == result.run_id
    assert probe.seen[0]["workflow_id"] == "probe_flow"
    assert probe.seen[0]["node_id"] == "start"
    assert get_trace_context() == {}


@pytest.mark.asyncio
async def test_concurrent_runs_are_isolated(workflow, capabilities, settings):
    capabilities.language = KeywordLanguage()
    executor = make_executor(workflow, capabilities, settings)

    greeting, search = await asyncio.gather(
        executor.execute("hi there"),
        executor.execute("honda please"),
    )

    assert greeting.final_response == "Hello! How can I help?"
    assert greeting.tokens_used == 10
    assert "product_search" not in greeting.path
    assert "Honda RS150R" in search.final_response
    assert search.tokens_used == 20 + 25
    assert greeting.run_id != search.run_id
