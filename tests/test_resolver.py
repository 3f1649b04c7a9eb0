"""
Tests for next-node resolution.

Each priority is exercised on its own, then in combination, including
references that point at nodes the workflow does not contain.
"""

import pytest

from chatgraph.graph.node import NodeSpec, StepResult
from chatgraph.graph.resolver import NextNodeResolver
from chatgraph.graph.workflow import Workflow

TARGETS = ["explicit", "static", "high", "low", "found", "not_found", "fallback"]


@pytest.fixture
def resolver():
    nodes = [{"id": target, "type": "handler"} for target in TARGETS]
    return NextNodeResolver(Workflow.load({"nodes": nodes}))


def node_with(**config):
    return NodeSpec(id="current", kind="database", config=config)


FULL = {
    "next_high_confidence": "high",
    "next_low_confidence": "low",
    "next_found": "found",
    "next_not_found": "not_found",
    "fallback": "fallback",
}


# ---- Single priorities ----
def test_result_next_wins_over_everything(resolver):
    node = node_with(next="static", **FULL)
    result = StepResult(next="explicit", confidence=0.9, found=True)

    assert resolver.resolve(node, result).id == "explicit"


def test_static_next_beats_conditional_routes(resolver):
    node = node_with(next="static", **FULL)

    assert resolver.resolve(node, StepResult(confidence=0.9, found=True)).id == "static"


def test_high_confidence_boundary_is_inclusive(resolver):
    node = node_with(**FULL)

    assert resolver.resolve(node, StepResult(confidence=0.7)).id == "high"
    assert resolver.resolve(node, StepResult(confidence=0.69)).id == "low"


def test_confidence_rules_skipped_without_confidence(resolver):
    node = node_with(**FULL)

    assert resolver.resolve(node, StepResult(found=True)).id == "found"
    assert resolver.resolve(node, StepResult(found=False)).id == "not_found"


def test_found_rules_skipped_without_found(resolver):
    node = node_with(next_found="found", next_not_found="not_found", fallback="fallback")

    assert resolver.resolve(node, StepResult()).id == "fallback"


def test_threshold_is_configurable():
    workflow = Workflow.load({"nodes": [{"id": t, "type": "handler"} for t in TARGETS]})
    strict = NextNodeResolver(workflow, high_confidence_threshold=0.9)
    node = node_with(**FULL)

    assert strict.resolve(node, StepResult(confidence=0.85)).id == "low"


def test_no_routing_goes_to_terminal(resolver):
    resolved = resolver.resolve(node_with(), StepResult())

    assert resolved.id == "end"
    assert resolved.is_terminal


# ---- Dangling references ----
def test_dangling_result_next_falls_through(resolver):
    node = node_with(fallback="fallback")

    assert resolver.resolve(node, StepResult(next="ghost")).id == "fallback"


def test_dangling_high_confidence_falls_to_found(resolver):
    node = node_with(next_high_confidence="ghost", next_found="found")

    assert resolver.resolve(node, StepResult(confidence=0.95, found=True)).id == "found"


def test_all_dangling_reaches_terminal(resolver):
    node = node_with(next="ghost", fallback="phantom")

    assert resolver.resolve(node, StepResult()).is_terminal


def test_candidates_lists_applicable_rules_in_order(resolver):
    node = node_with(next="static", **FULL)
    rules = [rule for rule, _ in resolver.candidates(node, StepResult(confidence=0.2, found=False))]

    assert rules == ["config.next", "next_low_confidence", "next_not_found", "fallback"]
