"""
Execution Context - per-run state threaded through the graph walk.

Owned by exactly one run. The executor creates it, records every dispatch
through `record()`, and hands it to the response extractor at the end.
Nothing in here is shared between runs.
"""

from dataclasses import dataclass, field
from typing import Any

from chatgraph.graph.node import NodeKind, NodeSpec, StepResult, StepTrace


@dataclass
class ExecutionContext:
    original_message: str
    metadata: dict[str, Any] = field(default_factory=dict)
    history: list[dict[str, str]] = field(default_factory=list)
    max_iterations: int = 100
    language: str | None = None

    effective_message: str = ""
    results: list[StepResult] = field(default_factory=list)
    trace: list[StepTrace] = field(default_factory=list)
    tokens_used: int = 0
    errors: list[str] = field(default_factory=list)
    escalated: set[str] = field(default_factory=set)
    iteration: int = 0

    def __post_init__(self) -> None:
        if not self.effective_message:
            self.effective_message = self.original_message
        if self.language is None and isinstance(self.metadata.get("language"), str):
            self.language = self.metadata["language"]

    @property
    def last_result(self) -> StepResult | None:
        return self.results[-1] if self.results else None

    @property
    def last_data(self) -> dict[str, Any]:
        last = self.last_result
        return last.data if last is not None else {}

    def record(self, node: NodeSpec, result: StepResult) -> None:
        """Append one dispatch. Results, traces and token totals move together."""
        self.results.append(result)
        self.trace.append(StepTrace.from_result(node, result))
        self.tokens_used += result.tokens_used

        if result.error:
            self.add_error(f"Error in node {node.id} ({node.label}): {result.error}")
        if node.kind == NodeKind.ESCALATION:
            self.escalated.add(node.id)
        if result.effective_message:
            self.effective_message = result.effective_message
        if result.language:
            self.language = result.language

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def visit_count(self, node_id: str) -> int:
        """How many times `node_id` has already been dispatched in this run."""
        return sum(1 for step in self.trace if step.node_id == node_id)

    def latest(self, key: str, default: Any = None) -> Any:
        """Most recent non-empty value written under `key` by any step."""
        for result in reversed(self.results):
            value = result.data.get(key)
            if value not in (None, "", [], {}):
                return value
        return default

    @property
    def path(self) -> list[str]:
        return [step.node_id for step in self.trace]
