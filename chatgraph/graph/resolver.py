"""
Next-Node Resolver - decides where a run goes after each step.

Resolution is a strict priority chain. Each priority short-circuits only on a
reference that exists in the workflow; a dangling id is skipped and the chain
continues. When nothing resolves the run moves to the terminal node.

Priorities:
1. result.next                 - explicit override returned by the handler
2. config.next                 - unconditional static edge
3. config.next_high_confidence - when result.confidence >= threshold
4. config.next_low_confidence  - when result.confidence < threshold
5. config.next_found           - when result.found is True
6. config.next_not_found       - when result.found is False
7. config.fallback
8. the terminal node
"""

import logging

from chatgraph.graph.context import ExecutionContext
from chatgraph.graph.node import NodeSpec, StepResult
from chatgraph.graph.workflow import Workflow

logger = logging.getLogger(__name__)


class NextNodeResolver:
    def __init__(self, workflow: Workflow, high_confidence_threshold: float = 0.7):
        self.workflow = workflow
        self.high_confidence_threshold = high_confidence_threshold

    def candidates(self, node: NodeSpec, result: StepResult) -> list[tuple[str, str]]:
        """(rule, node_id) pairs whose condition holds, in priority order."""
        routing = node.routing
        rules: list[tuple[str, str | None]] = [
            ("result.next", result.next),
            ("config.next", routing.next),
        ]
        if result.confidence is not None:
            if result.confidence >= self.high_confidence_threshold:
                rules.append(("next_high_confidence", routing.next_high_confidence))
            else:
                rules.append(("next_low_confidence", routing.next_low_confidence))
        if result.found is True:
            rules.append(("next_found", routing.next_found))
        elif result.found is False:
            rules.append(("next_not_found", routing.next_not_found))
        rules.append(("fallback", routing.fallback))
        return [(rule, target) for rule, target in rules if target]

    def resolve(
        self, node: NodeSpec, result: StepResult, context: ExecutionContext | None = None
    ) -> NodeSpec:
        for rule, target in self.candidates(node, result):
            next_node = self.workflow.get_node(target)
            if next_node is not None:
                logger.debug(f"   [{rule}] {node.id} → {target}")
                return next_node
            logger.warning(f"   ⚠ {node.id}: {rule} points at missing node '{target}', skipping")

        logger.debug(f"   No routing found for {node.id}, going to end")
        return self.workflow.terminal
